"""AI Model Implementations.

Contains specific clients for different AI providers (OpenAI, OpenRouter,
Groq), each implementing the `AIModel` interface from the domain layer.
"""
