"""OpenAI-protocol clients (OpenAI and OpenRouter)."""
