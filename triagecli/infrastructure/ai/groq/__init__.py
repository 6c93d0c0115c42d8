"""Groq client."""
