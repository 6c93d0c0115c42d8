"""Defines common Value Objects used across different domain contexts."""

from typing import NewType, TypedDict

# === Caching Context ===
CacheKey = NewType("CacheKey", str)              # File-name-safe key within a cache subdirectory

# === AI Interaction Context ===
MessageRole = NewType("MessageRole", str)        # 'system', 'user', 'assistant'
ProviderName = NewType("ProviderName", str)      # 'openai', 'openrouter', 'groq'

# --- Structured Data ---
class TokenUsage(TypedDict):
    """Represents token usage information from an AI call."""
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
