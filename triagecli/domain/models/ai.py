"""Domain models related to AI interactions."""

from typing import Optional, TypedDict
from dataclasses import dataclass

from .common import TokenUsage, MessageRole

# --- AI Interaction Structures ---

class ChatMessage(TypedDict):
    """Represents a message structure expected by chat completion APIs."""
    role: MessageRole
    content: str

@dataclass
class StructuredAIResponse:
    """Structured response from an AI model, including metadata."""
    content: str
    finish_reason: Optional[str] = None # 'stop', 'length', ...
    token_usage: Optional[TokenUsage] = None
    model_name: Optional[str] = None # Which model generated the response
    latency_ms: Optional[float] = None # Time taken for the API call

@dataclass
class ProviderModel:
    """A model advertised by a provider's model listing endpoint."""
    model_id: str
    provider: str
    owned_by: Optional[str] = None

    def to_dict(self) -> dict:
        return {"model_id": self.model_id, "provider": self.provider, "owned_by": self.owned_by}

    @classmethod
    def from_dict(cls, data: dict) -> "ProviderModel":
        return cls(model_id=data["model_id"], provider=data["provider"], owned_by=data.get("owned_by"))
