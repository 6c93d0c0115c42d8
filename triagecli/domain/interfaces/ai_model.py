"""Interface for AI Language Models (LLMs).

Defines the contract for sending messages to different AI providers
(e.g., OpenAI, OpenRouter, Groq).
"""

import abc
from typing import List, Optional

from ..models.ai import ChatMessage, ProviderModel, StructuredAIResponse
from .cache import FileCache


class AIModel(abc.ABC):
    """Abstract Base Class for AI language model interactions."""

    provider_name: str = "unknown"
    model: str = ""

    @abc.abstractmethod
    async def complete(self, messages: List[ChatMessage]) -> StructuredAIResponse:
        """Sends a list of messages to the AI model asynchronously.

        Args:
            messages: The conversation to complete.

        Returns:
            A StructuredAIResponse containing the AI's reply and metadata.

        Raises:
            CircuitOpenError: If the provider is currently considered unavailable.
            RateLimitedError, TruncatedResponseError, ProviderError: After retries.
            NotAuthenticatedError: If the provider rejects the credentials.
        """

    @abc.abstractmethod
    async def list_available_models(self, cache: Optional[FileCache] = None) -> List[ProviderModel]:
        """Lists the models available from this provider asynchronously.

        Args:
            cache: When given, a fresh cached listing is returned without a
                request, and a stale one is served if the provider is down.
        """
