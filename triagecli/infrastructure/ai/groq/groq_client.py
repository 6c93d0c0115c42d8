"""Concrete implementation of the AIModel interface using the Groq API."""

import logging
from typing import Any

import groq
from groq import Groq as GroqSDKClient

from triagecli.infrastructure.ai.base_client import BaseProviderClient

logger = logging.getLogger(__name__)


class GroqClient(BaseProviderClient):
    """Groq implementation of the AIModel interface."""

    provider_name = "groq"
    api_key_env_var = "GROQ_API_KEY"
    DEFAULT_MODEL = "llama-3.3-70b-versatile"
    sdk = groq

    def _create_sdk_client(self, api_key: str) -> Any:
        # The SDK client is synchronous; calls are moved to threads by the base class.
        return GroqSDKClient(api_key=api_key)
