"""Concrete implementation of the AIModel interface using the OpenAI API.

Also serves OpenRouter, which speaks the OpenAI wire protocol behind a
different base URL.
"""

import logging
from typing import Any, Optional

import openai
from openai import OpenAI

from triagecli.infrastructure.ai.base_client import BaseProviderClient

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class GptClient(BaseProviderClient):
    """OpenAI implementation of the AIModel interface."""

    provider_name = "openai"
    api_key_env_var = "OPENAI_API_KEY"
    DEFAULT_MODEL = "gpt-4o-mini"
    sdk = openai
    base_url: Optional[str] = None

    def _create_sdk_client(self, api_key: str) -> Any:
        return OpenAI(api_key=api_key, base_url=self.base_url)


class OpenRouterClient(GptClient):
    """OpenRouter through the OpenAI SDK."""

    provider_name = "openrouter"
    api_key_env_var = "OPENROUTER_API_KEY"
    DEFAULT_MODEL = "openai/gpt-4o-mini"
    base_url = OPENROUTER_BASE_URL
