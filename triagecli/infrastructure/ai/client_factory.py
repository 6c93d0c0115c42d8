"""Selects and builds the provider client for a provider name."""

import logging
from typing import Dict, Optional, Type

from triagecli.domain.errors import ConfigError
from triagecli.infrastructure.ai.base_client import BaseProviderClient
from triagecli.infrastructure.ai.groq.groq_client import GroqClient
from triagecli.infrastructure.ai.openai.gpt_client import GptClient, OpenRouterClient
from triagecli.infrastructure.config import settings
from triagecli.infrastructure.resilience.api_retry import RetryPolicy
from triagecli.infrastructure.resilience.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

CLIENT_CLASSES: Dict[str, Type[BaseProviderClient]] = {
    "openai": GptClient,
    "openrouter": OpenRouterClient,
    "groq": GroqClient,
}


def create_client(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    api_key: Optional[str] = None,
    retry_policy: Optional[RetryPolicy] = None,
) -> BaseProviderClient:
    """Builds a client with its own circuit breaker from configuration.

    Args:
        provider: Provider name; the configured provider when None.
        model: Model name; the configured model or provider default when None.
        api_key: API key; read from the environment/configuration when None.
        retry_policy: Retry policy for the client's calls.

    Raises:
        ConfigError: For unknown providers or invalid breaker settings.
        NotAuthenticatedError: If no API key is available.
    """
    name = (provider or settings.get_ai_provider()).lower()
    client_class = CLIENT_CLASSES.get(name)
    if client_class is None:
        raise ConfigError(f"Unknown AI provider '{name}'. Supported: {', '.join(CLIENT_CLASSES)}")

    threshold, reset_seconds = settings.get_circuit_breaker_settings()
    breaker = CircuitBreaker(threshold=threshold, reset_seconds=reset_seconds, name=name)
    logger.debug(f"Creating {client_class.__name__} with {breaker!r}")
    return client_class(
        api_key=api_key or settings.get_api_key(name),
        model=model or settings.get_ai_model(name),
        breaker=breaker,
        retry_policy=retry_policy,
    )
