"""Shared plumbing for the OpenAI-compatible provider clients.

The OpenAI and Groq SDKs are synchronous and expose the same exception
hierarchy, so the request lifecycle lives here: the SDK call is pushed to a
worker thread, SDK errors are translated into the domain taxonomy, and every
call runs through the client's own circuit breaker and retry policy.
"""

import abc
import asyncio
import logging
import time
from types import ModuleType
from typing import Any, Callable, List, Optional, TypeVar

from triagecli.domain.errors import (
    NotAuthenticatedError,
    ProviderError,
    RateLimitedError,
    TruncatedResponseError,
)
from triagecli.domain.interfaces.ai_model import AIModel
from triagecli.domain.interfaces.cache import FileCache
from triagecli.domain.models.ai import ChatMessage, ProviderModel, StructuredAIResponse
from triagecli.domain.models.common import TokenUsage
from triagecli.infrastructure.cache.file_cache import cache_key_models
from triagecli.infrastructure.resilience.api_retry import RetryPolicy, retry_after_seconds
from triagecli.infrastructure.resilience.circuit_breaker import CircuitBreaker
from triagecli.infrastructure.resilience.resilient_call import ResilientCaller

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseProviderClient(AIModel):
    """AIModel implementation shared by the SDK-backed clients.

    Subclasses set ``provider_name``, ``api_key_env_var``, ``DEFAULT_MODEL`` and
    ``sdk`` (the SDK module whose exception classes are translated), and build
    the SDK client in ``_create_sdk_client``.
    """

    provider_name: str = "unknown"
    api_key_env_var: str = ""
    DEFAULT_MODEL: str = ""
    sdk: ModuleType

    def __init__(
        self,
        api_key: Optional[str],
        model: Optional[str] = None,
        breaker: Optional[CircuitBreaker] = None,
        retry_policy: Optional[RetryPolicy] = None,
        client: Any = None,
    ):
        """Initializes the client.

        Args:
            api_key: Provider API key.
            model: Model to use; the provider default when None.
            breaker: Circuit breaker owned by this client (a fresh 3/60s one if None).
            retry_policy: Retry policy for each call.
            client: Pre-built SDK client (used by tests).

        Raises:
            NotAuthenticatedError: If no API key is available and no client is given.
        """
        if client is None and not api_key:
            raise NotAuthenticatedError(self.provider_name, self.api_key_env_var)
        self.client = client if client is not None else self._create_sdk_client(api_key)
        self.model = model or self.DEFAULT_MODEL
        self.breaker = breaker or CircuitBreaker(name=self.provider_name)
        self.caller = ResilientCaller(self.provider_name, self.breaker, retry_policy)
        logger.info(f"{type(self).__name__} initialized for model: {self.model}")

    @abc.abstractmethod
    def _create_sdk_client(self, api_key: str) -> Any:
        """Builds the synchronous SDK client."""

    def _translate_error(self, error: Exception) -> Exception:
        """Maps an SDK exception onto the domain error taxonomy.

        Connection and timeout errors are returned unchanged; the retry
        classifier already treats them as transient.
        """
        if isinstance(error, self.sdk.RateLimitError):
            retry_after = retry_after_seconds(error) or 0
            return RateLimitedError(self.provider_name, int(retry_after))
        if isinstance(error, (self.sdk.AuthenticationError, self.sdk.PermissionDeniedError)):
            return NotAuthenticatedError(self.provider_name, self.api_key_env_var)
        if isinstance(error, self.sdk.APIStatusError):
            return ProviderError(error.message, status=error.status_code, provider=self.provider_name)
        return error

    async def _run_sdk(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Runs a blocking SDK call in a worker thread, translating its errors."""
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except self.sdk.APIError as e:
            translated = self._translate_error(e)
            if translated is e:
                raise
            logger.debug(f"{self.provider_name} SDK error translated: {type(e).__name__} -> {type(translated).__name__}")
            raise translated from e

    def _parse_response(self, response: Any) -> StructuredAIResponse:
        """Converts an SDK chat completion into a StructuredAIResponse."""
        try:
            choice = response.choices[0]
            content = choice.message.content or ""
            finish_reason = choice.finish_reason
        except (AttributeError, IndexError, TypeError) as e:
            logger.debug(f"Raw {self.provider_name} response object: {response}")
            raise ProviderError(f"Invalid response structure: {e}", provider=self.provider_name) from e

        token_usage = None
        usage = getattr(response, "usage", None)
        if usage is not None:
            token_usage = TokenUsage(
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
            )
        return StructuredAIResponse(
            content=content,
            finish_reason=finish_reason,
            token_usage=token_usage,
            model_name=getattr(response, "model", None) or self.model,
        )

    async def _complete_once(self, messages: List[ChatMessage]) -> StructuredAIResponse:
        start_time = time.perf_counter()
        completion = await self._run_sdk(
            self.client.chat.completions.create,
            messages=messages,
            model=self.model,
        )
        structured_response = self._parse_response(completion)
        structured_response.latency_ms = (time.perf_counter() - start_time) * 1000
        if structured_response.finish_reason == "length":
            logger.warning(f"{self.provider_name} response hit the token limit and was cut off.")
            raise TruncatedResponseError(self.provider_name)
        logger.debug(
            f"Received response from {self.provider_name} in {structured_response.latency_ms:.2f}ms. "
            f"Usage: {structured_response.token_usage}"
        )
        return structured_response

    async def complete(self, messages: List[ChatMessage]) -> StructuredAIResponse:
        logger.debug(f"Sending {len(messages)} messages to {self.provider_name} model: {self.model}")
        return await self.caller.call(
            lambda: self._complete_once(messages),
            description=f"{self.provider_name} completion",
        )

    async def _list_models_once(self) -> List[ProviderModel]:
        response = await self._run_sdk(self.client.models.list)
        models = [
            ProviderModel(
                model_id=item.id,
                provider=self.provider_name,
                owned_by=getattr(item, "owned_by", None),
            )
            for item in getattr(response, "data", None) or []
        ]
        logger.debug(f"Found {len(models)} {self.provider_name} models.")
        return models

    async def list_available_models(self, cache: Optional[FileCache] = None) -> List[ProviderModel]:
        description = f"{self.provider_name} model listing"
        if cache is None:
            return await self.caller.call(self._list_models_once, description=description)

        async def fetch_serializable() -> List[dict]:
            return [m.to_dict() for m in await self._list_models_once()]

        data = await self.caller.cached_call(
            cache,
            cache_key_models(self.provider_name),
            fetch_serializable,
            description=description,
        )
        return [ProviderModel.from_dict(item) for item in data]
