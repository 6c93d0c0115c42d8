"""Composition of circuit breaker, retry policy and cache around provider calls.

A caller wanting a remote value asks the cache first; on a miss the breaker
decides whether the call may be attempted at all; the call itself runs under
the retry policy; the outcome is reported back to the breaker and, on
success, written to the cache. When the dependency is unavailable a stale
cache entry can be served instead.
"""

import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from triagecli.domain.errors import CircuitOpenError
from triagecli.domain.events.api_events import ApiCallFailed, CallRejected, StaleCacheServed
from triagecli.domain.interfaces.cache import FileCache
from triagecli.domain.models.common import CacheKey
from triagecli.infrastructure.resilience.api_retry import RetryPolicy, is_retryable
from triagecli.infrastructure.resilience.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

T = TypeVar("T")


def dispatch_event(event: Any) -> None:
    """Publishes a domain event. Events are only logged for now."""
    logger.debug(f"EVENT: {event}")


class ResilientCaller:
    """Runs operations for one dependency behind its breaker and retry policy."""

    def __init__(
        self,
        name: str,
        breaker: CircuitBreaker,
        retry_policy: Optional[RetryPolicy] = None,
        is_retryable: Callable[[BaseException], bool] = is_retryable,
    ):
        self.name = name
        self.breaker = breaker
        self.retry_policy = retry_policy or RetryPolicy()
        self.is_retryable = is_retryable

    async def call(self, operation: Callable[[], Awaitable[T]], description: Optional[str] = None) -> T:
        """Executes ``operation`` unless the circuit is open.

        Raises:
            CircuitOpenError: Without invoking the operation, if the breaker is open.
            Exception: The operation's final error after retries.
        """
        if self.breaker.is_open():
            dispatch_event(CallRejected(provider=self.name, failure_count=self.breaker.failure_count))
            logger.warning(f"Circuit for {self.name} is open; failing fast.")
            raise CircuitOpenError(self.name)

        try:
            result = await self.retry_policy.execute(
                operation,
                is_retryable=self.is_retryable,
                on_retry=dispatch_event,
                description=description or self.name,
            )
        except Exception as e:
            self.breaker.record_failure()
            dispatch_event(ApiCallFailed(provider=self.name, error_type=type(e).__name__, error_message=str(e)))
            raise
        self.breaker.record_success()
        return result

    async def cached_call(
        self,
        cache: FileCache,
        key: CacheKey,
        operation: Callable[[], Awaitable[Any]],
        allow_stale: bool = True,
        description: Optional[str] = None,
    ) -> Any:
        """Returns a cached value, fetching and caching it on a miss.

        When the fetch fails because the circuit is open or a transient error
        outlasted the retries, a stale entry is returned if ``allow_stale``
        and one exists. Permanent errors always propagate.

        The value must be JSON-serializable; it is returned as fetched. A
        cached ``None`` counts as a hit.
        """
        found, cached = await cache.lookup(key)
        if found:
            return cached

        try:
            value = await self.call(operation, description=description)
        except Exception as e:
            degradable = isinstance(e, CircuitOpenError) or self.is_retryable(e)
            if not (allow_stale and degradable):
                raise
            found, stale = await cache.lookup(key, include_expired=True)
            if not found:
                raise
            dispatch_event(StaleCacheServed(provider=self.name, cache_key=key, reason=str(e)))
            logger.warning(f"{self.name} unavailable ({e}); serving stale cache entry for {key}.")
            return stale

        await cache.set(key, value)
        return value
