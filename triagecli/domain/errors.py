"""Error taxonomy shared by the resilience core and its collaborators.

Transient errors (rate limits, truncated responses, 429/5xx provider errors)
are eligible for retry. Permanent errors (authentication, invalid responses,
configuration, bad cache keys) fail immediately. ``CircuitOpenError`` is the
synthetic "dependency unavailable" condition raised without attempting a call.
"""

from typing import Optional

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class TriageCliError(Exception):
    """Base class for all application errors."""


class ProviderError(TriageCliError):
    """An AI provider returned an error response."""

    def __init__(self, message: str, status: Optional[int] = None, provider: str = "unknown"):
        self.message = message
        self.status = status
        self.provider = provider
        super().__init__(f"AI provider error: {message}")

    @property
    def retryable(self) -> bool:
        return self.status in RETRYABLE_STATUS_CODES


class RateLimitedError(TriageCliError):
    """The provider rate limited the request."""

    retryable = True

    def __init__(self, provider: str, retry_after: int = 0):
        self.provider = provider
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded on {provider}, retry after {retry_after}s")


class TruncatedResponseError(TriageCliError):
    """The provider's response ended before the JSON document was complete."""

    retryable = True

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Truncated response from {provider} - response ended prematurely")


class CircuitOpenError(TriageCliError):
    """The circuit breaker for a provider is open; the call was not attempted."""

    retryable = False

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Circuit breaker is open - {provider} is temporarily unavailable")


class NotAuthenticatedError(TriageCliError):
    """No usable API key for the provider."""

    retryable = False

    def __init__(self, provider: str, env_var: str):
        self.provider = provider
        self.env_var = env_var
        super().__init__(f"AI provider '{provider}' is not authenticated")


class InvalidAIResponseError(TriageCliError):
    """The provider answered with content that is not the expected JSON."""

    retryable = False


class ConfigError(TriageCliError):
    """Configuration file or value is invalid."""

    retryable = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Configuration error: {message}")


class CacheKeyError(TriageCliError, ValueError):
    """A cache key could escape its cache directory."""

    retryable = False


class CacheCorruptedError(TriageCliError):
    """A cache file exists but cannot be parsed as a cache entry."""

    retryable = False
