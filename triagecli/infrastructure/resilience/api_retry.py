"""Retry policy with exponential backoff for transient failures.

``RetryPolicy.execute`` runs an async operation and retries it while the
error classifier reports the failure as transient and attempts remain. The
default schedule is factor 2.0, a 1 second minimum delay and 3 attempts in
total, with random jitter on every delay.

``is_retryable`` is the classifier used throughout the application. It knows
the domain error taxonomy, ``httpx`` transport errors and the status/connection
errors raised by the ``openai`` and ``groq`` SDKs; any other error can opt in
by exposing a truthy ``retryable`` attribute.
"""

import asyncio
import logging
import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, Optional, TypeVar

import groq
import httpx
import openai

from triagecli.domain.errors import RETRYABLE_STATUS_CODES
from triagecli.domain.events.api_events import RetryScheduled

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MIN_DELAY_SECONDS = 1.0
DEFAULT_BACKOFF_FACTOR = 2.0
DEFAULT_MAX_DELAY_SECONDS = 60.0
MAX_RETRY_AFTER_SECONDS = 120.0

# Network-level failures: the request never produced a response.
TRANSIENT_EXCEPTIONS = (
    TimeoutError,
    ConnectionError,
    httpx.TransportError,
    openai.APIConnectionError,
    groq.APIConnectionError,
)


def is_retryable_http(status: int) -> bool:
    """Returns True for 429 and the 5xx statuses worth retrying (500/502/503/504)."""
    return status in RETRYABLE_STATUS_CODES


def _status_of(error: BaseException) -> Optional[int]:
    """Extracts an HTTP status code from SDK or httpx errors, if present."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    status = getattr(error, "status_code", None)
    return status if isinstance(status, int) else None


def is_retryable(error: BaseException) -> bool:
    """Classifies an error as transient (retry) or permanent (fail now)."""
    capability = getattr(error, "retryable", None)
    if capability is not None:
        return bool(capability)
    if isinstance(error, TRANSIENT_EXCEPTIONS):
        return True
    status = _status_of(error)
    if status is not None:
        return is_retryable_http(status)
    return False


def parse_retry_after_header(value: Optional[str]) -> Optional[float]:
    """Parses a Retry-After header given as seconds or as an HTTP date."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def retry_after_seconds(error: BaseException) -> Optional[float]:
    """Returns the server's retry-after hint for a rate-limit error, capped at 120s.

    Looks at a ``retry_after`` attribute first (``RateLimitedError``), then at
    a ``Retry-After`` header on the error's HTTP response. Returns None when
    the error carries no usable hint.
    """
    hint: Optional[float] = None
    retry_after = getattr(error, "retry_after", None)
    if isinstance(retry_after, (int, float)) and retry_after > 0:
        hint = float(retry_after)
    else:
        response = getattr(error, "response", None)
        headers = getattr(response, "headers", None)
        if headers is not None:
            hint = parse_retry_after_header(headers.get("retry-after") or headers.get("Retry-After"))
    if not hint:
        return None
    return min(hint, MAX_RETRY_AFTER_SECONDS)


class RetryPolicy:
    """Exponential backoff schedule and the loop that applies it."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        min_delay: float = DEFAULT_MIN_DELAY_SECONDS,
        factor: float = DEFAULT_BACKOFF_FACTOR,
        max_delay: float = DEFAULT_MAX_DELAY_SECONDS,
        jitter: bool = True,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initializes the retry policy.

        Args:
            max_attempts: Total attempts, including the first one.
            min_delay: Delay in seconds before the first retry.
            factor: Multiplier applied to the delay for each further retry.
            max_delay: Upper bound for a single delay.
            jitter: Add a random amount in ``[0, delay)`` to each delay.
            sleep: Awaitable sleep function (replaced in tests).
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.min_delay = min_delay
        self.factor = factor
        self.max_delay = max_delay
        self.jitter = jitter
        self._sleep = sleep

    def compute_delay(self, retry_number: int) -> float:
        """Delay before retry ``retry_number`` (1 for the first retry)."""
        delay = min(self.max_delay, self.min_delay * (self.factor ** (retry_number - 1)))
        if self.jitter:
            delay = min(self.max_delay, delay + random.uniform(0.0, delay))
        return delay

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        is_retryable: Callable[[BaseException], bool] = is_retryable,
        on_retry: Optional[Callable[[RetryScheduled], None]] = None,
        description: str = "operation",
    ) -> T:
        """Runs ``operation`` until it succeeds, fails permanently, or attempts run out.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per attempt.
            is_retryable: Error classifier; False stops immediately.
            on_retry: Called with a RetryScheduled event before each backoff sleep.
            description: Label for log messages and events.

        Returns:
            The operation's result.

        Raises:
            Exception: The last error raised by the operation, unchanged.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as e:
                if not is_retryable(e):
                    logger.debug(f"{description}: non-retryable {type(e).__name__} on attempt {attempt}.")
                    raise
                if attempt >= self.max_attempts:
                    logger.error(f"{description}: giving up after {attempt} attempts. Last error: {e}")
                    raise
                delay = self.compute_delay(attempt)
                event = RetryScheduled(
                    operation=description,
                    attempt_number=attempt,
                    delay_seconds=delay,
                    error_message=str(e),
                )
                if on_retry is not None:
                    on_retry(event)
                logger.warning(
                    f"Retrying {description} after transient failure "
                    f"(attempt {attempt}/{self.max_attempts}, waiting {delay:.2f}s): {e}"
                )
                await self._sleep(delay)

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_attempts={self.max_attempts}, min_delay={self.min_delay}, "
            f"factor={self.factor}, jitter={self.jitter})"
        )
