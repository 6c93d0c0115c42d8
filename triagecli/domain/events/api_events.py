"""Domain Events related to API calls and resilience.

Events are emitted when retries are scheduled, when calls are rejected by an
open circuit, and when a stale cache entry is served instead of a fresh value.
"""

from dataclasses import dataclass, field
import time
from typing import Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class RetryScheduled(DomainEvent):
    """A failed attempt will be retried after a delay."""
    operation: str
    attempt_number: int # The attempt that just failed (1-based)
    delay_seconds: float
    error_message: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class CallRejected(DomainEvent):
    """A call was not attempted because the provider's circuit is open."""
    provider: str
    failure_count: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallFailed(DomainEvent):
    """A call failed definitively (after retries)."""
    provider: str
    error_type: str
    error_message: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class StaleCacheServed(DomainEvent):
    """A stale cache entry was returned because a fresh fetch was unavailable."""
    provider: str
    cache_key: str
    reason: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
