"""Circuit breaker for AI provider resilience.

Tracks consecutive failures for one dependency and derives its state from two
counters:

- **Closed**: ``failure_count < threshold``; calls pass through.
- **Open**: threshold reached and the reset window has not elapsed since the
  last failure; callers should fail fast.
- **Half-Open**: threshold reached but the window has elapsed; ``is_open()``
  returns False so one trial call can go through. Only ``record_success()``
  closes the circuit again.

Every failure at or above the threshold moves ``last_failure_time`` forward,
including failures recorded while the circuit is already open, so a failure
during the cooldown restarts the window from that moment.

The two mutable fields are updated independently (no combined lock), so a
concurrent reader may briefly observe a new count with an old timestamp.
"""

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 3
DEFAULT_RESET_SECONDS = 60.0


class CircuitBreaker:
    """Per-dependency circuit breaker."""

    def __init__(
        self,
        threshold: int = DEFAULT_THRESHOLD,
        reset_seconds: float = DEFAULT_RESET_SECONDS,
        clock: Callable[[], float] = time.time,
        name: str = "provider",
    ):
        """Initializes a closed circuit breaker.

        Args:
            threshold: Consecutive failures before the circuit opens.
            reset_seconds: Seconds after the last failure before a trial call is allowed.
            clock: Returns the current Unix time in seconds.
            name: Dependency name used in log messages.
        """
        self.threshold = threshold
        self.reset_seconds = reset_seconds
        self.name = name
        self._clock = clock
        self._failure_count = 0
        self._last_failure_time = 0.0
        # Guards the read-modify-write of the counter only.
        self._count_lock = threading.Lock()

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_failure_time(self) -> float:
        return self._last_failure_time

    def is_open(self) -> bool:
        """Returns True while callers should fail fast without calling the dependency."""
        if self._failure_count < self.threshold:
            return False
        return self._clock() < self._last_failure_time + self.reset_seconds

    def record_success(self) -> None:
        """Resets the failure count, closing the circuit."""
        if self._failure_count:
            logger.info(f"Circuit for {self.name} closed after {self._failure_count} failure(s).")
        self._failure_count = 0

    def record_failure(self) -> None:
        """Counts a failure; at or above the threshold, restarts the reset window."""
        with self._count_lock:
            self._failure_count += 1
            new_count = self._failure_count

        if new_count >= self.threshold:
            self._last_failure_time = self._clock()
            if new_count == self.threshold:
                logger.warning(
                    f"Circuit for {self.name} opened after {new_count} consecutive failures; "
                    f"cooling down for {self.reset_seconds:g}s."
                )
            else:
                logger.debug(f"Circuit for {self.name}: failure {new_count} restarted the cooldown.")

    def __repr__(self) -> str:
        return (
            f"CircuitBreaker(name={self.name!r}, threshold={self.threshold}, "
            f"reset_seconds={self.reset_seconds}, failure_count={self._failure_count})"
        )
