"""Outcome types for bulk processing.

A bulk run produces one ``BulkOutcome`` per submitted item. Outcomes are
recorded in completion order, so ``BulkResult.outcomes`` does not follow the
order in which items were submitted.
"""

from dataclasses import dataclass, field
from typing import Any, Generic, List, Tuple, TypeVar

I = TypeVar("I")
T = TypeVar("T")


@dataclass(frozen=True)
class BulkOutcome:
    """Base class for the per-item outcome variants."""

    @property
    def kind(self) -> str:
        return type(self).__name__.lower()


@dataclass(frozen=True)
class Success(BulkOutcome):
    """Item was processed successfully with a result."""
    value: Any


@dataclass(frozen=True)
class Skipped(BulkOutcome):
    """Item was skipped (e.g., already processed)."""
    reason: str


@dataclass(frozen=True)
class Failed(BulkOutcome):
    """Item processing failed after retries were exhausted."""
    reason: str


@dataclass
class BulkResult(Generic[I, T]):
    """Aggregate result of a bulk processing run."""
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    outcomes: List[Tuple[I, BulkOutcome]] = field(default_factory=list)

    def record(self, item_id: I, outcome: BulkOutcome) -> None:
        """Appends an outcome and bumps the matching counter."""
        if isinstance(outcome, Success):
            self.succeeded += 1
        elif isinstance(outcome, Skipped):
            self.skipped += 1
        elif isinstance(outcome, Failed):
            self.failed += 1
        else:
            raise TypeError(f"Unknown bulk outcome: {outcome!r}")
        self.outcomes.append((item_id, outcome))

    @property
    def total(self) -> int:
        return self.succeeded + self.failed + self.skipped

    def successes(self) -> List[Tuple[I, T]]:
        return [(item_id, o.value) for item_id, o in self.outcomes if isinstance(o, Success)]

    def failures(self) -> List[Tuple[I, str]]:
        return [(item_id, o.reason) for item_id, o in self.outcomes if isinstance(o, Failed)]
