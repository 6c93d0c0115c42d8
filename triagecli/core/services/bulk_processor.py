"""
Core service for processing many items against an unreliable remote operation.

Items are dispatched to a small pool of workers draining a shared queue, so at
most ``concurrency`` operations are in flight at once and a slot is refilled
as soon as one finishes. Each item is retried on its own; a failure is
recorded in that item's outcome and never aborts the batch.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence, Tuple, TypeVar

from triagecli.domain.models.bulk import BulkOutcome, BulkResult, Failed, Skipped, Success
from triagecli.infrastructure.resilience.api_retry import RetryPolicy, is_retryable

logger = logging.getLogger(__name__)

I = TypeVar("I")
P = TypeVar("P")
T = TypeVar("T")

DEFAULT_CONCURRENCY = 5
SKIPPED_REASON = "Skipped"

ProgressCallback = Callable[[int, int, str], None]


async def process_bulk(
    items: Sequence[Tuple[I, P]],
    operation: Callable[[I, P], Awaitable[Optional[T]]],
    progress: ProgressCallback,
    retry_policy: Optional[RetryPolicy] = None,
    is_retryable: Callable[[BaseException], bool] = is_retryable,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> BulkResult:
    """Runs ``operation`` over every item with bounded concurrency.

    Args:
        items: ``(id, payload)`` pairs. Ids are only used for labels and outcomes.
        operation: Async callable returning a value, or None to skip the item.
        progress: Called as ``progress(current, total, "Processing <id>")`` when an
            item is dispatched; ``current`` is its 1-based submission index.
        retry_policy: Policy applied to each item independently.
        is_retryable: Error classifier handed to the retry policy.
        concurrency: Maximum number of items in flight.

    Returns:
        A BulkResult with exactly one outcome per item, in completion order.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")
    policy = retry_policy or RetryPolicy()
    total = len(items)
    result: BulkResult = BulkResult()

    queue: "asyncio.Queue[Tuple[int, Tuple[I, P]]]" = asyncio.Queue()
    for index, item in enumerate(items):
        queue.put_nowait((index, item))

    async def run_item(item_id: I, payload: P) -> BulkOutcome:
        try:
            value = await policy.execute(
                lambda: operation(item_id, payload),
                is_retryable=is_retryable,
                description=f"item {item_id}",
            )
        except Exception as e:
            logger.warning(f"Item {item_id} failed: {e}")
            return Failed(str(e))
        if value is None:
            return Skipped(SKIPPED_REASON)
        return Success(value)

    async def worker() -> None:
        while True:
            try:
                index, (item_id, payload) = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            progress(index + 1, total, f"Processing {item_id}")
            outcome = await run_item(item_id, payload)
            result.record(item_id, outcome)
            queue.task_done()

    worker_count = min(concurrency, total)
    logger.info(f"Processing {total} items with {worker_count} workers")
    await asyncio.gather(*(worker() for _ in range(worker_count)))

    logger.info(
        f"Bulk processing finished: {result.succeeded} succeeded, "
        f"{result.failed} failed, {result.skipped} skipped"
    )
    return result
