"""Bounded-concurrency batch scheduler.

Splits the ranked universe into fixed-size batches. Each batch runs its
units concurrently with asyncio.gather and is joined before the next one
starts; a fixed pacing delay separates consecutive batches to respect
provider rate limits. No delay follows the last batch.
"""

import asyncio
import math
from collections.abc import Awaitable, Callable, Sequence
from typing import Generic, TypeVar

from perpwatch.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class BatchScheduler(Generic[T, R]):
    """Runs an async worker over items, ``batch_size`` at a time.

    Concurrency never exceeds ``batch_size``. A unit that raises is logged
    and leaves ``None`` in its result slot; its siblings are neither
    cancelled nor delayed. Results are returned in input order.

    Args:
        batch_size: Units per batch, also the concurrency bound.
        batch_delay: Pause in seconds between batches.
        sleep: Awaitable sleep function (injectable for tests).
    """

    def __init__(
        self,
        batch_size: int = 5,
        batch_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._sleep = sleep

    def batch_count(self, n: int) -> int:
        return math.ceil(n / self._batch_size)

    def batches(self, items: Sequence[T]) -> list[Sequence[T]]:
        return [
            items[i : i + self._batch_size]
            for i in range(0, len(items), self._batch_size)
        ]

    async def _run_unit(self, item: T, worker: Callable[[T], Awaitable[R]]) -> R | None:
        try:
            return await worker(item)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("batch_unit_failed", item=str(item), error=str(e), exc_info=True)
            return None

    async def run(
        self, items: Sequence[T], worker: Callable[[T], Awaitable[R]]
    ) -> list[R | None]:
        """Process every item and return one result slot per item."""
        results: list[R | None] = []
        batches = self.batches(items)

        for index, batch in enumerate(batches, 1):
            batch_results = await asyncio.gather(
                *(self._run_unit(item, worker) for item in batch)
            )
            results.extend(batch_results)
            logger.debug(
                "batch_complete",
                batch=f"{index}/{len(batches)}",
                size=len(batch),
                failed=sum(1 for r in batch_results if r is None),
            )
            if index < len(batches):
                await self._sleep(self._batch_delay)

        return results
