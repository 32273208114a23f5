"""Tests for BatchScheduler.

Tests verify:
- ceil(N/B) batches with ceil(N/B) - 1 inter-batch delays
- No delay after the final batch
- Concurrency never exceeds the batch size
- A failing unit leaves None without affecting siblings
- Results keep input order
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from perpwatch.pipeline.scheduler import BatchScheduler


class TestBatching:
    def test_batch_count(self):
        scheduler = BatchScheduler(batch_size=5)
        assert scheduler.batch_count(12) == 3
        assert scheduler.batch_count(10) == 2
        assert scheduler.batch_count(0) == 0

    def test_batches_preserve_order(self):
        scheduler = BatchScheduler(batch_size=2)
        assert scheduler.batches([1, 2, 3, 4, 5]) == [[1, 2], [3, 4], [5]]

    def test_invalid_batch_size(self):
        with pytest.raises(ValueError):
            BatchScheduler(batch_size=0)


class TestRun:
    @pytest.mark.asyncio
    async def test_delays_between_batches_only(self):
        sleep = AsyncMock()
        scheduler = BatchScheduler(batch_size=5, batch_delay=0.5, sleep=sleep)

        async def worker(item):
            return item * 2

        results = await scheduler.run(list(range(12)), worker)

        assert results == [i * 2 for i in range(12)]
        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.5)

    @pytest.mark.asyncio
    async def test_single_batch_never_sleeps(self):
        sleep = AsyncMock()
        scheduler = BatchScheduler(batch_size=5, sleep=sleep)

        async def worker(item):
            return item

        await scheduler.run([1, 2, 3], worker)
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_input(self):
        sleep = AsyncMock()
        scheduler = BatchScheduler(sleep=sleep)
        assert await scheduler.run([], AsyncMock()) == []
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrency_bounded_by_batch_size(self):
        in_flight = 0
        peak = 0

        async def worker(item):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1
            return item

        scheduler = BatchScheduler(batch_size=3, sleep=AsyncMock())
        await scheduler.run(list(range(10)), worker)
        assert peak == 3

    @pytest.mark.asyncio
    async def test_failed_unit_isolated(self):
        async def worker(item):
            if item == 2:
                raise RuntimeError("boom")
            return item

        scheduler = BatchScheduler(batch_size=5, sleep=AsyncMock())
        results = await scheduler.run([1, 2, 3], worker)
        assert results == [1, None, 3]

    @pytest.mark.asyncio
    async def test_next_batch_waits_for_previous(self):
        order: list[str] = []

        async def worker(item):
            order.append(f"start-{item}")
            await asyncio.sleep(0)
            order.append(f"end-{item}")
            return item

        scheduler = BatchScheduler(batch_size=2, sleep=AsyncMock())
        await scheduler.run([1, 2, 3], worker)
        assert order.index("start-3") > order.index("end-1")
        assert order.index("start-3") > order.index("end-2")
