"""Tests for NotificationDispatcher.

Tests verify:
- Text within the limit goes out as one message
- Longer text is split into ceil(L / chunk) chunks that rejoin exactly
- Delays separate chunks, none after the last
- Delivery failures are swallowed and reported as False
- Execution-error alerts carry the source and message
"""

import math
from unittest.mock import AsyncMock

import pytest

from perpwatch.exceptions import DispatchError
from perpwatch.models import AlertBatch, AlertCategory
from perpwatch.notify.channels import NotificationChannel
from perpwatch.notify.dispatcher import NotificationDispatcher, split_text


@pytest.fixture
def channel() -> AsyncMock:
    return AsyncMock(spec=NotificationChannel)


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


def _sent(channel: AsyncMock) -> list[str]:
    return [call.args[0] for call in channel.send_message.await_args_list]


class TestSplitText:
    def test_rejoins_exactly(self):
        text = "".join(chr(65 + i % 26) for i in range(7001))
        parts = split_text(text, 3000)
        assert "".join(parts) == text
        assert [len(p) for p in parts] == [3000, 3000, 1001]

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            split_text("abc", 0)


class TestSend:
    @pytest.mark.asyncio
    async def test_short_text_single_message(self, channel, sleep):
        dispatcher = NotificationDispatcher(channel, sleep=sleep)
        assert await dispatcher.send("hello") is True
        assert _sent(channel) == ["hello"]
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_text_at_limit_not_split(self, channel, sleep):
        dispatcher = NotificationDispatcher(channel, max_length=4000, chunk_size=3000, sleep=sleep)
        await dispatcher.send("x" * 4000)
        assert len(_sent(channel)) == 1

    @pytest.mark.parametrize("length", [4001, 6000, 9001, 12000])
    @pytest.mark.asyncio
    async def test_long_text_chunked(self, channel, sleep, length):
        text = "\n".join("line %05d" % i for i in range(length))[:length]
        dispatcher = NotificationDispatcher(
            channel, max_length=4000, chunk_size=3000, chunk_delay=0.1, sleep=sleep
        )

        assert await dispatcher.send(text) is True

        parts = _sent(channel)
        assert len(parts) == math.ceil(length / 3000)
        assert "".join(parts) == text
        assert sleep.await_count == len(parts) - 1
        sleep.assert_awaited_with(0.1)

    @pytest.mark.asyncio
    async def test_empty_text_sends_nothing(self, channel, sleep):
        dispatcher = NotificationDispatcher(channel, sleep=sleep)
        assert await dispatcher.send("") is True
        channel.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_swallowed(self, channel, sleep):
        channel.send_message.side_effect = DispatchError("429 Too Many Requests")
        dispatcher = NotificationDispatcher(channel, sleep=sleep)
        assert await dispatcher.send("hello") is False

    @pytest.mark.asyncio
    async def test_unexpected_failure_swallowed(self, channel, sleep):
        channel.send_message.side_effect = OSError("network unreachable")
        dispatcher = NotificationDispatcher(channel, sleep=sleep)
        assert await dispatcher.send("hello") is False

    @pytest.mark.asyncio
    async def test_failed_chunk_stops_remaining(self, channel, sleep):
        channel.send_message.side_effect = [None, DispatchError("500"), None]
        dispatcher = NotificationDispatcher(channel, sleep=sleep)
        assert await dispatcher.send("x" * 9000) is False
        assert channel.send_message.await_count == 2

    def test_chunk_size_above_limit_rejected(self, channel):
        with pytest.raises(ValueError):
            NotificationDispatcher(channel, max_length=100, chunk_size=200)


class TestBatchesAndErrors:
    @pytest.mark.asyncio
    async def test_send_batches_counts_delivered(self, channel, sleep):
        channel.send_message.side_effect = [None, DispatchError("down")]
        dispatcher = NotificationDispatcher(channel, sleep=sleep)
        batches = [
            AlertBatch(AlertCategory.OI_VOLUME_STRETCH, [], "one"),
            AlertBatch(AlertCategory.FUNDING_EXTREME, [], "two"),
        ]
        assert await dispatcher.send_batches(batches) == 1
        assert _sent(channel) == ["one", "two"]

    @pytest.mark.asyncio
    async def test_error_alert_text(self, channel, sleep):
        dispatcher = NotificationDispatcher(channel, sleep=sleep)
        await dispatcher.send_error(RuntimeError("catalog unavailable"), "Binance structure")
        assert _sent(channel) == ["❌ Binance structure execution error: catalog unavailable"]

    @pytest.mark.asyncio
    async def test_error_alert_without_message_uses_type(self, channel, sleep):
        dispatcher = NotificationDispatcher(channel, sleep=sleep)
        await dispatcher.send_error(TimeoutError(), "OKX trend")
        assert _sent(channel) == ["❌ OKX trend execution error: TimeoutError"]
