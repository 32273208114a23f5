"""Best-effort, size-bounded notification delivery.

Messages within the channel's hard limit go out as one message. Longer
text is cut into fixed-size chunks (boundaries are arbitrary; joining the
chunks reproduces the text exactly) sent in order with a short pause
between them to stay under the channel's rate limit. Delivery failures are
logged and never propagate into the cycle.
"""

import asyncio
from collections.abc import Awaitable, Callable

from perpwatch.exceptions import DispatchError
from perpwatch.logging import get_logger
from perpwatch.models import AlertBatch
from perpwatch.notify.channels import NotificationChannel

logger = get_logger(__name__)


def split_text(text: str, chunk_size: int) -> list[str]:
    """Cut ``text`` into consecutive slices of at most ``chunk_size`` characters."""
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
    return [text[i : i + chunk_size] for i in range(0, len(text), chunk_size)]


class NotificationDispatcher:
    """Delivers alert text through a NotificationChannel.

    Args:
        channel: Destination channel.
        max_length: Longest text sent as a single message.
        chunk_size: Slice length for text above ``max_length``.
        chunk_delay: Pause in seconds between chunk sends.
        sleep: Awaitable sleep function (injectable for tests).
    """

    def __init__(
        self,
        channel: NotificationChannel,
        max_length: int = 4000,
        chunk_size: int = 3000,
        chunk_delay: float = 0.1,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if chunk_size > max_length:
            raise ValueError("chunk_size must not exceed max_length")
        self._channel = channel
        self._max_length = max_length
        self._chunk_size = chunk_size
        self._chunk_delay = chunk_delay
        self._sleep = sleep

    def chunks(self, text: str) -> list[str]:
        if len(text) <= self._max_length:
            return [text]
        return split_text(text, self._chunk_size)

    async def send(self, text: str) -> bool:
        """Deliver ``text``; returns False if any part failed. Never raises."""
        if not text:
            return True

        parts = self.chunks(text)
        for index, part in enumerate(parts):
            if index > 0:
                await self._sleep(self._chunk_delay)
            try:
                await self._channel.send_message(part)
            except asyncio.CancelledError:
                raise
            except DispatchError as e:
                logger.error("notification_send_failed", chunk=index + 1, chunks=len(parts), error=str(e))
                return False
            except Exception as e:
                logger.error(
                    "notification_send_failed",
                    chunk=index + 1,
                    chunks=len(parts),
                    error=str(e),
                    exc_info=True,
                )
                return False

        logger.debug("notification_sent", length=len(text), chunks=len(parts))
        return True

    async def send_batches(self, batches: list[AlertBatch]) -> int:
        """Send one message per batch in order; returns how many were delivered."""
        delivered = 0
        for batch in batches:
            if await self.send(batch.text):
                delivered += 1
        return delivered

    async def send_error(self, error: BaseException, source: str) -> bool:
        """Report a pipeline malfunction as a distinct execution-error alert."""
        message = str(error) or type(error).__name__
        return await self.send(f"❌ {source} execution error: {message}")
