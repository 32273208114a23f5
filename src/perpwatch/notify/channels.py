"""Notification channels: Telegram Bot API and a log-only fallback."""

from abc import ABC, abstractmethod

import aiohttp

from perpwatch.exceptions import DispatchError
from perpwatch.logging import get_logger

logger = get_logger(__name__)


class NotificationChannel(ABC):
    """Delivers one text message to an external destination."""

    @abstractmethod
    async def send_message(self, text: str) -> None:
        """Deliver ``text`` as a single message.

        Raises:
            DispatchError: If the destination rejects or never receives it.
        """
        ...

    async def close(self) -> None:
        """Release any network resources."""


class TelegramChannel(NotificationChannel):
    """Sends plain-text messages to one chat through the Telegram Bot API.

    Args:
        bot_token: Bot API token.
        chat_id: Target chat, group or channel id.
        api_base: Bot API root.
        timeout: Per-request timeout in seconds.
        session: Optional externally managed aiohttp session.
    """

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        api_base: str = "https://api.telegram.org",
        timeout: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._url = f"{api_base.rstrip('/')}/bot{bot_token}/sendMessage"
        self._chat_id = chat_id
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def send_message(self, text: str) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout)
            )
            self._owns_session = True

        payload = {
            "chat_id": self._chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        try:
            async with self._session.post(self._url, json=payload) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    raise DispatchError(f"Telegram returned {resp.status}: {body[:200]}")
        except aiohttp.ClientError as e:
            raise DispatchError(f"Telegram request failed: {e}") from e

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None


class LogChannel(NotificationChannel):
    """Writes messages to the log instead of a chat (no credentials configured)."""

    async def send_message(self, text: str) -> None:
        logger.info("notification", text=text)
