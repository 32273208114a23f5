"""Notification delivery: channels and the chunking dispatcher."""

from perpwatch.config import NotifierSettings
from perpwatch.notify.channels import LogChannel, NotificationChannel, TelegramChannel
from perpwatch.notify.dispatcher import NotificationDispatcher, split_text


def build_channel(settings: NotifierSettings) -> NotificationChannel:
    """Telegram when credentials are configured, otherwise the log channel."""
    if settings.enabled:
        return TelegramChannel(
            bot_token=settings.bot_token.get_secret_value(),
            chat_id=settings.chat_id,
            api_base=settings.api_base,
            timeout=settings.request_timeout,
        )
    return LogChannel()


__all__ = [
    "LogChannel",
    "NotificationChannel",
    "NotificationDispatcher",
    "TelegramChannel",
    "build_channel",
    "split_text",
]
