"""Shared test fixtures for the perpwatch alerting pipeline."""

import pytest

from perpwatch.config import AppSettings, NotifierSettings, ProviderSettings, RuleSettings


@pytest.fixture
def rule_settings() -> RuleSettings:
    """Default rule thresholds (ratio > 0.5, funding outside +/-0.1%, ...)."""
    return RuleSettings()


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults (Binance, no Telegram)."""
    return AppSettings(
        log_level="DEBUG",
        provider=ProviderSettings(name="binance"),
        notifier=NotifierSettings(bot_token="", chat_id=""),  # type: ignore[arg-type]
        rules=RuleSettings(),
    )
