"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderSettings(BaseSettings):
    """Market data provider connection settings."""

    model_config = SettingsConfigDict(env_prefix="PROVIDER_")

    name: Literal["binance", "okx", "ccxt"] = "binance"
    exchange_id: str = "binanceusdm"  # only used when name == "ccxt"
    base_url: str | None = None  # None = provider default
    api_key: SecretStr = SecretStr("")
    api_secret: SecretStr = SecretStr("")
    passphrase: SecretStr = SecretStr("")  # OKX only
    request_timeout: float = 10.0  # seconds, per retrieval


class ScanSettings(BaseSettings):
    """Universe selection and batch scheduling parameters."""

    model_config = SettingsConfigDict(env_prefix="SCAN_")

    batch_size: int = 5
    batch_delay: float = 0.5  # seconds between batches
    min_volume_24h: Decimal = Decimal("100000000")  # strictly greater than
    exclude_substrings: list[str] = ["USDC"]
    long_short_period: str = "5m"
    cycle_timeout: float = 600.0  # seconds for a whole cycle


class RuleSettings(BaseSettings):
    """Thresholds for the anomaly rules and indicator periods."""

    model_config = SettingsConfigDict(env_prefix="RULES_")

    oi_volume_ratio_max: Decimal = Decimal("0.5")
    funding_rate_pct_low: Decimal = Decimal("-0.1")
    funding_rate_pct_high: Decimal = Decimal("0.1")
    long_short_low: Decimal = Decimal("0.5")
    long_short_high: Decimal = Decimal("3.5")
    price_change_pct_abs: Decimal = Decimal("10")

    ema_period: int = 120
    atr_period: int = 14


class NotifierSettings(BaseSettings):
    """Telegram notification channel settings."""

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_")

    bot_token: SecretStr = SecretStr("")
    chat_id: str = ""
    api_base: str = "https://api.telegram.org"
    max_length: int = 4000  # hard limit for a single message
    chunk_size: int = 3000
    chunk_delay: float = 0.1  # seconds between chunks
    request_timeout: float = 10.0

    @property
    def enabled(self) -> bool:
        """True when both a bot token and a target chat are configured."""
        return bool(self.bot_token.get_secret_value() and self.chat_id)


class ScheduleSettings(BaseSettings):
    """Periodic trigger configuration, one schedule per report profile.

    Times are comma-separated HH:MM values in ``timezone``.
    """

    model_config = SettingsConfigDict(env_prefix="SCHEDULE_")

    timezone: str = "UTC"
    trend_enabled: bool = True
    trend_times: str = "07:50"
    structure_enabled: bool = True
    structure_times: str = "03:55,07:55,11:55,15:55,19:55,23:55"
    run_on_start: bool = True


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: str = "console"  # LOG_FORMAT: "console" or "json"
    provider: ProviderSettings = ProviderSettings()
    scan: ScanSettings = ScanSettings()
    rules: RuleSettings = RuleSettings()
    notifier: NotifierSettings = NotifierSettings()
    schedule: ScheduleSettings = ScheduleSettings()
