"""Shared data models for the perpwatch alerting pipeline.

All prices, volumes, rates and ratios use Decimal. Provider payloads are
converted with ``Decimal(str(value))`` at the provider boundary so that the
indicator and rule layers never see floats.

Every object here is cycle-scoped: created when a cycle starts and discarded
once its notifications are dispatched.
"""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from perpwatch.profiles import ReportProfile

#: Normalized instrument status for a contract that is currently tradable.
STATUS_TRADING = "trading"

#: Normalized contract type for a perpetual (non-expiring) contract.
CONTRACT_PERPETUAL = "perpetual"


class MetricName(str, Enum):
    """Per-instrument retrievals the MetricFetcher can issue."""

    FUNDING = "funding"
    OPEN_INTEREST = "open_interest"
    LONG_SHORT_RATIO = "long_short_ratio"
    CANDLES = "candles"


class AlertCategory(str, Enum):
    """Alert categories; each non-empty category becomes one message."""

    OI_VOLUME_STRETCH = "position_to_volume_stretch"
    FUNDING_EXTREME = "funding_rate_extreme"
    POSITIONING_SKEW = "positioning_skew"
    VOLATILITY_SPIKE = "volatility_spike"
    TREND_DEVIATION = "trend_deviation"


@dataclass
class Instrument:
    """A tradable contract as listed by the provider's inventory endpoint."""

    symbol: str
    status: str
    contract_type: str
    quote_asset: str
    base_asset: str = ""

    @property
    def is_active_perpetual(self) -> bool:
        return self.status == STATUS_TRADING and self.contract_type == CONTRACT_PERPETUAL


@dataclass
class VolumeSample:
    """24h quote volume observed for one instrument."""

    instrument: Instrument
    volume_24h: Decimal
    observed_at: float = field(default_factory=time.time)

    @property
    def symbol(self) -> str:
        return self.instrument.symbol


@dataclass(frozen=True)
class Candle:
    """One OHLCV bar. A candle series is a list ordered by ascending open_time."""

    open_time: int  # Unix milliseconds
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal = Decimal("0")


@dataclass
class FundingInfo:
    """Funding rate, mark price and next settlement for one perpetual."""

    funding_rate: Decimal  # raw fraction, 0.0001 == 0.01%
    mark_price: Decimal
    next_funding_time: int | None = None  # Unix milliseconds


@dataclass
class IndicatorSnapshot:
    """Technical indicators derived from one instrument's candle series.

    Trend fields are None when the series is too short for EMA/ATR; the
    short-window price change only needs the latest candle.
    """

    symbol: str
    latest_open: Decimal
    latest_close: Decimal
    price_change_pct: Decimal | None
    ema: Decimal | None = None
    atr: Decimal | None = None
    atr_ratio: Decimal | None = None
    trend_error: str | None = None


@dataclass
class StructuralSnapshot:
    """Positioning metrics for one instrument. Missing metrics stay None."""

    symbol: str
    funding_rate: Decimal | None = None
    mark_price: Decimal | None = None
    next_funding_time: int | None = None
    open_interest: Decimal | None = None
    long_short_ratio: Decimal | None = None

    @property
    def funding_rate_pct(self) -> Decimal | None:
        if self.funding_rate is None:
            return None
        return self.funding_rate * Decimal("100")


@dataclass
class MetricResult:
    """Outcome of one retrieval: a value, or an explicit missing marker."""

    name: MetricName
    value: Any = None
    error: str | None = None

    @property
    def missing(self) -> bool:
        return self.error is not None or self.value is None


@dataclass
class InstrumentReport:
    """Per-instrument output slot filled by one BatchScheduler unit."""

    sample: VolumeSample
    structural: StructuralSnapshot
    indicators: IndicatorSnapshot | None = None
    market_value: Decimal | None = None
    oi_to_volume_ratio: Decimal | None = None
    errors: dict[str, str] = field(default_factory=dict)
    alerts: list[AlertRecord] = field(default_factory=list)

    @property
    def symbol(self) -> str:
        return self.sample.symbol

    def metric_value(self, metric: str) -> Decimal | None:
        """Look up a computed metric by name; None when it is unavailable."""
        if metric == "oi_to_volume_ratio":
            return self.oi_to_volume_ratio
        if metric == "market_value":
            return self.market_value
        if metric == "funding_rate_pct":
            return self.structural.funding_rate_pct
        if metric == "long_short_ratio":
            return self.structural.long_short_ratio
        if metric == "open_interest":
            return self.structural.open_interest
        if metric in ("price_change_pct", "atr_ratio"):
            if self.indicators is None:
                return None
            return getattr(self.indicators, metric)
        raise KeyError(f"Unknown metric: {metric}")


@dataclass
class AlertRecord:
    """One fired rule for one instrument."""

    symbol: str
    rule_id: str
    category: AlertCategory
    value: Decimal
    text: str


@dataclass
class AlertBatch:
    """All records of one category composed into a single message body."""

    category: AlertCategory
    records: list[AlertRecord]
    text: str


@dataclass
class CycleContext:
    """Explicit state for one catalog -> fetch -> classify -> dispatch pass.

    Threaded through the pipeline stages instead of module-level
    accumulators. Category collections are only appended to after the
    batch-wide join, so they are never written concurrently.
    """

    profile: ReportProfile
    provider_name: str
    cycle_id: str
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    samples: list[VolumeSample] = field(default_factory=list)
    reports: list[InstrumentReport] = field(default_factory=list)
    alerts: dict[AlertCategory, list[AlertRecord]] = field(
        default_factory=lambda: defaultdict(list)
    )

    def add_alerts(self, records: list[AlertRecord]) -> None:
        for record in records:
            self.alerts[record.category].append(record)

    @property
    def alert_count(self) -> int:
        return sum(len(records) for records in self.alerts.values())
