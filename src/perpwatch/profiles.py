"""Report profiles -- declarative descriptions of what one cycle measures.

A profile names the metrics to retrieve, the candle window, the rules to
evaluate and the log table layout. The single ReportCycle pipeline runs
any profile; adding a report means adding a profile, not a pipeline.
"""

from dataclasses import dataclass

from perpwatch.alerts.rules import AnomalyRule, default_rules
from perpwatch.config import RuleSettings
from perpwatch.models import MetricName


@dataclass(frozen=True)
class ReportProfile:
    """What one scheduled report retrieves, computes and alerts on."""

    name: str
    metrics: frozenset[MetricName]
    rules: tuple[AnomalyRule, ...]
    candle_interval: str = "1d"
    candle_limit: int = 241
    with_trend: bool = False
    table: str = "structure"  # "structure" or "trend"

    @property
    def needs_candles(self) -> bool:
        return MetricName.CANDLES in self.metrics


def build_profiles(settings: RuleSettings) -> dict[str, ReportProfile]:
    """The two built-in reports.

    - ``trend``: daily candles deep enough for EMA/ATR and one unconditional
      trend-deviation digest; the daily % change is shown inside each
      digest line rather than alerted separately.
    - ``structure``: funding, open interest, long/short ratio and the
      latest 4H candle with the four threshold rules.
    """
    rules = default_rules(settings)
    trend_limit = max(241, settings.ema_period, settings.atr_period + 1)

    trend = ReportProfile(
        name="trend",
        metrics=frozenset({MetricName.CANDLES}),
        rules=(rules["trend_deviation"],),
        candle_interval="1d",
        candle_limit=trend_limit,
        with_trend=True,
        table="trend",
    )
    structure = ReportProfile(
        name="structure",
        metrics=frozenset(
            {
                MetricName.FUNDING,
                MetricName.OPEN_INTEREST,
                MetricName.LONG_SHORT_RATIO,
                MetricName.CANDLES,
            }
        ),
        rules=(
            rules["oi_volume_stretch"],
            rules["funding_extreme"],
            rules["long_short_skew"],
            rules["volatility_spike"],
        ),
        candle_interval="4h",
        candle_limit=1,
        with_trend=False,
        table="structure",
    )
    return {trend.name: trend, structure.name: structure}
