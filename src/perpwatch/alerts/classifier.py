"""Stateless anomaly classification of per-instrument reports."""

from collections.abc import Sequence

from perpwatch.alerts.formatting import format_alert_line
from perpwatch.alerts.rules import AnomalyRule
from perpwatch.models import AlertRecord, InstrumentReport


class AnomalyClassifier:
    """Evaluates every rule independently against one instrument's metrics.

    A rule whose metric is missing (failed retrieval, insufficient candles,
    zero volume) is skipped for that instrument only. Several rules may fire
    for the same instrument; each fired rule yields exactly one record.

    Args:
        rules: Rules of the active report profile.
        candle_interval: Interval label for volatility alert text.
        ema_period: EMA period shown in trend digest lines.
    """

    def __init__(
        self,
        rules: Sequence[AnomalyRule],
        candle_interval: str = "",
        ema_period: int = 120,
    ) -> None:
        self._rules = tuple(rules)
        self._candle_interval = candle_interval
        self._ema_period = ema_period

    @property
    def rules(self) -> tuple[AnomalyRule, ...]:
        return self._rules

    def evaluate(self, rule: AnomalyRule, report: InstrumentReport) -> AlertRecord | None:
        value = report.metric_value(rule.metric)
        if value is None or not rule.matches(value):
            return None
        return AlertRecord(
            symbol=report.symbol,
            rule_id=rule.rule_id,
            category=rule.category,
            value=value,
            text=format_alert_line(
                rule.category,
                report,
                value,
                candle_interval=self._candle_interval,
                ema_period=self._ema_period,
            ),
        )

    def classify(self, report: InstrumentReport) -> list[AlertRecord]:
        records = []
        for rule in self._rules:
            record = self.evaluate(rule, report)
            if record is not None:
                records.append(record)
        return records
