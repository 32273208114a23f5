"""Groups alert records by category into composed message bodies."""

from collections.abc import Sequence

from perpwatch.alerts.rules import AnomalyRule
from perpwatch.models import AlertBatch, AlertCategory, CycleContext

#: Message order within one cycle.
CATEGORY_ORDER = (
    AlertCategory.OI_VOLUME_STRETCH,
    AlertCategory.FUNDING_EXTREME,
    AlertCategory.POSITIONING_SKEW,
    AlertCategory.VOLATILITY_SPIKE,
    AlertCategory.TREND_DEVIATION,
)

_TITLES: dict[AlertCategory, tuple[str, str]] = {
    AlertCategory.OI_VOLUME_STRETCH: ("🚨", "open interest value / 24h volume"),
    AlertCategory.FUNDING_EXTREME: ("💰", "funding rate (%)"),
    AlertCategory.POSITIONING_SKEW: ("📊", "long/short ratio"),
    AlertCategory.VOLATILITY_SPIKE: ("📈", "price change (%)"),
    AlertCategory.TREND_DEVIATION: ("📊", "trend deviation"),
}


class AlertAggregator:
    """Composes one AlertBatch per non-empty category.

    The trend-deviation digest lists every instrument whose ATR multiple
    was computable, in rank order, under a dated header. Threshold-gated
    categories carry the rule condition in their header.

    Args:
        rules: Rules of the active profile, used for header conditions.
    """

    def __init__(self, rules: Sequence[AnomalyRule] = ()) -> None:
        self._conditions = {rule.category: rule.describe() for rule in rules}

    def header(self, category: AlertCategory, context: CycleContext) -> str:
        emoji, label = _TITLES[category]
        title = f"{emoji} {context.provider_name} {label}"
        if category is AlertCategory.TREND_DEVIATION:
            return f"{title} - {context.started_at:%Y-%m-%d}"
        condition = self._conditions.get(category)
        return f"{title} {condition}" if condition else title

    def aggregate(self, context: CycleContext) -> list[AlertBatch]:
        batches = []
        for category in CATEGORY_ORDER:
            records = context.alerts.get(category, [])
            if not records:
                continue
            body = "\n".join(record.text for record in records)
            batches.append(
                AlertBatch(
                    category=category,
                    records=list(records),
                    text=f"{self.header(category, context)}\n\n{body}",
                )
            )
        return batches
