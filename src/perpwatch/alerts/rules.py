"""Declarative anomaly rules.

A rule reads one computed metric from an InstrumentReport and compares it
against static thresholds. Rules are independent pure predicates: they
share no state, so the order in which they are evaluated never changes
the outcome.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from perpwatch.config import RuleSettings
from perpwatch.models import AlertCategory


class Comparator(str, Enum):
    """How a metric value is compared against a rule's thresholds."""

    GT = "gt"  # value > t
    LT = "lt"  # value < t
    OUTSIDE = "outside"  # value < low or value > high
    ABS_GT = "abs_gt"  # |value| > t
    ALWAYS = "always"  # fires whenever the value is computable

    @property
    def arity(self) -> int:
        return {"gt": 1, "lt": 1, "abs_gt": 1, "outside": 2, "always": 0}[self.value]

    def evaluate(self, value: Decimal, thresholds: tuple[Decimal, ...]) -> bool:
        if self is Comparator.GT:
            return value > thresholds[0]
        if self is Comparator.LT:
            return value < thresholds[0]
        if self is Comparator.ABS_GT:
            return abs(value) > thresholds[0]
        if self is Comparator.OUTSIDE:
            low, high = thresholds
            return value < low or value > high
        return True


@dataclass(frozen=True)
class AnomalyRule:
    """One threshold condition on one metric, mapped to an alert category."""

    rule_id: str
    metric: str
    comparator: Comparator
    category: AlertCategory
    thresholds: tuple[Decimal, ...] = ()

    def __post_init__(self) -> None:
        if len(self.thresholds) != self.comparator.arity:
            raise ValueError(
                f"Rule {self.rule_id}: {self.comparator.value} takes "
                f"{self.comparator.arity} threshold(s), got {len(self.thresholds)}"
            )
        if self.comparator is Comparator.OUTSIDE and self.thresholds[0] > self.thresholds[1]:
            raise ValueError(f"Rule {self.rule_id}: low threshold above high threshold")

    def matches(self, value: Decimal | None) -> bool:
        """True when the value is present and satisfies the condition."""
        if value is None:
            return False
        return self.comparator.evaluate(value, self.thresholds)

    def describe(self) -> str:
        """Short condition text for message headers, e.g. "> 0.5"."""
        if self.comparator is Comparator.GT:
            return f"> {self.thresholds[0]}"
        if self.comparator is Comparator.LT:
            return f"< {self.thresholds[0]}"
        if self.comparator is Comparator.ABS_GT:
            return f"|x| > {self.thresholds[0]}"
        if self.comparator is Comparator.OUTSIDE:
            return f"< {self.thresholds[0]} or > {self.thresholds[1]}"
        return "all"


def default_rules(settings: RuleSettings) -> dict[str, AnomalyRule]:
    """Canonical rule set keyed by rule id, thresholds taken from settings."""
    rules = [
        AnomalyRule(
            rule_id="oi_volume_stretch",
            metric="oi_to_volume_ratio",
            comparator=Comparator.GT,
            category=AlertCategory.OI_VOLUME_STRETCH,
            thresholds=(settings.oi_volume_ratio_max,),
        ),
        AnomalyRule(
            rule_id="funding_extreme",
            metric="funding_rate_pct",
            comparator=Comparator.OUTSIDE,
            category=AlertCategory.FUNDING_EXTREME,
            thresholds=(settings.funding_rate_pct_low, settings.funding_rate_pct_high),
        ),
        AnomalyRule(
            rule_id="long_short_skew",
            metric="long_short_ratio",
            comparator=Comparator.OUTSIDE,
            category=AlertCategory.POSITIONING_SKEW,
            thresholds=(settings.long_short_low, settings.long_short_high),
        ),
        AnomalyRule(
            rule_id="volatility_spike",
            metric="price_change_pct",
            comparator=Comparator.ABS_GT,
            category=AlertCategory.VOLATILITY_SPIKE,
            thresholds=(settings.price_change_pct_abs,),
        ),
        AnomalyRule(
            rule_id="trend_deviation",
            metric="atr_ratio",
            comparator=Comparator.ALWAYS,
            category=AlertCategory.TREND_DEVIATION,
        ),
    ]
    return {rule.rule_id: rule for rule in rules}
