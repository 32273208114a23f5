"""Anomaly rules, classification and alert message composition."""

from perpwatch.alerts.aggregator import CATEGORY_ORDER, AlertAggregator
from perpwatch.alerts.classifier import AnomalyClassifier
from perpwatch.alerts.rules import AnomalyRule, Comparator, default_rules

__all__ = [
    "CATEGORY_ORDER",
    "AlertAggregator",
    "AnomalyClassifier",
    "AnomalyRule",
    "Comparator",
    "default_rules",
]
