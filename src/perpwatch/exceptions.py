"""Custom exceptions for the perpwatch alerting pipeline.

All pipeline exceptions live here to avoid circular imports between the
provider, market, indicator and notification layers.
"""


class PerpwatchError(Exception):
    """Base exception for all perpwatch errors."""


class ProviderError(PerpwatchError):
    """Raised when a data provider returns an error or an unusable payload."""


class CatalogError(PerpwatchError):
    """Raised when the instrument inventory or 24h volumes cannot be loaded."""


class MetricFetchError(PerpwatchError):
    """Raised when a single per-instrument metric retrieval fails.

    Carries the instrument symbol and the metric name so the failure can be
    recorded against exactly one (instrument, metric) slot.
    """

    def __init__(self, symbol: str, metric: str, reason: str) -> None:
        super().__init__(f"{metric} unavailable for {symbol}: {reason}")
        self.symbol = symbol
        self.metric = metric
        self.reason = reason


class InsufficientDataError(PerpwatchError):
    """Raised when an indicator cannot be computed from the given series."""


class DispatchError(PerpwatchError):
    """Raised by a notification channel when a message is not delivered."""


class CycleTimeoutError(PerpwatchError):
    """Raised when a whole cycle exceeds its configured deadline."""
