"""Per-instrument metric retrieval with per-metric failure isolation.

Each retrieval is independently fallible: a timeout or provider error
produces a missing MetricResult for that metric only. Retrievals for one
instrument run one after another so that the number of in-flight provider
calls never exceeds the batch size.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from perpwatch.exceptions import MetricFetchError
from perpwatch.logging import get_logger
from perpwatch.models import MetricName, MetricResult
from perpwatch.providers.base import MarketDataProvider

logger = get_logger(__name__)

#: Retrieval order; funding first so the mark price is available early.
_METRIC_ORDER = (
    MetricName.FUNDING,
    MetricName.OPEN_INTEREST,
    MetricName.LONG_SHORT_RATIO,
    MetricName.CANDLES,
)


class MetricFetcher:
    """Issues the per-instrument retrievals a report profile needs.

    Args:
        provider: Market data provider.
        timeout: Call-level timeout in seconds for each retrieval.
        long_short_period: Window passed to the long/short ratio endpoint.
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        timeout: float = 10.0,
        long_short_period: str = "5m",
    ) -> None:
        self._provider = provider
        self._timeout = timeout
        self._long_short_period = long_short_period

    def _call_for(
        self, symbol: str, metric: MetricName, candle_interval: str, candle_limit: int
    ) -> Callable[[], Awaitable[Any]]:
        if metric is MetricName.FUNDING:
            return lambda: self._provider.fetch_funding(symbol)
        if metric is MetricName.OPEN_INTEREST:
            return lambda: self._provider.fetch_open_interest(symbol)
        if metric is MetricName.LONG_SHORT_RATIO:
            return lambda: self._provider.fetch_long_short_ratio(
                symbol, self._long_short_period
            )
        return lambda: self._provider.fetch_candles(symbol, candle_interval, candle_limit)

    async def retrieve(
        self,
        symbol: str,
        metric: MetricName,
        candle_interval: str = "1d",
        candle_limit: int = 241,
    ) -> MetricResult:
        """Run one retrieval; never raises for provider-side failures."""
        call = self._call_for(symbol, metric, candle_interval, candle_limit)
        try:
            value = await asyncio.wait_for(call(), timeout=self._timeout)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            error = MetricFetchError(symbol, metric.value, f"timed out after {self._timeout}s")
            logger.warning("metric_fetch_failed", symbol=symbol, metric=metric.value, error=str(error))
            return MetricResult(name=metric, error=error.reason)
        except Exception as e:
            error = MetricFetchError(symbol, metric.value, str(e) or type(e).__name__)
            logger.warning("metric_fetch_failed", symbol=symbol, metric=metric.value, error=str(error))
            return MetricResult(name=metric, error=error.reason)
        return MetricResult(name=metric, value=value)

    async def fetch(
        self,
        symbol: str,
        metrics: Iterable[MetricName],
        candle_interval: str = "1d",
        candle_limit: int = 241,
    ) -> dict[MetricName, MetricResult]:
        """Retrieve every requested metric for one instrument, sequentially."""
        wanted = set(metrics)
        results: dict[MetricName, MetricResult] = {}
        for metric in _METRIC_ORDER:
            if metric in wanted:
                results[metric] = await self.retrieve(
                    symbol, metric, candle_interval, candle_limit
                )
        return results
