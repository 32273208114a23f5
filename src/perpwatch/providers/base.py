"""Abstract market data provider interface.

Defines the contract for every provider implementation. The pipeline core
depends only on this interface, keeping exchange-specific endpoints,
payload shapes and request signing isolated in the concrete providers.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from perpwatch.models import Candle, FundingInfo, Instrument


class MarketDataProvider(ABC):
    """Abstract base class for perpetual futures market data providers."""

    #: Short display name used in alert headers and logs.
    name: str = "provider"

    @abstractmethod
    async def connect(self) -> None:
        """Open sessions or load markets before the first request."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release network resources."""
        ...

    @abstractmethod
    async def fetch_instruments(self) -> list[Instrument]:
        """Return the full instrument inventory with normalized status/type."""
        ...

    @abstractmethod
    async def fetch_volumes(self, symbols: list[str] | None = None) -> dict[str, Decimal]:
        """Return 24h quote volume keyed by symbol.

        Providers with a bulk ticker endpoint ignore ``symbols``; the others
        use it to limit requests to the instruments of interest.
        """
        ...

    @abstractmethod
    async def fetch_funding(self, symbol: str) -> FundingInfo:
        """Return current funding rate, mark price and next funding time."""
        ...

    @abstractmethod
    async def fetch_open_interest(self, symbol: str) -> Decimal:
        """Return open interest in contracts/base units."""
        ...

    @abstractmethod
    async def fetch_long_short_ratio(self, symbol: str, period: str = "5m") -> Decimal:
        """Return the latest long/short account ratio over ``period``."""
        ...

    @abstractmethod
    async def fetch_candles(self, symbol: str, interval: str, limit: int) -> list[Candle]:
        """Return up to ``limit`` candles ordered by ascending open time.

        Args:
            symbol: Provider symbol.
            interval: Provider-neutral interval such as "1d" or "4h".
            limit: Number of most recent candles.
        """
        ...
