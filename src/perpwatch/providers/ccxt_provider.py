"""Generic provider over the ccxt async unified API.

Wraps any ccxt exchange class (binanceusdm, okx, bybit, ...) with market
loading, unified-symbol instrument listing and async cleanup. Symbols are
ccxt unified symbols such as ``BTC/USDT:USDT``. ccxt signs requests itself
from the configured credentials.
"""

from decimal import Decimal

import ccxt.async_support as ccxt_async

from perpwatch.config import ProviderSettings
from perpwatch.exceptions import ProviderError
from perpwatch.logging import get_logger
from perpwatch.models import (
    CONTRACT_PERPETUAL,
    STATUS_TRADING,
    Candle,
    FundingInfo,
    Instrument,
)
from perpwatch.providers.base import MarketDataProvider
from perpwatch.providers.rest import to_decimal

logger = get_logger(__name__)


class CcxtProvider(MarketDataProvider):
    """Market data provider backed by a ccxt async exchange instance."""

    def __init__(self, settings: ProviderSettings, exchange=None) -> None:
        self._settings = settings
        if exchange is None:
            exchange_class = getattr(ccxt_async, settings.exchange_id, None)
            if exchange_class is None:
                raise ValueError(f"Unknown ccxt exchange id: {settings.exchange_id}")
            config: dict = {
                "apiKey": settings.api_key.get_secret_value(),
                "secret": settings.api_secret.get_secret_value(),
                "password": settings.passphrase.get_secret_value(),
                "enableRateLimit": True,
                "timeout": int(settings.request_timeout * 1000),
                "options": {"defaultType": "swap"},
            }
            exchange = exchange_class(config)
        self._exchange = exchange
        self._markets: dict = {}
        self.name = settings.exchange_id

    @property
    def exchange(self):
        """Access the underlying ccxt exchange instance."""
        return self._exchange

    async def connect(self) -> None:
        logger.info("connecting_to_exchange", exchange=self.name)
        self._markets = await self._exchange.load_markets()
        logger.info("exchange_connected", exchange=self.name, market_count=len(self._markets))

    async def close(self) -> None:
        """Clean up ccxt async resources. Must be called to avoid leaking sessions."""
        await self._exchange.close()
        logger.info("exchange_connection_closed", exchange=self.name)

    async def fetch_instruments(self) -> list[Instrument]:
        """List linear swap markets with ccxt's ``active`` flag as status."""
        if not self._markets:
            self._markets = await self._exchange.load_markets()

        instruments = []
        for symbol, market in self._markets.items():
            if not market.get("linear"):
                continue
            instruments.append(
                Instrument(
                    symbol=symbol,
                    status=STATUS_TRADING if market.get("active", True) else "inactive",
                    contract_type=(
                        CONTRACT_PERPETUAL if market.get("swap") else str(market.get("type", ""))
                    ),
                    quote_asset=market.get("quote", ""),
                    base_asset=market.get("base", ""),
                )
            )
        return instruments

    async def fetch_volumes(self, symbols: list[str] | None = None) -> dict[str, Decimal]:
        tickers = await self._exchange.fetch_tickers(symbols)
        volumes: dict[str, Decimal] = {}
        for symbol, ticker in tickers.items():
            quote_volume = ticker.get("quoteVolume")
            if quote_volume is None:
                continue
            volumes[symbol] = Decimal(str(quote_volume))
        return volumes

    async def fetch_funding(self, symbol: str) -> FundingInfo:
        data = await self._exchange.fetch_funding_rate(symbol)
        next_time = data.get("nextFundingTimestamp") or data.get("fundingTimestamp")
        return FundingInfo(
            funding_rate=to_decimal(data.get("fundingRate"), "fundingRate"),
            mark_price=to_decimal(data.get("markPrice"), "markPrice"),
            next_funding_time=int(next_time) if next_time else None,
        )

    async def fetch_open_interest(self, symbol: str) -> Decimal:
        data = await self._exchange.fetch_open_interest(symbol)
        return to_decimal(data.get("openInterestAmount"), "openInterestAmount")

    async def fetch_long_short_ratio(self, symbol: str, period: str = "5m") -> Decimal:
        history = await self._exchange.fetch_long_short_ratio_history(
            symbol, period, None, 1
        )
        if not history:
            raise ProviderError(f"No long/short ratio data for {symbol}")
        return to_decimal(history[-1].get("longShortRatio"), "longShortRatio")

    async def fetch_candles(self, symbol: str, interval: str, limit: int) -> list[Candle]:
        rows = await self._exchange.fetch_ohlcv(symbol, timeframe=interval, limit=limit)
        candles = [
            Candle(
                open_time=int(row[0]),
                open=Decimal(str(row[1])),
                high=Decimal(str(row[2])),
                low=Decimal(str(row[3])),
                close=Decimal(str(row[4])),
                volume=Decimal(str(row[5] or 0)),
            )
            for row in rows
        ]
        candles.sort(key=lambda c: c.open_time)
        return candles
