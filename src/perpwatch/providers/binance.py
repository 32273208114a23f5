"""Binance USD-M futures provider over the public fapi REST endpoints."""

from decimal import Decimal

from perpwatch.exceptions import ProviderError
from perpwatch.models import (
    CONTRACT_PERPETUAL,
    STATUS_TRADING,
    Candle,
    FundingInfo,
    Instrument,
)
from perpwatch.providers.rest import RestProvider, to_decimal


class BinanceProvider(RestProvider):
    """Binance USD-M futures market data.

    Symbols are exchange ids such as ``BTCUSDT``. 24h volumes come from the
    bulk ticker endpoint in one request; everything else is per symbol.
    """

    name = "Binance"
    default_base_url = "https://fapi.binance.com"

    async def fetch_instruments(self) -> list[Instrument]:
        data = await self._get("/fapi/v1/exchangeInfo")
        instruments = []
        for item in data.get("symbols", []):
            status = item.get("status", "")
            contract_type = item.get("contractType", "")
            instruments.append(
                Instrument(
                    symbol=item["symbol"],
                    status=STATUS_TRADING if status == "TRADING" else status.lower(),
                    contract_type=(
                        CONTRACT_PERPETUAL
                        if contract_type == "PERPETUAL"
                        else contract_type.lower()
                    ),
                    quote_asset=item.get("quoteAsset", ""),
                    base_asset=item.get("baseAsset", ""),
                )
            )
        return instruments

    async def fetch_volumes(self, symbols: list[str] | None = None) -> dict[str, Decimal]:
        data = await self._get("/fapi/v1/ticker/24hr")
        return {
            ticker["symbol"]: to_decimal(ticker.get("quoteVolume"), "quoteVolume")
            for ticker in data
        }

    async def fetch_funding(self, symbol: str) -> FundingInfo:
        data = await self._get("/fapi/v1/premiumIndex", {"symbol": symbol})
        next_time = data.get("nextFundingTime")
        return FundingInfo(
            funding_rate=to_decimal(data.get("lastFundingRate"), "lastFundingRate"),
            mark_price=to_decimal(data.get("markPrice"), "markPrice"),
            next_funding_time=int(next_time) if next_time else None,
        )

    async def fetch_open_interest(self, symbol: str) -> Decimal:
        data = await self._get("/fapi/v1/openInterest", {"symbol": symbol})
        return to_decimal(data.get("openInterest"), "openInterest")

    async def fetch_long_short_ratio(self, symbol: str, period: str = "5m") -> Decimal:
        data = await self._get(
            "/futures/data/globalLongShortAccountRatio",
            {"symbol": symbol, "period": period, "limit": 1},
        )
        if not data:
            raise ProviderError(f"No long/short ratio data for {symbol}")
        return to_decimal(data[-1].get("longShortRatio"), "longShortRatio")

    async def fetch_candles(self, symbol: str, interval: str, limit: int) -> list[Candle]:
        rows = await self._get(
            "/fapi/v1/klines",
            {"symbol": symbol, "interval": interval, "limit": limit},
        )
        # Binance klines are already oldest first
        return [
            Candle(
                open_time=int(row[0]),
                open=to_decimal(row[1], "open"),
                high=to_decimal(row[2], "high"),
                low=to_decimal(row[3], "low"),
                close=to_decimal(row[4], "close"),
                volume=to_decimal(row[5], "volume"),
            )
            for row in rows
        ]
