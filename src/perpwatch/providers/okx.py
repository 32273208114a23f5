"""OKX v5 perpetual swap provider.

OKX PITFALLS:
- Every response is wrapped as {"code": "0", "msg": "", "data": [...]};
  a non-"0" code is an error even on HTTP 200.
- Candles are returned NEWEST FIRST and must be reversed.
- Candle bars use upper-case hour/day units ("4H", "1D").
- ``volCcy24h`` on SWAP tickers is in base currency; quote volume is
  volCcy24h * last.
- ``oi`` is in contracts; ``oiCcy`` is in base currency and is what the
  market value computation needs.
- The funding-rate endpoint does not carry the mark price; it is fetched
  from public/mark-price.
"""

from decimal import Decimal
from typing import Any

from perpwatch.exceptions import ProviderError
from perpwatch.models import (
    CONTRACT_PERPETUAL,
    STATUS_TRADING,
    Candle,
    FundingInfo,
    Instrument,
)
from perpwatch.providers.rest import RestProvider, to_decimal


def to_okx_bar(interval: str) -> str:
    """Map a provider-neutral interval ("4h", "1d") to an OKX bar ("4H", "1D")."""
    unit = interval[-1]
    if unit in ("h", "d", "w"):
        return f"{interval[:-1]}{unit.upper()}"
    if unit == "M":
        return interval
    return interval.lower()


class OkxProvider(RestProvider):
    """OKX USDT-margined perpetual swap market data. Symbols are instIds."""

    name = "OKX"
    default_base_url = "https://www.okx.com"

    async def _data(self, path: str, params: dict[str, Any] | None = None) -> list:
        body = await self._get(path, params)
        if str(body.get("code", "0")) != "0":
            raise ProviderError(f"OKX {path} error {body.get('code')}: {body.get('msg')}")
        return body.get("data", [])

    async def _first(self, path: str, params: dict[str, Any]) -> Any:
        data = await self._data(path, params)
        if not data:
            raise ProviderError(f"OKX {path} returned no data for {params}")
        return data[0]

    async def fetch_instruments(self) -> list[Instrument]:
        data = await self._data("/api/v5/public/instruments", {"instType": "SWAP"})
        instruments = []
        for item in data:
            family = item.get("instFamily") or item.get("uly") or ""
            base, _, quote = family.partition("-")
            state = item.get("state", "")
            instruments.append(
                Instrument(
                    symbol=item["instId"],
                    status=STATUS_TRADING if state == "live" else state,
                    contract_type=CONTRACT_PERPETUAL,
                    quote_asset=quote or item.get("settleCcy", ""),
                    base_asset=base,
                )
            )
        return instruments

    async def fetch_volumes(self, symbols: list[str] | None = None) -> dict[str, Decimal]:
        data = await self._data("/api/v5/market/tickers", {"instType": "SWAP"})
        volumes: dict[str, Decimal] = {}
        for ticker in data:
            inst_id = ticker["instId"]
            if symbols is not None and inst_id not in symbols:
                continue
            base_volume = to_decimal(ticker.get("volCcy24h") or "0", "volCcy24h")
            last = to_decimal(ticker.get("last") or "0", "last")
            volumes[inst_id] = base_volume * last
        return volumes

    async def fetch_funding(self, symbol: str) -> FundingInfo:
        funding = await self._first("/api/v5/public/funding-rate", {"instId": symbol})
        mark = await self._first(
            "/api/v5/public/mark-price", {"instType": "SWAP", "instId": symbol}
        )
        next_time = funding.get("fundingTime") or funding.get("nextFundingTime")
        return FundingInfo(
            funding_rate=to_decimal(funding.get("fundingRate"), "fundingRate"),
            mark_price=to_decimal(mark.get("markPx"), "markPx"),
            next_funding_time=int(next_time) if next_time else None,
        )

    async def fetch_open_interest(self, symbol: str) -> Decimal:
        item = await self._first(
            "/api/v5/public/open-interest", {"instType": "SWAP", "instId": symbol}
        )
        return to_decimal(item.get("oiCcy"), "oiCcy")

    async def fetch_long_short_ratio(self, symbol: str, period: str = "5m") -> Decimal:
        row = await self._first(
            "/api/v5/rubik/stat/contracts/long-short-account-ratio-contract",
            {"instId": symbol, "period": period, "limit": 1},
        )
        # rows are [ts, ratio]
        return to_decimal(row[1], "longShortRatio")

    async def fetch_candles(self, symbol: str, interval: str, limit: int) -> list[Candle]:
        rows = await self._data(
            "/api/v5/market/candles",
            {"instId": symbol, "bar": to_okx_bar(interval), "limit": limit},
        )
        candles = [
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
        candles.sort(key=lambda c: c.open_time)
        return candles
