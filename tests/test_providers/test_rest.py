"""Tests for the shared aiohttp transport in RestProvider._get.

An in-memory session stands in for aiohttp.ClientSession so the request
URL, status handling and session checks are exercised without network.
"""

from unittest.mock import AsyncMock

import pytest

from perpwatch.exceptions import ProviderError
from perpwatch.providers.binance import BinanceProvider


class _FakeResponse:
    def __init__(self, status: int, payload=None, body: str = "") -> None:
        self.status = status
        self._payload = payload
        self._body = body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def text(self) -> str:
        return self._body

    async def json(self, content_type=None):
        return self._payload


class _FakeSession:
    def __init__(self, response: _FakeResponse) -> None:
        self.response = response
        self.urls: list[str] = []

    def get(self, url: str, headers=None) -> _FakeResponse:
        self.urls.append(url)
        return self.response

    async def close(self) -> None:
        pass


class TestRestGet:
    @pytest.mark.asyncio
    async def test_returns_decoded_body(self):
        session = _FakeSession(_FakeResponse(200, payload={"openInterest": "12"}))
        provider = BinanceProvider(session=session)

        body = await provider._get("/fapi/v1/openInterest", {"symbol": "BTCUSDT"})

        assert body == {"openInterest": "12"}
        assert session.urls == [
            "https://fapi.binance.com/fapi/v1/openInterest?symbol=BTCUSDT"
        ]

    @pytest.mark.asyncio
    async def test_non_200_raises_provider_error(self):
        session = _FakeSession(_FakeResponse(503, body="maintenance"))
        provider = BinanceProvider(session=session)

        with pytest.raises(ProviderError, match="503"):
            await provider._get("/fapi/v1/exchangeInfo")

    @pytest.mark.asyncio
    async def test_no_session_after_connect_raises_provider_error(self):
        provider = BinanceProvider()
        provider.connect = AsyncMock()  # type: ignore[method-assign]

        with pytest.raises(ProviderError, match="No open HTTP session"):
            await provider._get("/fapi/v1/exchangeInfo")
        provider.connect.assert_awaited_once()
