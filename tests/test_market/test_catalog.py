"""Tests for InstrumentCatalog.

All tests use a mocked provider to avoid real API calls.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from helpers import make_instrument
from perpwatch.exceptions import CatalogError, ProviderError
from perpwatch.market.catalog import InstrumentCatalog
from perpwatch.models import Instrument
from perpwatch.providers.base import MarketDataProvider


@pytest.fixture
def provider() -> AsyncMock:
    mock = AsyncMock(spec=MarketDataProvider)
    mock.name = "Binance"
    mock.fetch_instruments.return_value = [
        make_instrument("BTCUSDT"),
        make_instrument("ETHUSDT"),
        make_instrument("OLDUSDT", status="settling"),
        Instrument(
            symbol="BTCUSDT_240628",
            status="trading",
            contract_type="current_quarter",
            quote_asset="USDT",
        ),
    ]
    mock.fetch_volumes.return_value = {
        "BTCUSDT": Decimal("5000000000"),
        "ETHUSDT": Decimal("2000000000"),
    }
    return mock


class TestLoad:
    @pytest.mark.asyncio
    async def test_keeps_only_active_perpetuals(self, provider):
        catalog = InstrumentCatalog(provider)
        instruments = await catalog.load()
        assert [i.symbol for i in instruments] == ["BTCUSDT", "ETHUSDT"]

    @pytest.mark.asyncio
    async def test_provider_failure_raises_catalog_error(self, provider):
        provider.fetch_instruments.side_effect = ProviderError("503")
        catalog = InstrumentCatalog(provider)
        with pytest.raises(CatalogError):
            await catalog.load()

    @pytest.mark.asyncio
    async def test_volumes_requested_for_catalog_symbols(self, provider):
        catalog = InstrumentCatalog(provider)
        instruments = await catalog.load()
        volumes = await catalog.load_volumes(instruments)
        provider.fetch_volumes.assert_awaited_once_with(["BTCUSDT", "ETHUSDT"])
        assert volumes["BTCUSDT"] == Decimal("5000000000")


class TestFailSoft:
    @pytest.mark.asyncio
    async def test_fetch_returns_empty_on_failure(self, provider):
        provider.fetch_instruments.side_effect = ProviderError("timeout")
        catalog = InstrumentCatalog(provider)
        assert await catalog.fetch() == []

    @pytest.mark.asyncio
    async def test_fetch_volumes_returns_empty_on_failure(self, provider):
        provider.fetch_volumes.side_effect = ProviderError("timeout")
        catalog = InstrumentCatalog(provider)
        assert await catalog.fetch_volumes([make_instrument("BTCUSDT")]) == {}

    @pytest.mark.asyncio
    async def test_fetched_fresh_every_call(self, provider):
        catalog = InstrumentCatalog(provider)
        await catalog.fetch()
        await catalog.fetch()
        assert provider.fetch_instruments.await_count == 2
