"""End-to-end tests for ReportCycle with a fake provider.

Tests verify:
- Only rules that fire produce messages, one message per category
- A failed metric for one instrument leaves the others untouched
- An empty or failing catalog skips the cycle without notifications
- The trend profile produces one dated digest in rank order
- assemble_report records missing metrics without raising
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from helpers import make_candle, make_instrument, make_sample
from perpwatch.config import RuleSettings
from perpwatch.exceptions import ProviderError
from perpwatch.market import InstrumentCatalog, MetricFetcher, VolumeRanker
from perpwatch.models import (
    AlertCategory,
    Candle,
    FundingInfo,
    Instrument,
    MetricName,
    MetricResult,
)
from perpwatch.notify.channels import NotificationChannel
from perpwatch.notify.dispatcher import NotificationDispatcher
from perpwatch.pipeline.cycle import ReportCycle, assemble_report
from perpwatch.pipeline.scheduler import BatchScheduler
from perpwatch.profiles import build_profiles
from perpwatch.providers.base import MarketDataProvider


class FakeProvider(MarketDataProvider):
    """In-memory provider: per-symbol metric tables, optional failures."""

    name = "Fake"

    def __init__(self) -> None:
        self.instruments: list[Instrument] = []
        self.volumes: dict[str, Decimal] = {}
        self.funding: dict[str, FundingInfo] = {}
        self.open_interest: dict[str, Decimal] = {}
        self.long_short: dict[str, Decimal] = {}
        self.candles: dict[str, list[Candle]] = {}
        self.failing: set[tuple[str, str]] = set()
        self.catalog_error: Exception | None = None

    def _check(self, symbol: str, metric: str) -> None:
        if (symbol, metric) in self.failing:
            raise ProviderError(f"{metric} down for {symbol}")

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def fetch_instruments(self) -> list[Instrument]:
        if self.catalog_error is not None:
            raise self.catalog_error
        return list(self.instruments)

    async def fetch_volumes(self, symbols=None):
        return dict(self.volumes)

    async def fetch_funding(self, symbol):
        self._check(symbol, "funding")
        return self.funding[symbol]

    async def fetch_open_interest(self, symbol):
        self._check(symbol, "open_interest")
        return self.open_interest[symbol]

    async def fetch_long_short_ratio(self, symbol, period="5m"):
        self._check(symbol, "long_short_ratio")
        return self.long_short[symbol]

    async def fetch_candles(self, symbol, interval, limit):
        self._check(symbol, "candles")
        return self.candles[symbol][-limit:]


def _add(
    provider: FakeProvider,
    symbol: str,
    volume: str,
    open_interest: str,
    funding_rate: str,
    mark: str = "100",
    long_short: str = "1.2",
    candles: list[Candle] | None = None,
) -> None:
    provider.instruments.append(make_instrument(symbol))
    provider.volumes[symbol] = Decimal(volume)
    provider.open_interest[symbol] = Decimal(open_interest)
    provider.funding[symbol] = FundingInfo(
        funding_rate=Decimal(funding_rate), mark_price=Decimal(mark)
    )
    provider.long_short[symbol] = Decimal(long_short)
    provider.candles[symbol] = candles or [make_candle("101", open_="100")]


@pytest.fixture
def provider() -> FakeProvider:
    fake = FakeProvider()
    # A: 1.2M * 100 / 200M = 0.6 ratio, funding 0.05%
    _add(fake, "AUSDT", volume="200000000", open_interest="1200000", funding_rate="0.0005")
    # B: 300k * 100 / 150M = 0.2 ratio, funding 0.15%
    _add(fake, "BUSDT", volume="150000000", open_interest="300000", funding_rate="0.0015")
    return fake


@pytest.fixture
def channel() -> AsyncMock:
    return AsyncMock(spec=NotificationChannel)


@pytest.fixture
def profiles():
    return build_profiles(RuleSettings())


def _make_cycle(provider: FakeProvider, channel: AsyncMock) -> ReportCycle:
    dispatcher = NotificationDispatcher(channel, sleep=AsyncMock())
    return ReportCycle(
        provider_name=provider.name,
        catalog=InstrumentCatalog(provider),
        ranker=VolumeRanker(min_volume_24h=Decimal("100000000")),
        fetcher=MetricFetcher(provider),
        scheduler=BatchScheduler(batch_size=5, sleep=AsyncMock()),
        dispatcher=dispatcher,
    )


def _sent(channel: AsyncMock) -> list[str]:
    return [call.args[0] for call in channel.send_message.await_args_list]


class TestStructureCycle:
    @pytest.mark.asyncio
    async def test_two_category_messages(self, provider, channel, profiles):
        cycle = _make_cycle(provider, channel)
        context = await cycle.run(profiles["structure"])

        messages = _sent(channel)
        assert len(messages) == 2
        oi_message, funding_message = messages
        assert "AUSDT" in oi_message and "BUSDT" not in oi_message
        assert "0.60" in oi_message
        assert "BUSDT" in funding_message and "AUSDT" not in funding_message
        assert "0.1500%" in funding_message

        assert [r.symbol for r in context.alerts[AlertCategory.OI_VOLUME_STRETCH]] == ["AUSDT"]
        assert [r.symbol for r in context.alerts[AlertCategory.FUNDING_EXTREME]] == ["BUSDT"]
        assert context.alert_count == 2

    @pytest.mark.asyncio
    async def test_quiet_market_sends_nothing(self, channel, profiles):
        fake = FakeProvider()
        _add(fake, "AUSDT", volume="200000000", open_interest="10", funding_rate="0.0001")
        cycle = _make_cycle(fake, channel)

        context = await cycle.run(profiles["structure"])

        channel.send_message.assert_not_awaited()
        assert len(context.reports) == 1

    @pytest.mark.asyncio
    async def test_metric_failure_isolated_to_instrument(self, provider, channel, profiles):
        # X: would breach both ratio and funding, but its OI retrieval fails
        _add(provider, "XUSDT", volume="300000000", open_interest="9000000", funding_rate="0.002")
        provider.failing.add(("XUSDT", "open_interest"))
        cycle = _make_cycle(provider, channel)

        context = await cycle.run(profiles["structure"])

        ratio_symbols = [r.symbol for r in context.alerts[AlertCategory.OI_VOLUME_STRETCH]]
        funding_symbols = [r.symbol for r in context.alerts[AlertCategory.FUNDING_EXTREME]]
        assert ratio_symbols == ["AUSDT"]
        # X still gets its funding alert; it ranks first by volume
        assert funding_symbols == ["XUSDT", "BUSDT"]

        x_report = next(r for r in context.reports if r.symbol == "XUSDT")
        assert "open_interest" in x_report.errors
        assert x_report.oi_to_volume_ratio is None

    @pytest.mark.asyncio
    async def test_volatility_alert_from_latest_candle(self, provider, channel, profiles):
        provider.candles["BUSDT"] = [make_candle("115", open_="100")]
        cycle = _make_cycle(provider, channel)

        context = await cycle.run(profiles["structure"])

        spikes = context.alerts[AlertCategory.VOLATILITY_SPIKE]
        assert [r.symbol for r in spikes] == ["BUSDT"]
        assert "4h candle: +15.00%" in spikes[0].text

    @pytest.mark.asyncio
    async def test_empty_catalog_sends_nothing(self, channel, profiles):
        cycle = _make_cycle(FakeProvider(), channel)
        context = await cycle.run(profiles["structure"])

        channel.send_message.assert_not_awaited()
        assert context.samples == []

    @pytest.mark.asyncio
    async def test_catalog_failure_sends_nothing(self, provider, channel, profiles):
        provider.catalog_error = ProviderError("exchangeInfo 503")
        cycle = _make_cycle(provider, channel)

        context = await cycle.run(profiles["structure"])

        channel.send_message.assert_not_awaited()
        assert context.reports == []

    @pytest.mark.asyncio
    async def test_illiquid_universe_sends_nothing(self, channel, profiles):
        fake = FakeProvider()
        _add(fake, "AUSDT", volume="5000", open_interest="1000000", funding_rate="0.01")
        cycle = _make_cycle(fake, channel)

        await cycle.run(profiles["structure"])
        channel.send_message.assert_not_awaited()


class TestTrendCycle:
    @pytest.mark.asyncio
    async def test_digest_lists_every_computable_instrument(self, channel, profiles):
        fake = FakeProvider()
        up = [make_candle("100", high="101", low="99", t=i) for i in range(240)]
        up.append(make_candle("104", open_="100", high="105", low="99", t=240))
        down = [make_candle("50", high="51", low="49", t=i) for i in range(240)]
        down.append(make_candle("48", open_="50", high="51", low="47", t=240))
        short = [make_candle("10", t=i) for i in range(5)]

        _add(fake, "AUSDT", "900000000", "1", "0", candles=up)
        _add(fake, "BUSDT", "500000000", "1", "0", candles=down)
        _add(fake, "NEWUSDT", "300000000", "1", "0", candles=short)
        cycle = _make_cycle(fake, channel)

        context = await cycle.run(profiles["trend"])

        messages = _sent(channel)
        assert len(messages) == 1
        digest = messages[0]
        assert digest.startswith("📊 Fake trend deviation - ")
        assert digest.index("A:") < digest.index("B:")
        assert "👆" in digest and "👇" in digest
        assert "NEW" not in digest
        assert "trend" in next(r for r in context.reports if r.symbol == "NEWUSDT").errors

    @pytest.mark.asyncio
    async def test_large_daily_move_stays_inside_digest(self, channel, profiles):
        fake = FakeProvider()
        jump = [make_candle("100", high="101", low="99", t=i) for i in range(240)]
        jump.append(make_candle("115", open_="100", high="116", low="99", t=240))
        _add(fake, "AUSDT", "900000000", "1", "0", candles=jump)
        cycle = _make_cycle(fake, channel)

        context = await cycle.run(profiles["trend"])

        messages = _sent(channel)
        assert len(messages) == 1
        assert "🟢🔥 A: 15.00%, 👆" in messages[0]
        assert AlertCategory.VOLATILITY_SPIKE not in context.alerts


class TestAssembleReport:
    def test_missing_metrics_recorded(self, profiles):
        sample = make_sample("BTCUSDT", "100000000")
        results = {
            MetricName.FUNDING: MetricResult(
                MetricName.FUNDING,
                value=FundingInfo(funding_rate=Decimal("0.0001"), mark_price=Decimal("50000")),
            ),
            MetricName.OPEN_INTEREST: MetricResult(MetricName.OPEN_INTEREST, error="timeout"),
        }
        report = assemble_report(sample, results, profiles["structure"])

        assert report.errors == {"open_interest": "timeout"}
        assert report.structural.funding_rate_pct == Decimal("0.0100")
        assert report.market_value is None
        assert report.oi_to_volume_ratio is None

    def test_ratio_computed(self, profiles):
        sample = make_sample("BTCUSDT", "100000000")
        results = {
            MetricName.FUNDING: MetricResult(
                MetricName.FUNDING,
                value=FundingInfo(funding_rate=Decimal("0"), mark_price=Decimal("50000")),
            ),
            MetricName.OPEN_INTEREST: MetricResult(
                MetricName.OPEN_INTEREST, value=Decimal("1000")
            ),
        }
        report = assemble_report(sample, results, profiles["structure"])

        assert report.market_value == Decimal("50000000")
        assert report.oi_to_volume_ratio == Decimal("0.5")
