"""Builders for instruments, reports and candles used across test modules."""

from decimal import Decimal

from perpwatch.models import (
    CONTRACT_PERPETUAL,
    STATUS_TRADING,
    Candle,
    Instrument,
    InstrumentReport,
    StructuralSnapshot,
    VolumeSample,
)


def make_instrument(symbol: str, status: str = STATUS_TRADING) -> Instrument:
    return Instrument(
        symbol=symbol,
        status=status,
        contract_type=CONTRACT_PERPETUAL,
        quote_asset="USDT",
        base_asset=symbol.replace("USDT", ""),
    )


def make_sample(symbol: str, volume: str = "200000000") -> VolumeSample:
    return VolumeSample(instrument=make_instrument(symbol), volume_24h=Decimal(volume))


def make_report(symbol: str = "BTCUSDT", volume: str = "200000000") -> InstrumentReport:
    return InstrumentReport(
        sample=make_sample(symbol, volume),
        structural=StructuralSnapshot(symbol=symbol),
    )


def make_candle(
    close: str,
    open_: str | None = None,
    high: str | None = None,
    low: str | None = None,
    t: int = 0,
) -> Candle:
    c = Decimal(close)
    return Candle(
        open_time=t,
        open=Decimal(open_) if open_ is not None else c,
        high=Decimal(high) if high is not None else c,
        low=Decimal(low) if low is not None else c,
        close=c,
    )
