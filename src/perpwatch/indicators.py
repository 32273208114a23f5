"""Technical and structural indicator computation.

Pure functions over Decimal inputs: EMA with an SMA seed, Wilder's ATR, the
signed ATR multiple between the latest close and the EMA baseline, the
short-window price change, and the open-interest market value ratios.

CRITICAL: All computations use Decimal. Never use float.
"""

from decimal import Decimal

from perpwatch.exceptions import InsufficientDataError
from perpwatch.models import Candle, IndicatorSnapshot

_HUNDRED = Decimal("100")


def compute_ema(values: list[Decimal], period: int) -> Decimal:
    """Compute the EMA of ``values`` at the last element.

    The seed is the arithmetic mean of the first ``period`` values; every
    later value is folded in with:
        ema_i = (value_i - ema_{i-1}) * 2 / (period + 1) + ema_{i-1}

    Args:
        values: Ordered values (oldest first), usually candle closes.
        period: EMA period, must be positive.

    Returns:
        The EMA value after the last element.

    Raises:
        InsufficientDataError: If fewer than ``period`` values are given.
    """
    if period <= 0:
        raise ValueError(f"EMA period must be positive, got {period}")
    if len(values) < period:
        raise InsufficientDataError(
            f"EMA({period}) needs {period} values, got {len(values)}"
        )

    multiplier = Decimal("2") / (Decimal(period) + Decimal("1"))
    ema = sum(values[:period], Decimal("0")) / Decimal(period)
    for value in values[period:]:
        ema = (value - ema) * multiplier + ema
    return ema


def true_ranges(
    highs: list[Decimal], lows: list[Decimal], closes: list[Decimal]
) -> list[Decimal]:
    """True range for every bar after the first.

    TR_i = max(high_i - low_i, |high_i - close_{i-1}|, |low_i - close_{i-1}|)
    """
    return [
        max(
            highs[i] - lows[i],
            abs(highs[i] - closes[i - 1]),
            abs(lows[i] - closes[i - 1]),
        )
        for i in range(1, len(closes))
    ]


def compute_atr(
    highs: list[Decimal],
    lows: list[Decimal],
    closes: list[Decimal],
    period: int,
) -> Decimal:
    """Compute Wilder's Average True Range at the last bar.

    Seeded with the mean of the first ``period`` true ranges, then smoothed:
        atr_i = ((period - 1) * atr_{i-1} + TR_i) / period

    Raises:
        InsufficientDataError: If any series has fewer than ``period + 1`` bars.
    """
    if period <= 0:
        raise ValueError(f"ATR period must be positive, got {period}")
    shortest = min(len(highs), len(lows), len(closes))
    if shortest < period + 1:
        raise InsufficientDataError(
            f"ATR({period}) needs {period + 1} bars, got {shortest}"
        )

    ranges = true_ranges(highs, lows, closes)
    atr = sum(ranges[:period], Decimal("0")) / Decimal(period)
    for tr in ranges[period:]:
        atr = (Decimal(period - 1) * atr + tr) / Decimal(period)
    return atr


def price_change_pct(candle: Candle) -> Decimal | None:
    """Percent change from open to close of a single candle.

    Returns None when the open is zero (change undefined).
    """
    if candle.open == 0:
        return None
    return (candle.close - candle.open) / candle.open * _HUNDRED


def atr_ratio(latest_close: Decimal, ema: Decimal, atr: Decimal) -> Decimal:
    """Signed distance of the close from the EMA baseline, in ATR units.

    Positive means the close is above the baseline, negative below.

    Raises:
        InsufficientDataError: If ATR is zero while the close differs from
            the baseline (the multiple is undefined).
    """
    diff = latest_close - ema
    if atr == 0:
        if diff == 0:
            return Decimal("0")
        raise InsufficientDataError("ATR is zero; deviation multiple undefined")
    return diff / atr


def market_value(open_interest: Decimal, mark_price: Decimal) -> Decimal:
    """Notional value of open interest at the mark price."""
    return open_interest * mark_price


def oi_to_volume_ratio(value: Decimal, volume_24h: Decimal) -> Decimal | None:
    """Open-interest market value relative to 24h quote volume.

    Returns None when the volume is zero.
    """
    if volume_24h == 0:
        return None
    return value / volume_24h


def minimum_candles(ema_period: int, atr_period: int) -> int:
    """Shortest candle series that supports both the EMA and the ATR."""
    return max(ema_period, atr_period + 1)


def build_indicator_snapshot(
    symbol: str,
    candles: list[Candle],
    ema_period: int = 120,
    atr_period: int = 14,
    with_trend: bool = True,
) -> IndicatorSnapshot:
    """Derive all candle-based indicators for one instrument.

    The latest candle always yields the short-window price change. When
    ``with_trend`` is set, EMA, ATR and the ATR multiple are computed too;
    if the series is too short they stay None and ``trend_error`` records
    why, so only the trend rules are skipped for this instrument.

    Raises:
        InsufficientDataError: If ``candles`` is empty.
    """
    if not candles:
        raise InsufficientDataError(f"No candles for {symbol}")

    latest = candles[-1]
    snapshot = IndicatorSnapshot(
        symbol=symbol,
        latest_open=latest.open,
        latest_close=latest.close,
        price_change_pct=price_change_pct(latest),
    )
    if not with_trend:
        return snapshot

    closes = [c.close for c in candles]
    try:
        if len(candles) < minimum_candles(ema_period, atr_period):
            raise InsufficientDataError(
                f"Trend indicators need {minimum_candles(ema_period, atr_period)} "
                f"candles, got {len(candles)}"
            )
        snapshot.ema = compute_ema(closes, ema_period)
        snapshot.atr = compute_atr(
            [c.high for c in candles],
            [c.low for c in candles],
            closes,
            atr_period,
        )
        snapshot.atr_ratio = atr_ratio(latest.close, snapshot.ema, snapshot.atr)
    except InsufficientDataError as e:
        snapshot.trend_error = str(e)

    return snapshot
