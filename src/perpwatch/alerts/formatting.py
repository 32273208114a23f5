"""Text formatting for alert lines and the per-instrument log table.

Table columns are fixed in order and unit; widths are presentation only.
Large numbers use K/M/B magnitude suffixes.
"""

from datetime import datetime, timezone, tzinfo
from decimal import Decimal

from perpwatch.models import AlertCategory, InstrumentReport

_BILLION = Decimal("1000000000")
_MILLION = Decimal("1000000")
_THOUSAND = Decimal("1000")

STRUCTURE_HEADER = (
    f"{'Symbol':<18} {'24h Volume':<12} {'Mkt Value':<12} {'Open Int.':<12} "
    f"{'L/S':<9} {'Funding':<10} {'Next Funding'}"
)
TREND_HEADER = (
    f"{'Symbol':<18} {'24h Volume':<12} {'Close':<12} {'EMA':<12} "
    f"{'ATR':<10} {'ATR x(+/-)'}"
)
TABLE_DIVIDER = "-" * 88

_NA = "N/A"


def format_number(num: Decimal, decimals: int = 2) -> str:
    """Format with a K/M/B suffix: 1_234_567 -> "1.23M"."""
    if num >= _BILLION:
        return f"{num / _BILLION:.{decimals}f}B"
    if num >= _MILLION:
        return f"{num / _MILLION:.{decimals}f}M"
    if num >= _THOUSAND:
        return f"{num / _THOUSAND:.{decimals}f}K"
    return f"{num:.{decimals}f}"


def format_funding_time(ms: int | None, tz: tzinfo = timezone.utc) -> str:
    if ms is None:
        return _NA
    return datetime.fromtimestamp(ms / 1000, tz=tz).strftime("%H:%M:%S")


def coin_name(symbol: str) -> str:
    """Strip quote/settle decorations: BTCUSDT, BTC-USDT-SWAP, BTC/USDT:USDT -> BTC."""
    for separator in ("/", "-"):
        if separator in symbol:
            return symbol.split(separator)[0]
    if symbol.endswith("USDT"):
        return symbol[: -len("USDT")]
    return symbol


def _opt(value: Decimal | None, fmt: str) -> str:
    return _NA if value is None else format(value, fmt)


def format_structure_row(report: InstrumentReport, tz: tzinfo = timezone.utc) -> str:
    """Symbol, 24h volume, market value, open interest, L/S ratio, funding %, next funding."""
    s = report.structural
    funding = s.funding_rate_pct
    return (
        f"{report.symbol:<18} "
        f"{format_number(report.sample.volume_24h):<12} "
        f"{(format_number(report.market_value) if report.market_value is not None else _NA):<12} "
        f"{(format_number(s.open_interest) if s.open_interest is not None else _NA):<12} "
        f"{_opt(s.long_short_ratio, '.2f'):<9} "
        f"{(_NA if funding is None else f'{funding:.4f}%'):<10} "
        f"{format_funding_time(s.next_funding_time, tz)}"
    )


def format_trend_row(report: InstrumentReport) -> str:
    """Symbol, 24h volume, close, EMA, ATR, signed ATR multiple."""
    ind = report.indicators
    ratio = ind.atr_ratio if ind is not None else None
    if ratio is None:
        signed_ratio = _NA
    else:
        signed_ratio = f"{'+' if ratio > 0 else '-'}{abs(ratio):.2f}"
    return (
        f"{report.symbol:<18} "
        f"{format_number(report.sample.volume_24h):<12} "
        f"{_opt(ind.latest_close if ind else None, '.4f'):<12} "
        f"{_opt(ind.ema if ind else None, '.4f'):<12} "
        f"{_opt(ind.atr if ind else None, '.4f'):<10} "
        f"{signed_ratio}"
    )


def price_change_emoji(change_pct: Decimal) -> str:
    """Green/red by direction, one flame above 10%, two above 20%."""
    emoji = "🟢" if change_pct > 0 else "🔴"
    if abs(change_pct) > 20:
        emoji += "🔥🔥"
    elif abs(change_pct) > 10:
        emoji += "🔥"
    return emoji


def format_alert_line(
    category: AlertCategory,
    report: InstrumentReport,
    value: Decimal,
    candle_interval: str = "",
    ema_period: int = 120,
) -> str:
    """One human-readable line for a fired rule."""
    symbol = report.symbol
    if category is AlertCategory.OI_VOLUME_STRETCH:
        market_value = report.market_value or Decimal("0")
        return (
            f"⚠️ {symbol}: {value:.2f} "
            f"(market value: {format_number(market_value)}, "
            f"24h volume: {format_number(report.sample.volume_24h)})"
        )
    if category is AlertCategory.FUNDING_EXTREME:
        return f"💰 {symbol}: {value:.4f}%"
    if category is AlertCategory.POSITIONING_SKEW:
        return f"📊 {symbol}: {value:.2f}"
    if category is AlertCategory.VOLATILITY_SPIKE:
        ind = report.indicators
        label = f" {candle_interval} candle" if candle_interval else ""
        prices = f" (open: {ind.latest_open:.4f}, close: {ind.latest_close:.4f})" if ind else ""
        return f"📈 {symbol}{label}: {value:+.2f}%{prices}"

    # trend deviation
    change = report.indicators.price_change_pct if report.indicators else None
    direction = "👆" if value > 0 else "👇"
    change_text = "" if change is None else f"{price_change_emoji(change)} "
    change_pct = "" if change is None else f" {change:.2f}%,"
    return (
        f"{change_text}{coin_name(symbol)}:{change_pct} "
        f"{direction} {abs(value):.2f}x ATR from EMA{ema_period}"
    )
