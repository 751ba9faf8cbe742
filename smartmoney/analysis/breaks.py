"""Break-of-structure detection: moves beyond the preceding candles' range."""

from smartmoney.analysis.models import BreakOfStructure, BreakType, Direction, PriceCandle, Trend
from smartmoney.config import EngineSettings


def _break_type(direction: Direction, trend: Trend) -> BreakType:
    """CHoCH when the break runs against the prevailing trend, else BOS."""
    if trend is Trend.UPTREND and direction is Direction.BEARISH:
        return BreakType.CHOCH
    if trend is Trend.DOWNTREND and direction is Direction.BULLISH:
        return BreakType.CHOCH
    return BreakType.BOS


def detect_structure_breaks(
    candles: list[PriceCandle],
    trend: Trend = Trend.SIDEWAYS,
    settings: EngineSettings | None = None,
) -> list[BreakOfStructure]:
    """Detect volume-confirmed breaks of the preceding ``break_window`` range.

    A bullish break needs ``high > max(previous highs)`` and a volume above
    ``break_volume_ratio`` × the previous candle's volume; bearish breaks
    mirror it on the lows.  The last ``break_window`` candles are left
    unscanned so every break has a following candle to judge
    follow-through.

    Returns:
        At most ``settings.max_structure_breaks`` breaks, most recent last.
    """
    settings = settings or EngineSettings()
    window = candles[-settings.break_lookback:]
    size = settings.break_window

    breaks: list[BreakOfStructure] = []
    for i in range(size, len(window) - size):
        current = window[i]
        preceding = window[i - size:i]
        recent_high = max(c.high for c in preceding)
        recent_low = min(c.low for c in preceding)
        volume_confirmed = current.volume > window[i - 1].volume * settings.break_volume_ratio
        nxt = window[i + 1]

        if current.high > recent_high and volume_confirmed:
            direction = Direction.BULLISH
            level = recent_high
            strength = (current.high - recent_high) / recent_high if recent_high else 0.0
            follow_through = nxt.close > current.close
        elif current.low < recent_low and volume_confirmed:
            direction = Direction.BEARISH
            level = recent_low
            strength = (recent_low - current.low) / recent_low if recent_low else 0.0
            follow_through = nxt.close < current.close
        else:
            continue

        breaks.append(
            BreakOfStructure(
                type=_break_type(direction, trend),
                direction=direction,
                strength=strength,
                confirmed_level=level,
                timestamp=current.timestamp,
                timeframe=settings.timeframe,
                volume=current.volume,
                follow_through=follow_through,
            )
        )

    return breaks[-settings.max_structure_breaks:]
