"""Fair value gap detection: imbalances between non-overlapping candles."""

from dataclasses import replace

from smartmoney.analysis.models import FairValueGap, FVGType, PriceCandle
from smartmoney.config import EngineSettings


def detect_fair_value_gaps(
    symbol: str,
    candles: list[PriceCandle],
    settings: EngineSettings | None = None,
) -> list[FairValueGap]:
    """Detect bullish and bearish fair value gaps.

    A Bullish FVG: ``prev.high < current.low`` with a bullish current candle.
    A Bearish FVG: ``prev.low > current.high`` with a bearish current candle.

    Gap strength is the gap size relative to the previous close; gaps at or
    below ``settings.fvg_min_strength`` are discarded.

    Returns:
        At most ``settings.max_fair_value_gaps`` gaps, most recent last.
    """
    settings = settings or EngineSettings()
    window = candles[-settings.fvg_lookback:]

    gaps: list[FairValueGap] = []
    for i in range(1, len(window) - 1):
        prev = window[i - 1]
        current = window[i]

        if prev.high < current.low and current.is_bullish:
            upper, lower, gap_type = current.low, prev.high, FVGType.BULLISH_FVG
        elif prev.low > current.high and current.is_bearish:
            upper, lower, gap_type = prev.low, current.high, FVGType.BEARISH_FVG
        else:
            continue

        if prev.close <= 0:
            continue
        strength = (upper - lower) / prev.close
        if strength <= settings.fvg_min_strength:
            continue

        gaps.append(
            FairValueGap(
                id=f"FVG_{symbol}_{current.timestamp}",
                upper=upper,
                lower=lower,
                middle=(upper + lower) / 2,
                type=gap_type,
                strength=strength,
                timestamp=current.timestamp,
                timeframe=settings.timeframe,
                volume=current.volume,
                efficiency=settings.fvg_efficiency,
            )
        )

    return gaps[-settings.max_fair_value_gaps:]


def update_gap_fills(
    gaps: list[FairValueGap],
    candles: list[PriceCandle],
    fill_threshold: float = 0.95,
) -> list[FairValueGap]:
    """Measure how far later candles retraced into each gap.

    ``partial_fill`` is the deepest retrace as a fraction of the gap size;
    a bullish gap fills from the top down, a bearish gap from the bottom
    up.  ``filled`` is set once the retrace reaches *fill_threshold*.
    Returns new gaps; the inputs are left untouched.
    """
    updated: list[FairValueGap] = []
    for gap in gaps:
        later = [c for c in candles if c.timestamp > gap.timestamp]
        size = gap.upper - gap.lower
        if not later or size <= 0:
            updated.append(gap)
            continue
        if gap.type is FVGType.BULLISH_FVG:
            depth = gap.upper - min(c.low for c in later)
        else:
            depth = max(c.high for c in later) - gap.lower
        fill = max(0.0, min(depth / size, 1.0))
        partial_fill = max(gap.partial_fill, fill)
        updated.append(
            replace(
                gap,
                partial_fill=partial_fill,
                filled=gap.filled or partial_fill >= fill_threshold,
            )
        )
    return updated
