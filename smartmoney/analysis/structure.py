"""Market structure classification from swing highs and lows. Pure functions."""

import time

from smartmoney.analysis.indicators import calculate_volatility, recent_volume_ratio
from smartmoney.analysis.models import MarketPhase, MarketStructure, PriceCandle, Trend
from smartmoney.config import EngineSettings


def find_swing_highs(values: list[float], window: int = 3) -> list[tuple[int, float]]:
    """Identify swing highs as ``(index, price)`` pairs.

    A swing high is a value that no other value within *window* positions
    on either side exceeds.  Ties count as swings.
    """
    swings: list[tuple[int, float]] = []
    for i in range(window, len(values) - window):
        current = values[i]
        if all(v <= current for v in values[i - window:i + window + 1]):
            swings.append((i, current))
    return swings


def find_swing_lows(values: list[float], window: int = 3) -> list[tuple[int, float]]:
    """Identify swing lows as ``(index, price)`` pairs.

    A swing low is a value that no other value within *window* positions
    on either side undercuts.  Ties count as swings.
    """
    swings: list[tuple[int, float]] = []
    for i in range(window, len(values) - window):
        current = values[i]
        if all(v >= current for v in values[i - window:i + window + 1]):
            swings.append((i, current))
    return swings


def classify_trend(
    swing_highs: list[tuple[int, float]],
    swing_lows: list[tuple[int, float]],
) -> Trend:
    """Compare the two most recent swing highs and lows.

    Rules:
        - **UPTREND**: higher high and higher low.
        - **DOWNTREND**: lower high and lower low.
        - **SIDEWAYS**: everything else, including fewer than two swings
          of either kind.
    """
    if len(swing_highs) < 2 or len(swing_lows) < 2:
        return Trend.SIDEWAYS

    recent_high, previous_high = swing_highs[-1][1], swing_highs[-2][1]
    recent_low, previous_low = swing_lows[-1][1], swing_lows[-2][1]

    if recent_high > previous_high and recent_low > previous_low:
        return Trend.UPTREND
    if recent_high < previous_high and recent_low < previous_low:
        return Trend.DOWNTREND
    return Trend.SIDEWAYS


def determine_phase(
    candles: list[PriceCandle],
    trend: Trend,
    volume_ratio: float = 1.2,
    volatility_threshold: float = 0.05,
) -> MarketPhase:
    """Map a trend plus volume/volatility context onto a market phase."""
    if trend is Trend.UPTREND:
        return MarketPhase.MARKUP
    if trend is Trend.DOWNTREND:
        return MarketPhase.MARKDOWN

    if recent_volume_ratio(candles, recent=10) > volume_ratio:
        if calculate_volatility(candles) > volatility_threshold:
            return MarketPhase.DISTRIBUTION
    return MarketPhase.ACCUMULATION


def analyze_market_structure(
    candles: list[PriceCandle],
    settings: EngineSettings | None = None,
    now_ms: int | None = None,
) -> MarketStructure:
    """Classify trend and phase over the most recent candles.

    Degrades to ``SIDEWAYS`` with zero strength when there are not enough
    swing points; never raises for short or empty input.

    Args:
        now_ms: Wall-clock stamp for ``last_update``.  Defaults to the
                current time; accepting it keeps the function testable.
    """
    settings = settings or EngineSettings()
    recent = candles[-settings.structure_lookback:]

    swing_highs = find_swing_highs([c.high for c in recent], settings.swing_window)
    swing_lows = find_swing_lows([c.low for c in recent], settings.swing_window)

    trend = classify_trend(swing_highs, swing_lows)
    strength = 0.0 if trend is Trend.SIDEWAYS else settings.trend_strength

    phase = determine_phase(
        recent,
        trend,
        volume_ratio=settings.phase_volume_ratio,
        volatility_threshold=settings.phase_volatility_threshold,
    )

    return MarketStructure(
        trend=trend,
        phase=phase,
        strength=strength,
        confirmation=strength > 0.6,
        timeframe=settings.timeframe,
        last_update=now_ms if now_ms is not None else int(time.time() * 1000),
    )
