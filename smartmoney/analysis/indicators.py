"""Price/volume statistics used by the detectors. Pure functions, no I/O."""

import numpy as np

from smartmoney.analysis.models import PriceCandle


def calculate_volatility(candles: list[PriceCandle]) -> float:
    """Population standard deviation of close-to-close log returns.

    Returns ``0.0`` when fewer than two candles are available.
    """
    if len(candles) < 2:
        return 0.0
    closes = np.array([c.close for c in candles], dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        returns = np.diff(np.log(closes))
        volatility = float(np.std(returns))
    return volatility if np.isfinite(volatility) else 0.0


def average_volume(candles: list[PriceCandle]) -> float:
    """Mean volume of *candles*, ``0.0`` for an empty list."""
    if not candles:
        return 0.0
    return float(np.mean([c.volume for c in candles]))


def recent_volume_ratio(candles: list[PriceCandle], recent: int = 10) -> float:
    """Ratio of the last *recent* candles' mean volume to the full mean.

    The recent mean divides by *recent* even when fewer candles exist,
    so a short series never looks like a volume spike.
    """
    overall = average_volume(candles)
    if overall == 0:
        return 0.0
    recent_sum = sum(c.volume for c in candles[-recent:])
    return (recent_sum / recent) / overall


def relative_difference(a: float, b: float) -> float:
    """``|a - b| / b``, or ``inf`` when *b* is zero and the values differ."""
    if b == 0:
        return 0.0 if a == b else float("inf")
    return abs(a - b) / abs(b)
