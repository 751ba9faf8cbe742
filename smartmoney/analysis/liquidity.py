"""Liquidity pool detection from equal highs and equal lows. Pure functions."""

from dataclasses import dataclass, replace

from smartmoney.analysis.indicators import relative_difference
from smartmoney.analysis.models import LiquidityPool, LiquiditySide, PriceCandle
from smartmoney.config import EngineSettings


@dataclass(frozen=True)
class EqualLevel:
    """A price level matched by at least one later price within tolerance."""

    price: float
    occurrences: int
    volume: float
    index: int  # position of the first occurrence in the scanned series


def find_equal_levels(
    prices: list[float],
    tolerance: float = 0.001,
    volume_unit: float = 1_000_000.0,
) -> list[EqualLevel]:
    """Group prices that sit within *tolerance* (relative) of each other.

    Each price is counted together with every *later* price inside the
    tolerance.  Levels seen fewer than twice are ignored, and a level is
    dropped when an earlier level already lies within tolerance of it.

    ``volume`` is a synthetic weighting (``occurrences × volume_unit``),
    not traded volume.
    """
    levels: list[EqualLevel] = []
    for i, price in enumerate(prices):
        occurrences = 1
        for other in prices[i + 1:]:
            if relative_difference(other, price) <= tolerance:
                occurrences += 1
        if occurrences >= 2:
            levels.append(
                EqualLevel(
                    price=price,
                    occurrences=occurrences,
                    volume=occurrences * volume_unit,
                    index=i,
                )
            )

    deduped: list[EqualLevel] = []
    for level in levels:
        if any(relative_difference(kept.price, level.price) <= tolerance for kept in deduped):
            continue
        deduped.append(level)
    return deduped


def find_liquidity_pools(
    symbol: str,
    candles: list[PriceCandle],
    settings: EngineSettings | None = None,
) -> list[LiquidityPool]:
    """Find sell-side pools at equal highs and buy-side pools at equal lows.

    Returns:
        Sell-side pools first, then buy-side pools, each in scan order.
    """
    settings = settings or EngineSettings()
    window = candles[-settings.liquidity_lookback:]

    pools: list[LiquidityPool] = []
    for side, tag, prices in (
        (LiquiditySide.SELL_SIDE, "HIGH", [c.high for c in window]),
        (LiquiditySide.BUY_SIDE, "LOW", [c.low for c in window]),
    ):
        levels = find_equal_levels(
            prices,
            tolerance=settings.liquidity_tolerance,
            volume_unit=settings.liquidity_volume_unit,
        )
        for level in levels:
            timestamp = window[level.index].timestamp
            pools.append(
                LiquidityPool(
                    id=f"LP_{symbol}_{tag}_{timestamp}",
                    price=level.price,
                    type=side,
                    size=level.volume,
                    accumulated=level.volume,
                    efficiency=settings.liquidity_efficiency,
                    timestamp=timestamp,
                    confluence=level.occurrences,
                )
            )
    return pools


def mark_grabbed_pools(
    pools: list[LiquidityPool],
    candles: list[PriceCandle],
) -> list[LiquidityPool]:
    """Flag pools swept by the latest candle.

    A sell-side pool (resting above equal highs) is grabbed when the last
    candle wicks above the level but closes back below it; buy-side pools
    mirror the rule.  Returns new pools; the inputs are left untouched.
    """
    if not candles:
        return list(pools)
    last = candles[-1]
    updated: list[LiquidityPool] = []
    for pool in pools:
        if last.timestamp <= pool.timestamp:
            updated.append(pool)
            continue
        if pool.type is LiquiditySide.SELL_SIDE:
            swept = last.high > pool.price and last.close < pool.price
        else:
            swept = last.low < pool.price and last.close > pool.price
        updated.append(replace(pool, grabbed=pool.grabbed or swept))
    return updated
