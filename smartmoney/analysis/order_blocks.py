"""Order block detection: volume-confirmed candles before continuation.

A bullish order block is a bullish candle that follows a bearish one,
trades on a volume spike against the previous candle, and is followed by
a higher close.  Bearish blocks mirror the rule.
"""

from dataclasses import replace

from smartmoney.analysis.models import FlowSide, OrderBlock, OrderBlockType, PriceCandle
from smartmoney.config import EngineSettings


def order_block_strength(candle: PriceCandle, volume_unit: float = 1_000_000.0) -> float:
    """Body-to-range ratio scaled by volume (capped at 3 units), in [0, 1].

    A zero-range candle has no measurable body ratio and scores 0.
    """
    candle_range = candle.high - candle.low
    if candle_range <= 0:
        return 0.0
    body_ratio = abs(candle.close - candle.open) / candle_range
    volume_multiplier = min(candle.volume / volume_unit, 3.0)
    return max(0.0, min(body_ratio * volume_multiplier, 1.0))


def detect_order_blocks(
    symbol: str,
    candles: list[PriceCandle],
    settings: EngineSettings | None = None,
) -> list[OrderBlock]:
    """Detect bullish and bearish order blocks in the most recent candles.

    The first and last three candles of the window are never candidates.

    Returns:
        At most ``settings.max_order_blocks`` blocks, most recent last.
    """
    settings = settings or EngineSettings()
    window = candles[-settings.order_block_lookback:]
    ratio = settings.order_block_volume_ratio

    blocks: list[OrderBlock] = []
    for i in range(3, len(window) - 3):
        current = window[i]
        prev = window[i - 1]
        nxt = window[i + 1]
        volume_spike = current.volume > prev.volume * ratio

        if (
            current.is_bullish
            and volume_spike
            and prev.is_bearish
            and nxt.close > current.close
        ):
            block_type, price, side = OrderBlockType.BULLISH_OB, current.low, FlowSide.BUY
        elif (
            current.is_bearish
            and volume_spike
            and prev.is_bullish
            and nxt.close < current.close
        ):
            block_type, price, side = OrderBlockType.BEARISH_OB, current.high, FlowSide.SELL
        else:
            continue

        blocks.append(
            OrderBlock(
                id=f"OB_{symbol}_{current.timestamp}",
                price=price,
                type=block_type,
                strength=order_block_strength(current, settings.order_block_volume_unit),
                volume=current.volume,
                timestamp=current.timestamp,
                timeframe=settings.timeframe,
                reliability=settings.order_block_reliability,
                institutional_flow=side,
            )
        )

    return blocks[-settings.max_order_blocks:]


def update_order_block_status(
    blocks: list[OrderBlock],
    candles: list[PriceCandle],
) -> list[OrderBlock]:
    """Mark blocks tested or breached by candles after the block candle.

    - **tested**: a later candle trades back to the block price.
    - **breached**: a later candle closes through the block price.

    Returns:
        New blocks in the same order; the inputs are left untouched.
    """
    updated: list[OrderBlock] = []
    for block in blocks:
        later = [c for c in candles if c.timestamp > block.timestamp]
        if not later:
            updated.append(block)
            continue
        if block.type is OrderBlockType.BULLISH_OB:
            tested = any(c.low <= block.price for c in later)
            breached = any(c.close < block.price for c in later)
        else:
            tested = any(c.high >= block.price for c in later)
            breached = any(c.close > block.price for c in later)
        updated.append(
            replace(
                block,
                tested=block.tested or tested,
                breached=block.breached or breached,
            )
        )
    return updated
