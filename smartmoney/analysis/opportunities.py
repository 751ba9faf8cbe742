"""Trading opportunity generation: order block retests with confluence."""

from smartmoney.analysis.indicators import relative_difference
from smartmoney.analysis.models import (
    ConfluenceFactor,
    ConfluenceType,
    FairValueGap,
    OpportunityType,
    OrderBlock,
    OrderBlockType,
    TradingOpportunity,
)
from smartmoney.config import EngineSettings


def confluence_for(
    block: OrderBlock,
    fair_value_gaps: list[FairValueGap],
    max_distance: float = 0.01,
) -> list[ConfluenceFactor]:
    """Build the confluence factors backing a retest of *block*.

    Always includes the block itself; adds the first gap whose middle sits
    within *max_distance* (relative) of the block price.
    """
    factors = [
        ConfluenceFactor(
            type=ConfluenceType.ORDER_BLOCK,
            strength=block.strength,
            description=f"{block.type.value} at {block.price}",
        )
    ]
    for gap in fair_value_gaps:
        if relative_difference(gap.middle, block.price) < max_distance:
            factors.append(
                ConfluenceFactor(
                    type=ConfluenceType.FVG,
                    strength=gap.strength,
                    description=f"{gap.type.value} confluence",
                )
            )
            break
    return factors


def generate_opportunities(
    symbol: str,
    order_blocks: list[OrderBlock],
    fair_value_gaps: list[FairValueGap],
    settings: EngineSettings | None = None,
) -> list[TradingOpportunity]:
    """Turn untested, unbreached order blocks into retest setups.

    Stops and targets are fixed percentages around the block price.
    ``risk_reward`` is the configured placeholder, not the ratio of those
    distances.  Opportunities keep detection order; the first
    ``settings.max_opportunities`` are returned.
    """
    settings = settings or EngineSettings()

    opportunities: list[TradingOpportunity] = []
    for block in order_blocks:
        if block.tested or block.breached:
            continue

        factors = confluence_for(block, fair_value_gaps, settings.fvg_confluence_distance)
        if block.type is OrderBlockType.BULLISH_OB:
            stop_loss = block.price * (1 - settings.stop_loss_pct)
            take_profit = block.price * (1 + settings.take_profit_pct)
        else:
            stop_loss = block.price * (1 + settings.stop_loss_pct)
            take_profit = block.price * (1 - settings.take_profit_pct)

        opportunities.append(
            TradingOpportunity(
                id=f"OPP_{symbol}_OB_{block.timestamp}",
                type=OpportunityType.ORDER_BLOCK_RETEST,
                symbol=symbol,
                entry=block.price,
                stop_loss=stop_loss,
                take_profit=take_profit,
                risk_reward=settings.risk_reward,
                probability=min(block.reliability * (1 + len(factors) * 0.1), 1.0),
                timeframe=settings.timeframe,
                setup=f"{block.type.value} Retest with {len(factors)} confluence factors",
                confluence=factors,
                timestamp=block.timestamp,
            )
        )
        if len(opportunities) >= settings.max_opportunities:
            break

    return opportunities
