"""Institutional flow: aggregate directional bias from SMC footprints."""

from smartmoney.analysis.models import (
    ActivityType,
    BreakOfStructure,
    Direction,
    FairValueGap,
    FlowCharacteristics,
    FVGType,
    Impact,
    InstitutionalFlow,
    LiquidityPool,
    OrderBlock,
    OrderBlockType,
    SmartMoneyActivity,
)
from smartmoney.config import EngineSettings

# Dominance ratio one side needs over the other to set a direction.
_DOMINANCE = 1.5


def _impact(confidence: float) -> Impact:
    if confidence >= 0.7:
        return Impact.HIGH
    if confidence >= 0.4:
        return Impact.MEDIUM
    return Impact.LOW


def collect_activities(
    order_blocks: list[OrderBlock],
    liquidity_pools: list[LiquidityPool],
    structure_breaks: list[BreakOfStructure],
) -> list[SmartMoneyActivity]:
    """Translate detections into a time-ordered activity log.

    Bullish blocks read as accumulation, bearish blocks as distribution,
    grabbed pools as manipulation and followed-through breaks as impulse.
    """
    activities: list[SmartMoneyActivity] = []

    for ob in order_blocks:
        confidence = ob.strength * ob.reliability
        activities.append(
            SmartMoneyActivity(
                type=(
                    ActivityType.ACCUMULATION
                    if ob.type is OrderBlockType.BULLISH_OB
                    else ActivityType.DISTRIBUTION
                ),
                price=ob.price,
                volume=ob.volume,
                timestamp=ob.timestamp,
                confidence=confidence,
                impact=_impact(confidence),
            )
        )

    for pool in liquidity_pools:
        if not pool.grabbed:
            continue
        confidence = pool.efficiency
        activities.append(
            SmartMoneyActivity(
                type=ActivityType.MANIPULATION,
                price=pool.price,
                volume=pool.size,
                timestamp=pool.timestamp,
                confidence=confidence,
                impact=_impact(confidence),
            )
        )

    for brk in structure_breaks:
        if not brk.follow_through:
            continue
        # Break strength is a fractional move; 1% beyond the level is full confidence.
        confidence = min(brk.strength * 100, 1.0)
        activities.append(
            SmartMoneyActivity(
                type=ActivityType.IMPULSE,
                price=brk.confirmed_level,
                volume=brk.volume,
                timestamp=brk.timestamp,
                confidence=confidence,
                impact=_impact(confidence),
            )
        )

    activities.sort(key=lambda a: a.timestamp)
    return activities


def analyze_institutional_flow(
    order_blocks: list[OrderBlock],
    fair_value_gaps: list[FairValueGap],
    liquidity_pools: list[LiquidityPool] | None = None,
    structure_breaks: list[BreakOfStructure] | None = None,
    settings: EngineSettings | None = None,
) -> InstitutionalFlow:
    """Weigh bullish against bearish order blocks and gaps.

    Rules:
        - **BULLISH**: bullish signals exceed 1.5× bearish signals.
        - **BEARISH**: bearish signals exceed 1.5× bullish signals.
        - **NEUTRAL**: everything else.

    ``strength`` is the dominant count over ten (capped at 1) and
    ``confidence`` is ``0.8 × strength`` plus 0.2 when any order block
    exists.  Structure breaks only feed ``characteristics`` and the
    activity log, so callers build the flow after break detection.
    """
    settings = settings or EngineSettings()
    liquidity_pools = liquidity_pools or []
    structure_breaks = structure_breaks or []

    bullish = sum(1 for ob in order_blocks if ob.type is OrderBlockType.BULLISH_OB) + sum(
        1 for g in fair_value_gaps if g.type is FVGType.BULLISH_FVG
    )
    bearish = sum(1 for ob in order_blocks if ob.type is OrderBlockType.BEARISH_OB) + sum(
        1 for g in fair_value_gaps if g.type is FVGType.BEARISH_FVG
    )

    if bullish > bearish * _DOMINANCE:
        direction = Direction.BULLISH
    elif bearish > bullish * _DOMINANCE:
        direction = Direction.BEARISH
    else:
        direction = Direction.NEUTRAL

    strength = min(max(bullish, bearish) / 10, 1.0)
    confidence = strength * 0.8 + (0.2 if order_blocks else 0.0)

    return InstitutionalFlow(
        direction=direction,
        strength=strength,
        confidence=confidence,
        timeframe=settings.timeframe,
        volume=sum(ob.volume for ob in order_blocks),
        characteristics=FlowCharacteristics(
            order_blocks=len(order_blocks),
            fair_value_gaps=len(fair_value_gaps),
            liquidity_grabs=sum(1 for p in liquidity_pools if p.grabbed),
            structural_breaks=len(structure_breaks),
        ),
        smart_money_activities=collect_activities(
            order_blocks, liquidity_pools, structure_breaks
        ),
    )


def neutral_flow(settings: EngineSettings | None = None) -> InstitutionalFlow:
    """Flow with no signals, used when the stage cannot run."""
    settings = settings or EngineSettings()
    return InstitutionalFlow(
        direction=Direction.NEUTRAL,
        strength=0.0,
        confidence=0.0,
        timeframe=settings.timeframe,
        volume=0.0,
    )
