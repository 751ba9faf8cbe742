"""SMC data models: typed representations for pipeline inputs and outputs."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Optional


class Trend(str, Enum):
    UPTREND = "UPTREND"
    DOWNTREND = "DOWNTREND"
    SIDEWAYS = "SIDEWAYS"


class MarketPhase(str, Enum):
    ACCUMULATION = "ACCUMULATION"
    MARKUP = "MARKUP"
    DISTRIBUTION = "DISTRIBUTION"
    MARKDOWN = "MARKDOWN"


class OrderBlockType(str, Enum):
    BULLISH_OB = "BULLISH_OB"
    BEARISH_OB = "BEARISH_OB"


class FVGType(str, Enum):
    BULLISH_FVG = "BULLISH_FVG"
    BEARISH_FVG = "BEARISH_FVG"


class LiquiditySide(str, Enum):
    BUY_SIDE = "BUY_SIDE"
    SELL_SIDE = "SELL_SIDE"


class FlowSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class Direction(str, Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


class BreakType(str, Enum):
    BOS = "BOS"
    CHOCH = "CHoCH"


class ActivityType(str, Enum):
    ACCUMULATION = "ACCUMULATION"
    DISTRIBUTION = "DISTRIBUTION"
    MANIPULATION = "MANIPULATION"
    IMPULSE = "IMPULSE"


class Impact(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ConfluenceType(str, Enum):
    ORDER_BLOCK = "ORDER_BLOCK"
    FVG = "FVG"
    LIQUIDITY = "LIQUIDITY"
    STRUCTURE = "STRUCTURE"
    FIBONACCI = "FIBONACCI"
    VOLUME_PROFILE = "VOLUME_PROFILE"


class OpportunityType(str, Enum):
    ORDER_BLOCK_RETEST = "ORDER_BLOCK_RETEST"
    FVG_ENTRY = "FVG_ENTRY"
    LIQUIDITY_GRAB = "LIQUIDITY_GRAB"
    BOS_CONTINUATION = "BOS_CONTINUATION"


# ── Input ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PriceCandle:
    """A single candlestick bar. ``timestamp`` is unix epoch milliseconds."""

    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.close < self.open


# ── Detections ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class MarketStructure:
    """Trend and Wyckoff-style phase derived from recent swing points."""

    trend: Trend
    phase: MarketPhase
    strength: float
    confirmation: bool
    timeframe: str
    last_update: int  # wall clock, unix ms


@dataclass(frozen=True)
class OrderBlock:
    """A volume-confirmed candle preceding a directional continuation.

    ``tested`` / ``breached`` start False; re-evaluation against later
    price action returns an updated copy.
    """

    id: str
    price: float
    type: OrderBlockType
    strength: float
    volume: float
    timestamp: int
    timeframe: str
    tested: bool = False
    breached: bool = False
    reliability: float = 0.8
    institutional_flow: FlowSide = FlowSide.BUY


@dataclass(frozen=True)
class FairValueGap:
    """A price range skipped between two non-overlapping candles."""

    id: str
    upper: float
    lower: float
    middle: float
    type: FVGType
    strength: float  # gap size relative to the previous close
    timestamp: int
    timeframe: str
    volume: float
    efficiency: float
    filled: bool = False
    partial_fill: float = 0.0  # 0-1


@dataclass(frozen=True)
class LiquidityPool:
    """A cluster of equal highs (sell side) or equal lows (buy side)."""

    id: str
    price: float
    type: LiquiditySide
    size: float
    accumulated: float
    efficiency: float
    timestamp: int
    confluence: int  # number of matching levels, >= 2
    grabbed: bool = False


@dataclass(frozen=True)
class BreakOfStructure:
    """A volume-confirmed move beyond the preceding candles' extreme."""

    type: BreakType
    direction: Direction
    strength: float
    confirmed_level: float
    timestamp: int
    timeframe: str
    volume: float
    follow_through: bool


@dataclass(frozen=True)
class SmartMoneyActivity:
    type: ActivityType
    price: float
    volume: float
    timestamp: int
    confidence: float
    impact: Impact


@dataclass(frozen=True)
class FlowCharacteristics:
    order_blocks: int = 0
    fair_value_gaps: int = 0
    liquidity_grabs: int = 0
    structural_breaks: int = 0


@dataclass(frozen=True)
class InstitutionalFlow:
    """Directional assessment aggregated from order blocks and gaps."""

    direction: Direction
    strength: float
    confidence: float
    timeframe: str
    volume: float
    characteristics: FlowCharacteristics = field(default_factory=FlowCharacteristics)
    smart_money_activities: list[SmartMoneyActivity] = field(default_factory=list)


# ── Opportunities ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ConfluenceFactor:
    type: ConfluenceType
    strength: float
    description: str


@dataclass(frozen=True)
class TradingOpportunity:
    """A trade setup built from an order block and its confluence factors."""

    id: str
    type: OpportunityType
    symbol: str
    entry: float
    stop_loss: float
    take_profit: float
    risk_reward: float
    probability: float
    timeframe: str
    setup: str
    confluence: list[ConfluenceFactor]
    timestamp: int


# ── Aggregate ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class StageFailure:
    """A pipeline stage that raised and was replaced by its default output."""

    stage: str
    error: str


@dataclass(frozen=True)
class SMCAnalysis:
    """Immutable snapshot produced by one ``analyze_market`` call."""

    symbol: str
    timestamp: int  # wall clock, unix ms
    market_structure: MarketStructure
    order_blocks: list[OrderBlock]
    fair_value_gaps: list[FairValueGap]
    liquidity_pools: list[LiquidityPool]
    institutional_flow: InstitutionalFlow
    structure_breaks: list[BreakOfStructure]
    opportunities: list[TradingOpportunity]
    confidence: float
    recommendation: str
    stage_failures: list[StageFailure] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        """True when at least one stage fell back to its default output."""
        return bool(self.stage_failures)

    def to_dict(self) -> dict:
        """Return a JSON-serialisable dict (enums become their names)."""
        return to_jsonable(self)


def to_jsonable(obj) -> Optional[object]:
    """Convert a model (or list of models) into plain JSON types."""
    if obj is None:
        return None
    if isinstance(obj, list):
        return [to_jsonable(o) for o in obj]
    return asdict(obj, dict_factory=_enum_dict)


def _enum_dict(items: list[tuple[str, object]]) -> dict:
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in items}
