"""Per-symbol analysis state and the bounded opportunity log.

Both containers are safe to share between threads analysing different
symbols: each guards its own structure with a lock.
"""

import threading
from dataclasses import dataclass, field
from typing import Optional

from smartmoney.analysis.models import (
    BreakOfStructure,
    FairValueGap,
    InstitutionalFlow,
    LiquidityPool,
    MarketStructure,
    OrderBlock,
    SMCAnalysis,
    TradingOpportunity,
)


@dataclass
class SymbolState:
    """Latest detections for one symbol, overwritten on each analysis."""

    market_structure: Optional[MarketStructure] = None
    order_blocks: list[OrderBlock] = field(default_factory=list)
    fair_value_gaps: list[FairValueGap] = field(default_factory=list)
    liquidity_pools: list[LiquidityPool] = field(default_factory=list)
    institutional_flow: Optional[InstitutionalFlow] = None
    structure_breaks: list[BreakOfStructure] = field(default_factory=list)


class SymbolStore:
    """Symbol-keyed map of ``SymbolState`` guarded by a single lock.

    The lock only protects the map itself; states are replaced wholesale,
    never mutated after being stored.
    """

    def __init__(self) -> None:
        self._states: dict[str, SymbolState] = {}
        self._lock = threading.Lock()

    def put(self, analysis: SMCAnalysis) -> None:
        """Replace the stored state for ``analysis.symbol``."""
        state = SymbolState(
            market_structure=analysis.market_structure,
            order_blocks=list(analysis.order_blocks),
            fair_value_gaps=list(analysis.fair_value_gaps),
            liquidity_pools=list(analysis.liquidity_pools),
            institutional_flow=analysis.institutional_flow,
            structure_breaks=list(analysis.structure_breaks),
        )
        with self._lock:
            self._states[analysis.symbol] = state

    def get(self, symbol: str) -> Optional[SymbolState]:
        with self._lock:
            return self._states.get(symbol)

    def symbols(self) -> list[str]:
        with self._lock:
            return sorted(self._states)

    def clear(self) -> None:
        with self._lock:
            self._states.clear()


class OpportunityLog:
    """Ring buffer of generated opportunities across all symbols.

    Args:
        max_size: Oldest entries are dropped once the log exceeds this.
    """

    def __init__(self, max_size: int = 50) -> None:
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self._max_size = max_size
        self._entries: list[TradingOpportunity] = []
        self._lock = threading.Lock()

    @property
    def max_size(self) -> int:
        return self._max_size

    def extend(self, opportunities: list[TradingOpportunity]) -> None:
        """Append *opportunities*, trimming the oldest beyond ``max_size``."""
        with self._lock:
            self._entries.extend(opportunities)
            overflow = len(self._entries) - self._max_size
            if overflow > 0:
                del self._entries[:overflow]

    def query(self, symbol: Optional[str] = None) -> list[TradingOpportunity]:
        """Return logged opportunities, oldest first, optionally for one symbol."""
        with self._lock:
            if symbol is None:
                return list(self._entries)
            return [o for o in self._entries if o.symbol == symbol]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
