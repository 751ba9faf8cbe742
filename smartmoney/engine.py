"""SmartMoney — analysis engine (orchestration).

Runs the detection pipeline for one symbol per call, stores the latest
per-symbol results and keeps a bounded log of generated opportunities.
Structure → order blocks → gaps → liquidity → breaks → flow → opportunities.
"""

import asyncio
import logging
import time
from typing import Callable, Optional, TypeVar

from smartmoney.analysis.breaks import detect_structure_breaks
from smartmoney.analysis.flow import analyze_institutional_flow, neutral_flow
from smartmoney.analysis.fvg import detect_fair_value_gaps, update_gap_fills
from smartmoney.analysis.liquidity import find_liquidity_pools, mark_grabbed_pools
from smartmoney.analysis.models import (
    BreakOfStructure,
    FairValueGap,
    InstitutionalFlow,
    LiquidityPool,
    MarketPhase,
    MarketStructure,
    OrderBlock,
    PriceCandle,
    SMCAnalysis,
    StageFailure,
    TradingOpportunity,
    Trend,
)
from smartmoney.analysis.opportunities import generate_opportunities
from smartmoney.analysis.order_blocks import detect_order_blocks, update_order_block_status
from smartmoney.analysis.structure import analyze_market_structure
from smartmoney.analysis.validation import ValidationError, validate_candles
from smartmoney.config import EngineSettings
from smartmoney.store import OpportunityLog, SymbolStore

logger = logging.getLogger("smartmoney.engine")

T = TypeVar("T")

AnalysisObserver = Callable[[SMCAnalysis], None]


def overall_confidence(
    structure: MarketStructure,
    flow: InstitutionalFlow,
    opportunities: list[TradingOpportunity],
) -> float:
    """Blend structure, flow and mean opportunity probability (40/40/20)."""
    structure_confidence = structure.strength if structure.confirmation else 0.0
    opportunity_confidence = (
        sum(o.probability for o in opportunities) / len(opportunities)
        if opportunities
        else 0.0
    )
    return (
        structure_confidence * 0.4
        + flow.confidence * 0.4
        + opportunity_confidence * 0.2
    )


def build_recommendation(
    flow: InstitutionalFlow,
    opportunities: list[TradingOpportunity],
) -> str:
    """Summarise the flow assessment as a one-line recommendation."""
    if flow.confidence > 0.7 and opportunities:
        direction = flow.direction.value.lower()
        return (
            f"Strong {direction} institutional flow detected with "
            f"{len(opportunities)} high-probability opportunities"
        )
    if flow.confidence > 0.5:
        return "Moderate institutional activity - monitor for confirmation"
    return "Low institutional activity - wait for clearer signals"


class SmartMoneyEngine:
    """Runs the SMC pipeline and owns all per-symbol state.

    Args:
        settings: Pipeline thresholds.  Defaults to ``EngineSettings()``.
        observers: Callables invoked with every completed ``SMCAnalysis``.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        observers: Optional[list[AnalysisObserver]] = None,
    ) -> None:
        self._settings = settings or EngineSettings()
        self._store = SymbolStore()
        self._opportunity_log = OpportunityLog(self._settings.opportunity_log_size)
        self._observers: list[AnalysisObserver] = list(observers or [])

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def symbols(self) -> list[str]:
        """Symbols with stored analysis state."""
        return self._store.symbols()

    def add_observer(self, observer: AnalysisObserver) -> None:
        """Register a callable to receive each completed analysis."""
        self._observers.append(observer)

    # ── Analysis ─────────────────────────────────────────────────────────

    def analyze_market(
        self,
        symbol: str,
        candles: list[PriceCandle],
        volumes: Optional[list[float]] = None,
        now_ms: Optional[int] = None,
    ) -> SMCAnalysis:
        """Run the full pipeline for *symbol* and store the results.

        Args:
            symbol: Instrument identifier used for ids and state keys.
            candles: Candles ordered by ascending timestamp.
            volumes: Optional per-candle volumes replacing each candle's own.
            now_ms: Wall-clock stamp for the snapshot.  Defaults to now.

        Raises:
            ValidationError: If the candle series is malformed.
            Exception: Any stage error, unless ``isolate_stages`` is set.
        """
        try:
            series = validate_candles(candles, volumes)
        except ValidationError as exc:
            logger.error("Rejected candles for %s: %s", symbol, exc)
            raise
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        settings = self._settings
        failures: list[StageFailure] = []

        try:
            # 1 ── Independent detectors over the same series
            structure = self._run_stage(
                "market_structure",
                lambda: analyze_market_structure(series, settings, now_ms=now_ms),
                lambda: self._neutral_structure(now_ms),
                failures,
            )
            order_blocks: list[OrderBlock] = self._run_stage(
                "order_blocks",
                lambda: detect_order_blocks(symbol, series, settings),
                list,
                failures,
            )
            gaps: list[FairValueGap] = self._run_stage(
                "fair_value_gaps",
                lambda: detect_fair_value_gaps(symbol, series, settings),
                list,
                failures,
            )
            pools: list[LiquidityPool] = self._run_stage(
                "liquidity_pools",
                lambda: find_liquidity_pools(symbol, series, settings),
                list,
                failures,
            )

            # 2 ── Optional re-evaluation against later price action
            if settings.track_mitigation:
                order_blocks, gaps, pools = self._run_stage(
                    "mitigation",
                    lambda: self._track_mitigation(order_blocks, gaps, pools, series),
                    lambda: (order_blocks, gaps, pools),
                    failures,
                )

            # 3 ── Breaks, then flow (which counts the breaks)
            breaks: list[BreakOfStructure] = self._run_stage(
                "structure_breaks",
                lambda: detect_structure_breaks(series, structure.trend, settings),
                list,
                failures,
            )
            flow = self._run_stage(
                "institutional_flow",
                lambda: analyze_institutional_flow(
                    order_blocks, gaps, pools, breaks, settings
                ),
                lambda: neutral_flow(settings),
                failures,
            )

            # 4 ── Opportunities
            opportunities = self._run_stage(
                "opportunities",
                lambda: generate_opportunities(symbol, order_blocks, gaps, settings),
                list,
                failures,
            )
        except Exception:
            logger.exception("SMC analysis failed for %s", symbol)
            raise

        analysis = SMCAnalysis(
            symbol=symbol,
            timestamp=now_ms,
            market_structure=structure,
            order_blocks=order_blocks,
            fair_value_gaps=gaps,
            liquidity_pools=pools,
            institutional_flow=flow,
            structure_breaks=breaks,
            opportunities=opportunities,
            confidence=overall_confidence(structure, flow, opportunities),
            recommendation=build_recommendation(flow, opportunities),
            stage_failures=failures,
        )

        self._store.put(analysis)
        self._opportunity_log.extend(opportunities)

        logger.info(
            "SMC analysis for %s: trend=%s order_blocks=%d gaps=%d pools=%d "
            "breaks=%d opportunities=%d confidence=%.3f",
            symbol,
            structure.trend.value,
            len(order_blocks),
            len(gaps),
            len(pools),
            len(breaks),
            len(opportunities),
            analysis.confidence,
        )

        self._notify(analysis)
        return analysis

    async def analyze_all(
        self,
        batches: dict[str, list[PriceCandle]],
    ) -> dict[str, SMCAnalysis | Exception]:
        """Analyse several symbols concurrently, one worker thread each.

        Returns:
            ``{symbol: SMCAnalysis}``, or the raised exception for symbols
            whose analysis was unavailable this cycle.
        """

        async def _analyze(symbol: str, candles: list[PriceCandle]):
            return await asyncio.to_thread(self.analyze_market, symbol, candles)

        symbols = list(batches)
        outcomes = await asyncio.gather(
            *(_analyze(s, batches[s]) for s in symbols),
            return_exceptions=True,
        )

        results: dict[str, SMCAnalysis | Exception] = {}
        for symbol, outcome in zip(symbols, outcomes):
            if isinstance(outcome, Exception):
                logger.error("Analysis unavailable for %s: %s", symbol, outcome)
            results[symbol] = outcome
        return results

    # ── Accessors ────────────────────────────────────────────────────────

    def get_market_structure(self, symbol: str) -> Optional[MarketStructure]:
        state = self._store.get(symbol)
        return state.market_structure if state else None

    def get_order_blocks(self, symbol: str) -> list[OrderBlock]:
        state = self._store.get(symbol)
        return list(state.order_blocks) if state else []

    def get_fair_value_gaps(self, symbol: str) -> list[FairValueGap]:
        state = self._store.get(symbol)
        return list(state.fair_value_gaps) if state else []

    def get_liquidity_pools(self, symbol: str) -> list[LiquidityPool]:
        state = self._store.get(symbol)
        return list(state.liquidity_pools) if state else []

    def get_institutional_flow(self, symbol: str) -> Optional[InstitutionalFlow]:
        state = self._store.get(symbol)
        return state.institutional_flow if state else None

    def get_structure_breaks(self, symbol: str) -> list[BreakOfStructure]:
        state = self._store.get(symbol)
        return list(state.structure_breaks) if state else []

    def get_trading_opportunities(
        self, symbol: Optional[str] = None
    ) -> list[TradingOpportunity]:
        """Logged opportunities, oldest first, optionally for one symbol."""
        return self._opportunity_log.query(symbol)

    def reset(self) -> None:
        """Drop all stored state and logged opportunities."""
        self._store.clear()
        self._opportunity_log.clear()

    # ── Internals ────────────────────────────────────────────────────────

    def _run_stage(
        self,
        name: str,
        fn: Callable[[], T],
        default: Callable[[], T],
        failures: list[StageFailure],
    ) -> T:
        """Run one stage; with ``isolate_stages`` a failure yields *default*."""
        if not self._settings.isolate_stages:
            return fn()
        try:
            return fn()
        except Exception as exc:
            logger.warning("Stage '%s' failed, using default output: %s", name, exc)
            failures.append(StageFailure(stage=name, error=f"{type(exc).__name__}: {exc}"))
            return default()

    def _neutral_structure(self, now_ms: int) -> MarketStructure:
        return MarketStructure(
            trend=Trend.SIDEWAYS,
            phase=MarketPhase.ACCUMULATION,
            strength=0.0,
            confirmation=False,
            timeframe=self._settings.timeframe,
            last_update=now_ms,
        )

    def _track_mitigation(
        self,
        order_blocks: list[OrderBlock],
        gaps: list[FairValueGap],
        pools: list[LiquidityPool],
        series: list[PriceCandle],
    ) -> tuple[list[OrderBlock], list[FairValueGap], list[LiquidityPool]]:
        return (
            update_order_block_status(order_blocks, series),
            update_gap_fills(gaps, series, self._settings.fvg_fill_threshold),
            mark_grabbed_pools(pools, series),
        )

    def _notify(self, analysis: SMCAnalysis) -> None:
        for observer in self._observers:
            try:
                observer(analysis)
            except Exception as exc:
                logger.error("Analysis observer failed for %s: %s", analysis.symbol, exc)
