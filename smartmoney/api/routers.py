"""Internal API routers: /analyze, per-symbol detection queries, /opportunities.

No detection logic here. Converts JSON to candles, delegates to the
engine and serialises its results.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from smartmoney.analysis.models import to_jsonable
from smartmoney.analysis.validation import ValidationError, candles_from_records
from smartmoney.engine import SmartMoneyEngine

logger = logging.getLogger("smartmoney.api")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_engine: Optional[SmartMoneyEngine] = None


def configure_routers(engine: SmartMoneyEngine) -> None:
    """Inject the engine instance the endpoints delegate to."""
    global _engine  # noqa: PLW0603
    _engine = engine


def get_engine() -> SmartMoneyEngine:
    """Return the configured engine, creating a default one on first use."""
    global _engine  # noqa: PLW0603
    if _engine is None:
        _engine = SmartMoneyEngine()
    return _engine


def _validation_error(exc: ValidationError) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail={"error": str(exc), "index": exc.index},
    )


# ── Endpoints ────────────────────────────────────────────────────────────


@router.post("/analyze/{symbol}")
def analyze(symbol: str, body: dict):
    """Run a full SMC analysis on the posted candles.

    Body: ``{"candles": [{timestamp, open, high, low, close, volume}, ...],
    "volumes": [...]}`` where ``volumes`` is optional.
    """
    records = body.get("candles")
    if not isinstance(records, list):
        raise HTTPException(
            status_code=422,
            detail={"error": "'candles' must be a list", "index": None},
        )
    try:
        candles = candles_from_records(records)
        analysis = get_engine().analyze_market(symbol, candles, body.get("volumes"))
    except ValidationError as exc:
        logger.warning("Rejected candles for %s: %s", symbol, exc)
        raise _validation_error(exc) from exc
    return analysis.to_dict()


@router.get("/symbols")
def get_symbols():
    """Return symbols that have stored analysis state."""
    return {"symbols": get_engine().symbols}


@router.get("/structure/{symbol}")
def get_structure(symbol: str):
    """Return the latest market structure for *symbol* (null if unknown)."""
    return {"market_structure": to_jsonable(get_engine().get_market_structure(symbol))}


@router.get("/order-blocks/{symbol}")
def get_order_blocks(symbol: str):
    return {"order_blocks": to_jsonable(get_engine().get_order_blocks(symbol))}


@router.get("/fair-value-gaps/{symbol}")
def get_fair_value_gaps(symbol: str):
    return {"fair_value_gaps": to_jsonable(get_engine().get_fair_value_gaps(symbol))}


@router.get("/liquidity-pools/{symbol}")
def get_liquidity_pools(symbol: str):
    return {"liquidity_pools": to_jsonable(get_engine().get_liquidity_pools(symbol))}


@router.get("/flow/{symbol}")
def get_flow(symbol: str):
    return {"institutional_flow": to_jsonable(get_engine().get_institutional_flow(symbol))}


@router.get("/structure-breaks/{symbol}")
def get_structure_breaks(symbol: str):
    return {"structure_breaks": to_jsonable(get_engine().get_structure_breaks(symbol))}


@router.get("/opportunities")
def get_opportunities(
    symbol: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
):
    """Return logged opportunities, newest first."""
    recent = get_engine().get_trading_opportunities(symbol)[-limit:]
    recent.reverse()
    return {"opportunities": to_jsonable(recent)}
