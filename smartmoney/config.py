"""SmartMoney — engine configuration.

Loads .env variables into a typed settings object.  Every heuristic
threshold of the detection pipeline lives here so it can be overridden
without touching the detectors.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass(frozen=True)
class EngineSettings:
    """Typed configuration for the SMC analysis pipeline.

    Defaults are the stock SMC heuristics.  ``order_block_reliability``,
    ``risk_reward`` and ``liquidity_volume_unit`` are uncalibrated placeholder
    figures, not values derived from realised outcomes.
    """

    timeframe: str = "4h"

    # Market structure
    structure_lookback: int = 50
    swing_window: int = 3
    trend_strength: float = 0.8
    phase_volume_ratio: float = 1.2
    phase_volatility_threshold: float = 0.05

    # Order blocks
    order_block_lookback: int = 100
    order_block_volume_ratio: float = 1.5
    order_block_volume_unit: float = 1_000_000.0
    order_block_reliability: float = 0.8
    max_order_blocks: int = 20

    # Fair value gaps
    fvg_lookback: int = 100
    fvg_min_strength: float = 0.005
    fvg_efficiency: float = 0.9
    fvg_fill_threshold: float = 0.95
    max_fair_value_gaps: int = 15

    # Liquidity pools
    liquidity_lookback: int = 50
    liquidity_tolerance: float = 0.001
    liquidity_volume_unit: float = 1_000_000.0
    liquidity_efficiency: float = 0.85

    # Structure breaks
    break_lookback: int = 30
    break_window: int = 5
    break_volume_ratio: float = 1.3
    max_structure_breaks: int = 10

    # Opportunities
    fvg_confluence_distance: float = 0.01
    stop_loss_pct: float = 0.02
    take_profit_pct: float = 0.05
    risk_reward: float = 2.5
    max_opportunities: int = 10
    opportunity_log_size: int = 50

    # Orchestration
    isolate_stages: bool = False
    track_mitigation: bool = False


@dataclass(frozen=True)
class Config:
    """Process-level configuration for the API / CLI entry points."""

    settings: EngineSettings
    log_level: str
    api_host: str
    api_port: int


# env var -> (field name, parser)
_SETTING_VARS: dict[str, tuple[str, type]] = {
    "SMC_TIMEFRAME": ("timeframe", str),
    "SMC_STRUCTURE_LOOKBACK": ("structure_lookback", int),
    "SMC_SWING_WINDOW": ("swing_window", int),
    "SMC_ORDER_BLOCK_LOOKBACK": ("order_block_lookback", int),
    "SMC_ORDER_BLOCK_VOLUME_RATIO": ("order_block_volume_ratio", float),
    "SMC_ORDER_BLOCK_RELIABILITY": ("order_block_reliability", float),
    "SMC_FVG_LOOKBACK": ("fvg_lookback", int),
    "SMC_FVG_MIN_STRENGTH": ("fvg_min_strength", float),
    "SMC_LIQUIDITY_LOOKBACK": ("liquidity_lookback", int),
    "SMC_LIQUIDITY_TOLERANCE": ("liquidity_tolerance", float),
    "SMC_LIQUIDITY_VOLUME_UNIT": ("liquidity_volume_unit", float),
    "SMC_BREAK_LOOKBACK": ("break_lookback", int),
    "SMC_BREAK_VOLUME_RATIO": ("break_volume_ratio", float),
    "SMC_RISK_REWARD": ("risk_reward", float),
    "SMC_MAX_OPPORTUNITIES": ("max_opportunities", int),
    "SMC_OPPORTUNITY_LOG_SIZE": ("opportunity_log_size", int),
    "SMC_ISOLATE_STAGES": ("isolate_stages", bool),
    "SMC_TRACK_MITIGATION": ("track_mitigation", bool),
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse(var: str, raw: str, kind: type):
    """Convert *raw* to *kind*, raising ``ValueError`` naming *var*."""
    if kind is bool:
        lowered = raw.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(f"Invalid boolean for {var}: {raw!r}")
    try:
        return kind(raw)
    except ValueError:
        raise ValueError(
            f"Invalid value for {var}: {raw!r} (expected {kind.__name__})"
        ) from None


def load_settings(env_path: str | None = None) -> EngineSettings:
    """Build ``EngineSettings`` from ``SMC_*`` environment variables.

    Unset variables keep their defaults.  Raises ``ValueError`` with a
    message naming the variable when a value cannot be parsed or is not
    positive where a size is expected.
    """
    load_dotenv(dotenv_path=env_path)

    overrides: dict = {}
    for var, (field_name, kind) in _SETTING_VARS.items():
        raw = os.environ.get(var)
        if raw is None or raw == "":
            continue
        value = _parse(var, raw, kind)
        if kind is int and value <= 0:
            raise ValueError(f"{var} must be a positive integer, got {value}")
        overrides[field_name] = value

    return EngineSettings(**overrides)


def load_config(env_path: str | None = None) -> Config:
    """Load settings plus the process-level logging and API options."""
    settings = load_settings(env_path)
    return Config(
        settings=settings,
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_host=os.environ.get("API_HOST", "127.0.0.1"),
        api_port=_parse("API_PORT", os.environ.get("API_PORT", "8080"), int),
    )
