"""SmartMoney — application entry point.

Boots the FastAPI internal server and provides the CLI entry point for
one-off analysis of a candle file and for serving the API.
"""

import json
import logging

from fastapi import FastAPI

from smartmoney.analysis.validation import ValidationError
from smartmoney.api.routers import router

app = FastAPI(title="SmartMoney SMC API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("smartmoney")


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


# ── CLI ──────────────────────────────────────────────────────────────────


def _load_records(path: str) -> dict:
    """Read a candle file: a JSON list of candles or ``{"candles": [...]}``.

    Raises ``ValidationError`` when the file holds neither shape.
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"{path} is not valid JSON: {exc}") from exc
    if isinstance(data, list):
        return {"candles": data}
    if not isinstance(data, dict) or not isinstance(data.get("candles", []), list):
        raise ValidationError(
            f"{path} must hold a list of candles or an object with a 'candles' list"
        )
    return data


def _run_cli(argv: list[str] | None = None) -> int:
    """Parse CLI arguments and dispatch to the requested command."""
    import argparse

    from smartmoney.analysis.validation import candles_from_records
    from smartmoney.api.routers import configure_routers
    from smartmoney.config import load_config
    from smartmoney.engine import SmartMoneyEngine

    parser = argparse.ArgumentParser(description="Smart Money Concepts analysis engine")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Analyse a JSON candle file and print the result")
    analyze.add_argument("path", help="JSON file with candles")
    analyze.add_argument("--symbol", required=True, help="Instrument symbol, e.g. BTCUSDT")
    analyze.add_argument("--indent", type=int, default=2, help="JSON indent (default: 2)")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", help="Bind address (default: API_HOST or 127.0.0.1)")
    serve.add_argument("--port", type=int, help="Port (default: API_PORT or 8080)")

    parser.add_argument("--env", dest="env_path", help="Path to a .env file")
    args = parser.parse_args(argv)

    config = load_config(args.env_path)
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    engine = SmartMoneyEngine(config.settings)

    if args.command == "analyze":
        try:
            body = _load_records(args.path)
            candles = candles_from_records(body.get("candles", []))
            analysis = engine.analyze_market(args.symbol, candles, body.get("volumes"))
        except ValidationError as exc:
            logger.error("Invalid candle data in %s: %s", args.path, exc)
            return 2
        print(json.dumps(analysis.to_dict(), indent=args.indent))
        return 0

    import uvicorn

    configure_routers(engine)
    host = args.host or config.api_host
    port = args.port or config.api_port
    logger.info("SmartMoney API available at http://%s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level=config.log_level.lower())
    return 0


if __name__ == "__main__":
    raise SystemExit(_run_cli())
