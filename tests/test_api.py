"""Tests for the HTTP API endpoints and the CLI entry point."""

import json

import pytest
from fastapi.testclient import TestClient

from smartmoney.api.routers import configure_routers
from smartmoney.engine import SmartMoneyEngine
from smartmoney.main import _run_cli, app

client = TestClient(app)


# ── Helpers ──────────────────────────────────────────────────────────────

_T0 = 1_735_689_600_000
_H4 = 14_400_000


def _record(i: int, o: float, h: float, l: float, c: float, vol: float = 1000) -> dict:
    return {"timestamp": _T0 + i * _H4, "open": o, "high": h, "low": l, "close": c, "volume": vol}


def _bullish_setup_records() -> list[dict]:
    records = [_record(i, 100, 100.5, 99.5, 100) for i in range(5)]
    records.append(_record(5, 101.0, 101.2, 99.8, 100.0))
    records.append(_record(6, 100.0, 102.5, 99.9, 102.0, 2000))
    records.append(_record(7, 102.0, 103.5, 101.8, 103.0))
    records += [_record(i, 103, 103.5, 102.5, 103) for i in range(8, 12)]
    return records


@pytest.fixture(autouse=True)
def _fresh_engine():
    """Each test gets its own engine behind the routers."""
    engine = SmartMoneyEngine()
    configure_routers(engine)
    return engine


# ── Tests ────────────────────────────────────────────────────────────────


class TestHealth:
    def test_health(self):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestAnalyzeEndpoint:
    def test_analyze_returns_snapshot(self):
        resp = client.post("/analyze/BTCUSDT", json={"candles": _bullish_setup_records()})
        assert resp.status_code == 200
        data = resp.json()
        assert data["symbol"] == "BTCUSDT"
        assert len(data["order_blocks"]) == 1
        assert data["order_blocks"][0]["type"] == "BULLISH_OB"
        assert data["opportunities"][0]["type"] == "ORDER_BLOCK_RETEST"
        assert "recommendation" in data

    def test_analyze_with_volumes(self):
        records = _bullish_setup_records()
        body = {"candles": records, "volumes": [1000] * len(records)}
        resp = client.post("/analyze/BTCUSDT", json=body)
        assert resp.status_code == 200
        assert resp.json()["order_blocks"] == []

    def test_missing_candles(self):
        resp = client.post("/analyze/BTCUSDT", json={})
        assert resp.status_code == 422
        assert resp.json()["detail"]["index"] is None

    def test_bad_record_reports_index(self):
        records = _bullish_setup_records()
        del records[3]["open"]
        resp = client.post("/analyze/BTCUSDT", json={"candles": records})
        assert resp.status_code == 422
        assert resp.json()["detail"]["index"] == 3

    def test_high_below_low_reports_index(self):
        records = _bullish_setup_records()
        records[2]["high"] = 90
        resp = client.post("/analyze/BTCUSDT", json={"candles": records})
        assert resp.status_code == 422
        assert resp.json()["detail"]["index"] == 2

    def test_nan_price_reports_index(self):
        records = _bullish_setup_records()
        records[4]["low"] = "nan"
        resp = client.post("/analyze/BTCUSDT", json={"candles": records})
        assert resp.status_code == 422
        assert resp.json()["detail"]["index"] == 4

    def test_infinite_volume_reports_index(self):
        records = _bullish_setup_records()
        records[7]["volume"] = "inf"
        resp = client.post("/analyze/BTCUSDT", json={"candles": records})
        assert resp.status_code == 422
        assert resp.json()["detail"]["index"] == 7


class TestQueryEndpoints:
    def test_unknown_symbol(self):
        assert client.get("/structure/XYZ").json() == {"market_structure": None}
        assert client.get("/flow/XYZ").json() == {"institutional_flow": None}
        assert client.get("/order-blocks/XYZ").json() == {"order_blocks": []}
        assert client.get("/symbols").json() == {"symbols": []}

    def test_state_after_analysis(self):
        client.post("/analyze/BTCUSDT", json={"candles": _bullish_setup_records()})
        assert client.get("/symbols").json() == {"symbols": ["BTCUSDT"]}
        assert client.get("/structure/BTCUSDT").json()["market_structure"]["trend"] in {
            "UPTREND", "DOWNTREND", "SIDEWAYS",
        }
        assert len(client.get("/order-blocks/BTCUSDT").json()["order_blocks"]) == 1
        assert "fair_value_gaps" in client.get("/fair-value-gaps/BTCUSDT").json()
        assert "liquidity_pools" in client.get("/liquidity-pools/BTCUSDT").json()
        assert "structure_breaks" in client.get("/structure-breaks/BTCUSDT").json()
        flow = client.get("/flow/BTCUSDT").json()["institutional_flow"]
        assert flow["direction"] == "BULLISH"

    def test_opportunities_newest_first(self):
        for symbol in ["AAA", "BBB", "CCC"]:
            client.post(f"/analyze/{symbol}", json={"candles": _bullish_setup_records()})
        data = client.get("/opportunities").json()["opportunities"]
        assert [o["symbol"] for o in data] == ["CCC", "BBB", "AAA"]

    def test_opportunities_filter_and_limit(self):
        for symbol in ["AAA", "BBB", "CCC"]:
            client.post(f"/analyze/{symbol}", json={"candles": _bullish_setup_records()})
        assert len(client.get("/opportunities?limit=2").json()["opportunities"]) == 2
        only = client.get("/opportunities?symbol=BBB").json()["opportunities"]
        assert [o["symbol"] for o in only] == ["BBB"]

    def test_limit_validated(self):
        assert client.get("/opportunities?limit=0").status_code == 422


class TestCli:
    def test_analyze_prints_json(self, tmp_path, capsys):
        path = tmp_path / "candles.json"
        path.write_text(json.dumps(_bullish_setup_records()))
        code = _run_cli(["--env", str(tmp_path / "none.env"), "analyze", str(path), "--symbol", "ETH"])
        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["symbol"] == "ETH"
        assert len(data["order_blocks"]) == 1

    def test_analyze_accepts_wrapped_body(self, tmp_path, capsys):
        path = tmp_path / "candles.json"
        path.write_text(json.dumps({"candles": _bullish_setup_records()}))
        assert _run_cli(["--env", str(tmp_path / "none.env"), "analyze", str(path), "--symbol", "ETH"]) == 0
        assert json.loads(capsys.readouterr().out)["symbol"] == "ETH"

    def test_invalid_file_exits_2(self, tmp_path):
        path = tmp_path / "candles.json"
        records = _bullish_setup_records()
        records[1]["timestamp"] = records[0]["timestamp"]
        path.write_text(json.dumps(records))
        assert _run_cli(["--env", str(tmp_path / "none.env"), "analyze", str(path), "--symbol", "ETH"]) == 2

    @pytest.mark.parametrize("content", ["{not json", "42", '"candles"', '{"candles": 5}'])
    def test_malformed_body_exits_2(self, tmp_path, content):
        path = tmp_path / "candles.json"
        path.write_text(content)
        assert _run_cli(["--env", str(tmp_path / "none.env"), "analyze", str(path), "--symbol", "ETH"]) == 2
