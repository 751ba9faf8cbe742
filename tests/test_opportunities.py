"""Tests for order block retest opportunities and confluence."""

import pytest

from smartmoney.analysis.models import (
    ConfluenceType,
    FairValueGap,
    FVGType,
    OpportunityType,
    OrderBlock,
    OrderBlockType,
)
from smartmoney.analysis.opportunities import confluence_for, generate_opportunities
from smartmoney.config import EngineSettings


_T0 = 1_735_689_600_000
_H4 = 14_400_000


def _ob(i: int, ob_type: OrderBlockType = OrderBlockType.BULLISH_OB, price: float = 100.0, **kw) -> OrderBlock:
    return OrderBlock(
        id=f"OB_BTC_{_T0 + i * _H4}",
        price=price,
        type=ob_type,
        strength=0.5,
        volume=2000,
        timestamp=_T0 + i * _H4,
        timeframe="4h",
        **kw,
    )


def _gap(middle: float, i: int = 0) -> FairValueGap:
    return FairValueGap(
        id=f"FVG_BTC_{i}",
        upper=middle + 0.5,
        lower=middle - 0.5,
        middle=middle,
        type=FVGType.BULLISH_FVG,
        strength=0.01,
        timestamp=_T0 + i * _H4,
        timeframe="4h",
        volume=1000,
        efficiency=0.9,
    )


class TestConfluenceFor:
    def test_block_alone(self):
        factors = confluence_for(_ob(0), [])
        assert len(factors) == 1
        assert factors[0].type is ConfluenceType.ORDER_BLOCK
        assert factors[0].description == "BULLISH_OB at 100.0"

    def test_nearby_gap_adds_factor(self):
        factors = confluence_for(_ob(0), [_gap(100.5)])
        assert [f.type for f in factors] == [ConfluenceType.ORDER_BLOCK, ConfluenceType.FVG]

    def test_distant_gap_ignored(self):
        assert len(confluence_for(_ob(0), [_gap(102.0)])) == 1

    def test_only_first_matching_gap_counts(self):
        assert len(confluence_for(_ob(0), [_gap(100.5, 1), _gap(99.8, 2)])) == 2


class TestGenerateOpportunities:
    def test_bullish_retest(self):
        block = _ob(3)
        opps = generate_opportunities("BTC", [block], [])
        assert len(opps) == 1
        opp = opps[0]
        assert opp.id == f"OPP_BTC_OB_{block.timestamp}"
        assert opp.type is OpportunityType.ORDER_BLOCK_RETEST
        assert opp.symbol == "BTC"
        assert opp.entry == 100.0
        assert opp.stop_loss == pytest.approx(98.0)
        assert opp.take_profit == pytest.approx(105.0)
        assert opp.risk_reward == 2.5
        assert opp.probability == pytest.approx(0.88)
        assert opp.setup == "BULLISH_OB Retest with 1 confluence factors"
        assert opp.timestamp == block.timestamp

    def test_bearish_retest_mirrors_levels(self):
        opp = generate_opportunities("BTC", [_ob(0, OrderBlockType.BEARISH_OB)], [])[0]
        assert opp.stop_loss == pytest.approx(102.0)
        assert opp.take_profit == pytest.approx(95.0)

    def test_gap_confluence_raises_probability(self):
        opp = generate_opportunities("BTC", [_ob(0)], [_gap(100.5)])[0]
        assert opp.probability == pytest.approx(0.96)
        assert len(opp.confluence) == 2
        assert opp.setup == "BULLISH_OB Retest with 2 confluence factors"

    def test_probability_capped_at_one(self):
        opp = generate_opportunities("BTC", [_ob(0, reliability=0.95)], [_gap(100.5)])[0]
        assert opp.probability == 1.0

    def test_tested_and_breached_blocks_skipped(self):
        blocks = [_ob(0, tested=True), _ob(1, breached=True), _ob(2)]
        opps = generate_opportunities("BTC", blocks, [])
        assert [o.timestamp for o in opps] == [blocks[2].timestamp]

    def test_keeps_detection_order_and_cap(self):
        blocks = [_ob(i) for i in range(5)]
        opps = generate_opportunities("BTC", blocks, [], EngineSettings(max_opportunities=2))
        assert [o.timestamp for o in opps] == [blocks[0].timestamp, blocks[1].timestamp]

    def test_levels_from_settings(self):
        settings = EngineSettings(stop_loss_pct=0.01, take_profit_pct=0.03, risk_reward=3.0)
        opp = generate_opportunities("BTC", [_ob(0)], [], settings)[0]
        assert opp.stop_loss == pytest.approx(99.0)
        assert opp.take_profit == pytest.approx(103.0)
        assert opp.risk_reward == 3.0
