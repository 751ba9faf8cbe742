"""Tests for break-of-structure and change-of-character detection."""

import pytest

from smartmoney.analysis.breaks import detect_structure_breaks
from smartmoney.analysis.models import BreakType, Direction, PriceCandle, Trend
from smartmoney.config import EngineSettings


_T0 = 1_735_689_600_000
_H4 = 14_400_000


def _make_candle(i: int, o: float, h: float, l: float, c: float, vol: float = 1000) -> PriceCandle:
    return PriceCandle(timestamp=_T0 + i * _H4, open=o, high=h, low=l, close=c, volume=vol)


def _base(n: int = 12) -> list[PriceCandle]:
    return [_make_candle(i, 100, 101, 99, 100) for i in range(n)]


def _bullish_break(vol: float = 1500, next_close: float = 102.5) -> list[PriceCandle]:
    candles = _base()
    candles[6] = _make_candle(6, 100, 103, 99.5, 102, vol)
    candles[7] = _make_candle(7, 102, 102.8, 101.0, next_close)
    return candles


def _bearish_break() -> list[PriceCandle]:
    candles = _base()
    candles[6] = _make_candle(6, 100, 100.5, 97, 98, 1500)
    candles[7] = _make_candle(7, 98, 98.2, 97.2, 97.5)
    return candles


def _staircase(n: int = 30) -> list[PriceCandle]:
    """Every candle tops the last with 1.5× the volume."""
    return [
        _make_candle(i, 99.5 + i, 100 + i, 99 + i, 99.8 + i, 1000 * 1.5 ** i)
        for i in range(n)
    ]


class TestDetectStructureBreaks:
    def test_bullish_break(self):
        candles = _bullish_break()
        breaks = detect_structure_breaks(candles)
        assert len(breaks) == 1
        brk = breaks[0]
        assert brk.direction is Direction.BULLISH
        assert brk.confirmed_level == 101
        assert brk.strength == pytest.approx(2 / 101)
        assert brk.volume == 1500
        assert brk.follow_through is True
        assert brk.timestamp == candles[6].timestamp

    def test_bearish_break(self):
        breaks = detect_structure_breaks(_bearish_break())
        assert len(breaks) == 1
        brk = breaks[0]
        assert brk.direction is Direction.BEARISH
        assert brk.confirmed_level == 99
        assert brk.strength == pytest.approx(2 / 99)
        assert brk.follow_through is True

    def test_volume_not_confirmed(self):
        assert detect_structure_breaks(_bullish_break(vol=1200)) == []

    def test_no_follow_through(self):
        breaks = detect_structure_breaks(_bullish_break(next_close=101.5))
        assert breaks[0].follow_through is False

    def test_trailing_candles_not_scanned(self):
        candles = _base()
        candles[8] = _make_candle(8, 100, 103, 99.5, 102, 1500)
        assert detect_structure_breaks(candles) == []

    @pytest.mark.parametrize(
        "trend, expected",
        [
            (Trend.SIDEWAYS, BreakType.BOS),
            (Trend.UPTREND, BreakType.BOS),
            (Trend.DOWNTREND, BreakType.CHOCH),
        ],
    )
    def test_bullish_break_type_follows_trend(self, trend, expected):
        assert detect_structure_breaks(_bullish_break(), trend)[0].type is expected

    def test_bearish_break_against_uptrend_is_choch(self):
        brk = detect_structure_breaks(_bearish_break(), Trend.UPTREND)[0]
        assert brk.type is BreakType.CHOCH
        assert brk.type.value == "CHoCH"

    def test_capped_to_most_recent_ten(self):
        candles = _staircase()
        breaks = detect_structure_breaks(candles)
        assert len(breaks) == 10
        assert breaks[-1].timestamp == candles[24].timestamp
        assert all(b.direction is Direction.BULLISH for b in breaks)

    def test_short_series(self):
        assert detect_structure_breaks(_base(10)) == []

    def test_window_and_timeframe_from_settings(self):
        settings = EngineSettings(break_window=3, timeframe="15m")
        candles = _base(8)
        candles[4] = _make_candle(4, 100, 103, 99.5, 102, 1500)
        breaks = detect_structure_breaks(candles, settings=settings)
        assert len(breaks) == 1
        assert breaks[0].timeframe == "15m"
