"""Tests for the forward outcome simulation."""

import pytest

from pivotscan.backtest.simulator import (
    OUTCOME_R,
    STOP_HIT,
    TARGET_HIT,
    UNDECIDED,
    check_exit,
    simulate_outcome,
)
from pivotscan.strategy.models import LONG, SHORT, CandleData


def _make_candle(time, o, h, l, c):
    return CandleData(time=time, open=o, high=h, low=l, close=c)


def _quiet(time, price=100.0):
    return _make_candle(time, price, price + 0.2, price - 0.2, price)


class TestCheckExit:
    def test_long_stop_wins_same_candle(self):
        candle = _make_candle("10:00 AM", 100, 103, 98, 100)
        assert check_exit(LONG, sl=99, tp=102, candle=candle) == STOP_HIT

    def test_short_stop_wins_same_candle(self):
        candle = _make_candle("10:00 AM", 100, 102, 97, 100)
        assert check_exit(SHORT, sl=101, tp=98, candle=candle) == STOP_HIT

    def test_touch_counts(self):
        assert check_exit(LONG, 99, 102, _make_candle("10:00 AM", 100, 102, 99.5, 101)) == TARGET_HIT
        assert check_exit(SHORT, 101, 98, _make_candle("10:00 AM", 100, 100.5, 98, 99)) == TARGET_HIT

    def test_no_touch(self):
        assert check_exit(LONG, 99, 102, _quiet("10:00 AM")) is None

    def test_invalid_direction(self):
        with pytest.raises(ValueError, match="direction"):
            check_exit("FLAT", 99, 102, _quiet("10:00 AM"))


class TestSimulateOutcome:
    def test_long_target_hit(self):
        candles = [
            _quiet("9:55 AM"),
            _quiet("10:00 AM"),
            _make_candle("10:05 AM", 100, 102.5, 99.8, 102),
        ]
        result = simulate_outcome(LONG, 100.0, 99.5, 101.0, candles, 1)
        assert result.outcome == TARGET_HIT
        assert result.exit_time == "10:05 AM"
        assert result.exit_price == 101.0
        assert result.candles_examined == 2

    def test_long_stop_hit(self):
        candles = [_quiet("10:00 AM"), _make_candle("10:05 AM", 100, 100.1, 99.4, 99.6)]
        result = simulate_outcome(LONG, 100.0, 99.5, 101.0, candles, 0)
        assert result.outcome == STOP_HIT
        assert result.exit_price == 99.5

    def test_short_target_and_stop(self):
        down = [_quiet("10:00 AM"), _make_candle("10:05 AM", 100, 100.1, 98.9, 99)]
        assert simulate_outcome(SHORT, 100.0, 100.5, 99.0, down, 0).outcome == TARGET_HIT
        up = [_make_candle("10:00 AM", 100, 100.6, 99.9, 100.4)]
        assert simulate_outcome(SHORT, 100.0, 100.5, 99.0, up, 0).outcome == STOP_HIT

    def test_start_index_skips_earlier_candles(self):
        candles = [
            _make_candle("9:30 AM", 100, 105, 95, 100),  # would hit both
            _quiet("9:35 AM"),
        ]
        result = simulate_outcome(LONG, 100.0, 99.5, 101.0, candles, 1)
        assert result.outcome == UNDECIDED

    def test_cutoff_stops_scan(self):
        candles = [
            _quiet("2:50 PM"),
            _quiet("2:55 PM"),
            _make_candle("3:00 PM", 100, 105, 100, 104),  # target, but after cutoff
            _make_candle("3:05 PM", 100, 105, 100, 104),
        ]
        result = simulate_outcome(LONG, 100.0, 99.5, 101.0, candles, 0)
        assert result.outcome == UNDECIDED
        assert result.candles_examined == 2
        assert result.exit_time == "2:55 PM"
        assert result.exit_price == 100.0

    def test_end_of_data_is_undecided(self):
        result = simulate_outcome(LONG, 100.0, 99.5, 101.0, [_quiet("10:00 AM")], 0)
        assert result.outcome == UNDECIDED
        assert result.exit_time == "10:00 AM"

    def test_nothing_to_examine(self):
        result = simulate_outcome(LONG, 100.0, 99.5, 101.0, [_quiet("10:00 AM")], 1)
        assert result.outcome == UNDECIDED
        assert result.exit_time is None
        assert result.exit_price == 100.0
        assert result.candles_examined == 0

    def test_outcome_r_multiples(self):
        assert OUTCOME_R == {TARGET_HIT: 2, STOP_HIT: -1, UNDECIDED: 0}
