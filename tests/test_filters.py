import logging
import math
import unittest
from datetime import datetime, time, timedelta

from intraday_algo.broker.base import Bar
from intraday_algo.config import StrategyParams
from intraday_algo.filters import (
    NO_TRADING,
    TradingGates,
    evaluate_filters,
    is_day_enabled,
    is_time_enabled,
    volatility_range,
)
from intraday_algo.market_data import BarSeries

logging.disable(logging.CRITICAL)

MONDAY_EVENING = datetime(2024, 1, 1, 23, 0)
WEDNESDAY_EVENING = datetime(2024, 1, 3, 23, 0)
SATURDAY_EVENING = datetime(2024, 1, 6, 23, 0)


def bars_ending_at(ts, *, spread=1.0, count=12):
    out = BarSeries()
    for i in range(count):
        t = ts - timedelta(minutes=count - 1 - i)
        mid = 100.0 + (spread if i % 2 else 0.0)
        out.append(Bar(t, mid, mid, mid, mid))
    return out


def evaluate(params, bars, *, adx_value=30.0, sma_now=101.0, sma_prev=100.0, position=0):
    return evaluate_filters(
        params=params,
        bars=bars,
        adx_value=adx_value,
        sma_now=sma_now,
        sma_prev=sma_prev,
        position=position,
    )


class TestDayAndTime(unittest.TestCase):
    def test_day_flags(self):
        p = StrategyParams()
        self.assertTrue(is_day_enabled(MONDAY_EVENING, p))
        self.assertFalse(is_day_enabled(WEDNESDAY_EVENING, p))
        self.assertTrue(is_day_enabled(SATURDAY_EVENING, p))

    def test_session_wrapping_midnight(self):
        start, end = time(18, 0), time(6, 0)
        self.assertTrue(is_time_enabled(datetime(2024, 1, 1, 23, 0), start, end))
        self.assertTrue(is_time_enabled(datetime(2024, 1, 1, 2, 0), start, end))
        self.assertTrue(is_time_enabled(datetime(2024, 1, 1, 18, 0), start, end))
        self.assertTrue(is_time_enabled(datetime(2024, 1, 1, 6, 0), start, end))
        self.assertFalse(is_time_enabled(datetime(2024, 1, 1, 12, 0), start, end))

    def test_session_within_day(self):
        start, end = time(6, 0), time(18, 0)
        self.assertTrue(is_time_enabled(datetime(2024, 1, 1, 12, 0), start, end))
        self.assertFalse(is_time_enabled(datetime(2024, 1, 1, 20, 0), start, end))

    def test_volatility_range(self):
        bars = bars_ending_at(MONDAY_EVENING, spread=0.5)
        self.assertAlmostEqual(volatility_range(bars, 10), 0.5)


class TestEvaluateFilters(unittest.TestCase):
    def setUp(self):
        self.params = StrategyParams()
        self.bars = bars_ending_at(MONDAY_EVENING)

    def test_all_pass_long(self):
        self.assertEqual(evaluate(self.params, self.bars), TradingGates(long_enabled=True))

    def test_all_pass_short(self):
        gates = evaluate(self.params, self.bars, sma_now=99.0, sma_prev=100.0)
        self.assertEqual(gates, TradingGates(short_enabled=True))

    def test_each_filter_blocks_alone(self):
        cases = {
            "day": dict(bars=bars_ending_at(WEDNESDAY_EVENING)),
            "time": dict(bars=bars_ending_at(datetime(2024, 1, 1, 12, 0))),
            "range": dict(bars=bars_ending_at(MONDAY_EVENING, spread=0.001)),
            "adx": dict(adx_value=5.0),
            "flat sma": dict(sma_now=100.0, sma_prev=100.0),
            "in position": dict(position=1),
        }
        for name, overrides in cases.items():
            with self.subTest(filter=name):
                bars = overrides.pop("bars", self.bars)
                gates = evaluate(self.params, bars, **overrides)
                self.assertEqual(gates, NO_TRADING)
                self.assertFalse(gates.any_enabled)

    def test_range_must_strictly_exceed_minimum(self):
        params = StrategyParams(min_range=1.0)
        self.assertEqual(evaluate(params, bars_ending_at(MONDAY_EVENING, spread=1.0)), NO_TRADING)

    def test_adx_threshold_per_side(self):
        params = StrategyParams(min_adx_long=40.0, min_adx_short=20.0)
        self.assertEqual(evaluate(params, self.bars, adx_value=30.0), NO_TRADING)
        gates = evaluate(params, self.bars, adx_value=30.0, sma_now=99.0, sma_prev=100.0)
        self.assertTrue(gates.short_enabled)

    def test_warm_up_nan_blocks(self):
        self.assertEqual(evaluate(self.params, self.bars, adx_value=math.nan), NO_TRADING)
        self.assertEqual(evaluate(self.params, self.bars, sma_prev=math.nan), NO_TRADING)
