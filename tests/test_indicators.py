import logging
import math
import unittest
from datetime import datetime, timedelta

import numpy as np

from intraday_algo.broker.base import Bar
from intraday_algo.indicators import IndicatorSet, adx, rolling_sma, stochastic
from intraday_algo.market_data import BarSeries

logging.disable(logging.CRITICAL)

T0 = datetime(2024, 1, 1, 19, 0)


def series(closes):
    return BarSeries(
        [Bar(T0 + timedelta(minutes=i), c, c, c, c) for i, c in enumerate(closes)]
    )


class TestRollingSMA(unittest.TestCase):
    def test_basic(self):
        out = rolling_sma([1, 2, 3, 4, 5], 3)
        self.assertTrue(np.isnan(out[:2]).all())
        np.testing.assert_allclose(out[2:], [2.0, 3.0, 4.0])

    def test_skips_leading_nan(self):
        out = rolling_sma([np.nan, np.nan, 2, 4, 6], 2)
        self.assertTrue(np.isnan(out[:3]).all())
        np.testing.assert_allclose(out[3:], [3.0, 5.0])

    def test_too_short(self):
        self.assertTrue(np.isnan(rolling_sma([1, 2], 3)).all())


class TestStochastic(unittest.TestCase):
    def test_rising_series_is_overbought(self):
        closes = [float(i) for i in range(1, 16)]
        k, d = stochastic(closes, closes, closes, 5)
        # fast %K from index 4, slow %K from 6, %D from 8
        self.assertTrue(np.isnan(k[:6]).all())
        self.assertTrue(np.isnan(d[:8]).all())
        np.testing.assert_allclose(d[8:], 100.0)

    def test_flat_window_is_fifty(self):
        closes = [10.0] * 12
        _k, d = stochastic(closes, closes, closes, 4)
        np.testing.assert_allclose(d[~np.isnan(d)], 50.0)

    def test_falling_series_is_oversold(self):
        closes = [float(i) for i in range(20, 5, -1)]
        _k, d = stochastic(closes, closes, closes, 5)
        np.testing.assert_allclose(d[8:], 0.0)


class TestADX(unittest.TestCase):
    def test_steady_trend_is_strong(self):
        closes = [100.0 + i for i in range(40)]
        out = adx(closes, closes, closes, 14)
        self.assertTrue(np.isnan(out[:27]).all())
        self.assertAlmostEqual(out[27], 100.0)
        np.testing.assert_allclose(out[27:], 100.0)

    def test_short_input_is_nan(self):
        closes = [100.0 + i for i in range(20)]
        self.assertTrue(np.isnan(adx(closes, closes, closes, 14)).all())

    def test_bounded(self):
        rng = np.random.default_rng(7)
        closes = 100.0 + np.cumsum(rng.normal(0, 1, 200))
        highs = closes + rng.uniform(0, 1, 200)
        lows = closes - rng.uniform(0, 1, 200)
        out = adx(highs, lows, closes, 14)
        valid = out[~np.isnan(out)]
        self.assertTrue(len(valid) > 0)
        self.assertTrue(((valid >= 0) & (valid <= 100)).all())


class TestIndicatorSet(unittest.TestCase):
    def test_newest_first_accessors(self):
        bars = series([float(i) for i in range(1, 31)])
        ind = IndicatorSet(stochastic_period=5, adx_period=5, sma_period=3)
        ind.update(bars)
        self.assertAlmostEqual(ind.sma(0), 29.0)
        self.assertAlmostEqual(ind.sma(1), 28.0)
        self.assertAlmostEqual(ind.stochastic_d(0), 100.0)
        self.assertAlmostEqual(ind.adx(0), 100.0)

    def test_out_of_range_is_nan(self):
        ind = IndicatorSet(stochastic_period=5, adx_period=5, sma_period=3)
        self.assertTrue(math.isnan(ind.sma(0)))
        ind.update(series([1.0, 2.0]))
        self.assertTrue(math.isnan(ind.sma(0)))
        self.assertTrue(math.isnan(ind.stochastic_d(5)))
        self.assertTrue(math.isnan(ind.adx(0)))


class TestBarSeries(unittest.TestCase):
    def test_newest_first(self):
        bars = series([1.0, 2.0, 3.0])
        self.assertEqual(bars.close(0), 3.0)
        self.assertEqual(bars.bar(2).close, 1.0)
        with self.assertRaises(IndexError):
            bars.bar(3)
        np.testing.assert_allclose(bars.closes(), [1.0, 2.0, 3.0])

    def test_rejects_out_of_order_and_invalid_bars(self):
        bars = series([1.0])
        with self.assertRaises(ValueError):
            bars.append(Bar(T0, 1.0, 1.0, 1.0, 1.0))
        with self.assertRaises(ValueError):
            bars.append(Bar(T0 + timedelta(minutes=5), 1.0, 0.5, 1.5, 1.0))

    def test_extremes_use_available_bars(self):
        bars = BarSeries([
            Bar(T0, 1.0, 2.0, 0.5, 1.0),
            Bar(T0 + timedelta(minutes=1), 1.0, 3.0, 0.8, 1.0),
        ])
        self.assertEqual(bars.highest_high(10), 3.0)
        self.assertEqual(bars.lowest_low(10), 0.5)
        self.assertEqual(bars.highest_high(1), 3.0)
        self.assertEqual(bars.lowest_low(1), 0.8)
