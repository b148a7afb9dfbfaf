from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from intraday_algo.market_data import BarSeries


def rolling_sma(values: Sequence[float], period: int) -> np.ndarray:
    """Simple moving average aligned to each index (NaN until enough bars).

    Leading NaNs in ``values`` are skipped, so smoothing an indicator that is
    itself still warming up works.
    """
    arr = np.asarray(values, dtype=float)
    n = len(arr)
    out = np.full(n, np.nan)
    if period <= 0:
        return out
    valid = np.flatnonzero(~np.isnan(arr))
    if len(valid) == 0:
        return out
    start = int(valid[0])
    tail = arr[start:]
    if len(tail) < period:
        return out
    cumsum = np.cumsum(tail)
    out[start + period - 1 :] = (cumsum[period - 1 :] - np.concatenate(([0.0], cumsum[:-period]))) / period
    return out


def _rolling_extreme(values: np.ndarray, period: int, fn) -> np.ndarray:
    n = len(values)
    out = np.full(n, np.nan)
    if n < period or period <= 0:
        return out
    windows = np.lib.stride_tricks.sliding_window_view(values, period)
    out[period - 1 :] = fn(windows, axis=1)
    return out


def stochastic(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int,
    *,
    k_smooth: int = 3,
    d_period: int = 3,
) -> tuple[np.ndarray, np.ndarray]:
    """Slow stochastic oscillator, returns (%K, %D) in [0, 100].

    fast %K = 100 * (close - lowest low) / (highest high - lowest low)
    slow %K = SMA(fast %K, k_smooth)
    %D      = SMA(slow %K, d_period)

    A flat window (highest high == lowest low) gives a fast %K of 50.
    """
    h = np.asarray(highs, dtype=float)
    l = np.asarray(lows, dtype=float)
    c = np.asarray(closes, dtype=float)

    hh = _rolling_extreme(h, period, np.max)
    ll = _rolling_extreme(l, period, np.min)
    span = hh - ll

    fast_k = np.full(len(c), np.nan)
    ok = ~np.isnan(span)
    flat = ok & (span == 0.0)
    moving = ok & (span != 0.0)
    fast_k[moving] = 100.0 * (c[moving] - ll[moving]) / span[moving]
    fast_k[flat] = 50.0

    slow_k = rolling_sma(fast_k, k_smooth)
    d = rolling_sma(slow_k, d_period)
    return slow_k, d


def _dx(plus_dm: float, minus_dm: float, tr: float) -> float:
    if tr == 0.0:
        return 0.0
    plus_di = 100.0 * plus_dm / tr
    minus_di = 100.0 * minus_dm / tr
    di_sum = plus_di + minus_di
    if di_sum == 0.0:
        return 0.0
    return 100.0 * abs(plus_di - minus_di) / di_sum


def adx(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = 14) -> np.ndarray:
    """Average Directional Index with Wilder smoothing.

    NaN until index ``2 * period - 1``: the first ``period`` bars seed the
    smoothed +DM/-DM/TR sums, the next ``period`` DX values seed the ADX.
    """
    h = np.asarray(highs, dtype=float)
    l = np.asarray(lows, dtype=float)
    c = np.asarray(closes, dtype=float)
    n = len(c)
    out = np.full(n, np.nan)
    if period <= 0 or n < 2 * period:
        return out

    up = h[1:] - h[:-1]
    down = l[:-1] - l[1:]
    plus_dm = np.where((up > down) & (up > 0), up, 0.0)
    minus_dm = np.where((down > up) & (down > 0), down, 0.0)
    tr = np.maximum(h[1:] - l[1:], np.maximum(np.abs(h[1:] - c[:-1]), np.abs(l[1:] - c[:-1])))

    # diff index i belongs to bar i + 1
    s_tr = float(tr[:period].sum())
    s_plus = float(plus_dm[:period].sum())
    s_minus = float(minus_dm[:period].sum())

    dx = np.full(n, np.nan)
    dx[period] = _dx(s_plus, s_minus, s_tr)
    for i in range(period, len(tr)):
        s_tr = s_tr - s_tr / period + float(tr[i])
        s_plus = s_plus - s_plus / period + float(plus_dm[i])
        s_minus = s_minus - s_minus / period + float(minus_dm[i])
        dx[i + 1] = _dx(s_plus, s_minus, s_tr)

    first = 2 * period - 1
    out[first] = float(np.mean(dx[period : first + 1]))
    for i in range(first + 1, n):
        out[i] = (out[i - 1] * (period - 1) + dx[i]) / period
    return out


class IndicatorSet:
    """
    The three series the strategy reads, recomputed from the bar history on
    every new bar. Accessors use the newest-first convention of ``BarSeries``
    and return NaN while an indicator is warming up.
    """

    def __init__(
        self,
        *,
        stochastic_period: int,
        adx_period: int,
        sma_period: int,
        stochastic_k_smooth: int = 3,
        stochastic_d_period: int = 3,
    ) -> None:
        self.stochastic_period = int(stochastic_period)
        self.adx_period = int(adx_period)
        self.sma_period = int(sma_period)
        self.stochastic_k_smooth = int(stochastic_k_smooth)
        self.stochastic_d_period = int(stochastic_d_period)
        self._d = np.full(0, np.nan)
        self._adx = np.full(0, np.nan)
        self._sma = np.full(0, np.nan)

    def update(self, bars: BarSeries) -> None:
        h, l, c = bars.highs(), bars.lows(), bars.closes()
        _k, self._d = stochastic(
            h, l, c,
            self.stochastic_period,
            k_smooth=self.stochastic_k_smooth,
            d_period=self.stochastic_d_period,
        )
        self._adx = adx(h, l, c, self.adx_period)
        self._sma = rolling_sma(c, self.sma_period)

    def stochastic_d(self, n: int = 0) -> float:
        return _ago(self._d, n)

    def adx(self, n: int = 0) -> float:
        return _ago(self._adx, n)

    def sma(self, n: int = 0) -> float:
        return _ago(self._sma, n)


def _ago(series: np.ndarray, n: int) -> float:
    if n < 0 or n >= len(series):
        return math.nan
    return float(series[-1 - n])
