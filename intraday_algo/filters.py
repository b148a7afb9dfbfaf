"""
Entry filters.

Four independent categories gate new entries on every bar:

1. Day of week   - the bar's weekday must have its flag enabled
2. Session time  - the bar's time of day must be inside the trading session
3. Volatility    - max(High) - min(Low) over the lookback must exceed a minimum
4. Trend         - ADX above the side's minimum and SMA sloping the same way

All four must pass for either side to be enabled. The trend category is only
evaluated when flat, and long is tried before short, so at most one side is
enabled per bar.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time

from intraday_algo.config import StrategyParams
from intraday_algo.market_data import BarSeries

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TradingGates:
    long_enabled: bool = False
    short_enabled: bool = False

    @property
    def any_enabled(self) -> bool:
        return self.long_enabled or self.short_enabled


NO_TRADING = TradingGates()


def is_day_enabled(ts: datetime, params: StrategyParams) -> bool:
    # weekends have no flag and always pass
    return params.day_flags().get(ts.weekday(), True)


def is_time_enabled(ts: datetime, start: time, end: time) -> bool:
    now = ts.time()
    if start <= end:
        return start <= now <= end
    return now >= start or now <= end


def volatility_range(bars: BarSeries, period: int) -> float:
    return bars.highest_high(period) - bars.lowest_low(period)


def is_adx_enabled_for_long(adx_value: float, params: StrategyParams) -> bool:
    return adx_value >= params.min_adx_long


def is_adx_enabled_for_short(adx_value: float, params: StrategyParams) -> bool:
    return adx_value >= params.min_adx_short


def is_bullish_trend(sma_now: float, sma_prev: float) -> bool:
    return sma_now > sma_prev


def is_bearish_trend(sma_now: float, sma_prev: float) -> bool:
    return sma_now < sma_prev


def evaluate_filters(
    *,
    params: StrategyParams,
    bars: BarSeries,
    adx_value: float,
    sma_now: float,
    sma_prev: float,
    position: float,
) -> TradingGates:
    ts = bars.current().timestamp

    if not is_day_enabled(ts, params):
        log.debug("Entries disabled at %s: day-of-week filter (%s)", ts, ts.strftime("%A"))
        return NO_TRADING

    if not is_time_enabled(ts, params.trading_time_start, params.trading_time_end):
        log.debug(
            "Entries disabled at %s: outside session %s-%s",
            ts, params.trading_time_start, params.trading_time_end,
        )
        return NO_TRADING

    rng = volatility_range(bars, params.range_period)
    if not rng > params.min_range:
        log.debug("Entries disabled at %s: range %.6f <= minimum %.6f", ts, rng, params.min_range)
        return NO_TRADING

    if position != 0:
        return NO_TRADING

    if is_adx_enabled_for_long(adx_value, params) and is_bullish_trend(sma_now, sma_prev):
        return TradingGates(long_enabled=True)
    if is_adx_enabled_for_short(adx_value, params) and is_bearish_trend(sma_now, sma_prev):
        return TradingGates(short_enabled=True)

    log.debug("Entries disabled at %s: trend filter (adx=%.2f sma=%.6f prev=%.6f)", ts, adx_value, sma_now, sma_prev)
    return NO_TRADING
