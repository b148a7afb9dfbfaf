from __future__ import annotations

from enum import Enum

from intraday_algo.filters import TradingGates


class EntrySignal(Enum):
    NONE = "none"
    LONG = "long"
    SHORT = "short"


def crossed_above(prev: float, curr: float, level: float) -> bool:
    return prev <= level and curr > level


def crossed_below(prev: float, curr: float, level: float) -> bool:
    return prev >= level and curr < level


def detect_entry(
    gates: TradingGates,
    d_prev: float,
    d_curr: float,
    *,
    buy_signal: float,
    sell_signal: float,
) -> EntrySignal:
    """
    %D threshold crossing on an enabled side.

    Does not look at the open position: callers must only act on the result
    when flat.
    """
    if gates.long_enabled and crossed_above(d_prev, d_curr, buy_signal):
        return EntrySignal.LONG
    if gates.short_enabled and crossed_below(d_prev, d_curr, sell_signal):
        return EntrySignal.SHORT
    return EntrySignal.NONE
