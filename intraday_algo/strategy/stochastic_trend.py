"""
Stochastic %D trend-following strategy.

- Entry: %D crosses above the buy level (long) or below the sell level (short)
- Exit: trailing stop that accelerates as price moves in favour, or the
  profit target; the two exits are linked one-cancels-other
- Filters: day of week, session time, volatility range, ADX minimum level and
  SMA slope (see intraday_algo.filters)
"""

from __future__ import annotations

import logging

from intraday_algo.broker.base import Bar, Fill, OrderSubmissionError
from intraday_algo.config import StrategyParams
from intraday_algo.filters import TradingGates, evaluate_filters
from intraday_algo.indicators import IndicatorSet
from intraday_algo.instruments import InstrumentSpec
from intraday_algo.market_data import BarSeries
from intraday_algo.oms import OrderManager
from intraday_algo.position_manager import PositionManager
from intraday_algo.signals import EntrySignal, detect_entry

log = logging.getLogger(__name__)


class StochasticTrendStrategy:
    name = "stochastic-trend"

    def __init__(
        self,
        *,
        oms: OrderManager,
        instrument: InstrumentSpec,
        params: StrategyParams,
        bars: BarSeries | None = None,
        indicators: IndicatorSet | None = None,
    ) -> None:
        self.oms = oms
        self.instrument = instrument
        self.params = params
        self.bars = bars if bars is not None else BarSeries()
        self.indicators = indicators
        self.manager = PositionManager(oms, instrument, params)
        self.last_gates: TradingGates | None = None
        self.last_signal = EntrySignal.NONE

    def on_initialize(self) -> None:
        log.debug("%s on_initialize() symbol=%s params=%s", self.name, self.instrument.symbol, self.params)
        if self.indicators is None:
            self.indicators = IndicatorSet(
                stochastic_period=self.params.stochastic_period,
                adx_period=self.params.adx_period,
                sma_period=self.params.sma_period,
            )
        if len(self.bars):
            self.indicators.update(self.bars)

    def on_new_bar(self, bar: Bar) -> None:
        if self.indicators is None:
            raise RuntimeError("on_initialize() must run before the first bar")

        # the same bar delivered twice is evaluated again without being re-appended
        if not len(self.bars) or bar != self.bars.current():
            self.bars.append(bar)
            self.indicators.update(self.bars)

        held = self.oms.position(self.instrument)
        self.manager.reconcile(held)

        ind = self.indicators
        gates = evaluate_filters(
            params=self.params,
            bars=self.bars,
            adx_value=ind.adx(0),
            sma_now=ind.sma(0),
            sma_prev=ind.sma(1),
            position=held,
        )
        signal = detect_entry(
            gates,
            ind.stochastic_d(1),
            ind.stochastic_d(0),
            buy_signal=self.params.buy_signal,
            sell_signal=self.params.sell_signal,
        )
        self.last_gates = gates
        self.last_signal = signal

        can_enter = self.manager.is_flat and held == 0
        try:
            if signal is EntrySignal.LONG and can_enter:
                log.info("BUY signal at %s: %%D %.2f -> %.2f crossed %.2f", bar.timestamp, ind.stochastic_d(1), ind.stochastic_d(0), self.params.buy_signal)
                self.manager.open_long(bar.close)
            elif signal is EntrySignal.SHORT and can_enter:
                log.info("SELL signal at %s: %%D %.2f -> %.2f crossed %.2f", bar.timestamp, ind.stochastic_d(1), ind.stochastic_d(0), self.params.sell_signal)
                self.manager.open_short(bar.close)
            else:
                if signal is not EntrySignal.NONE:
                    log.warning("Ignoring %s signal at %s: position already open", signal.name, bar.timestamp)
                self.manager.on_bar(bar.close)
        except OrderSubmissionError as exc:
            log.error("Order submission failed on bar %s (state=%s): %s", bar.timestamp, self.manager.state.name, exc)

    def close_position(self, reason: str = "forced close") -> bool:
        try:
            return self.manager.close_position(reason)
        except OrderSubmissionError as exc:
            log.error("Close position failed (%s): %s", reason, exc)
            return False

    def on_order_filled(self, fill: Fill) -> None:
        self.manager.on_order_filled(fill.order_id)
