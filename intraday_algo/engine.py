from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Iterable, Iterator

from intraday_algo.broker.base import Bar
from intraday_algo.broker.sim import SimBroker
from intraday_algo.config import TradingConfig
from intraday_algo.instruments import InstrumentSpec, validate_instrument
from intraday_algo.logging_setup import configure_logging
from intraday_algo.oms import OrderManager
from intraday_algo.strategy.base import BarHandler
from intraday_algo.strategy.stochastic_trend import StochasticTrendStrategy

log = logging.getLogger(__name__)


@dataclass
class Engine:
    """
    Drives a bar stream through one BarHandler, one bar at a time.

    Each bar is first shown to the broker (so resting exits can fill) and then
    to the handler. With ``force_close_intraday`` the handler is told to close
    its position on the last bar at or before the session close time
    (``TradingConfig.session_close_time``), which may lie after midnight.
    """

    broker: SimBroker
    config: TradingConfig
    strategy: BarHandler
    _started: bool = False

    def start(self) -> None:
        if self._started:
            return
        self.broker.connect()
        on_fill = getattr(self.strategy, "on_order_filled", None)
        if on_fill is not None:
            self.broker.add_fill_listener(on_fill)
        self.strategy.on_initialize()
        self._started = True
        log.info("Engine started strategy=%s", getattr(self.strategy, "name", "unknown"))

    def stop(self) -> None:
        if not self._started:
            return
        self.broker.disconnect()
        self._started = False

    def run(self, bars: Iterable[Bar]) -> None:
        self.start()
        try:
            for bar, next_bar in _with_lookahead(bars):
                end = is_session_end(
                    bar.timestamp,
                    next_bar.timestamp if next_bar is not None else None,
                    self.config.session_close_time,
                )
                self.step(bar, end_of_session=end)
        finally:
            self.stop()

    def step(self, bar: Bar, *, end_of_session: bool = False) -> None:
        if not self._started:
            raise RuntimeError("Engine is not started")
        self.broker.on_bar(bar)
        self.strategy.on_new_bar(bar)
        if end_of_session and self.config.force_close_intraday:
            if self.strategy.close_position("session end"):
                log.info("Position force-closed at session end %s", bar.timestamp)


def is_session_end(ts: datetime, next_ts: datetime | None, close: time) -> bool:
    """
    True when ``ts`` is the last bar at or before the next session close.

    Without a following bar only a bar stamped exactly at the close ends the
    session; a stream that simply stops leaves the position open.
    """
    close_at = datetime.combine(ts.date(), close, tzinfo=ts.tzinfo)
    if close_at < ts:
        close_at += timedelta(days=1)
    if next_ts is None:
        return ts == close_at
    return next_ts > close_at


def _with_lookahead(bars: Iterable[Bar]) -> Iterator[tuple[Bar, Bar | None]]:
    it = iter(bars)
    try:
        current = next(it)
    except StopIteration:
        return
    for nxt in it:
        yield current, nxt
        current = nxt
    yield current, None


def build_engine(cfg: TradingConfig, *, broker: SimBroker | None = None, setup_logging: bool = True) -> Engine:
    if setup_logging:
        configure_logging(level=cfg.log_level, log_file=cfg.log_file)
    broker = broker or SimBroker()
    instrument = validate_instrument(
        InstrumentSpec(kind=cfg.instrument_kind, symbol=cfg.symbol, tick_size=cfg.tick_size)
    )
    oms = OrderManager(broker, cfg)
    strategy = StochasticTrendStrategy(oms=oms, instrument=instrument, params=cfg.strategy)
    return Engine(broker=broker, config=cfg, strategy=strategy)
