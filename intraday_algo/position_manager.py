"""
Position & order manager.

Owns the open position, its OCO exit pair and the trailing-stop state for one
instrument. States:

    FLAT  --open_long-->   LONG   (market buy + stop-sell / limit-sell pair)
    FLAT  --open_short-->  SHORT  (market sell + stop-buy / limit-buy pair)
    LONG  --on_bar-->      LONG   (stop trailed up) | FLAT (stop would cross price)
    SHORT --on_bar-->      SHORT  (stop trailed down) | FLAT
    LONG/SHORT --exit leg filled / close_position / broker flat--> FLAT

Order-submission failures propagate as OrderSubmissionError and leave the
manager's state as it was before the call; the next bar re-evaluates. A
rejected flattening order leaves the exit pair in place and is retried on
every following bar until it goes through.
"""

from __future__ import annotations

import itertools
import logging
from enum import Enum

from intraday_algo.broker.base import OrderSubmissionError
from intraday_algo.config import StrategyParams
from intraday_algo.instruments import InstrumentSpec
from intraday_algo.oms import OrderManager
from intraday_algo.orders import (
    LONG,
    SHORT,
    ExitLeg,
    OcoPair,
    TradeIntent,
    TrailAction,
    TrailDecision,
    TrailingState,
    entry_intents,
    exit_intent,
    trail,
)

log = logging.getLogger(__name__)


class PositionState(Enum):
    FLAT = 0
    LONG = LONG
    SHORT = SHORT


_TRAILING_LABELS = {
    LONG: "Trailing stop long exit",
    SHORT: "Trailing stop short exit",
}


class PositionManager:
    def __init__(self, oms: OrderManager, instrument: InstrumentSpec, params: StrategyParams) -> None:
        self._oms = oms
        self._instrument = instrument
        self._params = params
        self._state = PositionState.FLAT
        self._pair: OcoPair | None = None
        self._trailing: TrailingState | None = None
        self._pending_exit: TradeIntent | None = None
        self._oca_ids = itertools.count(1)

    @property
    def state(self) -> PositionState:
        return self._state

    @property
    def position(self) -> int:
        return self._state.value

    @property
    def is_flat(self) -> bool:
        return self._state is PositionState.FLAT

    @property
    def pair(self) -> OcoPair | None:
        return self._pair

    @property
    def pending_exit(self) -> TradeIntent | None:
        return self._pending_exit

    @property
    def trailing(self) -> TrailingState | None:
        return self._trailing

    @property
    def stop_margin(self) -> float:
        return self._instrument.ticks_to_price(self._params.trailing_stop_ticks)

    @property
    def profit_margin(self) -> float:
        return self._instrument.ticks_to_price(self._params.profit_target_ticks)

    def open_long(self, close: float) -> bool:
        return self._open(LONG, close)

    def open_short(self, close: float) -> bool:
        return self._open(SHORT, close)

    def on_bar(self, close: float) -> TrailDecision | None:
        """Re-evaluate the trailing stop against the new close. No-op when flat."""
        if self.is_flat or self._pair is None or self._trailing is None:
            return None

        if self._pending_exit is not None:
            log.info("Retrying rejected exit for %s position at close=%s", self._state.name, close)
            state = self._trailing
            self._flatten(self._pending_exit)
            return TrailDecision(TrailAction.FLATTEN, state)

        direction = self._state.value
        decision = trail(direction, self._trailing, self._pair.stop.price, close)

        if decision.action is TrailAction.HOLD:
            return decision

        if decision.action is TrailAction.MOVE_STOP:
            stop = self._pair.stop
            moved = stop.intent.repriced(float(decision.stop_price), _TRAILING_LABELS[direction])
            self._oms.modify(stop.order_id, moved.to_order_request())
            self._pair = self._pair.with_stop(ExitLeg(stop.order_id, moved))
            self._trailing = decision.state
            log.info(
                "Trailing stop moved %s -> %s (close=%s acceleration=%s)",
                stop.price, decision.stop_price, close, decision.state.acceleration,
            )
            return decision

        log.info(
            "Trailing stop would reach market price (stop=%s acceleration=%s close=%s); closing %s",
            self._pair.stop.price, decision.state.acceleration, close, self._state.name,
        )
        self._flatten(exit_intent(direction, self._instrument))
        return decision

    def close_position(self, reason: str = "forced close") -> bool:
        """
        Close whatever is open right now. Safe to call repeatedly: returns
        False when there was nothing to close.
        """
        if not self.is_flat:
            log.info("Closing %s position: %s", self._state.name, reason)
            self._flatten(exit_intent(self._state.value, self._instrument))
            return True

        held = self._oms.position(self._instrument)
        if held == 0 or self._oms.dry_run:
            return False
        direction = LONG if held > 0 else SHORT
        log.warning("Closing untracked position %+g: %s", held, reason)
        self._oms.submit(exit_intent(direction, self._instrument).to_order_request())
        return True

    def on_order_filled(self, order_id: str) -> None:
        """Fill notification from the order venue."""
        if self._pair is None or not self._pair.contains(order_id):
            return
        filled = self._pair.stop if self._pair.stop.order_id == str(order_id) else self._pair.profit
        sibling = self._pair.sibling_of(order_id)
        log.info("Exit filled orderId=%s ref=%s; %s position closed", order_id, filled.label, self._state.name)
        try:
            self._cancel_if_open(sibling)
        except OrderSubmissionError as exc:
            log.error("Could not cancel OCO sibling orderId=%s: %s", sibling.order_id, exc)
        self._clear()

    def reconcile(self, broker_position: float) -> None:
        """Bring the manager in line with the position the broker reports."""
        if self._oms.dry_run:
            return
        if not self.is_flat and broker_position == 0:
            log.info("Broker reports flat while %s; discarding exit pair", self._state.name)
            if self._pair is not None:
                for leg in self._pair.legs():
                    self._cancel_if_open(leg)
            self._clear()
        elif self.is_flat and broker_position != 0:
            log.warning("Broker reports untracked position %+g; entries blocked until flat", broker_position)

    def _open(self, direction: int, close: float) -> bool:
        side_name = PositionState(direction).name
        if not self.is_flat:
            log.warning("Ignoring %s entry signal: already %s (max open position is 1)", side_name, self._state.name)
            return False

        oca_group = f"oco-{self._instrument.symbol}-{next(self._oca_ids)}"
        entry, stop, profit = entry_intents(
            direction,
            self._instrument,
            close,
            stop_margin=self.stop_margin,
            profit_margin=self.profit_margin,
            oca_group=oca_group,
        )

        self._oms.submit(entry.to_order_request())
        pair = self._place_exits(direction, stop, profit, oca_group)

        self._pair = pair
        self._trailing = TrailingState(acceleration=self._params.trailing_acceleration, furthest_close=close)
        self._state = PositionState(direction)
        log.info(
            "Entered %s at close=%s stop=%s target=%s oca=%s",
            side_name, close, pair.stop.price, pair.profit.price, oca_group,
        )
        return True

    def _place_exits(self, direction: int, stop: TradeIntent, profit: TradeIntent, oca_group: str) -> OcoPair:
        placed: list[ExitLeg] = []
        try:
            for intent in (stop, profit):
                res = self._oms.submit(intent.to_order_request())
                placed.append(ExitLeg(res.order_id, intent))
        except OrderSubmissionError as exc:
            log.error("Exit placement failed after entry (%s); flattening the unprotected position", exc)
            for leg in placed:
                self._oms.cancel(leg.order_id)
            self._oms.submit(exit_intent(direction, self._instrument).to_order_request())
            raise
        return OcoPair(stop=placed[0], profit=placed[1], oca_group=oca_group)

    def _flatten(self, exit_order: TradeIntent) -> None:
        # exit first: on rejection the stop/target pair still protects the position
        held = self._oms.position(self._instrument)
        if held * self._state.value > 0 or self._oms.dry_run:
            try:
                self._oms.submit(exit_order.to_order_request())
            except OrderSubmissionError:
                self._pending_exit = exit_order
                log.error("Exit order rejected; %s position kept with its exit pair, retrying next bar", self._state.name)
                raise
        else:
            log.info("Position already flat at the broker; exit order not needed")

        legs = self._pair.legs() if self._pair is not None else ()
        self._clear()
        failed: OrderSubmissionError | None = None
        for leg in legs:
            try:
                self._cancel_if_open(leg)
            except OrderSubmissionError as exc:
                log.error("Could not cancel exit leg orderId=%s after closing: %s", leg.order_id, exc)
                failed = failed or exc
        if failed is not None:
            raise failed

    def _cancel_if_open(self, leg: ExitLeg) -> None:
        if self._oms.status(leg.order_id).is_terminal:
            return
        self._oms.cancel(leg.order_id)

    def _clear(self) -> None:
        self._state = PositionState.FLAT
        self._pair = None
        self._trailing = None
        self._pending_exit = None
