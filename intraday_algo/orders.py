from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from intraday_algo.broker.base import OrderRequest
from intraday_algo.instruments import InstrumentSpec, validate_instrument


LONG = 1
SHORT = -1


@dataclass(frozen=True)
class TradeIntent:
    instrument: InstrumentSpec
    side: str  # BUY|SELL
    quantity: float = 1
    order_type: str = "MKT"
    limit_price: float | None = None
    stop_price: float | None = None
    tif: str = "DAY"
    label: str | None = None
    oca_group: str | None = None

    def to_order_request(self) -> OrderRequest:
        return OrderRequest(
            instrument=validate_instrument(self.instrument),
            side=self.side,
            quantity=self.quantity,
            order_type=self.order_type,
            limit_price=self.limit_price,
            stop_price=self.stop_price,
            tif=self.tif,
            order_ref=self.label,
            oca_group=self.oca_group,
        )

    @property
    def price(self) -> float | None:
        return self.stop_price if self.order_type == "STP" else self.limit_price

    def repriced(self, price: float, label: str | None = None) -> "TradeIntent":
        if self.order_type == "STP":
            return replace(self, stop_price=price, label=label or self.label)
        if self.order_type == "LMT":
            return replace(self, limit_price=price, label=label or self.label)
        raise ValueError("Market orders carry no price")


@dataclass(frozen=True)
class ExitLeg:
    order_id: str
    intent: TradeIntent

    @property
    def price(self) -> float:
        return float(self.intent.price)

    @property
    def label(self) -> str | None:
        return self.intent.label


@dataclass(frozen=True)
class OcoPair:
    """
    Trailing stop + profit target protecting one position. When either leg
    fills, the other must be cancelled.
    """

    stop: ExitLeg
    profit: ExitLeg
    oca_group: str

    def legs(self) -> tuple[ExitLeg, ExitLeg]:
        return (self.stop, self.profit)

    def contains(self, order_id: str) -> bool:
        return str(order_id) in {self.stop.order_id, self.profit.order_id}

    def sibling_of(self, order_id: str) -> ExitLeg:
        if str(order_id) == self.stop.order_id:
            return self.profit
        if str(order_id) == self.profit.order_id:
            return self.stop
        raise KeyError(f"Order {order_id} is not part of OCO group {self.oca_group}")

    def with_stop(self, stop: ExitLeg) -> "OcoPair":
        return replace(self, stop=stop)


@dataclass(frozen=True)
class TrailingState:
    acceleration: float
    furthest_close: float


class TrailAction(Enum):
    HOLD = "hold"
    MOVE_STOP = "move_stop"
    FLATTEN = "flatten"


@dataclass(frozen=True)
class TrailDecision:
    action: TrailAction
    state: TrailingState
    stop_price: float | None = None


def trail(direction: int, state: TrailingState, stop_price: float, close: float) -> TrailDecision:
    """
    One bar of the trailing-stop state machine.

    On a new favourable extreme close the acceleration is multiplied by the
    distance between that close and the resting stop, and the stop is advanced
    by the new acceleration. If the advanced stop would reach the market price
    the position is flattened instead.
    """
    if direction == LONG:
        if not close > state.furthest_close:
            return TrailDecision(TrailAction.HOLD, state)
        furthest = close
        acceleration = state.acceleration * (furthest - stop_price)
        new_state = TrailingState(acceleration=acceleration, furthest_close=furthest)
        if stop_price + acceleration < close:
            return TrailDecision(TrailAction.MOVE_STOP, new_state, stop_price + acceleration)
        return TrailDecision(TrailAction.FLATTEN, new_state)

    if direction == SHORT:
        if not close < state.furthest_close:
            return TrailDecision(TrailAction.HOLD, state)
        furthest = close
        acceleration = state.acceleration * abs(stop_price - furthest)
        new_state = TrailingState(acceleration=acceleration, furthest_close=furthest)
        if stop_price - acceleration > close:
            return TrailDecision(TrailAction.MOVE_STOP, new_state, stop_price - acceleration)
        return TrailDecision(TrailAction.FLATTEN, new_state)

    raise ValueError(f"direction must be {LONG} or {SHORT}, got {direction}")


def entry_intents(
    direction: int,
    instrument: InstrumentSpec,
    close: float,
    *,
    stop_margin: float,
    profit_margin: float,
    oca_group: str,
) -> tuple[TradeIntent, TradeIntent, TradeIntent]:
    """Market entry plus the stop/limit exit pair placed around ``close``."""
    if direction == LONG:
        return (
            TradeIntent(instrument, "BUY", label="Enter long position"),
            TradeIntent(instrument, "SELL", order_type="STP", stop_price=close - stop_margin,
                        label="Catastrophic stop long exit", oca_group=oca_group),
            TradeIntent(instrument, "SELL", order_type="LMT", limit_price=close + profit_margin,
                        label="Profit stop long exit", oca_group=oca_group),
        )
    if direction == SHORT:
        return (
            TradeIntent(instrument, "SELL", label="Enter short position"),
            TradeIntent(instrument, "BUY", order_type="STP", stop_price=close + stop_margin,
                        label="Catastrophic stop short exit", oca_group=oca_group),
            TradeIntent(instrument, "BUY", order_type="LMT", limit_price=close - profit_margin,
                        label="Profit stop short exit", oca_group=oca_group),
        )
    raise ValueError(f"direction must be {LONG} or {SHORT}, got {direction}")


def exit_intent(direction: int, instrument: InstrumentSpec, label: str | None = None) -> TradeIntent:
    if direction == LONG:
        return TradeIntent(instrument, "SELL", label=label or "Exit long position")
    if direction == SHORT:
        return TradeIntent(instrument, "BUY", label=label or "Exit short position")
    raise ValueError(f"direction must be {LONG} or {SHORT}, got {direction}")
