from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field

from intraday_algo.broker.base import (
    Bar,
    Fill,
    FillListener,
    OrderRequest,
    OrderResult,
    OrderStatus,
    validate_order_request,
)
from intraday_algo.instruments import InstrumentSpec, validate_instrument

log = logging.getLogger(__name__)


@dataclass
class _SimOrder:
    order_id: str
    request: OrderRequest
    status: str = "Submitted"
    filled: float = 0.0
    avg_fill_price: float | None = None

    def to_status(self) -> OrderStatus:
        return OrderStatus(
            order_id=self.order_id,
            status=self.status,
            filled=self.filled,
            remaining=float(self.request.quantity) - self.filled,
            avg_fill_price=self.avg_fill_price,
        )


@dataclass
class SimBroker:
    """
    In-memory order venue for a single bar-driven instrument.

    - MKT orders fill immediately at the last bar close.
    - STP/LMT orders rest until ``on_bar`` sees the price touch them; when a
      stop and a limit are both touched inside one bar the stop fills first.
    - Orders sharing an ``oca_group`` are one-cancels-all: a fill cancels the
      rest of the group.
    """

    orders: list[OrderRequest] = field(default_factory=list)
    modifications: list[tuple[str, OrderRequest]] = field(default_factory=list)
    cancellations: list[str] = field(default_factory=list)
    fills: list[Fill] = field(default_factory=list)
    _connected: bool = False
    _last_bar: Bar | None = None
    _book: dict[str, _SimOrder] = field(default_factory=dict)
    _positions: dict[tuple[str, str], float] = field(default_factory=dict)
    _listeners: list[FillListener] = field(default_factory=list)
    _reject: list[Exception] = field(default_factory=list)
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1))

    def connect(self) -> None:
        self._connected = True

    def disconnect(self) -> None:
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    def add_fill_listener(self, listener: FillListener) -> None:
        self._listeners.append(listener)

    def reject_next(self, exc: Exception) -> None:
        """Make the next place/modify/cancel call raise ``exc``."""
        self._reject.append(exc)

    def place_order(self, req: OrderRequest) -> OrderResult:
        self._check_call()
        req = validate_order_request(req)
        if req.order_type == "MKT" and self._last_bar is None:
            raise RuntimeError("SimBroker has no price to fill a market order (call on_bar first)")
        order_id = f"sim-{next(self._ids)}"
        order = _SimOrder(order_id=order_id, request=req)
        self._book[order_id] = order
        self.orders.append(req)
        log.debug("SIM accepted orderId=%s %s", order_id, req)

        if req.order_type == "MKT":
            self._fill(order, self._last_bar.close, self._last_bar)
        return OrderResult(order_id=order_id, status=order.status)

    def modify_order(self, order_id: str, new_req: OrderRequest) -> OrderResult:
        self._check_call()
        new_req = validate_order_request(new_req)
        order = self._book.get(str(order_id))
        if order is None:
            raise KeyError(f"Unknown order_id: {order_id}")
        if order.to_status().is_terminal:
            raise RuntimeError(f"Cannot modify order in status {order.status}: {order_id}")
        order.request = new_req
        self.modifications.append((str(order_id), new_req))
        return OrderResult(order_id=str(order_id), status=order.status)

    def cancel_order(self, order_id: str) -> None:
        self._check_call()
        order = self._book.get(str(order_id))
        if order is None:
            raise KeyError(f"Unknown order_id: {order_id}")
        if not order.to_status().is_terminal:
            order.status = "Cancelled"
            self.cancellations.append(str(order_id))

    def get_order_status(self, order_id: str) -> OrderStatus:
        order = self._book.get(str(order_id))
        if order is None:
            raise KeyError(f"Unknown order_id: {order_id}")
        return order.to_status()

    def list_open_order_statuses(self) -> list[OrderStatus]:
        return [o.to_status() for o in self._book.values() if not o.to_status().is_terminal]

    def get_position(self, instrument: InstrumentSpec) -> float:
        return self._positions.get(_key(instrument), 0.0)

    def on_bar(self, bar: Bar) -> None:
        """Advance the simulated market by one bar and fill any touched resting orders."""
        self._last_bar = bar
        resting = [o for o in self._book.values() if not o.to_status().is_terminal]
        # stops before limits: conservative when both legs are touched in one bar
        resting.sort(key=lambda o: 0 if o.request.order_type == "STP" else 1)
        for order in resting:
            if order.to_status().is_terminal:
                continue
            px = _touched_price(order.request, bar)
            if px is not None:
                self._fill(order, px, bar)

    def _fill(self, order: _SimOrder, price: float, bar: Bar) -> None:
        req = order.request
        qty = float(req.quantity)
        order.status = "Filled"
        order.filled = qty
        order.avg_fill_price = float(price)

        key = _key(req.instrument)
        delta = qty if req.side == "BUY" else -qty
        self._positions[key] = self._positions.get(key, 0.0) + delta

        if req.oca_group:
            for other in self._book.values():
                if other is order or other.request.oca_group != req.oca_group:
                    continue
                if not other.to_status().is_terminal:
                    other.status = "Cancelled"

        fill = Fill(
            order_id=order.order_id,
            side=req.side,
            quantity=qty,
            price=float(price),
            timestamp=bar.timestamp,
            order_ref=req.order_ref,
        )
        self.fills.append(fill)
        log.info("SIM fill orderId=%s side=%s qty=%s px=%s ref=%s", fill.order_id, fill.side, qty, price, req.order_ref)
        for listener in list(self._listeners):
            listener(fill)

    def _check_call(self) -> None:
        if not self._connected:
            raise RuntimeError("Broker is not connected")
        if self._reject:
            raise self._reject.pop(0)

    def _inject_position(self, instrument: InstrumentSpec, quantity: float) -> None:
        self._positions[_key(instrument)] = float(quantity)

    def _inject_order_status(self, order_id: str, status: str) -> None:
        self._book[str(order_id)].status = str(status)


def _key(instrument: InstrumentSpec) -> tuple[str, str]:
    inst = validate_instrument(instrument)
    return (inst.kind, inst.symbol)


def _touched_price(req: OrderRequest, bar: Bar) -> float | None:
    if req.order_type == "STP" and req.stop_price is not None:
        if req.side == "SELL" and bar.low <= req.stop_price:
            return min(req.stop_price, bar.open)
        if req.side == "BUY" and bar.high >= req.stop_price:
            return max(req.stop_price, bar.open)
    if req.order_type == "LMT" and req.limit_price is not None:
        if req.side == "SELL" and bar.high >= req.limit_price:
            return max(req.limit_price, bar.open)
        if req.side == "BUY" and bar.low <= req.limit_price:
            return min(req.limit_price, bar.open)
    return None
