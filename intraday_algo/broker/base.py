from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Protocol

from intraday_algo.instruments import InstrumentSpec, validate_instrument


ORDER_TYPES = {"MKT", "LMT", "STP"}
TERMINAL_STATUSES = {"Filled", "Cancelled", "Inactive", "ApiCancelled"}


class OrderSubmissionError(RuntimeError):
    """Raised when the order venue rejects an insert, modify or cancel."""


@dataclass(frozen=True)
class Bar:
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float | None = None


@dataclass(frozen=True)
class OrderRequest:
    instrument: InstrumentSpec
    side: str  # BUY|SELL
    quantity: float
    order_type: str = "MKT"  # MKT|LMT|STP
    limit_price: float | None = None
    stop_price: float | None = None
    tif: str = "DAY"
    order_ref: str | None = None
    oca_group: str | None = None

    def normalized(self) -> "OrderRequest":
        return replace(
            self,
            instrument=self.instrument.normalized(),
            side=self.side.strip().upper(),
            order_type=self.order_type.strip().upper(),
            tif=self.tif.strip().upper(),
        )

    @property
    def price(self) -> float | None:
        if self.order_type == "STP":
            return self.stop_price
        if self.order_type == "LMT":
            return self.limit_price
        return None


@dataclass(frozen=True)
class OrderResult:
    order_id: str
    status: str


@dataclass(frozen=True)
class OrderStatus:
    order_id: str
    status: str
    filled: float | None
    remaining: float | None
    avg_fill_price: float | None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass(frozen=True)
class Fill:
    order_id: str
    side: str
    quantity: float
    price: float
    timestamp: datetime
    order_ref: str | None = None


FillListener = Callable[[Fill], None]


class Broker(Protocol):
    def connect(self) -> None: ...

    def disconnect(self) -> None: ...

    def place_order(self, req: OrderRequest) -> OrderResult: ...

    def modify_order(self, order_id: str, new_req: OrderRequest) -> OrderResult: ...

    def cancel_order(self, order_id: str) -> None: ...

    def get_order_status(self, order_id: str) -> OrderStatus: ...

    def get_position(self, instrument: InstrumentSpec) -> float: ...


def validate_order_request(req: OrderRequest) -> OrderRequest:
    req = req.normalized()
    validate_instrument(req.instrument)

    if req.side not in {"BUY", "SELL"}:
        raise ValueError("side must be BUY or SELL")
    if req.quantity <= 0:
        raise ValueError("quantity must be positive")
    if req.order_type not in ORDER_TYPES:
        raise ValueError(f"Unsupported order_type: {req.order_type}")

    if req.order_type == "LMT":
        if req.limit_price is None or req.limit_price <= 0:
            raise ValueError("LMT orders require a positive limit_price")
    if req.order_type == "STP":
        if req.stop_price is None or req.stop_price <= 0:
            raise ValueError("STP orders require a positive stop_price")
    return req
