from __future__ import annotations

from dataclasses import dataclass

from intraday_algo.broker.base import OrderRequest


@dataclass(frozen=True)
class RiskLimits:
    max_order_quantity: float = 1.0
    max_abs_position: float = 1.0
    allow_short: bool = True


class RiskManager:
    """
    Pre-send checks on market orders. Resting stop/limit exits only ever
    reduce the position they protect, so they are not sized here.
    """

    def __init__(self, limits: RiskLimits | None = None) -> None:
        self._limits = limits or RiskLimits()

    @property
    def limits(self) -> RiskLimits:
        return self._limits

    def validate(self, req: OrderRequest, current_position: float) -> None:
        if req.quantity <= 0:
            raise ValueError("quantity must be positive")
        if req.quantity > self._limits.max_order_quantity:
            raise ValueError("order quantity exceeds max_order_quantity")
        if req.order_type != "MKT":
            return

        delta = req.quantity if req.side.upper() == "BUY" else -req.quantity
        resulting = float(current_position) + delta

        if not self._limits.allow_short and resulting < 0:
            raise ValueError("order would create a short position (allow_short=false)")
        if abs(resulting) > self._limits.max_abs_position:
            raise ValueError(
                f"resulting position {resulting:+g} exceeds max_abs_position={self._limits.max_abs_position:g}"
            )
