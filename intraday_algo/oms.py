from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass

from intraday_algo.broker.base import Broker, OrderRequest, OrderStatus, OrderSubmissionError
from intraday_algo.config import TradingConfig
from intraday_algo.instruments import InstrumentSpec
from intraday_algo.risk import RiskManager

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class OMSResult:
    order_id: str
    status: str


class OrderManager:
    """
    Minimal OMS:
    - submit/modify/cancel through Broker
    - risk check on every submit (position never beyond max_abs_position)
    - dry-run mode logs requests instead of sending them
    - every broker failure surfaces as OrderSubmissionError; no retries here
    """

    def __init__(self, broker: Broker, cfg: TradingConfig, *, risk: RiskManager | None = None) -> None:
        self._broker = broker
        self._cfg = cfg
        self._risk = risk or RiskManager()
        self._dry_ids = itertools.count(1)
        self._last_status: dict[str, str] = {}

    @property
    def dry_run(self) -> bool:
        return self._cfg.dry_run

    def position(self, instrument: InstrumentSpec) -> float:
        return float(self._broker.get_position(instrument))

    def submit(self, req: OrderRequest) -> OMSResult:
        req = req.normalized()
        try:
            self._risk.validate(req, self.position(req.instrument))
        except ValueError as exc:
            log.error("Order rejected by risk side=%s type=%s ref=%s err=%s", req.side, req.order_type, req.order_ref, exc)
            raise OrderSubmissionError(f"risk check failed: {exc}") from exc

        if self._cfg.dry_run:
            order_id = f"dry-run-{next(self._dry_ids)}"
            log.info("DRY RUN staged order %s: %s", order_id, req)
            return OMSResult(order_id=order_id, status="DryRun")

        try:
            res = self._broker.place_order(req)
        except OrderSubmissionError:
            raise
        except Exception as exc:
            log.error("Order submit failed side=%s type=%s ref=%s err=%s", req.side, req.order_type, req.order_ref, exc)
            raise OrderSubmissionError(f"submit failed: {exc}") from exc

        log.info(
            "Order placed orderId=%s side=%s qty=%s type=%s price=%s ref=%s oca=%s status=%s",
            res.order_id, req.side, req.quantity, req.order_type, req.price, req.order_ref, req.oca_group, res.status,
        )
        self._last_status[res.order_id] = res.status
        return OMSResult(order_id=res.order_id, status=res.status)

    def modify(self, order_id: str, new_req: OrderRequest) -> OMSResult:
        new_req = new_req.normalized()
        if self._cfg.dry_run:
            log.info("DRY RUN staged modify %s: %s", order_id, new_req)
            return OMSResult(order_id=str(order_id), status="DryRun")
        try:
            res = self._broker.modify_order(str(order_id), new_req)
        except OrderSubmissionError:
            raise
        except Exception as exc:
            log.error("Order modify failed orderId=%s err=%s", order_id, exc)
            raise OrderSubmissionError(f"modify failed for {order_id}: {exc}") from exc
        log.info("Order modified orderId=%s price=%s ref=%s status=%s", order_id, new_req.price, new_req.order_ref, res.status)
        return OMSResult(order_id=str(order_id), status=res.status)

    def cancel(self, order_id: str) -> None:
        if self._cfg.dry_run:
            log.info("DRY RUN staged cancel %s", order_id)
            return
        try:
            self._broker.cancel_order(str(order_id))
        except OrderSubmissionError:
            raise
        except Exception as exc:
            log.error("Order cancel failed orderId=%s err=%s", order_id, exc)
            raise OrderSubmissionError(f"cancel failed for {order_id}: {exc}") from exc
        log.info("Order cancel requested orderId=%s", order_id)

    def status(self, order_id: str) -> OrderStatus:
        if self._cfg.dry_run:
            return OrderStatus(str(order_id), "DryRun", None, None, None)
        st = self._broker.get_order_status(str(order_id))
        self._record_status(st)
        return st

    def _record_status(self, st: OrderStatus) -> None:
        prev = self._last_status.get(str(st.order_id))
        if prev == str(st.status):
            return
        self._last_status[str(st.order_id)] = str(st.status)
        log.debug("Order status orderId=%s %s -> %s", st.order_id, prev, st.status)
