from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal


InstrumentKind = Literal["STK", "FUT", "FX"]


_FUT_EXPIRY_RE = re.compile(r"^\d{6}(\d{2})?$")  # YYYYMM or YYYYMMDD
_FX_PAIR_RE = re.compile(r"^[A-Z]{6}$")  # e.g. EURUSD


@dataclass(frozen=True)
class InstrumentSpec:
    """
    The single instrument a strategy run trades.

    - FX:  symbol=EURUSD tick_size=0.0001
    - FUT: symbol=ES expiry=202503 tick_size=0.25
    - STK: symbol=IBM tick_size=0.01

    ``tick_size`` converts the tick distances of the strategy parameters into
    price margins.
    """

    kind: InstrumentKind
    symbol: str
    tick_size: float = 0.01
    exchange: str | None = None
    currency: str | None = None
    expiry: str | None = None

    def normalized(self) -> "InstrumentSpec":
        return InstrumentSpec(
            kind=self.kind.upper(),
            symbol=self.symbol.upper(),
            tick_size=float(self.tick_size),
            exchange=(self.exchange or "").upper() or None,
            currency=(self.currency or "").upper() or None,
            expiry=self.expiry,
        )

    def ticks_to_price(self, ticks: float) -> float:
        return float(ticks) * float(self.tick_size)


def validate_instrument(spec: InstrumentSpec) -> InstrumentSpec:
    spec = spec.normalized()

    if spec.kind not in {"STK", "FUT", "FX"}:
        raise ValueError(f"Unsupported instrument kind: {spec.kind}")
    if not spec.symbol:
        raise ValueError("Instrument symbol is required")
    if spec.tick_size <= 0:
        raise ValueError("tick_size must be positive")

    if spec.kind == "FUT" and spec.expiry and not _FUT_EXPIRY_RE.match(spec.expiry):
        raise ValueError("FUT expiry must be YYYYMM or YYYYMMDD (e.g. 202503 or 20250315)")
    if spec.kind == "FX" and not _FX_PAIR_RE.match(spec.symbol):
        raise ValueError("FX symbol must be a 6-letter pair like EURUSD")
    return spec
