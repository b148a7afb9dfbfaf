from __future__ import annotations

import numpy as np

from intraday_algo.broker.base import Bar


class BarSeries:
    """
    Append-only bar history for the traded instrument.

    Accessors index newest-first (``bar(0)`` is the current bar); the array
    views (``closes()`` etc.) are chronological for the indicator code.
    """

    def __init__(self, bars: list[Bar] | None = None) -> None:
        self._bars: list[Bar] = []
        for bar in bars or []:
            self.append(bar)

    def __len__(self) -> int:
        return len(self._bars)

    def append(self, bar: Bar) -> None:
        if self._bars and bar.timestamp <= self._bars[-1].timestamp:
            raise ValueError(
                f"Bar timestamp {bar.timestamp} is not after the last bar {self._bars[-1].timestamp}"
            )
        if bar.high < bar.low:
            raise ValueError(f"Invalid bar (high < low) at {bar.timestamp}")
        self._bars.append(bar)

    def current(self) -> Bar:
        return self.bar(0)

    def bar(self, n: int) -> Bar:
        if n < 0 or n >= len(self._bars):
            raise IndexError(f"No bar {n} bars ago (have {len(self._bars)})")
        return self._bars[-1 - n]

    def close(self, n: int = 0) -> float:
        return self.bar(n).close

    def highest_high(self, period: int) -> float:
        window = self._bars[-period:]
        return max(b.high for b in window) if window else float("nan")

    def lowest_low(self, period: int) -> float:
        window = self._bars[-period:]
        return min(b.low for b in window) if window else float("nan")

    def highs(self) -> np.ndarray:
        return np.fromiter((b.high for b in self._bars), dtype=float, count=len(self._bars))

    def lows(self) -> np.ndarray:
        return np.fromiter((b.low for b in self._bars), dtype=float, count=len(self._bars))

    def closes(self) -> np.ndarray:
        return np.fromiter((b.close for b in self._bars), dtype=float, count=len(self._bars))

