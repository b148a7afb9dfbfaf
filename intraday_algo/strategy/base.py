from __future__ import annotations

from typing import Protocol

from intraday_algo.broker.base import Bar


class BarHandler(Protocol):
    """
    A per-instrument decision component driven one bar at a time.

    Collaborators (order manager, instrument, parameters, bar history) are
    injected at construction; the engine only ever calls these hooks.
    """

    name: str

    def on_initialize(self) -> None: ...

    def on_new_bar(self, bar: Bar) -> None: ...

    def close_position(self, reason: str) -> bool: ...
