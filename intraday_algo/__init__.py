"""Intraday stochastic/ADX trend-following decision engine (single instrument, max 1 contract).

Per bar:
- filters (day of week, session time, volatility range, ADX + SMA slope) gate entries
- stochastic %D crossing the buy/sell level opens a position with a market order
- a stop and a profit limit, linked one-cancels-other, protect the position
- the stop trails with a compounding acceleration on every new favourable close
"""

__all__ = [
    "broker",
    "config",
    "engine",
    "filters",
    "indicators",
    "instruments",
    "logging_setup",
    "market_data",
    "oms",
    "orders",
    "position_manager",
    "risk",
    "signals",
    "strategy",
]
