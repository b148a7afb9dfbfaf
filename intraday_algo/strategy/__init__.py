from intraday_algo.strategy.base import BarHandler
from intraday_algo.strategy.stochastic_trend import StochasticTrendStrategy

__all__ = ["BarHandler", "StochasticTrendStrategy"]
