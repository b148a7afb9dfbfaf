from intraday_algo.broker.base import Broker, OrderSubmissionError
from intraday_algo.broker.sim import SimBroker

__all__ = ["Broker", "OrderSubmissionError", "SimBroker"]
