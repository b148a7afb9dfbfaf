import logging
import unittest

from intraday_algo.broker.base import OrderRequest, validate_order_request
from intraday_algo.instruments import InstrumentSpec
from intraday_algo.orders import (
    LONG,
    SHORT,
    ExitLeg,
    OcoPair,
    TradeIntent,
    TrailAction,
    TrailingState,
    entry_intents,
    exit_intent,
    trail,
)

logging.disable(logging.CRITICAL)

ES = InstrumentSpec(kind="FUT", symbol="ES", tick_size=0.25)


class TestOrderRequestValidation(unittest.TestCase):
    def test_market_order_validation(self):
        req = validate_order_request(OrderRequest(instrument=ES, side="buy", quantity=1, order_type="mkt"))
        self.assertEqual(req.side, "BUY")
        self.assertEqual(req.order_type, "MKT")

    def test_limit_order_requires_price(self):
        with self.assertRaises(ValueError):
            validate_order_request(OrderRequest(instrument=ES, side="SELL", quantity=1, order_type="LMT"))
        with self.assertRaises(ValueError):
            validate_order_request(OrderRequest(instrument=ES, side="SELL", quantity=1, order_type="LMT", limit_price=-1))

    def test_stop_order_requires_stop_price(self):
        with self.assertRaises(ValueError):
            validate_order_request(OrderRequest(instrument=ES, side="SELL", quantity=1, order_type="STP"))
        req = validate_order_request(OrderRequest(instrument=ES, side="SELL", quantity=1, order_type="STP", stop_price=94))
        self.assertEqual(req.price, 94)

    def test_rejects_unknown_type_and_side(self):
        with self.assertRaises(ValueError):
            validate_order_request(OrderRequest(instrument=ES, side="BUY", quantity=1, order_type="STPLMT"))
        with self.assertRaises(ValueError):
            validate_order_request(OrderRequest(instrument=ES, side="HOLD", quantity=1))
        with self.assertRaises(ValueError):
            validate_order_request(OrderRequest(instrument=ES, side="BUY", quantity=0))


class TestEntryIntents(unittest.TestCase):
    def test_long_entry_prices(self):
        entry, stop, profit = entry_intents(LONG, ES, 100.0, stop_margin=6.0, profit_margin=19.25, oca_group="g1")
        self.assertEqual((entry.side, entry.order_type), ("BUY", "MKT"))
        self.assertEqual((stop.side, stop.order_type, stop.stop_price), ("SELL", "STP", 94.0))
        self.assertEqual((profit.side, profit.order_type, profit.limit_price), ("SELL", "LMT", 119.25))
        self.assertEqual(stop.oca_group, "g1")
        self.assertEqual(profit.oca_group, "g1")
        self.assertIsNone(entry.oca_group)
        self.assertEqual(stop.label, "Catastrophic stop long exit")

    def test_short_entry_prices(self):
        entry, stop, profit = entry_intents(SHORT, ES, 100.0, stop_margin=6.0, profit_margin=19.25, oca_group="g2")
        self.assertEqual(entry.side, "SELL")
        self.assertEqual((stop.side, stop.stop_price), ("BUY", 106.0))
        self.assertEqual((profit.side, profit.limit_price), ("BUY", 80.75))
        self.assertEqual(profit.label, "Profit stop short exit")

    def test_exit_intent_sides(self):
        self.assertEqual(exit_intent(LONG, ES).side, "SELL")
        self.assertEqual(exit_intent(SHORT, ES).side, "BUY")
        with self.assertRaises(ValueError):
            exit_intent(0, ES)

    def test_order_request_carries_label_and_group(self):
        intent = TradeIntent(ES, "SELL", order_type="STP", stop_price=94.0, label="stop", oca_group="g")
        req = intent.to_order_request()
        self.assertEqual(req.order_ref, "stop")
        self.assertEqual(req.oca_group, "g")

    def test_repriced_keeps_kind(self):
        intent = TradeIntent(ES, "SELL", order_type="STP", stop_price=94.0, label="a")
        moved = intent.repriced(95.5, "b")
        self.assertEqual(moved.stop_price, 95.5)
        self.assertEqual(moved.label, "b")
        with self.assertRaises(ValueError):
            TradeIntent(ES, "BUY").repriced(1.0)


class TestOcoPair(unittest.TestCase):
    def setUp(self):
        _entry, stop, profit = entry_intents(LONG, ES, 100.0, stop_margin=6.0, profit_margin=19.25, oca_group="g")
        self.pair = OcoPair(stop=ExitLeg("s-1", stop), profit=ExitLeg("p-1", profit), oca_group="g")

    def test_sibling_of(self):
        self.assertEqual(self.pair.sibling_of("s-1").order_id, "p-1")
        self.assertEqual(self.pair.sibling_of("p-1").order_id, "s-1")
        with self.assertRaises(KeyError):
            self.pair.sibling_of("other")

    def test_contains(self):
        self.assertTrue(self.pair.contains("s-1"))
        self.assertFalse(self.pair.contains("entry-1"))

    def test_with_stop_replaces_only_stop(self):
        moved = ExitLeg("s-1", self.pair.stop.intent.repriced(96.0))
        pair = self.pair.with_stop(moved)
        self.assertEqual(pair.stop.price, 96.0)
        self.assertEqual(pair.profit, self.pair.profit)
        self.assertEqual(self.pair.stop.price, 94.0)


class TestTrail(unittest.TestCase):
    def test_long_hold_without_new_extreme(self):
        state = TrailingState(0.2, 100.0)
        for close in (99.0, 100.0):
            decision = trail(LONG, state, 94.0, close)
            self.assertIs(decision.action, TrailAction.HOLD)
            self.assertIs(decision.state, state)

    def test_long_moves_stop_by_compounded_acceleration(self):
        decision = trail(LONG, TrailingState(0.2, 100.0), 94.0, 102.0)
        self.assertIs(decision.action, TrailAction.MOVE_STOP)
        self.assertAlmostEqual(decision.state.acceleration, 1.6)
        self.assertEqual(decision.state.furthest_close, 102.0)
        self.assertAlmostEqual(decision.stop_price, 95.6)

        second = trail(LONG, decision.state, decision.stop_price, 103.0)
        # 1.6 * (103 - 95.6) = 11.84 -> 107.44 would be above the close
        self.assertIs(second.action, TrailAction.FLATTEN)
        self.assertAlmostEqual(second.state.acceleration, 11.84)

    def test_short_moves_stop_down(self):
        decision = trail(SHORT, TrailingState(0.2, 100.0), 106.0, 98.0)
        self.assertIs(decision.action, TrailAction.MOVE_STOP)
        self.assertAlmostEqual(decision.state.acceleration, 1.6)
        self.assertAlmostEqual(decision.stop_price, 104.4)

    def test_short_flattens_when_stop_would_cross(self):
        decision = trail(SHORT, TrailingState(1.0, 100.0), 106.0, 99.0)
        # 1.0 * |106 - 99| = 7 -> 99 is not above the close
        self.assertIs(decision.action, TrailAction.FLATTEN)
        self.assertIsNone(decision.stop_price)

    def test_fx_trailing_step(self):
        decision = trail(LONG, TrailingState(0.2, 1.2050), 1.2026, 1.2080)
        self.assertIs(decision.action, TrailAction.MOVE_STOP)
        self.assertAlmostEqual(decision.stop_price, 1.2026 + 0.2 * (1.2080 - 1.2026))

    def test_rejects_flat_direction(self):
        with self.assertRaises(ValueError):
            trail(0, TrailingState(0.2, 100.0), 94.0, 101.0)
