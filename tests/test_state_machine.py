import unittest
from datetime import datetime, timezone

from canteen.domain.models import OrderStatus
from canteen.domain.exceptions import InvalidTransitionError
from canteen.domain.state_machine import (
    OrderEvent,
    apply_transition,
    event_for_target,
    is_terminal,
    next_status,
    progress,
)
from tests.fakes import make_order


class TestNextStatus(unittest.TestCase):
    def test_forward_path(self):
        self.assertEqual(next_status(OrderStatus.PENDING, OrderEvent.COMMIT), OrderStatus.PREPARING)
        self.assertEqual(next_status(OrderStatus.PREPARING, OrderEvent.MARK_READY), OrderStatus.READY)
        self.assertEqual(next_status(OrderStatus.READY, OrderEvent.COMPLETE), OrderStatus.COMPLETED)

    def test_cancel_allowed_before_ready(self):
        for status in (OrderStatus.PENDING, OrderStatus.PREPARING):
            self.assertEqual(next_status(status, OrderEvent.CANCEL), OrderStatus.CANCELLED)

    def test_cancel_rejected_once_ready(self):
        with self.assertRaises(InvalidTransitionError) as ctx:
            next_status(OrderStatus.READY, OrderEvent.CANCEL)
        self.assertEqual(ctx.exception.current, "ready")
        self.assertEqual(ctx.exception.requested, "cancelled")

    def test_terminal_states_reject_everything_else(self):
        cases = [
            (OrderStatus.COMPLETED, (OrderEvent.COMMIT, OrderEvent.MARK_READY, OrderEvent.CANCEL)),
            (OrderStatus.CANCELLED, (OrderEvent.COMMIT, OrderEvent.MARK_READY, OrderEvent.COMPLETE)),
        ]
        for status, events in cases:
            for event in events:
                with self.assertRaises(InvalidTransitionError):
                    next_status(status, event)

    def test_skipping_a_step_is_rejected(self):
        with self.assertRaises(InvalidTransitionError):
            next_status(OrderStatus.PREPARING, OrderEvent.COMPLETE)
        with self.assertRaises(InvalidTransitionError):
            next_status(OrderStatus.PENDING, OrderEvent.MARK_READY)

    def test_repeating_event_is_idempotent(self):
        self.assertEqual(next_status(OrderStatus.READY, OrderEvent.MARK_READY), OrderStatus.READY)
        self.assertEqual(next_status(OrderStatus.CANCELLED, OrderEvent.CANCEL), OrderStatus.CANCELLED)
        self.assertEqual(next_status(OrderStatus.COMPLETED, OrderEvent.COMPLETE), OrderStatus.COMPLETED)

    def test_accepts_raw_values(self):
        self.assertEqual(next_status("preparing", "mark_ready"), OrderStatus.READY)


class TestApplyTransition(unittest.TestCase):
    def test_complete_sets_delivered_at_and_keeps_amount(self):
        order = make_order(status=OrderStatus.READY)
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

        updated = apply_transition(order, OrderEvent.COMPLETE, now=now)

        self.assertEqual(updated.status, OrderStatus.COMPLETED)
        self.assertEqual(updated.delivered_at, now)
        self.assertEqual(updated.amount, order.amount)
        self.assertEqual(order.status, OrderStatus.READY)

    def test_noop_returns_same_order(self):
        order = make_order(status=OrderStatus.READY)
        self.assertIs(apply_transition(order, OrderEvent.MARK_READY), order)

    def test_cancel_does_not_set_delivered_at(self):
        updated = apply_transition(make_order(), OrderEvent.CANCEL)
        self.assertEqual(updated.status, OrderStatus.CANCELLED)
        self.assertIsNone(updated.delivered_at)


class TestProgress(unittest.TestCase):
    def test_progress_mapping(self):
        self.assertEqual(progress(OrderStatus.PENDING), 0)
        self.assertEqual(progress(OrderStatus.PREPARING), 33)
        self.assertEqual(progress(OrderStatus.READY), 66)
        self.assertEqual(progress(OrderStatus.COMPLETED), 100)
        self.assertEqual(progress(OrderStatus.CANCELLED), 0)

    def test_terminal(self):
        self.assertTrue(is_terminal(OrderStatus.COMPLETED))
        self.assertTrue(is_terminal(OrderStatus.CANCELLED))
        self.assertFalse(is_terminal(OrderStatus.READY))

    def test_event_for_target(self):
        self.assertEqual(event_for_target("ready"), OrderEvent.MARK_READY)
        with self.assertRaises(InvalidTransitionError):
            event_for_target(OrderStatus.PENDING)
