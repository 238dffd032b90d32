from django.test import SimpleTestCase

from marketplace.models import BookingStatus
from marketplace.services.exceptions import AlreadyTerminal, InvalidStateTransition
from marketplace.services.lifecycle import TRANSITIONS, can_transition, check_transition, is_terminal

ALLOWED = {
    ("pending_payment", "payment_confirmed"),
    ("pending_payment", "cancelled"),
    ("payment_confirmed", "in_progress"),
    ("payment_confirmed", "completed"),
    ("payment_confirmed", "cancelled"),
    ("payment_confirmed", "refunded"),
    ("in_progress", "completed"),
    ("in_progress", "cancelled"),
    ("in_progress", "refunded"),
    ("completed", "refunded"),
}


class StatusModelTests(SimpleTestCase):
    def test_every_state_has_an_entry(self):
        self.assertEqual(set(TRANSITIONS), set(BookingStatus.values))

    def test_only_listed_edges_are_allowed(self):
        for current in BookingStatus.values:
            for target in BookingStatus.values:
                expected = (current, target) in ALLOWED
                self.assertEqual(can_transition(current, target), expected, (current, target))
                if expected:
                    check_transition(current, target)
                else:
                    with self.assertRaises(InvalidStateTransition):
                        check_transition(current, target)

    def test_terminal_states(self):
        self.assertTrue(is_terminal("cancelled"))
        self.assertTrue(is_terminal("refunded"))
        self.assertFalse(is_terminal("completed"))

    def test_leaving_terminal_state_is_already_terminal(self):
        for current in ("cancelled", "refunded"):
            with self.assertRaises(AlreadyTerminal) as cm:
                check_transition(current, "payment_confirmed")
            self.assertEqual(cm.exception.current, current)

    def test_cancel_completed_is_already_terminal(self):
        with self.assertRaises(AlreadyTerminal):
            check_transition("completed", "cancelled")

    def test_skipping_payment_is_plain_invalid(self):
        with self.assertRaises(InvalidStateTransition) as cm:
            check_transition("pending_payment", "completed")
        self.assertNotIsInstance(cm.exception, AlreadyTerminal)
        self.assertEqual(cm.exception.status_code, 409)

    def test_rejections_are_logged(self):
        with self.assertLogs("marketplace.services.lifecycle", level="WARNING"):
            with self.assertRaises(InvalidStateTransition):
                check_transition("pending_payment", "refunded")
