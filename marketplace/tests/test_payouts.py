from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from marketplace.models import OutboxEvent, Payout
from marketplace.services.bookings import BookingService
from marketplace.services.exceptions import InsufficientBalance, PermissionDenied, ValidationError
from marketplace.services.payouts import (
    available_balance,
    balances,
    estimated_arrival,
    generate_payout_reference,
    list_payouts,
    request_payout,
)

from .factories import VIDEO_URL, confirmation_for, ctx_for, make_admin, make_talent, make_user


class PayoutTests(TestCase):
    def setUp(self):
        self.service = BookingService()
        self.talent = make_talent("star")
        self.talent_ctx = ctx_for(self.talent.user)
        self.fan_ctx = ctx_for(make_user("fan"))

    def book(self, currency="USD", deliver=True):
        booking = self.service.create_booking(
            self.fan_ctx,
            talent_id=self.talent.pk,
            recipient_name="Tino",
            occasion="Birthday",
            instructions="Happy birthday Tino",
            currency=currency,
        )
        booking = self.service.confirm_payment(booking.pk, confirmation_for(booking))
        if deliver:
            booking = self.service.deliver_video(self.talent_ctx, booking.booking_code, VIDEO_URL)
        return booking

    def payout(self, amount, method="ecocash", currency="USD", account="0771234567"):
        return request_payout(
            self.talent_ctx, amount=amount, currency=currency, payment_method=method, account_details=account
        )

    def test_balance_counts_completed_earnings_per_currency(self):
        self.book()
        self.book()
        self.book(deliver=False)
        self.book(currency="ZIG")
        self.assertEqual(balances(self.talent), {"USD": Decimal("150.00"), "ZIG": Decimal("1875.00")})

    def test_request_payout(self):
        self.book()
        payout = self.payout(Decimal("50.00"))

        self.assertRegex(payout.reference, r"^PO-[0-9A-Z]+-[0-9A-Z]{4}$")
        self.assertEqual(payout.status, "pending")
        self.assertEqual(payout.amount, Decimal("50.00"))
        self.assertEqual(payout.estimated_arrival - payout.created_at, timedelta(hours=2))
        self.assertEqual(available_balance(self.talent, "USD"), Decimal("25.00"))
        self.assertTrue(OutboxEvent.objects.filter(type="payout.requested", payload__reference=payout.reference).exists())
        self.assertEqual(list(list_payouts(self.talent_ctx)), [payout])

    def test_cannot_overdraw(self):
        self.book()
        self.payout(Decimal("70.00"))
        with self.assertRaises(InsufficientBalance) as cm:
            self.payout(Decimal("5.01"))
        self.assertEqual(cm.exception.field, "amount")
        self.assertEqual(cm.exception.status_code, 400)
        self.assertIn("Available: USD 5.00", str(cm.exception))
        self.assertEqual(Payout.objects.count(), 1)

        # balances never cross currencies
        with self.assertRaises(InsufficientBalance):
            self.payout(Decimal("1.00"), currency="ZIG")

    def test_failed_payout_returns_to_balance(self):
        self.book()
        payout = self.payout(Decimal("75.00"))
        self.assertEqual(available_balance(self.talent, "USD"), Decimal("0.00"))
        Payout.objects.filter(pk=payout.pk).update(status="failed")
        self.assertEqual(available_balance(self.talent, "USD"), Decimal("75.00"))

    def test_refunded_booking_leaves_balance(self):
        booking = self.book()
        self.service.refund(ctx_for(make_admin()), booking.pk, reason="wrong name")
        self.assertEqual(available_balance(self.talent, "USD"), Decimal("0.00"))

    def test_validation(self):
        self.book()
        for kwargs, field in [
            ({"amount": Decimal("0")}, "amount"),
            ({"amount": Decimal("-5")}, "amount"),
            ({"amount": "lots"}, "amount"),
            ({"amount": Decimal("0.004")}, "amount"),
            ({"amount": Decimal("10"), "method": "paypal"}, "payment_method"),
            ({"amount": Decimal("10"), "account": "   "}, "account_details"),
            ({"amount": Decimal("10"), "currency": "EUR"}, "currency"),
        ]:
            with self.subTest(kwargs=kwargs):
                with self.assertRaises(ValidationError) as cm:
                    self.payout(**kwargs)
                self.assertEqual(cm.exception.field, field)
        self.assertFalse(Payout.objects.exists())

    def test_talent_only(self):
        with self.assertRaises(PermissionDenied):
            request_payout(self.fan_ctx, amount=Decimal("1.00"), payment_method="ecocash", account_details="077")
        with self.assertRaises(PermissionDenied):
            list_payouts(self.fan_ctx)


class PayoutHelperTests(TestCase):
    def test_arrival_by_method(self):
        now = timezone.now()
        self.assertEqual(estimated_arrival("innbucks", now), now + timedelta(hours=2))
        self.assertEqual(estimated_arrival("bank_transfer", now), now + timedelta(days=3))

    def test_reference_encodes_time(self):
        now = datetime(2024, 1, 1, tzinfo=dt_timezone.utc)
        _, stamp, suffix = generate_payout_reference(now).split("-")
        self.assertEqual(int(stamp, 36), 1704067200000)
        self.assertEqual(len(suffix), 4)
