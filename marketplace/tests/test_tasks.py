from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from marketplace.models import Booking
from marketplace.services.bookings import BookingService
from marketplace.tasks import cancel_overdue_bookings

from .factories import confirmation_for, ctx_for, make_talent, make_user


class CancelOverdueTaskTests(TestCase):
    def test_sweep_cancels_overdue_bookings(self):
        service = BookingService()
        talent = make_talent()
        booking = service.create_booking(
            ctx_for(make_user()),
            talent_id=talent.pk,
            recipient_name="Nyasha",
            occasion="Graduation",
            instructions="Congratulate Nyasha",
            currency="USD",
        )
        booking = service.confirm_payment(booking.pk, confirmation_for(booking))
        Booking.objects.filter(pk=booking.pk).update(due_date=timezone.now() - timedelta(minutes=5))

        result = cancel_overdue_bookings.apply().get()

        self.assertEqual(result, {"cancelled": 1})
        booking.refresh_from_db()
        self.assertEqual(booking.status, "cancelled")

    def test_sweep_with_nothing_due(self):
        self.assertEqual(cancel_overdue_bookings(), {"cancelled": 0})
