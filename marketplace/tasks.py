import logging

from celery import shared_task
from django.utils import timezone

from marketplace.services.bookings import BookingService

logger = logging.getLogger(__name__)


@shared_task
def cancel_overdue_bookings():
    """Cancel paid bookings whose due date passed without a delivered video."""
    cancelled = BookingService().cancel_overdue(now=timezone.now())
    logger.info("Due-date sweep cancelled %d bookings", cancelled)
    return {"cancelled": cancelled}
