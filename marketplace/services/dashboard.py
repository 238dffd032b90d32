"""
Dashboard aggregation.

Read-only rollups over bookings for the fan, talent and admin dashboards.
Nothing here is stored; every call recomputes from the bookings table.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

from django.db.models import Avg, Count, Q, QuerySet, Sum
from django.utils import timezone

from marketplace.models import ApplicationStatus, Booking, BookingStatus, TalentApplication, TalentProfile

from .context import ADMIN, FAN, ROLES, TALENT, RequestContext
from .exceptions import PermissionDenied, ValidationError
from .lifecycle import AWAITING_DELIVERY, OPEN_STATES, PAID_STATES

WINDOW = timedelta(days=30)
PERCENT = Decimal("0.1")

# which amount a role's headline total is summed over
AMOUNT_FIELDS = {FAN: "amount_paid", TALENT: "talent_earnings", ADMIN: "amount_paid"}


def growth_rate(current, previous) -> Decimal:
    """Percentage change from ``previous`` to ``current``.

    A previous period of zero gives 100 when there is anything now and 0
    when there is nothing in either period.
    """
    current = Decimal(current or 0)
    previous = Decimal(previous or 0)
    if previous == 0:
        return Decimal("100.0") if current > 0 else Decimal("0.0")
    return ((current - previous) / previous * 100).quantize(PERCENT, rounding=ROUND_HALF_UP)


def _sum_by_currency(qs: QuerySet, amount_field: str) -> Dict[str, Decimal]:
    rows = qs.values("currency").annotate(total=Sum(amount_field)).order_by("currency")
    return {row["currency"]: row["total"] or Decimal("0.00") for row in rows}


def _money(totals: Dict[str, Decimal]) -> Dict[str, str]:
    return {currency: f"{amount:.2f}" for currency, amount in totals.items()}


@dataclass
class DashboardStats:
    role: str
    total_bookings: int
    completed_bookings: int
    pending_bookings: int
    totals: Dict[str, Decimal]
    average_rating: Optional[Decimal]
    growth: Dict[str, Decimal]
    extra: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "total_bookings": self.total_bookings,
            "completed_bookings": self.completed_bookings,
            "pending_bookings": self.pending_bookings,
            "totals": _money(self.totals),
            "average_rating": f"{self.average_rating:.2f}" if self.average_rating is not None else None,
            "growth": {currency: float(rate) for currency, rate in self.growth.items()},
            **self.extra,
        }


def _scope(ctx: RequestContext, role: str) -> QuerySet:
    qs = Booking.objects.all()
    if role == ADMIN:
        ctx.require_admin()
        return qs
    if role == TALENT:
        return qs.filter(talent=ctx.require_talent())
    if ctx.user is None:
        raise PermissionDenied("log in to see your dashboard")
    return qs.filter(customer=ctx.user)


def _pending_requests(qs: QuerySet) -> List[Dict[str, Any]]:
    pending = qs.filter(status__in=AWAITING_DELIVERY).order_by("due_date", "created_at")
    return [
        {
            "booking_code": booking.booking_code,
            "recipient_name": booking.recipient_name,
            "occasion": booking.occasion,
            "status": booking.status,
            "due_date": booking.due_date.isoformat() if booking.due_date else None,
            "talent_earnings": f"{booking.talent_earnings:.2f}",
            "currency": booking.currency,
        }
        for booking in pending
    ]


def compute_dashboard(ctx: RequestContext, role: Optional[str] = None, now=None) -> DashboardStats:
    role = role or ctx.role
    if role not in ROLES:
        raise ValidationError("role must be fan, talent or admin", field="role")
    now = now or timezone.now()

    qs = _scope(ctx, role)
    counts = qs.aggregate(
        total=Count("pk"),
        completed=Count("pk", filter=Q(status=BookingStatus.COMPLETED)),
        pending=Count("pk", filter=Q(status__in=OPEN_STATES)),
        rating=Avg("customer_rating", filter=Q(status=BookingStatus.COMPLETED, customer_rating__isnull=False)),
    )
    rating = counts["rating"]
    if rating is not None:
        rating = Decimal(str(rating)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    paid = qs.filter(status__in=PAID_STATES)
    amount_field = AMOUNT_FIELDS[role]
    current = _sum_by_currency(paid.filter(created_at__gt=now - WINDOW, created_at__lte=now), amount_field)
    previous = _sum_by_currency(
        paid.filter(created_at__gt=now - 2 * WINDOW, created_at__lte=now - WINDOW), amount_field
    )
    growth = {
        currency: growth_rate(current.get(currency), previous.get(currency))
        for currency in sorted(set(current) | set(previous))
    }

    extra: Dict[str, Any] = {}
    if role == ADMIN:
        extra["platform_fees"] = _money(_sum_by_currency(paid, "platform_fee"))
        extra["pending_applications"] = TalentApplication.objects.filter(
            status__in=(ApplicationStatus.PENDING, ApplicationStatus.UNDER_REVIEW)
        ).count()
        extra["active_talents"] = TalentProfile.objects.filter(
            admin_verified=True, is_accepting_bookings=True
        ).count()
    elif role == TALENT:
        extra["pending_requests"] = _pending_requests(qs)

    return DashboardStats(
        role=role,
        total_bookings=counts["total"],
        completed_bookings=counts["completed"],
        pending_bookings=counts["pending"],
        totals=_sum_by_currency(paid, amount_field),
        average_rating=rating,
        growth=growth,
        extra=extra,
    )
