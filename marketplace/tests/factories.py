from decimal import Decimal
from itertools import count

from django.contrib.auth import get_user_model
from django.utils import timezone

from marketplace.models import TalentProfile
from marketplace.services.context import RequestContext
from marketplace.services.gateways import PaymentConfirmation

_seq = count(1)

# zero latency so tests never sleep
GATEWAYS_ALWAYS_SUCCEED = {
    "paynow": {"latency": 0, "success_rate": 1.0},
    "stripe": {"latency": 0, "success_rate": 1.0},
    "innbucks": {"latency": 0, "success_rate": 1.0},
}
GATEWAYS_ALWAYS_DECLINE = {
    "paynow": {"latency": 0, "success_rate": 0.0},
    "stripe": {"latency": 0, "success_rate": 0.0},
    "innbucks": {"latency": 0, "success_rate": 0.0},
}

VIDEO_URL = "https://cdn.torashout.example/videos/abc123.mp4"


def card_details(**overrides):
    details = {
        "card_number": "4242 4242 4242 4242",
        "expiry": f"12/{(timezone.localdate().year + 2) % 100:02d}",
        "cvv": "123",
        "cardholder_name": "Tendai Moyo",
    }
    details.update(overrides)
    return details


def unique_key(prefix="key"):
    return f"{prefix}-{next(_seq)}-{timezone.now().timestamp()}"


def make_user(username=None, **extra):
    username = username or f"user{next(_seq)}"
    return get_user_model().objects.create_user(
        username=username, email=f"{username}@example.com", password="pass1234", **extra
    )


def make_admin(username=None):
    return make_user(username, is_staff=True)


def make_talent(username=None, **fields):
    user = make_user(username)
    defaults = {
        "display_name": f"Star {user.username}",
        "category": "musician",
        "price_usd": Decimal("100.00"),
        "price_zig": Decimal("2500.00"),
        "admin_verified": True,
        "response_time_hours": 48,
    }
    defaults.update(fields)
    return TalentProfile.objects.create(user=user, **defaults)


def ctx_for(user):
    # reload so the talent_profile reverse relation is not stale
    return RequestContext.from_user(get_user_model().objects.get(pk=user.pk))


def confirmation_for(booking, reference=None, gateway="stripe"):
    return PaymentConfirmation(
        gateway=gateway,
        reference=reference or f"pi_test{next(_seq):08d}",
        amount=booking.amount_paid,
        currency=booking.currency,
        masked_account="**** **** **** 4242",
        confirmed_at=timezone.now(),
        details={"method": "card"},
    )
