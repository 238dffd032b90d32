"""
Talent payouts.

A talent withdraws from earnings on completed bookings. The available
balance is kept per currency: completed-booking earnings minus every payout
that has not failed. Requests are serialized on the talent row so two
concurrent withdrawals can never overdraw the balance.
"""

import logging
import secrets
import string
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, Optional

from django.db import transaction
from django.db.models import QuerySet, Sum
from django.utils import timezone

from marketplace.models import (
    BookingStatus,
    Currency,
    OutboxEvent,
    Payout,
    PayoutMethod,
    PayoutStatus,
    TalentProfile,
)

from .context import RequestContext
from .exceptions import InsufficientBalance, ValidationError
from .settlement import CENT

logger = logging.getLogger(__name__)

REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
BASE36 = string.digits + string.ascii_uppercase

# how long each rail usually takes to land
ARRIVAL_DELAYS = {
    PayoutMethod.ECOCASH: timedelta(hours=2),
    PayoutMethod.INNBUCKS: timedelta(hours=2),
    PayoutMethod.BANK_TRANSFER: timedelta(days=3),
}
DEFAULT_ARRIVAL_DELAY = timedelta(days=5)


def _base36(number: int) -> str:
    digits = ""
    while True:
        number, remainder = divmod(number, 36)
        digits = BASE36[remainder] + digits
        if not number:
            return digits


def generate_payout_reference(now=None) -> str:
    now = now or timezone.now()
    suffix = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(4))
    return f"PO-{_base36(int(now.timestamp() * 1000))}-{suffix}"


def estimated_arrival(method: str, now=None):
    now = now or timezone.now()
    return now + ARRIVAL_DELAYS.get(method, DEFAULT_ARRIVAL_DELAY)


def available_balance(talent: TalentProfile, currency: str) -> Decimal:
    earned = talent.bookings.filter(status=BookingStatus.COMPLETED, currency=currency).aggregate(
        total=Sum("talent_earnings")
    )["total"] or Decimal("0")
    paid_out = talent.payouts.filter(currency=currency).exclude(status=PayoutStatus.FAILED).aggregate(
        total=Sum("amount")
    )["total"] or Decimal("0")
    return (Decimal(earned) - Decimal(paid_out)).quantize(CENT, rounding=ROUND_HALF_UP)


def balances(talent: TalentProfile) -> Dict[str, Decimal]:
    return {currency: available_balance(talent, currency) for currency in Currency.values}


def _clean_amount(amount) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, TypeError):
        raise ValidationError("invalid payout amount", field="amount")
    if not value.is_finite() or value <= 0:
        raise ValidationError("invalid payout amount", field="amount")
    value = value.quantize(CENT, rounding=ROUND_HALF_UP)
    if value <= 0:
        raise ValidationError("invalid payout amount", field="amount")
    return value


def list_payouts(ctx: RequestContext) -> QuerySet:
    talent = ctx.require_talent()
    return Payout.objects.filter(talent=talent)


def request_payout(
    ctx: RequestContext,
    *,
    amount,
    payment_method: str,
    account_details: str,
    currency: Optional[str] = None,
) -> Payout:
    """Record a pending withdrawal after checking it against the available balance."""
    current = ctx.require_talent()
    value = _clean_amount(amount)
    currency = currency or Currency.USD
    if currency not in Currency.values:
        raise ValidationError("valid currency (USD or ZIG) is required", field="currency")
    if payment_method not in PayoutMethod.values:
        raise ValidationError("payment method is required", field="payment_method")
    account_details = str(account_details or "").strip()
    if not account_details:
        raise ValidationError("account details are required", field="account_details")

    with transaction.atomic():
        talent = TalentProfile.objects.select_for_update().get(pk=current.pk)
        available = available_balance(talent, currency)
        if value > available:
            raise InsufficientBalance(f"Insufficient balance. Available: {currency} {available:.2f}", field="amount")

        now = timezone.now()
        payout = Payout.objects.create(
            talent=talent,
            reference=generate_payout_reference(now),
            amount=value,
            currency=currency,
            payment_method=payment_method,
            account_details=account_details,
            status=PayoutStatus.PENDING,
            estimated_arrival=estimated_arrival(payment_method, now),
            created_at=now,
        )
        OutboxEvent.objects.create(
            type="payout.requested",
            payload={
                "payout_id": payout.pk,
                "reference": payout.reference,
                "talent_id": talent.pk,
                "amount": f"{value:.2f}",
                "currency": currency,
            },
        )

    logger.info("Talent %s requested payout %s of %s %s", talent.pk, payout.reference, value, currency)
    return payout
