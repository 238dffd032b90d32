"""
Booking orchestration.

Every write goes through ``BookingService``: it locks the booking row, checks
the edge against the status model, and moves the status with a
compare-and-swap on ``(status, version)`` so two racing requests cannot both
win.
"""

import logging
import secrets
import string
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Iterator, Optional, Tuple

from asgiref.sync import async_to_sync
from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import URLValidator
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from marketplace.models import Booking, BookingStatus, OutboxEvent, Payment, PaymentStatus, TalentProfile

from .context import ADMIN, FAN, ROLES, TALENT, RequestContext
from .exceptions import (
    AlreadyConfirmed,
    BookingNotFound,
    ConcurrentModification,
    IdempotencyConflict,
    InvalidStateTransition,
    MarketplaceError,
    PaymentError,
    PermissionDenied,
    TalentNotFound,
    ValidationError,
)
from .fee_strategy import current_fee_rate
from .gateways import PaymentConfirmation, get_gateway, submit_payment
from .lifecycle import AWAITING_DELIVERY, check_transition
from .payment_validator import validate_booking_request_data, validate_currency
from .settlement import Settlement, SettlementCalculatorInterface, SimpleSettlementCalculator
from .talents import refresh_talent_stats

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.digits + string.ascii_uppercase
CODE_ATTEMPTS = 5


def generate_booking_code(now=None) -> str:
    now = now or timezone.now()
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(6))
    return f"TS-{now.year}-{suffix}"


def payment_for(booking: Booking) -> Optional[Payment]:
    try:
        return booking.payment
    except Payment.DoesNotExist:
        return None


class BookingService:
    def __init__(self, calculator: Optional[SettlementCalculatorInterface] = None):
        self.calculator = calculator or SimpleSettlementCalculator()

    # -- lookups -----------------------------------------------------------

    def _get_talent(self, talent_id) -> TalentProfile:
        talent = TalentProfile.objects.filter(pk=talent_id, admin_verified=True).first()
        if not talent:
            raise TalentNotFound("talent not found or not available")
        return talent

    def _lock(self, **lookup) -> Booking:
        booking = Booking.objects.select_for_update().select_related("talent").filter(**lookup).first()
        if not booking:
            raise BookingNotFound("booking not found")
        return booking

    @staticmethod
    def _can_see(ctx: RequestContext, booking: Booking) -> bool:
        if ctx.is_admin:
            return True
        if ctx.user is not None and booking.customer_id == ctx.user_id:
            return True
        return ctx.talent_profile is not None and booking.talent_id == ctx.talent_profile.pk

    def _require_assigned_talent(self, ctx: RequestContext, booking: Booking) -> None:
        if ctx.is_admin:
            return
        if ctx.talent_profile is not None and booking.talent_id == ctx.talent_profile.pk:
            return
        if self._can_see(ctx, booking):
            raise PermissionDenied("only the assigned talent can do this")
        raise BookingNotFound("booking not found")

    def _require_customer(self, ctx: RequestContext, booking: Booking) -> None:
        if ctx.user is not None and booking.customer_id == ctx.user_id:
            return
        if self._can_see(ctx, booking):
            raise PermissionDenied("only the customer who made this booking can do this")
        raise BookingNotFound("booking not found")

    def get_for_context(self, ctx: RequestContext, booking_code: str) -> Booking:
        booking = (
            Booking.objects.select_related("talent", "customer", "payment")
            .filter(booking_code=booking_code)
            .first()
        )
        if not booking or not self._can_see(ctx, booking):
            raise BookingNotFound("booking not found")
        return booking

    # -- state changes -----------------------------------------------------

    def _emit(self, event_type: str, booking: Booking, **extra: Any) -> None:
        OutboxEvent.objects.create(
            type=event_type,
            payload={"booking_id": booking.pk, "booking_code": booking.booking_code, "status": booking.status, **extra},
        )

    def _transition(self, booking: Booking, target: str, event: Optional[Dict[str, Any]] = None, **fields) -> Booking:
        check_transition(booking.status, target)
        updated = Booking.objects.filter(pk=booking.pk, status=booking.status, version=booking.version).update(
            status=target, version=F("version") + 1, updated_at=timezone.now(), **fields
        )
        if not updated:
            logger.warning("Booking %s changed underneath a %s transition", booking.booking_code, target)
            raise ConcurrentModification("booking was modified concurrently; reload and retry")
        previous = booking.status
        booking.refresh_from_db()
        logger.info("Booking %s moved %s -> %s", booking.booking_code, previous, target)
        self._emit(f"booking_{target}", booking, previous_status=previous, **(event or {}))
        return booking

    # -- pricing & creation ------------------------------------------------

    def quote(self, talent_id, currency: str) -> Tuple[TalentProfile, Settlement]:
        validate_currency(currency)
        talent = self._get_talent(talent_id)
        price = talent.price_for(currency)
        if not price or price <= 0:
            raise ValidationError(f"this talent does not have pricing set for {currency}", field="currency")
        settlement = self.calculator.calculate(gross_amount=price, fee_rate=current_fee_rate(currency))
        return talent, settlement

    def create_booking(
        self,
        ctx: RequestContext,
        *,
        talent_id,
        recipient_name: str,
        occasion: str,
        instructions: str,
        currency: str,
    ) -> Booking:
        if ctx.user is None:
            raise PermissionDenied("log in to complete your booking")
        validate_booking_request_data(
            {
                "talent_id": talent_id,
                "recipient_name": recipient_name,
                "occasion": occasion,
                "instructions": instructions,
                "currency": currency,
            }
        )
        talent = self._get_talent(talent_id)
        if not talent.is_accepting_bookings:
            raise ValidationError("this talent is not currently accepting bookings", field="talent_id")
        talent, settlement = self.quote(talent.pk, currency)

        fields = dict(
            customer=ctx.user,
            talent=talent,
            recipient_name=recipient_name.strip(),
            occasion=occasion.strip(),
            instructions=instructions.strip(),
            currency=currency,
            amount_paid=settlement.gross_amount,
            platform_fee=settlement.platform_fee,
            talent_earnings=settlement.talent_earnings,
            fee_rate=settlement.fee_rate,
            status=BookingStatus.PENDING_PAYMENT,
        )
        for _ in range(CODE_ATTEMPTS):
            try:
                with transaction.atomic():
                    booking = Booking.objects.create(booking_code=generate_booking_code(), **fields)
                    self._emit("booking_created", booking, amount=f"{booking.amount_paid:.2f}", currency=currency)
            except IntegrityError:
                logger.warning("Booking code collision, retrying")
                continue
            logger.info(
                "Booking %s created for talent %s: %s %s (fee %s)",
                booking.booking_code, talent.pk, booking.amount_paid, currency, booking.platform_fee,
            )
            return booking
        raise MarketplaceError("could not allocate a booking code, please retry")

    # -- payment -----------------------------------------------------------

    def pay_booking(
        self,
        ctx: RequestContext,
        booking_code: str,
        gateway: str,
        details: Dict[str, Any],
        idempotency_key: str,
        fingerprint: str = "",
    ) -> Tuple[Booking, bool]:
        """Settle a booking through a gateway and confirm it.

        Returns ``(booking, created)``; ``created`` is False when the
        idempotency key was already used for the same request, in which case
        the stored result is returned and nothing is charged again.
        """
        if not idempotency_key:
            raise ValidationError("Idempotency-Key header required", field="idempotency_key")

        existing = Payment.objects.select_related("booking").filter(idempotency_key=idempotency_key).first()
        if existing:
            if existing.request_fingerprint != fingerprint or existing.booking.customer_id != ctx.user_id:
                raise IdempotencyConflict("Idempotency key conflict: different payload")
            logger.info("Replaying payment %s for key %s", existing.reference, idempotency_key)
            return existing.booking, False

        booking = self.get_for_context(ctx, booking_code)
        self._require_customer(ctx, booking)
        if booking.status != BookingStatus.PENDING_PAYMENT:
            if payment_for(booking) is not None:
                raise AlreadyConfirmed(booking.status)
            check_transition(booking.status, BookingStatus.PAYMENT_CONFIRMED)

        try:
            confirmation = async_to_sync(submit_payment)(
                gateway, booking.amount_paid, booking.currency, details, idempotency_key
            )
        except PaymentError as exc:
            logger.warning("Payment for %s failed: %s", booking.booking_code, exc)
            raise

        try:
            booking = self.confirm_payment(
                booking.pk, confirmation, idempotency_key=idempotency_key, request_fingerprint=fingerprint
            )
        except MarketplaceError:
            # the charge went through but the booking moved on; give the money back
            logger.error("Confirming %s failed after settlement %s, reversing", booking_code, confirmation.reference)
            async_to_sync(get_gateway(confirmation.gateway).reverse)(
                confirmation.reference, confirmation.amount, confirmation.currency
            )
            raise
        return booking, True

    def confirm_payment(
        self,
        booking_id,
        confirmation: PaymentConfirmation,
        *,
        idempotency_key: Optional[str] = None,
        request_fingerprint: str = "",
    ) -> Booking:
        """Record a successful settlement and confirm the booking atomically.

        A repeat with the same payment reference returns the booking as is.
        """
        with transaction.atomic():
            booking = self._lock(pk=booking_id)
            existing = payment_for(booking)
            if existing is not None:
                if existing.reference == confirmation.reference:
                    logger.info("Duplicate confirmation %s for %s ignored", confirmation.reference, booking.booking_code)
                    return booking
                logger.warning(
                    "Booking %s already paid by %s, rejecting %s",
                    booking.booking_code, existing.reference, confirmation.reference,
                )
                raise AlreadyConfirmed(booking.status)

            check_transition(booking.status, BookingStatus.PAYMENT_CONFIRMED)
            if Decimal(confirmation.amount) != booking.amount_paid or confirmation.currency != booking.currency:
                raise ValidationError("payment amount does not match the booking", field="amount")

            try:
                with transaction.atomic():
                    Payment.objects.create(
                        booking=booking,
                        gateway=confirmation.gateway,
                        reference=confirmation.reference,
                        amount=booking.amount_paid,
                        currency=booking.currency,
                        status=PaymentStatus.COMPLETED,
                        idempotency_key=idempotency_key,
                        request_fingerprint=request_fingerprint,
                        gateway_response=confirmation.as_gateway_response(),
                    )
            except IntegrityError:
                raise IdempotencyConflict("payment reference or idempotency key already used")

            hours = booking.talent.response_time_hours or settings.DEFAULT_RESPONSE_TIME_HOURS
            booking = self._transition(
                booking,
                BookingStatus.PAYMENT_CONFIRMED,
                event={"payment_reference": confirmation.reference, "gateway": confirmation.gateway},
                due_date=timezone.now() + timedelta(hours=hours),
            )
            refresh_talent_stats(booking.talent)
        return booking

    # -- fulfilment --------------------------------------------------------

    def start_work(self, ctx: RequestContext, booking_code: str) -> Booking:
        with transaction.atomic():
            booking = self._lock(booking_code=booking_code)
            self._require_assigned_talent(ctx, booking)
            return self._transition(booking, BookingStatus.IN_PROGRESS)

    @staticmethod
    def _clean_video_url(video_url: Optional[str]) -> str:
        if not video_url:
            raise ValidationError("video_url is required to complete a booking", field="video_url")
        try:
            URLValidator()(video_url)
        except DjangoValidationError:
            raise ValidationError("enter a valid video URL", field="video_url")
        return video_url

    def _complete(self, booking: Booking, video_url: str, actor: str) -> Booking:
        booking = self._transition(
            booking,
            BookingStatus.COMPLETED,
            event={"actor": actor},
            video_url=video_url,
            completed_at=timezone.now(),
        )
        refresh_talent_stats(booking.talent)
        return booking

    def deliver_video(self, ctx: RequestContext, booking_code: str, video_url: str) -> Booking:
        video_url = self._clean_video_url(video_url)
        with transaction.atomic():
            booking = self._lock(booking_code=booking_code)
            self._require_assigned_talent(ctx, booking)
            return self._complete(booking, video_url, ctx.actor_label)

    def complete(self, ctx: RequestContext, booking_id, video_url: Optional[str] = None) -> Booking:
        ctx.require_admin()
        video_url = self._clean_video_url(video_url)
        with transaction.atomic():
            booking = self._lock(pk=booking_id)
            return self._complete(booking, video_url, ctx.actor_label)

    # -- admin reversal ----------------------------------------------------

    def _reverse_payment(self, booking: Booking, reason: str) -> Optional[Dict[str, Any]]:
        payment = payment_for(booking)
        if payment is None or payment.status != PaymentStatus.COMPLETED:
            return None
        gateway = get_gateway(payment.gateway)
        try:
            result = async_to_sync(gateway.reverse)(payment.reference, payment.amount, payment.currency)
        except PaymentError as exc:
            logger.error("Reversal of %s for %s failed: %s", payment.reference, booking.booking_code, exc)
            raise
        payment.status = PaymentStatus.REFUNDED
        payment.gateway_response = {**payment.gateway_response, "reversal": {**result, "reason": reason}}
        payment.save(update_fields=["status", "gateway_response", "updated_at"])
        return result

    def cancel(self, ctx: RequestContext, booking_id, reason: str = "") -> Booking:
        ctx.require_admin()
        with transaction.atomic():
            booking = self._lock(pk=booking_id)
            check_transition(booking.status, BookingStatus.CANCELLED)
            reversal = self._reverse_payment(booking, reason)
            booking = self._transition(
                booking,
                BookingStatus.CANCELLED,
                event={"actor": ctx.actor_label, "reason": reason, "reversed": reversal is not None},
            )
            refresh_talent_stats(booking.talent)
        return booking

    def refund(self, ctx: RequestContext, booking_id, reason: str = "") -> Booking:
        ctx.require_admin()
        with transaction.atomic():
            booking = self._lock(pk=booking_id)
            check_transition(booking.status, BookingStatus.REFUNDED)
            if self._reverse_payment(booking, reason) is None:
                logger.warning("Booking %s has no settled payment to refund", booking.booking_code)
                raise InvalidStateTransition(
                    booking.status, BookingStatus.REFUNDED, "booking has no settled payment to refund"
                )
            booking = self._transition(
                booking, BookingStatus.REFUNDED, event={"actor": ctx.actor_label, "reason": reason}
            )
            refresh_talent_stats(booking.talent)
        return booking

    # -- reviews -----------------------------------------------------------

    def submit_review(self, ctx: RequestContext, booking_code: str, rating: int, review: str = "") -> Booking:
        try:
            rating = int(rating)
        except (TypeError, ValueError):
            raise ValidationError("rating must be a whole number from 1 to 5", field="rating")
        if not 1 <= rating <= 5:
            raise ValidationError("rating must be a whole number from 1 to 5", field="rating")

        with transaction.atomic():
            booking = self._lock(booking_code=booking_code)
            self._require_customer(ctx, booking)
            if booking.status != BookingStatus.COMPLETED:
                raise InvalidStateTransition(
                    booking.status, booking.status, "only completed bookings can be reviewed"
                )
            booking.customer_rating = rating
            booking.customer_review = (review or "").strip()
            booking.save(update_fields=["customer_rating", "customer_review", "updated_at"])
            self._emit("booking_reviewed", booking, rating=rating)
            refresh_talent_stats(booking.talent)
        return booking

    # -- reads -------------------------------------------------------------

    def list_for_role(
        self, ctx: RequestContext, role: Optional[str] = None, status: Optional[str] = None
    ) -> Iterator[Booking]:
        """Bookings visible to ``ctx`` acting as ``role``, newest first.

        Fans see their own bookings, talents the bookings assigned to them,
        admins everything. The result is a lazy iterator over the queryset.
        """
        role = role or ctx.role
        if role not in ROLES:
            raise ValidationError("role must be fan, talent or admin", field="role")
        if status and status != "all" and status not in BookingStatus.values:
            raise ValidationError("unknown booking status", field="status")

        qs = Booking.objects.select_related("talent", "customer", "payment").order_by("-created_at")
        if role == ADMIN:
            ctx.require_admin()
        elif role == TALENT:
            qs = qs.filter(talent=ctx.require_talent())
        elif role == FAN:
            if ctx.user is None:
                raise PermissionDenied("log in to see your bookings")
            qs = qs.filter(customer=ctx.user)

        if status and status != "all":
            qs = qs.filter(status=status)
        return qs.iterator()

    # -- housekeeping ------------------------------------------------------

    def cancel_overdue(self, now=None) -> int:
        """Cancel paid bookings whose due date passed without a delivery."""
        now = now or timezone.now()
        ctx = RequestContext.system()
        overdue = list(
            Booking.objects.filter(status__in=AWAITING_DELIVERY, due_date__lt=now).values_list("pk", flat=True)
        )
        cancelled = 0
        for booking_id in overdue:
            try:
                self.cancel(ctx, booking_id, reason="due date passed without delivery")
            except MarketplaceError as exc:
                logger.error("Could not cancel overdue booking %s: %s", booking_id, exc)
                continue
            cancelled += 1
        if overdue:
            logger.info("Cancelled %d of %d overdue bookings", cancelled, len(overdue))
        return cancelled
