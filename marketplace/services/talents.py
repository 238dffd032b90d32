import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Tuple

from django.db import transaction
from django.db.models import Avg, Count, Q
from django.utils import timezone

from marketplace.models import (
    ApplicationStatus,
    Booking,
    BookingStatus,
    TalentApplication,
    TalentCategory,
    TalentProfile,
)

from .context import RequestContext
from .exceptions import NotFound, PermissionDenied, ValidationError
from .lifecycle import PAID_STATES

logger = logging.getLogger(__name__)

# labels shown on the join form
CATEGORY_LABELS = {
    "Musician": TalentCategory.MUSICIAN,
    "Comedian": TalentCategory.COMEDIAN,
    "Gospel Artist": TalentCategory.GOSPEL,
    "Actor/Actress": TalentCategory.OTHER,
    "Sports Personality": TalentCategory.SPORTS,
    "Media Personality": TalentCategory.OTHER,
    "Influencer": TalentCategory.INFLUENCER,
    "Business": TalentCategory.BUSINESS,
    "Other": TalentCategory.OTHER,
}

BLOCKING_STATUS_MESSAGES = {
    ApplicationStatus.PENDING: "Please wait for review.",
    ApplicationStatus.UNDER_REVIEW: "Your application is currently under review.",
    ApplicationStatus.APPROVED: "Your application has been approved!",
    ApplicationStatus.ONBOARDING: "Your application is being processed.",
}

SETTINGS_FIELDS = ("display_name", "bio", "price_usd", "price_zig", "response_time_hours", "is_accepting_bookings")


def normalize_category(value: str) -> str:
    value = (value or "").strip()
    if value.lower() in TalentCategory.values:
        return value.lower()
    return CATEGORY_LABELS.get(value, TalentCategory.OTHER)


def refresh_talent_stats(talent: TalentProfile) -> TalentProfile:
    """Recompute booking counters and the average rating from the bookings table."""
    stats = Booking.objects.filter(talent=talent).aggregate(
        total=Count("pk", filter=Q(status__in=PAID_STATES)),
        completed=Count("pk", filter=Q(status=BookingStatus.COMPLETED)),
        rating=Avg(
            "customer_rating",
            filter=Q(status=BookingStatus.COMPLETED, customer_rating__isnull=False),
        ),
    )
    rating = stats["rating"]
    talent.total_bookings = stats["total"]
    talent.completed_bookings = stats["completed"]
    talent.average_rating = (
        Decimal(str(rating)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP) if rating is not None else Decimal("0.00")
    )
    TalentProfile.objects.filter(pk=talent.pk).update(
        total_bookings=talent.total_bookings,
        completed_bookings=talent.completed_bookings,
        average_rating=talent.average_rating,
        updated_at=timezone.now(),
    )
    return talent


def submit_application(ctx: RequestContext, data: Dict[str, Any]) -> Tuple[TalentApplication, bool]:
    """Create the caller's talent application, or resubmit a rejected one.

    Returns ``(application, resubmitted)``.
    """
    if ctx.user is None:
        raise PermissionDenied("you must be logged in to submit an application")

    fields = dict(data)
    fields["category"] = normalize_category(fields.get("category", ""))
    if fields.get("email"):
        fields["email"] = fields["email"].strip().lower()

    with transaction.atomic():
        existing = TalentApplication.objects.select_for_update().filter(user=ctx.user).first()
        if existing is None:
            application = TalentApplication.objects.create(user=ctx.user, **fields)
            logger.info("Talent application %s submitted by user %s", application.pk, ctx.user_id)
            return application, False

        if existing.status != ApplicationStatus.REJECTED:
            message = BLOCKING_STATUS_MESSAGES.get(existing.status, "Please wait for review.")
            raise ValidationError(
                f"You already have an application with status: {existing.status}. {message}", field="status"
            )

        for name, value in fields.items():
            setattr(existing, name, value)
        # admin_notes stays so the applicant can see the previous feedback
        existing.status = ApplicationStatus.PENDING
        existing.reviewed_by = None
        existing.reviewed_at = None
        existing.save()
        logger.info("Talent application %s resubmitted by user %s", existing.pk, ctx.user_id)
        return existing, True


def get_application(ctx: RequestContext, application_id) -> TalentApplication:
    ctx.require_admin()
    application = TalentApplication.objects.filter(pk=application_id).first()
    if not application:
        raise NotFound("application not found")
    return application


def provision_talent_profile(application: TalentApplication) -> Tuple[TalentProfile, bool]:
    profile, created = TalentProfile.objects.get_or_create(
        user=application.user,
        defaults={
            "display_name": application.stage_name,
            "bio": application.bio,
            "category": application.category,
            "price_usd": application.proposed_price_usd,
            "response_time_hours": application.response_time_hours,
            "admin_verified": True,
            "is_accepting_bookings": True,
        },
    )
    if created:
        logger.info("Provisioned talent profile %s for user %s", profile.pk, application.user_id)
    return profile, created


def update_application_status(
    ctx: RequestContext, application_id, status: str, admin_notes: str = ""
) -> TalentApplication:
    ctx.require_admin()
    if status not in ApplicationStatus.values:
        raise ValidationError("invalid status", field="status")

    with transaction.atomic():
        application = TalentApplication.objects.select_for_update().filter(pk=application_id).first()
        if not application:
            raise NotFound("application not found")

        previous = application.status
        application.status = status
        if admin_notes:
            application.admin_notes = admin_notes
        if status != ApplicationStatus.PENDING:
            application.reviewed_by = ctx.user
            application.reviewed_at = timezone.now()
        application.save()

        if status == ApplicationStatus.APPROVED:
            provision_talent_profile(application)

    logger.info("Talent application %s moved %s -> %s by %s", application.pk, previous, status, ctx.actor_label)
    return application


def update_talent_settings(ctx: RequestContext, **changes) -> TalentProfile:
    current = ctx.require_talent()
    unknown = set(changes) - set(SETTINGS_FIELDS)
    if unknown:
        raise ValidationError(f"cannot change {', '.join(sorted(unknown))}", field=sorted(unknown)[0])
    for name in ("price_usd", "price_zig"):
        if changes.get(name) is not None and changes[name] < 0:
            raise ValidationError("price cannot be negative", field=name)

    with transaction.atomic():
        profile = TalentProfile.objects.select_for_update().get(pk=current.pk)
        for name, value in changes.items():
            setattr(profile, name, value)
        profile.save(update_fields=list(changes) + ["updated_at"])
    logger.info("Talent %s updated settings: %s", profile.pk, ", ".join(sorted(changes)))
    return profile
