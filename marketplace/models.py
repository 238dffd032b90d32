from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone


class Currency(models.TextChoices):
    USD = "USD", "US Dollar"
    ZIG = "ZIG", "Zimbabwe Gold"


class TalentCategory(models.TextChoices):
    MUSICIAN = "musician", "Musician"
    COMEDIAN = "comedian", "Comedian"
    GOSPEL = "gospel", "Gospel Artist"
    BUSINESS = "business", "Business"
    SPORTS = "sports", "Sports Personality"
    INFLUENCER = "influencer", "Influencer"
    OTHER = "other", "Other"


class BookingStatus(models.TextChoices):
    PENDING_PAYMENT = "pending_payment", "Pending payment"
    PAYMENT_CONFIRMED = "payment_confirmed", "Payment confirmed"
    IN_PROGRESS = "in_progress", "In progress"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"


class PaymentGateway(models.TextChoices):
    PAYNOW = "paynow", "Paynow"
    STRIPE = "stripe", "Stripe"
    INNBUCKS = "innbucks", "InnBucks"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


class ApplicationStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    UNDER_REVIEW = "under_review", "Under review"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    ONBOARDING = "onboarding", "Onboarding"


class PayoutMethod(models.TextChoices):
    BANK_TRANSFER = "bank_transfer", "Bank transfer"
    ECOCASH = "ecocash", "EcoCash"
    INNBUCKS = "innbucks", "InnBucks"


class PayoutStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class TalentProfile(models.Model):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="talent_profile")
    display_name = models.CharField(max_length=120)
    bio = models.TextField(blank=True)
    category = models.CharField(max_length=20, choices=TalentCategory.choices, default=TalentCategory.OTHER)
    price_usd = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    price_zig = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    is_accepting_bookings = models.BooleanField(default=True)
    response_time_hours = models.PositiveIntegerField(default=72)
    admin_verified = models.BooleanField(default=False)

    # aggregates, recomputed from bookings
    total_bookings = models.PositiveIntegerField(default=0)
    completed_bookings = models.PositiveIntegerField(default=0)
    average_rating = models.DecimalField(max_digits=3, decimal_places=2, default=Decimal("0.00"))

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    def price_for(self, currency: str):
        if currency == Currency.USD:
            return self.price_usd
        if currency == Currency.ZIG:
            return self.price_zig
        return None

    def __str__(self):
        return self.display_name


class TalentApplication(models.Model):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="talent_application")
    first_name = models.CharField(max_length=80)
    last_name = models.CharField(max_length=80)
    stage_name = models.CharField(max_length=120)
    email = models.EmailField()
    phone = models.CharField(max_length=32)
    category = models.CharField(max_length=20, choices=TalentCategory.choices, default=TalentCategory.OTHER)
    bio = models.TextField()
    years_active = models.PositiveIntegerField()
    notable_work = models.TextField()

    instagram_handle = models.CharField(max_length=120, blank=True)
    instagram_followers = models.PositiveIntegerField(null=True, blank=True)
    facebook_page = models.CharField(max_length=200, blank=True)
    facebook_followers = models.PositiveIntegerField(null=True, blank=True)
    youtube_channel = models.CharField(max_length=200, blank=True)
    youtube_subscribers = models.PositiveIntegerField(null=True, blank=True)
    twitter_handle = models.CharField(max_length=120, blank=True)
    tiktok_handle = models.CharField(max_length=120, blank=True)

    proposed_price_usd = models.DecimalField(max_digits=12, decimal_places=2)
    response_time_hours = models.PositiveIntegerField()
    hear_about_us = models.CharField(max_length=200, blank=True)
    additional_info = models.TextField(blank=True)

    status = models.CharField(max_length=20, choices=ApplicationStatus.choices, default=ApplicationStatus.PENDING)
    admin_notes = models.TextField(blank=True)
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.stage_name}:{self.status}"


class Booking(models.Model):
    booking_code = models.CharField(max_length=32, unique=True)
    customer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="bookings")
    talent = models.ForeignKey(TalentProfile, on_delete=models.PROTECT, related_name="bookings")
    recipient_name = models.CharField(max_length=120)
    occasion = models.CharField(max_length=120)
    instructions = models.TextField()

    currency = models.CharField(max_length=3, choices=Currency.choices)
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2)
    platform_fee = models.DecimalField(max_digits=12, decimal_places=2)
    talent_earnings = models.DecimalField(max_digits=12, decimal_places=2)
    fee_rate = models.DecimalField(max_digits=5, decimal_places=4)

    status = models.CharField(
        max_length=20, choices=BookingStatus.choices, default=BookingStatus.PENDING_PAYMENT, db_index=True
    )
    video_url = models.URLField(max_length=500, null=True, blank=True)
    due_date = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    customer_rating = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    customer_review = models.TextField(blank=True)
    version = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(status="completed", video_url__isnull=False, completed_at__isnull=False)
                    | Q(status="refunded")
                    | (~Q(status="completed") & Q(video_url__isnull=True, completed_at__isnull=True))
                ),
                name="booking_completion_fields_match_status",
            ),
        ]

    def __str__(self):
        return self.booking_code


class Payment(models.Model):
    booking = models.OneToOneField(Booking, on_delete=models.PROTECT, related_name="payment")
    gateway = models.CharField(max_length=20, choices=PaymentGateway.choices)
    reference = models.CharField(max_length=64, unique=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, choices=Currency.choices)
    status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    idempotency_key = models.CharField(max_length=128, unique=True, null=True, blank=True)
    request_fingerprint = models.CharField(max_length=64, blank=True)
    gateway_response = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.reference


class OutboxEvent(models.Model):
    type = models.CharField(max_length=64)
    payload = models.JSONField()
    status = models.CharField(max_length=32, default="pending")
    created_at = models.DateTimeField(default=timezone.now)
    published_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"{self.type}:{self.status}"


class Payout(models.Model):
    talent = models.ForeignKey(TalentProfile, on_delete=models.PROTECT, related_name="payouts")
    reference = models.CharField(max_length=32, unique=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, choices=Currency.choices)
    payment_method = models.CharField(max_length=20, choices=PayoutMethod.choices)
    account_details = models.CharField(max_length=200)
    status = models.CharField(max_length=20, choices=PayoutStatus.choices, default=PayoutStatus.PENDING)
    estimated_arrival = models.DateTimeField()
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-pk"]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="payout_amount_positive"),
        ]

    def __str__(self):
        return self.reference


class Favorite(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="favorites")
    talent = models.ForeignKey(TalentProfile, on_delete=models.CASCADE, related_name="favorited_by")
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at", "-pk"]
        constraints = [
            models.UniqueConstraint(fields=["user", "talent"], name="favorite_unique_user_talent"),
        ]

    def __str__(self):
        return f"{self.user_id}:{self.talent_id}"
