import decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


CATEGORY_CHOICES = [
    ("musician", "Musician"),
    ("comedian", "Comedian"),
    ("gospel", "Gospel Artist"),
    ("business", "Business"),
    ("sports", "Sports Personality"),
    ("influencer", "Influencer"),
    ("other", "Other"),
]
CURRENCY_CHOICES = [("USD", "US Dollar"), ("ZIG", "Zimbabwe Gold")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="OutboxEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("type", models.CharField(max_length=64)),
                ("payload", models.JSONField()),
                ("status", models.CharField(default="pending", max_length=32)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("published_at", models.DateTimeField(blank=True, null=True)),
            ],
        ),
        migrations.CreateModel(
            name="TalentProfile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("display_name", models.CharField(max_length=120)),
                ("bio", models.TextField(blank=True)),
                ("category", models.CharField(choices=CATEGORY_CHOICES, default="other", max_length=20)),
                ("price_usd", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("price_zig", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("is_accepting_bookings", models.BooleanField(default=True)),
                ("response_time_hours", models.PositiveIntegerField(default=72)),
                ("admin_verified", models.BooleanField(default=False)),
                ("total_bookings", models.PositiveIntegerField(default=0)),
                ("completed_bookings", models.PositiveIntegerField(default=0)),
                ("average_rating", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=3)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="talent_profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="TalentApplication",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("first_name", models.CharField(max_length=80)),
                ("last_name", models.CharField(max_length=80)),
                ("stage_name", models.CharField(max_length=120)),
                ("email", models.EmailField(max_length=254)),
                ("phone", models.CharField(max_length=32)),
                ("category", models.CharField(choices=CATEGORY_CHOICES, default="other", max_length=20)),
                ("bio", models.TextField()),
                ("years_active", models.PositiveIntegerField()),
                ("notable_work", models.TextField()),
                ("instagram_handle", models.CharField(blank=True, max_length=120)),
                ("instagram_followers", models.PositiveIntegerField(blank=True, null=True)),
                ("facebook_page", models.CharField(blank=True, max_length=200)),
                ("facebook_followers", models.PositiveIntegerField(blank=True, null=True)),
                ("youtube_channel", models.CharField(blank=True, max_length=200)),
                ("youtube_subscribers", models.PositiveIntegerField(blank=True, null=True)),
                ("twitter_handle", models.CharField(blank=True, max_length=120)),
                ("tiktok_handle", models.CharField(blank=True, max_length=120)),
                ("proposed_price_usd", models.DecimalField(decimal_places=2, max_digits=12)),
                ("response_time_hours", models.PositiveIntegerField()),
                ("hear_about_us", models.CharField(blank=True, max_length=200)),
                ("additional_info", models.TextField(blank=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("under_review", "Under review"),
                            ("approved", "Approved"),
                            ("rejected", "Rejected"),
                            ("onboarding", "Onboarding"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("admin_notes", models.TextField(blank=True)),
                ("reviewed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "reviewed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="talent_application",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("booking_code", models.CharField(max_length=32, unique=True)),
                ("recipient_name", models.CharField(max_length=120)),
                ("occasion", models.CharField(max_length=120)),
                ("instructions", models.TextField()),
                ("currency", models.CharField(choices=CURRENCY_CHOICES, max_length=3)),
                ("amount_paid", models.DecimalField(decimal_places=2, max_digits=12)),
                ("platform_fee", models.DecimalField(decimal_places=2, max_digits=12)),
                ("talent_earnings", models.DecimalField(decimal_places=2, max_digits=12)),
                ("fee_rate", models.DecimalField(decimal_places=4, max_digits=5)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending_payment", "Pending payment"),
                            ("payment_confirmed", "Payment confirmed"),
                            ("in_progress", "In progress"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                            ("refunded", "Refunded"),
                        ],
                        db_index=True,
                        default="pending_payment",
                        max_length=20,
                    ),
                ),
                ("video_url", models.URLField(blank=True, max_length=500, null=True)),
                ("due_date", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "customer_rating",
                    models.PositiveSmallIntegerField(
                        blank=True,
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(5),
                        ],
                    ),
                ),
                ("customer_review", models.TextField(blank=True)),
                ("version", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "talent",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="marketplace.talentprofile",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=(
                            models.Q(status="completed", video_url__isnull=False, completed_at__isnull=False)
                            | models.Q(status="refunded")
                            | (
                                ~models.Q(status="completed")
                                & models.Q(video_url__isnull=True, completed_at__isnull=True)
                            )
                        ),
                        name="booking_completion_fields_match_status",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "gateway",
                    models.CharField(
                        choices=[("paynow", "Paynow"), ("stripe", "Stripe"), ("innbucks", "InnBucks")],
                        max_length=20,
                    ),
                ),
                ("reference", models.CharField(max_length=64, unique=True)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(choices=CURRENCY_CHOICES, max_length=3)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("refunded", "Refunded"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("idempotency_key", models.CharField(blank=True, max_length=128, null=True, unique=True)),
                ("request_fingerprint", models.CharField(blank=True, max_length=64)),
                ("gateway_response", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "booking",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment",
                        to="marketplace.booking",
                    ),
                ),
            ],
        ),
    ]
