from rest_framework import serializers

from marketplace.models import (
    ApplicationStatus,
    Booking,
    Favorite,
    Payment,
    Payout,
    PayoutMethod,
    TalentApplication,
    TalentProfile,
)


class QuoteRequestSerializer(serializers.Serializer):
    talent_id = serializers.IntegerField()
    currency = serializers.CharField()


class BookingRequestSerializer(serializers.Serializer):
    talent_id = serializers.IntegerField()
    recipient_name = serializers.CharField(max_length=120)
    occasion = serializers.CharField(max_length=120)
    instructions = serializers.CharField()
    currency = serializers.CharField()


class PaymentRequestSerializer(serializers.Serializer):
    booking_code = serializers.CharField()
    gateway = serializers.CharField()
    details = serializers.DictField(required=False, default=dict)


class DeliverySerializer(serializers.Serializer):
    video_url = serializers.CharField()


class AdminActionSerializer(serializers.Serializer):
    video_url = serializers.CharField(required=False, allow_blank=True)
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class ReviewSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
    review = serializers.CharField(required=False, allow_blank=True, default="")


class TalentSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = TalentProfile
        fields = ["id", "display_name", "category", "average_rating", "response_time_hours"]


class PaymentSerializer(serializers.ModelSerializer):
    masked_account = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = ["gateway", "reference", "amount", "currency", "status", "masked_account", "created_at"]

    def get_masked_account(self, obj):
        return (obj.gateway_response or {}).get("masked_account")


class BookingSerializer(serializers.ModelSerializer):
    talent = TalentSummarySerializer(read_only=True)
    payment = serializers.SerializerMethodField()
    customer = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            "id",
            "booking_code",
            "status",
            "talent",
            "customer",
            "recipient_name",
            "occasion",
            "instructions",
            "currency",
            "amount_paid",
            "platform_fee",
            "talent_earnings",
            "fee_rate",
            "video_url",
            "due_date",
            "completed_at",
            "customer_rating",
            "customer_review",
            "payment",
            "created_at",
            "updated_at",
        ]

    def get_payment(self, obj):
        try:
            payment = obj.payment
        except Payment.DoesNotExist:
            return None
        return PaymentSerializer(payment).data

    def get_customer(self, obj):
        return {"id": obj.customer_id, "username": obj.customer.get_username(), "email": obj.customer.email}

    def to_representation(self, instance):
        data = super().to_representation(instance)
        ctx = self.context.get("ctx")
        if ctx is None or not ctx.is_admin:
            data.pop("customer")
        return data


class TalentApplicationSerializer(serializers.ModelSerializer):
    # accepts the display labels from the join form as well as stored values
    category = serializers.CharField()
    agree_to_terms = serializers.BooleanField(write_only=True)

    class Meta:
        model = TalentApplication
        fields = "__all__"
        read_only_fields = [
            "user",
            "status",
            "admin_notes",
            "reviewed_by",
            "reviewed_at",
            "created_at",
            "updated_at",
        ]

    def validate_bio(self, value):
        if len(value.strip()) < 10:
            raise serializers.ValidationError("Tell us a bit more about yourself (at least 10 characters).")
        return value.strip()

    def validate_notable_work(self, value):
        if len(value.strip()) < 10:
            raise serializers.ValidationError("Describe your notable work (at least 10 characters).")
        return value.strip()

    def validate_agree_to_terms(self, value):
        if not value:
            raise serializers.ValidationError("You must agree to the terms to apply.")
        return value


class ApplicationStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ApplicationStatus.choices)
    admin_notes = serializers.CharField(required=False, allow_blank=True, default="")


class TalentSettingsSerializer(serializers.Serializer):
    display_name = serializers.CharField(required=False, max_length=120)
    bio = serializers.CharField(required=False, allow_blank=True)
    price_usd = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    price_zig = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    response_time_hours = serializers.IntegerField(required=False, min_value=1)
    is_accepting_bookings = serializers.BooleanField(required=False)


class TalentProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = TalentProfile
        exclude = ["user"]


class TalentCardSerializer(serializers.ModelSerializer):
    favorite_count = serializers.SerializerMethodField()

    class Meta:
        model = TalentProfile
        fields = [
            "id",
            "display_name",
            "bio",
            "category",
            "price_usd",
            "price_zig",
            "is_accepting_bookings",
            "response_time_hours",
            "admin_verified",
            "total_bookings",
            "completed_bookings",
            "average_rating",
            "favorite_count",
        ]

    def get_favorite_count(self, obj):
        # annotated by the catalogue queries
        count = getattr(obj, "favorite_count", None)
        return obj.favorited_by.count() if count is None else count


class FavoriteRequestSerializer(serializers.Serializer):
    talent_id = serializers.IntegerField()


class FavoriteSerializer(serializers.ModelSerializer):
    talent = TalentCardSerializer(read_only=True)

    class Meta:
        model = Favorite
        fields = ["talent", "created_at"]


class PayoutRequestSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField(required=False, default="USD")
    payment_method = serializers.ChoiceField(choices=PayoutMethod.choices)
    account_details = serializers.CharField(max_length=200)


class PayoutSerializer(serializers.ModelSerializer):
    account_details = serializers.SerializerMethodField()

    class Meta:
        model = Payout
        fields = [
            "id",
            "reference",
            "amount",
            "currency",
            "payment_method",
            "account_details",
            "status",
            "estimated_arrival",
            "created_at",
        ]

    def get_account_details(self, obj):
        return f"****{obj.account_details[-4:]}"
