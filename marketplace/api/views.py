import hashlib
import json
import logging

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from marketplace.services.bookings import BookingService
from marketplace.services.catalog import TalentFilters, browse_talents, featured_talents, get_talent
from marketplace.services.context import RequestContext
from marketplace.services.dashboard import compute_dashboard
from marketplace.services.exceptions import MarketplaceError, ValidationError
from marketplace.services.favorites import add_favorite, is_favorite, list_favorites, remove_favorite
from marketplace.services.payouts import balances, list_payouts, request_payout
from marketplace.services.talents import (
    get_application,
    submit_application,
    update_application_status,
    update_talent_settings,
)

from .permissions import IsPlatformAdmin, IsTalent
from .serializers import (
    AdminActionSerializer,
    ApplicationStatusSerializer,
    BookingRequestSerializer,
    BookingSerializer,
    DeliverySerializer,
    FavoriteRequestSerializer,
    FavoriteSerializer,
    PaymentRequestSerializer,
    PayoutRequestSerializer,
    PayoutSerializer,
    QuoteRequestSerializer,
    ReviewSerializer,
    TalentApplicationSerializer,
    TalentCardSerializer,
    TalentProfileSerializer,
    TalentSettingsSerializer,
)

logger = logging.getLogger(__name__)


def request_fingerprint(data) -> str:
    """Stable digest of a request body, so raw payment details are never stored."""
    body = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


def booking_response(booking, ctx, status_code=status.HTTP_200_OK):
    return Response(BookingSerializer(booking, context={"ctx": ctx}).data, status=status_code)


class QuoteView(APIView):
    def post(self, request):
        serializer = QuoteRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            talent, settlement = BookingService().quote(data["talent_id"], data["currency"])
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response(
            {"talent_id": talent.pk, "display_name": talent.display_name, "currency": data["currency"], **settlement.as_dict()}
        )


class BookingListView(APIView):
    def get(self, request):
        ctx = RequestContext.from_request(request)
        try:
            bookings = BookingService().list_for_role(
                ctx, role=request.query_params.get("role"), status=request.query_params.get("status")
            )
            data = [BookingSerializer(b, context={"ctx": ctx}).data for b in bookings]
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response({"count": len(data), "results": data})

    def post(self, request):
        serializer = BookingRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ctx = RequestContext.from_request(request)

        try:
            booking = BookingService().create_booking(ctx, **serializer.validated_data)
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        return booking_response(booking, ctx, status.HTTP_201_CREATED)


class BookingDetailView(APIView):
    def get(self, request, booking_code):
        ctx = RequestContext.from_request(request)
        try:
            booking = BookingService().get_for_context(ctx, booking_code)
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        return booking_response(booking, ctx)


class BookingStartView(APIView):
    def post(self, request, booking_code):
        ctx = RequestContext.from_request(request)
        try:
            booking = BookingService().start_work(ctx, booking_code)
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        return booking_response(booking, ctx)


class BookingDeliverView(APIView):
    def post(self, request, booking_code):
        serializer = DeliverySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ctx = RequestContext.from_request(request)

        try:
            booking = BookingService().deliver_video(ctx, booking_code, serializer.validated_data["video_url"])
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        return booking_response(booking, ctx)


class BookingReviewView(APIView):
    def post(self, request, booking_code):
        serializer = ReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        ctx = RequestContext.from_request(request)

        try:
            booking = BookingService().submit_review(ctx, booking_code, data["rating"], data["review"])
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        return booking_response(booking, ctx)


class AdminBookingActionView(APIView):
    permission_classes = [IsPlatformAdmin]

    def post(self, request, booking_id, action):
        serializer = AdminActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        ctx = RequestContext.from_request(request)
        service = BookingService()

        try:
            if action == "cancel":
                booking = service.cancel(ctx, booking_id, reason=data["reason"])
            elif action == "refund":
                booking = service.refund(ctx, booking_id, reason=data["reason"])
            else:
                booking = service.complete(ctx, booking_id, video_url=data.get("video_url"))
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        logger.info("Admin %s ran %s on booking %s", ctx.actor_label, action, booking.booking_code)
        return booking_response(booking, ctx)


class PaymentView(APIView):
    def post(self, request):
        serializer = PaymentRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        idemp_key = request.headers.get("Idempotency-Key")

        # Idempotency key is required and must not be blank
        if not idemp_key:
            return Response(
                {"detail": "Idempotency-Key header required", "code": "validation_error", "field": "idempotency_key"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        ctx = RequestContext.from_request(request)
        try:
            booking, created = BookingService().pay_booking(
                ctx,
                data["booking_code"],
                data["gateway"],
                data["details"],
                idempotency_key=idemp_key,
                fingerprint=request_fingerprint(request.data),
            )
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        return booking_response(booking, ctx, status.HTTP_201_CREATED if created else status.HTTP_200_OK)


class DashboardView(APIView):
    def get(self, request):
        ctx = RequestContext.from_request(request)
        try:
            stats = compute_dashboard(ctx, role=request.query_params.get("role"))
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response(stats.as_dict())


class TalentApplicationView(APIView):
    def post(self, request):
        serializer = TalentApplicationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        data.pop("agree_to_terms", None)
        ctx = RequestContext.from_request(request)

        try:
            application, resubmitted = submit_application(ctx, data)
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response(
            TalentApplicationSerializer(application).data,
            status=status.HTTP_200_OK if resubmitted else status.HTTP_201_CREATED,
        )


class TalentApplicationDetailView(APIView):
    permission_classes = [IsPlatformAdmin]

    def get(self, request, application_id):
        try:
            application = get_application(RequestContext.from_request(request), application_id)
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response(TalentApplicationSerializer(application).data)


class TalentApplicationStatusView(APIView):
    permission_classes = [IsPlatformAdmin]

    def patch(self, request, application_id):
        serializer = ApplicationStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            application = update_application_status(
                RequestContext.from_request(request), application_id, data["status"], data["admin_notes"]
            )
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response(TalentApplicationSerializer(application).data)


class TalentSettingsView(APIView):
    permission_classes = [IsAuthenticated, IsTalent]

    def patch(self, request):
        serializer = TalentSettingsSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        try:
            profile = update_talent_settings(RequestContext.from_request(request), **serializer.validated_data)
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response(TalentProfileSerializer(profile).data)


class TalentListView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        ctx = RequestContext.from_request(request)
        try:
            talents = browse_talents(ctx, TalentFilters.from_query(request.query_params))
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        data = TalentCardSerializer(talents, many=True).data
        return Response({"count": len(data), "results": data})


class FeaturedTalentsView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        try:
            limit = request.query_params.get("limit")
            if limit is not None and not limit.isdecimal():
                raise ValidationError("limit must be a whole number", field="limit")
            talents = featured_talents(int(limit)) if limit else featured_talents()
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response({"results": TalentCardSerializer(talents, many=True).data})


class TalentDetailView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, talent_id):
        ctx = RequestContext.from_request(request)
        try:
            talent = get_talent(ctx, talent_id)
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response({**TalentCardSerializer(talent).data, "is_favorite": is_favorite(ctx, talent.pk)})


class FavoriteListView(APIView):
    def get(self, request):
        favorites = list_favorites(RequestContext.from_request(request))
        data = FavoriteSerializer(favorites, many=True).data
        return Response({"count": len(data), "results": data})

    def post(self, request):
        serializer = FavoriteRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            favorite = add_favorite(RequestContext.from_request(request), serializer.validated_data["talent_id"])
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response(FavoriteSerializer(favorite).data, status=status.HTTP_201_CREATED)


class FavoriteDetailView(APIView):
    def delete(self, request, talent_id):
        try:
            remove_favorite(RequestContext.from_request(request), talent_id)
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response(status=status.HTTP_204_NO_CONTENT)


class PayoutView(APIView):
    permission_classes = [IsAuthenticated, IsTalent]

    def get(self, request):
        ctx = RequestContext.from_request(request)
        try:
            payouts = list_payouts(ctx)
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        available = {currency: f"{amount:.2f}" for currency, amount in balances(ctx.talent_profile).items()}
        data = PayoutSerializer(payouts, many=True).data
        return Response({"available": available, "count": len(data), "results": data})

    def post(self, request):
        serializer = PayoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            payout = request_payout(RequestContext.from_request(request), **serializer.validated_data)
        except MarketplaceError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response(PayoutSerializer(payout).data, status=status.HTTP_201_CREATED)
