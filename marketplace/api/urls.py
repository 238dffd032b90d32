from django.urls import path, re_path

from .views import (
    AdminBookingActionView,
    BookingDeliverView,
    BookingDetailView,
    BookingListView,
    BookingReviewView,
    BookingStartView,
    DashboardView,
    FavoriteDetailView,
    FavoriteListView,
    FeaturedTalentsView,
    PaymentView,
    PayoutView,
    QuoteView,
    TalentApplicationDetailView,
    TalentApplicationStatusView,
    TalentApplicationView,
    TalentDetailView,
    TalentListView,
    TalentSettingsView,
)

urlpatterns = [
    path("checkout/quote", QuoteView.as_view(), name="quote"),
    path("bookings", BookingListView.as_view(), name="bookings"),
    path("bookings/<str:booking_code>", BookingDetailView.as_view(), name="booking-detail"),
    path("bookings/<str:booking_code>/start", BookingStartView.as_view(), name="booking-start"),
    path("bookings/<str:booking_code>/deliver", BookingDeliverView.as_view(), name="booking-deliver"),
    path("bookings/<str:booking_code>/review", BookingReviewView.as_view(), name="booking-review"),
    re_path(
        r"^admin/bookings/(?P<booking_id>\d+)/(?P<action>cancel|refund|complete)$",
        AdminBookingActionView.as_view(),
        name="admin-booking-action",
    ),
    path("payments", PaymentView.as_view(), name="payments"),
    path("dashboard", DashboardView.as_view(), name="dashboard"),
    path("talent-applications", TalentApplicationView.as_view(), name="talent-applications"),
    path("talent-applications/<int:application_id>", TalentApplicationDetailView.as_view(), name="talent-application-detail"),
    path(
        "talent-applications/<int:application_id>/status",
        TalentApplicationStatusView.as_view(),
        name="talent-application-status",
    ),
    path("talents", TalentListView.as_view(), name="talents"),
    path("talents/featured", FeaturedTalentsView.as_view(), name="talents-featured"),
    path("talents/me", TalentSettingsView.as_view(), name="talent-settings"),
    path("talents/<int:talent_id>", TalentDetailView.as_view(), name="talent-detail"),
    path("favorites", FavoriteListView.as_view(), name="favorites"),
    path("favorites/<int:talent_id>", FavoriteDetailView.as_view(), name="favorite-detail"),
    path("payouts", PayoutView.as_view(), name="payouts"),
]
