from decimal import Decimal

from marketplace.models import Payout
from marketplace.services.bookings import BookingService

from .factories import VIDEO_URL, confirmation_for, ctx_for, make_talent, make_user
from .test_api_bookings import ApiTestCase


class TalentCatalogApiTests(ApiTestCase):
    def test_browse_without_login(self):
        comic = make_talent("comic", category="comedian", total_bookings=3)
        make_talent("newbie", admin_verified=False)

        r = self.client.get("/api/v1/talents")
        self.assertEqual(r.status_code, 200)
        self.assertEqual([t["id"] for t in r.data["results"]], [comic.pk, self.talent.pk])
        self.assertEqual(r.data["results"][0]["favorite_count"], 0)

        r = self.client.get("/api/v1/talents", {"category": "comedian", "search": "COMIC"})
        self.assertEqual([t["id"] for t in r.data["results"]], [comic.pk])

        r = self.client.get("/api/v1/talents", {"category": "juggler"})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.data["field"], "category")

        r = self.client.get("/api/v1/talents", {"verified": "false"})
        self.assertEqual(r.status_code, 403)

    def test_detail_and_featured(self):
        hidden = make_talent("newbie", admin_verified=False)

        r = self.client.get(f"/api/v1/talents/{self.talent.pk}")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.data["display_name"], self.talent.display_name)
        self.assertFalse(r.data["is_favorite"])

        r = self.client.get(f"/api/v1/talents/{hidden.pk}")
        self.assertEqual(r.status_code, 404)
        self.assertEqual(r.data["code"], "talent_not_found")

        r = self.client.get("/api/v1/talents/featured", {"limit": "1"})
        self.assertEqual(r.status_code, 200)
        self.assertEqual([t["id"] for t in r.data["results"]], [self.talent.pk])

        r = self.client.get("/api/v1/talents/featured", {"limit": "many"})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.data["field"], "limit")


class FavoriteApiTests(ApiTestCase):
    def test_favorite_lifecycle(self):
        self.login(self.fan)
        r = self.client.post("/api/v1/favorites", {"talent_id": self.talent.pk}, format="json")
        self.assertEqual(r.status_code, 201, r.data)
        self.assertEqual(r.data["talent"]["id"], self.talent.pk)

        r = self.client.post("/api/v1/favorites", {"talent_id": self.talent.pk}, format="json")
        self.assertEqual(r.status_code, 409)
        self.assertEqual(r.data["code"], "already_favorite")

        r = self.client.get("/api/v1/favorites")
        self.assertEqual(r.data["count"], 1)

        r = self.client.get(f"/api/v1/talents/{self.talent.pk}")
        self.assertTrue(r.data["is_favorite"])
        self.assertEqual(r.data["favorite_count"], 1)

        r = self.client.delete(f"/api/v1/favorites/{self.talent.pk}")
        self.assertEqual(r.status_code, 204)
        r = self.client.delete(f"/api/v1/favorites/{self.talent.pk}")
        self.assertEqual(r.status_code, 404)

    def test_requires_login(self):
        r = self.client.get("/api/v1/favorites")
        self.assertEqual(r.status_code, 403)


class PayoutApiTests(ApiTestCase):
    def complete_booking(self):
        service = BookingService()
        booking = service.create_booking(
            ctx_for(self.fan),
            talent_id=self.talent.pk,
            recipient_name="Rudo",
            occasion="Birthday",
            instructions="Wish Rudo a happy birthday",
            currency="USD",
        )
        booking = service.confirm_payment(booking.pk, confirmation_for(booking))
        return service.deliver_video(ctx_for(self.talent.user), booking.booking_code, VIDEO_URL)

    def test_request_and_history(self):
        self.complete_booking()
        self.login(self.talent.user)

        r = self.client.get("/api/v1/payouts")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.data["available"], {"USD": "75.00", "ZIG": "0.00"})
        self.assertEqual(r.data["count"], 0)

        payload = {"amount": "50.00", "payment_method": "ecocash", "account_details": "0771234567"}
        r = self.client.post("/api/v1/payouts", payload, format="json")
        self.assertEqual(r.status_code, 201, r.data)
        self.assertTrue(r.data["reference"].startswith("PO-"))
        self.assertEqual(r.data["account_details"], "****4567")
        self.assertEqual(r.data["status"], "pending")
        self.assertEqual(Payout.objects.get().amount, Decimal("50.00"))

        r = self.client.post("/api/v1/payouts", payload, format="json")
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.data["code"], "insufficient_balance")

        r = self.client.get("/api/v1/payouts")
        self.assertEqual(r.data["available"]["USD"], "25.00")
        self.assertEqual(r.data["count"], 1)

    def test_bad_method(self):
        self.login(self.talent.user)
        r = self.client.post(
            "/api/v1/payouts", {"amount": "5.00", "payment_method": "paypal", "account_details": "x"}, format="json"
        )
        self.assertEqual(r.status_code, 400)
        self.assertIn("payment_method", r.data)

    def test_fans_have_no_payouts(self):
        self.login(make_user())
        r = self.client.get("/api/v1/payouts")
        self.assertEqual(r.status_code, 403)
