from decimal import Decimal

from django.test import TestCase

from marketplace.models import Favorite
from marketplace.services.catalog import TalentFilters, browse_talents, featured_talents, get_talent
from marketplace.services.context import FAN, RequestContext
from marketplace.services.exceptions import (
    AlreadyFavorite,
    NotFound,
    PermissionDenied,
    TalentNotFound,
    ValidationError,
)
from marketplace.services.favorites import add_favorite, is_favorite, list_favorites, remove_favorite, toggle_favorite

from .factories import ctx_for, make_admin, make_talent, make_user


class CatalogTests(TestCase):
    def setUp(self):
        self.alpha = make_talent(
            "alpha", display_name="Alpha Beats", bio="Afro-pop singer", total_bookings=5,
            average_rating=Decimal("4.50"),
        )
        self.bravo = make_talent(
            "bravo", display_name="Bravo Laughs", category="comedian", total_bookings=9, price_usd=Decimal("40.00")
        )
        self.charlie = make_talent(
            "charlie", display_name="Charlie", total_bookings=5, average_rating=Decimal("4.90"),
            is_accepting_bookings=False,
        )
        self.hidden = make_talent("hidden", admin_verified=False, total_bookings=50)
        self.fan_ctx = ctx_for(make_user("fan"))
        self.admin_ctx = ctx_for(make_admin("boss"))

    def browse(self, ctx=None, **params):
        return list(browse_talents(ctx or self.fan_ctx, TalentFilters.from_query(params)))

    def test_verified_only_in_popularity_order(self):
        self.assertEqual(self.browse(), [self.bravo, self.charlie, self.alpha])

    def test_filters(self):
        self.assertEqual(self.browse(category="Comedian"), [self.bravo])
        self.assertEqual(self.browse(search="afro"), [self.alpha])
        self.assertEqual(self.browse(search="LAUGHS"), [self.bravo])
        self.assertEqual(self.browse(accepting_bookings="true"), [self.bravo, self.alpha])
        self.assertEqual(self.browse(currency="usd", max_price="50"), [self.bravo])
        self.assertEqual(self.browse(currency="USD", min_price="50"), [self.charlie, self.alpha])
        self.assertEqual(self.browse(currency="ZIG", min_price="3000"), [])

    def test_bad_filters(self):
        for params, field in [
            ({"category": "juggler"}, "category"),
            ({"currency": "GBP"}, "currency"),
            ({"min_price": "10"}, "currency"),
            ({"currency": "USD", "min_price": "cheap"}, "min_price"),
            ({"currency": "USD", "max_price": "-1"}, "max_price"),
            ({"accepting_bookings": "maybe"}, "accepting_bookings"),
        ]:
            with self.subTest(params=params):
                with self.assertRaises(ValidationError) as cm:
                    TalentFilters.from_query(params)
                self.assertEqual(cm.exception.field, field)

    def test_unverified_listing_is_admin_only(self):
        with self.assertRaises(PermissionDenied):
            self.browse(verified="false")
        self.assertEqual(self.browse(self.admin_ctx, verified="false"), [self.hidden])

    def test_get_talent(self):
        self.assertEqual(get_talent(self.fan_ctx, self.alpha.pk), self.alpha)
        with self.assertRaises(TalentNotFound):
            get_talent(self.fan_ctx, self.hidden.pk)
        with self.assertRaises(TalentNotFound):
            get_talent(self.fan_ctx, 424242)
        self.assertEqual(get_talent(ctx_for(self.hidden.user), self.hidden.pk), self.hidden)
        self.assertEqual(get_talent(self.admin_ctx, self.hidden.pk), self.hidden)

    def test_featured(self):
        self.assertEqual(list(featured_talents()), [self.bravo, self.alpha])
        self.assertEqual(list(featured_talents(1)), [self.bravo])
        with self.assertRaises(ValidationError):
            featured_talents(0)

    def test_favorite_count_is_annotated(self):
        add_favorite(self.fan_ctx, self.alpha.pk)
        add_favorite(self.admin_ctx, self.alpha.pk)
        counts = {t.pk: t.favorite_count for t in browse_talents(self.fan_ctx)}
        self.assertEqual(counts[self.alpha.pk], 2)
        self.assertEqual(counts[self.bravo.pk], 0)
        self.assertEqual(get_talent(self.fan_ctx, self.alpha.pk).favorite_count, 2)


class FavoriteTests(TestCase):
    def setUp(self):
        self.talent = make_talent("star")
        self.ctx = ctx_for(make_user("fan"))

    def test_add_list_remove(self):
        add_favorite(self.ctx, self.talent.pk)
        self.assertTrue(is_favorite(self.ctx, self.talent.pk))
        self.assertEqual([f.talent for f in list_favorites(self.ctx)], [self.talent])

        with self.assertRaises(AlreadyFavorite) as cm:
            add_favorite(self.ctx, self.talent.pk)
        self.assertEqual(cm.exception.status_code, 409)
        self.assertEqual(Favorite.objects.count(), 1)

        remove_favorite(self.ctx, self.talent.pk)
        self.assertFalse(is_favorite(self.ctx, self.talent.pk))
        with self.assertRaises(NotFound):
            remove_favorite(self.ctx, self.talent.pk)

    def test_toggle(self):
        self.assertTrue(toggle_favorite(self.ctx, self.talent.pk))
        self.assertFalse(toggle_favorite(self.ctx, self.talent.pk))
        self.assertFalse(Favorite.objects.exists())

    def test_only_verified_talents(self):
        hidden = make_talent("hidden", admin_verified=False)
        with self.assertRaises(TalentNotFound):
            add_favorite(self.ctx, hidden.pk)

    def test_requires_a_user(self):
        anonymous = RequestContext(user=None, role=FAN)
        with self.assertRaises(PermissionDenied):
            add_favorite(anonymous, self.talent.pk)
        self.assertFalse(is_favorite(anonymous, self.talent.pk))
