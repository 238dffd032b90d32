"""
Public talent catalogue: browsing, detail and the featured shelf.

Fans only ever see verified talents. Admins may also list unverified
profiles while working through onboarding.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from django.db.models import Count, Q, QuerySet

from marketplace.models import Currency, TalentCategory, TalentProfile

from .context import RequestContext
from .exceptions import PermissionDenied, TalentNotFound, ValidationError

CATALOG_ORDERING = ("-admin_verified", "-total_bookings", "-average_rating", "pk")
FEATURED_LIMIT = 6
MAX_FEATURED_LIMIT = 24

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class TalentFilters:
    category: Optional[str] = None
    search: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    currency: Optional[str] = None
    verified: bool = True
    accepting_bookings: Optional[bool] = None

    @classmethod
    def from_query(cls, params: Mapping[str, Any]) -> "TalentFilters":
        """Build filters from query-string values, rejecting anything malformed."""
        category = (params.get("category") or "").strip().lower() or None
        if category and category not in TalentCategory.values:
            raise ValidationError("unknown category", field="category")

        currency = (params.get("currency") or "").strip().upper() or None
        if currency and currency not in Currency.values:
            raise ValidationError("valid currency (USD or ZIG) is required", field="currency")

        min_price = _parse_price(params.get("min_price"), "min_price")
        max_price = _parse_price(params.get("max_price"), "max_price")
        if (min_price is not None or max_price is not None) and not currency:
            raise ValidationError("a currency is required to filter by price", field="currency")

        verified = _parse_flag(params.get("verified"), "verified")
        return cls(
            category=category,
            search=(params.get("search") or "").strip() or None,
            min_price=min_price,
            max_price=max_price,
            currency=currency,
            verified=True if verified is None else verified,
            accepting_bookings=_parse_flag(params.get("accepting_bookings"), "accepting_bookings"),
        )


def _parse_price(value, field: str) -> Optional[Decimal]:
    if value in (None, ""):
        return None
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError("price must be a number", field=field)
    if not price.is_finite() or price < 0:
        raise ValidationError("price must be zero or more", field=field)
    return price


def _parse_flag(value, field: str) -> Optional[bool]:
    if value in (None, ""):
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ValidationError("expected true or false", field=field)


def _price_field(currency: str) -> str:
    return "price_usd" if currency == Currency.USD else "price_zig"


def browse_talents(ctx: RequestContext, filters: Optional[TalentFilters] = None) -> QuerySet:
    filters = filters or TalentFilters()
    if not filters.verified and not ctx.is_admin:
        raise PermissionDenied("only admins can list unverified talents")

    qs = TalentProfile.objects.filter(admin_verified=filters.verified)
    if filters.category:
        qs = qs.filter(category=filters.category)
    if filters.search:
        qs = qs.filter(Q(display_name__icontains=filters.search) | Q(bio__icontains=filters.search))
    if filters.accepting_bookings is not None:
        qs = qs.filter(is_accepting_bookings=filters.accepting_bookings)
    if filters.currency:
        price_field = _price_field(filters.currency)
        if filters.min_price is not None:
            qs = qs.filter(**{f"{price_field}__gte": filters.min_price})
        if filters.max_price is not None:
            qs = qs.filter(**{f"{price_field}__lte": filters.max_price})
    return qs.annotate(favorite_count=Count("favorited_by")).order_by(*CATALOG_ORDERING)


def get_talent(ctx: RequestContext, talent_id) -> TalentProfile:
    """Fetch one profile. Unverified profiles are visible to admins and their owner only."""
    talent = (
        TalentProfile.objects.filter(pk=talent_id).annotate(favorite_count=Count("favorited_by")).first()
    )
    if talent is None:
        raise TalentNotFound("talent not found")
    if not talent.admin_verified and not ctx.is_admin and talent.user_id != ctx.user_id:
        raise TalentNotFound("talent not found")
    return talent


def featured_talents(limit: int = FEATURED_LIMIT) -> QuerySet:
    """Verified talents taking bookings, busiest and best rated first."""
    if limit < 1:
        raise ValidationError("limit must be at least 1", field="limit")
    limit = min(limit, MAX_FEATURED_LIMIT)
    return (
        TalentProfile.objects.filter(admin_verified=True, is_accepting_bookings=True)
        .annotate(favorite_count=Count("favorited_by"))
        .order_by("-total_bookings", "-average_rating", "pk")[:limit]
    )
