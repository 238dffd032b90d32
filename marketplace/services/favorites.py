import logging

from django.db import IntegrityError, transaction
from django.db.models import QuerySet

from marketplace.models import Favorite, TalentProfile

from .context import RequestContext
from .exceptions import AlreadyFavorite, NotFound, PermissionDenied, TalentNotFound

logger = logging.getLogger(__name__)


def _require_user(ctx: RequestContext):
    if ctx.user_id is None:
        raise PermissionDenied("you must be logged in to manage favorites")
    return ctx.user


def _favoritable_talent(talent_id) -> TalentProfile:
    talent = TalentProfile.objects.filter(pk=talent_id, admin_verified=True).first()
    if talent is None:
        raise TalentNotFound("talent not found")
    return talent


def list_favorites(ctx: RequestContext) -> QuerySet:
    user = _require_user(ctx)
    return Favorite.objects.filter(user=user).select_related("talent")


def is_favorite(ctx: RequestContext, talent_id) -> bool:
    if ctx.user_id is None:
        return False
    return Favorite.objects.filter(user_id=ctx.user_id, talent_id=talent_id).exists()


def add_favorite(ctx: RequestContext, talent_id) -> Favorite:
    user = _require_user(ctx)
    talent = _favoritable_talent(talent_id)
    try:
        with transaction.atomic():
            favorite = Favorite.objects.create(user=user, talent=talent)
    except IntegrityError:
        raise AlreadyFavorite("talent already in favorites")
    logger.info("User %s favorited talent %s", ctx.user_id, talent.pk)
    return favorite


def remove_favorite(ctx: RequestContext, talent_id) -> None:
    user = _require_user(ctx)
    deleted, _ = Favorite.objects.filter(user=user, talent_id=talent_id).delete()
    if not deleted:
        raise NotFound("talent is not in favorites")
    logger.info("User %s unfavorited talent %s", ctx.user_id, talent_id)


def toggle_favorite(ctx: RequestContext, talent_id) -> bool:
    """Add the talent if missing, remove it otherwise. Returns the new state."""
    if is_favorite(ctx, talent_id):
        remove_favorite(ctx, talent_id)
        return False
    add_favorite(ctx, talent_id)
    return True
