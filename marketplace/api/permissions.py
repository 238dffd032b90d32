from rest_framework import permissions


class IsPlatformAdmin(permissions.BasePermission):
    """Staff users moderate bookings and talent applications."""

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.is_staff)


class IsTalent(permissions.BasePermission):
    def has_permission(self, request, view):
        return bool(
            request.user
            and request.user.is_authenticated
            and getattr(request.user, "talent_profile", None) is not None
        )
