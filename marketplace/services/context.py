from dataclasses import dataclass
from typing import Any, Optional

from .exceptions import PermissionDenied

FAN = "fan"
TALENT = "talent"
ADMIN = "admin"
ROLES = (FAN, TALENT, ADMIN)


@dataclass(frozen=True)
class RequestContext:
    """The authenticated principal and its role for one unit of work.

    Built once per request and handed to every service call instead of being
    looked up from ambient state. ``user`` is None only for the system actor
    used by background jobs.
    """

    user: Any
    role: str
    talent_profile: Any = None

    @classmethod
    def from_user(cls, user) -> "RequestContext":
        profile = getattr(user, "talent_profile", None)
        if user.is_staff:
            role = ADMIN
        elif profile is not None:
            role = TALENT
        else:
            role = FAN
        return cls(user=user, role=role, talent_profile=profile)

    @classmethod
    def from_request(cls, request) -> "RequestContext":
        return cls.from_user(request.user)

    @classmethod
    def system(cls) -> "RequestContext":
        return cls(user=None, role=ADMIN)

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN

    @property
    def user_id(self) -> Optional[int]:
        return self.user.pk if self.user is not None else None

    @property
    def actor_label(self) -> str:
        return f"user:{self.user_id}" if self.user is not None else "system"

    def require_admin(self) -> None:
        if not self.is_admin:
            raise PermissionDenied("admin access required")

    def require_talent(self):
        if self.talent_profile is None:
            raise PermissionDenied("talent profile required")
        return self.talent_profile
