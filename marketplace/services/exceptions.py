from typing import Optional

from rest_framework import status


class MarketplaceError(Exception):
    """Base class for errors the API reports back to the caller."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code

    def as_dict(self) -> dict:
        return {"detail": str(self), "code": self.code}


class ValidationError(MarketplaceError):
    code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, status_code)
        self.field = field

    def as_dict(self) -> dict:
        data = super().as_dict()
        if self.field:
            data["field"] = self.field
        return data


class PermissionDenied(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class NotFound(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class BookingNotFound(NotFound):
    code = "booking_not_found"


class TalentNotFound(NotFound):
    code = "talent_not_found"


class InvalidStateTransition(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    code = "invalid_state_transition"

    def __init__(self, current: str, target: str, message: Optional[str] = None):
        super().__init__(message or f"cannot move booking from {current} to {target}")
        self.current = current
        self.target = target


class AlreadyTerminal(InvalidStateTransition):
    code = "already_terminal"

    def __init__(self, current: str, target: str):
        super().__init__(current, target, f"booking is already {current}")


class AlreadyConfirmed(InvalidStateTransition):
    code = "already_confirmed"

    def __init__(self, current: str):
        super().__init__(current, "payment_confirmed", "booking already has a confirmed payment")


class ConcurrentModification(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    code = "concurrent_modification"


class IdempotencyConflict(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    code = "idempotency_conflict"


class PaymentError(MarketplaceError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    code = "payment_error"


class PaymentDeclined(PaymentError):
    code = "payment_declined"


class PaymentTimeout(PaymentError):
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    code = "payment_timeout"


class AlreadyFavorite(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    code = "already_favorite"


class InsufficientBalance(ValidationError):
    code = "insufficient_balance"
