"""Booking status model: the allowed edges between booking states."""

import logging
from typing import Dict, FrozenSet

from marketplace.models import BookingStatus

from .exceptions import AlreadyTerminal, InvalidStateTransition

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    BookingStatus.PENDING_PAYMENT: frozenset({BookingStatus.PAYMENT_CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.PAYMENT_CONFIRMED: frozenset(
        {BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REFUNDED}
    ),
    BookingStatus.IN_PROGRESS: frozenset(
        {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REFUNDED}
    ),
    BookingStatus.COMPLETED: frozenset({BookingStatus.REFUNDED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.REFUNDED: frozenset(),
}

TERMINAL_STATES = frozenset({BookingStatus.CANCELLED, BookingStatus.REFUNDED})

# states in which the customer has been charged and the charge still stands
PAID_STATES = frozenset({BookingStatus.PAYMENT_CONFIRMED, BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED})

# paid, waiting on the talent
AWAITING_DELIVERY = frozenset({BookingStatus.PAYMENT_CONFIRMED, BookingStatus.IN_PROGRESS})

OPEN_STATES = frozenset({BookingStatus.PENDING_PAYMENT}) | AWAITING_DELIVERY


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATES


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def check_transition(current: str, target: str) -> None:
    """Raise unless ``current -> target`` is an allowed edge.

    Moves out of cancelled/refunded, and cancelling a completed booking,
    raise AlreadyTerminal. Every other illegal edge raises
    InvalidStateTransition.
    """
    if can_transition(current, target):
        return
    logger.warning("Rejected booking transition %s -> %s", current, target)
    if is_terminal(current) or (current == BookingStatus.COMPLETED and target == BookingStatus.CANCELLED):
        raise AlreadyTerminal(current, target)
    raise InvalidStateTransition(current, target)
