from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, List

from django.conf import settings


class FeeStrategy(ABC):
    """Pluggable policy for the platform's share of a booking.

    Implementations return the fee as a Decimal fraction of the gross amount
    (e.g. 0.25). The rate is read once, when a booking is created, and
    stored on the booking.
    """

    @abstractmethod
    def rate(self, currency: str) -> Decimal:
        pass


_fee_registry: Dict[str, FeeStrategy] = {}


def register_fee_strategy(name: str):
    def _decorator(cls):
        _fee_registry[name.lower()] = cls()
        return cls

    return _decorator


@register_fee_strategy("standard")
class StandardFeeStrategy(FeeStrategy):
    def rate(self, currency: str) -> Decimal:
        return Decimal("0.25")


@register_fee_strategy("launch_promo")
class LaunchPromoFeeStrategy(FeeStrategy):
    def rate(self, currency: str) -> Decimal:
        return Decimal("0.10")


def get_fee_rate(policy: str, currency: str) -> Decimal:
    strategy = _fee_registry.get(policy.lower())
    if not strategy:
        raise ValueError(f"unsupported fee policy: {policy}")
    return strategy.rate(currency)


def current_fee_rate(currency: str) -> Decimal:
    """Rate new bookings are created with, per the PLATFORM_FEE_POLICY setting."""
    return get_fee_rate(settings.PLATFORM_FEE_POLICY, currency)


def supported_fee_policies() -> List[str]:
    return list(_fee_registry.keys())
