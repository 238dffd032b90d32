"""
Payment method adapter.

One gateway class per provider, all behind the same ``validate`` / ``settle``
/ ``reverse`` surface. The gateways are simulated: each settles after a
configurable latency and succeeds with a configurable probability (see the
PAYMENT_GATEWAYS setting). The most recent outcomes are remembered per
idempotency key, the way a real provider dedupes a retried charge.
"""

import asyncio
import logging
import random
import uuid
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings
from django.utils import timezone

from .exceptions import PaymentDeclined, PaymentTimeout
from .payment_validator import (
    PaymentValidationError,
    as_text,
    validate_card_number,
    validate_currency,
    validate_cvv,
    validate_email,
    validate_expiry,
    validate_mobile_money_phone,
    validate_payment_gateway,
    validate_required_text,
    validate_wallet_phone,
)

logger = logging.getLogger(__name__)

MAX_REMEMBERED_OUTCOMES = 1024


@dataclass(frozen=True)
class PaymentConfirmation:
    gateway: str
    reference: str
    amount: Decimal
    currency: str
    masked_account: str
    confirmed_at: datetime
    details: Dict[str, Any] = field(default_factory=dict)

    def as_gateway_response(self) -> Dict[str, Any]:
        return {
            "masked_account": self.masked_account,
            "confirmed_at": self.confirmed_at.isoformat(),
            **self.details,
        }


class BasePaymentGateway(ABC):
    name = ""
    method = ""
    reference_prefix = ""
    decline_message = "Payment declined. Please try again or use a different method."

    def __init__(self):
        self._rng = random.Random()
        self._outcomes: "OrderedDict[Tuple[str, Decimal, str], Optional[PaymentConfirmation]]" = OrderedDict()

    @property
    def options(self) -> Dict[str, Any]:
        return settings.PAYMENT_GATEWAYS.get(self.name, {})

    @property
    def latency(self) -> float:
        return float(self.options.get("latency", 0))

    @property
    def success_rate(self) -> float:
        return float(self.options.get("success_rate", 1.0))

    @abstractmethod
    def validate(self, details: Dict[str, Any]) -> Dict[str, Any]:
        """Return the cleaned provider fields or raise PaymentValidationError."""

    @abstractmethod
    def mask_account(self, cleaned: Dict[str, Any]) -> str:
        pass

    def describe(self, cleaned: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    def new_reference(self) -> str:
        return f"{self.reference_prefix}{uuid.uuid4().hex[:16].upper()}"

    def _decide(self, amount: Decimal, currency: str, cleaned: Dict[str, Any]) -> Optional[PaymentConfirmation]:
        if self._rng.random() >= self.success_rate:
            return None
        return PaymentConfirmation(
            gateway=self.name,
            reference=self.new_reference(),
            amount=amount,
            currency=currency,
            masked_account=self.mask_account(cleaned),
            confirmed_at=timezone.now(),
            details={"method": self.method, **self.describe(cleaned)},
        )

    async def settle(
        self, amount: Decimal, currency: str, cleaned: Dict[str, Any], idempotency_key: Optional[str] = None
    ) -> PaymentConfirmation:
        key = (idempotency_key, amount, currency)
        if idempotency_key and key in self._outcomes:
            self._outcomes.move_to_end(key)
            outcome = self._outcomes[key]
        else:
            # the provider commits to an outcome before the response travels back
            outcome = self._decide(amount, currency, cleaned)
            if idempotency_key:
                self._remember(key, outcome)
            await asyncio.sleep(self.latency)

        if outcome is None:
            raise PaymentDeclined(self.decline_message)
        return outcome

    def _remember(self, key: Tuple[str, Decimal, str], outcome: Optional[PaymentConfirmation]) -> None:
        self._outcomes[key] = outcome
        while len(self._outcomes) > MAX_REMEMBERED_OUTCOMES:
            self._outcomes.popitem(last=False)

    async def reverse(self, reference: str, amount: Decimal, currency: str) -> Dict[str, Any]:
        """Compensating refund of a settled charge."""
        await asyncio.sleep(0)
        return {
            "reversed": True,
            "reference": reference,
            "reversal_reference": f"RV-{uuid.uuid4().hex[:12].upper()}",
            "amount": f"{amount:.2f}",
            "currency": currency,
            "reversed_at": timezone.now().isoformat(),
        }


_gateway_registry: Dict[str, BasePaymentGateway] = {}


def register_gateway(name: str):
    def _decorator(cls):
        cls.name = name.lower()
        _gateway_registry[cls.name] = cls()
        return cls

    return _decorator


def mask_phone(phone: str) -> str:
    return f"{phone[:3]}****{phone[-3:]}"


@register_gateway("paynow")
class PaynowGateway(BasePaymentGateway):
    """Mobile money (EcoCash / OneMoney) through Paynow."""

    method = "mobile_money"
    reference_prefix = "PAY-"
    providers = ("ecocash", "onemoney")

    def validate(self, details: Dict[str, Any]) -> Dict[str, Any]:
        provider = (as_text(details.get("provider")) or "ecocash").lower()
        if provider not in self.providers:
            raise PaymentValidationError("provider must be ecocash or onemoney", field="provider")
        return {"provider": provider, "phone_number": validate_mobile_money_phone(details.get("phone_number"))}

    def mask_account(self, cleaned: Dict[str, Any]) -> str:
        return mask_phone(cleaned["phone_number"])

    def describe(self, cleaned: Dict[str, Any]) -> Dict[str, Any]:
        return {"provider": cleaned["provider"]}


@register_gateway("stripe")
class StripeGateway(BasePaymentGateway):
    """Card payments through Stripe."""

    method = "card"
    reference_prefix = "pi_"
    decline_message = "Card declined. Please check your card details or try another card."

    def validate(self, details: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "card_number": validate_card_number(details.get("card_number")),
            "expiry": validate_expiry(details.get("expiry")),
            "cvv": validate_cvv(details.get("cvv")),
            "cardholder_name": validate_required_text(
                details, "cardholder_name", "enter the cardholder name"
            ),
        }

    def new_reference(self) -> str:
        return f"{self.reference_prefix}{uuid.uuid4().hex[:24]}"

    @staticmethod
    def card_type(number: str) -> str:
        if number.startswith("4"):
            return "Visa"
        if number.startswith("5"):
            return "Mastercard"
        if number.startswith("3"):
            return "American Express"
        return "Card"

    def mask_account(self, cleaned: Dict[str, Any]) -> str:
        return f"**** **** **** {cleaned['card_number'][-4:]}"

    def describe(self, cleaned: Dict[str, Any]) -> Dict[str, Any]:
        return {"card_type": self.card_type(cleaned["card_number"]), "last4": cleaned["card_number"][-4:]}


@register_gateway("innbucks")
class InnBucksGateway(BasePaymentGateway):
    """InnBucks digital wallet."""

    method = "digital_wallet"
    reference_prefix = "INN-"
    decline_message = "Insufficient wallet balance or payment declined."

    def validate(self, details: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "email": validate_email(details.get("email")),
            "phone_number": validate_wallet_phone(details.get("phone_number")),
        }

    def mask_account(self, cleaned: Dict[str, Any]) -> str:
        local, _, domain = cleaned["email"].partition("@")
        return f"{local[:1]}***@{domain}"


def get_gateway(name: str) -> BasePaymentGateway:
    validate_payment_gateway(name)
    gateway = _gateway_registry.get(as_text(name).lower())
    if not gateway:
        raise PaymentValidationError(f"unsupported gateway: {name}", field="gateway")
    return gateway


def supported_gateways() -> List[str]:
    return list(_gateway_registry.keys())


async def submit_payment(
    gateway_name: str,
    amount: Decimal,
    currency: str,
    details: Dict[str, Any],
    idempotency_key: Optional[str] = None,
    timeout: Optional[float] = None,
) -> PaymentConfirmation:
    """Validate provider fields, then settle with one retry on timeout.

    Invalid input fails before the gateway is contacted. A decline raises
    PaymentDeclined; two timeouts in a row raise PaymentTimeout.
    """
    gateway = get_gateway(gateway_name)
    validate_currency(currency)
    if amount is None or Decimal(amount) <= 0:
        raise PaymentValidationError("amount must be > 0", field="amount")
    cleaned = gateway.validate(details or {})

    timeout = settings.PAYMENT_GATEWAY_TIMEOUT if timeout is None else timeout
    for attempt in (1, 2):
        try:
            confirmation = await asyncio.wait_for(
                gateway.settle(amount, currency, cleaned, idempotency_key), timeout=timeout
            )
        except asyncio.TimeoutError:
            logger.warning("%s settlement timed out after %.1fs (attempt %d)", gateway.name, timeout, attempt)
            continue
        except PaymentDeclined:
            logger.warning("%s declined %s %s", gateway.name, amount, currency)
            raise
        logger.info("%s settled %s %s as %s", gateway.name, amount, currency, confirmation.reference)
        return confirmation

    raise PaymentTimeout(f"{gateway.name} did not respond in time; no charge was recorded")
