import re
from datetime import date
from typing import Optional

from django.utils import timezone
from rest_framework import status

from marketplace.models import Currency, PaymentGateway

from .exceptions import ValidationError

PAYNOW_PHONE_RE = re.compile(r"^07[0-9]{8}$")
WALLET_PHONE_RE = re.compile(r"^(\+263|0)[0-9]{9}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
EXPIRY_RE = re.compile(r"^[0-9]{2}/[0-9]{2}$")
CARD_NUMBER_RE = re.compile(r"^[0-9]{16}$")
CVV_RE = re.compile(r"^[0-9]{3}$")


class PaymentValidationError(ValidationError):
    pass


def as_text(value) -> str:
    # JSON bodies may carry numbers or nulls where text is expected
    return "" if value is None else str(value).strip()


def strip_spaces(value) -> str:
    return re.sub(r"\s", "", as_text(value))


def validate_currency(currency: Optional[str]) -> None:
    if currency not in Currency.values:
        raise PaymentValidationError("valid currency (USD or ZIG) is required", field="currency")


def validate_payment_gateway(gateway: Optional[str]) -> None:
    if not as_text(gateway):
        raise PaymentValidationError("gateway required", field="gateway")
    if as_text(gateway).lower() not in PaymentGateway.values:
        raise PaymentValidationError(
            "unsupported gateway", field="gateway", status_code=status.HTTP_422_UNPROCESSABLE_ENTITY
        )


def validate_mobile_money_phone(phone: str) -> str:
    clean = strip_spaces(phone)
    if not PAYNOW_PHONE_RE.match(clean):
        raise PaymentValidationError(
            "enter a valid Zimbabwe phone number (e.g. 077 123 4567)", field="phone_number"
        )
    return clean


def validate_wallet_phone(phone: str) -> str:
    clean = strip_spaces(phone)
    if not WALLET_PHONE_RE.match(clean):
        raise PaymentValidationError("enter a valid Zimbabwe phone number", field="phone_number")
    return clean


def validate_email(email: str) -> str:
    clean = as_text(email)
    if not EMAIL_RE.match(clean):
        raise PaymentValidationError("enter a valid email address", field="email")
    return clean.lower()


def luhn_valid(digits: str) -> bool:
    total = 0
    for idx, ch in enumerate(reversed(digits)):
        n = int(ch)
        if idx % 2 == 1:
            n *= 2
            if n > 9:
                n -= 9
        total += n
    return total % 10 == 0


def validate_card_number(number: str) -> str:
    digits = strip_spaces(number)
    if not CARD_NUMBER_RE.match(digits) or not luhn_valid(digits):
        raise PaymentValidationError("enter a valid 16-digit card number", field="card_number")
    return digits


def validate_expiry(expiry: str, today: Optional[date] = None) -> str:
    value = as_text(expiry)
    if not EXPIRY_RE.match(value):
        raise PaymentValidationError("enter a valid expiry date (MM/YY)", field="expiry")
    month, year = (int(part) for part in value.split("/"))
    if not (1 <= month <= 12):
        raise PaymentValidationError("enter a valid expiry date (MM/YY)", field="expiry")

    today = today or timezone.localdate()
    current_year = today.year % 100
    if year < current_year or (year == current_year and month < today.month):
        raise PaymentValidationError("card has expired", field="expiry")
    return value


def validate_cvv(cvv: str) -> str:
    value = strip_spaces(cvv)
    if not CVV_RE.match(value):
        raise PaymentValidationError("enter a valid 3-digit CVV", field="cvv")
    return value


def validate_required_text(data: dict, field: str, message: str) -> str:
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise PaymentValidationError(message, field=field)
    return value.strip()


def validate_booking_request_data(data: dict) -> None:
    """Run all validations for a booking request payload. Raises PaymentValidationError on error."""
    if not data.get("talent_id"):
        raise PaymentValidationError("talent is required", field="talent_id")
    validate_required_text(data, "recipient_name", "recipient name is required")
    validate_required_text(data, "occasion", "occasion is required")
    validate_required_text(data, "instructions", "instructions are required")
    validate_currency(data.get("currency"))
