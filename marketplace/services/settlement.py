from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .exceptions import ValidationError

CENT = Decimal("0.01")


@dataclass(frozen=True)
class Settlement:
    gross_amount: Decimal
    fee_rate: Decimal
    platform_fee: Decimal
    talent_earnings: Decimal

    def as_dict(self) -> dict:
        return {
            "gross_amount": f"{self.gross_amount:.2f}",
            "fee_rate": f"{self.fee_rate:.4f}",
            "platform_fee": f"{self.platform_fee:.2f}",
            "talent_earnings": f"{self.talent_earnings:.2f}",
        }


class SettlementCalculatorInterface(ABC):
    @abstractmethod
    def calculate(self, *, gross_amount: Decimal, fee_rate: Decimal) -> Settlement:
        pass


class SettlementCalculationError(ValidationError):
    pass


class SimpleSettlementCalculator(SettlementCalculatorInterface):
    """Splits a gross amount into the platform fee and the talent payout.

    The fee is rounded half-up to the cent and the payout is whatever is left,
    so the two parts always add back up to the gross amount exactly.
    """

    def calculate(self, *, gross_amount: Decimal, fee_rate: Decimal) -> Settlement:
        try:
            gross = Decimal(str(gross_amount))
            rate = Decimal(str(fee_rate))
        except (InvalidOperation, TypeError, ValueError):
            raise SettlementCalculationError("amount and fee rate must be decimal numbers")

        if gross <= 0:
            raise SettlementCalculationError("amount must be > 0", field="amount")
        if not (Decimal("0") <= rate <= Decimal("1")):
            raise SettlementCalculationError("fee rate must be between 0 and 1", field="fee_rate")

        gross = gross.quantize(CENT, rounding=ROUND_HALF_UP)
        platform_fee = (gross * rate).quantize(CENT, rounding=ROUND_HALF_UP)
        talent_earnings = gross - platform_fee

        return Settlement(
            gross_amount=gross,
            fee_rate=rate,
            platform_fee=platform_fee,
            talent_earnings=talent_earnings,
        )


def compute_settlement(gross_amount: Decimal, fee_rate: Decimal) -> Settlement:
    return SimpleSettlementCalculator().calculate(gross_amount=gross_amount, fee_rate=fee_rate)
