from decimal import Decimal

from django.test import SimpleTestCase, override_settings

from marketplace.services.fee_strategy import current_fee_rate, get_fee_rate, supported_fee_policies
from marketplace.services.settlement import (
    SettlementCalculationError,
    SimpleSettlementCalculator,
    compute_settlement,
)


class SettlementCalculatorTests(SimpleTestCase):
    def test_gross_100_at_25_percent(self):
        s = compute_settlement(Decimal("100"), Decimal("0.25"))
        self.assertEqual(s.platform_fee, Decimal("25.00"))
        self.assertEqual(s.talent_earnings, Decimal("75.00"))
        self.assertEqual(s.gross_amount, Decimal("100.00"))

    def test_fee_rounds_half_up_and_parts_add_back_up(self):
        # 33.33 * 0.25 = 8.3325 -> 8.33
        s = compute_settlement(Decimal("33.33"), Decimal("0.25"))
        self.assertEqual(s.platform_fee, Decimal("8.33"))
        self.assertEqual(s.talent_earnings, Decimal("25.00"))

        # 10.10 * 0.25 = 2.525 -> 2.53
        s = compute_settlement(Decimal("10.10"), Decimal("0.25"))
        self.assertEqual(s.platform_fee, Decimal("2.53"))
        self.assertEqual(s.talent_earnings, Decimal("7.57"))

    def test_split_always_sums_to_gross(self):
        calc = SimpleSettlementCalculator()
        for gross in ("0.01", "0.03", "1.99", "19.95", "250.50", "999999.99"):
            for rate in ("0", "0.1", "0.15", "0.25", "0.3333", "1"):
                s = calc.calculate(gross_amount=Decimal(gross), fee_rate=Decimal(rate))
                self.assertEqual(s.platform_fee + s.talent_earnings, s.gross_amount, (gross, rate))

    def test_rate_bounds(self):
        self.assertEqual(compute_settlement(Decimal("50"), Decimal("0")).talent_earnings, Decimal("50.00"))
        self.assertEqual(compute_settlement(Decimal("50"), Decimal("1")).talent_earnings, Decimal("0.00"))

    def test_rejects_non_positive_gross(self):
        with self.assertRaises(SettlementCalculationError) as cm:
            compute_settlement(Decimal("0"), Decimal("0.25"))
        self.assertEqual(cm.exception.field, "amount")
        with self.assertRaises(SettlementCalculationError):
            compute_settlement(Decimal("-5"), Decimal("0.25"))

    def test_rejects_rate_outside_unit_interval(self):
        with self.assertRaises(SettlementCalculationError) as cm:
            compute_settlement(Decimal("10"), Decimal("1.5"))
        self.assertEqual(cm.exception.field, "fee_rate")
        with self.assertRaises(SettlementCalculationError):
            compute_settlement(Decimal("10"), Decimal("-0.1"))

    def test_rejects_garbage(self):
        with self.assertRaises(SettlementCalculationError):
            compute_settlement("abc", Decimal("0.25"))

    def test_as_dict_formats_money(self):
        data = compute_settlement(Decimal("100"), Decimal("0.25")).as_dict()
        self.assertEqual(
            data,
            {"gross_amount": "100.00", "fee_rate": "0.2500", "platform_fee": "25.00", "talent_earnings": "75.00"},
        )


class FeeStrategyTests(SimpleTestCase):
    def test_registered_policies(self):
        self.assertIn("standard", supported_fee_policies())
        self.assertIn("launch_promo", supported_fee_policies())
        self.assertEqual(get_fee_rate("standard", "USD"), Decimal("0.25"))
        self.assertEqual(get_fee_rate("LAUNCH_PROMO", "ZIG"), Decimal("0.10"))

    def test_unknown_policy(self):
        with self.assertRaises(ValueError):
            get_fee_rate("free_for_all", "USD")

    @override_settings(PLATFORM_FEE_POLICY="launch_promo")
    def test_current_rate_follows_setting(self):
        self.assertEqual(current_fee_rate("USD"), Decimal("0.10"))
