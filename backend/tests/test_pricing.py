"""
Pricing engine tests.

Verifies:
- Tax is extracted from the tax-inclusive MRP, never added on top
- Discounts apply per unit before extraction
- Sale totals stay consistent with their lines
"""

from decimal import Decimal

import pytest

from voyapos.services.errors import ValidationError
from voyapos.services.pricing_service import aggregate, money, price_line, to_decimal


class TestPriceLine:

    def test_tax_extracted_from_inclusive_price(self):
        line = price_line(Decimal("118.00"), 0, 1, Decimal("18"))

        assert money(line.tax_amount) == 18.00
        assert money(line.base_amount) == 100.00
        assert line.line_total == Decimal("118.00")

    def test_discount_applies_per_unit(self):
        line = price_line(Decimal("1050.00"), Decimal("50.00"), 2, Decimal("5"))

        assert line.line_mrp == Decimal("2100.00")
        assert line.line_discount == Decimal("100.00")
        assert line.discounted_price == Decimal("1000.00")
        assert line.line_total == Decimal("2000.00")
        assert money(line.base_amount) == 1904.76
        assert money(line.tax_amount) == 95.24

    def test_zero_tax_rate(self):
        line = price_line(Decimal("250"), Decimal("10"), 3, 0)

        assert line.base_amount == Decimal("720")
        assert line.tax_amount == Decimal("0")
        assert line.line_total == Decimal("720")

    @pytest.mark.parametrize("price,discount,qty,rate", [
        ("99.99", "0", 1, "18"),
        ("1234.56", "34.56", 7, "5"),
        ("10.00", "3.33", 3, "12"),
    ])
    def test_base_plus_tax_equals_total(self, price, discount, qty, rate):
        line = price_line(Decimal(price), Decimal(discount), qty, Decimal(rate))

        assert line.base_amount + line.tax_amount == line.line_total
        assert money(line.base_amount * (1 + Decimal(rate) / 100)) == money(line.line_total)

    def test_full_precision_until_presentation(self):
        line = price_line(Decimal("10.00"), 0, 1, Decimal("18"))

        # 10 / 1.18 does not terminate; only money() rounds
        assert line.base_amount != line.base_amount.quantize(Decimal("0.01"))
        assert money(line.base_amount) == 8.47

    def test_float_inputs_do_not_leak_binary_error(self):
        line = price_line(0.1, 0, 3, 0)
        assert line.line_total == Decimal("0.3")

    @pytest.mark.parametrize("kwargs", [
        {"unit_price": -1, "discount": 0, "quantity": 1, "tax_rate": 18},
        {"unit_price": 10, "discount": -1, "quantity": 1, "tax_rate": 18},
        {"unit_price": 10, "discount": 0, "quantity": 0, "tax_rate": 18},
        {"unit_price": 10, "discount": 0, "quantity": 1, "tax_rate": -5},
        {"unit_price": 10, "discount": 0, "quantity": True, "tax_rate": 18},
        {"unit_price": "abc", "discount": 0, "quantity": 1, "tax_rate": 18},
    ])
    def test_rejects_invalid_inputs(self, kwargs):
        with pytest.raises(ValidationError):
            price_line(**kwargs)


class TestAggregate:

    def test_totals_match_lines(self):
        lines = [
            price_line(Decimal("118.00"), Decimal("18.00"), 2, Decimal("18")),
            price_line(Decimal("1050.00"), 0, 1, Decimal("5")),
        ]
        totals = aggregate(lines)

        assert totals.subtotal == Decimal("1286.00")
        assert totals.total_discount == Decimal("36.00")
        assert totals.total_amount == Decimal("1250.00")
        assert totals.total_amount == sum(l.line_total for l in lines)
        assert totals.total_tax == sum(l.tax_amount for l in lines)

    def test_tax_is_not_added_on_top(self):
        totals = aggregate([price_line(Decimal("118.00"), 0, 1, Decimal("18"))])
        assert totals.total_amount == Decimal("118.00")


class TestHelpers:

    def test_money_rounds_half_up(self):
        assert money(Decimal("2.345")) == 2.35
        assert money(Decimal("2.344")) == 2.34
        assert money(None) is None

    def test_to_decimal_rejects_non_finite(self):
        with pytest.raises(ValidationError):
            to_decimal("NaN", "price")
        with pytest.raises(ValidationError):
            to_decimal(float("inf"), "price")

    def test_to_decimal_none_is_zero(self):
        assert to_decimal(None) == Decimal("0")
