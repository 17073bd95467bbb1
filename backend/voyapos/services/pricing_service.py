# Overview: Tax-inclusive line pricing and sale-level aggregation.

"""
Pricing Engine

Prices are tax-inclusive (MRP). Tax is extracted from the discounted MRP,
never added on top:

    line_mrp       = unit_price * quantity
    line_discount  = discount * quantity
    discounted_mrp = line_mrp - line_discount
    base_amount    = discounted_mrp / (1 + tax_rate / 100)
    tax_amount     = discounted_mrp - base_amount
    line_total     = discounted_mrp

Everything is Decimal at full context precision. Rounding to 2 places
happens only at presentation time (money()).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def to_decimal(value, field_name: str = "value") -> Decimal:
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation:
            raise ValidationError(f"{field_name} must be a number") from None
    elif isinstance(value, float):
        # str() keeps 0.1 as 0.1 instead of its binary expansion
        result = Decimal(str(value))
    elif value is None:
        result = ZERO
    else:
        raise ValidationError(f"{field_name} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be a finite number")
    return result


def money(value) -> float | None:
    """Round to 2 places for presentation."""
    if value is None:
        return None
    return float(Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class LinePricing:
    unit_price: Decimal
    discount: Decimal
    quantity: int
    tax_rate: Decimal
    line_mrp: Decimal
    line_discount: Decimal
    discounted_price: Decimal
    discounted_mrp: Decimal
    base_amount: Decimal
    tax_amount: Decimal
    line_total: Decimal


def price_line(unit_price, discount, quantity, tax_rate) -> LinePricing:
    unit_price = to_decimal(unit_price, "unit_price")
    discount = to_decimal(discount, "discount")
    tax_rate = to_decimal(tax_rate, "tax_rate")

    if unit_price < ZERO:
        raise ValidationError("unit_price must be >= 0")
    if discount < ZERO:
        raise ValidationError("discount must be >= 0")
    if tax_rate < ZERO:
        raise ValidationError("tax_rate must be >= 0")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("quantity must be a positive integer")

    line_mrp = unit_price * quantity
    line_discount = discount * quantity
    discounted_mrp = line_mrp - line_discount

    if tax_rate == ZERO:
        base_amount = discounted_mrp
    else:
        base_amount = discounted_mrp / (1 + tax_rate / HUNDRED)
    tax_amount = discounted_mrp - base_amount

    return LinePricing(
        unit_price=unit_price,
        discount=discount,
        quantity=quantity,
        tax_rate=tax_rate,
        line_mrp=line_mrp,
        line_discount=line_discount,
        discounted_price=unit_price - discount,
        discounted_mrp=discounted_mrp,
        base_amount=base_amount,
        tax_amount=tax_amount,
        line_total=discounted_mrp,
    )


@dataclass
class SaleTotals:
    subtotal: Decimal = ZERO
    total_discount: Decimal = ZERO
    total_tax: Decimal = ZERO
    lines: list[LinePricing] = field(default_factory=list)

    def add(self, line: LinePricing) -> None:
        self.subtotal += line.line_mrp
        self.total_discount += line.line_discount
        self.total_tax += line.tax_amount
        self.lines.append(line)

    @property
    def total_amount(self) -> Decimal:
        # Tax is already inside subtotal
        return self.subtotal - self.total_discount


def aggregate(lines) -> SaleTotals:
    totals = SaleTotals()
    for line in lines:
        totals.add(line)
    return totals
