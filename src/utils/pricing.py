"""
Cart pricing. All amounts are in minor currency units (cents).

Pure functions, no side effects. Negative or non-finite inputs are a caller
error and are not checked.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Tuple, Union

from backend.errors import ValidationError

DEFAULT_TAX_RATE = 0.10

Number = Union[int, float]


@dataclass(frozen=True)
class PriceSummary:
    subtotal: Number
    tax: Number
    total: Number
    item_count: int


def line_total(price: Number, quantity: Number) -> Number:
    return price * quantity


def _price_qty(item) -> Tuple[Number, Number]:
    if isinstance(item, tuple):
        return item[0], item[1]
    return item.price, item.quantity


def subtotal(items: Iterable) -> Number:
    """Sum of line totals. Items are (price, quantity) pairs or expose .price/.quantity."""
    return sum((line_total(*_price_qty(item)) for item in items), 0)


def tax(amount: Number, rate: float = DEFAULT_TAX_RATE) -> Number:
    return amount * rate


def total(amount: Number, tax_amount: Number) -> Number:
    return amount + tax_amount


def format_price(minor_units: Number) -> str:
    """Cents to a display string with exactly two decimals: 12345 -> "123.45"."""
    value = Decimal(str(minor_units)) / 100
    return str(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def summarize(items: Iterable, rate: float = DEFAULT_TAX_RATE) -> PriceSummary:
    items = list(items)
    sub = subtotal(items)
    tax_amount = tax(sub, rate)
    return PriceSummary(
        subtotal=sub,
        tax=tax_amount,
        total=total(sub, tax_amount),
        item_count=len(items),
    )


def parse_price(text: str) -> int:
    """Display string to cents: "12.5" -> 1250. Raises ValidationError."""
    try:
        value = Decimal((text or "").strip().lstrip("$"))
    except InvalidOperation:
        raise ValidationError(f"Invalid price: {text!r}", field="price")
    if not value.is_finite() or value < 0:
        raise ValidationError(f"Invalid price: {text!r}", field="price")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
