"""
Pricing policy shared by the cart view and checkout.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Tuple, Union

from schemas import Totals

TAX_RATE = Decimal("0.08")
FREE_SHIPPING_THRESHOLD = Decimal("50.00")
FLAT_SHIPPING = Decimal("9.99")

CENT = Decimal("0.01")

Number = Union[int, float, Decimal, str]


def to_decimal(amount: Number) -> Decimal:
    # str() first so 19.99 stays 19.99 instead of its binary expansion
    return amount if isinstance(amount, Decimal) else Decimal(str(amount))


def round_cents(amount: Number) -> Decimal:
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount: Number) -> int:
    """Amount in minor currency units, as the payment gateway expects."""
    return int(round_cents(amount) * 100)


def shipping_for(subtotal: Decimal) -> Decimal:
    return Decimal("0.00") if subtotal > FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING


def compute_totals(lines: Iterable[Tuple[Number, int]]) -> Totals:
    """Totals for ``(unit_price, quantity)`` lines.

    Unit prices are rounded to cents first, matching what the gateway
    charges per line. Tax is charged on the rounded subtotal and every
    figure is rounded to cents, so ``total == subtotal + tax + shipping`` holds exactly.
    """
    subtotal = round_cents(sum((round_cents(price) * qty for price, qty in lines), Decimal("0")))
    tax = round_cents(subtotal * TAX_RATE)
    shipping = shipping_for(subtotal)
    total = round_cents(subtotal + tax + shipping)
    return Totals(
        subtotal=float(subtotal),
        tax=float(tax),
        shipping=float(shipping),
        total=float(total),
    )
