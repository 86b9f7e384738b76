"""Order pricing.

All amounts are integer minor-currency units (cents). The same function backs
the cart/quote display and the totals persisted at checkout, so the two can
never drift apart.
"""
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal


@dataclass(frozen=True)
class PriceLine:
    unit_price_cents: int
    quantity: int


@dataclass(frozen=True)
class Totals:
    subtotal_cents: int
    tax_cents: int
    shipping_cents: int
    total_cents: int


def compute_tax(subtotal_cents: int, tax_rate: float) -> int:
    """Round-half-up tax on a subtotal; the rate goes through str() to avoid binary float error."""
    tax = Decimal(subtotal_cents) * Decimal(str(tax_rate))
    return int(tax.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_totals(lines: Iterable[PriceLine], tax_rate: float, shipping_cents: int) -> Totals:
    subtotal = sum(line.unit_price_cents * line.quantity for line in lines)
    tax = compute_tax(subtotal, tax_rate)
    return Totals(
        subtotal_cents=subtotal,
        tax_cents=tax,
        shipping_cents=shipping_cents,
        total_cents=subtotal + tax + shipping_cents,
    )
