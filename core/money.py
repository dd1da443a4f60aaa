"""
Ledger math.

All amounts are integer cents ($10.00 = 1000). Quantities may be fractional
(2.5 hours of labour) and are carried as Decimal so that
quantity x unit price is exact before the single half-up rounding step.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Protocol


class PricedLine(Protocol):
    quantity: Decimal
    unit_price_cents: int


@dataclass(frozen=True)
class DocumentTotals:
    """Totals block shared by quotations and invoices."""

    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int


def line_total(quantity: Decimal | int | str, unit_price_cents: int) -> int:
    """quantity x unit price, rounded half-up to a whole cent."""
    exact = Decimal(str(quantity)) * Decimal(unit_price_cents)
    return int(exact.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def document_totals(
    line_items: Iterable[PricedLine],
    discount_cents: int = 0,
    tax_cents: int = 0
) -> DocumentTotals:
    """
    Compute subtotal and grand total.

    The grand total floors at zero. Negative discount or tax never reaches
    here; input models reject them.
    """
    subtotal_cents = sum(
        line_total(item.quantity, item.unit_price_cents) for item in line_items
    )
    total_cents = max(0, subtotal_cents - discount_cents + tax_cents)
    return DocumentTotals(
        subtotal_cents=subtotal_cents,
        discount_cents=discount_cents,
        tax_cents=tax_cents,
        total_cents=total_cents,
    )


def to_cents(amount: Decimal | int | str) -> int:
    """Major units to cents, half-up ("12.345" -> 1235)."""
    exact = Decimal(str(amount)) * 100
    return int(exact.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def format_money(cents: int, symbol: str = "RM") -> str:
    """Render cents for humans, e.g. 123456 -> "RM 1,234.56"."""
    sign = "-" if cents < 0 else ""
    whole, fraction = divmod(abs(cents), 100)
    return f"{sign}{symbol} {whole:,}.{fraction:02d}"


def validate_payment_amount(amount_cents: int, balance_cents: int, symbol: str = "RM") -> str | None:
    """
    Check a payment against the outstanding balance.

    Returns:
        Error message, or None when amount is in (0, balance].
    """
    if amount_cents <= 0:
        return "Payment amount must be greater than zero"
    if amount_cents > balance_cents:
        return (
            f"Payment amount ({format_money(amount_cents, symbol)}) exceeds "
            f"balance ({format_money(balance_cents, symbol)})"
        )
    return None
