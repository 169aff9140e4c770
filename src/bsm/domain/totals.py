"""Bill totals shared by purchase and sales bills.

All amounts are ``Decimal`` rounded half-up to cents. Line totals are rounded
before they are summed, and tax is charged on goods plus extra charges::

    tax = round((subtotal + extra_charges_total) * tax_rate / 100, 2)
    total = subtotal + extra_charges_total + tax
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable

from bsm.domain.errors import ValidationError

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
# largest value a decimal(10,2) column holds
MAX_AMOUNT = Decimal("99999999.99")


def round_money(value: Decimal) -> Decimal:
    try:
        return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValidationError("Amount is out of range.") from e


def to_decimal(value: object, field_name: str = "value") -> Decimal:
    """Parse user input into a finite Decimal without going through float."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field_name} is required.")
    if isinstance(value, float):
        value = repr(value)
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{field_name} must be a number.") from e
    if not parsed.is_finite():
        raise ValidationError(f"{field_name} must be a number.")
    if abs(parsed) > MAX_AMOUNT:
        raise ValidationError(f"{field_name} must not exceed {MAX_AMOUNT}.")
    return parsed


def compute_line_total(quantity: Decimal, unit_price: Decimal) -> Decimal:
    return round_money(Decimal(quantity) * Decimal(unit_price))


def compute_subtotal(lines: Iterable[tuple[Decimal, Decimal]]) -> Decimal:
    """``lines`` is an iterable of ``(quantity, unit_price)`` pairs."""
    subtotal = Decimal("0.00")
    for quantity, unit_price in lines:
        subtotal += compute_line_total(quantity, unit_price)
    return round_money(subtotal)


def compute_extra_charges_total(amounts: Iterable[Decimal]) -> Decimal:
    return round_money(sum((Decimal(a) for a in amounts), Decimal("0")))


def compute_tax(base: Decimal, tax_rate: Decimal) -> Decimal:
    return round_money(Decimal(base) * Decimal(tax_rate) / HUNDRED)


def compute_grand_total(subtotal: Decimal, extra_charges_total: Decimal, tax: Decimal) -> Decimal:
    return round_money(Decimal(subtotal) + Decimal(extra_charges_total) + Decimal(tax))


@dataclass(frozen=True)
class BillTotals:
    subtotal: Decimal
    extra_charges_total: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal


def compute_bill_totals(
    lines: Iterable[tuple[Decimal, Decimal]],
    charge_amounts: Iterable[Decimal],
    tax_rate: Decimal,
) -> BillTotals:
    subtotal = compute_subtotal(lines)
    extras = compute_extra_charges_total(charge_amounts)
    tax = compute_tax(subtotal + extras, tax_rate)
    return BillTotals(
        subtotal=subtotal,
        extra_charges_total=extras,
        tax_rate=Decimal(tax_rate),
        tax=tax,
        total=compute_grand_total(subtotal, extras, tax),
    )
