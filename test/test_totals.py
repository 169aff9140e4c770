from decimal import Decimal

import pytest

from bsm.domain.errors import ValidationError
from bsm.domain.totals import (
    compute_bill_totals,
    compute_extra_charges_total,
    compute_line_total,
    compute_subtotal,
    compute_tax,
    round_money,
    to_decimal,
)


def test_purchase_totals_with_tax_and_shipping():
    totals = compute_bill_totals([(Decimal("10"), Decimal("2.00"))], [Decimal("3.00")], Decimal("5"))

    assert totals.subtotal == Decimal("20.00")
    assert totals.extra_charges_total == Decimal("3.00")
    assert totals.tax == Decimal("1.15")
    assert totals.total == Decimal("24.15")


def test_lines_are_rounded_before_summing():
    lines = [(Decimal("1"), Decimal("0.005")), (Decimal("1"), Decimal("0.005"))]

    assert compute_line_total(Decimal("1"), Decimal("0.005")) == Decimal("0.01")
    assert compute_subtotal(lines) == Decimal("0.02")


def test_tax_is_charged_on_goods_plus_extras():
    totals = compute_bill_totals([(Decimal("6"), Decimal("5.00"))], [Decimal("10.00")], Decimal("10"))

    assert totals.tax == Decimal("4.00")
    assert totals.total == Decimal("44.00")
    assert totals.total == totals.subtotal + totals.extra_charges_total + totals.tax


def test_tax_rounds_half_up():
    assert compute_tax(Decimal("0.05"), Decimal("10")) == Decimal("0.01")
    assert round_money(Decimal("2.675")) == Decimal("2.68")


def test_empty_charges_total_zero():
    assert compute_extra_charges_total([]) == Decimal("0.00")


def test_zero_tax_rate():
    totals = compute_bill_totals([(Decimal("3"), Decimal("1.10"))], [], Decimal("0"))
    assert totals.tax == Decimal("0.00")
    assert totals.total == Decimal("3.30")


def test_to_decimal_parses_floats_without_binary_noise():
    assert to_decimal(0.1) == Decimal("0.1")
    assert to_decimal(" 12.50 ") == Decimal("12.50")
    assert to_decimal(3) == Decimal("3")


@pytest.mark.parametrize("bad", [None, True, "abc", "NaN", "Infinity", ""])
def test_to_decimal_rejects_non_numbers(bad):
    with pytest.raises(ValidationError):
        to_decimal(bad, "price")


@pytest.mark.parametrize("huge", ["1e30", "100000000000000", "-100000000"])
def test_to_decimal_rejects_amounts_beyond_column_range(huge):
    with pytest.raises(ValidationError):
        to_decimal(huge, "quantity")


def test_round_money_reports_overflow_as_validation_error():
    with pytest.raises(ValidationError):
        round_money(Decimal("1e30"))
