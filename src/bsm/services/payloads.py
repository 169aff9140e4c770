"""Normalization of plain request dicts shared by the bill services."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from bsm.domain.errors import InvalidQuantityError, ValidationError
from bsm.domain.totals import HUNDRED, round_money, to_decimal


def required_id(value, field_name: str) -> int:
    if value is None or isinstance(value, bool) or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field_name} is required.")
    try:
        parsed = int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field_name} must be an integer id.") from e
    if parsed <= 0:
        raise ValidationError(f"{field_name} must be a positive id.")
    return parsed


def optional_id(value, field_name: str) -> Optional[int]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return required_id(value, field_name)


def optional_text(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def iso_date(value, field_name: str, default: Optional[date] = None) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise ValidationError(f"{field_name} is required.")
        return default.isoformat()
    if isinstance(value, date):
        return value.isoformat()[:10]
    try:
        return date.fromisoformat(str(value).strip()[:10]).isoformat()
    except ValueError as e:
        raise ValidationError(f"{field_name} must be an ISO date (YYYY-MM-DD).") from e


def tax_rate(value, default: Decimal) -> Decimal:
    if value is None or (isinstance(value, str) and not value.strip()):
        return Decimal(default)
    rate = round_money(to_decimal(value, "tax_rate"))
    if rate < 0 or rate > HUNDRED:
        raise ValidationError("Tax rate must be between 0 and 100.")
    return rate


def status(value, allowed: Sequence[str], default: str) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    s = str(value).strip().lower()
    if s not in allowed:
        raise ValidationError(f"Status must be one of: {', '.join(allowed)}.")
    return s


def positive_quantity(value, field_name: str = "quantity") -> Decimal:
    qty = round_money(to_decimal(value, field_name))
    if qty <= 0:
        raise InvalidQuantityError("Quantity must be > 0.")
    return qty


def non_negative_price(value, field_name: str) -> Decimal:
    price = round_money(to_decimal(value, field_name))
    if price < 0:
        raise ValidationError(f"{field_name} must be >= 0.")
    return price


def extra_charges(charges: Optional[Iterable[dict]]) -> list[dict]:
    """[{name, amount}] -> validated list with Decimal amounts."""
    out: list[dict] = []
    for charge in charges or []:
        name = optional_text(charge.get("name"))
        if not name:
            raise ValidationError("Extra charge name is required.")
        amount = round_money(to_decimal(charge.get("amount"), "extra charge amount"))
        if amount < 0:
            raise ValidationError("Extra charge amount must be >= 0.")
        out.append({"name": name, "amount": amount})
    return out
