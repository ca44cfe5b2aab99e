"""
Money helpers.

Amounts are rupees held as Decimal with two places. Never use float for
stored amounts; JSON carries them as strings ("210.00").
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_money(value) -> Decimal:
    """Coerce int/str/Decimal/float to a 2dp Decimal (half-up)."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")
    if not number.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return number.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def to_decimal(value) -> Decimal:
    """Like to_money but without rounding (rates, raw products)."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, bool):
        raise ValueError("value must be a number")
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid number: {value!r}")
    if not number.is_finite():
        raise ValueError(f"Invalid number: {value!r}")
    return number


def money_str(value) -> str | None:
    if value is None:
        return None
    return str(to_money(value))


def format_inr(value) -> str:
    """Printable rupee amount, e.g. ₹1,250.00"""
    amount = to_money(value)
    sign = "-" if amount < 0 else ""
    return f"{sign}₹{abs(amount):,.2f}"
