"""
Display formatting for money and timeline deltas.

Used by the comparison view and notification emails so both show the
same strings.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Numeric = Union[int, float, Decimal]

_CENT = Decimal("0.01")


def _to_decimal(value: Numeric) -> Decimal:
    return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)


def format_money(value: Numeric) -> str:
    """
    Format an amount in dollars.

    Cents are shown only when the amount is not a whole number:
    ``5000 -> "$5,000"``, ``1250.5 -> "$1,250.50"``.
    """
    amount = _to_decimal(value)
    sign = "-" if amount < 0 else ""
    amount = abs(amount)
    if amount == amount.to_integral_value():
        return f"{sign}${int(amount):,}"
    return f"{sign}${amount:,.2f}"


def format_cost_delta(value: Numeric) -> str:
    """
    Format a cost change as its absolute value, prefixed with ``+`` only
    when the change is not a reduction.

    >>> format_cost_delta(5000)
    '+$5,000'
    >>> format_cost_delta(-1250.5)
    '$1,250.50'
    >>> format_cost_delta(0)
    '+$0'
    """
    amount = _to_decimal(value)
    sign = "+" if amount >= 0 else ""
    return f"{sign}{format_money(abs(amount))}"


def format_weeks(value: Numeric) -> str:
    """Format a week count with at most one decimal: ``2 -> "2 weeks"``."""
    weeks = round(float(value), 1)
    magnitude = abs(weeks)
    if magnitude.is_integer():
        number = f"{int(magnitude)}"
    else:
        number = f"{magnitude:.1f}"
    unit = "week" if magnitude == 1 else "weeks"
    sign = "-" if weeks < 0 else ""
    return f"{sign}{number} {unit}"


def format_weeks_delta(value: Numeric) -> str:
    """
    Format a timeline change with an explicit sign.

    >>> format_weeks_delta(2)
    '+2 weeks'
    >>> format_weeks_delta(-1.5)
    '-1.5 weeks'
    >>> format_weeks_delta(1)
    '+1 week'
    """
    text = format_weeks(value)
    return text if text.startswith("-") else f"+{text}"
