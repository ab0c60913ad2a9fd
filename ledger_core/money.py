"""
Fixed-point helpers for monetary amounts.

Amounts are stored with two decimal places. Every comparison
that decides whether an entry balances goes through to_money()
so binary floating point never takes part in it.
"""

from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Convert a number to a Decimal rounded to cents."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        # str() first so floats are taken at their printed value
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def amounts_equal(left, right) -> bool:
    """Compare two amounts at two-decimal precision."""
    return to_money(left) == to_money(right)
