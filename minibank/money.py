"""
Money Helpers

Decimal normalisation and formatting for ledger amounts. Amounts keep the
precision they were given; rounding to cents happens only for display and
for computed interest. NEVER uses float arithmetic.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from typing import Union

from .errors import InvalidAmount

# Set global decimal context for financial precision
getcontext().prec = 28

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")

AmountLike = Union[Decimal, int, str]


def to_amount(value: AmountLike) -> Decimal:
    """
    Convert a value to a finite Decimal without rounding.
    
    Floats are converted through their string form so 0.1 stays 0.1.
    
    Raises:
        InvalidAmount: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise InvalidAmount(f"Invalid amount: {value!r}")
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise InvalidAmount(f"Invalid amount: {value!r}")
    if not value.is_finite():
        raise InvalidAmount(f"Invalid amount: {value!r}")
    return value


def round_cents(amount: Decimal) -> Decimal:
    """Round half-up to whole cents"""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def positive_amount(value: AmountLike) -> Decimal:
    """Convert a value and require it to be strictly positive"""
    amount = to_amount(value)
    if amount <= 0:
        raise InvalidAmount(f"Amount must be positive, got {amount}")
    return amount


def non_negative_amount(value: AmountLike) -> Decimal:
    """Convert a value and require it to be zero or more"""
    amount = to_amount(value)
    if amount < 0:
        raise InvalidAmount(f"Amount cannot be negative, got {amount}")
    return amount


def format_amount(amount: Decimal) -> str:
    """Format for display, e.g. $1,234.50 or -$30.00"""
    cents = round_cents(amount)
    sign = "-" if cents < 0 else ""
    return f"{sign}${abs(cents):,.2f}"
