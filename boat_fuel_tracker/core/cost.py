"""
Cost derivation and decimal handling.

The total cost of a fuel-up is always derived from its quantity and
unit price. Arithmetic here is exact: no intermediate rounding.
"""

from contextlib import contextmanager
from datetime import date, datetime
from decimal import (
    Context,
    Decimal,
    DecimalException,
    Inexact,
    InvalidOperation,
    MAX_PREC,
    ROUND_DOWN,
    ROUND_HALF_UP,
    localcontext,
)
from typing import Iterable, Optional, Union

from .errors import ValidationError

DecimalInput = Union[Decimal, int, float, str]

# Nonzero inputs must have magnitude in [1E-12, 1E+13) so sums stay exact
MAX_ADJUSTED_EXPONENT = 12


def derive_total_cost(
    gallons: Optional[Decimal],
    price_per_gallon: Optional[Decimal]
) -> Optional[Decimal]:
    """Derive total cost from gallons and price per gallon.
    
    This is the single authority for ``total_cost``.
    
    Args:
        gallons: Quantity purchased, or None
        price_per_gallon: Unit price, or None
        
    Returns:
        Full-precision product, or None if either input is absent
    """
    if gallons is None or price_per_gallon is None:
        return None
    with _exact_context():
        return gallons * price_per_gallon


def exact_sum(values: Iterable[Decimal]) -> Decimal:
    """Sum decimals without losing any digits."""
    total = Decimal("0")
    with _exact_context():
        for value in values:
            total += value
    return total


def divide_half_up(numerator: Decimal, count: int, places: int = 2) -> Decimal:
    """Divide and round half-up to a fixed number of decimal places.
    
    The quotient is first truncated with at least two guard digits, then
    rounded once. For non-negative operands that gives the same result as
    rounding the exact quotient.
    
    Args:
        numerator: Non-negative dividend
        count: Positive divisor
        places: Decimal places in the result
        
    Returns:
        Quotient rounded half-up to ``places``
    """
    if count <= 0:
        raise ValueError("count must be > 0")
    quantum = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        ctx.prec = max(28, numerator.adjusted() + places + 4)
        ctx.rounding = ROUND_DOWN
        truncated = numerator / Decimal(count)
        ctx.rounding = ROUND_HALF_UP
        return truncated.quantize(quantum)


def to_decimal(value: Optional[DecimalInput], field_name: str) -> Optional[Decimal]:
    """Coerce user input to a finite Decimal.
    
    Floats go through their shortest string form so 3.89 stays 3.89.
    
    Raises:
        ValidationError: If the value is not a finite number or its
            magnitude is out of range
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError(f"{field_name} must be a number, got {value!r}")
    else:
        raise ValidationError(f"{field_name} must be a number, got {type(value).__name__}")
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be finite, got {value!r}")
    if result and abs(result.adjusted()) > MAX_ADJUSTED_EXPONENT:
        raise ValidationError(f"{field_name} is out of range, got {value!r}")
    return result


def require_positive(value: Optional[Decimal], field_name: str) -> Decimal:
    """Ensure a decimal is present and strictly positive."""
    if value is None:
        raise ValidationError(f"{field_name} is required")
    if value <= 0:
        raise ValidationError(f"{field_name} must be > 0, got {value}")
    return value


def to_date(value: Union[date, str, None], field_name: str = "date") -> date:
    """Coerce a date or ISO ``YYYY-MM-DD`` string to a date.
    
    Raises:
        ValidationError: If the value is missing or malformed
    """
    if value is None:
        raise ValidationError(f"{field_name} is required")
    if isinstance(value, datetime):
        raise ValidationError(f"{field_name} must be a calendar date, not a timestamp")
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            raise ValidationError(f"{field_name} must be an ISO date (YYYY-MM-DD), got {value!r}")
    raise ValidationError(f"{field_name} must be a date, got {type(value).__name__}")


@contextmanager
def _exact_context():
    # Products and sums of finite decimals are exact at MAX_PREC; Inexact would mean lost digits
    try:
        with localcontext(Context(prec=MAX_PREC, traps=[Inexact])):
            yield
    except DecimalException as e:
        raise ValidationError(f"Amount out of range: {e!r}") from e
