"""
Module: erp_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers for quantity and
    money columns.  Centralizes precision and rounding so that every model,
    engine and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by engines, services
    and module ORM files.

Invariants enforced:
    - No floats anywhere: quantities, prices and VAT rates are Decimal.
    - Values are stored unrounded (scale 9).  round_money() is the only
      sanctioned rounding function and is applied at aggregation / display.

Failure modes:
    - ValueError on non-numeric input to to_decimal().
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Annotated

from sqlalchemy import Numeric, String


# Monetary amount, 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Stock quantity (fractional units allowed, e.g. metres of cable)
Quantity = Annotated[Decimal, Numeric(38, 9)]

# Percentage such as a VAT rate (0-100)
Percent = Annotated[Decimal, Numeric(9, 4)]

ShortCode = Annotated[str, String(50)]
LongText = Annotated[str, String(4000)]


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce an int, str or Decimal to Decimal.

    Floats are rejected; they cannot represent money exactly.

    Raises:
        ValueError: If value is a float or is not numeric.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise ValueError(f"Float values are not accepted: {value!r}")
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Not a decimal value: {value!r}") from exc


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    This is the ONLY sanctioned rounding function for financial values.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantum = Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantum, rounding=rounding)
