"""
Module: fleet_kernel.db.types
Responsibility: Money parsing and the single sanctioned rounding function.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and stores/.  MUST NOT import from any of those layers.

Invariants enforced:
    CRITICAL: No floats for money.  All monetary amounts use Decimal with
    explicit precision; round_money() is the ONLY rounding function.
"""

from decimal import Decimal, ROUND_HALF_UP

MONEY_DECIMAL_PLACES = 2
PERCENT_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def money_from_str(value: str) -> Decimal:
    """
    Create a Money value from string.

    Raises:
        decimal.InvalidOperation: If value is not a number.
    """
    return Decimal(value)


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    This is the ONLY sanctioned rounding function for monetary and
    percentage values; all other code delegates here.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)
