"""
Money helpers.

All monetary arithmetic uses ``Decimal``.  Amounts are rounded to two
decimal places (ROUND_HALF_UP) before they are persisted, and equality
between amounts that went through conversion or division is tested within
``MONEY_EPSILON``.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from travel_kernel.exceptions import InvalidAmountError

MONEY_EPSILON = Decimal("0.01")
ZERO = Decimal("0")
_CENTS = Decimal("0.01")


def to_decimal(value: object, field: str = "amount") -> Decimal:
    """
    Coerce ``value`` to a finite Decimal.

    Floats are converted through ``str`` so 0.1 stays 0.1.

    Raises:
        InvalidAmountError: value is None, a bool, non-numeric, NaN or infinite.
    """
    if value is None:
        raise InvalidAmountError(field, value, "is required")
    if isinstance(value, bool):
        raise InvalidAmountError(field, value)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidAmountError(field, value) from None
    else:
        raise InvalidAmountError(field, value)
    if not result.is_finite():
        raise InvalidAmountError(field, value)
    return result


def round_money(amount: Decimal) -> Decimal:
    """Round to cents, half up."""
    return amount.quantize(_CENTS, rounding=ROUND_HALF_UP)


def money_equal(a: Decimal, b: Decimal, epsilon: Decimal = MONEY_EPSILON) -> bool:
    """True when ``a`` and ``b`` differ by less than ``epsilon``."""
    return abs(a - b) < epsilon
