"""
Decimal money helpers.

Invariants:
    - No floats anywhere in money arithmetic.  ``to_decimal`` is the single
      coercion point from whatever the driver or caller hands over
      (str, int, float, Decimal) into ``Decimal``.
    - ``round_money`` is the ONLY sanctioned rounding function.  Rounding is
      half-up (ties away from zero) to ``MONEY_DECIMAL_PLACES``.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0.00")


def to_decimal(value: object) -> Decimal:
    """
    Coerce a numeric value into a ``Decimal``.

    Floats go through ``str()`` so that ``0.1`` becomes ``Decimal("0.1")``
    rather than its binary expansion.

    Raises:
        TypeError: If value is None, a bool, or not a number/numeric string.
        ValueError: If value is a non-numeric string or not finite.
    """
    if isinstance(value, bool) or value is None:
        raise TypeError(f"Cannot convert {value!r} to Decimal")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValueError(f"Not a decimal number: {value!r}") from exc
    else:
        raise TypeError(f"Cannot convert {type(value).__name__} to Decimal")

    if not result.is_finite():
        raise ValueError(f"Not a finite decimal number: {value!r}")
    return result


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    Each derived money field is rounded on its own from unrounded inputs.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def format_money(value: Decimal) -> str:
    """Render a money value as a fixed 2-dp string, e.g. ``"115.00"``."""
    return str(round_money(value))
