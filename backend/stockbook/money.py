from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

ZERO = Decimal("0")
CENT = Decimal("0.01")
MILLI = Decimal("0.001")


def as_decimal(value) -> Decimal:
    """
    Lenient numeric coercion.

    None, "", booleans, NaN/Infinity and anything unparseable become 0.
    Strings may carry leading zeros ("007.5" -> 7.5).
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        return Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        s = str(value).strip()
        if not s or s == ".":
            return ZERO
        try:
            result = Decimal(s)
        except InvalidOperation:
            return ZERO
    if not result.is_finite():
        return ZERO
    return result


def non_negative(value) -> Decimal:
    d = as_decimal(value)
    return d if d > ZERO else ZERO


def quantize_money(value) -> Decimal:
    return as_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def quantize_quantity(value) -> Decimal:
    return as_decimal(value).quantize(MILLI, rounding=ROUND_HALF_UP)


def money_str(value) -> str:
    return str(quantize_money(value))
