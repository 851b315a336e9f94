"""
Fixed-precision helpers for stock quantities and money.

Every arithmetic step on a stock counter goes through these so repeated small
adjustments never leave float residue (0.1 + 0.2 style). Values are rounded
half-up to two decimals via Decimal and handed back as floats, which is what
the Float columns and JSON payloads carry.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any

TWO_PLACES = Decimal("0.01")
FOUR_PLACES = Decimal("0.0001")


def to_number(value: Any) -> float:
    """Lenient numeric coercion: None, blanks and junk become 0.0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number or number in (float("inf"), float("-inf")):
        return 0.0
    return number


def _decimal(value: Any) -> Decimal:
    try:
        # repr of the float, not its binary expansion
        return Decimal(str(to_number(value)))
    except InvalidOperation:
        return Decimal("0")


def fixed(value: Any, places: Decimal = TWO_PLACES) -> float:
    result = _decimal(value).quantize(places, rounding=ROUND_HALF_UP)
    if result == 0:
        return 0.0  # never hand out -0.0
    return float(result)


def qty_add(a: Any, b: Any) -> float:
    return fixed(_decimal(a) + _decimal(b))


def qty_sub(a: Any, b: Any) -> float:
    return fixed(_decimal(a) - _decimal(b))


def qty_mul(a: Any, b: Any) -> float:
    return fixed(_decimal(a) * _decimal(b))


def ratio(numerator: Any, denominator: Any) -> float:
    """numerator / denominator to four places; 0 when the denominator is not positive."""
    den = _decimal(denominator)
    if den <= 0:
        return 0.0
    return fixed(_decimal(numerator) / den, FOUR_PLACES)
