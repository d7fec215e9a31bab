from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """
    Coerce a stored or computed amount to a 2-place Decimal (half-up).

    Raises InvalidOperation for unparseable input and for NaN/Infinity,
    which quantize() would otherwise pass through silently.
    """
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if not value.is_finite():
        raise InvalidOperation(f"Amount must be finite, got {value}")
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_money_str(value) -> Optional[str]:
    """Serialize an amount as a fixed 2-place string ("250.00"), None stays None."""
    if value is None:
        return None
    return str(to_decimal(value))
