"""
Decimal helpers shared by the ledgers and the domain values.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Type

from .exceptions import EduRecordException, ValidationError

HUNDRED = Decimal("100")
ZERO = Decimal("0")
TWO_PLACES = Decimal("0.01")


def to_decimal(value: Any, field_name: str,
               error_cls: Type[EduRecordException] = ValidationError) -> Decimal:
    """Coerce a number or numeric string to a finite Decimal."""
    if value is None or isinstance(value, bool):
        raise error_cls(f"{field_name} must be a number", details={'field': field_name})
    if isinstance(value, Decimal):
        result = value
    else:
        # str() keeps floats at their shortest repr instead of the binary expansion
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise error_cls(f"{field_name} must be a number, got {value!r}",
                            details={'field': field_name}) from None
    if not result.is_finite():
        raise error_cls(f"{field_name} must be finite", details={'field': field_name})
    return result


def round_percentage(value: Decimal) -> Decimal:
    """Round to two decimal places, half up."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
