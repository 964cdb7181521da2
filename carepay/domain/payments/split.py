"""Split calculator - divides a booking total between caregiver and platform"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from ...shared.errors import InvalidAmount

_ONE = Decimal("1")
_CENTS = Decimal("100")


def compute_split(total_minor_units: int, caregiver_ratio: float) -> tuple[int, int]:
    """
    Split a total into (caregiver_amount, platform_amount).

    The caregiver share is rounded half-up on the minor unit and the platform
    gets the remainder, so both parts always add up to the total.

    Raises:
        InvalidAmount: if the total is not a non-negative integer or the ratio is outside [0, 1]
    """
    if isinstance(total_minor_units, bool) or not isinstance(total_minor_units, int):
        raise InvalidAmount(f"Total must be an integer amount of minor units, got {total_minor_units!r}")
    if total_minor_units < 0:
        raise InvalidAmount(f"Total must not be negative, got {total_minor_units}")

    ratio = Decimal(str(caregiver_ratio))
    if ratio < 0 or ratio > 1:
        raise InvalidAmount(f"Caregiver ratio must be between 0 and 1, got {caregiver_ratio}")

    caregiver_amount = int((Decimal(total_minor_units) * ratio).quantize(_ONE, rounding=ROUND_HALF_UP))
    return caregiver_amount, total_minor_units - caregiver_amount


def to_minor_units(value: Union[str, int, float, Decimal, None]) -> int:
    """
    Convert a display amount such as "100.00" (euros) to cents.

    A single decimal comma ("100,50") is accepted as Dutch forms send it;
    thousands separators are not.
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmount(f"Invalid amount: {value!r}")
    text = str(value).strip()
    if text.count(",") == 1 and "." not in text:
        text = text.replace(",", ".")
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise InvalidAmount(f"Invalid amount: {value!r}") from None
    if not amount.is_finite() or amount < 0:
        raise InvalidAmount(f"Invalid amount: {value!r}")
    return int((amount * _CENTS).quantize(_ONE, rounding=ROUND_HALF_UP))


def to_display_units(minor_units: int) -> float:
    """Convert cents back to a display amount"""
    return float(Decimal(minor_units) / _CENTS)
