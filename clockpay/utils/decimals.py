from __future__ import annotations

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")
SECONDS_PER_HOUR = Decimal(3600)


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def q2(value) -> Decimal:
    return to_decimal(value).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def q0(value) -> Decimal:
    return to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def dsum(values: Iterable[Optional[Decimal]]) -> Decimal:
    return sum((to_decimal(v) for v in values if v is not None), start=ZERO)


def elapsed_hours(start: datetime, end: datetime) -> Decimal:
    """Hours between two instants, rounded to 2 places and floored at zero."""
    seconds = Decimal(str((end - start).total_seconds()))
    hours = q2(seconds / SECONDS_PER_HOUR)
    return hours if hours > ZERO else ZERO
