from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from typing import Optional, Tuple

PERIOD_ALIASES = {
    "week": "week",
    "weekly": "week",
    "w": "week",
    "minggu": "week",
    "month": "month",
    "monthly": "month",
    "m": "month",
    "bulan": "month",
    "all": "all",
    "semua": "all",
}


def normalize_period(value: str, *, allow_all: bool = False) -> Optional[str]:
    period = PERIOD_ALIASES.get((value or "").strip().lower())
    if period == "all" and not allow_all:
        return None
    return period


def start_of_day(now: datetime) -> datetime:
    return datetime.combine(now.date(), time.min, tzinfo=now.tzinfo or timezone.utc)


def start_of_week(now: datetime) -> datetime:
    # ISO weeks start on Monday.
    return start_of_day(now) - timedelta(days=now.weekday())


def start_of_month(now: datetime) -> datetime:
    return start_of_day(now).replace(day=1)


def period_window(period: str, now: datetime) -> Tuple[Optional[datetime], datetime]:
    """Return ``(start, end)`` for a normalized period; ``all`` has no start."""
    if period == "week":
        return start_of_week(now), now
    if period == "month":
        return start_of_month(now), now
    if period == "day":
        return start_of_day(now), now
    return None, now
