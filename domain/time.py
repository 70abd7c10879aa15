"""
Domain time utilities (pure).

Centralized timestamp validation and day arithmetic shared by matching and
billing. Behavior and error messages must remain consistent across the domain
model. No helper in this module reads the wall clock.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone


def require_utc_timestamp(name: str, value: datetime) -> None:
    """
    Enforces that timestamps are UTC.

    Invariants:
    - Timestamps must be timezone-aware.
    - Timestamps must have UTC offset 0.
    """

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if value.utcoffset() != timedelta(0):
        raise ValueError(f"{name} must be a UTC timestamp (offset 0)")


def days_between(earlier: datetime, later: datetime) -> int:
    """
    Whole 24-hour days between two timestamps, order-insensitive:

    days = floor(|later - earlier| / 24 hours)
    """

    delta = abs(later - earlier)
    return int(delta // timedelta(days=1))


def start_of_day_utc(day: date) -> datetime:
    """Midnight UTC at the beginning of ``day``."""

    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def end_of_day_utc(day: date) -> datetime:
    """Last representable instant of ``day`` in UTC."""

    return datetime.combine(day, time.max, tzinfo=timezone.utc)


def month_label(value: datetime) -> str:
    """``YYYY-MM`` for a UTC timestamp."""

    return value.strftime("%Y-%m")
