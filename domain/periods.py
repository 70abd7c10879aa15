"""
Domain: billing period calendar.

Contract excerpts implemented here:
- Periods are walked forward from the contract start date:
  - monthly: contract start -> end of that month, then whole calendar months.
    Label: "March 2025".
  - quarterly: contract start -> end of that calendar quarter, then whole quarters.
    Label: "Q1 2025".
  - 28_day: 28-day cycles (inclusive) from the contract start. Label: "Cycle N".
- Every period whose start is <= as_of is generated; include_upcoming appends the
  next one.
- review_deadline = end + review_window_days.
- A first partial period of a single day is folded into the following period
  (start < end always holds); the folded period takes the following label.
- Timing relative to as_of:
  - UPCOMING: start > as_of
  - OPEN:     start <= as_of <= review_deadline
  - OVERDUE:  as_of > review_deadline

Pure and deterministic: the calendar is recomputed on every sync and never reads
the wall clock.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Tuple

from dateutil.relativedelta import relativedelta

from .billing import BillingCadence, BillingConfig

CYCLE_LENGTH_DAYS: int = 28

_RawPeriod = Tuple[date, date, str]


class PeriodTiming(str, Enum):
    UPCOMING = "UPCOMING"
    OPEN = "OPEN"
    OVERDUE = "OVERDUE"


@dataclass(frozen=True, slots=True)
class BillingPeriod:
    label: str
    start: date
    end: date
    review_deadline: date
    timing: PeriodTiming

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError("period start must be before period end")
        if self.review_deadline < self.end:
            raise ValueError("review_deadline must be >= period end")

    @property
    def is_actionable(self) -> bool:
        return self.timing in (PeriodTiming.OPEN, PeriodTiming.OVERDUE)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def classify_period(start: date, review_deadline: date, as_of: date) -> PeriodTiming:
    if start > as_of:
        return PeriodTiming.UPCOMING
    if as_of > review_deadline:
        return PeriodTiming.OVERDUE
    return PeriodTiming.OPEN


def _end_of_month(day: date) -> date:
    return day + relativedelta(day=31)


def _end_of_quarter(day: date) -> date:
    last_month = ((day.month - 1) // 3) * 3 + 3
    return _end_of_month(date(day.year, last_month, 1))


def _monthly(contract_start: date) -> Iterator[_RawPeriod]:
    start = contract_start
    while True:
        end = _end_of_month(start)
        yield start, end, start.strftime("%B %Y")
        start = end + timedelta(days=1)


def _quarterly(contract_start: date) -> Iterator[_RawPeriod]:
    start = contract_start
    while True:
        end = _end_of_quarter(start)
        quarter = (start.month - 1) // 3 + 1
        yield start, end, f"Q{quarter} {start.year}"
        start = end + timedelta(days=1)


def _cycles(contract_start: date) -> Iterator[_RawPeriod]:
    start = contract_start
    number = 1
    while True:
        end = start + timedelta(days=CYCLE_LENGTH_DAYS - 1)
        yield start, end, f"Cycle {number}"
        start = end + timedelta(days=1)
        number += 1


def _raw_periods(contract_start: date, cadence: BillingCadence) -> Iterator[_RawPeriod]:
    if cadence is BillingCadence.MONTHLY:
        raw = _monthly(contract_start)
    elif cadence is BillingCadence.QUARTERLY:
        raw = _quarterly(contract_start)
    elif cadence is BillingCadence.TWENTY_EIGHT_DAY:
        raw = _cycles(contract_start)
    else:
        raise ValueError(f"Unsupported billing cadence: {cadence!r}")

    first_start, first_end, first_label = next(raw)
    if first_start == first_end:
        _, next_end, next_label = next(raw)
        yield first_start, next_end, next_label
    else:
        yield first_start, first_end, first_label
    yield from raw


def calculate_periods(
    contract_start: date,
    cadence: BillingCadence,
    review_window_days: int,
    as_of: date,
    *,
    include_upcoming: bool = False,
) -> List[BillingPeriod]:
    """
    Generate the billing calendar from ``contract_start`` up to ``as_of``.

    Example (monthly, contract 2025-01-15, window 10, as_of 2025-03-05):
        January 2025   2025-01-15..2025-01-31 deadline 2025-02-10 OVERDUE
        February 2025  2025-02-01..2025-02-28 deadline 2025-03-10 OPEN
        March 2025     2025-03-01..2025-03-31 deadline 2025-04-10 OPEN
    """

    if review_window_days < 0:
        raise ValueError("review_window_days must be >= 0")

    periods: List[BillingPeriod] = []
    for start, end, label in _raw_periods(contract_start, cadence):
        if start > as_of and not include_upcoming:
            break
        deadline = end + timedelta(days=review_window_days)
        periods.append(
            BillingPeriod(
                label=label,
                start=start,
                end=end,
                review_deadline=deadline,
                timing=classify_period(start, deadline, as_of),
            )
        )
        if start > as_of:
            break
    return periods


def periods_for_config(
    config: BillingConfig,
    as_of: date,
    *,
    include_upcoming: bool = False,
) -> List[BillingPeriod]:
    return calculate_periods(
        config.contract_start,
        config.cadence,
        config.review_window_days,
        as_of,
        include_upcoming=include_upcoming,
    )


def actionable_periods(periods: Sequence[BillingPeriod]) -> List[BillingPeriod]:
    """Periods that need attention: OPEN or OVERDUE."""

    return [p for p in periods if p.is_actionable]


def current_period(periods: Sequence[BillingPeriod], as_of: date) -> Optional[BillingPeriod]:
    """
    The period containing ``as_of``; otherwise the most recent OPEN period;
    otherwise the last generated period (None for an empty calendar).
    """

    for period in reversed(periods):
        if period.contains(as_of):
            return period
    for period in reversed(periods):
        if period.timing is PeriodTiming.OPEN:
            return period
    return periods[-1] if periods else None


def days_until_deadline(period: BillingPeriod, as_of: date) -> int:
    """Whole days left in the review window, never negative."""

    return max(0, (period.review_deadline - as_of).days)


__all__ = [
    "CYCLE_LENGTH_DAYS",
    "PeriodTiming",
    "BillingPeriod",
    "classify_period",
    "calculate_periods",
    "periods_for_config",
    "actionable_periods",
    "current_period",
    "days_until_deadline",
]
