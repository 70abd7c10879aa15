"""
Tests for `domain/periods.py`.

Covers contract rules:
- Calendar walks forward from the contract start (monthly, quarterly, 28-day).
- Every period whose start <= as_of is generated; include_upcoming adds one more.
- review_deadline = end + review window; timing is UPCOMING / OPEN / OVERDUE.
- A single-day first period is folded into the following one.
"""

from __future__ import annotations

from datetime import date

import pytest

from domain.billing import BillingCadence
from domain.periods import (
    PeriodTiming,
    actionable_periods,
    calculate_periods,
    classify_period,
    current_period,
    days_until_deadline,
)

AS_OF = date(2025, 3, 5)


def test_monthly_calendar_from_mid_month_contract() -> None:
    periods = calculate_periods(date(2025, 1, 15), BillingCadence.MONTHLY, 10, AS_OF)

    assert [(p.label, p.start, p.end, p.review_deadline, p.timing) for p in periods] == [
        ("January 2025", date(2025, 1, 15), date(2025, 1, 31), date(2025, 2, 10), PeriodTiming.OVERDUE),
        ("February 2025", date(2025, 2, 1), date(2025, 2, 28), date(2025, 3, 10), PeriodTiming.OPEN),
        ("March 2025", date(2025, 3, 1), date(2025, 3, 31), date(2025, 4, 10), PeriodTiming.OPEN),
    ]


def test_include_upcoming_adds_next_period() -> None:
    periods = calculate_periods(date(2025, 1, 15), BillingCadence.MONTHLY, 10, AS_OF, include_upcoming=True)

    assert len(periods) == 4
    assert periods[-1].label == "April 2025"
    assert periods[-1].timing is PeriodTiming.UPCOMING
    assert [p.label for p in actionable_periods(periods)] == ["January 2025", "February 2025", "March 2025"]


def test_quarterly_calendar() -> None:
    periods = calculate_periods(date(2025, 2, 10), BillingCadence.QUARTERLY, 10, date(2025, 7, 1))

    assert [(p.label, p.start, p.end) for p in periods] == [
        ("Q1 2025", date(2025, 2, 10), date(2025, 3, 31)),
        ("Q2 2025", date(2025, 4, 1), date(2025, 6, 30)),
        ("Q3 2025", date(2025, 7, 1), date(2025, 9, 30)),
    ]


def test_twenty_eight_day_cycles() -> None:
    periods = calculate_periods(date(2025, 1, 1), BillingCadence.TWENTY_EIGHT_DAY, 5, date(2025, 2, 1))

    assert [(p.label, p.start, p.end) for p in periods] == [
        ("Cycle 1", date(2025, 1, 1), date(2025, 1, 28)),
        ("Cycle 2", date(2025, 1, 29), date(2025, 2, 25)),
    ]


def test_single_day_first_period_is_folded_into_the_next() -> None:
    periods = calculate_periods(date(2025, 1, 31), BillingCadence.MONTHLY, 10, date(2025, 2, 10))

    assert len(periods) == 1
    assert periods[0].label == "February 2025"
    assert periods[0].start == date(2025, 1, 31)
    assert periods[0].end == date(2025, 2, 28)


def test_contract_starting_after_as_of_yields_nothing() -> None:
    assert calculate_periods(date(2025, 6, 1), BillingCadence.MONTHLY, 10, AS_OF) == []


def test_negative_review_window_is_rejected() -> None:
    with pytest.raises(ValueError):
        calculate_periods(date(2025, 1, 1), BillingCadence.MONTHLY, -1, AS_OF)


def test_classify_period_boundaries() -> None:
    deadline = date(2025, 3, 10)

    assert classify_period(date(2025, 3, 6), deadline, AS_OF) is PeriodTiming.UPCOMING
    assert classify_period(date(2025, 3, 5), deadline, AS_OF) is PeriodTiming.OPEN
    assert classify_period(date(2025, 2, 1), deadline, date(2025, 3, 10)) is PeriodTiming.OPEN
    assert classify_period(date(2025, 2, 1), deadline, date(2025, 3, 11)) is PeriodTiming.OVERDUE


def test_current_period_and_deadline() -> None:
    periods = calculate_periods(date(2025, 1, 15), BillingCadence.MONTHLY, 10, AS_OF)

    current = current_period(periods, AS_OF)
    assert current.label == "March 2025"
    assert days_until_deadline(current, AS_OF) == 36
    assert days_until_deadline(periods[0], AS_OF) == 0
    assert current_period([], AS_OF) is None
