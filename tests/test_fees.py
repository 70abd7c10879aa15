"""
Tests for `domain/fees.py` and `domain/billing.py`.

Covers contract rules:
- owed = revshare + signups * fee_per_signup + meetings * fee_per_meeting.
- The rate is flat, or chosen by motion type under a PLG/SALES split.
- Revshare needs both a paying signal and submitted revenue.
- Money is rounded to cents, half-up.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from domain.billing import (
    BillingConfig,
    FeeSchedule,
    FlatRevshare,
    MotionType,
    PlgSalesSplit,
    build_billing_model,
)
from domain.fees import (
    AUTO_BILLED_REVENUE_NOTE,
    apply_fee,
    auto_bill_line_item,
    calculate_line_item_fee,
    estimate_period_total,
)
from domain.reconciliation import LineItem, LineItemStatus

FLAT = BillingConfig(tenant_id="tenant-1", model=FlatRevshare(rate=Decimal("0.20")), contract_start=date(2025, 1, 1))
SPLIT = BillingConfig(
    tenant_id="tenant-1",
    model=PlgSalesSplit(plg_rate=Decimal("0.10"), sales_rate=Decimal("0.30")),
    contract_start=date(2025, 1, 1),
    fees=FeeSchedule(fee_per_signup=Decimal("50"), fee_per_meeting=Decimal("100")),
)


def paying_item(revenue=None, motion_type=None) -> LineItem:
    return LineItem(
        period_id="period-1",
        domain="acme.com",
        has_paying_customer=True,
        paying_customer_date=date(2025, 3, 5),
        motion_type=motion_type,
        revenue_submitted=Decimal(revenue) if revenue is not None else None,
    )


def test_flat_revshare() -> None:
    breakdown = calculate_line_item_fee(paying_item("10000"), FLAT)

    assert breakdown.total == Decimal("2000.00")
    assert breakdown.applied_rate == Decimal("0.20")


@pytest.mark.parametrize(
    "motion_type, expected",
    [
        (MotionType.SALES, Decimal("3000.00")),
        (MotionType.PLG, Decimal("1000.00")),
        (None, Decimal("1000.00")),
    ],
)
def test_split_rate_follows_motion_type(motion_type, expected: Decimal) -> None:
    assert calculate_line_item_fee(paying_item("10000", motion_type), SPLIT).total == expected


def test_fee_is_deterministic() -> None:
    first = LineItem(
        period_id="period-1",
        domain="acme.com",
        signup_count=2,
        meeting_count=1,
        has_paying_customer=True,
        paying_customer_date=date(2025, 3, 5),
        motion_type=MotionType.SALES,
        revenue_submitted=Decimal("12345.67"),
    )
    second = replace(first)

    forward = [calculate_line_item_fee(first, SPLIT), calculate_line_item_fee(second, SPLIT)]
    backward = [calculate_line_item_fee(second, SPLIT), calculate_line_item_fee(first, SPLIT)]

    assert forward[0] == forward[1] == backward[0] == backward[1]
    assert forward[0].total == Decimal("3903.70")
    assert apply_fee(first, SPLIT) == apply_fee(second, SPLIT)


def test_per_event_fees_are_counted() -> None:
    item = LineItem(period_id="period-1", domain="globex.com", signup_count=3, meeting_count=2)

    priced = apply_fee(item, SPLIT)

    assert priced.amount_owed == Decimal("350.00")
    assert priced.applied_rate is None
    assert priced.fee_per_signup_applied == Decimal("50")
    assert priced.fee_per_meeting_applied == Decimal("100")


def test_no_revshare_without_submitted_revenue() -> None:
    breakdown = calculate_line_item_fee(paying_item(), FLAT)

    assert breakdown.revshare == Decimal("0.00")
    assert breakdown.total == Decimal("0.00")
    assert breakdown.applied_rate == Decimal("0.20")


def test_rounding_is_half_up() -> None:
    config = BillingConfig(tenant_id="tenant-1", model=FlatRevshare(rate=Decimal("0.15")), contract_start=date(2025, 1, 1))

    assert calculate_line_item_fee(paying_item("33.30"), config).total == Decimal("5.00")


def test_estimate_uses_average_rate() -> None:
    assert estimate_period_total(2, 3, 1, SPLIT) == Decimal("4250.00")
    assert estimate_period_total(0, 0, 0, FLAT) == Decimal("0.00")


def test_auto_bill_uses_estimated_acv_for_unreported_revenue() -> None:
    billed = auto_bill_line_item(paying_item(), FLAT)

    assert billed.revenue_submitted == Decimal("10000")
    assert billed.revenue_notes == AUTO_BILLED_REVENUE_NOTE
    assert billed.status is LineItemStatus.SUBMITTED
    assert billed.amount_owed == Decimal("2000.00")


def test_auto_bill_keeps_submitted_revenue() -> None:
    billed = auto_bill_line_item(paying_item("5000"), FLAT)

    assert billed.revenue_submitted == Decimal("5000")
    assert billed.revenue_notes is None
    assert billed.amount_owed == Decimal("1000.00")


def test_auto_bill_respects_zero_reported_revenue() -> None:
    assert auto_bill_line_item(paying_item("0"), FLAT).amount_owed == Decimal("0.00")


def test_build_billing_model() -> None:
    assert build_billing_model(None, flat_rate=Decimal("0.2")) == FlatRevshare(rate=Decimal("0.2"))
    assert build_billing_model("PLG_SALES_SPLIT", flat_rate=Decimal("0.2"), sales_rate=Decimal("0.3")) == PlgSalesSplit(
        plg_rate=Decimal("0.2"), sales_rate=Decimal("0.3")
    )

    with pytest.raises(ValueError):
        build_billing_model("tiered", flat_rate=Decimal("0.2"))
    with pytest.raises(ValueError):
        build_billing_model("flat_revshare")
    with pytest.raises(ValueError):
        FlatRevshare(rate=Decimal("1.5"))
