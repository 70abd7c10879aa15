"""
Tests for `services/auto_billing.py`.

Covers contract rules:
- Only DRAFT/PENDING_CLIENT periods past their review deadline are auto-billed.
- Paying items without reported revenue are billed at the estimated ACV;
  reported revenue is kept.
- The period becomes AUTO_BILLED with recomputed totals and an audit note.
- dry_run computes the same result without writing.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from domain.billing import BillingConfig, FlatRevshare
from domain.reconciliation import LineItem, LineItemStatus, PeriodStatus, ReconciliationPeriod
from fakes import InMemoryBillingStore, utc
from services.auto_billing import auto_bill_overdue
from services.errors import BillingConfigMissingError

TENANT = "tenant-1"
AS_OF = date(2025, 4, 20)
AT = utc(2025, 4, 20, 6, 0)


@pytest.fixture
def billing() -> InMemoryBillingStore:
    store = InMemoryBillingStore()
    store.add_config(
        BillingConfig(tenant_id=TENANT, model=FlatRevshare(rate=Decimal("0.20")), contract_start=date(2025, 1, 1))
    )
    march = store.upsert_period(
        ReconciliationPeriod(
            tenant_id=TENANT,
            label="March 2025",
            start=date(2025, 3, 1),
            end=date(2025, 3, 31),
            review_deadline=date(2025, 4, 10),
        )
    )
    store.upsert_period(
        ReconciliationPeriod(
            tenant_id=TENANT,
            label="April 2025",
            start=date(2025, 4, 1),
            end=date(2025, 4, 30),
            review_deadline=date(2025, 5, 10),
        )
    )
    store.upsert_line_items(
        [
            LineItem(period_id=march.period_id, domain="acme.com", has_paying_customer=True, paying_customer_date=date(2025, 3, 5)),
            LineItem(
                period_id=march.period_id,
                domain="globex.com",
                has_paying_customer=True,
                paying_customer_date=date(2025, 3, 12),
                revenue_submitted=Decimal("5000"),
                status=LineItemStatus.SUBMITTED,
                amount_owed=Decimal("1000.00"),
            ),
        ]
    )
    return store


def test_overdue_period_is_auto_billed(billing: InMemoryBillingStore) -> None:
    results = auto_bill_overdue(TENANT, billing, as_of=AS_OF, at=AT)

    assert len(results) == 1
    result = results[0]
    assert result.label == "March 2025"
    assert result.total_line_items == 2
    assert result.items_auto_billed == 1
    assert result.items_already_submitted == 1
    assert result.total_amount_owed == Decimal("3000.00")
    assert result.estimated_total == Decimal("4000.00")
    assert not result.dry_run

    period = billing.get_period(result.period_id)
    assert period.status is PeriodStatus.AUTO_BILLED
    assert period.auto_billed_at == AT
    assert period.totals.amount_owed == Decimal("3000.00")
    assert period.totals.revenue_submitted == Decimal("15000")
    assert period.notes == "[Auto-billed on 2025-04-20: 1 items billed at estimated ACV]"

    acme = billing.item_for(result.period_id, "acme.com")
    assert acme.revenue_submitted == Decimal("10000")
    assert acme.amount_owed == Decimal("2000.00")
    assert billing.item_for(result.period_id, "globex.com").revenue_submitted == Decimal("5000")

    assert billing.period_by_label(TENANT, "April 2025").status is PeriodStatus.DRAFT


def test_dry_run_writes_nothing(billing: InMemoryBillingStore) -> None:
    periods = dict(billing.periods)
    items = dict(billing.line_items)

    results = auto_bill_overdue(TENANT, billing, as_of=AS_OF, at=AT, dry_run=True)

    assert [r.total_amount_owed for r in results] == [Decimal("3000.00")]
    assert results[0].dry_run
    assert billing.periods == periods
    assert billing.line_items == items


def test_submitted_period_is_not_auto_billed(billing: InMemoryBillingStore) -> None:
    march = billing.period_by_label(TENANT, "March 2025")
    billing.save_period(replace(march, status=PeriodStatus.CLIENT_SUBMITTED))

    assert auto_bill_overdue(TENANT, billing, as_of=AS_OF, at=AT) == []
    assert billing.get_period(march.period_id).status is PeriodStatus.CLIENT_SUBMITTED


def test_nothing_is_overdue_on_the_deadline(billing: InMemoryBillingStore) -> None:
    assert auto_bill_overdue(TENANT, billing, as_of=date(2025, 4, 10), at=AT) == []


def test_missing_billing_config() -> None:
    with pytest.raises(BillingConfigMissingError):
        auto_bill_overdue(TENANT, InMemoryBillingStore(), as_of=AS_OF, at=AT)
