"""
Tests for `services/reconciliation_service.py`.

Covers contract rules:
- Period status changes follow the lifecycle and stamp their timestamps.
- A rejected change writes nothing.
- Line items of terminal periods are locked.
- Every line item write recomputes the item fee and the period totals.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from domain.billing import BillingConfig, FlatRevshare
from domain.lifecycle import InvalidTransitionError
from domain.reconciliation import LineItem, LineItemStatus, LineItemStatusError, PeriodStatus, ReconciliationPeriod
from fakes import InMemoryBillingStore, utc
from services.errors import NotFoundError
from services.reconciliation_service import (
    change_period_status,
    flag_line_item_dispute,
    resolve_line_item_dispute,
    submit_line_item_revenue,
)

TENANT = "tenant-1"
AT = utc(2025, 4, 3, 15, 0)


@pytest.fixture
def billing() -> InMemoryBillingStore:
    store = InMemoryBillingStore()
    store.add_config(
        BillingConfig(tenant_id=TENANT, model=FlatRevshare(rate=Decimal("0.20")), contract_start=date(2025, 1, 1))
    )
    period = store.upsert_period(
        ReconciliationPeriod(
            tenant_id=TENANT,
            label="March 2025",
            start=date(2025, 3, 1),
            end=date(2025, 3, 31),
            review_deadline=date(2025, 4, 10),
        )
    )
    store.upsert_line_items(
        [LineItem(period_id=period.period_id, domain="acme.com", has_paying_customer=True, paying_customer_date=date(2025, 3, 5))]
    )
    return store


def march(billing: InMemoryBillingStore) -> ReconciliationPeriod:
    return billing.period_by_label(TENANT, "March 2025")


def acme(billing: InMemoryBillingStore) -> LineItem:
    return billing.item_for(march(billing).period_id, "acme.com")


def test_status_changes_stamp_timestamps(billing: InMemoryBillingStore) -> None:
    period_id = march(billing).period_id

    sent = change_period_status(period_id, PeriodStatus.PENDING_CLIENT, billing, at=AT)
    assert sent.status is PeriodStatus.PENDING_CLIENT
    assert sent.sent_to_client_at == AT

    change_period_status(period_id, PeriodStatus.CLIENT_SUBMITTED, billing, at=AT)
    change_period_status(period_id, PeriodStatus.UNDER_REVIEW, billing, at=AT)
    final = change_period_status(period_id, PeriodStatus.FINALIZED, billing, actor="ops", notes="Invoiced", at=AT)

    assert billing.get_period(period_id) == final
    assert final.client_submitted_at == AT
    assert final.finalized_by == "ops"
    assert final.notes == "Invoiced"


def test_invalid_transition_writes_nothing(billing: InMemoryBillingStore) -> None:
    before = march(billing)

    with pytest.raises(InvalidTransitionError, match="Cannot transition from DRAFT to FINALIZED"):
        change_period_status(before.period_id, PeriodStatus.FINALIZED, billing, at=AT)

    assert billing.get_period(before.period_id) == before


def test_unknown_period(billing: InMemoryBillingStore) -> None:
    with pytest.raises(NotFoundError):
        change_period_status("missing", PeriodStatus.PENDING_CLIENT, billing, at=AT)


def test_submit_revenue_recomputes_fee_and_totals(billing: InMemoryBillingStore) -> None:
    saved = submit_line_item_revenue(acme(billing).line_item_id, Decimal("10000"), billing)

    assert saved.amount_owed == Decimal("2000.00")
    assert saved.applied_rate == Decimal("0.20")
    period = march(billing)
    assert period.totals.amount_owed == Decimal("2000.00")
    assert period.totals.paying_customers == 1
    assert period.estimated_total == Decimal("2000.00")


def test_revenue_is_locked_after_finalization(billing: InMemoryBillingStore) -> None:
    billing.save_period(replace(march(billing), status=PeriodStatus.FINALIZED))

    with pytest.raises(LineItemStatusError, match="locked"):
        submit_line_item_revenue(acme(billing).line_item_id, Decimal("10000"), billing)
    assert acme(billing).revenue_submitted is None


def test_negative_revenue_is_rejected(billing: InMemoryBillingStore) -> None:
    with pytest.raises(ValueError):
        submit_line_item_revenue(acme(billing).line_item_id, Decimal("-1"), billing)


def test_unknown_line_item(billing: InMemoryBillingStore) -> None:
    with pytest.raises(NotFoundError):
        submit_line_item_revenue("missing", Decimal("1"), billing)


def test_line_item_dispute_flow(billing: InMemoryBillingStore) -> None:
    item_id = acme(billing).line_item_id

    disputed = flag_line_item_dispute(item_id, "Customer churned in week one", billing)
    assert disputed.status is LineItemStatus.DISPUTED
    assert disputed.dispute_reason == "Customer churned in week one"

    with pytest.raises(LineItemStatusError):
        submit_line_item_revenue(item_id, Decimal("10000"), billing)

    confirmed = resolve_line_item_dispute(item_id, True, "Verified with client", billing, at=AT)
    assert confirmed.status is LineItemStatus.CONFIRMED
    assert confirmed.dispute_resolved_at == AT
    assert confirmed.dispute_resolution_notes == "Verified with client"


def test_rejected_line_item_dispute_returns_to_pending(billing: InMemoryBillingStore) -> None:
    item_id = acme(billing).line_item_id
    flag_line_item_dispute(item_id, "Not ours", billing)

    reopened = resolve_line_item_dispute(item_id, False, "Attribution stands", billing, at=AT)

    assert reopened.status is LineItemStatus.PENDING
    with pytest.raises(LineItemStatusError):
        resolve_line_item_dispute(item_id, True, "again", billing, at=AT)
