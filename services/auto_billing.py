"""
Auto-billing of overdue periods.

A period still waiting on the client (DRAFT or PENDING_CLIENT) after its review
deadline is closed as AUTO_BILLED:
- paying line items without submitted revenue are billed at the tenant's
  estimated average contract value times the item's rate;
- per-event fees apply as usual;
- items with submitted revenue keep it;
- the period totals are recomputed from the billed items.

dry_run computes the same results without writing anything.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

from domain.fees import auto_bill_line_item, estimate_period_total, needs_estimated_revenue
from domain.lifecycle import auto_bill, is_auto_billable
from domain.reconciliation import summarize_line_items
from services.billing_sync import require_billing_config
from services.ports import BillingStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AutoBillResult:
    period_id: str
    label: str
    review_deadline: date
    total_line_items: int
    items_auto_billed: int
    items_already_submitted: int
    total_amount_owed: Decimal
    estimated_total: Decimal
    dry_run: bool


def auto_bill_overdue(
    tenant_id: str,
    billing: BillingStore,
    *,
    as_of: Optional[date] = None,
    dry_run: bool = False,
    at: Optional[datetime] = None,
) -> List[AutoBillResult]:
    """
    Auto-bill every overdue, unsubmitted period of a tenant.

    Args:
        tenant_id: Tenant whose periods are checked
        billing: Billing store
        as_of: Date the deadline is compared against (default: today, UTC)
        dry_run: Compute results only
        at: Timestamp recorded as auto_billed_at (default: now)

    Returns:
        One AutoBillResult per period that was (or would be) auto-billed,
        ordered by review deadline

    Raises:
        BillingConfigMissingError: if the tenant has no billing configuration
    """

    at = at or datetime.now(timezone.utc)
    as_of = as_of or at.date()
    config = require_billing_config(tenant_id, billing)

    overdue = [p for p in billing.list_periods(tenant_id) if is_auto_billable(p, as_of)]
    overdue.sort(key=lambda p: p.review_deadline)

    results: List[AutoBillResult] = []
    for period in overdue:
        items = billing.list_line_items(period.period_id)
        estimated = [item for item in items if needs_estimated_revenue(item)]
        billed = [auto_bill_line_item(item, config) for item in items]
        totals = summarize_line_items(billed)
        estimate = estimate_period_total(totals.paying_customers, totals.signups, totals.meetings, config)
        note = f"[Auto-billed on {as_of.isoformat()}: {len(estimated)} items billed at estimated ACV]"
        closed = auto_bill(period, totals, as_of, at, note=note)

        if not dry_run:
            if billed:
                billing.upsert_line_items(billed)
            billing.save_period(closed)
            billing.update_period_totals(period.period_id, totals, estimate)

        results.append(
            AutoBillResult(
                period_id=period.period_id,
                label=period.label,
                review_deadline=period.review_deadline,
                total_line_items=len(items),
                items_auto_billed=len(estimated),
                items_already_submitted=sum(1 for item in items if item.revenue_submitted is not None),
                total_amount_owed=totals.amount_owed,
                estimated_total=estimate,
                dry_run=dry_run,
            )
        )

    logger.info(
        "%s %d overdue periods for tenant %s",
        "Would auto-bill" if dry_run else "Auto-billed",
        len(results),
        tenant_id,
        extra={"tenant_id": tenant_id, "dry_run": dry_run},
    )
    return results


__all__ = ["AutoBillResult", "auto_bill_overdue"]
