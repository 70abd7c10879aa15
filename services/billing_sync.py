"""
Billing sync.

One pass for one tenant:
1. Recompute the billing calendar from the contract (domain.periods).
2. Upsert every period by (tenant, label); an existing period keeps its status.
3. For every OPEN/OVERDUE period that is not terminal, plan line items from the
   tenant's billable timelines, refresh their fees, delete stale PENDING items,
   and recompute the period totals and estimate.

The pass is idempotent. Concurrent passes for the same tenant are refused.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from domain.billing import BillingConfig
from domain.fees import apply_fee, estimate_period_total
from domain.line_items import DomainTimeline, plan_line_items
from domain.periods import BillingPeriod, periods_for_config
from domain.reconciliation import PeriodStatus, PeriodTotals, ReconciliationPeriod, summarize_line_items
from services.errors import BillingConfigMissingError, NotFoundError
from services.locks import TenantLocks
from services.ports import AttributionStore, BillingStore
from services.settings import get_settings

logger = logging.getLogger(__name__)

_sync_guard = TenantLocks("Billing sync")


@dataclass(frozen=True, slots=True)
class PeriodSyncResult:
    period_id: str
    label: str
    line_items_upserted: int
    line_items_deleted: int
    totals: PeriodTotals
    estimated_total: Decimal


@dataclass(frozen=True, slots=True)
class SyncResult:
    tenant_id: str
    as_of: date
    periods_created: int
    periods_updated: int
    total_periods: int
    populated: List[PeriodSyncResult]

    @property
    def line_items_upserted(self) -> int:
        return sum(p.line_items_upserted for p in self.populated)

    @property
    def line_items_deleted(self) -> int:
        return sum(p.line_items_deleted for p in self.populated)


def require_billing_config(tenant_id: str, billing: BillingStore) -> BillingConfig:
    config = billing.get_billing_config(tenant_id)
    if config is None:
        raise BillingConfigMissingError(tenant_id)
    return config


def recalculate_period_totals(
    period_id: str,
    billing: BillingStore,
    config: Optional[BillingConfig] = None,
) -> PeriodTotals:
    """
    Recompute a period's totals from its line items and persist them.

    When ``config`` is given the period estimate is refreshed as well.
    """

    totals = summarize_line_items(billing.list_line_items(period_id))
    estimate: Optional[Decimal] = None
    if config is not None:
        estimate = estimate_period_total(totals.paying_customers, totals.signups, totals.meetings, config)
    billing.update_period_totals(period_id, totals, estimate)
    return totals


def populate_period(
    period: ReconciliationPeriod,
    config: BillingConfig,
    timelines: Sequence[DomainTimeline],
    billing: BillingStore,
) -> PeriodSyncResult:
    if period.period_id is None:
        raise ValueError("period must be stored before it can be populated")

    existing = billing.list_line_items(period.period_id)
    plan = plan_line_items(period.period_id, period.start, period.end, timelines, config, existing)

    items = [apply_fee(item, config) for item in plan.upserts]
    if items:
        billing.upsert_line_items(items)
    stale_ids = [item.line_item_id for item in plan.deletes if item.line_item_id]
    if stale_ids:
        billing.delete_line_items(stale_ids)

    totals = summarize_line_items(billing.list_line_items(period.period_id))
    estimate = estimate_period_total(totals.paying_customers, totals.signups, totals.meetings, config)
    billing.update_period_totals(period.period_id, totals, estimate)

    return PeriodSyncResult(
        period_id=period.period_id,
        label=period.label,
        line_items_upserted=len(items),
        line_items_deleted=len(stale_ids),
        totals=totals,
        estimated_total=estimate,
    )


def _to_period(tenant_id: str, calendar_period: BillingPeriod, stored: Optional[ReconciliationPeriod]) -> ReconciliationPeriod:
    if stored is None:
        return ReconciliationPeriod(
            tenant_id=tenant_id,
            label=calendar_period.label,
            start=calendar_period.start,
            end=calendar_period.end,
            review_deadline=calendar_period.review_deadline,
        )
    return ReconciliationPeriod(
        tenant_id=tenant_id,
        label=calendar_period.label,
        start=calendar_period.start,
        end=calendar_period.end,
        review_deadline=calendar_period.review_deadline,
        status=stored.status,
        totals=stored.totals,
        estimated_total=stored.estimated_total,
        auto_generated=stored.auto_generated,
        period_id=stored.period_id,
    )


def sync_tenant_billing(
    tenant_id: str,
    billing: BillingStore,
    attribution: AttributionStore,
    *,
    as_of: Optional[date] = None,
    include_upcoming: bool = True,
) -> SyncResult:
    """
    Bring a tenant's periods and line items up to date.

    Args:
        tenant_id: Tenant to sync
        billing: Billing store
        attribution: Attribution store (read-only here)
        as_of: Calendar date the sync runs for (default: today, UTC)
        include_upcoming: Also create the next, not yet started period

    Returns:
        SyncResult with per-period population results

    Raises:
        BillingConfigMissingError: if the tenant has no billing configuration
        TenantBusyError: if another sync for the tenant is running in this process
    """

    as_of = as_of or datetime.now(timezone.utc).date()

    with _sync_guard.hold(tenant_id, wait=False):
        config = require_billing_config(tenant_id, billing)
        calendar = periods_for_config(config, as_of, include_upcoming=include_upcoming)
        stored_by_label = {p.label: p for p in billing.list_periods(tenant_id)}

        timelines: Optional[List[DomainTimeline]] = None
        created = 0
        updated = 0
        populated: List[PeriodSyncResult] = []

        for calendar_period in calendar:
            stored = stored_by_label.get(calendar_period.label)
            period = billing.upsert_period(_to_period(tenant_id, calendar_period, stored))
            if stored is None:
                created += 1
            else:
                updated += 1

            if not calendar_period.is_actionable or period.is_terminal:
                continue
            if timelines is None:
                timelines = attribution.list_billable_timelines(tenant_id)
            populated.append(populate_period(period, config, timelines, billing))

    result = SyncResult(
        tenant_id=tenant_id,
        as_of=as_of,
        periods_created=created,
        periods_updated=updated,
        total_periods=len(calendar),
        populated=populated,
    )
    logger.info(
        "Billing sync for tenant %s: %d periods (%d new), %d line items refreshed, %d removed",
        tenant_id,
        result.total_periods,
        created,
        result.line_items_upserted,
        result.line_items_deleted,
        extra={"tenant_id": tenant_id, "as_of": as_of.isoformat()},
    )
    return result


def create_manual_period(
    tenant_id: str,
    start: date,
    end: date,
    billing: BillingStore,
    *,
    label: Optional[str] = None,
) -> ReconciliationPeriod:
    """
    Create an ad-hoc period outside the generated calendar.

    The review window comes from the tenant's billing config, or the default
    when the tenant has none.

    Raises:
        ValueError: if start >= end or the label is already taken
    """

    if start >= end:
        raise ValueError("period start must be before period end")

    label = label or f"Manual {start.isoformat()} to {end.isoformat()}"
    if any(p.label == label for p in billing.list_periods(tenant_id)):
        raise ValueError(f"A period labelled {label!r} already exists for tenant {tenant_id}")

    config = billing.get_billing_config(tenant_id)
    window = config.review_window_days if config else get_settings().default_review_window_days

    period = ReconciliationPeriod(
        tenant_id=tenant_id,
        label=label,
        start=start,
        end=end,
        review_deadline=end + timedelta(days=window),
        status=PeriodStatus.DRAFT,
        auto_generated=False,
    )
    stored = billing.upsert_period(period)
    logger.info("Created manual period %s for tenant %s", label, tenant_id, extra={"tenant_id": tenant_id})
    return stored


def get_period(period_id: str, billing: BillingStore) -> ReconciliationPeriod:
    period = billing.get_period(period_id)
    if period is None:
        raise NotFoundError("Reconciliation period", period_id)
    return period


def period_with_config(period_id: str, billing: BillingStore) -> Tuple[ReconciliationPeriod, BillingConfig]:
    period = get_period(period_id, billing)
    return period, require_billing_config(period.tenant_id, billing)


__all__ = [
    "PeriodSyncResult",
    "SyncResult",
    "require_billing_config",
    "recalculate_period_totals",
    "populate_period",
    "sync_tenant_billing",
    "create_manual_period",
    "get_period",
    "period_with_config",
]
