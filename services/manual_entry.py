"""
Client-entered attribution.

- add_manual_event: a client records a sign-up, meeting or payment for a
  domain the matcher never saw (or saw outside the window). The domain is
  created as MANUAL, or promoted to CLIENT_PROMOTED, and the outcome is
  appended to its timeline so billing sync picks it up.
- add_domain_to_period: an operator adds a paying domain to an open period
  with an explicit billing start date. The domain is CONFIRMED if it was not
  billable, and the billing start is recorded as a paying-customer entry so
  later syncs keep the line item.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Optional
from uuid import uuid4

from domain.attribution import AttributedDomain, DomainEvent, TimelineSource
from domain.domains import canonicalize_domain, normalize_email
from domain.events import EventKind
from domain.fees import apply_fee
from domain.line_items import plan_line_items, within_revenue_share_window
from domain.reconciliation import LineItem, LineItemStatusError, PeriodStatus
from domain.time import start_of_day_utc
from services.billing_sync import get_period, recalculate_period_totals, require_billing_config
from services.disputes import record_status_change
from services.errors import NotFoundError
from services.ports import AttributionStore, BillingStore, TenantStore

logger = logging.getLogger(__name__)

# Periods that still accept hand-added domains
MANUAL_ADD_STATUSES = (PeriodStatus.DRAFT, PeriodStatus.PENDING_CLIENT)


def add_manual_event(
    tenant_id: str,
    domain: str,
    kind: EventKind,
    event_time: datetime,
    store: AttributionStore,
    tenants: TenantStore,
    *,
    contact_email: Optional[str] = None,
    notes: Optional[str] = None,
    added_by: str = "client",
    at: Optional[datetime] = None,
) -> AttributedDomain:
    """
    Record an outcome the client reports by hand.

    Raises:
        NotFoundError: unknown tenant
        ValueError: empty domain or an event kind other than sign-up, meeting or payment
        DomainStatusError: the domain's dispute was approved
    """

    at = at or datetime.now(timezone.utc)
    canonical = canonicalize_domain(domain)
    if not canonical:
        raise ValueError("A domain is required")
    if tenants.get_tenant_config(tenant_id) is None:
        raise NotFoundError("Tenant", tenant_id)

    before = store.get_domain(tenant_id, canonical) or AttributedDomain.empty(tenant_id, canonical)
    saved = store.upsert_domain(before.add_manual_event(kind, event_time, added_by, notes, at))
    if saved.status is not before.status:
        record_status_change(before, saved, store, at, added_by=added_by, reason=f"manual {kind.value.lower()}")

    metadata = {"manual": True, "added_by": added_by}
    if notes:
        metadata["notes"] = notes
    store.append_domain_event(
        DomainEvent(
            tenant_id=tenant_id,
            domain=canonical,
            source=TimelineSource.for_event_kind(kind),
            event_time=event_time,
            source_id=f"manual:{uuid4()}",
            email=normalize_email(contact_email),
            metadata=metadata,
        )
    )
    logger.info(
        "Manual %s recorded for %s",
        kind.value,
        canonical,
        extra={"tenant_id": tenant_id, "domain": canonical},
    )
    return saved


def add_domain_to_period(
    period_id: str,
    domain_id: str,
    billing_start: date,
    billing: BillingStore,
    attribution: AttributionStore,
    *,
    added_by: str = "manual-reconciliation-add",
    at: Optional[datetime] = None,
) -> LineItem:
    """
    Add a paying domain to an open period.

    The billing start must fall in the revenue-share window of the period
    (``start <= end`` and ``start + 12 months > period start``); so must the
    domain's earliest paying date when it already had one. Nothing is written
    when a check fails.

    Raises:
        NotFoundError: unknown period, or a domain of another tenant
        LineItemStatusError: the period is past PENDING_CLIENT, or already bills the domain
        ValueError: the billing start is outside the revenue-share window
        DomainStatusError: the domain's dispute was approved
    """

    at = at or datetime.now(timezone.utc)
    period = get_period(period_id, billing)
    if period.status not in MANUAL_ADD_STATUSES:
        raise LineItemStatusError(
            f"Can only add domains to DRAFT or PENDING_CLIENT periods; {period.label} is {period.status.value}"
        )

    record = attribution.get_domain_by_id(domain_id)
    if record is None or record.tenant_id != period.tenant_id:
        raise NotFoundError("Attributed domain", domain_id)
    if any(item.domain == record.domain for item in billing.list_line_items(period_id)):
        raise LineItemStatusError(f"{record.domain} is already in period {period.label}")
    if not within_revenue_share_window(billing_start, period.start, period.end):
        raise ValueError(f"Billing start {billing_start} is outside the revenue-share window of {period.label}")

    config = require_billing_config(period.tenant_id, billing)
    confirmed = record.confirm(added_by, at)

    paying_entry = DomainEvent(
        tenant_id=record.tenant_id,
        domain=record.domain,
        source=TimelineSource.PAYING_CUSTOMER,
        event_time=start_of_day_utc(billing_start),
        source_id=f"manual-add:{period_id}",
        metadata={"manual": True, "added_by": added_by},
    )
    timeline = attribution.get_domain_timeline(record)
    timeline = replace(timeline, events=timeline.events + (paying_entry,))
    plan = plan_line_items(period_id, period.start, period.end, [timeline], config)
    item = next((i for i in plan.upserts if i.has_paying_customer), None)
    if item is None:
        raise ValueError(
            f"{record.domain} has been paying since {timeline.paying_customer_date}; "
            f"outside the revenue-share window of {period.label}"
        )

    saved_domain = attribution.upsert_domain(replace(confirmed, has_paying_customer=True))
    if saved_domain.status is not record.status:
        record_status_change(record, saved_domain, attribution, at, added_by=added_by, period=period.label)
    attribution.append_domain_event(paying_entry)

    saved = billing.upsert_line_items([apply_fee(item, config)])
    recalculate_period_totals(period_id, billing, config)
    logger.info(
        "Added %s to period %s (billing start %s)",
        record.domain,
        period.label,
        billing_start.isoformat(),
        extra={"tenant_id": period.tenant_id, "period_id": period_id, "domain": record.domain},
    )
    return saved[0]


__all__ = ["MANUAL_ADD_STATUSES", "add_manual_event", "add_domain_to_period"]
