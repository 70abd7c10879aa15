"""
Domain disputes and client promotions.

- submit_domain_dispute: ATTRIBUTED/MANUAL/CLIENT_PROMOTED/CONFIRMED -> DISPUTE_PENDING
- resolve_domain_dispute: approved -> DISPUTED (the domain's PENDING line items
  are removed); rejected -> ATTRIBUTED
- promote_domain: OUTSIDE_WINDOW/UNATTRIBUTED -> CLIENT_PROMOTED

Each status change appends a STATUS_CHANGE timeline entry carrying the old and
new status.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from domain.attribution import AttributedDomain, DomainEvent, TimelineSource
from services.billing_sync import recalculate_period_totals
from services.errors import NotFoundError
from services.ports import AttributionStore, BillingStore

logger = logging.getLogger(__name__)


def _get_domain(domain_id: str, store: AttributionStore) -> AttributedDomain:
    record = store.get_domain_by_id(domain_id)
    if record is None:
        raise NotFoundError("Attributed domain", domain_id)
    return record


def record_status_change(
    before: AttributedDomain,
    after: AttributedDomain,
    store: AttributionStore,
    at: datetime,
    **details: Optional[str],
) -> None:
    """Append the STATUS_CHANGE timeline entry for an already persisted status change."""

    metadata = {"old_status": before.status.value, "new_status": after.status.value}
    metadata.update({k: v for k, v in details.items() if v is not None})
    store.append_domain_event(
        DomainEvent(
            tenant_id=after.tenant_id,
            domain=after.domain,
            source=TimelineSource.STATUS_CHANGE,
            event_time=at,
            source_id=str(uuid4()),
            metadata=metadata,
        )
    )
    logger.info(
        "Domain %s status %s -> %s",
        after.domain,
        before.status.value,
        after.status.value,
        extra={"tenant_id": after.tenant_id, "domain": after.domain},
    )


def _save_with_timeline(
    before: AttributedDomain,
    after: AttributedDomain,
    store: AttributionStore,
    at: datetime,
    **details: Optional[str],
) -> AttributedDomain:
    saved = store.update_domain_status(after)
    record_status_change(before, after, store, at, **details)
    return saved


def submit_domain_dispute(
    domain_id: str,
    reason: str,
    store: AttributionStore,
    *,
    at: Optional[datetime] = None,
) -> AttributedDomain:
    at = at or datetime.now(timezone.utc)
    record = _get_domain(domain_id, store)
    return _save_with_timeline(record, record.submit_dispute(reason, at), store, at, reason=reason)


def resolve_domain_dispute(
    domain_id: str,
    approved: bool,
    store: AttributionStore,
    billing: BillingStore,
    *,
    notes: Optional[str] = None,
    at: Optional[datetime] = None,
) -> AttributedDomain:
    """
    Close a pending dispute.

    Approving removes the domain from billing: its PENDING line items in every
    non-terminal period are deleted and the totals and estimate of each
    affected period are recomputed. Submitted, disputed or confirmed items are
    kept.
    """

    at = at or datetime.now(timezone.utc)
    record = _get_domain(domain_id, store)
    resolved = record.resolve_dispute(approved, notes, at)
    saved = _save_with_timeline(record, resolved, store, at, notes=resolved.dispute_resolution_notes)
    if approved:
        affected = billing.delete_pending_line_items_for_domain(record.tenant_id, record.domain)
        config = billing.get_billing_config(record.tenant_id)
        for period_id in affected:
            recalculate_period_totals(period_id, billing, config)
        logger.info(
            "Removed pending line items of disputed domain %s from %d periods",
            record.domain,
            len(affected),
            extra={"tenant_id": record.tenant_id, "domain": record.domain},
        )
    return saved


def promote_domain(
    domain_id: str,
    promoted_by: str,
    store: AttributionStore,
    *,
    notes: Optional[str] = None,
    at: Optional[datetime] = None,
) -> AttributedDomain:
    at = at or datetime.now(timezone.utc)
    record = _get_domain(domain_id, store)
    promoted = record.promote(promoted_by, notes, at)
    return _save_with_timeline(record, promoted, store, at, promoted_by=promoted_by, notes=notes)


__all__ = ["record_status_change", "submit_domain_dispute", "resolve_domain_dispute", "promote_domain"]
