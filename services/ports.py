"""
Store and collaborator protocols used by the services.

Services depend on these shapes only. The Supabase implementations live in
``repositories/``; tests use in-memory fakes.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Protocol, Sequence

from domain.attribution import AttributedDomain, DomainEvent, MatchAuditRecord, TenantConfig
from domain.billing import BillingConfig
from domain.events import BusinessEvent, OutboundEmailRecord
from domain.jobs import AttributionJob, EventProcessingError, JobCounters
from domain.line_items import DomainTimeline
from domain.reconciliation import LineItem, PeriodTotals, ReconciliationPeriod


class EventSource(Protocol):
    def fetch_events_after(self, tenant_id: str, cursor: Optional[str], limit: int) -> List[BusinessEvent]:
        """Events with id > cursor (all events when cursor is None), ordered by id."""

    def count_pending_events(self, tenant_id: str, cursor: Optional[str] = None) -> int:
        ...


class EmailLog(Protocol):
    def earliest_email_to(self, tenant_id: str, email: str, before_or_at: datetime) -> Optional[OutboundEmailRecord]:
        ...

    def earliest_email_to_domain(self, tenant_id: str, domain: str, before_or_at: datetime) -> Optional[OutboundEmailRecord]:
        ...


class TenantStore(Protocol):
    def get_tenant_config(self, tenant_id: str) -> Optional[TenantConfig]:
        ...


class AttributionStore(Protocol):
    def get_domain(self, tenant_id: str, domain: str) -> Optional[AttributedDomain]:
        ...

    def get_domain_by_id(self, domain_id: str) -> Optional[AttributedDomain]:
        ...

    def upsert_domain(self, record: AttributedDomain) -> AttributedDomain:
        """Insert or update by (tenant, domain); returns the stored record with its id."""

    def update_domain_status(self, record: AttributedDomain) -> AttributedDomain:
        """Persist status and dispute/promotion fields of an existing domain."""

    def append_domain_event(self, event: DomainEvent) -> None:
        """Idempotent on (tenant, domain, source, source_id)."""

    def upsert_audit(self, record: MatchAuditRecord) -> None:
        """Idempotent on source_event_id."""

    def list_billable_timelines(self, tenant_id: str) -> List[DomainTimeline]:
        """Timelines of every domain whose status is billable."""

    def get_domain_timeline(self, record: AttributedDomain) -> DomainTimeline:
        """Billing-relevant timeline entries of one stored domain, whatever its status."""


class JobStore(Protocol):
    def get_job(self, job_id: str) -> Optional[AttributionJob]:
        ...

    def get_active_job(self, tenant_id: str) -> Optional[AttributionJob]:
        ...

    def latest_cursor(self, tenant_id: str) -> Optional[str]:
        """Checkpoint cursor of the tenant's most recent job, if any."""

    def create_job(
        self,
        tenant_id: str,
        batch_size: int,
        total_events: int,
        at: datetime,
        cursor: Optional[str] = None,
    ) -> AttributionJob:
        ...

    def mark_running(self, job_id: str, at: datetime) -> AttributionJob:
        ...

    def checkpoint(
        self,
        job_id: str,
        counters: JobCounters,
        cursor: Optional[str],
        batch_number: int,
        at: datetime,
    ) -> None:
        """Persist counters, cursor and batch number in a single write."""

    def mark_completed(self, job_id: str, at: datetime) -> None:
        ...

    def mark_failed(self, job_id: str, message: str, at: datetime) -> None:
        ...

    def mark_cancelled(self, job_id: str, at: datetime) -> None:
        ...

    def request_cancel(self, job_id: str) -> Optional[AttributionJob]:
        ...

    def record_event_error(self, error: EventProcessingError) -> None:
        ...


class BillingStore(Protocol):
    def get_billing_config(self, tenant_id: str) -> Optional[BillingConfig]:
        ...

    def upsert_period(self, period: ReconciliationPeriod) -> ReconciliationPeriod:
        """Insert or refresh dates/estimate by (tenant, label); status is never overwritten."""

    def get_period(self, period_id: str) -> Optional[ReconciliationPeriod]:
        ...

    def list_periods(self, tenant_id: str) -> List[ReconciliationPeriod]:
        ...

    def save_period(self, period: ReconciliationPeriod) -> ReconciliationPeriod:
        """Persist status, timestamps, notes and totals of an existing period."""

    def update_period_totals(self, period_id: str, totals: PeriodTotals, estimated_total: Optional[Decimal] = None) -> None:
        ...

    def list_line_items(self, period_id: str) -> List[LineItem]:
        ...

    def get_line_item(self, line_item_id: str) -> Optional[LineItem]:
        ...

    def upsert_line_items(self, items: Sequence[LineItem]) -> List[LineItem]:
        """Insert or update by (period, domain)."""

    def delete_line_items(self, line_item_ids: Sequence[str]) -> None:
        ...

    def delete_pending_line_items_for_domain(self, tenant_id: str, domain: str) -> List[str]:
        """Delete the domain's PENDING items in non-terminal periods; returns the affected period ids."""


__all__ = [
    "EventSource",
    "EmailLog",
    "TenantStore",
    "AttributionStore",
    "JobStore",
    "BillingStore",
]
