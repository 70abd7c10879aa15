"""
Attribution repository (persistence).

Tables:
- attributed_domain: one row per (client_config_id, domain)
- domain_event: timeline, unique on (attributed_domain_id, event_source, source_id)
- attribution_match: audit, unique on attribution_event_id

This module only maps rows to domain entities and back; merge rules live in
domain.attribution.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List, Mapping, Optional

from supabase import Client  # type: ignore[import-not-found]

from domain.attribution import (
    BILLABLE_DOMAIN_STATUSES,
    AttributedDomain,
    DomainEvent,
    DomainStatus,
    MatchAuditRecord,
    MatchKind,
    TimelineSource,
)
from domain.line_items import DomainTimeline
from repositories.client import (
    RepositoryError,
    execute,
    fetch_all,
    get_supabase,
    optional_iso_utc,
    parse_optional_datetime,
    parse_utc_datetime,
    rows_of,
    to_iso_utc,
)

_DOMAINS_TABLE: str = "attributed_domain"
_DOMAIN_EVENTS_TABLE: str = "domain_event"
_MATCHES_TABLE: str = "attribution_match"

# Timeline sources that feed billing
_BILLING_SOURCES = [
    TimelineSource.SIGN_UP.value,
    TimelineSource.MEETING_BOOKED.value,
    TimelineSource.PAYING_CUSTOMER.value,
]

# Keeps "in.(...)" filters well under URL length limits
_ID_CHUNK: int = 100


def _row_to_domain(row: Mapping[str, Any]) -> AttributedDomain:
    match_type = row.get("match_type")
    return AttributedDomain(
        tenant_id=str(row["client_config_id"]),
        domain=str(row["domain"]),
        status=DomainStatus(str(row.get("status") or DomainStatus.UNATTRIBUTED.value)),
        match_type=MatchKind(str(match_type)) if match_type else None,
        first_email_sent_at=parse_optional_datetime(row.get("first_email_sent_at")),
        first_event_at=parse_optional_datetime(row.get("first_event_at")),
        last_event_at=parse_optional_datetime(row.get("last_event_at")),
        first_attributed_month=row.get("first_attributed_month"),
        has_sign_up=bool(row.get("has_sign_up")),
        has_meeting_booked=bool(row.get("has_meeting_booked")),
        has_paying_customer=bool(row.get("has_paying_customer")),
        has_positive_reply=bool(row.get("has_positive_reply")),
        is_within_window=bool(row.get("is_within_window")),
        matched_emails=tuple(row.get("matched_emails") or ()),
        dispute_reason=row.get("dispute_reason"),
        dispute_submitted_at=parse_optional_datetime(row.get("dispute_submitted_at")),
        dispute_resolved_at=parse_optional_datetime(row.get("dispute_resolved_at")),
        dispute_resolution_notes=row.get("dispute_resolution_notes"),
        promoted_at=parse_optional_datetime(row.get("promoted_at")),
        promoted_by=row.get("promoted_by"),
        promotion_notes=row.get("promotion_notes"),
        domain_id=str(row["id"]) if row.get("id") is not None else None,
    )


def _row_to_event(tenant_id: str, domain: str, row: Mapping[str, Any]) -> DomainEvent:
    return DomainEvent(
        tenant_id=tenant_id,
        domain=domain,
        source=TimelineSource(str(row["event_source"])),
        event_time=parse_utc_datetime(row["event_time"]),
        source_id=str(row["source_id"]),
        email=row.get("email"),
    )


def _status_payload(record: AttributedDomain) -> Dict[str, Any]:
    return {
        "status": record.status.value,
        "is_within_window": record.is_within_window,
        "dispute_reason": record.dispute_reason,
        "dispute_submitted_at": optional_iso_utc(record.dispute_submitted_at, name="dispute_submitted_at"),
        "dispute_resolved_at": optional_iso_utc(record.dispute_resolved_at, name="dispute_resolved_at"),
        "dispute_resolution_notes": record.dispute_resolution_notes,
        "promoted_at": optional_iso_utc(record.promoted_at, name="promoted_at"),
        "promoted_by": record.promoted_by,
        "promotion_notes": record.promotion_notes,
    }


def _domain_payload(record: AttributedDomain) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "client_config_id": record.tenant_id,
        "domain": record.domain,
        "match_type": record.match_type.value if record.match_type else None,
        "first_email_sent_at": optional_iso_utc(record.first_email_sent_at, name="first_email_sent_at"),
        "first_event_at": optional_iso_utc(record.first_event_at, name="first_event_at"),
        "last_event_at": optional_iso_utc(record.last_event_at, name="last_event_at"),
        "first_attributed_month": record.first_attributed_month,
        "has_sign_up": record.has_sign_up,
        "has_meeting_booked": record.has_meeting_booked,
        "has_paying_customer": record.has_paying_customer,
        "has_positive_reply": record.has_positive_reply,
        "matched_emails": list(record.matched_emails),
    }
    payload.update(_status_payload(record))
    return payload


class SupabaseAttributionStore:
    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        return self._client or get_supabase()

    def get_domain(self, tenant_id: str, domain: str) -> Optional[AttributedDomain]:
        response = execute(
            self.client.table(_DOMAINS_TABLE)
            .select("*")
            .eq("client_config_id", tenant_id)
            .eq("domain", domain)
            .limit(1),
            "get attributed domain",
        )
        rows = rows_of(response)
        return _row_to_domain(rows[0]) if rows else None

    def get_domain_by_id(self, domain_id: str) -> Optional[AttributedDomain]:
        response = execute(
            self.client.table(_DOMAINS_TABLE).select("*").eq("id", domain_id).limit(1),
            "get attributed domain",
        )
        rows = rows_of(response)
        return _row_to_domain(rows[0]) if rows else None

    def upsert_domain(self, record: AttributedDomain) -> AttributedDomain:
        response = execute(
            self.client.table(_DOMAINS_TABLE).upsert(_domain_payload(record), on_conflict="client_config_id,domain"),
            "upsert attributed domain",
        )
        rows = rows_of(response)
        return _row_to_domain(rows[0]) if rows else record

    def update_domain_status(self, record: AttributedDomain) -> AttributedDomain:
        if record.domain_id is None:
            raise RepositoryError(f"Failed to update domain status: {record.domain} has no id")
        response = execute(
            self.client.table(_DOMAINS_TABLE).update(_status_payload(record)).eq("id", record.domain_id),
            "update domain status",
        )
        rows = rows_of(response)
        return _row_to_domain(rows[0]) if rows else record

    def append_domain_event(self, event: DomainEvent) -> None:
        owner = self.get_domain(event.tenant_id, event.domain)
        if owner is None or owner.domain_id is None:
            raise RepositoryError(f"Failed to append domain event: no attributed domain {event.domain}")
        payload = {
            "attributed_domain_id": owner.domain_id,
            "event_source": event.source.value,
            "event_time": to_iso_utc(event.event_time, name="event_time"),
            "email": event.email,
            "source_id": event.source_id,
            "metadata": dict(event.metadata),
        }
        execute(
            self.client.table(_DOMAIN_EVENTS_TABLE).upsert(
                payload,
                on_conflict="attributed_domain_id,event_source,source_id",
                ignore_duplicates=True,
            ),
            "append domain event",
        )

    def upsert_audit(self, record: MatchAuditRecord) -> None:
        payload = {
            "client_config_id": record.tenant_id,
            "attribution_event_id": record.source_event_id,
            "event_type": record.event_kind.value,
            "event_time": to_iso_utc(record.event_time, name="event_time"),
            "event_email": record.event_email,
            "event_domain": record.domain,
            "match_type": record.match_kind.value,
            "matched_email": record.matched_email,
            "email_sent_at": optional_iso_utc(record.matched_sent_at, name="matched_sent_at"),
            "days_since_email": record.days_since_email,
            "is_within_window": record.within_window,
            "match_reason": record.match_reason,
        }
        execute(
            self.client.table(_MATCHES_TABLE).upsert(payload, on_conflict="attribution_event_id"),
            "upsert attribution match",
        )

    def list_billable_timelines(self, tenant_id: str) -> List[DomainTimeline]:
        statuses = sorted(s.value for s in BILLABLE_DOMAIN_STATUSES)
        domain_rows = fetch_all(
            lambda: self.client.table(_DOMAINS_TABLE)
            .select("id,domain")
            .eq("client_config_id", tenant_id)
            .in_("status", statuses)
            .order("id"),
            "list billable domains",
        )
        names = {str(row["id"]): str(row["domain"]) for row in domain_rows}
        events: Dict[str, List[DomainEvent]] = defaultdict(list)

        ids = list(names)
        for start in range(0, len(ids), _ID_CHUNK):
            chunk = ids[start:start + _ID_CHUNK]
            event_rows = fetch_all(
                lambda: self.client.table(_DOMAIN_EVENTS_TABLE)
                .select("id,attributed_domain_id,event_source,event_time,source_id,email")
                .in_("attributed_domain_id", chunk)
                .in_("event_source", _BILLING_SOURCES)
                .order("id"),
                "list domain events",
            )
            for row in event_rows:
                domain_id = str(row["attributed_domain_id"])
                events[domain_id].append(_row_to_event(tenant_id, names[domain_id], row))

        return [
            DomainTimeline(domain=names[domain_id], events=tuple(events.get(domain_id, ())), attributed_domain_id=domain_id)
            for domain_id in ids
        ]

    def get_domain_timeline(self, record: AttributedDomain) -> DomainTimeline:
        if record.domain_id is None:
            return DomainTimeline(domain=record.domain)
        rows = fetch_all(
            lambda: self.client.table(_DOMAIN_EVENTS_TABLE)
            .select("id,event_source,event_time,source_id,email")
            .eq("attributed_domain_id", record.domain_id)
            .in_("event_source", _BILLING_SOURCES)
            .order("id"),
            "get domain timeline",
        )
        events = tuple(_row_to_event(record.tenant_id, record.domain, row) for row in rows)
        return DomainTimeline(domain=record.domain, events=events, attributed_domain_id=record.domain_id)


__all__ = ["SupabaseAttributionStore"]
