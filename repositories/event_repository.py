"""
Event source and sent-email log (read-only persistence).

Business events come from ``attribution_event``; ids are the stable total order
used as the batch cursor. Sent emails come from ``outbound_email``, a view with
one row per email sent (recipient address, canonical recipient domain, send
time).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Optional

from supabase import Client  # type: ignore[import-not-found]

from domain.events import BusinessEvent, EventKind, OutboundEmailRecord
from repositories.client import execute, get_supabase, parse_utc_datetime, rows_of, to_iso_utc

_EVENTS_TABLE: str = "attribution_event"
_OUTBOUND_EMAIL_TABLE: str = "outbound_email"


def _row_to_event(row: Mapping[str, Any]) -> BusinessEvent:
    return BusinessEvent(
        event_id=str(row["id"]),
        tenant_id=str(row["client_config_id"]),
        kind=EventKind.parse(str(row["event_type"])),
        event_time=parse_utc_datetime(row["event_time"]),
        email=row.get("email"),
        domain=row.get("domain"),
        metadata=row.get("metadata") or {},
    )


def _row_to_email(row: Mapping[str, Any]) -> OutboundEmailRecord:
    prospect_id = row.get("prospect_id")
    return OutboundEmailRecord(
        tenant_id=str(row["client_config_id"]),
        recipient_email=str(row["recipient_email"]),
        sent_at=parse_utc_datetime(row["sent_at"]),
        prospect_id=str(prospect_id) if prospect_id is not None else None,
    )


class SupabaseEventSource:
    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        return self._client or get_supabase()

    def fetch_events_after(self, tenant_id: str, cursor: Optional[str], limit: int) -> List[BusinessEvent]:
        query = self.client.table(_EVENTS_TABLE).select("*").eq("client_config_id", tenant_id)
        if cursor is not None:
            query = query.gt("id", cursor)
        response = execute(query.order("id").limit(limit), "fetch attribution events")
        return [_row_to_event(row) for row in rows_of(response)]

    def count_pending_events(self, tenant_id: str, cursor: Optional[str] = None) -> int:
        query = self.client.table(_EVENTS_TABLE).select("id", count="exact").eq("client_config_id", tenant_id)
        if cursor is not None:
            query = query.gt("id", cursor)
        response = execute(query.limit(1), "count attribution events")
        return getattr(response, "count", 0) or 0


class SupabaseEmailLog:
    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        return self._client or get_supabase()

    def _earliest(self, tenant_id: str, column: str, value: str, before_or_at: datetime) -> Optional[OutboundEmailRecord]:
        response = execute(
            self.client.table(_OUTBOUND_EMAIL_TABLE)
            .select("*")
            .eq("client_config_id", tenant_id)
            .eq(column, value)
            .lte("sent_at", to_iso_utc(before_or_at, name="before_or_at"))
            .order("sent_at")
            .limit(1),
            "look up sent email",
        )
        rows = rows_of(response)
        return _row_to_email(rows[0]) if rows else None

    def earliest_email_to(self, tenant_id: str, email: str, before_or_at: datetime) -> Optional[OutboundEmailRecord]:
        return self._earliest(tenant_id, "recipient_email", email.strip().lower(), before_or_at)

    def earliest_email_to_domain(self, tenant_id: str, domain: str, before_or_at: datetime) -> Optional[OutboundEmailRecord]:
        return self._earliest(tenant_id, "recipient_domain", domain, before_or_at)


__all__ = ["SupabaseEventSource", "SupabaseEmailLog"]
