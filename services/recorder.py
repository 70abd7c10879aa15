"""
Attribution recorder.

Persists one match outcome:
- folds the event into the domain aggregate (AttributedDomain.absorb) and upserts it;
- appends one timeline entry keyed by (domain, source, event id);
- upserts one audit record keyed by the source event id.

Events without a canonical domain only produce the audit record. Replaying an
event leaves counts unchanged: the timeline and audit writes are keyed, and the
aggregate merge is idempotent for an already-absorbed event.
"""

from __future__ import annotations

from domain.attribution import AttributedDomain, DomainEvent, MatchAuditRecord, MatchResult, TimelineSource
from domain.events import BusinessEvent
from services.ports import AttributionStore


class AttributionRecorder:
    def __init__(self, store: AttributionStore):
        self._store = store

    def record(self, event: BusinessEvent, result: MatchResult) -> None:
        """
        Write the aggregate, timeline and audit rows for one processed event.

        Raises:
            RepositoryError: if any store write fails (the caller decides
                whether that aborts the run or only this event)
        """

        if result.domain is not None:
            existing = self._store.get_domain(event.tenant_id, result.domain)
            if existing is None:
                existing = AttributedDomain.empty(event.tenant_id, result.domain)
            merged = existing.absorb(event, result, first_email_sent_at=result.matched_sent_at)
            self._store.upsert_domain(merged)

            self._store.append_domain_event(
                DomainEvent(
                    tenant_id=event.tenant_id,
                    domain=result.domain,
                    source=TimelineSource.for_event_kind(event.kind),
                    event_time=event.event_time,
                    source_id=event.event_id,
                    email=event.email.strip().lower() if event.email else None,
                    metadata=dict(event.metadata),
                )
            )

        self._store.upsert_audit(MatchAuditRecord.from_match(event, result))


__all__ = ["AttributionRecorder"]
