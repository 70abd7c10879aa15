"""
Tests for `services/recorder.py` and `AttributedDomain.absorb`.

Covers contract rules:
- One aggregate per (tenant, domain); first_* set once, flags OR-accumulated.
- One timeline entry per (domain, source, event id) and one audit row per event.
- Replaying an event changes nothing.
- A NO_MATCH never replaces a recorded match type.
"""

from __future__ import annotations

from datetime import timedelta

from domain.attribution import AttributedDomain, DomainStatus, MatchKind, MatchResult, TimelineSource
from domain.events import BusinessEvent, EventKind
from fakes import InMemoryAttributionStore, utc
from services.recorder import AttributionRecorder

TENANT = "tenant-1"
SENT_AT = utc(2025, 3, 1, 9, 0)


def hard_match(days: int, within: bool = True) -> MatchResult:
    return MatchResult(
        match_kind=MatchKind.HARD_MATCH,
        within_window=within,
        match_reason="Hard match",
        domain="acme.com",
        matched_email="jane@acme.com",
        matched_sent_at=SENT_AT,
        days_since_email=days,
    )


def event(event_id: str, kind: EventKind, days_after_email: int) -> BusinessEvent:
    return BusinessEvent(
        event_id=event_id,
        tenant_id=TENANT,
        kind=kind,
        event_time=SENT_AT + timedelta(days=days_after_email),
        email="Jane@Acme.com",
    )


def test_record_creates_domain_timeline_and_audit(attribution: InMemoryAttributionStore) -> None:
    recorder = AttributionRecorder(attribution)

    recorder.record(event("evt-1", EventKind.SIGN_UP, 5), hard_match(5))

    record = attribution.get_domain(TENANT, "acme.com")
    assert record is not None
    assert record.status is DomainStatus.ATTRIBUTED
    assert record.match_type is MatchKind.HARD_MATCH
    assert record.first_email_sent_at == SENT_AT
    assert record.first_attributed_month == "2025-03"
    assert record.has_sign_up and not record.has_paying_customer
    assert record.matched_emails == ("jane@acme.com",)

    timeline = attribution.timeline_for(TENANT, "acme.com")
    assert [(e.source, e.source_id, e.email) for e in timeline] == [(TimelineSource.SIGN_UP, "evt-1", "jane@acme.com")]
    assert list(attribution.audits) == ["evt-1"]


def test_replaying_an_event_is_idempotent(attribution: InMemoryAttributionStore) -> None:
    recorder = AttributionRecorder(attribution)
    sign_up = event("evt-1", EventKind.SIGN_UP, 5)

    recorder.record(sign_up, hard_match(5))
    before = attribution.get_domain(TENANT, "acme.com")
    recorder.record(sign_up, hard_match(5))

    assert attribution.get_domain(TENANT, "acme.com") == before
    assert len(attribution.timeline) == 1
    assert len(attribution.audits) == 1


def test_later_events_accumulate(attribution: InMemoryAttributionStore) -> None:
    recorder = AttributionRecorder(attribution)

    recorder.record(event("evt-1", EventKind.SIGN_UP, 5), hard_match(5))
    recorder.record(event("evt-2", EventKind.PAYING_CUSTOMER, 20), hard_match(20))

    record = attribution.get_domain(TENANT, "acme.com")
    assert record.has_sign_up and record.has_paying_customer
    assert record.first_event_at == SENT_AT + timedelta(days=5)
    assert record.last_event_at == SENT_AT + timedelta(days=20)
    assert len(attribution.timeline_for(TENANT, "acme.com")) == 2


def test_event_without_domain_only_writes_audit(attribution: InMemoryAttributionStore) -> None:
    result = MatchResult(match_kind=MatchKind.NO_MATCH, within_window=False, match_reason="No match")
    orphan = BusinessEvent(event_id="evt-9", tenant_id=TENANT, kind=EventKind.SIGN_UP, event_time=SENT_AT)

    AttributionRecorder(attribution).record(orphan, result)

    assert attribution.domains == {}
    assert attribution.timeline == {}
    assert attribution.audits["evt-9"].match_kind is MatchKind.NO_MATCH


def test_out_of_window_match_then_in_window_match() -> None:
    record = AttributedDomain.empty(TENANT, "acme.com")

    record = record.absorb(event("evt-1", EventKind.SIGN_UP, 40), hard_match(40, within=False))
    assert record.status is DomainStatus.OUTSIDE_WINDOW
    assert not record.is_within_window

    record = record.absorb(event("evt-2", EventKind.MEETING_BOOKED, 10), hard_match(10))
    assert record.status is DomainStatus.ATTRIBUTED
    assert record.is_within_window
    assert record.first_event_at == SENT_AT + timedelta(days=40)
    assert record.last_event_at == SENT_AT + timedelta(days=40)


def test_no_match_keeps_recorded_match_type() -> None:
    record = AttributedDomain.empty(TENANT, "acme.com").absorb(event("evt-1", EventKind.SIGN_UP, 5), hard_match(5))
    no_match = MatchResult(match_kind=MatchKind.NO_MATCH, within_window=False, match_reason="No match", domain="acme.com")

    record = record.absorb(event("evt-2", EventKind.PAYING_CUSTOMER, 60), no_match)

    assert record.match_type is MatchKind.HARD_MATCH
    assert record.status is DomainStatus.ATTRIBUTED
    assert record.has_paying_customer


def test_workflow_status_is_not_overwritten_by_matches() -> None:
    record = AttributedDomain(tenant_id=TENANT, domain="acme.com", status=DomainStatus.DISPUTED)

    record = record.absorb(event("evt-1", EventKind.SIGN_UP, 5), hard_match(5))

    assert record.status is DomainStatus.DISPUTED
