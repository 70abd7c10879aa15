"""
Domain: attribution outcomes and per-domain aggregate state.

Contract excerpts implemented here:
- The attribution window is the maximum gap, in whole days, between a sent email
  and a counted event. It defaults to ATTRIBUTION_WINDOW_DAYS and may be
  overridden per tenant.
- An AttributedDomain exists once per (tenant, canonical domain). It is created on
  the first recorded event for the domain and is never deleted.
- first_* fields are set once; last_event_at only moves forward; outcome flags
  are OR-accumulated and never reset to False by event processing.
- A DomainEvent is an append-only timeline entry, unique per
  (tenant, domain, source, source_id).
- A MatchAuditRecord is unique per source event id.

This module contains only pure domain entities: no I/O, no implicit "now".
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, FrozenSet, Mapping, Optional, Tuple

from .events import BusinessEvent, EventKind
from .time import month_label, require_utc_timestamp

ATTRIBUTION_WINDOW_DAYS: int = 31


class MatchKind(str, Enum):
    HARD_MATCH = "HARD_MATCH"
    SOFT_MATCH = "SOFT_MATCH"
    NO_MATCH = "NO_MATCH"


class AttributionStatus(str, Enum):
    ATTRIBUTED = "ATTRIBUTED"
    OUTSIDE_WINDOW = "OUTSIDE_WINDOW"
    NO_MATCH = "NO_MATCH"


class DomainStatus(str, Enum):
    ATTRIBUTED = "ATTRIBUTED"
    OUTSIDE_WINDOW = "OUTSIDE_WINDOW"
    UNATTRIBUTED = "UNATTRIBUTED"
    CLIENT_PROMOTED = "CLIENT_PROMOTED"
    DISPUTE_PENDING = "DISPUTE_PENDING"
    DISPUTED = "DISPUTED"
    MANUAL = "MANUAL"
    CONFIRMED = "CONFIRMED"


# Statuses whose domains are eligible for billing. A domain under dispute stays
# billable until the dispute is approved.
BILLABLE_DOMAIN_STATUSES: FrozenSet[DomainStatus] = frozenset(
    {
        DomainStatus.ATTRIBUTED,
        DomainStatus.CLIENT_PROMOTED,
        DomainStatus.DISPUTE_PENDING,
        DomainStatus.MANUAL,
        DomainStatus.CONFIRMED,
    }
)

_DISPUTABLE_STATUSES: FrozenSet[DomainStatus] = frozenset(
    {
        DomainStatus.ATTRIBUTED,
        DomainStatus.CLIENT_PROMOTED,
        DomainStatus.MANUAL,
        DomainStatus.CONFIRMED,
    }
)

_PROMOTABLE_STATUSES: FrozenSet[DomainStatus] = frozenset(
    {DomainStatus.OUTSIDE_WINDOW, DomainStatus.UNATTRIBUTED}
)

# Outcomes a client may enter by hand
MANUAL_EVENT_KINDS: FrozenSet[EventKind] = frozenset(
    {EventKind.SIGN_UP, EventKind.MEETING_BOOKED, EventKind.PAYING_CUSTOMER}
)


class TimelineSource(str, Enum):
    SIGN_UP = "SIGN_UP"
    MEETING_BOOKED = "MEETING_BOOKED"
    PAYING_CUSTOMER = "PAYING_CUSTOMER"
    POSITIVE_REPLY = "POSITIVE_REPLY"
    STATUS_CHANGE = "STATUS_CHANGE"

    @staticmethod
    def for_event_kind(kind: EventKind) -> "TimelineSource":
        return TimelineSource(kind.value)


class DomainStatusError(ValueError):
    """Raised when a dispute/promotion workflow step is not allowed from the current status."""


@dataclass(frozen=True, slots=True)
class TenantConfig:
    """Per-tenant attribution settings."""

    tenant_id: str
    name: str = ""
    attribution_window_days: int = ATTRIBUTION_WINDOW_DAYS
    soft_match_enabled: bool = True
    exclude_personal_domains: bool = True

    def __post_init__(self) -> None:
        if self.attribution_window_days < 0:
            raise ValueError("attribution_window_days must be >= 0")


@dataclass(frozen=True, slots=True)
class MatchResult:
    """
    Outcome of matching one business event against the sent-email log.

    Derived, not stored on its own: it is folded into the AttributedDomain and
    into a MatchAuditRecord.
    """

    match_kind: MatchKind
    within_window: bool
    match_reason: str
    domain: Optional[str] = None
    matched_email: Optional[str] = None
    matched_sent_at: Optional[datetime] = None
    days_since_email: Optional[int] = None
    is_personal_domain: bool = False

    @property
    def is_match(self) -> bool:
        return self.match_kind is not MatchKind.NO_MATCH

    @property
    def attribution_status(self) -> AttributionStatus:
        if not self.is_match:
            return AttributionStatus.NO_MATCH
        if self.within_window:
            return AttributionStatus.ATTRIBUTED
        return AttributionStatus.OUTSIDE_WINDOW


@dataclass(frozen=True, slots=True)
class AttributedDomain:
    """
    Cumulative attribution state for one (tenant, canonical domain).

    Immutability:
    - Transitions return a new instance (``absorb``, ``submit_dispute``, ...).
    """

    tenant_id: str
    domain: str
    status: DomainStatus = DomainStatus.UNATTRIBUTED
    match_type: Optional[MatchKind] = None
    first_email_sent_at: Optional[datetime] = None
    first_event_at: Optional[datetime] = None
    last_event_at: Optional[datetime] = None
    first_attributed_month: Optional[str] = None
    has_sign_up: bool = False
    has_meeting_booked: bool = False
    has_paying_customer: bool = False
    has_positive_reply: bool = False
    is_within_window: bool = False
    matched_emails: Tuple[str, ...] = ()

    # Dispute and manual attribution metadata
    dispute_reason: Optional[str] = None
    dispute_submitted_at: Optional[datetime] = None
    dispute_resolved_at: Optional[datetime] = None
    dispute_resolution_notes: Optional[str] = None
    promoted_at: Optional[datetime] = None
    promoted_by: Optional[str] = None
    promotion_notes: Optional[str] = None

    domain_id: Optional[str] = None

    def __post_init__(self) -> None:
        for name in (
            "first_email_sent_at",
            "first_event_at",
            "last_event_at",
            "dispute_submitted_at",
            "dispute_resolved_at",
            "promoted_at",
        ):
            value = getattr(self, name)
            if value is not None:
                require_utc_timestamp(name, value)

    @property
    def is_billable(self) -> bool:
        return self.status in BILLABLE_DOMAIN_STATUSES

    def absorb(
        self,
        event: BusinessEvent,
        result: MatchResult,
        *,
        first_email_sent_at: Optional[datetime] = None,
    ) -> "AttributedDomain":
        """
        Fold one processed event into this aggregate.

        - first_email_sent_at, first_event_at, first_attributed_month: set once.
        - last_event_at: max(existing, event_time).
        - has_* flags and is_within_window: OR-accumulated.
        - match_type: the latest matched kind; NO_MATCH never replaces a match.
        - status: UNATTRIBUTED/OUTSIDE_WINDOW move forward on a better match;
          workflow statuses (disputes, promotions, manual) are left untouched.
        """

        kind = event.kind
        last_event_at = self.last_event_at
        if last_event_at is None or event.event_time > last_event_at:
            last_event_at = event.event_time

        match_type = self.match_type
        if result.is_match or match_type is None:
            match_type = result.match_kind

        matched_emails = self.matched_emails
        if (
            result.match_kind is MatchKind.HARD_MATCH
            and result.matched_email
            and result.matched_email not in matched_emails
        ):
            matched_emails = matched_emails + (result.matched_email,)

        status = self.status
        if result.is_match and result.within_window:
            if status in _PROMOTABLE_STATUSES:
                status = DomainStatus.ATTRIBUTED
        elif result.is_match and status is DomainStatus.UNATTRIBUTED:
            status = DomainStatus.OUTSIDE_WINDOW

        return replace(
            self,
            status=status,
            match_type=match_type,
            first_email_sent_at=self.first_email_sent_at or first_email_sent_at,
            first_event_at=self.first_event_at or event.event_time,
            last_event_at=last_event_at,
            first_attributed_month=self.first_attributed_month or month_label(event.event_time),
            has_sign_up=self.has_sign_up or kind is EventKind.SIGN_UP,
            has_meeting_booked=self.has_meeting_booked or kind is EventKind.MEETING_BOOKED,
            has_paying_customer=self.has_paying_customer or kind is EventKind.PAYING_CUSTOMER,
            has_positive_reply=self.has_positive_reply or kind is EventKind.POSITIVE_REPLY,
            is_within_window=self.is_within_window or result.within_window,
            matched_emails=matched_emails,
        )

    def submit_dispute(self, reason: str, at: datetime) -> "AttributedDomain":
        require_utc_timestamp("at", at)
        if self.status not in _DISPUTABLE_STATUSES:
            raise DomainStatusError(f"Cannot dispute domain {self.domain} in status {self.status.value}")
        return replace(
            self,
            status=DomainStatus.DISPUTE_PENDING,
            dispute_reason=reason,
            dispute_submitted_at=at,
        )

    def resolve_dispute(self, approved: bool, notes: Optional[str], at: datetime) -> "AttributedDomain":
        """Approved removes the domain from billing; rejected restores ATTRIBUTED."""

        require_utc_timestamp("at", at)
        if self.status is not DomainStatus.DISPUTE_PENDING:
            raise DomainStatusError(f"Domain {self.domain} has no pending dispute (status {self.status.value})")
        if approved:
            return replace(
                self,
                status=DomainStatus.DISPUTED,
                is_within_window=False,
                dispute_resolved_at=at,
                dispute_resolution_notes=notes or "Dispute approved",
            )
        return replace(
            self,
            status=DomainStatus.ATTRIBUTED,
            dispute_resolved_at=at,
            dispute_resolution_notes=notes or "Dispute rejected - attribution confirmed",
        )

    def promote(self, promoted_by: str, notes: Optional[str], at: datetime) -> "AttributedDomain":
        """Client-side manual attribution of an unmatched or out-of-window domain."""

        require_utc_timestamp("at", at)
        if self.status not in _PROMOTABLE_STATUSES:
            raise DomainStatusError(f"Cannot promote domain {self.domain} in status {self.status.value}")
        return replace(
            self,
            status=DomainStatus.CLIENT_PROMOTED,
            promoted_at=at,
            promoted_by=promoted_by,
            promotion_notes=notes,
        )

    def add_manual_event(
        self,
        kind: EventKind,
        event_time: datetime,
        added_by: str,
        notes: Optional[str],
        at: datetime,
    ) -> "AttributedDomain":
        """
        Fold a client-entered outcome into this aggregate.

        - has_* flags are OR-accumulated; first/last event times widen.
        - A domain with no aggregate yet becomes MANUAL.
        - OUTSIDE_WINDOW/UNATTRIBUTED domains become CLIENT_PROMOTED.
        - Other billable statuses are kept; DISPUTED domains are refused.
        """

        require_utc_timestamp("event_time", event_time)
        require_utc_timestamp("at", at)
        if kind not in MANUAL_EVENT_KINDS:
            raise ValueError(f"Manual events must be one of {sorted(k.value for k in MANUAL_EVENT_KINDS)}")
        if self.status is DomainStatus.DISPUTED:
            raise DomainStatusError(f"Cannot add events to disputed domain {self.domain}")

        status = self.status
        promoted_at, promoted_by = self.promoted_at, self.promoted_by
        if self.first_event_at is None and status is DomainStatus.UNATTRIBUTED:
            status = DomainStatus.MANUAL
            promoted_at, promoted_by = at, added_by
        elif status in _PROMOTABLE_STATUSES:
            status = DomainStatus.CLIENT_PROMOTED
            promoted_at, promoted_by = at, added_by

        promotion_notes = self.promotion_notes
        if notes:
            entry = f"[Manual {kind.value.lower()}] {notes}"
            promotion_notes = f"{promotion_notes}\n{entry}" if promotion_notes else entry

        first_event_at = self.first_event_at
        if first_event_at is None or event_time < first_event_at:
            first_event_at = event_time
        last_event_at = self.last_event_at
        if last_event_at is None or event_time > last_event_at:
            last_event_at = event_time

        return replace(
            self,
            status=status,
            first_event_at=first_event_at,
            last_event_at=last_event_at,
            first_attributed_month=self.first_attributed_month or month_label(event_time),
            has_sign_up=self.has_sign_up or kind is EventKind.SIGN_UP,
            has_meeting_booked=self.has_meeting_booked or kind is EventKind.MEETING_BOOKED,
            has_paying_customer=self.has_paying_customer or kind is EventKind.PAYING_CUSTOMER,
            promoted_at=promoted_at,
            promoted_by=promoted_by,
            promotion_notes=promotion_notes,
        )

    def confirm(self, confirmed_by: str, at: datetime) -> "AttributedDomain":
        """Operator confirmation of a domain that was not billable yet; billable domains are unchanged."""

        require_utc_timestamp("at", at)
        if self.status is DomainStatus.DISPUTED:
            raise DomainStatusError(f"Cannot confirm disputed domain {self.domain}")
        if self.is_billable:
            return self
        return replace(self, status=DomainStatus.CONFIRMED, promoted_at=at, promoted_by=confirmed_by)

    @staticmethod
    def empty(tenant_id: str, domain: str) -> "AttributedDomain":
        return AttributedDomain(tenant_id=tenant_id, domain=domain)


@dataclass(frozen=True, slots=True)
class DomainEvent:
    """Append-only timeline entry for a domain."""

    tenant_id: str
    domain: str
    source: TimelineSource
    event_time: datetime
    source_id: str
    email: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        require_utc_timestamp("event_time", self.event_time)

    @property
    def key(self) -> Tuple[str, str, str, str]:
        return (self.tenant_id, self.domain, self.source.value, self.source_id)


@dataclass(frozen=True, slots=True)
class MatchAuditRecord:
    """Immutable audit row for one processed source event."""

    source_event_id: str
    tenant_id: str
    event_kind: EventKind
    event_time: datetime
    match_kind: MatchKind
    within_window: bool
    match_reason: str
    event_email: Optional[str] = None
    domain: Optional[str] = None
    matched_email: Optional[str] = None
    matched_sent_at: Optional[datetime] = None
    days_since_email: Optional[int] = None

    @staticmethod
    def from_match(event: BusinessEvent, result: MatchResult) -> "MatchAuditRecord":
        return MatchAuditRecord(
            source_event_id=event.event_id,
            tenant_id=event.tenant_id,
            event_kind=event.kind,
            event_time=event.event_time,
            match_kind=result.match_kind,
            within_window=result.within_window,
            match_reason=result.match_reason,
            event_email=event.email.strip().lower() if event.email else None,
            domain=result.domain,
            matched_email=result.matched_email,
            matched_sent_at=result.matched_sent_at,
            days_since_email=result.days_since_email,
        )


__all__ = [
    "ATTRIBUTION_WINDOW_DAYS",
    "BILLABLE_DOMAIN_STATUSES",
    "MANUAL_EVENT_KINDS",
    "MatchKind",
    "AttributionStatus",
    "DomainStatus",
    "DomainStatusError",
    "TimelineSource",
    "TenantConfig",
    "MatchResult",
    "AttributedDomain",
    "DomainEvent",
    "MatchAuditRecord",
]
