"""
Domain: business events and outbound emails.

Contract excerpts implemented here:
- A BusinessEvent is produced by the external event store and is immutable.
- Event ids define a stable total order; the batch checkpoint cursor is the
  id of the last processed event.
- event_time is a UTC timestamp and is authoritative for matching.
- An OutboundEmailRecord is a read-only fact from the sent-email log.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

from .time import require_utc_timestamp


class EventKind(str, Enum):
    SIGN_UP = "SIGN_UP"
    MEETING_BOOKED = "MEETING_BOOKED"
    PAYING_CUSTOMER = "PAYING_CUSTOMER"
    POSITIVE_REPLY = "POSITIVE_REPLY"

    @staticmethod
    def parse(value: str) -> "EventKind":
        """
        Accept both the canonical upper-case names and the lower-case names
        used by integrations ("sign_up", "meeting_booked", ...).
        """

        try:
            return EventKind(value.strip().upper())
        except ValueError:
            raise ValueError(f"Unknown event kind: {value!r}") from None


@dataclass(frozen=True, slots=True)
class BusinessEvent:
    """
    A downstream outcome reported for a tenant (sign-up, meeting, payment, reply).

    Either ``email`` or ``domain`` (or both) may be missing; an event with
    neither can never be matched.
    """

    event_id: str
    tenant_id: str
    kind: EventKind
    event_time: datetime
    email: Optional[str] = None
    domain: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        require_utc_timestamp("event_time", self.event_time)


@dataclass(frozen=True, slots=True)
class OutboundEmailRecord:
    """A single email the agency sent on behalf of a tenant."""

    tenant_id: str
    recipient_email: str
    sent_at: datetime
    prospect_id: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("sent_at", self.sent_at)


__all__ = [
    "EventKind",
    "BusinessEvent",
    "OutboundEmailRecord",
]
