"""
Domain: reconciliation period lifecycle.

Contract excerpts implemented here:
- Forward path: DRAFT -> PENDING_CLIENT -> CLIENT_SUBMITTED -> UNDER_REVIEW -> FINALIZED.
- Send-back edges: PENDING_CLIENT -> DRAFT, CLIENT_SUBMITTED -> PENDING_CLIENT,
  UNDER_REVIEW -> PENDING_CLIENT.
- Auto-billing: a period with no client submission (DRAFT or PENDING_CLIENT) that
  is past its review deadline is forced to AUTO_BILLED using its estimate.
- FINALIZED and AUTO_BILLED are terminal: every request is rejected, including a
  request for the same status.
- An invalid transition names both statuses and changes nothing.

Entering PENDING_CLIENT stamps sent_to_client_at, CLIENT_SUBMITTED stamps
client_submitted_at, FINALIZED stamps finalized_at/finalized_by.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import FrozenSet, Mapping, Optional, Union

from .reconciliation import PeriodStatus, PeriodTotals, ReconciliationPeriod
from .time import require_utc_timestamp

_TRANSITIONS: Mapping[PeriodStatus, FrozenSet[PeriodStatus]] = {
    PeriodStatus.DRAFT: frozenset({PeriodStatus.PENDING_CLIENT}),
    PeriodStatus.PENDING_CLIENT: frozenset({PeriodStatus.CLIENT_SUBMITTED, PeriodStatus.DRAFT}),
    PeriodStatus.CLIENT_SUBMITTED: frozenset({PeriodStatus.UNDER_REVIEW, PeriodStatus.PENDING_CLIENT}),
    PeriodStatus.UNDER_REVIEW: frozenset({PeriodStatus.FINALIZED, PeriodStatus.PENDING_CLIENT}),
    PeriodStatus.FINALIZED: frozenset(),
    PeriodStatus.AUTO_BILLED: frozenset(),
}

AUTO_BILLABLE_STATUSES: FrozenSet[PeriodStatus] = frozenset(
    {PeriodStatus.DRAFT, PeriodStatus.PENDING_CLIENT}
)


class RejectionReason(str, Enum):
    TERMINAL_STATUS = "TERMINAL_STATUS"
    AUTO_BILLING_ONLY = "AUTO_BILLING_ONLY"
    NOT_ALLOWED = "NOT_ALLOWED"


@dataclass(frozen=True, slots=True)
class TransitionAllowed:
    current: PeriodStatus
    requested: PeriodStatus


@dataclass(frozen=True, slots=True)
class TransitionRejected:
    current: PeriodStatus
    requested: PeriodStatus
    reason: RejectionReason

    @property
    def message(self) -> str:
        text = f"Cannot transition from {self.current.value} to {self.requested.value}"
        if self.reason is RejectionReason.TERMINAL_STATUS:
            return f"{text}: {self.current.value} is terminal"
        if self.reason is RejectionReason.AUTO_BILLING_ONLY:
            return f"{text}: {PeriodStatus.AUTO_BILLED.value} is only reachable through auto-billing"
        return text


TransitionOutcome = Union[TransitionAllowed, TransitionRejected]


class InvalidTransitionError(ValueError):
    def __init__(self, rejection: TransitionRejected):
        super().__init__(rejection.message)
        self.current = rejection.current
        self.requested = rejection.requested
        self.reason = rejection.reason


def evaluate_transition(current: PeriodStatus, requested: PeriodStatus) -> TransitionOutcome:
    """Total over every (current, requested) pair; never raises."""

    if not _TRANSITIONS[current]:
        return TransitionRejected(current, requested, RejectionReason.TERMINAL_STATUS)
    if requested is PeriodStatus.AUTO_BILLED:
        return TransitionRejected(current, requested, RejectionReason.AUTO_BILLING_ONLY)
    if requested in _TRANSITIONS[current]:
        return TransitionAllowed(current, requested)
    return TransitionRejected(current, requested, RejectionReason.NOT_ALLOWED)


def apply_transition(
    period: ReconciliationPeriod,
    requested: PeriodStatus,
    at: datetime,
    *,
    actor: Optional[str] = None,
    notes: Optional[str] = None,
) -> ReconciliationPeriod:
    """
    Return a new period in ``requested`` status with the matching timestamp set.

    Raises InvalidTransitionError (input left untouched) if the move is not allowed.
    """

    require_utc_timestamp("at", at)
    outcome = evaluate_transition(period.status, requested)
    if isinstance(outcome, TransitionRejected):
        raise InvalidTransitionError(outcome)

    updated = replace(period, status=requested, notes=notes if notes else period.notes)
    if requested is PeriodStatus.PENDING_CLIENT:
        updated = replace(updated, sent_to_client_at=at)
    elif requested is PeriodStatus.CLIENT_SUBMITTED:
        updated = replace(updated, client_submitted_at=at)
    elif requested is PeriodStatus.FINALIZED:
        updated = replace(updated, finalized_at=at, finalized_by=actor or "agency")
    return updated


def is_auto_billable(period: ReconciliationPeriod, as_of: date) -> bool:
    return period.status in AUTO_BILLABLE_STATUSES and as_of > period.review_deadline


def auto_bill(
    period: ReconciliationPeriod,
    totals: PeriodTotals,
    as_of: date,
    at: datetime,
    *,
    note: Optional[str] = None,
) -> ReconciliationPeriod:
    """Force an overdue, unsubmitted period to the terminal AUTO_BILLED status."""

    require_utc_timestamp("at", at)
    if not is_auto_billable(period, as_of):
        if period.is_terminal:
            reason = RejectionReason.TERMINAL_STATUS
        else:
            reason = RejectionReason.NOT_ALLOWED
        raise InvalidTransitionError(TransitionRejected(period.status, PeriodStatus.AUTO_BILLED, reason))

    notes = period.notes
    if note:
        notes = f"{notes}\n\n{note}" if notes else note
    return replace(
        period,
        status=PeriodStatus.AUTO_BILLED,
        totals=totals,
        auto_billed_at=at,
        notes=notes,
    )


__all__ = [
    "AUTO_BILLABLE_STATUSES",
    "RejectionReason",
    "TransitionAllowed",
    "TransitionRejected",
    "TransitionOutcome",
    "InvalidTransitionError",
    "evaluate_transition",
    "apply_transition",
    "is_auto_billable",
    "auto_bill",
]
