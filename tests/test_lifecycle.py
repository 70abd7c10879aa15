"""
Tests for `domain/lifecycle.py`.

Covers contract rules:
- Forward path DRAFT -> PENDING_CLIENT -> CLIENT_SUBMITTED -> UNDER_REVIEW -> FINALIZED
  plus the send-back edges.
- FINALIZED and AUTO_BILLED reject every request.
- AUTO_BILLED is only reachable through auto-billing, after the deadline.
- Rejections name both statuses and leave the period unchanged.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from domain.lifecycle import (
    InvalidTransitionError,
    RejectionReason,
    TransitionAllowed,
    TransitionRejected,
    apply_transition,
    auto_bill,
    evaluate_transition,
)
from domain.reconciliation import PeriodStatus, PeriodTotals, ReconciliationPeriod
from fakes import utc

AT = utc(2025, 4, 2, 12, 0)


def period(status: PeriodStatus = PeriodStatus.DRAFT, notes=None) -> ReconciliationPeriod:
    return ReconciliationPeriod(
        tenant_id="tenant-1",
        label="March 2025",
        start=date(2025, 3, 1),
        end=date(2025, 3, 31),
        review_deadline=date(2025, 4, 10),
        status=status,
        notes=notes,
        period_id="period-1",
    )


@pytest.mark.parametrize(
    "current, requested",
    [
        (PeriodStatus.DRAFT, PeriodStatus.PENDING_CLIENT),
        (PeriodStatus.PENDING_CLIENT, PeriodStatus.CLIENT_SUBMITTED),
        (PeriodStatus.CLIENT_SUBMITTED, PeriodStatus.UNDER_REVIEW),
        (PeriodStatus.UNDER_REVIEW, PeriodStatus.FINALIZED),
        (PeriodStatus.PENDING_CLIENT, PeriodStatus.DRAFT),
        (PeriodStatus.CLIENT_SUBMITTED, PeriodStatus.PENDING_CLIENT),
        (PeriodStatus.UNDER_REVIEW, PeriodStatus.PENDING_CLIENT),
    ],
)
def test_allowed_transitions(current: PeriodStatus, requested: PeriodStatus) -> None:
    assert evaluate_transition(current, requested) == TransitionAllowed(current, requested)


def test_terminal_statuses_reject_everything() -> None:
    for terminal in (PeriodStatus.FINALIZED, PeriodStatus.AUTO_BILLED):
        for requested in PeriodStatus:
            outcome = evaluate_transition(terminal, requested)
            assert isinstance(outcome, TransitionRejected)
            assert outcome.reason is RejectionReason.TERMINAL_STATUS

    rejected = evaluate_transition(PeriodStatus.FINALIZED, PeriodStatus.FINALIZED)
    assert rejected.message == "Cannot transition from FINALIZED to FINALIZED: FINALIZED is terminal"


def test_auto_billed_cannot_be_requested() -> None:
    outcome = evaluate_transition(PeriodStatus.PENDING_CLIENT, PeriodStatus.AUTO_BILLED)

    assert outcome.reason is RejectionReason.AUTO_BILLING_ONLY


def test_skipping_steps_is_not_allowed() -> None:
    outcome = evaluate_transition(PeriodStatus.DRAFT, PeriodStatus.FINALIZED)

    assert outcome.reason is RejectionReason.NOT_ALLOWED
    assert outcome.message == "Cannot transition from DRAFT to FINALIZED"


def test_evaluate_transition_is_total() -> None:
    for current in PeriodStatus:
        for requested in PeriodStatus:
            assert isinstance(evaluate_transition(current, requested), (TransitionAllowed, TransitionRejected))


def test_apply_transition_stamps_timestamps() -> None:
    sent = apply_transition(period(), PeriodStatus.PENDING_CLIENT, AT)
    assert sent.sent_to_client_at == AT

    submitted = apply_transition(sent, PeriodStatus.CLIENT_SUBMITTED, AT)
    assert submitted.client_submitted_at == AT

    reviewed = apply_transition(submitted, PeriodStatus.UNDER_REVIEW, AT, notes="checking invoices")
    assert reviewed.notes == "checking invoices"

    finalized = apply_transition(reviewed, PeriodStatus.FINALIZED, AT, actor="ops@agency.com")
    assert finalized.status is PeriodStatus.FINALIZED
    assert finalized.finalized_at == AT
    assert finalized.finalized_by == "ops@agency.com"
    assert finalized.notes == "checking invoices"


def test_invalid_transition_raises_and_leaves_period_untouched() -> None:
    original = period()

    with pytest.raises(InvalidTransitionError) as excinfo:
        apply_transition(original, PeriodStatus.UNDER_REVIEW, AT)

    assert excinfo.value.current is PeriodStatus.DRAFT
    assert excinfo.value.requested is PeriodStatus.UNDER_REVIEW
    assert original.status is PeriodStatus.DRAFT


def test_auto_bill_after_deadline() -> None:
    totals = PeriodTotals(paying_customers=1, amount_owed=Decimal("2000.00"))

    billed = auto_bill(period(notes="sent reminder"), totals, date(2025, 4, 11), AT, note="[Auto-billed]")

    assert billed.status is PeriodStatus.AUTO_BILLED
    assert billed.totals == totals
    assert billed.auto_billed_at == AT
    assert billed.notes == "sent reminder\n\n[Auto-billed]"


def test_auto_bill_before_deadline_is_rejected() -> None:
    with pytest.raises(InvalidTransitionError) as excinfo:
        auto_bill(period(), PeriodTotals(), date(2025, 4, 10), AT)
    assert excinfo.value.reason is RejectionReason.NOT_ALLOWED

    with pytest.raises(InvalidTransitionError) as excinfo:
        auto_bill(period(PeriodStatus.FINALIZED), PeriodTotals(), date(2025, 5, 1), AT)
    assert excinfo.value.reason is RejectionReason.TERMINAL_STATUS

    with pytest.raises(InvalidTransitionError):
        auto_bill(period(PeriodStatus.CLIENT_SUBMITTED), PeriodTotals(), date(2025, 5, 1), AT)
