"""
Domain: reconciliation periods and line items.

Contract excerpts implemented here:
- A ReconciliationPeriod is unique per (tenant, label). start < end and
  review_deadline >= end.
- A LineItem is unique per (period, domain). amount_owed is always derivable by
  re-running the fee calculator over the item's stored inputs.
- Line items are deleted only while PENDING so that client-submitted data is
  never silently erased.
- Line item dispute flow: PENDING/SUBMITTED -> DISPUTED -> CONFIRMED | PENDING.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from .billing import MotionType
from .time import require_utc_timestamp

_ZERO = Decimal("0")


class PeriodStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_CLIENT = "PENDING_CLIENT"
    CLIENT_SUBMITTED = "CLIENT_SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    FINALIZED = "FINALIZED"
    AUTO_BILLED = "AUTO_BILLED"


class LineItemStatus(str, Enum):
    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    DISPUTED = "DISPUTED"
    CONFIRMED = "CONFIRMED"


class LineItemStatusError(ValueError):
    """Raised when a revenue/dispute step is not allowed for the line item's status."""


@dataclass(frozen=True, slots=True)
class PeriodTotals:
    paying_customers: int = 0
    signups: int = 0
    meetings: int = 0
    revenue_submitted: Decimal = _ZERO
    amount_owed: Decimal = _ZERO


@dataclass(frozen=True, slots=True)
class ReconciliationPeriod:
    tenant_id: str
    label: str
    start: date
    end: date
    review_deadline: date
    status: PeriodStatus = PeriodStatus.DRAFT
    totals: PeriodTotals = PeriodTotals()
    estimated_total: Decimal = _ZERO
    auto_generated: bool = True
    auto_billed_at: Optional[datetime] = None
    sent_to_client_at: Optional[datetime] = None
    client_submitted_at: Optional[datetime] = None
    finalized_at: Optional[datetime] = None
    finalized_by: Optional[str] = None
    notes: Optional[str] = None
    period_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError("period start must be before period end")
        if self.review_deadline < self.end:
            raise ValueError("review_deadline must be >= period end")
        for name in ("auto_billed_at", "sent_to_client_at", "client_submitted_at", "finalized_at"):
            value = getattr(self, name)
            if value is not None:
                require_utc_timestamp(name, value)

    @property
    def is_terminal(self) -> bool:
        return self.status in (PeriodStatus.FINALIZED, PeriodStatus.AUTO_BILLED)

    def with_totals(self, totals: PeriodTotals) -> "ReconciliationPeriod":
        return replace(self, totals=totals)


@dataclass(frozen=True, slots=True)
class LineItem:
    period_id: str
    domain: str
    signup_count: int = 0
    meeting_count: int = 0
    has_paying_customer: bool = False
    paying_customer_date: Optional[date] = None
    motion_type: Optional[MotionType] = None
    applied_rate: Optional[Decimal] = None
    fee_per_signup_applied: Decimal = _ZERO
    fee_per_meeting_applied: Decimal = _ZERO
    revenue_submitted: Optional[Decimal] = None
    revenue_notes: Optional[str] = None
    amount_owed: Decimal = _ZERO
    status: LineItemStatus = LineItemStatus.PENDING
    dispute_reason: Optional[str] = None
    dispute_resolved_at: Optional[datetime] = None
    dispute_resolution_notes: Optional[str] = None
    attributed_domain_id: Optional[str] = None
    line_item_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.signup_count < 0 or self.meeting_count < 0:
            raise ValueError("line item counts must be >= 0")
        if self.revenue_submitted is not None and self.revenue_submitted < _ZERO:
            raise ValueError("revenue_submitted must be >= 0")
        if self.dispute_resolved_at is not None:
            require_utc_timestamp("dispute_resolved_at", self.dispute_resolved_at)

    @property
    def is_deletable(self) -> bool:
        return self.status is LineItemStatus.PENDING

    def submit_revenue(self, amount: Decimal, notes: Optional[str] = None) -> "LineItem":
        if self.status not in (LineItemStatus.PENDING, LineItemStatus.SUBMITTED):
            raise LineItemStatusError(f"Cannot submit revenue for a {self.status.value} line item")
        if amount < _ZERO:
            raise ValueError("revenue must be >= 0")
        return replace(
            self,
            revenue_submitted=amount,
            revenue_notes=notes,
            status=LineItemStatus.SUBMITTED,
        )

    def flag_dispute(self, reason: str) -> "LineItem":
        if self.status not in (LineItemStatus.PENDING, LineItemStatus.SUBMITTED):
            raise LineItemStatusError(f"Cannot dispute a {self.status.value} line item")
        return replace(self, status=LineItemStatus.DISPUTED, dispute_reason=reason)

    def resolve_dispute(self, confirmed: bool, notes: str, at: datetime) -> "LineItem":
        """confirmed=True keeps the item (CONFIRMED); False returns it to PENDING."""

        require_utc_timestamp("at", at)
        if self.status is not LineItemStatus.DISPUTED:
            raise LineItemStatusError(f"Line item for {self.domain} is not disputed")
        return replace(
            self,
            status=LineItemStatus.CONFIRMED if confirmed else LineItemStatus.PENDING,
            dispute_resolved_at=at,
            dispute_resolution_notes=notes,
        )


def summarize_line_items(items: Iterable[LineItem]) -> PeriodTotals:
    """Period totals recomputed from scratch over every line item of the period."""

    paying = signups = meetings = 0
    revenue = _ZERO
    owed = _ZERO
    for item in items:
        if item.revenue_submitted:
            revenue += item.revenue_submitted
        owed += item.amount_owed
        signups += item.signup_count
        meetings += item.meeting_count
        if item.has_paying_customer:
            paying += 1
    return PeriodTotals(
        paying_customers=paying,
        signups=signups,
        meetings=meetings,
        revenue_submitted=revenue,
        amount_owed=owed,
    )


__all__ = [
    "PeriodStatus",
    "LineItemStatus",
    "LineItemStatusError",
    "PeriodTotals",
    "ReconciliationPeriod",
    "LineItem",
    "summarize_line_items",
]
