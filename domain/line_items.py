"""
Domain: selecting billable domains for a reconciliation period.

Contract excerpts implemented here:
- Three independent billing signals, each gated by the tenant's billing config:
  - per-signup (fee_per_signup > 0): SIGN_UP timeline entries inside [start, end];
  - per-meeting (fee_per_meeting > 0): MEETING_BOOKED entries inside [start, end];
  - revenue share (always): the earliest PAYING_CUSTOMER date d satisfies
    d <= end AND d + 12 months > start.
- Signals for the same domain merge into one line item.
- An item that is still eligible keeps max(stored, recomputed) counts.
- An item that is no longer eligible is deleted only while PENDING.
- Motion type is decided once, at paying time: SALES if a meeting was booked at or
  before the first payment, else PLG. Later meetings do not change it.

Pure: given the same timelines and stored items, the plan is identical.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from dateutil.relativedelta import relativedelta

from .attribution import DomainEvent, TimelineSource
from .billing import BillingConfig, MotionType
from .reconciliation import LineItem

REVENUE_SHARE_MONTHS: int = 12


@dataclass(frozen=True, slots=True)
class DomainTimeline:
    """All timeline entries of one billable domain."""

    domain: str
    events: Tuple[DomainEvent, ...] = ()
    attributed_domain_id: Optional[str] = None

    def _times(self, source: TimelineSource) -> List[datetime]:
        return sorted(e.event_time for e in self.events if e.source is source)

    @property
    def first_paying_at(self) -> Optional[datetime]:
        times = self._times(TimelineSource.PAYING_CUSTOMER)
        return times[0] if times else None

    @property
    def paying_customer_date(self) -> Optional[date]:
        first = self.first_paying_at
        return first.date() if first else None

    @property
    def motion_type(self) -> Optional[MotionType]:
        first_paying = self.first_paying_at
        if first_paying is None:
            return None
        meetings = self._times(TimelineSource.MEETING_BOOKED)
        if meetings and meetings[0] <= first_paying:
            return MotionType.SALES
        return MotionType.PLG

    def count_in_period(self, source: TimelineSource, start: date, end: date) -> int:
        return sum(1 for t in self._times(source) if start <= t.date() <= end)


@dataclass(frozen=True, slots=True)
class LineItemPlan:
    upserts: List[LineItem] = field(default_factory=list)
    deletes: List[LineItem] = field(default_factory=list)


def within_revenue_share_window(paying_date: date, start: date, end: date) -> bool:
    """
    True while a paying customer is still billable under revenue share.

    Example (paying 2025-07-15):
        period 2026-07-01..2026-07-31 -> True  (2026-07-15 > 2026-07-01)
        period 2026-07-15..2026-08-11 -> False (2026-07-15 is not > 2026-07-15)
    """

    return paying_date <= end and paying_date + relativedelta(months=REVENUE_SHARE_MONTHS) > start


def _recompute(timeline: DomainTimeline, period_id: str, start: date, end: date, config: BillingConfig) -> Optional[LineItem]:
    signups = 0
    meetings = 0
    if config.fees.charges_signups:
        signups = timeline.count_in_period(TimelineSource.SIGN_UP, start, end)
    if config.fees.charges_meetings:
        meetings = timeline.count_in_period(TimelineSource.MEETING_BOOKED, start, end)

    paying_date = timeline.paying_customer_date
    paying = paying_date is not None and within_revenue_share_window(paying_date, start, end)

    if not (signups or meetings or paying):
        return None

    return LineItem(
        period_id=period_id,
        domain=timeline.domain,
        signup_count=signups,
        meeting_count=meetings,
        has_paying_customer=paying,
        paying_customer_date=paying_date if paying else None,
        motion_type=timeline.motion_type if paying else None,
        attributed_domain_id=timeline.attributed_domain_id,
    )


def plan_line_items(
    period_id: str,
    start: date,
    end: date,
    timelines: Sequence[DomainTimeline],
    config: BillingConfig,
    existing: Sequence[LineItem] = (),
) -> LineItemPlan:
    """
    Decide which line items a period should hold.

    Returns the items to upsert (new or refreshed) and the stale PENDING items
    to delete. Stale items in any other status are left alone.
    """

    stored: Mapping[str, LineItem] = {item.domain: item for item in existing}
    eligible: Dict[str, LineItem] = {}

    for timeline in timelines:
        fresh = _recompute(timeline, period_id, start, end, config)
        if fresh is None:
            continue
        current = stored.get(timeline.domain)
        if current is not None:
            fresh = replace(
                current,
                signup_count=max(current.signup_count, fresh.signup_count),
                meeting_count=max(current.meeting_count, fresh.meeting_count),
                has_paying_customer=fresh.has_paying_customer,
                paying_customer_date=fresh.paying_customer_date,
                motion_type=(current.motion_type or fresh.motion_type) if fresh.has_paying_customer else None,
                attributed_domain_id=current.attributed_domain_id or fresh.attributed_domain_id,
            )
        eligible[timeline.domain] = fresh

    deletes = [item for item in existing if item.domain not in eligible and item.is_deletable]
    return LineItemPlan(upserts=sorted(eligible.values(), key=lambda i: i.domain), deletes=deletes)


__all__ = [
    "REVENUE_SHARE_MONTHS",
    "DomainTimeline",
    "LineItemPlan",
    "within_revenue_share_window",
    "plan_line_items",
]
