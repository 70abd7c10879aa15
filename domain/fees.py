"""
Domain: line item fee calculation and period estimates.

Contract excerpts implemented here:
- owed = revshare + signup_count * fee_per_signup + meeting_count * fee_per_meeting
- revshare applies only with a paying-customer signal AND submitted revenue; the
  rate is the flat rate, or the PLG/SALES rate selected by the item's motion type.
- Counts, not booleans: three in-period signups owe three signup fees.
- estimate = paying * estimated_acv * average_rate + signups * fee_per_signup
  + meetings * fee_per_meeting
- Amounts are rounded to cents, half-up.

Pure: the same LineItem and BillingConfig always yield the same amount.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from .billing import BillingConfig
from .reconciliation import LineItem, LineItemStatus

CENTS = Decimal("0.01")
AUTO_BILLED_REVENUE_NOTE = "Auto-billed (estimated)"

_ZERO = Decimal("0")


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class FeeBreakdown:
    revshare: Decimal
    signup_fees: Decimal
    meeting_fees: Decimal
    applied_rate: Optional[Decimal]

    @property
    def total(self) -> Decimal:
        return to_cents(self.revshare + self.signup_fees + self.meeting_fees)


def calculate_line_item_fee(item: LineItem, config: BillingConfig) -> FeeBreakdown:
    """
    Compute the fee owed for one line item.

    Example:
        FlatRevshare(rate=0.20), revenue 10000, no per-event fees -> total 2000.00
    """

    applied_rate: Optional[Decimal] = None
    revshare = _ZERO
    if item.has_paying_customer:
        applied_rate = config.model.rate_for(item.motion_type)
        if item.revenue_submitted:
            revshare = item.revenue_submitted * applied_rate

    signup_fees = config.fees.fee_per_signup * item.signup_count
    meeting_fees = config.fees.fee_per_meeting * item.meeting_count

    return FeeBreakdown(
        revshare=to_cents(revshare),
        signup_fees=to_cents(signup_fees),
        meeting_fees=to_cents(meeting_fees),
        applied_rate=applied_rate,
    )


def apply_fee(item: LineItem, config: BillingConfig) -> LineItem:
    """Return ``item`` with amount_owed and the applied rate/fees refreshed."""

    breakdown = calculate_line_item_fee(item, config)
    return replace(
        item,
        amount_owed=breakdown.total,
        applied_rate=breakdown.applied_rate,
        fee_per_signup_applied=config.fees.fee_per_signup if item.signup_count else _ZERO,
        fee_per_meeting_applied=config.fees.fee_per_meeting if item.meeting_count else _ZERO,
    )


def needs_estimated_revenue(item: LineItem) -> bool:
    return item.has_paying_customer and item.revenue_submitted is None


def auto_bill_line_item(item: LineItem, config: BillingConfig) -> LineItem:
    """
    Bill an item the client never reported on.

    Paying items without submitted revenue are billed as if the estimated
    average contract value had been submitted; per-event fees apply as usual.
    """

    if needs_estimated_revenue(item):
        item = replace(
            item,
            revenue_submitted=config.estimated_acv,
            revenue_notes=AUTO_BILLED_REVENUE_NOTE,
            status=LineItemStatus.SUBMITTED,
        )
    return apply_fee(item, config)


def estimate_period_total(
    paying_customers: int,
    signups: int,
    meetings: int,
    config: BillingConfig,
) -> Decimal:
    """Pre-deadline estimate of what a period will bill."""

    revshare = Decimal(paying_customers) * config.estimated_acv * config.model.average_rate
    fees = config.fees.fee_per_signup * signups + config.fees.fee_per_meeting * meetings
    return to_cents(revshare + fees)


__all__ = [
    "CENTS",
    "AUTO_BILLED_REVENUE_NOTE",
    "to_cents",
    "FeeBreakdown",
    "calculate_line_item_fee",
    "apply_fee",
    "needs_estimated_revenue",
    "auto_bill_line_item",
    "estimate_period_total",
]
