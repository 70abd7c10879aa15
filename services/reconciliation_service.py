"""
Reconciliation workflow: period status changes, client revenue submission and
line item disputes.

Every write to a line item is followed by a recomputation of the item's fee and
of the period totals, so stored amounts always match the fee calculator.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from domain.fees import apply_fee
from domain.lifecycle import apply_transition
from domain.reconciliation import LineItem, LineItemStatusError, PeriodStatus, ReconciliationPeriod
from services.billing_sync import get_period, recalculate_period_totals, require_billing_config
from services.errors import NotFoundError
from services.ports import BillingStore

logger = logging.getLogger(__name__)


def change_period_status(
    period_id: str,
    requested: PeriodStatus,
    billing: BillingStore,
    *,
    notes: Optional[str] = None,
    actor: Optional[str] = None,
    at: Optional[datetime] = None,
) -> ReconciliationPeriod:
    """
    Move a period through its lifecycle.

    Raises:
        NotFoundError: if the period does not exist
        InvalidTransitionError: if the move is not allowed (nothing is written)
    """

    period = get_period(period_id, billing)
    updated = apply_transition(period, requested, at or datetime.now(timezone.utc), actor=actor, notes=notes)
    saved = billing.save_period(updated)
    logger.info(
        "Period %s moved from %s to %s",
        period.label,
        period.status.value,
        requested.value,
        extra={"tenant_id": period.tenant_id, "period_id": period_id},
    )
    return saved


def _get_line_item(line_item_id: str, billing: BillingStore) -> LineItem:
    item = billing.get_line_item(line_item_id)
    if item is None:
        raise NotFoundError("Line item", line_item_id)
    return item


def _open_period_for(item: LineItem, billing: BillingStore) -> ReconciliationPeriod:
    period = get_period(item.period_id, billing)
    if period.is_terminal:
        raise LineItemStatusError(f"Period {period.label} is {period.status.value}; line items are locked")
    return period


def _save_and_refresh(item: LineItem, period: ReconciliationPeriod, billing: BillingStore) -> LineItem:
    config = require_billing_config(period.tenant_id, billing)
    priced = apply_fee(item, config)
    saved = billing.upsert_line_items([priced])
    recalculate_period_totals(period.period_id or item.period_id, billing, config)
    return saved[0] if saved else priced


def submit_line_item_revenue(
    line_item_id: str,
    amount: Decimal,
    billing: BillingStore,
    *,
    notes: Optional[str] = None,
) -> LineItem:
    """
    Store the revenue a client reported for one domain in one period.

    The item becomes SUBMITTED; its fee and the period totals are recomputed.

    Example:
        FlatRevshare(0.20), amount=Decimal("10000") -> amount_owed Decimal("2000.00")
    """

    item = _get_line_item(line_item_id, billing)
    period = _open_period_for(item, billing)
    saved = _save_and_refresh(item.submit_revenue(amount, notes), period, billing)
    logger.info(
        "Revenue submitted for %s in period %s",
        item.domain,
        period.label,
        extra={"tenant_id": period.tenant_id, "line_item_id": line_item_id},
    )
    return saved


def flag_line_item_dispute(line_item_id: str, reason: str, billing: BillingStore) -> LineItem:
    item = _get_line_item(line_item_id, billing)
    period = _open_period_for(item, billing)
    return _save_and_refresh(item.flag_dispute(reason), period, billing)


def resolve_line_item_dispute(
    line_item_id: str,
    confirmed: bool,
    notes: str,
    billing: BillingStore,
    *,
    at: Optional[datetime] = None,
) -> LineItem:
    """CONFIRMED keeps the item billed as is; otherwise it returns to PENDING."""

    item = _get_line_item(line_item_id, billing)
    period = _open_period_for(item, billing)
    resolved = item.resolve_dispute(confirmed, notes, at or datetime.now(timezone.utc))
    return _save_and_refresh(resolved, period, billing)


__all__ = [
    "change_period_status",
    "submit_line_item_revenue",
    "flag_line_item_dispute",
    "resolve_line_item_dispute",
]
