"""
Billing repository (persistence).

Tables:
- client_config: billing columns of the tenant row
- reconciliation_period: unique on (client_config_id, period_name)
- reconciliation_line_item: unique on (reconciliation_period_id, domain)

Money columns are NUMERIC and are read and written as decimal strings.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from supabase import Client  # type: ignore[import-not-found]

from domain.billing import (
    DEFAULT_ESTIMATED_ACV,
    DEFAULT_REVIEW_WINDOW_DAYS,
    BillingCadence,
    BillingConfig,
    FeeSchedule,
    MotionType,
    build_billing_model,
)
from domain.reconciliation import (
    LineItem,
    LineItemStatus,
    PeriodStatus,
    PeriodTotals,
    ReconciliationPeriod,
)
from repositories.client import (
    execute,
    fetch_all,
    get_supabase,
    money,
    optional_iso_utc,
    parse_date,
    parse_decimal,
    parse_optional_date,
    parse_optional_datetime,
    rows_of,
)

_CLIENT_CONFIG_TABLE: str = "client_config"
_PERIODS_TABLE: str = "reconciliation_period"
_LINE_ITEMS_TABLE: str = "reconciliation_line_item"

_ZERO = Decimal("0")
_TERMINAL = [PeriodStatus.FINALIZED.value, PeriodStatus.AUTO_BILLED.value]


def _row_to_billing_config(
    row: Mapping[str, Any],
    default_review_window_days: int,
    default_estimated_acv: Decimal,
) -> BillingConfig:
    review_window = row.get("review_window_days")
    return BillingConfig(
        tenant_id=str(row["id"]),
        model=build_billing_model(
            row.get("billing_model"),
            flat_rate=parse_decimal(row.get("rev_share_rate")),
            plg_rate=parse_decimal(row.get("revshare_plg")),
            sales_rate=parse_decimal(row.get("revshare_sales")),
        ),
        contract_start=parse_date(row["contract_start_date"]),
        cadence=BillingCadence(str(row.get("billing_cycle") or BillingCadence.MONTHLY.value)),
        fees=FeeSchedule(
            fee_per_signup=parse_decimal(row.get("fee_per_signup"), _ZERO),
            fee_per_meeting=parse_decimal(row.get("fee_per_meeting"), _ZERO),
            custom_event_fee=parse_decimal(row.get("fee_per_custom_event"), _ZERO),
        ),
        review_window_days=int(review_window) if review_window is not None else default_review_window_days,
        estimated_acv=parse_decimal(row.get("estimated_acv"), default_estimated_acv),
    )


def _row_to_period(row: Mapping[str, Any]) -> ReconciliationPeriod:
    return ReconciliationPeriod(
        tenant_id=str(row["client_config_id"]),
        label=str(row["period_name"]),
        start=parse_date(row["start_date"]),
        end=parse_date(row["end_date"]),
        review_deadline=parse_date(row["review_deadline"]),
        status=PeriodStatus(str(row.get("status") or PeriodStatus.DRAFT.value)),
        totals=PeriodTotals(
            paying_customers=int(row.get("total_paying_customers") or 0),
            signups=int(row.get("total_signups_billed") or 0),
            meetings=int(row.get("total_meetings_billed") or 0),
            revenue_submitted=parse_decimal(row.get("total_revenue_submitted"), _ZERO),
            amount_owed=parse_decimal(row.get("total_amount_owed"), _ZERO),
        ),
        estimated_total=parse_decimal(row.get("estimated_total"), _ZERO),
        auto_generated=bool(row.get("auto_generated", True)),
        auto_billed_at=parse_optional_datetime(row.get("auto_billed_at")),
        sent_to_client_at=parse_optional_datetime(row.get("sent_to_client_at")),
        client_submitted_at=parse_optional_datetime(row.get("client_submitted_at")),
        finalized_at=parse_optional_datetime(row.get("finalized_at")),
        finalized_by=row.get("finalized_by"),
        notes=row.get("agency_notes"),
        period_id=str(row["id"]),
    )


def _totals_payload(totals: PeriodTotals) -> Dict[str, Any]:
    return {
        "total_paying_customers": totals.paying_customers,
        "total_signups_billed": totals.signups,
        "total_meetings_billed": totals.meetings,
        "total_revenue_submitted": money(totals.revenue_submitted),
        "total_amount_owed": money(totals.amount_owed),
    }


def _row_to_line_item(row: Mapping[str, Any]) -> LineItem:
    motion = row.get("motion_type")
    domain_id = row.get("attributed_domain_id")
    return LineItem(
        period_id=str(row["reconciliation_period_id"]),
        domain=str(row["domain"]),
        signup_count=int(row.get("signup_count") or 0),
        meeting_count=int(row.get("meeting_count") or 0),
        has_paying_customer=bool(row.get("has_paying_customer")),
        paying_customer_date=parse_optional_date(row.get("paying_customer_date")),
        motion_type=MotionType(str(motion)) if motion else None,
        applied_rate=parse_decimal(row.get("revshare_rate_applied")),
        fee_per_signup_applied=parse_decimal(row.get("fee_per_signup_applied"), _ZERO),
        fee_per_meeting_applied=parse_decimal(row.get("fee_per_meeting_applied"), _ZERO),
        revenue_submitted=parse_decimal(row.get("revenue_submitted")),
        revenue_notes=row.get("revenue_notes"),
        amount_owed=parse_decimal(row.get("amount_owed"), _ZERO),
        status=LineItemStatus(str(row.get("status") or LineItemStatus.PENDING.value)),
        dispute_reason=row.get("dispute_reason"),
        dispute_resolved_at=parse_optional_datetime(row.get("dispute_resolved_at")),
        dispute_resolution_notes=row.get("dispute_resolution_notes"),
        attributed_domain_id=str(domain_id) if domain_id is not None else None,
        line_item_id=str(row["id"]),
    )


def _line_item_payload(item: LineItem) -> Dict[str, Any]:
    return {
        "reconciliation_period_id": item.period_id,
        "attributed_domain_id": item.attributed_domain_id,
        "domain": item.domain,
        "signup_count": item.signup_count,
        "meeting_count": item.meeting_count,
        "has_paying_customer": item.has_paying_customer,
        "paying_customer_date": item.paying_customer_date.isoformat() if item.paying_customer_date else None,
        "motion_type": item.motion_type.value if item.motion_type else None,
        "revshare_rate_applied": money(item.applied_rate),
        "fee_per_signup_applied": money(item.fee_per_signup_applied),
        "fee_per_meeting_applied": money(item.fee_per_meeting_applied),
        "revenue_submitted": money(item.revenue_submitted),
        "revenue_notes": item.revenue_notes,
        "amount_owed": money(item.amount_owed),
        "status": item.status.value,
        "dispute_reason": item.dispute_reason,
        "dispute_resolved_at": optional_iso_utc(item.dispute_resolved_at, name="dispute_resolved_at"),
        "dispute_resolution_notes": item.dispute_resolution_notes,
    }


class SupabaseBillingStore:
    def __init__(
        self,
        client: Optional[Client] = None,
        *,
        default_review_window_days: int = DEFAULT_REVIEW_WINDOW_DAYS,
        default_estimated_acv: Decimal = DEFAULT_ESTIMATED_ACV,
    ):
        self._client = client
        self._default_review_window_days = default_review_window_days
        self._default_estimated_acv = default_estimated_acv

    @property
    def client(self) -> Client:
        return self._client or get_supabase()

    # Configuration

    def get_billing_config(self, tenant_id: str) -> Optional[BillingConfig]:
        response = execute(
            self.client.table(_CLIENT_CONFIG_TABLE).select("*").eq("id", tenant_id).limit(1),
            "get billing config",
        )
        rows = rows_of(response)
        if not rows or not rows[0].get("contract_start_date"):
            return None
        return _row_to_billing_config(rows[0], self._default_review_window_days, self._default_estimated_acv)

    # Periods

    def upsert_period(self, period: ReconciliationPeriod) -> ReconciliationPeriod:
        dates = {
            "start_date": period.start.isoformat(),
            "end_date": period.end.isoformat(),
            "review_deadline": period.review_deadline.isoformat(),
        }
        if period.period_id is not None:
            response = execute(
                self.client.table(_PERIODS_TABLE).update(dates).eq("id", period.period_id),
                "update reconciliation period",
            )
        else:
            payload = {
                "client_config_id": period.tenant_id,
                "period_name": period.label,
                "status": period.status.value,
                "auto_generated": period.auto_generated,
                "estimated_total": money(period.estimated_total),
                **dates,
                **_totals_payload(period.totals),
            }
            response = execute(
                self.client.table(_PERIODS_TABLE).upsert(payload, on_conflict="client_config_id,period_name"),
                "create reconciliation period",
            )
        rows = rows_of(response)
        return _row_to_period(rows[0]) if rows else period

    def get_period(self, period_id: str) -> Optional[ReconciliationPeriod]:
        response = execute(
            self.client.table(_PERIODS_TABLE).select("*").eq("id", period_id).limit(1),
            "get reconciliation period",
        )
        rows = rows_of(response)
        return _row_to_period(rows[0]) if rows else None

    def list_periods(self, tenant_id: str) -> List[ReconciliationPeriod]:
        rows = fetch_all(
            lambda: self.client.table(_PERIODS_TABLE)
            .select("*")
            .eq("client_config_id", tenant_id)
            .order("start_date"),
            "list reconciliation periods",
        )
        return [_row_to_period(row) for row in rows]

    def save_period(self, period: ReconciliationPeriod) -> ReconciliationPeriod:
        if period.period_id is None:
            return self.upsert_period(period)
        payload = {
            "status": period.status.value,
            "estimated_total": money(period.estimated_total),
            "auto_billed_at": optional_iso_utc(period.auto_billed_at, name="auto_billed_at"),
            "sent_to_client_at": optional_iso_utc(period.sent_to_client_at, name="sent_to_client_at"),
            "client_submitted_at": optional_iso_utc(period.client_submitted_at, name="client_submitted_at"),
            "finalized_at": optional_iso_utc(period.finalized_at, name="finalized_at"),
            "finalized_by": period.finalized_by,
            "agency_notes": period.notes,
            **_totals_payload(period.totals),
        }
        response = execute(
            self.client.table(_PERIODS_TABLE).update(payload).eq("id", period.period_id),
            "save reconciliation period",
        )
        rows = rows_of(response)
        return _row_to_period(rows[0]) if rows else period

    def update_period_totals(
        self,
        period_id: str,
        totals: PeriodTotals,
        estimated_total: Optional[Decimal] = None,
    ) -> None:
        payload = _totals_payload(totals)
        if estimated_total is not None:
            payload["estimated_total"] = money(estimated_total)
        execute(
            self.client.table(_PERIODS_TABLE).update(payload).eq("id", period_id),
            "update period totals",
        )

    # Line items

    def list_line_items(self, period_id: str) -> List[LineItem]:
        rows = fetch_all(
            lambda: self.client.table(_LINE_ITEMS_TABLE)
            .select("*")
            .eq("reconciliation_period_id", period_id)
            .order("domain"),
            "list line items",
        )
        return [_row_to_line_item(row) for row in rows]

    def get_line_item(self, line_item_id: str) -> Optional[LineItem]:
        response = execute(
            self.client.table(_LINE_ITEMS_TABLE).select("*").eq("id", line_item_id).limit(1),
            "get line item",
        )
        rows = rows_of(response)
        return _row_to_line_item(rows[0]) if rows else None

    def upsert_line_items(self, items: Sequence[LineItem]) -> List[LineItem]:
        if not items:
            return []
        response = execute(
            self.client.table(_LINE_ITEMS_TABLE).upsert(
                [_line_item_payload(item) for item in items],
                on_conflict="reconciliation_period_id,domain",
            ),
            "upsert line items",
        )
        return [_row_to_line_item(row) for row in rows_of(response)]

    def delete_line_items(self, line_item_ids: Sequence[str]) -> None:
        if not line_item_ids:
            return
        execute(
            self.client.table(_LINE_ITEMS_TABLE).delete().in_("id", list(line_item_ids)),
            "delete line items",
        )

    def delete_pending_line_items_for_domain(self, tenant_id: str, domain: str) -> List[str]:
        period_rows = fetch_all(
            lambda: self.client.table(_PERIODS_TABLE)
            .select("id")
            .eq("client_config_id", tenant_id)
            .not_.in_("status", _TERMINAL)
            .order("id"),
            "list open periods",
        )
        period_ids = [str(row["id"]) for row in period_rows]
        if not period_ids:
            return []
        response = execute(
            self.client.table(_LINE_ITEMS_TABLE)
            .delete()
            .in_("reconciliation_period_id", period_ids)
            .eq("domain", domain)
            .eq("status", LineItemStatus.PENDING.value),
            "delete pending line items",
        )
        return sorted({str(row["reconciliation_period_id"]) for row in rows_of(response)})


__all__ = ["SupabaseBillingStore"]
