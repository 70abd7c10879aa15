"""
Reconciliation API Endpoints.

Endpoints for billing sync, auto-billing, the period lifecycle and client
revenue submission.
"""

from typing import List

from fastapi import APIRouter, Depends, status

from api.dependencies import get_attribution_store, get_billing_store
from api.errors import to_http_exception
from api.models import (
    AutoBillPeriodResponse,
    AutoBillRequest,
    LineItemDisputeRequest,
    LineItemResolutionRequest,
    LineItemResponse,
    ManualDomainRequest,
    ManualPeriodRequest,
    PeriodResponse,
    PeriodStatusRequest,
    RevenueSubmissionRequest,
    SyncResponse,
    TenantRequest,
)
from domain.reconciliation import PeriodStatus
from services.auto_billing import auto_bill_overdue
from services.billing_sync import create_manual_period, get_period, sync_tenant_billing
from services.manual_entry import add_domain_to_period
from services.ports import AttributionStore, BillingStore
from services.reconciliation_service import (
    change_period_status,
    flag_line_item_dispute,
    resolve_line_item_dispute,
    submit_line_item_revenue,
)

router = APIRouter()


@router.post(
    "/reconciliation/sync",
    response_model=SyncResponse,
    summary="Sync Billing",
    description="Create missing periods and refresh line items of every open or overdue period.",
)
def sync_billing(
    request: TenantRequest,
    billing: BillingStore = Depends(get_billing_store),
    attribution: AttributionStore = Depends(get_attribution_store),
):
    """
    Bring a tenant's reconciliation periods up to date.

    Finalized and auto-billed periods are never touched. A second sync for the
    same tenant while one is running returns 409.
    """
    try:
        result = sync_tenant_billing(request.tenant_id, billing, attribution, as_of=request.as_of)
        return SyncResponse.from_result(result)
    except Exception as e:
        raise to_http_exception(e, "sync billing")


@router.post(
    "/reconciliation/auto-bill",
    response_model=List[AutoBillPeriodResponse],
    summary="Auto-bill Overdue Periods",
    description="Close periods past their review deadline without a client submission at estimated revenue.",
)
def auto_bill(request: AutoBillRequest, billing: BillingStore = Depends(get_billing_store)):
    try:
        results = auto_bill_overdue(request.tenant_id, billing, as_of=request.as_of, dry_run=request.dry_run)
        return [AutoBillPeriodResponse.from_result(r) for r in results]
    except Exception as e:
        raise to_http_exception(e, "auto-bill periods")


@router.post(
    "/reconciliation/periods",
    response_model=PeriodResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Manual Period",
)
def create_period(request: ManualPeriodRequest, billing: BillingStore = Depends(get_billing_store)):
    try:
        period = create_manual_period(
            request.tenant_id,
            request.start_date,
            request.end_date,
            billing,
            label=request.label,
        )
        return PeriodResponse.from_period(period)
    except Exception as e:
        raise to_http_exception(e, "create period")


@router.get(
    "/reconciliation/periods/{period_id}",
    response_model=PeriodResponse,
    summary="Get Period",
)
def read_period(period_id: str, billing: BillingStore = Depends(get_billing_store)):
    try:
        return PeriodResponse.from_period(get_period(period_id, billing))
    except Exception as e:
        raise to_http_exception(e, "get period")


@router.get(
    "/reconciliation/periods/{period_id}/line-items",
    response_model=List[LineItemResponse],
    summary="List Period Line Items",
)
def list_period_line_items(period_id: str, billing: BillingStore = Depends(get_billing_store)):
    try:
        get_period(period_id, billing)
        return [LineItemResponse.from_item(item) for item in billing.list_line_items(period_id)]
    except Exception as e:
        raise to_http_exception(e, "list line items")


@router.patch(
    "/reconciliation/periods/{period_id}/status",
    response_model=PeriodResponse,
    summary="Change Period Status",
    description="Move a period through DRAFT, PENDING_CLIENT, CLIENT_SUBMITTED, UNDER_REVIEW and FINALIZED.",
)
def update_period_status(
    period_id: str,
    request: PeriodStatusRequest,
    billing: BillingStore = Depends(get_billing_store),
):
    """
    Change a period's status.

    **Errors:**
    - 400: unknown status
    - 404: period not found
    - 409: transition not allowed (finalized and auto-billed periods are terminal)
    """
    try:
        requested = PeriodStatus(request.status.strip().upper())
        period = change_period_status(period_id, requested, billing, notes=request.notes, actor=request.actor)
        return PeriodResponse.from_period(period)
    except Exception as e:
        raise to_http_exception(e, "change period status")


@router.post(
    "/reconciliation/line-items/{line_item_id}/revenue",
    response_model=LineItemResponse,
    summary="Submit Revenue",
    description="Record revenue a client reports for a domain; the fee and period totals are recomputed.",
)
def submit_revenue(
    line_item_id: str,
    request: RevenueSubmissionRequest,
    billing: BillingStore = Depends(get_billing_store),
):
    try:
        item = submit_line_item_revenue(line_item_id, request.amount, billing, notes=request.notes)
        return LineItemResponse.from_item(item)
    except Exception as e:
        raise to_http_exception(e, "submit revenue")


@router.post(
    "/reconciliation/line-items/{line_item_id}/dispute",
    response_model=LineItemResponse,
    summary="Dispute Line Item",
)
def dispute_line_item(
    line_item_id: str,
    request: LineItemDisputeRequest,
    billing: BillingStore = Depends(get_billing_store),
):
    try:
        return LineItemResponse.from_item(flag_line_item_dispute(line_item_id, request.reason, billing))
    except Exception as e:
        raise to_http_exception(e, "dispute line item")


@router.post(
    "/reconciliation/line-items/{line_item_id}/dispute/resolve",
    response_model=LineItemResponse,
    summary="Resolve Line Item Dispute",
)
def resolve_line_item(
    line_item_id: str,
    request: LineItemResolutionRequest,
    billing: BillingStore = Depends(get_billing_store),
):
    try:
        item = resolve_line_item_dispute(line_item_id, request.confirmed, request.notes, billing)
        return LineItemResponse.from_item(item)
    except Exception as e:
        raise to_http_exception(e, "resolve line item dispute")


@router.post(
    "/reconciliation/periods/{period_id}/domains",
    response_model=LineItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add Domain To Period",
    description="Bill a paying domain in a DRAFT or PENDING_CLIENT period from an explicit billing start date.",
)
def add_domain(
    period_id: str,
    request: ManualDomainRequest,
    billing: BillingStore = Depends(get_billing_store),
    attribution: AttributionStore = Depends(get_attribution_store),
):
    try:
        item = add_domain_to_period(
            period_id,
            request.domain_id,
            request.billing_start_date,
            billing,
            attribution,
            added_by=request.added_by,
        )
        return LineItemResponse.from_item(item)
    except Exception as e:
        raise to_http_exception(e, "add domain to period")
