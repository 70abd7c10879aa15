"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from domain.attribution import AttributedDomain
from domain.jobs import AttributionJob
from domain.reconciliation import LineItem, ReconciliationPeriod
from services.auto_billing import AutoBillResult
from services.billing_sync import SyncResult


# ============================================================================
# Attribution Models
# ============================================================================

class AttributionRunRequest(BaseModel):
    """Request to start (or join) an attribution run for a tenant."""
    tenant_id: str = Field(..., min_length=1, description="Tenant (client config) ID")
    batch_size: Optional[int] = Field(None, ge=1, le=10000, description="Events per batch")

    class Config:
        json_schema_extra = {
            "example": {
                "tenant_id": "123e4567-e89b-12d3-a456-426614174000",
                "batch_size": 1000
            }
        }


class AttributionJobResponse(BaseModel):
    """Progress of one attribution run."""
    job_id: str
    tenant_id: str
    status: str
    total_events: int
    processed_events: int
    hard_matches: int
    soft_matches: int
    no_matches: int
    errors: int
    progress_percent: float
    current_batch: int
    cancel_requested: bool
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created: Optional[bool] = None

    class Config:
        json_schema_extra = {
            "example": {
                "job_id": "123e4567-e89b-12d3-a456-426614174001",
                "tenant_id": "123e4567-e89b-12d3-a456-426614174000",
                "status": "RUNNING",
                "total_events": 2500,
                "processed_events": 1000,
                "hard_matches": 310,
                "soft_matches": 120,
                "no_matches": 570,
                "errors": 0,
                "progress_percent": 40.0,
                "current_batch": 1,
                "cancel_requested": False,
                "started_at": "2025-01-01T12:00:00Z",
                "completed_at": None,
                "error_message": None,
                "created": True
            }
        }

    @classmethod
    def from_job(cls, job: AttributionJob, created: Optional[bool] = None) -> "AttributionJobResponse":
        return cls(
            job_id=job.job_id,
            tenant_id=job.tenant_id,
            status=job.status.value,
            total_events=job.total_events,
            processed_events=job.counters.processed,
            hard_matches=job.counters.hard_matches,
            soft_matches=job.counters.soft_matches,
            no_matches=job.counters.no_matches,
            errors=job.counters.errors,
            progress_percent=job.progress_percent,
            current_batch=job.current_batch,
            cancel_requested=job.cancel_requested,
            started_at=job.started_at,
            completed_at=job.completed_at,
            error_message=job.error_message,
            created=created,
        )


# ============================================================================
# Reconciliation Models
# ============================================================================

class TenantRequest(BaseModel):
    """Request scoped to one tenant."""
    tenant_id: str = Field(..., min_length=1, description="Tenant (client config) ID")
    as_of: Optional[date] = Field(None, description="Run as of this date (default: today, UTC)")


class AutoBillRequest(TenantRequest):
    """Request to auto-bill overdue periods."""
    dry_run: bool = Field(False, description="Compute results without writing")

    class Config:
        json_schema_extra = {
            "example": {
                "tenant_id": "123e4567-e89b-12d3-a456-426614174000",
                "dry_run": True
            }
        }


class PeriodSyncSummary(BaseModel):
    period_id: str
    label: str
    line_items_upserted: int
    line_items_deleted: int
    paying_customers: int
    amount_owed: Decimal
    estimated_total: Decimal


class SyncResponse(BaseModel):
    """Result of one billing sync."""
    tenant_id: str
    as_of: date
    periods_created: int
    periods_updated: int
    total_periods: int
    line_items_upserted: int
    line_items_deleted: int
    populated: List[PeriodSyncSummary]

    @classmethod
    def from_result(cls, result: SyncResult) -> "SyncResponse":
        return cls(
            tenant_id=result.tenant_id,
            as_of=result.as_of,
            periods_created=result.periods_created,
            periods_updated=result.periods_updated,
            total_periods=result.total_periods,
            line_items_upserted=result.line_items_upserted,
            line_items_deleted=result.line_items_deleted,
            populated=[
                PeriodSyncSummary(
                    period_id=p.period_id,
                    label=p.label,
                    line_items_upserted=p.line_items_upserted,
                    line_items_deleted=p.line_items_deleted,
                    paying_customers=p.totals.paying_customers,
                    amount_owed=p.totals.amount_owed,
                    estimated_total=p.estimated_total,
                )
                for p in result.populated
            ],
        )


class AutoBillPeriodResponse(BaseModel):
    period_id: str
    label: str
    review_deadline: date
    total_line_items: int
    items_auto_billed: int
    items_already_submitted: int
    total_amount_owed: Decimal
    estimated_total: Decimal
    dry_run: bool

    @classmethod
    def from_result(cls, result: AutoBillResult) -> "AutoBillPeriodResponse":
        return cls(
            period_id=result.period_id,
            label=result.label,
            review_deadline=result.review_deadline,
            total_line_items=result.total_line_items,
            items_auto_billed=result.items_auto_billed,
            items_already_submitted=result.items_already_submitted,
            total_amount_owed=result.total_amount_owed,
            estimated_total=result.estimated_total,
            dry_run=result.dry_run,
        )


class ManualPeriodRequest(BaseModel):
    """Request to create an ad-hoc reconciliation period."""
    tenant_id: str = Field(..., min_length=1)
    start_date: date
    end_date: date
    label: Optional[str] = None


class PeriodStatusRequest(BaseModel):
    """Request to move a period through its lifecycle."""
    status: str = Field(..., description="Target status, e.g. PENDING_CLIENT")
    notes: Optional[str] = None
    actor: Optional[str] = Field(None, description="Recorded as finalized_by when finalizing")

    class Config:
        json_schema_extra = {
            "example": {
                "status": "PENDING_CLIENT",
                "notes": "Sent to client for review"
            }
        }


class PeriodResponse(BaseModel):
    period_id: Optional[str]
    tenant_id: str
    label: str
    start_date: date
    end_date: date
    review_deadline: date
    status: str
    total_paying_customers: int
    total_signups: int
    total_meetings: int
    total_revenue_submitted: Decimal
    total_amount_owed: Decimal
    estimated_total: Decimal
    auto_generated: bool
    sent_to_client_at: Optional[datetime] = None
    client_submitted_at: Optional[datetime] = None
    finalized_at: Optional[datetime] = None
    finalized_by: Optional[str] = None
    auto_billed_at: Optional[datetime] = None
    notes: Optional[str] = None

    @classmethod
    def from_period(cls, period: ReconciliationPeriod) -> "PeriodResponse":
        return cls(
            period_id=period.period_id,
            tenant_id=period.tenant_id,
            label=period.label,
            start_date=period.start,
            end_date=period.end,
            review_deadline=period.review_deadline,
            status=period.status.value,
            total_paying_customers=period.totals.paying_customers,
            total_signups=period.totals.signups,
            total_meetings=period.totals.meetings,
            total_revenue_submitted=period.totals.revenue_submitted,
            total_amount_owed=period.totals.amount_owed,
            estimated_total=period.estimated_total,
            auto_generated=period.auto_generated,
            sent_to_client_at=period.sent_to_client_at,
            client_submitted_at=period.client_submitted_at,
            finalized_at=period.finalized_at,
            finalized_by=period.finalized_by,
            auto_billed_at=period.auto_billed_at,
            notes=period.notes,
        )


class RevenueSubmissionRequest(BaseModel):
    """Revenue a client reports for one domain in one period."""
    amount: Decimal = Field(..., ge=0, description="Revenue in the contract currency")
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "amount": "10000.00",
                "notes": "Annual plan, invoiced March"
            }
        }


class LineItemDisputeRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class LineItemResolutionRequest(BaseModel):
    confirmed: bool
    notes: str = ""


class LineItemResponse(BaseModel):
    line_item_id: Optional[str]
    period_id: str
    domain: str
    signup_count: int
    meeting_count: int
    has_paying_customer: bool
    paying_customer_date: Optional[date] = None
    motion_type: Optional[str] = None
    applied_rate: Optional[Decimal] = None
    revenue_submitted: Optional[Decimal] = None
    revenue_notes: Optional[str] = None
    amount_owed: Decimal
    status: str
    dispute_reason: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "line_item_id": "123e4567-e89b-12d3-a456-426614174005",
                "period_id": "123e4567-e89b-12d3-a456-426614174004",
                "domain": "acme.com",
                "signup_count": 1,
                "meeting_count": 0,
                "has_paying_customer": True,
                "paying_customer_date": "2025-03-05",
                "motion_type": "PLG",
                "applied_rate": "0.20",
                "revenue_submitted": "10000.00",
                "revenue_notes": None,
                "amount_owed": "2000.00",
                "status": "SUBMITTED",
                "dispute_reason": None
            }
        }

    @classmethod
    def from_item(cls, item: LineItem) -> "LineItemResponse":
        return cls(
            line_item_id=item.line_item_id,
            period_id=item.period_id,
            domain=item.domain,
            signup_count=item.signup_count,
            meeting_count=item.meeting_count,
            has_paying_customer=item.has_paying_customer,
            paying_customer_date=item.paying_customer_date,
            motion_type=item.motion_type.value if item.motion_type else None,
            applied_rate=item.applied_rate,
            revenue_submitted=item.revenue_submitted,
            revenue_notes=item.revenue_notes,
            amount_owed=item.amount_owed,
            status=item.status.value,
            dispute_reason=item.dispute_reason,
        )


# ============================================================================
# Domain Review Models
# ============================================================================

class DomainDisputeRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class DomainResolutionRequest(BaseModel):
    approved: bool
    notes: Optional[str] = None


class DomainPromotionRequest(BaseModel):
    promoted_by: str = Field(..., min_length=1)
    notes: Optional[str] = None


class AttributedDomainResponse(BaseModel):
    domain_id: Optional[str]
    tenant_id: str
    domain: str
    status: str
    match_type: Optional[str] = None
    is_within_window: bool
    dispute_reason: Optional[str] = None
    promoted_by: Optional[str] = None

    @classmethod
    def from_domain(cls, record: AttributedDomain) -> "AttributedDomainResponse":
        return cls(
            domain_id=record.domain_id,
            tenant_id=record.tenant_id,
            domain=record.domain,
            status=record.status.value,
            match_type=record.match_type.value if record.match_type else None,
            is_within_window=record.is_within_window,
            dispute_reason=record.dispute_reason,
            promoted_by=record.promoted_by,
        )


class ManualEventRequest(BaseModel):
    """An outcome the client reports by hand."""
    tenant_id: str = Field(..., min_length=1, description="Tenant (client config) ID")
    domain: str = Field(..., min_length=1, description="Company domain, URL or email address")
    event_type: str = Field(..., description="sign_up, meeting_booked or paying_customer")
    event_date: date
    contact_email: Optional[str] = None
    notes: Optional[str] = None
    added_by: str = Field("client", min_length=1)

    class Config:
        json_schema_extra = {
            "example": {
                "tenant_id": "123e4567-e89b-12d3-a456-426614174000",
                "domain": "https://www.acme.com/pricing",
                "event_type": "paying_customer",
                "event_date": "2025-03-05",
                "contact_email": "jane@acme.com",
                "notes": "Signed the annual plan after the March webinar"
            }
        }


class ManualDomainRequest(BaseModel):
    """Add a paying domain to an open reconciliation period."""
    domain_id: str = Field(..., min_length=1)
    billing_start_date: date = Field(..., description="First day the domain counts as a paying customer")
    added_by: str = Field("manual-reconciliation-add", min_length=1)
