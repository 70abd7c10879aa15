"""
Attribution API Endpoints.

Endpoints for starting, polling and cancelling attribution runs, and for the
agency/client review of attributed domains.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, status

from api.dependencies import (
    get_app_settings,
    get_attribution_store,
    get_billing_store,
    get_email_log,
    get_event_source,
    get_job_store,
    get_tenant_store,
)
from api.errors import to_http_exception
from api.models import (
    AttributedDomainResponse,
    AttributionJobResponse,
    AttributionRunRequest,
    DomainDisputeRequest,
    DomainPromotionRequest,
    DomainResolutionRequest,
    ManualEventRequest,
)
from domain.events import EventKind
from domain.jobs import AttributionJob
from domain.time import start_of_day_utc
from services.disputes import promote_domain, resolve_domain_dispute, submit_domain_dispute
from services.job_service import get_job, request_cancellation, run_attribution_job, start_attribution_run
from services.manual_entry import add_manual_event
from services.ports import AttributionStore, BillingStore, EmailLog, EventSource, JobStore, TenantStore
from services.settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter()


def _run_job_in_background(
    job: AttributionJob,
    events: EventSource,
    email_log: EmailLog,
    tenants: TenantStore,
    attribution: AttributionStore,
    jobs: JobStore,
    batch_delay_ms: int,
) -> None:
    try:
        run_attribution_job(
            job,
            events=events,
            email_log=email_log,
            tenants=tenants,
            attribution=attribution,
            jobs=jobs,
            batch_delay_ms=batch_delay_ms,
        )
    except Exception:
        # The job row already carries FAILED and the message
        logger.exception("Attribution job %s aborted", job.job_id, extra={"job_id": job.job_id})


@router.post(
    "/attribution/runs",
    response_model=AttributionJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start Attribution Run",
    description="Start an attribution run for a tenant, or return the run that is already in progress.",
)
def start_run(
    request: AttributionRunRequest,
    background_tasks: BackgroundTasks,
    settings: Settings = Depends(get_app_settings),
    events: EventSource = Depends(get_event_source),
    email_log: EmailLog = Depends(get_email_log),
    tenants: TenantStore = Depends(get_tenant_store),
    attribution: AttributionStore = Depends(get_attribution_store),
    jobs: JobStore = Depends(get_job_store),
):
    """
    Start-or-noop attribution run.

    **How it works:**
    1. If the tenant already has a PENDING or RUNNING job, that job is returned (`created: false`)
    2. Otherwise a job is created from the last checkpoint and executed in the background
    3. Poll `GET /api/v1/attribution/runs/{job_id}` for progress
    """
    try:
        job, created = start_attribution_run(
            request.tenant_id,
            jobs,
            events,
            batch_size=request.batch_size or settings.batch_size,
        )
    except Exception as e:
        raise to_http_exception(e, "start attribution run")

    if created:
        background_tasks.add_task(
            _run_job_in_background,
            job,
            events,
            email_log,
            tenants,
            attribution,
            jobs,
            settings.batch_delay_ms,
        )
        logger.info("Queued attribution job %s", job.job_id, extra={"tenant_id": job.tenant_id, "job_id": job.job_id})

    return AttributionJobResponse.from_job(job, created=created)


@router.get(
    "/attribution/runs/{job_id}",
    response_model=AttributionJobResponse,
    summary="Get Attribution Run",
    description="Progress counters and status of an attribution run.",
)
def get_run(job_id: str, jobs: JobStore = Depends(get_job_store)):
    try:
        return AttributionJobResponse.from_job(get_job(job_id, jobs))
    except Exception as e:
        raise to_http_exception(e, "get attribution run")


@router.post(
    "/attribution/runs/{job_id}/cancel",
    response_model=AttributionJobResponse,
    summary="Cancel Attribution Run",
    description="Request cancellation; the run stops after its current batch.",
)
def cancel_run(job_id: str, jobs: JobStore = Depends(get_job_store)):
    try:
        return AttributionJobResponse.from_job(request_cancellation(job_id, jobs))
    except Exception as e:
        raise to_http_exception(e, "cancel attribution run")


@router.post(
    "/attribution/domains/{domain_id}/dispute",
    response_model=AttributedDomainResponse,
    summary="Dispute Attributed Domain",
)
def dispute_domain(
    domain_id: str,
    request: DomainDisputeRequest,
    attribution: AttributionStore = Depends(get_attribution_store),
):
    try:
        return AttributedDomainResponse.from_domain(submit_domain_dispute(domain_id, request.reason, attribution))
    except Exception as e:
        raise to_http_exception(e, "submit domain dispute")


@router.post(
    "/attribution/domains/{domain_id}/dispute/resolve",
    response_model=AttributedDomainResponse,
    summary="Resolve Domain Dispute",
    description="Approving a dispute removes the domain's pending line items from billing.",
)
def resolve_dispute(
    domain_id: str,
    request: DomainResolutionRequest,
    attribution: AttributionStore = Depends(get_attribution_store),
    billing: BillingStore = Depends(get_billing_store),
):
    try:
        record = resolve_domain_dispute(domain_id, request.approved, attribution, billing, notes=request.notes)
        return AttributedDomainResponse.from_domain(record)
    except Exception as e:
        raise to_http_exception(e, "resolve domain dispute")


@router.post(
    "/attribution/domains/{domain_id}/promote",
    response_model=AttributedDomainResponse,
    summary="Promote Domain",
    description="Client-confirmed attribution for a domain outside the window or without a match.",
)
def promote(
    domain_id: str,
    request: DomainPromotionRequest,
    attribution: AttributionStore = Depends(get_attribution_store),
):
    try:
        record = promote_domain(domain_id, request.promoted_by, attribution, notes=request.notes)
        return AttributedDomainResponse.from_domain(record)
    except Exception as e:
        raise to_http_exception(e, "promote domain")


@router.post(
    "/attribution/domains/manual-events",
    response_model=AttributedDomainResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add Manual Event",
    description="Record a sign-up, meeting or payment the client reports by hand.",
)
def create_manual_event(
    request: ManualEventRequest,
    attribution: AttributionStore = Depends(get_attribution_store),
    tenants: TenantStore = Depends(get_tenant_store),
):
    """
    Manual outcome entry.

    **How it works:**
    1. The domain is canonicalized (URLs and email addresses are accepted)
    2. A new domain is created as MANUAL; an unmatched or out-of-window one becomes CLIENT_PROMOTED
    3. The outcome is appended to the domain timeline and billed by the next sync
    """
    try:
        record = add_manual_event(
            request.tenant_id,
            request.domain,
            EventKind.parse(request.event_type),
            start_of_day_utc(request.event_date),
            attribution,
            tenants,
            contact_email=request.contact_email,
            notes=request.notes,
            added_by=request.added_by,
        )
        return AttributedDomainResponse.from_domain(record)
    except Exception as e:
        raise to_http_exception(e, "add manual event")
