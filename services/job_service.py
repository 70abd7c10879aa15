"""
Attribution run triggers.

start_attribution_run is start-or-noop: while a tenant has a PENDING or RUNNING
job, that job is returned instead of creating a second one. A new job resumes
from the cursor of the tenant's most recent job so earlier events are not
reprocessed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from domain.jobs import AttributionJob
from services.batch_processor import BatchProcessor
from services.errors import NotFoundError
from services.locks import TenantLocks
from services.matcher import EventMatcher
from services.observers import ProcessingObserver
from services.ports import AttributionStore, EmailLog, EventSource, JobStore, TenantStore
from services.recorder import AttributionRecorder

logger = logging.getLogger(__name__)

_start_guard = TenantLocks("Attribution run start")


def start_attribution_run(
    tenant_id: str,
    jobs: JobStore,
    events: EventSource,
    *,
    batch_size: int = 1000,
    now: Optional[datetime] = None,
) -> Tuple[AttributionJob, bool]:
    """
    Create a PENDING job for the tenant unless one is already active.

    Returns:
        (job, created) where created is False when an active job was reused
    """

    with _start_guard.hold(tenant_id):
        active = jobs.get_active_job(tenant_id)
        if active is not None:
            logger.info(
                "Attribution run already active for tenant %s",
                tenant_id,
                extra={"tenant_id": tenant_id, "job_id": active.job_id},
            )
            return active, False

        cursor = jobs.latest_cursor(tenant_id)
        total = events.count_pending_events(tenant_id, cursor)
        job = jobs.create_job(
            tenant_id,
            batch_size,
            total,
            now or datetime.now(timezone.utc),
            cursor=cursor,
        )
        logger.info(
            "Created attribution job for tenant %s (%d pending events)",
            tenant_id,
            total,
            extra={"tenant_id": tenant_id, "job_id": job.job_id},
        )
        return job, True


def get_job(job_id: str, jobs: JobStore) -> AttributionJob:
    job = jobs.get_job(job_id)
    if job is None:
        raise NotFoundError("Attribution job", job_id)
    return job


def request_cancellation(job_id: str, jobs: JobStore) -> AttributionJob:
    """
    Ask a running job to stop at its next batch boundary.

    Finished jobs are returned unchanged.
    """

    job = get_job(job_id, jobs)
    if not job.is_active:
        return job
    updated = jobs.request_cancel(job_id)
    if updated is None:
        raise NotFoundError("Attribution job", job_id)
    logger.info("Cancellation requested for job %s", job_id, extra={"job_id": job_id, "tenant_id": job.tenant_id})
    return updated


def run_attribution_job(
    job: AttributionJob,
    *,
    events: EventSource,
    email_log: EmailLog,
    tenants: TenantStore,
    attribution: AttributionStore,
    jobs: JobStore,
    batch_delay_ms: int = 100,
    observer: Optional[ProcessingObserver] = None,
) -> AttributionJob:
    """
    Execute a job created by start_attribution_run to completion.

    Raises whatever aborted the run; the job is already marked FAILED by then.
    """

    processor = BatchProcessor(
        events,
        EventMatcher(email_log, tenants),
        AttributionRecorder(attribution),
        jobs,
        observer=observer,
        batch_delay_ms=batch_delay_ms,
    )
    return processor.process_tenant_events(job)


__all__ = ["start_attribution_run", "get_job", "request_cancellation", "run_attribution_job"]
