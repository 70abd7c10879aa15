"""
Progress reporting for attribution runs.

The batch processor reports through a ProcessingObserver instead of logging
directly; LoggingObserver is the default and writes to the standard logger.
"""

from __future__ import annotations

import logging
from typing import Protocol

from domain.jobs import AttributionJob, JobCounters

logger = logging.getLogger(__name__)


class ProcessingObserver(Protocol):
    def job_started(self, job: AttributionJob) -> None:
        ...

    def batch_completed(self, job: AttributionJob, batch_number: int, batch_events: int, counters: JobCounters) -> None:
        ...

    def event_failed(self, job: AttributionJob, event_id: str, error: Exception) -> None:
        ...

    def job_completed(self, job: AttributionJob, counters: JobCounters) -> None:
        ...

    def job_cancelled(self, job: AttributionJob, counters: JobCounters) -> None:
        ...

    def job_failed(self, job: AttributionJob, counters: JobCounters, error: Exception) -> None:
        ...


class LoggingObserver:
    def job_started(self, job: AttributionJob) -> None:
        logger.info(
            "Starting attribution processing for tenant %s",
            job.tenant_id,
            extra={"job_id": job.job_id, "tenant_id": job.tenant_id, "total_events": job.total_events},
        )

    def batch_completed(self, job: AttributionJob, batch_number: int, batch_events: int, counters: JobCounters) -> None:
        logger.info(
            "Batch %d done (%d events, %d processed so far)",
            batch_number,
            batch_events,
            counters.processed,
            extra={"job_id": job.job_id, "tenant_id": job.tenant_id, "batch_number": batch_number},
        )

    def event_failed(self, job: AttributionJob, event_id: str, error: Exception) -> None:
        logger.warning(
            "Failed to process event %s: %s",
            event_id,
            error,
            extra={"job_id": job.job_id, "tenant_id": job.tenant_id, "event_id": event_id},
        )

    def job_completed(self, job: AttributionJob, counters: JobCounters) -> None:
        logger.info(
            "Completed attribution processing for tenant %s: %d processed, %d hard, %d soft, %d no match, %d errors",
            job.tenant_id,
            counters.processed,
            counters.hard_matches,
            counters.soft_matches,
            counters.no_matches,
            counters.errors,
            extra={"job_id": job.job_id, "tenant_id": job.tenant_id},
        )

    def job_cancelled(self, job: AttributionJob, counters: JobCounters) -> None:
        logger.info(
            "Attribution processing cancelled for tenant %s after %d events",
            job.tenant_id,
            counters.processed,
            extra={"job_id": job.job_id, "tenant_id": job.tenant_id},
        )

    def job_failed(self, job: AttributionJob, counters: JobCounters, error: Exception) -> None:
        logger.error(
            "Failed attribution processing for tenant %s: %s",
            job.tenant_id,
            error,
            extra={"job_id": job.job_id, "tenant_id": job.tenant_id, "processed": counters.processed},
        )


__all__ = ["ProcessingObserver", "LoggingObserver"]
