"""
Batch processor for attribution runs.

Drives the matcher and recorder over every pending event of one tenant in
bounded batches. The job value passed in is the only run state; nothing is
kept at module level.

Loop:
- honor a cancel request (checked before each batch, so a batch always completes)
- fetch up to batch_size events strictly after the checkpoint cursor
- match + record each event; a failing event is recorded against its id,
  counted in ``errors`` and the cursor still moves past it
- persist counters and cursor in one checkpoint write, notify the observer
- pause batch_delay_ms, repeat until a fetch returns nothing

A store failure outside a single event (fetch, checkpoint, error log) marks the
job FAILED with the message and is re-raised so the executor can retry; the
checkpoint stays at the last completed batch.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable, Optional

from domain.events import BusinessEvent
from domain.jobs import AttributionJob, EventProcessingError, JobCounters
from services.matcher import EventMatcher
from services.observers import LoggingObserver, ProcessingObserver
from services.ports import EventSource, JobStore
from services.recorder import AttributionRecorder


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BatchProcessor:
    def __init__(
        self,
        events: EventSource,
        matcher: EventMatcher,
        recorder: AttributionRecorder,
        jobs: JobStore,
        *,
        observer: Optional[ProcessingObserver] = None,
        batch_delay_ms: int = 100,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = _utc_now,
    ):
        self._events = events
        self._matcher = matcher
        self._recorder = recorder
        self._jobs = jobs
        self._observer = observer or LoggingObserver()
        self._batch_delay_ms = batch_delay_ms
        self._sleep = sleep
        self._now = now

    def _cancel_requested(self, job_id: str) -> bool:
        current = self._jobs.get_job(job_id)
        return current is not None and current.cancel_requested

    def _process_event(self, job: AttributionJob, event: BusinessEvent, counters: JobCounters) -> JobCounters:
        try:
            result = self._matcher.match(event)
            self._recorder.record(event, result)
        except Exception as exc:
            self._jobs.record_event_error(
                EventProcessingError(job_id=job.job_id, source_event_id=event.event_id, message=str(exc))
            )
            self._observer.event_failed(job, event.event_id, exc)
            return counters.count_error()
        return counters.count_match(result.match_kind)

    def process_tenant_events(self, job: AttributionJob) -> AttributionJob:
        """
        Run (or resume) ``job`` until the tenant has no pending events.

        Args:
            job: The job to run; its checkpoint cursor, counters and batch
                number are the resume point.

        Returns:
            The job as stored after completion or cancellation.

        Raises:
            Exception: whatever aborted the run, after the job is marked FAILED
        """

        job = self._jobs.mark_running(job.job_id, self._now())
        self._observer.job_started(job)

        counters = job.counters
        cursor = job.checkpoint_cursor
        batch_number = job.current_batch

        try:
            while True:
                if self._cancel_requested(job.job_id):
                    self._jobs.mark_cancelled(job.job_id, self._now())
                    self._observer.job_cancelled(job, counters)
                    break

                batch = self._events.fetch_events_after(job.tenant_id, cursor, job.batch_size)
                if not batch:
                    self._jobs.mark_completed(job.job_id, self._now())
                    self._observer.job_completed(job, counters)
                    break

                batch_number += 1
                for event in batch:
                    counters = self._process_event(job, event, counters)
                    cursor = event.event_id

                self._jobs.checkpoint(job.job_id, counters, cursor, batch_number, self._now())
                self._observer.batch_completed(job, batch_number, len(batch), counters)

                if self._batch_delay_ms > 0:
                    self._sleep(self._batch_delay_ms / 1000.0)
        except Exception as exc:
            self._jobs.mark_failed(job.job_id, str(exc), self._now())
            self._observer.job_failed(job, counters, exc)
            raise

        return self._jobs.get_job(job.job_id) or job


__all__ = ["BatchProcessor"]
