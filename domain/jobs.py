"""
Domain: attribution processing jobs.

Contract excerpts implemented here:
- Job states: PENDING -> RUNNING -> COMPLETED | FAILED, plus CANCELLED which is
  honored only at a batch boundary.
- At most one PENDING/RUNNING job per tenant.
- The checkpoint cursor is the id of the last event whose processing finished
  (successfully or with a recorded error). Counters and cursor are always
  persisted together, once per batch.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional

from .attribution import MatchKind
from .time import require_utc_timestamp


class JobStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


ACTIVE_JOB_STATUSES = (JobStatus.PENDING, JobStatus.RUNNING)


@dataclass(frozen=True, slots=True)
class JobCounters:
    processed: int = 0
    hard_matches: int = 0
    soft_matches: int = 0
    no_matches: int = 0
    errors: int = 0

    def count_match(self, kind: MatchKind) -> "JobCounters":
        return replace(
            self,
            processed=self.processed + 1,
            hard_matches=self.hard_matches + (kind is MatchKind.HARD_MATCH),
            soft_matches=self.soft_matches + (kind is MatchKind.SOFT_MATCH),
            no_matches=self.no_matches + (kind is MatchKind.NO_MATCH),
        )

    def count_error(self) -> "JobCounters":
        return replace(self, processed=self.processed + 1, errors=self.errors + 1)


@dataclass(frozen=True, slots=True)
class AttributionJob:
    job_id: str
    tenant_id: str
    status: JobStatus = JobStatus.PENDING
    batch_size: int = 1000
    total_events: int = 0
    counters: JobCounters = JobCounters()
    checkpoint_cursor: Optional[str] = None
    current_batch: int = 0
    cancel_requested: bool = False
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    last_checkpoint_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    def __post_init__(self) -> None:
        if self.batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        for name in ("created_at", "started_at", "last_checkpoint_at", "completed_at"):
            value = getattr(self, name)
            if value is not None:
                require_utc_timestamp(name, value)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_JOB_STATUSES

    @property
    def progress_percent(self) -> float:
        if self.total_events <= 0:
            return 100.0 if self.status is JobStatus.COMPLETED else 0.0
        return round(min(100.0, self.counters.processed * 100.0 / self.total_events), 1)


@dataclass(frozen=True, slots=True)
class EventProcessingError:
    job_id: str
    source_event_id: str
    message: str


__all__ = [
    "JobStatus",
    "ACTIVE_JOB_STATUSES",
    "JobCounters",
    "AttributionJob",
    "EventProcessingError",
]
