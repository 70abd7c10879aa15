"""
Processing job repository (persistence).

Tables:
- processing_job: one row per attribution run with counters and checkpoint
- event_processing_error: one row per event that failed inside a run
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Mapping, Optional
from uuid import uuid4

from supabase import Client  # type: ignore[import-not-found]

from domain.jobs import ACTIVE_JOB_STATUSES, AttributionJob, EventProcessingError, JobCounters, JobStatus
from repositories.client import (
    RepositoryError,
    execute,
    get_supabase,
    parse_optional_datetime,
    rows_of,
    to_iso_utc,
)

_JOBS_TABLE: str = "processing_job"
_ERRORS_TABLE: str = "event_processing_error"

_ACTIVE = [s.value for s in ACTIVE_JOB_STATUSES]


def _row_to_job(row: Mapping[str, Any]) -> AttributionJob:
    cursor = row.get("last_processed_event_id")
    return AttributionJob(
        job_id=str(row["id"]),
        tenant_id=str(row["client_config_id"]),
        status=JobStatus(str(row.get("status") or JobStatus.PENDING.value)),
        batch_size=int(row.get("batch_size") or 1000),
        total_events=int(row.get("total_events") or 0),
        counters=JobCounters(
            processed=int(row.get("processed_events") or 0),
            hard_matches=int(row.get("matched_hard") or 0),
            soft_matches=int(row.get("matched_soft") or 0),
            no_matches=int(row.get("no_match") or 0),
            errors=int(row.get("error_count") or 0),
        ),
        checkpoint_cursor=str(cursor) if cursor is not None else None,
        current_batch=int(row.get("current_batch") or 0),
        cancel_requested=bool(row.get("cancel_requested")),
        created_at=parse_optional_datetime(row.get("created_at")),
        started_at=parse_optional_datetime(row.get("started_at")),
        last_checkpoint_at=parse_optional_datetime(row.get("last_checkpoint_at")),
        completed_at=parse_optional_datetime(row.get("completed_at")),
        error_message=row.get("error_message"),
    )


class SupabaseJobStore:
    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        return self._client or get_supabase()

    def _update(self, job_id: str, values: Dict[str, Any], action: str) -> Optional[AttributionJob]:
        response = execute(self.client.table(_JOBS_TABLE).update(values).eq("id", job_id), action)
        rows = rows_of(response)
        return _row_to_job(rows[0]) if rows else None

    def get_job(self, job_id: str) -> Optional[AttributionJob]:
        response = execute(self.client.table(_JOBS_TABLE).select("*").eq("id", job_id).limit(1), "get job")
        rows = rows_of(response)
        return _row_to_job(rows[0]) if rows else None

    def get_active_job(self, tenant_id: str) -> Optional[AttributionJob]:
        response = execute(
            self.client.table(_JOBS_TABLE)
            .select("*")
            .eq("client_config_id", tenant_id)
            .in_("status", _ACTIVE)
            .order("created_at", desc=True)
            .limit(1),
            "get active job",
        )
        rows = rows_of(response)
        return _row_to_job(rows[0]) if rows else None

    def latest_cursor(self, tenant_id: str) -> Optional[str]:
        response = execute(
            self.client.table(_JOBS_TABLE)
            .select("last_processed_event_id")
            .eq("client_config_id", tenant_id)
            .not_.is_("last_processed_event_id", "null")
            .order("created_at", desc=True)
            .limit(1),
            "get latest checkpoint",
        )
        rows = rows_of(response)
        return str(rows[0]["last_processed_event_id"]) if rows else None

    def create_job(
        self,
        tenant_id: str,
        batch_size: int,
        total_events: int,
        at: datetime,
        cursor: Optional[str] = None,
    ) -> AttributionJob:
        payload = {
            "id": str(uuid4()),
            "client_config_id": tenant_id,
            "job_type": "SINGLE_CLIENT",
            "status": JobStatus.PENDING.value,
            "batch_size": batch_size,
            "total_events": total_events,
            "last_processed_event_id": cursor,
            "created_at": to_iso_utc(at, name="created_at"),
        }
        response = execute(self.client.table(_JOBS_TABLE).insert(payload), "create job")
        rows = rows_of(response)
        return _row_to_job(rows[0] if rows else payload)

    def mark_running(self, job_id: str, at: datetime) -> AttributionJob:
        current = self.get_job(job_id)
        if current is None:
            raise RepositoryError(f"Failed to start job: {job_id} not found")
        values: Dict[str, Any] = {"status": JobStatus.RUNNING.value}
        if current.started_at is None:
            values["started_at"] = to_iso_utc(at, name="started_at")
        return self._update(job_id, values, "start job") or current

    def checkpoint(
        self,
        job_id: str,
        counters: JobCounters,
        cursor: Optional[str],
        batch_number: int,
        at: datetime,
    ) -> None:
        self._update(
            job_id,
            {
                "processed_events": counters.processed,
                "matched_hard": counters.hard_matches,
                "matched_soft": counters.soft_matches,
                "no_match": counters.no_matches,
                "error_count": counters.errors,
                "last_processed_event_id": cursor,
                "current_batch": batch_number,
                "last_checkpoint_at": to_iso_utc(at, name="last_checkpoint_at"),
            },
            "checkpoint job",
        )

    def mark_completed(self, job_id: str, at: datetime) -> None:
        self._update(
            job_id,
            {"status": JobStatus.COMPLETED.value, "completed_at": to_iso_utc(at, name="completed_at")},
            "complete job",
        )

    def mark_failed(self, job_id: str, message: str, at: datetime) -> None:
        self._update(
            job_id,
            {
                "status": JobStatus.FAILED.value,
                "error_message": message,
                "completed_at": to_iso_utc(at, name="completed_at"),
            },
            "fail job",
        )

    def mark_cancelled(self, job_id: str, at: datetime) -> None:
        self._update(
            job_id,
            {"status": JobStatus.CANCELLED.value, "completed_at": to_iso_utc(at, name="completed_at")},
            "cancel job",
        )

    def request_cancel(self, job_id: str) -> Optional[AttributionJob]:
        execute(
            self.client.table(_JOBS_TABLE).update({"cancel_requested": True}).eq("id", job_id).in_("status", _ACTIVE),
            "request job cancellation",
        )
        return self.get_job(job_id)

    def record_event_error(self, error: EventProcessingError) -> None:
        execute(
            self.client.table(_ERRORS_TABLE).insert(
                {
                    "processing_job_id": error.job_id,
                    "attribution_event_id": error.source_event_id,
                    "error_message": error.message,
                }
            ),
            "record event error",
        )


__all__ = ["SupabaseJobStore"]
