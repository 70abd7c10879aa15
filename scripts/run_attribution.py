#!/usr/bin/env python3
"""
Attribution Run Script

Runs attribution for one tenant in the foreground: every business event after
the last checkpoint is matched against the sent-email log and recorded.

Usage:
    python run_attribution.py TENANT_ID
    python run_attribution.py TENANT_ID --batch-size 500
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.jobs import AttributionJob
from repositories.attribution_repository import SupabaseAttributionStore
from repositories.event_repository import SupabaseEmailLog, SupabaseEventSource
from repositories.job_repository import SupabaseJobStore
from repositories.tenant_repository import SupabaseTenantStore
from services.job_service import run_attribution_job, start_attribution_run
from services.settings import get_settings


def print_job_summary(job: AttributionJob) -> None:
    counters = job.counters
    print()
    print("=" * 60)
    print("ATTRIBUTION SUMMARY")
    print("=" * 60)
    print(f"Job:                {job.job_id}")
    print(f"Status:             {job.status.value}")
    print(f"Events processed:   {counters.processed} / {job.total_events}")
    print(f"  Hard matches:     {counters.hard_matches}")
    print(f"  Soft matches:     {counters.soft_matches}")
    print(f"  No match:         {counters.no_matches}")
    print(f"  Errors:           {counters.errors}")
    if job.error_message:
        print(f"Error:              {job.error_message}")
    print("=" * 60)


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Run attribution for one tenant",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Process every pending event
  python run_attribution.py 123e4567-e89b-12d3-a456-426614174000

  # Smaller batches
  python run_attribution.py 123e4567-e89b-12d3-a456-426614174000 --batch-size 250
        """
    )

    parser.add_argument("tenant_id", help="Tenant (client config) ID")
    parser.add_argument(
        "--batch-size",
        "-b",
        type=int,
        default=None,
        help="Events per batch (default: ATTRIBUTION_BATCH_SIZE or 1000)"
    )

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        settings = get_settings()
        events = SupabaseEventSource()
        jobs = SupabaseJobStore()

        job, created = start_attribution_run(
            args.tenant_id,
            jobs,
            events,
            batch_size=args.batch_size or settings.batch_size,
        )
        if not created:
            print(f"Attribution run {job.job_id} is already {job.status.value} for this tenant")
            print_job_summary(job)
            return 1

        print(f"Starting attribution job {job.job_id} ({job.total_events} pending events)...")
        finished = run_attribution_job(
            job,
            events=events,
            email_log=SupabaseEmailLog(),
            tenants=SupabaseTenantStore(default_window_days=settings.attribution_window_days),
            attribution=SupabaseAttributionStore(),
            jobs=jobs,
            batch_delay_ms=settings.batch_delay_ms,
        )
        print_job_summary(finished)
        return 0

    except KeyboardInterrupt:
        print("\n\nAttribution interrupted by user; the next run resumes from the last checkpoint")
        return 130

    except Exception as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
