#!/usr/bin/env python3
"""
Billing Sync Script

Brings a tenant's reconciliation periods and line items up to date, and
optionally auto-bills periods whose review deadline has passed.

Usage:
    python sync_billing.py TENANT_ID
    python sync_billing.py TENANT_ID --as-of 2025-04-15
    python sync_billing.py TENANT_ID --auto-bill --dry-run
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from repositories.attribution_repository import SupabaseAttributionStore
from repositories.billing_repository import SupabaseBillingStore
from services.auto_billing import auto_bill_overdue
from services.billing_sync import sync_tenant_billing
from services.settings import get_settings


def parse_as_of(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date (expected YYYY-MM-DD): {value}") from None


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Sync reconciliation billing for one tenant",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sync as of today
  python sync_billing.py 123e4567-e89b-12d3-a456-426614174000

  # Sync as of a past date
  python sync_billing.py 123e4567-e89b-12d3-a456-426614174000 --as-of 2025-04-15

  # Show what auto-billing would do without writing
  python sync_billing.py 123e4567-e89b-12d3-a456-426614174000 --auto-bill --dry-run
        """
    )

    parser.add_argument("tenant_id", help="Tenant (client config) ID")
    parser.add_argument("--as-of", type=parse_as_of, default=None, help="Run as of this date (YYYY-MM-DD)")
    parser.add_argument("--auto-bill", action="store_true", help="Auto-bill overdue periods after the sync")
    parser.add_argument("--dry-run", action="store_true", help="With --auto-bill: compute without writing")

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        settings = get_settings()
        billing = SupabaseBillingStore(
            default_review_window_days=settings.default_review_window_days,
            default_estimated_acv=settings.default_estimated_acv,
        )

        result = sync_tenant_billing(args.tenant_id, billing, SupabaseAttributionStore(), as_of=args.as_of)

        print()
        print("=" * 60)
        print("BILLING SYNC SUMMARY")
        print("=" * 60)
        print(f"As of:                 {result.as_of.isoformat()}")
        print(f"Periods:               {result.total_periods} ({result.periods_created} new)")
        print(f"Line items refreshed:  {result.line_items_upserted}")
        print(f"Line items removed:    {result.line_items_deleted}")
        for period in result.populated:
            print(
                f"  {period.label}: {period.totals.paying_customers} paying, "
                f"owed {period.totals.amount_owed}, estimate {period.estimated_total}"
            )
        print("=" * 60)

        if args.auto_bill:
            results = auto_bill_overdue(args.tenant_id, billing, as_of=args.as_of, dry_run=args.dry_run)
            print()
            print("AUTO-BILLING (dry run)" if args.dry_run else "AUTO-BILLING")
            print("-" * 60)
            if not results:
                print("No overdue periods")
            for r in results:
                print(
                    f"  {r.label} (deadline {r.review_deadline.isoformat()}): "
                    f"{r.items_auto_billed} items at estimated ACV, "
                    f"{r.items_already_submitted} submitted, total {r.total_amount_owed}"
                )
            print("-" * 60)

        return 0

    except KeyboardInterrupt:
        print("\n\nSync interrupted by user")
        return 130

    except Exception as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
