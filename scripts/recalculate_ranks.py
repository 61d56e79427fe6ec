"""Maintenance script — recompute every user's rank from scratch.

Run after bulk imports, manual sponsor fixes, or whenever stored ranks are
suspected to have drifted.

Usage:
    python -m scripts.recalculate_ranks            # repair records and cache
    python -m scripts.recalculate_ranks --dry-run  # only report what would change

This script:
1. Scans all network users and builds the children map once
2. Recomputes every rank
3. Rewrites the rank on records whose stored value differs
4. Rewrites every rank cache entry
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

logger = logging.getLogger(__name__)


async def recalculate(dry_run: bool) -> int:
    """Run the reconciliation; returns a process exit code."""
    from app.config.settings import settings
    from app.core.exceptions import RankEngineError
    from app.services.rank import RankService

    if not settings.supabase_enabled:
        logger.error("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        return 1

    service = await RankService.create()
    try:
        report = await service.recalculate_all_ranks(dry_run=dry_run)
    except RankEngineError as e:
        logger.error(f"Rank recalculation failed: {e}")
        return 1

    logger.info(
        f"{'Would update' if dry_run else 'Updated'} {report.records_updated} of "
        f"{report.users_scanned} records in {report.duration_seconds}s"
    )
    return 0


def main() -> None:
    from app.core.logging_config import setup_logging

    parser = argparse.ArgumentParser(description="Recompute every user's rank.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="report out-of-date ranks without writing anything",
    )
    args = parser.parse_args()

    setup_logging()
    sys.exit(asyncio.run(recalculate(dry_run=args.dry_run)))


if __name__ == "__main__":
    main()
