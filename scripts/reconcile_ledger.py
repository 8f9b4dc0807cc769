"""Rebuild the aggregate ledger from the submission store.

Recounts every stored submission and compares the result with the
aggregate and per-region counters. Drift is possible only when a process
died between writing a submission and its counters outside a transaction
(or when someone edited the tables by hand).

Usage:
    python scripts/reconcile_ledger.py [--dry-run]
"""

import argparse
import asyncio

from config import get_logger
from database.db_postgres import Database

logger = get_logger(__name__)


async def reconcile(dry_run: bool = False) -> dict:
    """Run one reconciliation pass.

    Returns:
        Stats dict from Database.reconcile_ledger
    """
    db = await Database.create()

    try:
        return await db.reconcile_ledger(dry_run=dry_run)
    finally:
        await db.close()


async def main():
    parser = argparse.ArgumentParser(description="Reconcile ballot ledger with stored submissions")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report drift without rewriting counters",
    )
    args = parser.parse_args()

    logger.info("starting reconciliation", dry_run=args.dry_run)

    stats = await reconcile(dry_run=args.dry_run)

    logger.info("reconciliation complete", **stats)

    drifted = len(stats["drift"]) + len(stats["regions_drifted"])
    if not drifted:
        print(f"\nLedger consistent with {stats['submissions']} stored submissions")
    elif args.dry_run:
        print(f"\nDry run - {drifted} counters would be rewritten")
        for name, delta in stats["drift"].items():
            print(f"  {name}: {delta:+d}")
        for region in stats["regions_drifted"]:
            print(f"  region {region}")
    else:
        print(f"\nReconciliation complete: {drifted} counters rewritten")


if __name__ == "__main__":
    asyncio.run(main())
