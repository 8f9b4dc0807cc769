"""Ledger repository - monotonic aggregate and per-region counters.

Counters are created lazily by the first increment. Every increment is a
single atomic upsert; there is no read-modify-write in Python.
"""

from typing import Dict, Iterable, List, Optional

from asyncpg import Connection

from config import get_logger
from database.models import RegionTally
from database.repositories_async.base import BaseRepository

logger = get_logger(__name__).bind(component="ledger_repository")


class LedgerRepository(BaseRepository):
    """Repository for tally counters."""

    async def increment(self, counter_name: str, conn: Optional[Connection] = None) -> None:
        """Create counter at 1 or add 1 atomically."""
        async with self._ensure_conn(conn) as c:
            await c.execute(
                """
                INSERT INTO aggregates (k, v) VALUES ($1, 1)
                ON CONFLICT (k) DO UPDATE SET v = aggregates.v + 1
                """,
                counter_name,
            )

    async def increment_region(
        self, region: str, approved: bool, conn: Optional[Connection] = None
    ) -> None:
        """Add one submission to a region, and one approval if approved."""
        approve_inc = 1 if approved else 0
        async with self._ensure_conn(conn) as c:
            await c.execute(
                """
                INSERT INTO region_counts (region, total, approve_yes) VALUES ($1, 1, $2)
                ON CONFLICT (region) DO UPDATE SET
                    total = region_counts.total + 1,
                    approve_yes = region_counts.approve_yes + $2
                """,
                region,
                approve_inc,
            )

    async def read_all(self) -> Dict[str, int]:
        """All aggregate counters as name -> value."""
        rows = await self._fetch("SELECT k, v FROM aggregates")
        return {row["k"]: row["v"] for row in rows}

    async def read_all_regions(self) -> List[RegionTally]:
        """All region counters, ordered by region name."""
        rows = await self._fetch(
            "SELECT region, total, approve_yes FROM region_counts ORDER BY region"
        )
        return [
            RegionTally(region=row["region"], total=row["total"], approve_yes=row["approve_yes"])
            for row in rows
        ]

    async def replace_all(
        self,
        counters: Dict[str, int],
        regions: Iterable[RegionTally],
        conn: Connection,
    ) -> None:
        """Overwrite the whole ledger inside the caller's transaction.

        Reconciliation only; the intake path never calls this.
        """
        regions = list(regions)
        await conn.execute("LOCK TABLE aggregates, region_counts IN EXCLUSIVE MODE")
        await conn.execute("DELETE FROM aggregates")
        await conn.execute("DELETE FROM region_counts")
        await conn.executemany(
            "INSERT INTO aggregates (k, v) VALUES ($1, $2)",
            [(k, v) for k, v in counters.items()],
        )
        await conn.executemany(
            "INSERT INTO region_counts (region, total, approve_yes) VALUES ($1, $2, $3)",
            [(r.region, r.total, r.approve_yes) for r in regions],
        )
        logger.warning(
            "ledger replaced", counters=len(counters), regions=len(regions)
        )
