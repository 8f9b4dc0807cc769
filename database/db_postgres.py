"""PostgreSQL Database Layer with Repository Pattern

Async repositories for all data access. The Database class handles pool
lifecycle, schema setup, and the ledger reconciliation pass.
"""

import asyncpg
import json
from typing import Optional, Dict, Any
from pathlib import Path

from config import get_logger, config
from database.models import RegionTally
from database.repositories_async import LedgerRepository, SubmissionRepository
from database.vote_utils import LedgerRecount
from exceptions import StorageUnavailableError

logger = get_logger(__name__).bind(component="database_postgres")


def _jsonb_encoder(obj):
    """JSONB encoder with automatic Pydantic model serialization."""
    def default(o):
        if hasattr(o, 'model_dump'):
            return o.model_dump()
        raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")

    return json.dumps(obj, default=default)


class Database:
    """Async PostgreSQL database with repository pattern

    Architecture:
    - Connection pooling (asyncpg pool shared across all repositories)
    - SubmissionRepository: append-only ballot store
    - LedgerRepository: aggregate and per-region counters
    - JSONB for the verbatim submission payload

    Usage:
        db = await Database.create()
        counters = await db.ledger.read_all()
        await db.close()
    """

    pool: asyncpg.Pool

    submissions: SubmissionRepository
    ledger: LedgerRepository

    def __init__(self, pool: asyncpg.Pool):
        """Initialize with connection pool and repositories

        Use Database.create() classmethod instead of direct instantiation.
        """
        self.pool = pool
        self.submissions = SubmissionRepository(pool)
        self.ledger = LedgerRepository(pool)

        logger.info("database initialized with repositories",
                    pool_size=f"{pool.get_min_size()}-{pool.get_max_size()}")

    @classmethod
    async def create(
        cls,
        dsn: Optional[str] = None,
        min_size: int = config.POSTGRES_POOL_MIN_SIZE,
        max_size: int = config.POSTGRES_POOL_MAX_SIZE
    ) -> "Database":
        """Create database with connection pool

        Args:
            dsn: PostgreSQL connection string (defaults to config.get_postgres_dsn())
            min_size: Minimum pool size
            max_size: Maximum pool size

        Returns:
            Initialized Database instance
        """
        if dsn is None:
            dsn = config.get_postgres_dsn()

        async def init_connection(conn):
            """Initialize connection with JSONB codec for automatic serialization"""
            await conn.set_type_codec(
                'jsonb',
                encoder=_jsonb_encoder,
                decoder=json.loads,
                schema='pg_catalog'
            )

        try:
            pool = await asyncpg.create_pool(
                dsn,
                min_size=min_size,
                max_size=max_size,
                command_timeout=config.POSTGRES_COMMAND_TIMEOUT,
                init=init_connection,
            )
            logger.info("connection pool created", min_size=min_size, max_size=max_size)
            return cls(pool)
        except (asyncpg.PostgresError, OSError, ConnectionError) as e:
            # Connection-specific errors only - let programming errors fail loudly
            logger.error("failed to create connection pool", error=str(e))
            raise StorageUnavailableError(
                f"Failed to connect to PostgreSQL: {e}", operation="connect", original_error=e
            ) from e

    async def close(self):
        """Close connection pool"""
        await self.pool.close()
        logger.info("connection pool closed")

    async def init_schema(self):
        """Initialize database schema from schema_ballot.sql

        Safe to call multiple times (uses IF NOT EXISTS).
        """
        schema_path = Path(__file__).parent / "schema_ballot.sql"
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema file not found: {schema_path}")

        schema_sql = schema_path.read_text()

        async with self.pool.acquire() as conn:
            await conn.execute(schema_sql)

        logger.info("ballot schema initialized")

    async def ping(self) -> None:
        """Round-trip to the server; raises StorageUnavailableError on failure"""
        await self.submissions.ping()

    async def get_stats(self) -> Dict[str, Any]:
        """Counts for health reporting"""
        submissions = await self.submissions.count_submissions()
        counters = await self.ledger.read_all()
        return {
            "submissions_stored": submissions,
            "total_submissions_counted": counters.get("total_submissions_counted", 0),
        }

    async def reconcile_ledger(self, dry_run: bool = False) -> Dict[str, Any]:
        """Recompute every ledger counter from the submission store.

        Runs in one transaction with the ledger tables locked, so concurrent
        intake waits instead of interleaving. The store is the source of truth:
        a ledger that lags it (crash between insert and increment) is repaired.

        Returns:
            Stats dict: submissions scanned, drift per counter, applied flag
        """
        async with self.submissions.transaction() as conn:
            if not dry_run:
                await conn.execute("LOCK TABLE aggregates, region_counts IN EXCLUSIVE MODE")

            recount = LedgerRecount()
            async for region, payload in self.submissions.iter_region_payloads(conn):
                recount.add(region, payload)

            current_rows = await conn.fetch("SELECT k, v FROM aggregates")
            drift = recount.counter_drift({row["k"]: row["v"] for row in current_rows})

            region_rows = await conn.fetch(
                "SELECT region, total, approve_yes FROM region_counts"
            )
            region_drift = recount.regions_drifted(
                RegionTally(region=row["region"], total=row["total"], approve_yes=row["approve_yes"])
                for row in region_rows
            )

            applied = False
            if not dry_run and (drift or region_drift):
                await self.ledger.replace_all(recount.counters, recount.regions.values(), conn)
                applied = True

        logger.info(
            "ledger reconciliation finished",
            submissions=recount.submissions,
            drift=drift,
            regions_drifted=len(region_drift),
            dry_run=dry_run,
            applied=applied,
        )
        return {
            "submissions": recount.submissions,
            "drift": drift,
            "regions_drifted": region_drift,
            "applied": applied,
        }
