"""Base repository with async PostgreSQL connection pooling

All repositories inherit from BaseRepository and share:
- Connection pool (no connection per-instance)
- Transaction context managers
- Query execution helpers with storage error translation
- Logging infrastructure

Connection Patterns
-------------------
    self._fetchrow / self._fetch / self._fetchval
        Use for single statements that don't need to join a transaction.

    self.transaction()
        Use for writes that must commit or roll back together.

    conn=... parameters
        Repository write methods accept an optional connection so the
        caller can make several repositories share one transaction.

Error Translation
-----------------
Connection-class failures (lost or refused connections, server shutdown,
resource exhaustion, serialization conflicts, OSError, timeouts) are
re-raised as StorageUnavailableError so the HTTP layer can answer 503
without knowing about asyncpg. Data errors (text the server can't encode,
out-of-range values) come from the submission itself and are re-raised as
BadInputError; retrying them would never succeed. Programming errors are
left alone.
"""

import asyncio
import asyncpg
from asyncpg import Connection
from typing import Any, List, Optional
from contextlib import asynccontextmanager

from config import get_logger
from exceptions import BadInputError, StorageUnavailableError

logger = get_logger(__name__).bind(component="repository")

STORAGE_ERRORS = (
    asyncpg.PostgresConnectionError,
    asyncpg.OperatorInterventionError,
    asyncpg.InsufficientResourcesError,
    asyncpg.TransactionRollbackError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)


class BaseRepository:
    """Base class for async PostgreSQL repositories

    Design Principles:
    - Pool is passed in, not created
    - Transactions are explicit (async with self.transaction())
    - Queries use $1, $2 placeholders (PostgreSQL parameterization)
    - Uniqueness and counter arithmetic happen in SQL, never check-then-act
    """

    def __init__(self, pool: asyncpg.Pool):
        """Initialize repository with shared connection pool

        Args:
            pool: asyncpg connection pool (shared across all repositories)
        """
        self.pool = pool

    @asynccontextmanager
    async def _storage_errors(self, operation: str):
        """Translate driver/network failures into StorageUnavailableError"""
        try:
            yield
        except asyncpg.DataError as e:
            logger.warning("storage rejected submission data", operation=operation,
                           error_type=type(e).__name__)
            raise BadInputError(
                "Submission data rejected by storage", {"operation": operation}
            ) from e
        except STORAGE_ERRORS as e:
            logger.error("storage operation failed", operation=operation, error=str(e),
                         error_type=type(e).__name__)
            raise StorageUnavailableError(
                "Storage unavailable", operation=operation, original_error=e
            ) from e

    async def _fetchrow(self, query: str, *args: Any) -> Optional[asyncpg.Record]:
        """Execute query and fetch single row"""
        async with self._storage_errors("fetchrow"):
            async with self.pool.acquire() as conn:
                return await conn.fetchrow(query, *args)

    async def _fetch(self, query: str, *args: Any) -> List[asyncpg.Record]:
        """Execute query and fetch all rows"""
        async with self._storage_errors("fetch"):
            async with self.pool.acquire() as conn:
                return await conn.fetch(query, *args)

    async def _fetchval(self, query: str, *args: Any) -> Any:
        """Execute query and fetch first column of first row"""
        async with self._storage_errors("fetchval"):
            async with self.pool.acquire() as conn:
                return await conn.fetchval(query, *args)

    async def ping(self) -> None:
        """Cheapest possible round-trip, for health checks"""
        await self._fetchval("SELECT 1")

    @asynccontextmanager
    async def transaction(self):
        """Context manager for explicit transactions

        Usage:
            async with self.transaction() as conn:
                await conn.execute("INSERT ...")
                await conn.execute("UPDATE ...")
                # Auto-commits on successful exit
                # Auto-rolls back on exception

        Yields:
            Connection with active transaction
        """
        async with self._storage_errors("transaction"):
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    yield conn

    @asynccontextmanager
    async def _ensure_conn(self, conn: Optional[Connection] = None):
        """Use provided connection or create new transaction.

        Allows methods to participate in caller's transaction when conn is passed.
        """
        if conn:
            async with self._storage_errors("execute"):
                yield conn
        else:
            async with self.transaction() as c:
                yield c
