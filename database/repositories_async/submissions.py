"""Submission repository - append-only ballot store.

Uniqueness of dedupe_key is enforced by the PRIMARY KEY; inserts rely on
ON CONFLICT so concurrent duplicates resolve to exactly one row.
"""

from typing import Any, AsyncIterator, Dict, Optional, Tuple

from asyncpg import Connection

from config import get_logger
from database.models import InsertOutcome, Submission
from database.repositories_async.base import BaseRepository

logger = get_logger(__name__).bind(component="submission_repository")


class SubmissionRepository(BaseRepository):
    """Repository for accepted ballot submissions."""

    async def insert_if_absent(
        self,
        receipt_id: str,
        dedupe_key: str,
        created_utc: str,
        region: str,
        payload: Dict[str, Any],
        conn: Optional[Connection] = None,
    ) -> InsertOutcome:
        """Insert a submission unless its dedupe key already exists.

        Returns InsertOutcome(inserted=True, receipt_id=new) on insert, or
        InsertOutcome(inserted=False, receipt_id=existing) when another
        request got there first.
        """
        async with self._ensure_conn(conn) as c:
            row = await c.fetchrow(
                """
                INSERT INTO submissions (receipt_id, dedupe_key, created_utc, region, payload_json)
                VALUES ($1, $2, $3, $4, $5)
                ON CONFLICT (dedupe_key) DO NOTHING
                RETURNING receipt_id
                """,
                receipt_id,
                dedupe_key,
                created_utc,
                region,
                payload,
            )
            if row is not None:
                return InsertOutcome(inserted=True, receipt_id=row["receipt_id"])

            existing = await c.fetchval(
                "SELECT receipt_id FROM submissions WHERE dedupe_key = $1",
                dedupe_key,
            )

        logger.info("insert lost to existing submission", receipt_id=existing)
        return InsertOutcome(inserted=False, receipt_id=existing)

    async def lookup(self, dedupe_key: str) -> Optional[Submission]:
        """Get submission by dedupe key. Returns None if not found."""
        row = await self._fetchrow(
            """
            SELECT receipt_id, dedupe_key, created_utc, region, payload_json
            FROM submissions
            WHERE dedupe_key = $1
            LIMIT 1
            """,
            dedupe_key,
        )
        if row is None:
            return None
        return Submission(
            receipt_id=row["receipt_id"],
            dedupe_key=row["dedupe_key"],
            created_utc=row["created_utc"],
            region=row["region"],
            payload=row["payload_json"],
        )

    async def count_submissions(self) -> int:
        """Total accepted submissions."""
        count = await self._fetchval("SELECT COUNT(*) FROM submissions")
        return count or 0

    async def iter_region_payloads(
        self, conn: Connection, batch_size: int = 500
    ) -> AsyncIterator[Tuple[str, Dict[str, Any]]]:
        """Stream (region, payload) for every submission.

        Requires a connection with an open transaction (server-side cursor).
        """
        async with self._storage_errors("cursor"):
            cursor = conn.cursor(
                "SELECT region, payload_json FROM submissions ORDER BY created_utc",
                prefetch=batch_size,
            )
            async for row in cursor:
                yield row["region"], row["payload_json"]
