"""
PostgreSQL integration tests for the submission store, ledger, and
reconciliation.

Needs a disposable database; every test truncates the ballot tables.
Run with:
    BALLOT_TEST_POSTGRES_DSN=postgresql://ballot@localhost/ballot_test pytest tests/test_postgres_ledger.py
"""

import asyncio
import os
from datetime import date

import pytest

from database.db_postgres import Database
from database.fingerprint import derive_dedupe_key
from database.services.ballot_intake import BallotIntakeService, VotingWindow
from database.vote_utils import APPROVE_YES, TOTAL_COUNTED

DSN = os.getenv("BALLOT_TEST_POSTGRES_DSN")

pytestmark = pytest.mark.skipif(not DSN, reason="BALLOT_TEST_POSTGRES_DSN not set")

WINDOW = VotingWindow(
    window_id="2026-01-03_to_2026-02-02",
    open_date=date(2026, 1, 3),
    close_date=date(2026, 2, 2),
    tz_name="America/Los_Angeles",
)


def make_payload(voter_id, region="CA", approve=True):
    return {
        "schema_version": "1",
        "created_utc": "2026-01-10T12:00:00Z",
        "voter_id": voter_id,
        "context": {"region": region, "country_or_territory": "US"},
        "ballot_track_a": {"approve_interim_masculine_regent": approve},
    }


def run_with_db(test_body):
    """Fresh pool and empty tables for one test coroutine"""
    async def runner():
        db = await Database.create(dsn=DSN, min_size=1, max_size=5)
        try:
            await db.init_schema()
            async with db.pool.acquire() as conn:
                await conn.execute("TRUNCATE submissions, aggregates, region_counts")
            return await test_body(db)
        finally:
            await db.close()

    return asyncio.run(runner())


def make_service(db):
    return BallotIntakeService(db.submissions, db.ledger, WINDOW)


class TestSubmissionStore:

    def test_concurrent_duplicates_count_once(self):
        async def body(db):
            service = make_service(db)
            results = await asyncio.gather(
                *[service.submit(make_payload("v1")) for _ in range(8)]
            )
            counters = await db.ledger.read_all()
            return results, counters, await db.submissions.count_submissions()

        results, counters, stored = run_with_db(body)

        assert sum(1 for r in results if r.counted) == 1
        assert len({r.receipt_id for r in results}) == 1
        assert counters[TOTAL_COUNTED] == 1
        assert stored == 1

    def test_lookup_returns_stored_submission(self):
        async def body(db):
            result = await make_service(db).submit(make_payload("v1", region="ON"))
            stored = await db.submissions.lookup(derive_dedupe_key("v1", "1", WINDOW.window_id))
            return result, stored

        result, stored = run_with_db(body)

        assert stored.receipt_id == result.receipt_id
        assert stored.region == "ON"
        assert stored.payload["voter_id"] == "v1"

    def test_region_counts_follow_submissions(self):
        async def body(db):
            service = make_service(db)
            await service.submit(make_payload("v1", "CA", approve=True))
            await service.submit(make_payload("v2", "CA", approve=False))
            await service.submit(make_payload("v3", "ON", approve=True))
            return await db.ledger.read_all_regions()

        regions = run_with_db(body)

        assert [(r.region, r.total, r.approve_yes) for r in regions] == [
            ("CA", 2, 1),
            ("ON", 1, 1),
        ]


class TestReconciliation:

    def test_consistent_ledger_untouched(self):
        async def body(db):
            await make_service(db).submit(make_payload("v1"))
            return await db.reconcile_ledger()

        stats = run_with_db(body)

        assert stats["submissions"] == 1
        assert stats["drift"] == {}
        assert stats["applied"] is False

    def test_drift_repaired(self):
        async def body(db):
            service = make_service(db)
            await service.submit(make_payload("v1"))
            await service.submit(make_payload("v2", region="ON", approve=False))
            async with db.pool.acquire() as conn:
                await conn.execute("UPDATE aggregates SET v = v + 5 WHERE k = $1", APPROVE_YES)
                await conn.execute("DELETE FROM region_counts WHERE region = 'ON'")

            dry = await db.reconcile_ledger(dry_run=True)
            after_dry = await db.ledger.read_all()
            applied = await db.reconcile_ledger()
            return dry, after_dry, applied, await db.ledger.read_all(), await db.ledger.read_all_regions()

        dry, after_dry, applied, counters, regions = run_with_db(body)

        assert dry["drift"] == {APPROVE_YES: -5}
        assert dry["regions_drifted"] == ["ON"]
        assert dry["applied"] is False
        assert after_dry[APPROVE_YES] == 6

        assert applied["applied"] is True
        assert counters[APPROVE_YES] == 1
        assert counters[TOTAL_COUNTED] == 2
        assert sum(r.total for r in regions) == 2
