"""FastAPI Dependencies

Centralized dependency injection for reuse across all route modules.
Provides type-safe, testable access to shared resources.
"""

from fastapi import Request

from config import config
from database.db_postgres import Database
from database.services.ballot_intake import BallotIntakeService, VotingWindow


def get_db(request: Request) -> Database:
    """Dependency to get shared database instance from app state

    Usage in routes:
        @router.get("/endpoint")
        async def endpoint(db: Database = Depends(get_db)):
            counters = await db.ledger.read_all()

    Tests put an in-memory stand-in on app.state.db before the app starts.
    """
    return request.app.state.db


def get_window(request: Request) -> VotingWindow:
    """Voting window resolved once at startup"""
    return request.app.state.window


def get_intake_service(request: Request) -> BallotIntakeService:
    """Intake service bound to the shared repositories

    Cheap to build per request; it holds no state beyond its collaborators.
    """
    db = get_db(request)
    return BallotIntakeService(
        submissions=db.submissions,
        ledger=db.ledger,
        window=get_window(request),
        enforce_window=config.ENFORCE_WINDOW,
    )
