"""Ballot API routes - submission intake and public results."""

import json

from fastapi import APIRouter, Depends, Request

from config import get_logger
from database.db_postgres import Database
from database.services.ballot_intake import BallotIntakeService, VotingWindow
from exceptions import BadInputError, ValidationFailedError, WindowClosedError
from server.dependencies import get_db, get_intake_service, get_window
from server.metrics import metrics
from server.services.results import build_results_snapshot
from server.utils.responses import error_response_for

logger = get_logger(__name__).bind(component="api")

router = APIRouter(prefix="/api", tags=["ballot"])


@router.post("/submit")
async def submit_ballot(
    request: Request,
    intake: BallotIntakeService = Depends(get_intake_service),
):
    """Accept one ballot submission.

    Body is parsed by hand: malformed JSON answers BAD_JSON and missing
    fields VALIDATION_FAILED, never FastAPI's default 422 shape.
    """
    try:
        body = await request.body()
        payload = json.loads(body)
        result = await intake.submit(payload)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _reject(request, BadInputError("Request body is not valid JSON"))
    except (BadInputError, ValidationFailedError, WindowClosedError) as e:
        return _reject(request, e)

    outcome = "counted" if result.counted else "duplicate"
    request.state.intake_outcome = outcome
    metrics.submissions.labels(outcome=outcome).inc()
    return result.to_response()


@router.get("/results")
async def get_results(
    db: Database = Depends(get_db),
    window: VotingWindow = Depends(get_window),
):
    """Current tally snapshot: totals, rates, and per-region balance."""
    return await build_results_snapshot(db.ledger, window)


def _reject(request: Request, error):
    request.state.intake_outcome = "rejected"
    metrics.submissions.labels(outcome="rejected").inc()
    metrics.rejections.labels(error_code=error.error_code).inc()
    logger.info("submission rejected", error_code=error.error_code)
    return error_response_for(error)
