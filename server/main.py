"""
Ballot Intake API Server

FastAPI application for submission intake and public tallies.
Routes, services, and utilities are organized into focused modules.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from config import config, get_logger
from database.db_postgres import Database
from database.services.ballot_intake import VotingWindow
from exceptions import BallotError
from server.metrics import metrics
from server.middleware.errors import catch_unhandled_errors
from server.middleware.logging import log_requests
from server.middleware.metrics import metrics_middleware
from server.middleware.request_id import RequestIDMiddleware, get_request_id
from server.routes import ballot, monitoring
from server.utils.responses import error_response_for

logger = get_logger(__name__)


# Lifespan context manager for database initialization
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup async database connection pool"""
    app.state.window = VotingWindow.from_config(config)

    # Tests install an in-memory store before startup
    owns_db = getattr(app.state, "db", None) is None
    if owns_db:
        app.state.db = await Database.create()
        logger.info("initialized PostgreSQL database with async connection pool")

    logger.info(
        "ballot intake ready",
        window_id=app.state.window.window_id,
        enforce_window=config.ENFORCE_WINDOW,
    )

    yield

    if not owns_db:
        return

    db = app.state.db
    try:
        logger.info(
            "closing connection pool",
            active_connections=db.pool.get_size(),
            min_size=db.pool.get_min_size(),
            max_size=db.pool.get_max_size(),
        )
        await db.close()
        logger.info("closed PostgreSQL connection pool")
    except Exception as e:
        # Don't crash on shutdown - log and continue
        logger.error("error closing connection pool", error=str(e), exc_info=True)
    finally:
        app.state.db = None


# Initialize FastAPI app with lifespan
app = FastAPI(title="ballot intake API", description="Ballot submission intake and tally", lifespan=lifespan)

# Innermost: unhandled errors become the generic 500 before CORS and the
# request id are applied
@app.middleware("http")
async def unhandled_errors_middleware(request, call_next):
    return await catch_unhandled_errors(request, call_next)


# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
    max_age=86400,
)

# Register middleware (execution order: request id -> metrics -> logging -> CORS -> errors)
# FastAPI middleware stack: last registered runs first, so register in reverse order
@app.middleware("http")
async def log_requests_middleware(request, call_next):
    return await log_requests(request, call_next)


@app.middleware("http")
async def metrics_middleware_wrapper(request, call_next):
    return await metrics_middleware(request, call_next)


# Request ID middleware (registered last so it wraps everything for tracing)
app.add_middleware(RequestIDMiddleware)


@app.exception_handler(BallotError)
async def ballot_error_handler(request: Request, exc: BallotError):
    """Domain errors that escaped a route, mostly storage outages"""
    metrics.record_error("api", exc)
    logger.error(
        "request failed",
        path=request.url.path,
        error_code=exc.error_code,
        error=str(exc),
        request_id=get_request_id(request),
    )
    return error_response_for(exc)


# Mount routers
app.include_router(monitoring.router)  # Root and monitoring endpoints
app.include_router(ballot.router)      # Submission and results endpoints


if __name__ == "__main__":
    import uvicorn
    import sys

    logger.info("Starting ballot intake API server...")
    logger.info("configuration", config_summary=config.summary())

    # Handle command line arguments
    if len(sys.argv) > 1 and sys.argv[1] == "--init-db":
        logger.info("Initializing database schema...")
        import asyncio

        async def init_db():
            db = await Database.create()
            try:
                await db.init_schema()
                stats = await db.get_stats()
                logger.info("Database initialized successfully", **stats)
            finally:
                await db.close()

        asyncio.run(init_db())
        sys.exit(0)

    uvicorn.run(
        app,
        host=config.API_HOST,
        port=config.API_PORT,
        access_log=False,  # Disable default uvicorn logs (we have custom middleware logging)
    )
