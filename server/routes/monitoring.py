"""
Monitoring and health check API routes
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response

from config import config, get_logger
from database.db_postgres import Database
from exceptions import StorageUnavailableError
from server.dependencies import get_db
from server.metrics import metrics, get_metrics_text

logger = get_logger(__name__)

SERVICE_VERSION = "1.0.0"

router = APIRouter()


@router.get("/")
async def root():
    """API status and info"""
    return {
        "service": "ballot intake API",
        "status": "running",
        "version": SERVICE_VERSION,
        "window_id": config.WINDOW_ID,
        "endpoints": {
            "submit": "POST /api/submit - Submit one ballot (duplicates return the original receipt)",
            "results": "GET /api/results - Current tally snapshot",
            "health": "GET /api/health - Health check with storage status",
            "metrics": "GET /metrics - Prometheus metrics",
        },
    }


@router.get("/api/health")
async def health_check(db: Database = Depends(get_db)):
    """Health check endpoint"""
    health_status: Dict[str, Any] = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": SERVICE_VERSION,
        "checks": {},
    }

    try:
        await db.ping()
        stats = await db.get_stats()
    except StorageUnavailableError as e:
        metrics.record_error("health", e)
        logger.error("health check failed", error=str(e))
        health_status["status"] = "unhealthy"
        health_status["checks"]["storage"] = {"status": "unreachable"}
        return JSONResponse(status_code=503, content=health_status)

    lagging = stats["submissions_stored"] - stats["total_submissions_counted"]
    health_status["checks"]["storage"] = {"status": "healthy", **stats}
    if lagging:
        # Ledger behind (or ahead of) the store: run scripts/reconcile_ledger.py
        health_status["status"] = "degraded"
        health_status["checks"]["ledger"] = {"status": "drifted", "difference": lagging}
    else:
        health_status["checks"]["ledger"] = {"status": "consistent"}

    return health_status


@router.get("/metrics")
async def prometheus_metrics():
    """Prometheus metrics endpoint

    Returns metrics in Prometheus text format for scraping.
    """
    return Response(content=get_metrics_text(), media_type="text/plain")
