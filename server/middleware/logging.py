"""
Request/response logging middleware
"""


import time
from fastapi import Request

from config import get_logger

logger = get_logger(__name__)

# Scrape and probe noise
QUIET_PATHS = {"/metrics", "/api/health"}


async def log_requests(request: Request, call_next):
    """Log one line per request: method, path, status, duration"""
    if request.url.path in QUIET_PATHS:
        return await call_next(request)

    start_time = time.time()
    path_info = f"{request.method} {request.url.path}"

    try:
        response = await call_next(request)
    except Exception as e:
        duration = time.time() - start_time
        logger.error(f"{path_info} → ERROR ({duration:.3f}s): {type(e).__name__}")
        raise

    duration = time.time() - start_time

    # Set by the submit route; never includes voter identifiers
    outcome = getattr(request.state, "intake_outcome", None)
    if outcome:
        path_info += f" [{outcome}]"

    logger.info(f"{path_info} → {response.status_code} ({duration:.3f}s)")
    return response
