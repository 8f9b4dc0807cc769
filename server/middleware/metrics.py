"""
Prometheus metrics middleware for API requests

Instruments all API requests with:
- Request count (by endpoint, method, status_code)
- Request duration (by endpoint, method)

Usage:
    from server.middleware.metrics import metrics_middleware
    app.middleware("http")(metrics_middleware)
"""

import time
from fastapi import Request

from server.metrics import metrics

# Paths reported as-is; anything else collapses to one label
KNOWN_ENDPOINTS = {"/", "/api/submit", "/api/results", "/api/health", "/metrics"}


async def metrics_middleware(request: Request, call_next):
    """Record Prometheus metrics for all API requests"""
    start_time = time.time()

    endpoint = _normalize_endpoint(request.url.path)
    method = request.method

    try:
        response = await call_next(request)
    except Exception:
        _observe(endpoint, method, 500, time.time() - start_time)
        raise

    _observe(endpoint, method, response.status_code, time.time() - start_time)
    return response


def _observe(endpoint: str, method: str, status_code: int, duration: float) -> None:
    metrics.api_requests.labels(
        endpoint=endpoint,
        method=method,
        status_code=status_code
    ).inc()

    metrics.api_request_duration.labels(
        endpoint=endpoint,
        method=method
    ).observe(duration)


def _normalize_endpoint(path: str) -> str:
    """Normalize endpoint path for metrics cardinality control

    Strips a trailing slash and maps unknown paths (scanners, typos) to
    "/other" so label cardinality stays bounded.
    """
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    if path in KNOWN_ENDPOINTS:
        return path
    return "/other"
