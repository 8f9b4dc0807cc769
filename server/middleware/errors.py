"""
Unhandled-error middleware

Turns exceptions no route handled into the generic 500 envelope while still
inside the middleware stack, so CORS and X-Request-ID headers are added to
the response on the way out like any other.
"""

from fastapi import Request

from config import get_logger
from server.metrics import metrics
from server.middleware.request_id import get_request_id
from server.utils.responses import error_response, GENERIC_ERROR_MESSAGE

logger = get_logger(__name__)


async def catch_unhandled_errors(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as e:
        metrics.record_error("api", e)
        logger.error(
            "unhandled error",
            path=request.url.path,
            error_type=type(e).__name__,
            request_id=get_request_id(request),
            exc_info=e,
        )
        return error_response("INTERNAL_ERROR", message=GENERIC_ERROR_MESSAGE)
