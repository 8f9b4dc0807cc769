"""Standardized API response helpers.

Ensures consistent response structure across all endpoints.
Successful intake responses carry {"ok": True, ...}; failures carry
{"ok": False, "error": <CODE>, ...}.
"""

from typing import Any

from fastapi.responses import JSONResponse

from exceptions import BallotError

# error_code -> HTTP status
ERROR_STATUS = {
    "BAD_JSON": 400,
    "WINDOW_CLOSED": 403,
    "VALIDATION_FAILED": 422,
    "INTERNAL_ERROR": 500,
    "STORAGE_UNAVAILABLE": 503,
}

GENERIC_ERROR_MESSAGE = "Internal server error"


def error_response(error_code: str, **extras: Any) -> JSONResponse:
    """Standard error response with the status mapped from error_code.

    Usage:
        return error_response("VALIDATION_FAILED", details=errors)

    Returns:
        JSONResponse({"ok": False, "error": error_code, **extras})
    """
    status_code = ERROR_STATUS.get(error_code, 500)
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "error": error_code, **extras},
    )


def error_response_for(exc: BallotError) -> JSONResponse:
    """Map a domain exception to its public error response.

    Only the exception's top-level message is exposed; context stays in logs.
    """
    details = getattr(exc, "details", None)
    if details is not None:
        return error_response(exc.error_code, details=details)
    if exc.error_code == "BAD_JSON":
        return error_response(exc.error_code)
    if exc.error_code == "INTERNAL_ERROR":
        return error_response(exc.error_code, message=GENERIC_ERROR_MESSAGE)
    return error_response(exc.error_code, message=exc.message)
