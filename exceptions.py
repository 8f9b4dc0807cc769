"""
Custom Exception Hierarchy - Domain-specific error types

Provides clear, typed exceptions for the failure modes of ballot intake.
All custom exceptions inherit from BallotError for easy catching.

Each error carries a stable `error_code` which the HTTP layer echoes back
to callers (BAD_JSON, VALIDATION_FAILED, ...). Internal details live in
`context` and only ever reach the logs.
"""

from typing import Optional, Dict, Any, List


class BallotError(Exception):
    """Base exception for all ballot service errors

    All custom exceptions inherit from this, enabling:
    - Catch all service errors with single except clause
    - Distinguish our errors from library errors
    - Add common attributes (context, error_code)
    - Check if error is retryable via is_retryable property
    """

    # Default: errors are not retryable (permanent failure)
    _retryable: bool = False
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Check if this error represents a transient failure that may be retried.

        Returns:
            True for transient failures (storage unreachable, timeouts)
            False for permanent failures (bad input, validation)
        """
        return self._retryable

    def __str__(self):
        base_msg = super().__str__()
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{base_msg} (context: {context_str})"
        return base_msg


# ========== Input Errors ==========


class BadInputError(BallotError):
    """Request body can't be parsed or stored as submission text

    Examples:
    - Malformed JSON
    - Body is not UTF-8
    - Strings that can't be stored as UTF-8 text (lone surrogates, NUL)
    """

    error_code = "BAD_JSON"


class ValidationFailedError(BallotError):
    """Submission is structurally valid JSON but misses required fields

    Carries every collected violation, not just the first one.
    """

    error_code = "VALIDATION_FAILED"

    def __init__(self, details: List[str]):
        self.details = list(details)
        super().__init__(
            "Submission failed validation",
            {"violations": len(self.details)},
        )


class WindowClosedError(BallotError):
    """Submission arrived outside the configured voting window"""

    error_code = "WINDOW_CLOSED"

    def __init__(self, message: str, window_id: Optional[str] = None):
        self.window_id = window_id
        context = {}
        if window_id:
            context['window_id'] = window_id
        super().__init__(message, context)


# ========== Database Errors ==========


class DatabaseError(BallotError):
    """Database operation failures

    Examples:
    - Query errors
    - Transaction rollbacks
    - Data integrity violations
    """

    error_code = "STORAGE_UNAVAILABLE"


class StorageUnavailableError(DatabaseError):
    """Submission store / ledger cannot be reached or queried"""

    _retryable = True  # Connection issues are often transient

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        self.operation = operation
        self.original_error = original_error

        context = {}
        if operation:
            context['operation'] = operation
        if original_error:
            context['original_error'] = f"{type(original_error).__name__}: {original_error}"

        super().__init__(message, context)


# ========== Configuration Errors ==========


class ConfigurationError(BallotError):
    """Configuration or environment errors

    Examples:
    - Unparseable window dates
    - Unknown window timezone
    """

    def __init__(self, message: str, config_key: Optional[str] = None):
        self.config_key = config_key
        context = {}
        if config_key:
            context['config_key'] = config_key
        super().__init__(message, context)
