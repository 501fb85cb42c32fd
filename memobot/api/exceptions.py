"""API exception hierarchy.

All API exceptions inherit from MemoBotAPIError, whose status_code and
error_code drive the global exception handler.
"""

from memobot.api.models.errors import ErrorCode


class MemoBotAPIError(Exception):
    """Base exception for all API errors."""

    status_code: int = 500
    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidRequestError(MemoBotAPIError):
    """Raised when a request is well-formed but cannot be served."""

    status_code = 400
    error_code = ErrorCode.INVALID_REQUEST


class SessionConflictError(MemoBotAPIError):
    """Raised when a session update lost every check-and-set retry."""

    status_code = 409
    error_code = ErrorCode.SESSION_CONFLICT


class ServiceUnavailableError(MemoBotAPIError):
    """Raised when a storage backend is unreachable."""

    status_code = 503
    error_code = ErrorCode.SERVICE_UNAVAILABLE


class NotFoundAPIError(MemoBotAPIError):
    """Raised when a memory or tag does not exist for the owner."""

    status_code = 404
    error_code = ErrorCode.NOT_FOUND
