"""Store error hierarchy for persistence backends.

All store implementations raise these errors so callers can handle
backend failures uniformly.
"""


class StoreError(Exception):
    """Base exception for all store errors."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConnectionError(StoreError):
    """Raised when a backend is unreachable or a query fails at the driver level."""

    pass


class NotFoundError(StoreError):
    """Raised when a specific entity lookup fails.

    Not raised for empty search results.
    """

    pass


class ConflictError(StoreError):
    """Raised on unique constraint violations and optimistic locking conflicts.

    Session saves raise it when the stored version no longer matches the
    version the caller read.
    """

    pass
