"""Database utilities: store errors, PostgreSQL pool, schema migrations."""

from memobot.db.errors import (
    ConflictError,
    ConnectionError,
    NotFoundError,
    StoreError,
)

__all__ = [
    "StoreError",
    "ConnectionError",
    "NotFoundError",
    "ConflictError",
]
