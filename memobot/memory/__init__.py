"""Memory persistence: models, store interface and backends."""

from memobot.memory.models import (
    Category,
    Channel,
    Memory,
    MemoryRelationship,
    MemoryTag,
    SyncStatus,
    Tag,
    utc_now,
)
from memobot.memory.store import MemoryStore

__all__ = [
    "Category",
    "Channel",
    "Memory",
    "MemoryRelationship",
    "MemoryStore",
    "MemoryTag",
    "SyncStatus",
    "Tag",
    "utc_now",
]
