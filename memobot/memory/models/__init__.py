"""Memory domain models.

Contains all Pydantic models for the memory system:
- Memories, the captured units
- Categories and tags for classification
- Relationships for the memory graph
"""

from memobot.memory.models.memory import Channel, Memory, SyncStatus, utc_now
from memobot.memory.models.relationship import (
    MANUAL,
    RELATED,
    MemoryRelationship,
    canonical_pair,
)
from memobot.memory.models.taxonomy import Category, MemoryTag, Tag

__all__ = [
    "MANUAL",
    "RELATED",
    "Category",
    "Channel",
    "Memory",
    "MemoryRelationship",
    "MemoryTag",
    "SyncStatus",
    "Tag",
    "canonical_pair",
    "utc_now",
]
