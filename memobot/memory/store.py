"""MemoryStore abstract interface."""

from abc import ABC, abstractmethod
from uuid import UUID

from memobot.memory.models import Category, Memory, MemoryRelationship, Tag


class MemoryStore(ABC):
    """Abstract interface for memory storage.

    Manages memories, categories, tags and relationship edges with support
    for vector search and keyword search. Every query is scoped to one
    owner, and soft-deleted memories are invisible to every read.
    """

    # Memory operations
    @abstractmethod
    async def add_memory(self, memory: Memory) -> Memory:
        """Insert a new memory."""
        pass

    @abstractmethod
    async def get_memory(self, owner_id: str, memory_id: UUID) -> Memory | None:
        """Get a non-deleted memory by ID."""
        pass

    @abstractmethod
    async def get_memories(self, owner_id: str, memory_ids: list[UUID]) -> list[Memory]:
        """Get non-deleted memories by ID; missing ids are skipped."""
        pass

    @abstractmethod
    async def update_memory(self, memory: Memory) -> Memory:
        """Persist changes to an existing memory.

        Raises:
            NotFoundError: If the memory does not exist or is deleted
        """
        pass

    @abstractmethod
    async def soft_delete_memory(self, owner_id: str, memory_id: UUID) -> Memory | None:
        """Mark a memory deleted; returns it, or None if it was not found."""
        pass

    @abstractmethod
    async def list_recent_memories(
        self,
        owner_id: str,
        *,
        limit: int | None = 5,
        category_id: UUID | None = None,
    ) -> list[Memory]:
        """Newest memories first, optionally within one category; limit None lists all."""
        pass

    @abstractmethod
    async def find_memory_by_content(self, owner_id: str, content: str) -> Memory | None:
        """Find a non-deleted memory with exactly this content."""
        pass

    @abstractmethod
    async def vector_search_memories(
        self,
        owner_id: str,
        query_embedding: list[float],
        *,
        limit: int = 10,
        min_score: float | None = None,
    ) -> list[tuple[Memory, float]]:
        """Memories by cosine similarity, best first.

        Only scores strictly greater than min_score are returned; None
        disables the threshold.
        """
        pass

    @abstractmethod
    async def keyword_search_memories(
        self,
        owner_id: str,
        query: str,
        *,
        limit: int = 10,
    ) -> list[Memory]:
        """Memories matching the query terms, best match first."""
        pass

    # Category operations
    @abstractmethod
    async def add_category(self, category: Category) -> Category:
        """Insert a category.

        Raises:
            ConflictError: If the owner already has a category with this name
        """
        pass

    @abstractmethod
    async def get_category(self, owner_id: str, category_id: UUID) -> Category | None:
        """Get a category by ID."""
        pass

    @abstractmethod
    async def get_category_by_name(self, owner_id: str, name: str) -> Category | None:
        """Get a category by name, ignoring case and surrounding whitespace."""
        pass

    @abstractmethod
    async def list_categories(self, owner_id: str) -> list[Category]:
        """All categories of an owner, by name."""
        pass

    @abstractmethod
    async def update_category(self, category: Category) -> Category:
        """Persist changes to a category.

        Raises:
            NotFoundError: If the category does not exist
        """
        pass

    @abstractmethod
    async def adjust_category_count(
        self, owner_id: str, category_id: UUID, delta: int
    ) -> int | None:
        """Add delta to memory_count, floored at 0. Returns the new count or None if missing."""
        pass

    @abstractmethod
    async def recalculate_category_counts(self, owner_id: str) -> dict[UUID, int]:
        """Reset every category's memory_count to its number of live memories."""
        pass

    # Tag operations
    @abstractmethod
    async def add_tag(self, tag: Tag) -> Tag:
        """Insert a tag.

        Raises:
            ConflictError: If the owner already has a tag with this normalized name
        """
        pass

    @abstractmethod
    async def get_tag_by_normalized_name(
        self, owner_id: str, normalized_name: str
    ) -> Tag | None:
        """Get a tag by its normalized name."""
        pass

    @abstractmethod
    async def list_tags(self, owner_id: str, *, limit: int | None = None) -> list[Tag]:
        """Tags of an owner, most used first."""
        pass

    @abstractmethod
    async def increment_tag_usage(self, owner_id: str, tag_id: UUID, delta: int = 1) -> None:
        """Add delta to a tag's usage_count, floored at 0."""
        pass

    @abstractmethod
    async def set_memory_tags(self, memory_id: UUID, tag_ids: list[UUID]) -> None:
        """Replace the tags of a memory."""
        pass

    @abstractmethod
    async def get_memory_tags(self, owner_id: str, memory_id: UUID) -> list[Tag]:
        """Tags attached to a memory."""
        pass

    @abstractmethod
    async def merge_tags(
        self, owner_id: str, canonical_id: UUID, duplicate_ids: list[UUID]
    ) -> None:
        """Fold duplicates into the canonical tag.

        Memory links move to the canonical tag (once per memory), usage
        counts are added to it and the duplicates are deleted.
        """
        pass

    # Relationship operations
    @abstractmethod
    async def upsert_relationship(self, relationship: MemoryRelationship) -> MemoryRelationship:
        """Insert an edge or update the existing edge for its pair.

        A manual edge is only replaced by another manual edge.
        """
        pass

    @abstractmethod
    async def delete_relationship(self, owner_id: str, first: UUID, second: UUID) -> bool:
        """Remove the edge between two memories. Returns False if there was none."""
        pass

    @abstractmethod
    async def list_relationships(
        self, owner_id: str, memory_ids: list[UUID]
    ) -> list[MemoryRelationship]:
        """Edges touching any of the given memories."""
        pass

    @abstractmethod
    async def count_relationships(self, owner_id: str, memory_id: UUID) -> int:
        """Number of edges touching a memory."""
        pass
