"""In-memory implementation of MemoryStore."""

import re
from uuid import UUID

from rank_bm25 import BM25Okapi

from memobot.db.errors import ConflictError, NotFoundError
from memobot.memory.models import (
    MANUAL,
    Category,
    Memory,
    MemoryRelationship,
    Tag,
    canonical_pair,
    utc_now,
)
from memobot.memory.store import MemoryStore
from memobot.utils.vector import cosine_similarity

_TOKEN = re.compile(r"\w+")


def tokenize(text: str) -> list[str]:
    """Lowercase word tokens for keyword ranking."""
    return _TOKEN.findall(text.lower())


class InMemoryMemoryStore(MemoryStore):
    """In-memory implementation of MemoryStore for testing and development.

    Uses simple dict storage with linear scan for queries and BM25 for
    keyword ranking. Stored and returned models are copies, so callers
    never mutate store state by accident.
    Not suitable for production use.
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._memories: dict[UUID, Memory] = {}
        self._categories: dict[UUID, Category] = {}
        self._tags: dict[UUID, Tag] = {}
        self._memory_tags: dict[UUID, list[UUID]] = {}
        self._relationships: dict[tuple[str, UUID, UUID], MemoryRelationship] = {}

    def _live(self, owner_id: str) -> list[Memory]:
        return [
            m for m in self._memories.values()
            if m.owner_id == owner_id and m.deleted_at is None
        ]

    # Memory operations
    async def add_memory(self, memory: Memory) -> Memory:
        """Insert a new memory."""
        if memory.id in self._memories:
            raise ConflictError(f"Memory {memory.id} already exists")
        self._memories[memory.id] = memory.model_copy(deep=True)
        return memory

    async def get_memory(self, owner_id: str, memory_id: UUID) -> Memory | None:
        """Get a non-deleted memory by ID."""
        memory = self._memories.get(memory_id)
        if memory and memory.owner_id == owner_id and memory.deleted_at is None:
            return memory.model_copy(deep=True)
        return None

    async def get_memories(self, owner_id: str, memory_ids: list[UUID]) -> list[Memory]:
        """Get non-deleted memories by ID; missing ids are skipped."""
        results = []
        for memory_id in memory_ids:
            memory = await self.get_memory(owner_id, memory_id)
            if memory is not None:
                results.append(memory)
        return results

    async def update_memory(self, memory: Memory) -> Memory:
        """Persist changes to an existing memory."""
        existing = self._memories.get(memory.id)
        if (
            existing is None
            or existing.owner_id != memory.owner_id
            or existing.deleted_at is not None
        ):
            raise NotFoundError(f"Memory {memory.id} not found")
        memory.updated_at = utc_now()
        self._memories[memory.id] = memory.model_copy(deep=True)
        return memory

    async def soft_delete_memory(self, owner_id: str, memory_id: UUID) -> Memory | None:
        """Mark a memory deleted."""
        memory = self._memories.get(memory_id)
        if memory is None or memory.owner_id != owner_id or memory.deleted_at is not None:
            return None
        memory.deleted_at = utc_now()
        memory.updated_at = memory.deleted_at
        return memory.model_copy(deep=True)

    async def list_recent_memories(
        self,
        owner_id: str,
        *,
        limit: int | None = 5,
        category_id: UUID | None = None,
    ) -> list[Memory]:
        """Newest memories first, optionally within one category."""
        results = [
            m for m in self._live(owner_id)
            if category_id is None or m.category_id == category_id
        ]
        results.sort(key=lambda m: m.created_at, reverse=True)
        if limit is not None:
            results = results[:limit]
        return [m.model_copy(deep=True) for m in results]

    async def find_memory_by_content(self, owner_id: str, content: str) -> Memory | None:
        """Find a non-deleted memory with exactly this content."""
        for memory in self._live(owner_id):
            if memory.content == content:
                return memory.model_copy(deep=True)
        return None

    async def vector_search_memories(
        self,
        owner_id: str,
        query_embedding: list[float],
        *,
        limit: int = 10,
        min_score: float | None = None,
    ) -> list[tuple[Memory, float]]:
        """Memories by cosine similarity, best first."""
        results: list[tuple[Memory, float]] = []

        for memory in self._live(owner_id):
            if memory.embedding is None:
                continue

            score = cosine_similarity(query_embedding, memory.embedding)
            if min_score is None or score > min_score:
                results.append((memory, score))

        results.sort(key=lambda x: x[1], reverse=True)
        return [(m.model_copy(deep=True), s) for m, s in results[:limit]]

    async def keyword_search_memories(
        self,
        owner_id: str,
        query: str,
        *,
        limit: int = 10,
    ) -> list[Memory]:
        """Memories sharing at least one query term, ordered by BM25 score."""
        terms = tokenize(query)
        memories = self._live(owner_id)
        if not terms or not memories:
            return []

        corpus = [tokenize(f"{m.title or ''} {m.content}") for m in memories]
        bm25 = BM25Okapi(corpus)
        scores = bm25.get_scores(terms)

        query_terms = set(terms)
        matched = [
            (memory, float(score))
            for memory, tokens, score in zip(memories, corpus, scores)
            if query_terms.intersection(tokens)
        ]
        matched.sort(key=lambda x: x[1], reverse=True)
        return [m.model_copy(deep=True) for m, _ in matched[:limit]]

    # Category operations
    async def add_category(self, category: Category) -> Category:
        """Insert a category."""
        if await self.get_category_by_name(category.owner_id, category.name):
            raise ConflictError(f"Category '{category.name}' already exists")
        self._categories[category.id] = category.model_copy(deep=True)
        return category

    async def get_category(self, owner_id: str, category_id: UUID) -> Category | None:
        """Get a category by ID."""
        category = self._categories.get(category_id)
        if category and category.owner_id == owner_id:
            return category.model_copy(deep=True)
        return None

    async def get_category_by_name(self, owner_id: str, name: str) -> Category | None:
        """Get a category by name, ignoring case."""
        key = name.strip().lower()
        for category in self._categories.values():
            if category.owner_id == owner_id and category.name.lower() == key:
                return category.model_copy(deep=True)
        return None

    async def list_categories(self, owner_id: str) -> list[Category]:
        """All categories of an owner, by name."""
        results = [c for c in self._categories.values() if c.owner_id == owner_id]
        results.sort(key=lambda c: c.name.lower())
        return [c.model_copy(deep=True) for c in results]

    async def update_category(self, category: Category) -> Category:
        """Persist changes to a category."""
        existing = self._categories.get(category.id)
        if existing is None or existing.owner_id != category.owner_id:
            raise NotFoundError(f"Category {category.id} not found")
        category.updated_at = utc_now()
        self._categories[category.id] = category.model_copy(deep=True)
        return category

    async def adjust_category_count(
        self, owner_id: str, category_id: UUID, delta: int
    ) -> int | None:
        """Add delta to memory_count, floored at 0."""
        category = self._categories.get(category_id)
        if category is None or category.owner_id != owner_id:
            return None
        category.memory_count = max(category.memory_count + delta, 0)
        category.updated_at = utc_now()
        return category.memory_count

    async def recalculate_category_counts(self, owner_id: str) -> dict[UUID, int]:
        """Reset every category's memory_count to its number of live memories."""
        live = self._live(owner_id)
        counts: dict[UUID, int] = {}
        for category in self._categories.values():
            if category.owner_id != owner_id:
                continue
            category.memory_count = sum(1 for m in live if m.category_id == category.id)
            category.updated_at = utc_now()
            counts[category.id] = category.memory_count
        return counts

    # Tag operations
    async def add_tag(self, tag: Tag) -> Tag:
        """Insert a tag."""
        if await self.get_tag_by_normalized_name(tag.owner_id, tag.normalized_name):
            raise ConflictError(f"Tag '{tag.normalized_name}' already exists")
        self._tags[tag.id] = tag.model_copy(deep=True)
        return tag

    async def get_tag_by_normalized_name(
        self, owner_id: str, normalized_name: str
    ) -> Tag | None:
        """Get a tag by its normalized name."""
        for tag in self._tags.values():
            if tag.owner_id == owner_id and tag.normalized_name == normalized_name:
                return tag.model_copy(deep=True)
        return None

    async def list_tags(self, owner_id: str, *, limit: int | None = None) -> list[Tag]:
        """Tags of an owner, most used first."""
        results = [t for t in self._tags.values() if t.owner_id == owner_id]
        results.sort(key=lambda t: (-t.usage_count, t.normalized_name))
        if limit is not None:
            results = results[:limit]
        return [t.model_copy(deep=True) for t in results]

    async def increment_tag_usage(self, owner_id: str, tag_id: UUID, delta: int = 1) -> None:
        """Add delta to a tag's usage_count, floored at 0."""
        tag = self._tags.get(tag_id)
        if tag is not None and tag.owner_id == owner_id:
            tag.usage_count = max(tag.usage_count + delta, 0)

    async def set_memory_tags(self, memory_id: UUID, tag_ids: list[UUID]) -> None:
        """Replace the tags of a memory."""
        self._memory_tags[memory_id] = list(dict.fromkeys(tag_ids))

    async def get_memory_tags(self, owner_id: str, memory_id: UUID) -> list[Tag]:
        """Tags attached to a memory."""
        return [
            self._tags[tag_id].model_copy(deep=True)
            for tag_id in self._memory_tags.get(memory_id, [])
            if tag_id in self._tags and self._tags[tag_id].owner_id == owner_id
        ]

    async def merge_tags(
        self, owner_id: str, canonical_id: UUID, duplicate_ids: list[UUID]
    ) -> None:
        """Fold duplicates into the canonical tag."""
        canonical = self._tags.get(canonical_id)
        if canonical is None or canonical.owner_id != owner_id:
            raise NotFoundError(f"Tag {canonical_id} not found")
        duplicates = {
            tag_id for tag_id in duplicate_ids
            if tag_id != canonical_id
            and tag_id in self._tags
            and self._tags[tag_id].owner_id == owner_id
        }
        for memory_id, tag_ids in self._memory_tags.items():
            if duplicates.intersection(tag_ids):
                moved = [canonical_id if t in duplicates else t for t in tag_ids]
                self._memory_tags[memory_id] = list(dict.fromkeys(moved))
        for tag_id in duplicates:
            canonical.usage_count += self._tags.pop(tag_id).usage_count

    # Relationship operations
    async def upsert_relationship(self, relationship: MemoryRelationship) -> MemoryRelationship:
        """Insert an edge or update the existing edge for its pair."""
        key = (relationship.owner_id, relationship.memory_a_id, relationship.memory_b_id)
        existing = self._relationships.get(key)
        if existing is not None:
            if existing.relationship_type != MANUAL or relationship.relationship_type == MANUAL:
                existing.similarity_score = relationship.similarity_score
                existing.relationship_type = relationship.relationship_type
            return existing.model_copy(deep=True)
        self._relationships[key] = relationship.model_copy(deep=True)
        return relationship

    async def delete_relationship(self, owner_id: str, first: UUID, second: UUID) -> bool:
        """Remove the edge between two memories."""
        a, b = canonical_pair(first, second)
        return self._relationships.pop((owner_id, a, b), None) is not None

    async def list_relationships(
        self, owner_id: str, memory_ids: list[UUID]
    ) -> list[MemoryRelationship]:
        """Edges touching any of the given memories."""
        wanted = set(memory_ids)
        return [
            r.model_copy(deep=True)
            for r in self._relationships.values()
            if r.owner_id == owner_id
            and (r.memory_a_id in wanted or r.memory_b_id in wanted)
        ]

    async def count_relationships(self, owner_id: str, memory_id: UUID) -> int:
        """Number of edges touching a memory."""
        return len(await self.list_relationships(owner_id, [memory_id]))
