"""PostgreSQL implementation of MemoryStore.

Uses pgvector for similarity search (cosine distance operator `<=>`) and
the generated `fts` tsvector column for keyword search.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from uuid import UUID

import asyncpg

from memobot.db.errors import ConflictError, ConnectionError, NotFoundError
from memobot.db.pool import PostgresPool
from memobot.memory.models import (
    MANUAL,
    Category,
    Channel,
    Memory,
    MemoryRelationship,
    SyncStatus,
    Tag,
    canonical_pair,
    utc_now,
)
from memobot.memory.store import MemoryStore
from memobot.observability.logging import get_logger
from memobot.utils.vector import embedding_to_pgvector, pgvector_to_embedding

logger = get_logger(__name__)

_MEMORY_COLUMNS = """
    id, owner_id, title, content, summary, embedding::text AS embedding,
    category_id, source_channel, occurred_at, created_at, updated_at,
    sync_status, deleted_at
"""

_CATEGORY_COLUMNS = """
    id, owner_id, name, description, color, embedding::text AS embedding,
    memory_count, created_at, updated_at
"""

_TAG_COLUMNS = """
    id, owner_id, name, normalized_name, embedding::text AS embedding,
    usage_count, created_at
"""


def _row_to_memory(row: asyncpg.Record) -> Memory:
    data: dict[str, Any] = dict(row)
    data.pop("similarity", None)
    data["embedding"] = pgvector_to_embedding(data["embedding"])
    if data["source_channel"] is not None:
        data["source_channel"] = Channel(data["source_channel"])
    data["sync_status"] = SyncStatus(data["sync_status"])
    return Memory.model_validate(data)


def _row_to_category(row: asyncpg.Record) -> Category:
    data = dict(row)
    data["embedding"] = pgvector_to_embedding(data["embedding"])
    return Category.model_validate(data)


def _row_to_tag(row: asyncpg.Record) -> Tag:
    data = dict(row)
    data["embedding"] = pgvector_to_embedding(data["embedding"])
    return Tag.model_validate(data)


class PostgresMemoryStore(MemoryStore):
    """PostgreSQL + pgvector implementation of MemoryStore."""

    def __init__(self, pool: PostgresPool) -> None:
        """Initialize PostgreSQL memory store.

        Args:
            pool: Shared connection pool
        """
        self._pool = pool

    async def health_check(self) -> bool:
        """Return True if the database answers."""
        return await self._pool.health_check()

    @asynccontextmanager
    async def _connection(self, operation: str) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a connection, mapping driver errors to store errors."""
        try:
            async with self._pool.acquire() as conn:
                yield conn
        except asyncpg.UniqueViolationError as e:
            raise ConflictError(f"{operation}: {e}", cause=e) from e
        except (asyncpg.PostgresError, asyncpg.InterfaceError, TimeoutError, OSError) as e:
            # command_timeout surfaces as TimeoutError, dropped sockets as OSError
            logger.error(
                "postgres_memory_store_error",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ConnectionError(f"Failed to {operation}: {e}", cause=e) from e

    # Memory operations
    async def add_memory(self, memory: Memory) -> Memory:
        """Insert a new memory."""
        async with self._connection("add memory") as conn:
            await conn.execute(
                """
                INSERT INTO memories (
                    id, owner_id, title, content, summary, embedding, category_id,
                    source_channel, occurred_at, created_at, updated_at, sync_status
                ) VALUES ($1, $2, $3, $4, $5, $6::vector, $7, $8, $9, $10, $11, $12)
                """,
                memory.id,
                memory.owner_id,
                memory.title,
                memory.content,
                memory.summary,
                embedding_to_pgvector(memory.embedding),
                memory.category_id,
                memory.source_channel.value if memory.source_channel else None,
                memory.occurred_at,
                memory.created_at,
                memory.updated_at,
                memory.sync_status.value,
            )
        logger.debug("memory_inserted", memory_id=str(memory.id))
        return memory

    async def get_memory(self, owner_id: str, memory_id: UUID) -> Memory | None:
        """Get a non-deleted memory by ID."""
        async with self._connection("get memory") as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {_MEMORY_COLUMNS} FROM memories
                WHERE owner_id = $1 AND id = $2 AND deleted_at IS NULL
                """,
                owner_id,
                memory_id,
            )
        return _row_to_memory(row) if row else None

    async def get_memories(self, owner_id: str, memory_ids: list[UUID]) -> list[Memory]:
        """Get non-deleted memories by ID, in the order requested."""
        if not memory_ids:
            return []
        async with self._connection("get memories") as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_MEMORY_COLUMNS} FROM memories
                WHERE owner_id = $1 AND id = ANY($2::uuid[]) AND deleted_at IS NULL
                """,
                owner_id,
                memory_ids,
            )
        by_id = {row["id"]: _row_to_memory(row) for row in rows}
        return [by_id[i] for i in memory_ids if i in by_id]

    async def update_memory(self, memory: Memory) -> Memory:
        """Persist changes to an existing memory."""
        memory.updated_at = utc_now()
        async with self._connection("update memory") as conn:
            result = await conn.execute(
                """
                UPDATE memories SET
                    title = $3, content = $4, summary = $5, embedding = $6::vector,
                    category_id = $7, occurred_at = $8, updated_at = $9,
                    sync_status = $10
                WHERE owner_id = $1 AND id = $2 AND deleted_at IS NULL
                """,
                memory.owner_id,
                memory.id,
                memory.title,
                memory.content,
                memory.summary,
                embedding_to_pgvector(memory.embedding),
                memory.category_id,
                memory.occurred_at,
                memory.updated_at,
                memory.sync_status.value,
            )
        if result.split()[-1] == "0":
            raise NotFoundError(f"Memory {memory.id} not found")
        return memory

    async def soft_delete_memory(self, owner_id: str, memory_id: UUID) -> Memory | None:
        """Mark a memory deleted."""
        async with self._connection("delete memory") as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE memories SET deleted_at = NOW(), updated_at = NOW()
                WHERE owner_id = $1 AND id = $2 AND deleted_at IS NULL
                RETURNING {_MEMORY_COLUMNS}
                """,
                owner_id,
                memory_id,
            )
        return _row_to_memory(row) if row else None

    async def list_recent_memories(
        self,
        owner_id: str,
        *,
        limit: int | None = 5,
        category_id: UUID | None = None,
    ) -> list[Memory]:
        """Newest memories first, optionally within one category."""
        async with self._connection("list memories") as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_MEMORY_COLUMNS} FROM memories
                WHERE owner_id = $1 AND deleted_at IS NULL
                  AND ($2::uuid IS NULL OR category_id = $2)
                ORDER BY created_at DESC
                LIMIT $3
                """,
                owner_id,
                category_id,
                limit,
            )
        return [_row_to_memory(row) for row in rows]

    async def find_memory_by_content(self, owner_id: str, content: str) -> Memory | None:
        """Find a non-deleted memory with exactly this content."""
        async with self._connection("find memory") as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {_MEMORY_COLUMNS} FROM memories
                WHERE owner_id = $1 AND content = $2 AND deleted_at IS NULL
                ORDER BY created_at DESC
                LIMIT 1
                """,
                owner_id,
                content,
            )
        return _row_to_memory(row) if row else None

    async def vector_search_memories(
        self,
        owner_id: str,
        query_embedding: list[float],
        *,
        limit: int = 10,
        min_score: float | None = None,
    ) -> list[tuple[Memory, float]]:
        """Memories by cosine similarity, best first."""
        async with self._connection("search memories") as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_MEMORY_COLUMNS}, 1 - (embedding <=> $2::vector) AS similarity
                FROM memories
                WHERE owner_id = $1 AND deleted_at IS NULL AND embedding IS NOT NULL
                  AND ($3::float8 IS NULL OR 1 - (embedding <=> $2::vector) > $3)
                ORDER BY embedding <=> $2::vector
                LIMIT $4
                """,
                owner_id,
                embedding_to_pgvector(query_embedding),
                min_score,
                limit,
            )
        return [(_row_to_memory(row), float(row["similarity"])) for row in rows]

    async def keyword_search_memories(
        self,
        owner_id: str,
        query: str,
        *,
        limit: int = 10,
    ) -> list[Memory]:
        """Full-text matches ranked by ts_rank_cd."""
        async with self._connection("keyword search") as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_MEMORY_COLUMNS}
                FROM memories, websearch_to_tsquery('english', $2) AS q
                WHERE owner_id = $1 AND deleted_at IS NULL AND fts @@ q
                ORDER BY ts_rank_cd(fts, q) DESC
                LIMIT $3
                """,
                owner_id,
                query,
                limit,
            )
        return [_row_to_memory(row) for row in rows]

    # Category operations
    async def add_category(self, category: Category) -> Category:
        """Insert a category."""
        async with self._connection("add category") as conn:
            await conn.execute(
                """
                INSERT INTO categories (
                    id, owner_id, name, description, color, embedding,
                    memory_count, created_at, updated_at
                ) VALUES ($1, $2, $3, $4, $5, $6::vector, $7, $8, $9)
                """,
                category.id,
                category.owner_id,
                category.name,
                category.description,
                category.color,
                embedding_to_pgvector(category.embedding),
                category.memory_count,
                category.created_at,
                category.updated_at,
            )
        return category

    async def get_category(self, owner_id: str, category_id: UUID) -> Category | None:
        """Get a category by ID."""
        async with self._connection("get category") as conn:
            row = await conn.fetchrow(
                f"SELECT {_CATEGORY_COLUMNS} FROM categories WHERE owner_id = $1 AND id = $2",
                owner_id,
                category_id,
            )
        return _row_to_category(row) if row else None

    async def get_category_by_name(self, owner_id: str, name: str) -> Category | None:
        """Get a category by name, ignoring case."""
        async with self._connection("get category") as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {_CATEGORY_COLUMNS} FROM categories
                WHERE owner_id = $1 AND lower(name) = lower($2)
                """,
                owner_id,
                name.strip(),
            )
        return _row_to_category(row) if row else None

    async def list_categories(self, owner_id: str) -> list[Category]:
        """All categories of an owner, by name."""
        async with self._connection("list categories") as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_CATEGORY_COLUMNS} FROM categories
                WHERE owner_id = $1 ORDER BY lower(name)
                """,
                owner_id,
            )
        return [_row_to_category(row) for row in rows]

    async def update_category(self, category: Category) -> Category:
        """Persist changes to a category."""
        category.updated_at = utc_now()
        async with self._connection("update category") as conn:
            result = await conn.execute(
                """
                UPDATE categories SET
                    name = $3, description = $4, color = $5, embedding = $6::vector,
                    updated_at = $7
                WHERE owner_id = $1 AND id = $2
                """,
                category.owner_id,
                category.id,
                category.name,
                category.description,
                category.color,
                embedding_to_pgvector(category.embedding),
                category.updated_at,
            )
        if result.split()[-1] == "0":
            raise NotFoundError(f"Category {category.id} not found")
        return category

    async def adjust_category_count(
        self, owner_id: str, category_id: UUID, delta: int
    ) -> int | None:
        """Add delta to memory_count, floored at 0."""
        async with self._connection("adjust category count") as conn:
            return await conn.fetchval(
                """
                UPDATE categories
                SET memory_count = GREATEST(memory_count + $3, 0), updated_at = NOW()
                WHERE owner_id = $1 AND id = $2
                RETURNING memory_count
                """,
                owner_id,
                category_id,
                delta,
            )

    async def recalculate_category_counts(self, owner_id: str) -> dict[UUID, int]:
        """Reset every category's memory_count to its number of live memories."""
        async with self._connection("recalculate category counts") as conn:
            rows = await conn.fetch(
                """
                UPDATE categories c
                SET memory_count = (
                    SELECT COUNT(*) FROM memories m
                    WHERE m.owner_id = c.owner_id AND m.category_id = c.id
                      AND m.deleted_at IS NULL
                ), updated_at = NOW()
                WHERE c.owner_id = $1
                RETURNING c.id, c.memory_count
                """,
                owner_id,
            )
        return {row["id"]: row["memory_count"] for row in rows}

    # Tag operations
    async def add_tag(self, tag: Tag) -> Tag:
        """Insert a tag."""
        async with self._connection("add tag") as conn:
            await conn.execute(
                """
                INSERT INTO tags (
                    id, owner_id, name, normalized_name, embedding, usage_count, created_at
                ) VALUES ($1, $2, $3, $4, $5::vector, $6, $7)
                """,
                tag.id,
                tag.owner_id,
                tag.name,
                tag.normalized_name,
                embedding_to_pgvector(tag.embedding),
                tag.usage_count,
                tag.created_at,
            )
        return tag

    async def get_tag_by_normalized_name(
        self, owner_id: str, normalized_name: str
    ) -> Tag | None:
        """Get a tag by its normalized name."""
        async with self._connection("get tag") as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {_TAG_COLUMNS} FROM tags
                WHERE owner_id = $1 AND normalized_name = $2
                """,
                owner_id,
                normalized_name,
            )
        return _row_to_tag(row) if row else None

    async def list_tags(self, owner_id: str, *, limit: int | None = None) -> list[Tag]:
        """Tags of an owner, most used first."""
        async with self._connection("list tags") as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_TAG_COLUMNS} FROM tags
                WHERE owner_id = $1
                ORDER BY usage_count DESC, normalized_name
                LIMIT $2
                """,
                owner_id,
                limit,
            )
        return [_row_to_tag(row) for row in rows]

    async def increment_tag_usage(self, owner_id: str, tag_id: UUID, delta: int = 1) -> None:
        """Add delta to a tag's usage_count, floored at 0."""
        async with self._connection("increment tag usage") as conn:
            await conn.execute(
                """
                UPDATE tags SET usage_count = GREATEST(usage_count + $3, 0)
                WHERE owner_id = $1 AND id = $2
                """,
                owner_id,
                tag_id,
                delta,
            )

    async def set_memory_tags(self, memory_id: UUID, tag_ids: list[UUID]) -> None:
        """Replace the tags of a memory in one transaction."""
        unique_ids = list(dict.fromkeys(tag_ids))
        async with self._connection("set memory tags") as conn:
            async with conn.transaction():
                await conn.execute("DELETE FROM memory_tags WHERE memory_id = $1", memory_id)
                if unique_ids:
                    await conn.executemany(
                        "INSERT INTO memory_tags (memory_id, tag_id) VALUES ($1, $2)",
                        [(memory_id, tag_id) for tag_id in unique_ids],
                    )

    async def get_memory_tags(self, owner_id: str, memory_id: UUID) -> list[Tag]:
        """Tags attached to a memory."""
        async with self._connection("get memory tags") as conn:
            rows = await conn.fetch(
                f"""
                SELECT {", ".join("t." + c.strip() for c in _TAG_COLUMNS.split(","))}
                FROM memory_tags mt JOIN tags t ON t.id = mt.tag_id
                WHERE mt.memory_id = $1 AND t.owner_id = $2
                ORDER BY t.normalized_name
                """,
                memory_id,
                owner_id,
            )
        return [_row_to_tag(row) for row in rows]

    async def merge_tags(
        self, owner_id: str, canonical_id: UUID, duplicate_ids: list[UUID]
    ) -> None:
        """Fold duplicates into the canonical tag in one transaction."""
        duplicates = [tag_id for tag_id in duplicate_ids if tag_id != canonical_id]
        async with self._connection("merge tags") as conn:
            async with conn.transaction():
                canonical = await conn.fetchval(
                    "SELECT id FROM tags WHERE owner_id = $1 AND id = $2 FOR UPDATE",
                    owner_id,
                    canonical_id,
                )
                if canonical is None:
                    raise NotFoundError(f"Tag {canonical_id} not found")
                if not duplicates:
                    return
                await conn.execute(
                    """
                    INSERT INTO memory_tags (memory_id, tag_id)
                    SELECT mt.memory_id, $2
                    FROM memory_tags mt JOIN tags t ON t.id = mt.tag_id
                    WHERE t.owner_id = $1 AND mt.tag_id = ANY($3::uuid[])
                    ON CONFLICT DO NOTHING
                    """,
                    owner_id,
                    canonical_id,
                    duplicates,
                )
                await conn.execute(
                    """
                    UPDATE tags SET usage_count = usage_count + (
                        SELECT COALESCE(SUM(usage_count), 0) FROM tags
                        WHERE owner_id = $1 AND id = ANY($3::uuid[])
                    )
                    WHERE owner_id = $1 AND id = $2
                    """,
                    owner_id,
                    canonical_id,
                    duplicates,
                )
                # memory_tags rows of the duplicates go with them (ON DELETE CASCADE)
                await conn.execute(
                    "DELETE FROM tags WHERE owner_id = $1 AND id = ANY($2::uuid[])",
                    owner_id,
                    duplicates,
                )

    # Relationship operations
    async def upsert_relationship(self, relationship: MemoryRelationship) -> MemoryRelationship:
        """Insert an edge or update the existing edge for its pair.

        A manual edge keeps its type and score unless replaced by another manual edge.
        """
        async with self._connection("upsert relationship") as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO memory_relationships (
                    id, owner_id, memory_a_id, memory_b_id, relationship_type,
                    similarity_score, created_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                ON CONFLICT (owner_id, memory_a_id, memory_b_id) DO UPDATE SET
                    similarity_score = CASE
                        WHEN memory_relationships.relationship_type = $8
                             AND EXCLUDED.relationship_type <> $8
                        THEN memory_relationships.similarity_score
                        ELSE EXCLUDED.similarity_score END,
                    relationship_type = CASE
                        WHEN memory_relationships.relationship_type = $8
                        THEN memory_relationships.relationship_type
                        ELSE EXCLUDED.relationship_type END
                RETURNING id, owner_id, memory_a_id, memory_b_id, relationship_type,
                    similarity_score::float8 AS similarity_score, created_at
                """,
                relationship.id,
                relationship.owner_id,
                relationship.memory_a_id,
                relationship.memory_b_id,
                relationship.relationship_type,
                relationship.similarity_score,
                relationship.created_at,
                MANUAL,
            )
        return MemoryRelationship.model_validate(dict(row))

    async def list_relationships(
        self, owner_id: str, memory_ids: list[UUID]
    ) -> list[MemoryRelationship]:
        """Edges touching any of the given memories."""
        if not memory_ids:
            return []
        async with self._connection("list relationships") as conn:
            rows = await conn.fetch(
                """
                SELECT id, owner_id, memory_a_id, memory_b_id, relationship_type,
                    similarity_score::float8 AS similarity_score, created_at
                FROM memory_relationships
                WHERE owner_id = $1
                  AND (memory_a_id = ANY($2::uuid[]) OR memory_b_id = ANY($2::uuid[]))
                """,
                owner_id,
                memory_ids,
            )
        return [MemoryRelationship.model_validate(dict(row)) for row in rows]

    async def count_relationships(self, owner_id: str, memory_id: UUID) -> int:
        """Number of edges touching a memory."""
        async with self._connection("count relationships") as conn:
            count = await conn.fetchval(
                """
                SELECT COUNT(*) FROM memory_relationships
                WHERE owner_id = $1 AND (memory_a_id = $2 OR memory_b_id = $2)
                """,
                owner_id,
                memory_id,
            )
        return int(count or 0)

    async def delete_relationship(self, owner_id: str, first: UUID, second: UUID) -> bool:
        """Remove the edge between two memories."""
        a, b = canonical_pair(first, second)
        async with self._connection("delete relationship") as conn:
            result = await conn.execute(
                """
                DELETE FROM memory_relationships
                WHERE owner_id = $1 AND memory_a_id = $2 AND memory_b_id = $3
                """,
                owner_id,
                a,
                b,
            )
        return result.split()[-1] != "0"
