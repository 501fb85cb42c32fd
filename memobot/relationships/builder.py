"""Builds the memory relationship graph from embedding similarity."""

from uuid import UUID

from memobot.config.models.memory import RelationshipConfig
from memobot.db.errors import NotFoundError, StoreError
from memobot.memory.models import MANUAL, RELATED, Memory, MemoryRelationship
from memobot.memory.store import MemoryStore
from memobot.observability.logging import get_logger
from memobot.relationships.models import GraphLink, GraphNode, MemoryGraph, RelatedMemory

logger = get_logger(__name__)

# Extra neighbours fetched so that dropping the memory itself still leaves enough
SELF_MATCH_SLACK = 5


class RelationshipBuilder:
    """Links each new memory to its most similar existing memories.

    Edges are undirected and stored once per pair; rebuilding updates the
    score of an existing edge instead of adding another.
    """

    def __init__(self, store: MemoryStore, config: RelationshipConfig | None = None) -> None:
        self._store = store
        self._config = config or RelationshipConfig()

    async def find_related(
        self,
        owner_id: str,
        memory_id: UUID,
        embedding: list[float],
    ) -> list[tuple[UUID, float]]:
        """Most similar other memories above the relationship threshold."""
        hits = await self._store.vector_search_memories(
            owner_id,
            embedding,
            limit=self._config.related_count + SELF_MATCH_SLACK,
            min_score=self._config.similarity_threshold,
        )
        related = [(memory.id, score) for memory, score in hits if memory.id != memory_id]
        return related[: self._config.related_count]

    async def relate(
        self,
        owner_id: str,
        first: UUID,
        second: UUID,
        score: float,
        relationship_type: str = RELATED,
    ) -> MemoryRelationship:
        """Create or update the single edge between two memories."""
        edge = MemoryRelationship.between(owner_id, first, second, score, relationship_type)
        return await self._store.upsert_relationship(edge)

    async def build_for_memory(
        self,
        owner_id: str,
        memory_id: UUID,
        embedding: list[float] | None,
    ) -> int:
        """Link a memory to its neighbours. Returns the number of edges; failures yield 0."""
        if not embedding:
            return 0
        try:
            related = await self.find_related(owner_id, memory_id, embedding)
            for other_id, score in related:
                await self.relate(owner_id, memory_id, other_id, score)
        except (StoreError, ValueError) as e:
            logger.warning(
                "relationship_build_failed",
                memory_id=str(memory_id),
                error=str(e),
            )
            return 0

        if related:
            logger.debug("relationships_built", memory_id=str(memory_id), count=len(related))
        return len(related)

    async def get_related_memories(
        self,
        owner_id: str,
        memory_id: UUID,
    ) -> list[tuple[Memory, float]]:
        """Neighbours of a memory with edge scores, highest first."""
        edges = await self._store.list_relationships(owner_id, [memory_id])
        scores = {edge.other(memory_id): edge.similarity_score for edge in edges}
        memories = await self._store.get_memories(owner_id, list(scores))
        related = [(memory, scores[memory.id]) for memory in memories]
        related.sort(key=lambda item: item[1], reverse=True)
        return related

    async def recompute_relations(self, owner_id: str, memory_id: UUID) -> list[RelatedMemory]:
        """Rebuild a memory's similarity edges from its stored embedding.

        Raises:
            NotFoundError: If the memory does not exist
            ValueError: If the memory has no embedding
        """
        memory = await self._store.get_memory(owner_id, memory_id)
        if memory is None:
            raise NotFoundError(f"Memory {memory_id} not found")
        if not memory.embedding:
            raise ValueError("Memory has no embedding")

        related = await self.find_related(owner_id, memory_id, memory.embedding)
        for other_id, score in related:
            await self.relate(owner_id, memory_id, other_id, score)
        logger.info("relationships_recomputed", memory_id=str(memory_id), count=len(related))
        return [RelatedMemory(id=other_id, similarity_score=score) for other_id, score in related]

    async def link_manually(self, owner_id: str, first: UUID, second: UUID) -> MemoryRelationship:
        """Pin a manual edge between two of the owner's memories."""
        if first == second:
            raise ValueError("Cannot link a memory to itself")
        found = await self._store.get_memories(owner_id, [first, second])
        missing = {first, second} - {memory.id for memory in found}
        if missing:
            raise NotFoundError(f"Memory {missing.pop()} not found")
        edge = await self.relate(owner_id, first, second, 1.0, MANUAL)
        logger.info("memories_linked", first=str(first), second=str(second))
        return edge

    async def unlink(self, owner_id: str, first: UUID, second: UUID) -> bool:
        """Remove the edge between two memories; False when there was none."""
        if await self._store.get_memory(owner_id, first) is None:
            raise NotFoundError(f"Memory {first} not found")
        removed = await self._store.delete_relationship(owner_id, first, second)
        if removed:
            logger.info("memories_unlinked", first=str(first), second=str(second))
        return removed

    async def unlink_all(self, owner_id: str, memory_id: UUID) -> int:
        """Remove every edge touching a memory."""
        edges = await self._store.list_relationships(owner_id, [memory_id])
        for edge in edges:
            await self._store.delete_relationship(owner_id, edge.memory_a_id, edge.memory_b_id)
        return len(edges)

    async def get_graph(self, owner_id: str) -> MemoryGraph:
        """All live memories of an owner and the edges between them."""
        memories = await self._store.list_recent_memories(owner_id, limit=None)
        live = {memory.id for memory in memories}
        edges = await self._store.list_relationships(owner_id, list(live))
        return MemoryGraph(
            nodes=[GraphNode(id=m.id, title=m.title or "(Untitled)") for m in memories],
            links=[
                GraphLink(
                    source=edge.memory_a_id,
                    target=edge.memory_b_id,
                    score=edge.similarity_score,
                    relationship_type=edge.relationship_type,
                )
                for edge in edges
                if edge.memory_a_id in live and edge.memory_b_id in live
            ],
        )
