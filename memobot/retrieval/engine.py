"""Tiered memory retrieval: graph network, hybrid fusion, semantic fallback."""

from collections.abc import Awaitable
from dataclasses import dataclass
from uuid import UUID

from memobot.config.models.memory import RetrievalConfig
from memobot.db.errors import StoreError
from memobot.memory.models import Memory
from memobot.memory.store import MemoryStore
from memobot.observability.logging import get_logger
from memobot.observability.metrics import RETRIEVAL_TIER
from memobot.providers.embedding import EmbeddingProvider
from memobot.retrieval.models import RetrievedMemory, SearchTier, make_preview
from memobot.utils.fusion import RRFScorer
from memobot.utils.vector import cosine_similarity

logger = get_logger(__name__)

# Relevance weights for graph neighbours: (edge score, similarity to parent)
FIRST_DEGREE_WEIGHTS = (1.0, 0.8)
SECOND_DEGREE_WEIGHTS = (0.7, 0.6)


@dataclass
class _Node:
    memory: Memory
    relevance: float


def _similarity(a: list[float] | None, b: list[float] | None) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    return cosine_similarity(a, b)


class RetrievalEngine:
    """Searches an owner's memories, escalating through tiers until one has hits.

    1. Network: direct semantic matches plus up to two degrees of graph
       neighbours (only when related memories are requested).
    2. Hybrid: reciprocal-rank fusion of keyword and semantic rankings.
    3. Semantic: top matches above a similarity threshold.

    A tier whose backend fails is logged and skipped.
    """

    def __init__(
        self,
        store: MemoryStore,
        embedder: EmbeddingProvider,
        config: RetrievalConfig | None = None,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._config = config or RetrievalConfig()
        self._fusion = RRFScorer(
            weights=[self._config.full_text_weight, self._config.semantic_weight],
            k=self._config.rrf_k,
        )

    def _preview(self, memory: Memory) -> str:
        return make_preview(memory.content, self._config.content_preview_length)

    def clamp_limit(self, limit: int | None) -> int:
        """Apply the default and the maximum result count."""
        if not limit or limit < 1:
            return self._config.default_limit
        return min(limit, self._config.max_limit)

    async def search(
        self,
        owner_id: str,
        query: str,
        *,
        limit: int | None = None,
        include_related: bool = True,
    ) -> list[RetrievedMemory]:
        """Run the tier cascade for a query.

        Raises:
            ProviderError: If the query cannot be embedded
        """
        count = self.clamp_limit(limit)
        query_embedding = await self._embedder.embed_single(query)

        if include_related:
            results = await self._run_tier(
                SearchTier.NETWORK, self.network_search(owner_id, query_embedding, count)
            )
            if results:
                return results
            results = await self._run_tier(
                SearchTier.HYBRID, self.hybrid_search(owner_id, query, query_embedding, count)
            )
            if results:
                return results

        return await self._run_tier(
            SearchTier.SEMANTIC, self.semantic_search(owner_id, query_embedding, count)
        )

    async def _run_tier(
        self,
        tier: SearchTier,
        pending: Awaitable[list[RetrievedMemory]],
    ) -> list[RetrievedMemory]:
        try:
            results = await pending
        except StoreError as e:
            logger.warning("retrieval_tier_failed", tier=tier.value, error=str(e))
            return []
        if results:
            RETRIEVAL_TIER.labels(tier=tier.value).inc()
            logger.debug("retrieval_served", tier=tier.value, hits=len(results))
        return results

    # ========================================================================
    # Network search
    # ========================================================================

    async def network_search(
        self,
        owner_id: str,
        query_embedding: list[float],
        initial_count: int | None = None,
    ) -> list[RetrievedMemory]:
        """Direct matches plus first- and second-degree graph neighbours.

        Ordered by degree, then relevance. Neighbours are capped at
        initial_count * related_count (first degree) and
        initial_count * related_count ** 2 (second degree).
        """
        initial = initial_count or self._config.network_initial_count
        related = self._config.network_related_count

        direct_hits = await self._store.vector_search_memories(
            owner_id,
            query_embedding,
            limit=initial,
            min_score=self._config.network_threshold,
        )
        if not direct_hits:
            return []

        direct = {m.id: _Node(m, score) for m, score in direct_hits}
        first = await self._expand(
            owner_id,
            frontier=direct,
            exclude=set(direct),
            weights=FIRST_DEGREE_WEIGHTS,
            cap=initial * related,
        )
        second = await self._expand(
            owner_id,
            frontier=first,
            exclude=set(direct) | set(first),
            weights=SECOND_DEGREE_WEIGHTS,
            cap=initial * related * related,
        )

        results: list[RetrievedMemory] = []
        for degree, nodes in enumerate((direct, first, second)):
            ordered = sorted(nodes.values(), key=lambda n: n.relevance, reverse=True)
            results.extend(
                RetrievedMemory(
                    id=node.memory.id,
                    title=node.memory.title,
                    content_preview=self._preview(node.memory),
                    tier=SearchTier.NETWORK,
                    degree=degree,
                    relevance=node.relevance,
                )
                for node in ordered
            )
        return results

    async def _expand(
        self,
        owner_id: str,
        *,
        frontier: dict[UUID, _Node],
        exclude: set[UUID],
        weights: tuple[float, float],
        cap: int,
    ) -> dict[UUID, _Node]:
        """Neighbours of the frontier not in exclude, keeping each one's best relevance."""
        if not frontier or cap <= 0:
            return {}

        edges = await self._store.list_relationships(owner_id, list(frontier))
        pairs: list[tuple[UUID, UUID, float]] = []
        for edge in edges:
            for parent_id in (edge.memory_a_id, edge.memory_b_id):
                if parent_id not in frontier:
                    continue
                neighbour_id = edge.other(parent_id)
                if neighbour_id not in exclude:
                    pairs.append((parent_id, neighbour_id, edge.similarity_score))
        if not pairs:
            return {}

        neighbour_ids = list(dict.fromkeys(n for _, n, _ in pairs))
        neighbours = {m.id: m for m in await self._store.get_memories(owner_id, neighbour_ids)}

        edge_weight, similarity_weight = weights
        best: dict[UUID, _Node] = {}
        for parent_id, neighbour_id, edge_score in pairs:
            memory = neighbours.get(neighbour_id)
            if memory is None:
                continue
            parent = frontier[parent_id].memory
            relevance = max(
                edge_score * edge_weight,
                _similarity(memory.embedding, parent.embedding) * similarity_weight,
            )
            current = best.get(neighbour_id)
            if current is None or relevance > current.relevance:
                best[neighbour_id] = _Node(memory, relevance)

        ordered = sorted(best.items(), key=lambda item: item[1].relevance, reverse=True)
        return dict(ordered[:cap])

    # ========================================================================
    # Hybrid search
    # ========================================================================

    async def hybrid_search(
        self,
        owner_id: str,
        query: str,
        query_embedding: list[float],
        match_count: int | None = None,
    ) -> list[RetrievedMemory]:
        """Fuse keyword and semantic rankings, dropping scores under the floor."""
        count = match_count or self._config.default_limit
        keyword_hits = await self._store.keyword_search_memories(
            owner_id, query, limit=count * 2
        )
        semantic_hits = await self._store.vector_search_memories(
            owner_id, query_embedding, limit=count * 2, min_score=None
        )

        memories: dict[UUID, Memory] = {m.id: m for m in keyword_hits}
        memories.update((m.id, m) for m, _ in semantic_hits)

        fused = self._fusion.fuse(
            [[m.id for m in keyword_hits], [m.id for m, _ in semantic_hits]]
        )
        return [
            RetrievedMemory(
                id=memory_id,
                title=memories[memory_id].title,
                content_preview=self._preview(memories[memory_id]),
                tier=SearchTier.HYBRID,
                score=score,
            )
            for memory_id, score in fused[:count]
            if score >= self._config.min_hybrid_score
        ]

    # ========================================================================
    # Semantic search
    # ========================================================================

    async def semantic_search(
        self,
        owner_id: str,
        query_embedding: list[float],
        match_count: int | None = None,
        threshold: float | None = None,
    ) -> list[RetrievedMemory]:
        """Top matches with similarity strictly above the threshold."""
        hits = await self._store.vector_search_memories(
            owner_id,
            query_embedding,
            limit=match_count or self._config.semantic_match_count,
            min_score=self._config.semantic_threshold if threshold is None else threshold,
        )
        return [
            RetrievedMemory(
                id=memory.id,
                title=memory.title,
                content_preview=self._preview(memory),
                tier=SearchTier.SEMANTIC,
                similarity=similarity,
            )
            for memory, similarity in hits
        ]
