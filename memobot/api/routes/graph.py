"""Graph and taxonomy maintenance endpoints for the web client."""

from collections.abc import Awaitable
from typing import TypeVar
from uuid import UUID

from fastapi import APIRouter, Query, status

from memobot.api.dependencies import OwnerIdDep, ServicesDep
from memobot.api.exceptions import (
    InvalidRequestError,
    NotFoundAPIError,
    ServiceUnavailableError,
)
from memobot.api.models.graph import (
    CategoryCount,
    MergeTagsResponse,
    RecalculateCountsResponse,
    RecomputeRelationsResponse,
    RelateRequest,
    RelateResponse,
)
from memobot.db.errors import ConnectionError, NotFoundError
from memobot.observability.logging import get_logger
from memobot.relationships import MemoryGraph

logger = get_logger(__name__)

router = APIRouter()

T = TypeVar("T")


async def _run(operation: Awaitable[T]) -> T:
    try:
        return await operation
    except NotFoundError as e:
        raise NotFoundAPIError(str(e)) from e
    except ValueError as e:
        raise InvalidRequestError(str(e)) from e
    except ConnectionError as e:
        raise ServiceUnavailableError(f"Storage unavailable: {e}") from e


@router.get("/graph", response_model=MemoryGraph)
async def get_graph(owner_id: OwnerIdDep, services: ServicesDep) -> MemoryGraph:
    """Memories and their edges, for graph visualization."""
    return await _run(services.relationships.get_graph(owner_id))


@router.post(
    "/memories/{memory_id}/recompute-relations",
    response_model=RecomputeRelationsResponse,
)
async def recompute_relations(
    memory_id: UUID,
    owner_id: OwnerIdDep,
    services: ServicesDep,
) -> RecomputeRelationsResponse:
    """Rebuild a memory's edges from its stored embedding."""
    related = await _run(services.relationships.recompute_relations(owner_id, memory_id))
    return RecomputeRelationsResponse(related_count=len(related), related=related)


@router.post(
    "/memories/{memory_id}/relate",
    response_model=RelateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def relate_memories(
    memory_id: UUID,
    request: RelateRequest,
    owner_id: OwnerIdDep,
    services: ServicesDep,
) -> RelateResponse:
    """Link two memories by hand."""
    await _run(
        services.relationships.link_manually(owner_id, memory_id, request.target_memory_id)
    )
    return RelateResponse(
        status="linked", memory_id=memory_id, target_memory_id=request.target_memory_id
    )


@router.delete("/memories/{memory_id}/relate", response_model=RelateResponse)
async def unrelate_memories(
    memory_id: UUID,
    owner_id: OwnerIdDep,
    services: ServicesDep,
    target_memory_id: UUID = Query(..., description="Memory to unlink from"),
) -> RelateResponse:
    """Remove the edge between two memories."""
    removed = await _run(services.relationships.unlink(owner_id, memory_id, target_memory_id))
    return RelateResponse(
        status="unlinked" if removed else "not_linked",
        memory_id=memory_id,
        target_memory_id=target_memory_id,
    )


@router.post("/categories/recalculate", response_model=RecalculateCountsResponse)
async def recalculate_category_counts(
    owner_id: OwnerIdDep,
    services: ServicesDep,
) -> RecalculateCountsResponse:
    """Recount every category from its live memories."""
    counts = await _run(services.categories.recalculate_category_counts(owner_id))
    return RecalculateCountsResponse(
        message=f"Recalculated counts for {len(counts)} categories",
        updates=[CategoryCount(id=category_id, count=n) for category_id, n in counts.items()],
    )


@router.post("/tags/merge", response_model=MergeTagsResponse)
async def merge_tags(owner_id: OwnerIdDep, services: ServicesDep) -> MergeTagsResponse:
    """Merge near-duplicate tags into the most used tag of each group."""
    merges = await _run(services.tags.merge_similar_tags(owner_id))
    merged = sum(len(m.merged) for m in merges)
    if merged:
        message = f"Merged {merged} duplicate tags into {len(merges)} canonical tags"
    else:
        message = "No similar tags found"
    return MergeTagsResponse(merged=merged, groups=len(merges), message=message, merges=merges)
