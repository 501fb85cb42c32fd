"""Request and response models for graph and taxonomy maintenance."""

from uuid import UUID

from pydantic import BaseModel, Field

from memobot.classification import TagMerge
from memobot.relationships import RelatedMemory


class RelateRequest(BaseModel):
    """Memory to link with the one in the path."""

    target_memory_id: UUID = Field(..., description="Memory to link to")


class RelateResponse(BaseModel):
    """Result of linking or unlinking two memories."""

    status: str
    memory_id: UUID
    target_memory_id: UUID


class RecomputeRelationsResponse(BaseModel):
    """Edges rebuilt for one memory."""

    related_count: int
    related: list[RelatedMemory]


class CategoryCount(BaseModel):
    """Recounted size of one category."""

    id: UUID
    count: int


class RecalculateCountsResponse(BaseModel):
    """Categories whose counts were recomputed."""

    message: str
    updates: list[CategoryCount]


class MergeTagsResponse(BaseModel):
    """Outcome of merging similar tags."""

    merged: int
    groups: int
    message: str
    merges: list[TagMerge] = Field(default_factory=list)
