"""Read models for the memory graph."""

from uuid import UUID

from pydantic import BaseModel, Field


class GraphNode(BaseModel):
    """A live memory in the graph."""

    id: UUID
    title: str


class GraphLink(BaseModel):
    """An edge between two live memories."""

    source: UUID
    target: UUID
    score: float
    relationship_type: str


class MemoryGraph(BaseModel):
    """An owner's memories and the edges between them."""

    nodes: list[GraphNode] = Field(default_factory=list)
    links: list[GraphLink] = Field(default_factory=list)


class RelatedMemory(BaseModel):
    """A neighbour found when recomputing a memory's edges."""

    id: UUID
    similarity_score: float
