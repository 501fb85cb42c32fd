"""Memory relationship graph."""

from memobot.relationships.builder import RelationshipBuilder
from memobot.relationships.models import GraphLink, GraphNode, MemoryGraph, RelatedMemory

__all__ = ["GraphLink", "GraphNode", "MemoryGraph", "RelatedMemory", "RelationshipBuilder"]
