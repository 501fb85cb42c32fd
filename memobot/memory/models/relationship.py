"""Relationship edge between two memories."""

from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from memobot.memory.models.memory import utc_now

RELATED = "related"
MANUAL = "manual"


def canonical_pair(a: UUID, b: UUID) -> tuple[UUID, UUID]:
    """Order a pair so the smaller id comes first."""
    return (a, b) if a < b else (b, a)


class MemoryRelationship(BaseModel):
    """Undirected, scored edge stored once per pair with memory_a_id < memory_b_id."""

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    id: UUID = Field(default_factory=uuid4, description="Unique identifier")
    owner_id: str = Field(..., description="Owning account")
    memory_a_id: UUID = Field(..., description="Smaller memory id")
    memory_b_id: UUID = Field(..., description="Larger memory id")
    similarity_score: float = Field(..., ge=0.0, le=1.0, description="Cosine similarity, 2 decimals")
    relationship_type: str = Field(default=RELATED, description="Edge type")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")

    @model_validator(mode="after")
    def _check_canonical(self) -> "MemoryRelationship":
        if self.memory_a_id == self.memory_b_id:
            raise ValueError("A memory cannot be related to itself")
        if self.memory_a_id > self.memory_b_id:
            raise ValueError("memory_a_id must be smaller than memory_b_id")
        return self

    @classmethod
    def between(
        cls,
        owner_id: str,
        first: UUID,
        second: UUID,
        score: float,
        relationship_type: str = RELATED,
    ) -> "MemoryRelationship":
        """Build the canonical edge for an unordered pair, rounding the score."""
        a, b = canonical_pair(first, second)
        return cls(
            owner_id=owner_id,
            memory_a_id=a,
            memory_b_id=b,
            similarity_score=min(max(round(score, 2), 0.0), 1.0),
            relationship_type=relationship_type,
        )

    def other(self, memory_id: UUID) -> UUID:
        """Return the endpoint that is not `memory_id`."""
        return self.memory_b_id if memory_id == self.memory_a_id else self.memory_a_id
