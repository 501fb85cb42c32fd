"""Retrieval result models."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SearchTier(str, Enum):
    """Which search strategy produced a result."""

    NETWORK = "network"
    HYBRID = "hybrid"
    SEMANTIC = "semantic"


def make_preview(content: str, length: int = 220) -> str:
    """First `length` characters of content, with "..." when truncated."""
    if len(content) <= length:
        return content
    return content[:length] + "..."


class RetrievedMemory(BaseModel):
    """A search hit in the same shape whichever tier served it."""

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    id: UUID = Field(..., description="Memory ID")
    title: str | None = Field(default=None, description="Memory title")
    content_preview: str = Field(..., description="Bounded content preview")
    tier: SearchTier = Field(..., description="Tier that produced the hit")
    degree: int | None = Field(default=None, description="Graph distance from a direct match")
    relevance: float | None = Field(default=None, description="Network relevance score")
    score: float | None = Field(default=None, description="Fused hybrid score")
    similarity: float | None = Field(default=None, description="Cosine similarity")

    def to_tool_result(self) -> dict:
        """Dict for tool output, omitting tier fields that do not apply."""
        return self.model_dump(mode="json", exclude_none=True, exclude={"tier"})
