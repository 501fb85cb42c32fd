"""Category and tag models."""

from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from memobot.memory.models.memory import utc_now


class Category(BaseModel):
    """A per-owner memory bucket. Names are unique per owner, ignoring case."""

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    id: UUID = Field(default_factory=uuid4, description="Unique identifier")
    owner_id: str = Field(..., description="Owning account")
    name: str = Field(..., min_length=1, description="Display name")
    description: str | None = Field(default=None, description="Generated description")
    color: str | None = Field(default=None, description="Palette colour")
    embedding: list[float] | None = Field(default=None, description="Name vector")
    memory_count: int = Field(default=0, ge=0, description="Non-deleted memories assigned")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update time")


class Tag(BaseModel):
    """A per-owner label. normalized_name is unique per owner."""

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    id: UUID = Field(default_factory=uuid4, description="Unique identifier")
    owner_id: str = Field(..., description="Owning account")
    name: str = Field(..., description="Display name")
    normalized_name: str = Field(..., description="Lowercase hyphenated key")
    embedding: list[float] | None = Field(default=None, description="Name vector")
    usage_count: int = Field(default=0, ge=0, description="Memories using this tag")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")


class MemoryTag(BaseModel):
    """Join between a memory and a tag."""

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    memory_id: UUID = Field(..., description="Tagged memory")
    tag_id: UUID = Field(..., description="Applied tag")
