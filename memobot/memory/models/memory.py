"""Memory model for memory domain."""

from datetime import UTC, datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class Channel(str, Enum):
    """Where a message or memory came from."""

    WHATSAPP = "whatsapp"
    TELEGRAM = "telegram"
    WEB = "web"


class SyncStatus(str, Enum):
    """Offline sync state of a memory."""

    PENDING = "pending"
    SYNCED = "synced"
    CONFLICT = "conflict"


class Memory(BaseModel):
    """A captured memory.

    The embedding always reflects the current content; anything that
    changes content re-embeds it.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    id: UUID = Field(default_factory=uuid4, description="Unique identifier")
    owner_id: str = Field(..., description="Owning account")
    title: str | None = Field(default=None, description="Short title")
    content: str = Field(..., description="Full memory text")
    summary: str | None = Field(default=None, description="One-sentence summary")
    embedding: list[float] | None = Field(default=None, description="Content vector")
    category_id: UUID | None = Field(default=None, description="Assigned category")
    source_channel: Channel | None = Field(default=None, description="Capture channel")
    occurred_at: datetime | None = Field(default=None, description="When the event happened")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update time")
    sync_status: SyncStatus = Field(default=SyncStatus.PENDING, description="Sync state")
    deleted_at: datetime | None = Field(default=None, description="Soft-delete marker")

    @property
    def is_deleted(self) -> bool:
        """Whether the memory has been soft-deleted."""
        return self.deleted_at is not None
