"""Conversation session models."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from memobot.memory.models import Channel, utc_now

DEFAULT_SESSION_TTL = timedelta(hours=24)


class ConversationState(str, Enum):
    """Where a session is in the memory capture flow."""

    CONVERSATION = "CONVERSATION"
    MEMORY_CAPTURE = "MEMORY_CAPTURE"
    MEMORY_ENRICHMENT = "MEMORY_ENRICHMENT"
    MEMORY_DRAFT = "MEMORY_DRAFT"


DRAFT_STATES = frozenset({
    ConversationState.MEMORY_CAPTURE,
    ConversationState.MEMORY_ENRICHMENT,
    ConversationState.MEMORY_DRAFT,
})


class ChatMessage(BaseModel):
    """One entry of a session's message history."""

    role: Literal["user", "assistant"] = Field(..., description="Who sent the message")
    content: str = Field(..., description="Message text")


class MemoryDraft(BaseModel):
    """The in-progress memory captured across turns.

    After a save the draft only remembers the created memory, which lets a
    repeated finalize answer with the same identity.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    content_parts: list[str] = Field(default_factory=list, description="Captured fragments")
    enrichment_count: int = Field(default=0, ge=0, description="Follow-up answers added")
    started_at: datetime | None = Field(default=None, description="When capture started")
    full_content: str | None = Field(default=None, description="Assembled content")
    title: str | None = Field(default=None, description="Generated or chosen title")
    summary: str | None = Field(default=None, description="Generated summary")
    category_preview: str | None = Field(default=None, description="Category shown in the draft")
    tags_preview: list[str] = Field(default_factory=list, description="Tags shown in the draft")
    quick_save: bool = Field(default=False, description="Saved without confirmation")
    forwarded: bool = Field(default=False, description="Captured from a forwarded message")
    saving_in_progress: bool = Field(default=False, description="Finalize marker")
    last_created_memory_id: UUID | None = Field(default=None, description="Last saved memory")
    last_created_memory_title: str | None = Field(default=None, description="Its title")
    last_created_at: datetime | None = Field(default=None, description="When it was saved")

    def assemble_content(self) -> str:
        """Full content if generated, else the parts joined by blank lines."""
        if self.full_content:
            return self.full_content
        return "\n\n".join(part for part in self.content_parts if part.strip()).strip()

    def saved_recently(self, window_seconds: float, now: datetime | None = None) -> bool:
        """Whether this draft remembers a memory saved within the window."""
        if self.last_created_memory_id is None or self.last_created_at is None:
            return False
        elapsed = (now or utc_now()) - self.last_created_at
        return elapsed.total_seconds() <= window_seconds


class ConversationSession(BaseModel):
    """Per-channel-identity conversation state, versioned for check-and-set."""

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    id: UUID = Field(default_factory=uuid4, description="Unique identifier")
    owner_id: str = Field(..., description="Owning account")
    channel: Channel = Field(..., description="Chat channel")
    channel_user_id: str = Field(..., description="User id on the channel")
    state: ConversationState = Field(
        default=ConversationState.CONVERSATION, description="Capture flow state"
    )
    draft: MemoryDraft = Field(default_factory=MemoryDraft, description="Current draft")
    message_history: list[ChatMessage] = Field(
        default_factory=list, description="Recent messages, oldest first"
    )
    version: int = Field(default=0, ge=0, description="Optimistic concurrency counter")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update time")
    expires_at: datetime = Field(
        default_factory=lambda: utc_now() + DEFAULT_SESSION_TTL,
        description="After this the session is never reused",
    )

    def is_expired(self, now: datetime | None = None) -> bool:
        """Whether the session has passed its expiry."""
        return (now or utc_now()) >= self.expires_at

    @property
    def in_draft(self) -> bool:
        """Whether a memory is being captured."""
        return self.state in DRAFT_STATES
