"""Account linking models."""

from datetime import datetime, timedelta
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from memobot.memory.models import Channel, utc_now

LINK_CODE_TTL = timedelta(minutes=10)


class LinkCode(BaseModel):
    """One-time 6-digit code that links a chat identity to an owner."""

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    id: UUID = Field(default_factory=uuid4, description="Unique identifier")
    owner_id: str = Field(..., description="Account issuing the code")
    channel: Channel = Field(..., description="Channel the code links")
    code: str = Field(..., pattern=r"^\d{6}$", description="Six digits")
    expires_at: datetime = Field(
        default_factory=lambda: utc_now() + LINK_CODE_TTL, description="Expiry"
    )
    used_at: datetime | None = Field(default=None, description="When redeemed")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")

    def is_valid(self, now: datetime | None = None) -> bool:
        """Unused and not expired."""
        return self.used_at is None and (now or utc_now()) < self.expires_at


class PlatformLink(BaseModel):
    """A chat identity linked to an owner. (channel, channel_user_id) is unique."""

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    id: UUID = Field(default_factory=uuid4, description="Unique identifier")
    owner_id: str = Field(..., description="Linked account")
    channel: Channel = Field(..., description="Chat channel")
    channel_user_id: str = Field(..., description="User id on the channel")
    linked_at: datetime = Field(default_factory=utc_now, description="When linked")


class LinkResult(BaseModel):
    """Outcome of redeeming a link code, with the reply to send."""

    success: bool = Field(..., description="Whether the identity is now linked")
    message: str = Field(..., description="User-facing reply")
    owner_id: str | None = Field(default=None, description="Linked account on success")
