"""Request and response models for chat and account linking."""

from datetime import datetime

from pydantic import BaseModel, Field

from memobot.agent.models import Attachment
from memobot.memory.models import Channel


class ChatRequest(BaseModel):
    """Web chat message from an authenticated owner."""

    text: str = Field(default="", description="Message text")
    button_id: str | None = Field(default=None, description="Tapped button, if any")
    attachment: Attachment | None = Field(default=None, description="Attached file")


class LinkCodeRequest(BaseModel):
    """Request for a code linking a chat channel."""

    channel: Channel = Field(..., description="Channel to link")


class LinkCodeResponse(BaseModel):
    """Issued link code."""

    code: str
    channel: Channel
    expires_at: datetime


class LinkedAccountResponse(BaseModel):
    """A chat identity linked to the owner."""

    id: str
    channel: Channel
    channel_user_id: str
    linked_at: datetime
