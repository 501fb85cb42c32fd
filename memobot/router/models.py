"""Inbound and outbound message models."""

from pydantic import BaseModel, Field, model_validator

from memobot.agent.models import Attachment, MemoryCard, SuggestedButton
from memobot.memory.models import Channel


class InboundMessage(BaseModel):
    """A message delivered by a channel adapter or the web chat."""

    channel: Channel = Field(..., description="Channel the message arrived on")
    channel_user_id: str = Field(..., min_length=1, description="Sender id on the channel")
    text: str = Field(default="", description="Message text")
    button_id: str | None = Field(default=None, description="Tapped button, if any")
    attachment: Attachment | None = Field(default=None, description="Attached file")
    is_forwarded: bool = Field(default=False, description="Forwarded from another chat")
    owner_id: str | None = Field(
        default=None, description="Authenticated owner; only trusted for web messages"
    )

    @model_validator(mode="after")
    def _web_needs_owner(self) -> "InboundMessage":
        if self.channel == Channel.WEB and not self.owner_id:
            raise ValueError("web messages must carry the authenticated owner_id")
        return self


class OutboundReply(BaseModel):
    """What to send back to the user."""

    text: str = Field(..., description="Reply text")
    buttons: list[SuggestedButton] | None = Field(
        default=None, description="Buttons, on channels that render them"
    )
    retrieved_memories: list[MemoryCard] = Field(
        default_factory=list, description="Memories found while answering"
    )
    created_memory: MemoryCard | None = Field(default=None, description="Memory saved this turn")
