"""Message routing between channels, account linking and the agent."""

from memobot.router.message_router import LINK_COMMAND, MessageRouter, welcome_message
from memobot.router.models import InboundMessage, OutboundReply

__all__ = [
    "LINK_COMMAND",
    "InboundMessage",
    "MessageRouter",
    "OutboundReply",
    "welcome_message",
]
