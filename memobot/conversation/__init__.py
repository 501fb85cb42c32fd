"""Conversation sessions and the memory capture state machine."""

from memobot.conversation.models import (
    DRAFT_STATES,
    ChatMessage,
    ConversationSession,
    ConversationState,
    MemoryDraft,
)
from memobot.conversation.service import SessionService, remembered_draft
from memobot.conversation.store import SessionStore

__all__ = [
    "DRAFT_STATES",
    "ChatMessage",
    "ConversationSession",
    "ConversationState",
    "MemoryDraft",
    "SessionService",
    "SessionStore",
    "remembered_draft",
]
