"""Reasoning loop, tools and tool handlers."""

from memobot.agent.handlers import ToolContext, ToolHandlers
from memobot.agent.models import Attachment, MemoryCard, SuggestedButton, TurnResult
from memobot.agent.orchestrator import (
    AgentOrchestrator,
    quick_reply,
    should_use_fast_model,
)
from memobot.agent.tools import TOOL_SPECS, tool_definitions

__all__ = [
    "AgentOrchestrator",
    "Attachment",
    "MemoryCard",
    "SuggestedButton",
    "TOOL_SPECS",
    "ToolContext",
    "ToolHandlers",
    "TurnResult",
    "quick_reply",
    "should_use_fast_model",
    "tool_definitions",
]
