"""LLM providers for tool-calling reasoning.

The primary interface is LLMExecutor, which wraps an LLMProvider with a
fallback chain, a per-attempt timeout and owner/session context.
"""

from memobot.providers.llm.base import (
    AuthenticationError,
    LLMMessage,
    LLMProvider,
    LLMResponse,
    ModelError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    TokenUsage,
    ToolCall,
    ToolDefinition,
)
from memobot.providers.llm.executor import (
    ExecutionContext,
    LLMExecutor,
    clear_execution_context,
    create_executors,
    create_llm_provider,
    get_execution_context,
    set_execution_context,
)
from memobot.providers.llm.mock import MockLLMProvider, tool_call, tool_calls_response

__all__ = [
    # Data models
    "LLMMessage",
    "LLMResponse",
    "TokenUsage",
    "ToolCall",
    "ToolDefinition",
    "LLMProvider",
    # Errors
    "ProviderError",
    "AuthenticationError",
    "RateLimitError",
    "ModelError",
    "ProviderTimeoutError",
    # Executor
    "LLMExecutor",
    "ExecutionContext",
    "set_execution_context",
    "get_execution_context",
    "clear_execution_context",
    "create_executors",
    "create_llm_provider",
    # Testing
    "MockLLMProvider",
    "tool_call",
    "tool_calls_response",
]
