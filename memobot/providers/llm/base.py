"""LLM data models and provider interface.

This module provides the core types used by LLMExecutor:
- LLMMessage: Input message format, including tool call turns
- ToolDefinition / ToolCall: Function-calling schema and requests
- LLMResponse: Output response format
- TokenUsage: Token counting
- LLMProvider: Abstract backend interface
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from memobot.providers.errors import (
    AuthenticationError,
    ModelError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
)


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    id: str = Field(..., description="Provider-assigned call id")
    name: str = Field(..., description="Tool name")
    arguments: str = Field(default="{}", description="JSON-encoded arguments, unvalidated")


class LLMMessage(BaseModel):
    """A message in a conversation."""

    role: str = Field(..., description="Role: system, user, assistant or tool")
    content: str = Field(default="", description="Message content")
    tool_calls: list[ToolCall] = Field(
        default_factory=list, description="Tool calls made by an assistant message"
    )
    tool_call_id: str | None = Field(
        default=None, description="Call this tool message answers"
    )
    name: str | None = Field(default=None, description="Tool name for tool messages")


class ToolDefinition(BaseModel):
    """A function the model may call."""

    name: str = Field(..., description="Tool name")
    description: str = Field(..., description="What the tool does")
    parameters: dict[str, Any] = Field(..., description="JSON schema of the arguments")


class TokenUsage(BaseModel):
    """Token usage statistics."""

    prompt_tokens: int = Field(..., description="Tokens in prompt")
    completion_tokens: int = Field(..., description="Tokens in completion")
    total_tokens: int = Field(..., description="Total tokens used")


class LLMResponse(BaseModel):
    """Response from an LLM call."""

    content: str = Field(default="", description="Generated text")
    model: str = Field(..., description="Model used")
    finish_reason: str | None = Field(
        default=None, description="Why generation stopped"
    )
    tool_calls: list[ToolCall] = Field(
        default_factory=list, description="Tool calls requested by the model"
    )
    usage: TokenUsage | None = Field(default=None, description="Token usage stats")
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Execution metadata"
    )


class LLMProvider(ABC):
    """Abstract interface for chat completion backends."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def generate(
        self,
        messages: list[LLMMessage],
        *,
        model: str,
        tools: list[ToolDefinition] | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        **kwargs: Any,
    ) -> LLMResponse:
        """Generate a completion.

        Args:
            messages: Conversation messages
            model: Model identifier
            tools: Functions the model may call
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            **kwargs: Provider-specific options

        Raises:
            ProviderError: Any backend failure, as the matching subclass
        """
        pass


__all__ = [
    "AuthenticationError",
    "LLMMessage",
    "LLMProvider",
    "LLMResponse",
    "ModelError",
    "ProviderError",
    "ProviderTimeoutError",
    "RateLimitError",
    "TokenUsage",
    "ToolCall",
    "ToolDefinition",
]
