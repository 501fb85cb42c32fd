"""Mock LLM provider for testing."""

import json
from collections import deque
from collections.abc import Callable
from typing import Any
from uuid import uuid4

from memobot.providers.llm.base import (
    LLMMessage,
    LLMProvider,
    LLMResponse,
    ProviderError,
    TokenUsage,
    ToolCall,
    ToolDefinition,
)

ScriptedReply = LLMResponse | str | Exception
Responder = Callable[[list[LLMMessage]], ScriptedReply | None]


def tool_call(name: str, arguments: dict[str, Any] | str | None = None) -> ToolCall:
    """Build a ToolCall for scripting; dict arguments are JSON-encoded."""
    if arguments is None:
        encoded = "{}"
    elif isinstance(arguments, str):
        encoded = arguments
    else:
        encoded = json.dumps(arguments)
    return ToolCall(id=f"call_{uuid4().hex[:12]}", name=name, arguments=encoded)


def tool_calls_response(*calls: ToolCall, content: str = "") -> LLMResponse:
    """Build a response that requests the given tool calls."""
    return LLMResponse(
        content=content,
        model="mock-model",
        finish_reason="tool_calls",
        tool_calls=list(calls),
    )


class MockLLMProvider(LLMProvider):
    """Mock LLM provider for testing.

    Replies are resolved in order: the scripted queue (`enqueue`), then a
    `responder` callable, then exact matches on the last message content,
    then substring triggers, then the default response. A queued or returned
    Exception is raised instead of answered.
    """

    def __init__(
        self,
        default_response: str = "Mock response",
        default_model: str = "mock-model",
        responses: dict[str, str] | None = None,
        responder: Responder | None = None,
    ):
        """Initialize mock provider.

        Args:
            default_response: Response to return when nothing else matches
            default_model: Model name to report when none is requested
            responses: Dict mapping last message content to responses
            responder: Callable inspecting messages, returning a reply or None
        """
        self._default_response = default_response
        self._default_model = default_model
        self._responses = responses or {}
        self._triggers: dict[str, ScriptedReply] = {}
        self._responder = responder
        self._queue: deque[ScriptedReply] = deque()
        self._call_history: list[dict[str, Any]] = []

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "mock"

    @property
    def call_history(self) -> list[dict[str, Any]]:
        """Return history of calls for testing assertions."""
        return self._call_history

    def clear_history(self) -> None:
        """Clear call history."""
        self._call_history.clear()

    def set_response(self, trigger: str, response: str) -> None:
        """Set a response for a specific last-message content."""
        self._responses[trigger] = response

    def when_contains(self, fragment: str, reply: ScriptedReply) -> None:
        """Reply with `reply` whenever any message contains `fragment`."""
        self._triggers[fragment] = reply

    def enqueue(self, *replies: ScriptedReply) -> None:
        """Queue replies returned by the next calls, in order."""
        self._queue.extend(replies)

    def _resolve(self, messages: list[LLMMessage]) -> ScriptedReply:
        if self._queue:
            return self._queue.popleft()
        if self._responder is not None:
            reply = self._responder(messages)
            if reply is not None:
                return reply
        if messages and messages[-1].content in self._responses:
            return self._responses[messages[-1].content]
        for fragment, reply in self._triggers.items():
            if any(fragment in m.content for m in messages):
                return reply
        return self._default_response

    async def generate(
        self,
        messages: list[LLMMessage],
        *,
        model: str | None = None,
        tools: list[ToolDefinition] | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        **kwargs: Any,
    ) -> LLMResponse:
        """Generate mock response."""
        use_model = model or self._default_model
        self._call_history.append({
            "messages": list(messages),
            "model": use_model,
            "tools": [t.name for t in tools or []],
            "max_tokens": max_tokens,
            "temperature": temperature,
            "kwargs": kwargs,
        })

        reply = self._resolve(messages)
        if isinstance(reply, Exception):
            if isinstance(reply, ProviderError):
                raise reply
            raise ProviderError(str(reply)) from reply

        if isinstance(reply, str):
            response = LLMResponse(content=reply, model=use_model, finish_reason="stop")
        else:
            response = reply.model_copy(update={"model": use_model})

        prompt_tokens = sum(len(m.content) // 4 for m in messages)
        completion_tokens = len(response.content) // 4
        response.usage = TokenUsage(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        )
        return response
