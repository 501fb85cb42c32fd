"""OpenAI chat completions provider with function calling."""

import os
from typing import Any

import openai
from openai import AsyncOpenAI

from memobot.observability.logging import get_logger
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

logger = get_logger(__name__)


def _to_openai_message(message: LLMMessage) -> dict[str, Any]:
    if message.role == "tool":
        return {
            "role": "tool",
            "tool_call_id": message.tool_call_id,
            "content": message.content,
        }
    payload: dict[str, Any] = {"role": message.role, "content": message.content}
    if message.tool_calls:
        payload["content"] = message.content or None
        payload["tool_calls"] = [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": call.arguments},
            }
            for call in message.tool_calls
        ]
    return payload


def _to_openai_tool(tool: ToolDefinition) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.parameters,
        },
    }


class OpenAIChatProvider(LLMProvider):
    """LLM provider backed by the OpenAI chat completions API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
    ):
        self._api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not self._api_key:
            raise ValueError("OPENAI_API_KEY environment variable not set")
        self._client = AsyncOpenAI(api_key=self._api_key, base_url=base_url, timeout=timeout)

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "openai"

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
        """Call chat completions and map the first choice."""
        request: dict[str, Any] = {
            "model": model,
            "messages": [_to_openai_message(m) for m in messages],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if tools:
            request["tools"] = [_to_openai_tool(t) for t in tools]
            request["tool_choice"] = "auto"
        request.update(kwargs)

        try:
            completion = await self._client.chat.completions.create(**request)
        except openai.RateLimitError as e:
            raise RateLimitError(f"Rate limited: {e}") from e
        except openai.AuthenticationError as e:
            raise AuthenticationError(f"OpenAI authentication failed: {e}") from e
        except openai.NotFoundError as e:
            raise ModelError(f"Model {model} not available: {e}") from e
        except openai.APITimeoutError as e:
            raise ProviderTimeoutError(f"Chat completion timed out: {e}") from e
        except openai.APIError as e:
            logger.error("openai_chat_error", model=model, error=str(e))
            raise ProviderError(f"OpenAI API error: {e}") from e

        if not completion.choices:
            raise ProviderError(f"Empty completion from {model}")

        choice = completion.choices[0]
        tool_calls = [
            ToolCall(id=call.id, name=call.function.name, arguments=call.function.arguments or "{}")
            for call in (choice.message.tool_calls or [])
            if call.type == "function"
        ]

        usage = None
        if completion.usage:
            usage = TokenUsage(
                prompt_tokens=completion.usage.prompt_tokens,
                completion_tokens=completion.usage.completion_tokens,
                total_tokens=completion.usage.total_tokens,
            )

        return LLMResponse(
            content=choice.message.content or "",
            model=completion.model or model,
            finish_reason=choice.finish_reason,
            tool_calls=tool_calls,
            usage=usage,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.close()
