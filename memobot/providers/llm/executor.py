"""LLM Executor - runs reasoning calls against a provider with a fallback chain.

Each use (tool-calling reasoning, fast follow-ups, utility prompts such as
naming and tagging) gets its own executor configured with:
- A specific model (from config)
- Fallback models (optional)
- A timeout applied to every attempt

The executor handles:
- Fallback chain on failure
- Timeouts via asyncio.wait_for
- Observability (latency, token metrics)
- Owner/session context via ExecutionContext
"""

from __future__ import annotations

import asyncio
import time
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from memobot.observability.logging import get_logger
from memobot.observability.metrics import LLM_TOKENS
from memobot.providers.llm.base import (
    LLMMessage,
    LLMProvider,
    LLMResponse,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    ToolDefinition,
)

if TYPE_CHECKING:
    from memobot.config.models.providers import LLMProviderConfig

logger = get_logger(__name__)


# ============================================================================
# Execution Context (avoids parameter threading)
# ============================================================================


@dataclass
class ExecutionContext:
    """Context for LLM execution - owner, session, step info.

    Set once per inbound message, available to all executors without
    threading through every method call.
    """

    owner_id: str
    session_id: str | None = None
    channel: str | None = None
    step: str | None = None


_execution_context: ContextVar[ExecutionContext | None] = ContextVar(
    "execution_context", default=None
)


def set_execution_context(ctx: ExecutionContext) -> None:
    """Set execution context for current async task."""
    _execution_context.set(ctx)


def get_execution_context() -> ExecutionContext | None:
    """Get execution context for current async task."""
    return _execution_context.get()


def clear_execution_context() -> None:
    """Clear execution context."""
    _execution_context.set(None)


# ============================================================================
# LLM Executor
# ============================================================================


class LLMExecutor:
    """Executes LLM calls for one use with a primary model and fallbacks.

    Example:
        executor = LLMExecutor(
            provider=OpenAIChatProvider(),
            model="gpt-4o",
            fallback_models=["gpt-4o-mini"],
        )

        response = await executor.generate(
            messages=[LLMMessage(role="user", content="Hello")],
        )
    """

    def __init__(
        self,
        provider: LLMProvider,
        model: str,
        fallback_models: list[str] | None = None,
        timeout: float = 30.0,
        max_tokens: int = 1024,
        step_name: str | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            provider: Backend that performs the calls
            model: Primary model identifier
            fallback_models: Models to try if primary fails
            timeout: Per-attempt timeout in seconds
            max_tokens: Default completion budget
            step_name: Name used in logs
        """
        self._provider = provider
        self._model = model
        self._fallback_models = fallback_models or []
        self._timeout = timeout
        self._max_tokens = max_tokens
        self._step_name = step_name

    @property
    def model(self) -> str:
        """Primary model for this executor."""
        return self._model

    @property
    def step_name(self) -> str | None:
        """Use this executor serves."""
        return self._step_name

    def with_model(self, model: str, step_name: str | None = None) -> LLMExecutor:
        """Return an executor sharing provider and settings but using another model."""
        return LLMExecutor(
            provider=self._provider,
            model=model,
            fallback_models=self._fallback_models,
            timeout=self._timeout,
            max_tokens=self._max_tokens,
            step_name=step_name or self._step_name,
        )

    async def generate(
        self,
        messages: list[LLMMessage],
        *,
        tools: list[ToolDefinition] | None = None,
        max_tokens: int | None = None,
        temperature: float = 0.7,
        **kwargs: Any,
    ) -> LLMResponse:
        """Generate a completion.

        Uses the primary model, falls back to fallback_models on failure.

        Raises:
            ProviderError: When every model failed
        """
        models_to_try = [self._model] + self._fallback_models
        last_error: Exception | None = None
        ctx = get_execution_context()

        for model in models_to_try:
            start_time = time.perf_counter()
            try:
                response = await asyncio.wait_for(
                    self._provider.generate(
                        messages,
                        model=model,
                        tools=tools,
                        max_tokens=max_tokens or self._max_tokens,
                        temperature=temperature,
                        **kwargs,
                    ),
                    timeout=self._timeout,
                )
            except TimeoutError:
                logger.warning(
                    "executor_timeout",
                    model=model,
                    step=self._step_name,
                    timeout=self._timeout,
                )
                last_error = ProviderTimeoutError(
                    f"{model} did not answer within {self._timeout}s"
                )
                continue
            except RateLimitError as e:
                logger.warning(
                    "executor_rate_limited",
                    model=model,
                    step=self._step_name,
                    error=str(e),
                )
                last_error = e
                continue
            except ProviderError as e:
                logger.warning(
                    "executor_provider_error",
                    model=model,
                    step=self._step_name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                last_error = e
                continue

            latency_ms = (time.perf_counter() - start_time) * 1000
            response.metadata["latency_ms"] = latency_ms
            response.metadata["model_requested"] = model
            if ctx:
                response.metadata["owner_id"] = ctx.owner_id
                response.metadata["session_id"] = ctx.session_id
                response.metadata["step"] = self._step_name or ctx.step

            if response.usage:
                LLM_TOKENS.labels(model=model, direction="prompt").inc(
                    response.usage.prompt_tokens
                )
                LLM_TOKENS.labels(model=model, direction="completion").inc(
                    response.usage.completion_tokens
                )

            logger.debug(
                "executor_generate_complete",
                model=model,
                step=self._step_name,
                latency_ms=round(latency_ms, 1),
                tool_calls=len(response.tool_calls),
            )
            return response

        raise ProviderError(
            f"All models failed for step {self._step_name}. "
            f"Tried: {models_to_try}. Last error: {last_error}"
        ) from last_error

    async def generate_text(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float = 0.3,
    ) -> str:
        """Single-prompt convenience wrapper returning stripped text."""
        messages: list[LLMMessage] = []
        if system_prompt:
            messages.append(LLMMessage(role="system", content=system_prompt))
        messages.append(LLMMessage(role="user", content=prompt))
        response = await self.generate(
            messages, max_tokens=max_tokens, temperature=temperature
        )
        return response.content.strip()


# ============================================================================
# Factory
# ============================================================================


def create_llm_provider(config: LLMProviderConfig) -> LLMProvider:
    """Build the configured LLM backend."""
    if config.provider == "mock":
        from memobot.providers.llm.mock import MockLLMProvider

        return MockLLMProvider()

    from memobot.providers.llm.openai import OpenAIChatProvider

    api_key = config.api_key.get_secret_value() if config.api_key else None
    return OpenAIChatProvider(
        api_key=api_key, base_url=config.base_url, timeout=config.timeout
    )


def create_executors(
    config: LLMProviderConfig,
    provider: LLMProvider | None = None,
) -> dict[str, LLMExecutor]:
    """Create the reasoning, fast and utility executors from config."""
    provider = provider or create_llm_provider(config)
    reasoning = LLMExecutor(
        provider=provider,
        model=config.model,
        fallback_models=config.fallback_models,
        timeout=config.timeout,
        max_tokens=config.max_tokens,
        step_name="reasoning",
    )
    return {
        "reasoning": reasoning,
        "fast": reasoning.with_model(config.fast_model, step_name="fast_reasoning"),
        "utility": reasoning.with_model(config.utility_model, step_name="utility"),
    }
