"""Tool-calling reasoning loop for one user message."""

import json
import re
from typing import Any

from memobot.agent.handlers import ToolContext, ToolHandlers
from memobot.agent.models import Attachment, MemoryCard, SuggestedButton, TurnResult
from memobot.agent.prompts import render_system_prompt
from memobot.agent.tools import NEW_MEMORY_BUTTON, tool_definitions
from memobot.config.models.agent import AgentConfig
from memobot.conversation import (
    ChatMessage,
    ConversationSession,
    ConversationState,
    MemoryDraft,
    SessionService,
)
from memobot.db.errors import StoreError
from memobot.memory.models import Channel, utc_now
from memobot.observability.logging import get_logger
from memobot.observability.metrics import REASONING_ITERATIONS
from memobot.providers.errors import ProviderError
from memobot.providers.llm import (
    ExecutionContext,
    LLMExecutor,
    LLMMessage,
    clear_execution_context,
    set_execution_context,
)

logger = get_logger(__name__)

EXHAUSTED_REPLY = (
    "Sorry, that took more steps than I can handle in one go. "
    "Could you try again, maybe a bit more specifically?"
)
APOLOGY_REPLY = "Sorry, I'm having trouble thinking right now. Please try again in a moment."
EMPTY_REPLY = "I'm not sure how to respond to that."
FORWARD_FAILED_REPLY = "I couldn't save that forwarded message. Please try again."
FORWARD_SAVED_REPLY = "I saved your forwarded message! ✅"

_ANYWHERE = "You're welcome! Let me know if you need anything else."
_FAREWELL = "Goodbye! Your memories are safe with me. Come back anytime!"
_ACK = "Got it! Let me know if there's anything else."
_GREETING = "How can I help you today? Tap 'New Memory' to save something, or just tell me what's on your mind."

UNIVERSAL_REPLIES: dict[str, str] = {
    "thanks": _ANYWHERE,
    "thank you": _ANYWHERE,
    "thanks!": _ANYWHERE,
    "thank you!": _ANYWHERE,
    "thx": _ANYWHERE,
    "ty": _ANYWHERE,
    "bye": _FAREWELL,
    "goodbye": _FAREWELL,
    "ok": _ACK,
    "okay": _ACK,
    "cool": "Great! Let me know if you need anything else.",
    "nice": "Glad I could help! Anything else?",
}

GREETING_REPLIES: dict[str, str] = {
    "hi": f"Hi! {_GREETING}",
    "hello": f"Hello! {_GREETING}",
    "hey": f"Hey! {_GREETING}",
    "hola": f"Hola! {_GREETING}",
    "good morning": "Good morning! How can I help you today?",
    "good afternoon": "Good afternoon! How can I help you today?",
    "good evening": "Good evening! How can I help you today?",
}

BUTTON_MESSAGES: dict[str, str] = {
    "save_memory": "Save it",
    "new_memory": "I want to create a new memory",
}

CONFIRMATION_PATTERNS = [
    re.compile(r"^(yes|no|yep|nope|yeah|nah|sure|ok|okay|done|save|cancel|skip)\.?$", re.I),
    re.compile(r"^(save it|looks good|that's right|that's correct|perfect|great)\.?$", re.I),
    re.compile(r"^(go ahead|confirm|approved|yes please|no thanks)\.?$", re.I),
]


def quick_reply(message: str, history: list[ChatMessage]) -> str | None:
    """Canned reply for pleasantries, or None when the model is needed.

    Greetings only get one at the start of a conversation.
    """
    normalized = message.strip().lower()
    if normalized in UNIVERSAL_REPLIES:
        return UNIVERSAL_REPLIES[normalized]
    if not history and normalized in GREETING_REPLIES:
        return GREETING_REPLIES[normalized]
    return None


def should_use_fast_model(
    message: str,
    history: list[ChatMessage],
    button_id: str | None = None,
) -> bool:
    """Button taps, confirmations and short follow-ups go to the fast model."""
    if button_id:
        return True

    trimmed = message.strip()
    word_count = len(trimmed.split())
    if word_count <= 3 and history:
        return True
    if any(pattern.match(trimmed) for pattern in CONFIRMATION_PATTERNS):
        return True

    if word_count <= 10 and len(history) >= 2:
        last_assistant = next((m for m in reversed(history) if m.role == "assistant"), None)
        if last_assistant is not None and "?" in last_assistant.content:
            return True
    return False


def _default_buttons() -> list[SuggestedButton]:
    return [SuggestedButton(**NEW_MEMORY_BUTTON)]


class AgentOrchestrator:
    """Runs the bounded reasoning loop and collects what it produced.

    The model is called with the system prompt, recent history and the
    current message. While it asks for tools, each call is executed in
    order and its JSON result fed back. The loop stops at the first
    plain reply or after max_iterations model calls.
    """

    def __init__(
        self,
        *,
        handlers: ToolHandlers,
        sessions: SessionService,
        reasoning: LLMExecutor,
        fast: LLMExecutor | None = None,
        config: AgentConfig | None = None,
    ) -> None:
        self._handlers = handlers
        self._sessions = sessions
        self._reasoning = reasoning
        self._fast = fast or reasoning
        self._config = config or AgentConfig()
        self._tools = tool_definitions()

    async def process_message(
        self,
        message: str,
        session: ConversationSession,
        *,
        button_id: str | None = None,
        attachment: Attachment | None = None,
        is_forwarded: bool = False,
    ) -> TurnResult:
        """Produce the reply to one user message within a session."""
        context = ToolContext(
            owner_id=session.owner_id,
            session_id=session.id,
            channel=session.channel,
        )
        set_execution_context(
            ExecutionContext(
                owner_id=session.owner_id,
                session_id=str(session.id),
                channel=session.channel.value,
            )
        )
        try:
            if is_forwarded and message.strip():
                return await self._quick_save_forwarded(message, context)

            if attachment is None and not button_id:
                canned = quick_reply(message, session.message_history)
                if canned is not None:
                    logger.debug("quick_reply_served")
                    return TurnResult(reply=canned, suggested_buttons=_default_buttons())

            return await self._reason(message, session, context, button_id, attachment)
        finally:
            clear_execution_context()

    # ========================================================================
    # Forwarded messages
    # ========================================================================

    async def _quick_save_forwarded(self, message: str, context: ToolContext) -> TurnResult:
        """Save a forwarded message straight away, without the reasoning loop."""

        def _prepare(session: ConversationSession) -> None:
            session.state = ConversationState.MEMORY_DRAFT
            session.draft = MemoryDraft(
                content_parts=[message],
                started_at=utc_now(),
                quick_save=True,
                forwarded=True,
            )

        try:
            await self._sessions.update_session(context.session_id, _prepare)
        except StoreError as e:
            logger.warning("forwarded_save_failed", error=str(e))
            return TurnResult(reply=FORWARD_FAILED_REPLY, suggested_buttons=_default_buttons())

        draft = await self._handlers.execute(
            "generate_memory_draft", {"request_confirmation": False}, context
        )
        if "error" in draft:
            return TurnResult(reply=FORWARD_FAILED_REPLY, suggested_buttons=_default_buttons())

        result = await self._handlers.execute("finalize_memory", {}, context)
        if "error" in result:
            return TurnResult(reply=FORWARD_FAILED_REPLY, suggested_buttons=_default_buttons())
        if result.get("status") != "memory_saved":
            return TurnResult(reply=FORWARD_SAVED_REPLY, suggested_buttons=_default_buttons())

        memory = result["memory"]
        tags = ", ".join(memory.get("tags") or []) or "none"
        reply = (
            f"📌 Saved forwarded message!\n\n*{memory['title']}*\n"
            f"Category: {memory.get('category') or 'General'}\nTags: {tags}"
        )
        logger.info("forwarded_message_saved", memory_id=memory["id"])
        return TurnResult(
            reply=reply,
            created_memory=MemoryCard(
                id=memory["id"], title=memory["title"], content_preview=message[:200]
            ),
            suggested_buttons=_default_buttons(),
        )

    # ========================================================================
    # Reasoning loop
    # ========================================================================

    def _effective_message(
        self,
        message: str,
        button_id: str | None,
        attachment: Attachment | None,
    ) -> str:
        if button_id in BUTTON_MESSAGES:
            return BUTTON_MESSAGES[button_id]
        if attachment is not None:
            return f"{message}\n\n{attachment.as_context()}"
        return message

    def _build_messages(self, session: ConversationSession, text: str) -> list[LLMMessage]:
        limit = self._sessions.config.context_history_limit
        history = [
            LLMMessage(role=m.role, content=m.content)
            for m in session.message_history[-limit:]
            if m.content.strip()
        ]
        system_prompt = render_system_prompt(
            today=utc_now().date(),
            buttons=session.channel != Channel.TELEGRAM,
        )
        return [
            LLMMessage(role="system", content=system_prompt),
            *history,
            LLMMessage(role="user", content=text),
        ]

    async def _reason(
        self,
        message: str,
        session: ConversationSession,
        context: ToolContext,
        button_id: str | None,
        attachment: Attachment | None,
    ) -> TurnResult:
        text = self._effective_message(message, button_id, attachment)
        messages = self._build_messages(session, text)
        fast = should_use_fast_model(text, session.message_history, button_id)
        executor = self._fast if fast else self._reasoning

        retrieved: dict[str, MemoryCard] = {}
        created: MemoryCard | None = None
        buttons: list[SuggestedButton] | None = None
        iterations = 0
        reply = EMPTY_REPLY

        try:
            while True:
                response = await executor.generate(messages, tools=self._tools)
                iterations += 1
                if not response.tool_calls:
                    reply = response.content.strip() or EMPTY_REPLY
                    break
                if iterations >= self._config.max_iterations:
                    logger.warning(
                        "reasoning_budget_exhausted",
                        iterations=iterations,
                        pending_tools=[c.name for c in response.tool_calls],
                    )
                    reply = EXHAUSTED_REPLY
                    break

                messages.append(
                    LLMMessage(
                        role="assistant",
                        content=response.content,
                        tool_calls=response.tool_calls,
                    )
                )
                for call in response.tool_calls:
                    result = await self._handlers.execute(call.name, call.arguments, context)
                    logger.debug(
                        "tool_executed",
                        tool=call.name,
                        error=result.get("error"),
                        status=result.get("status"),
                    )
                    if call.name == "search_memories":
                        for found in result.get("memories", []):
                            card = MemoryCard.model_validate(found)
                            retrieved.setdefault(str(card.id), card)
                    if call.name == "finalize_memory" and result.get("status") == "memory_saved":
                        created = MemoryCard.model_validate(result["memory"])
                    if result.get("suggested_buttons"):
                        buttons = [
                            SuggestedButton.model_validate(b) for b in result["suggested_buttons"]
                        ]
                    messages.append(
                        LLMMessage(
                            role="tool",
                            content=_encode(result),
                            tool_call_id=call.id,
                            name=call.name,
                        )
                    )
        except ProviderError as e:
            logger.error(
                "reasoning_failed",
                iterations=iterations,
                error=str(e),
                error_type=type(e).__name__,
            )
            reply = APOLOGY_REPLY

        REASONING_ITERATIONS.observe(iterations)
        return TurnResult(
            reply=reply,
            retrieved_memories=list(retrieved.values()),
            created_memory=created,
            suggested_buttons=buttons or _default_buttons(),
            model=executor.model,
            iterations=iterations,
        )


def _encode(result: dict[str, Any]) -> str:
    return json.dumps(result, default=str, ensure_ascii=False)
