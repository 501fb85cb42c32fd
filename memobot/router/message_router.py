"""Entry point for every inbound message."""

import re
import time

from memobot.accounts import AccountLinkingService
from memobot.agent import AgentOrchestrator
from memobot.conversation import ChatMessage, SessionService
from memobot.db.errors import StoreError
from memobot.memory.models import Channel
from memobot.observability.logging import bind_turn_context, clear_turn_context, get_logger
from memobot.observability.metrics import TURN_COUNT, TURN_LATENCY
from memobot.router.models import InboundMessage, OutboundReply

logger = get_logger(__name__)

LINK_COMMAND = re.compile(r"^LINK\s+(\d{6})$", re.IGNORECASE)

BUTTON_CHANNELS = frozenset({Channel.WHATSAPP, Channel.WEB})

CHANNEL_NAMES = {Channel.WHATSAPP: "WhatsApp", Channel.TELEGRAM: "Telegram"}


def welcome_message(channel: Channel) -> str:
    """Reply for chat users who have not linked an account yet."""
    return (
        "👋 Welcome to MemoBot!\n\n"
        "I can help you capture and recall your memories. "
        "To get started, link your account:\n\n"
        "1. Sign up at the MemoBot web dashboard\n"
        f"2. Go to Settings → Link {CHANNEL_NAMES.get(channel, channel.value)}\n"
        "3. Send the 6-digit code here\n\n"
        "Example: LINK 123456"
    )


class MessageRouter:
    """Routes a message to account linking, the welcome reply or the agent.

    1. "LINK 123456" from a chat channel redeems a link code.
    2. Unlinked chat users get linking instructions.
    3. Everyone else talks to the agent within their session.
    """

    def __init__(
        self,
        *,
        accounts: AccountLinkingService,
        sessions: SessionService,
        orchestrator: AgentOrchestrator,
    ) -> None:
        self._accounts = accounts
        self._sessions = sessions
        self._orchestrator = orchestrator

    async def route(self, inbound: InboundMessage) -> OutboundReply:
        """Handle one inbound message and build the reply."""
        start = time.perf_counter()
        channel = inbound.channel
        outcome = "error"
        bind_turn_context(channel=channel.value)
        try:
            reply, outcome = await self._route(inbound)
            return reply
        finally:
            TURN_COUNT.labels(channel=channel.value, outcome=outcome).inc()
            TURN_LATENCY.labels(channel=channel.value).observe(time.perf_counter() - start)
            clear_turn_context()

    async def _route(self, inbound: InboundMessage) -> tuple[OutboundReply, str]:
        channel = inbound.channel
        text = inbound.text.strip()

        if channel != Channel.WEB:
            match = LINK_COMMAND.match(text)
            if match:
                result = await self._accounts.verify_and_link_account(
                    channel, inbound.channel_user_id, match.group(1)
                )
                return OutboundReply(text=result.message), "link"

        if channel == Channel.WEB:
            owner_id = inbound.owner_id
        else:
            owner_id = await self._accounts.resolve_owner(channel, inbound.channel_user_id)
        if owner_id is None:
            logger.info("unlinked_user_welcomed")
            return OutboundReply(text=welcome_message(channel)), "unlinked"

        bind_turn_context(owner_id=owner_id)
        session = await self._sessions.get_or_create_session(
            owner_id, channel, inbound.channel_user_id
        )
        bind_turn_context(session_id=str(session.id))

        result = await self._orchestrator.process_message(
            text,
            session,
            button_id=inbound.button_id,
            attachment=inbound.attachment,
            is_forwarded=inbound.is_forwarded,
        )

        try:
            await self._sessions.append_history(
                session.id,
                [
                    ChatMessage(role="user", content=text),
                    ChatMessage(role="assistant", content=result.reply),
                ],
            )
        except StoreError as e:
            logger.warning("history_append_failed", error=str(e))

        reply = OutboundReply(
            text=result.reply,
            buttons=result.suggested_buttons if channel in BUTTON_CHANNELS else None,
            retrieved_memories=result.retrieved_memories,
            created_memory=result.created_memory,
        )
        return reply, "replied"
