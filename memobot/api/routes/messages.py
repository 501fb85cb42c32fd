"""Message endpoints for channel adapters and the web chat."""

from collections.abc import Awaitable

from fastapi import APIRouter

from memobot.api.dependencies import MessageRouterDep, OwnerIdDep
from memobot.api.exceptions import (
    InvalidRequestError,
    ServiceUnavailableError,
    SessionConflictError,
)
from memobot.api.models.chat import ChatRequest
from memobot.db.errors import ConflictError, ConnectionError
from memobot.memory.models import Channel
from memobot.observability.logging import get_logger
from memobot.router import InboundMessage, OutboundReply

logger = get_logger(__name__)

router = APIRouter()


async def _deliver(turn: Awaitable[OutboundReply]) -> OutboundReply:
    try:
        return await turn
    except ConnectionError as e:
        raise ServiceUnavailableError(f"Storage unavailable: {e}") from e
    except ConflictError as e:
        raise SessionConflictError(str(e)) from e


@router.post("/messages", response_model=OutboundReply)
async def receive_message(
    message: InboundMessage,
    message_router: MessageRouterDep,
) -> OutboundReply:
    """Handle a message relayed by a WhatsApp or Telegram adapter.

    The sender is identified by its channel user id; unlinked senders get
    the welcome text and a `LINK <code>` message links them.
    """
    if message.channel == Channel.WEB:
        raise InvalidRequestError("Web messages must be sent to /v1/chat")
    logger.debug("channel_message_received", channel=message.channel.value)
    return await _deliver(message_router.route(message))


@router.post("/chat", response_model=OutboundReply)
async def chat(
    request: ChatRequest,
    owner_id: OwnerIdDep,
    message_router: MessageRouterDep,
) -> OutboundReply:
    """Handle a web chat message from the authenticated owner."""
    inbound = InboundMessage(
        channel=Channel.WEB,
        channel_user_id=owner_id,
        owner_id=owner_id,
        text=request.text,
        button_id=request.button_id,
        attachment=request.attachment,
    )
    return await _deliver(message_router.route(inbound))
