"""Account linking between chat identities and owners."""

import secrets

from memobot.accounts.models import LinkCode, LinkResult, PlatformLink
from memobot.accounts.store import AccountStore
from memobot.db.errors import ConflictError, StoreError
from memobot.memory.models import Channel, utc_now
from memobot.observability.logging import get_logger

logger = get_logger(__name__)

LINKABLE_CHANNELS = frozenset({Channel.WHATSAPP, Channel.TELEGRAM})

INVALID_CODE_MESSAGE = "Invalid or expired code. Please generate a new one from the dashboard."
ALREADY_LINKED_MESSAGE = "This account is already linked to a MemoBot user."
LINK_FAILED_MESSAGE = "Failed to link account. Please try again."
LINK_SUCCESS_MESSAGE = (
    "✅ Account linked successfully! You can now use MemoBot. "
    'Try asking me about anything, or say "memory" to create a new memory.'
)


def generate_code() -> str:
    """Random six-digit code in 100000..999999."""
    return str(100000 + secrets.randbelow(900000))


class AccountLinkingService:
    """Issues link codes and redeems them into platform links."""

    def __init__(self, store: AccountStore) -> None:
        self._store = store

    async def generate_link_code(self, owner_id: str, channel: Channel) -> LinkCode:
        """Issue a fresh code, expiring the owner's unused codes for the channel."""
        if channel not in LINKABLE_CHANNELS:
            raise ValueError(f"Channel {channel.value} does not use link codes")

        now = utc_now()
        expired = await self._store.expire_link_codes(owner_id, channel, now)
        link_code = await self._store.add_link_code(
            LinkCode(owner_id=owner_id, channel=channel, code=generate_code())
        )
        logger.info(
            "link_code_issued",
            owner_id=owner_id,
            channel=channel.value,
            expired_previous=expired,
        )
        return link_code

    async def verify_and_link_account(
        self, channel: Channel, channel_user_id: str, code: str
    ) -> LinkResult:
        """Redeem a code sent from a chat identity."""
        now = utc_now()
        link_code = await self._store.find_valid_link_code(channel, code.strip(), now)
        if link_code is None:
            logger.info("link_code_rejected", channel=channel.value)
            return LinkResult(success=False, message=INVALID_CODE_MESSAGE)

        existing = await self._store.get_platform_link(channel, channel_user_id)
        if existing is not None:
            return LinkResult(success=False, message=ALREADY_LINKED_MESSAGE)

        try:
            await self._store.add_platform_link(
                PlatformLink(
                    owner_id=link_code.owner_id,
                    channel=channel,
                    channel_user_id=channel_user_id,
                )
            )
        except ConflictError:
            return LinkResult(success=False, message=ALREADY_LINKED_MESSAGE)
        except StoreError as e:
            logger.error("platform_link_insert_failed", channel=channel.value, error=str(e))
            return LinkResult(success=False, message=LINK_FAILED_MESSAGE)

        await self._store.mark_link_code_used(link_code.id, now)
        logger.info("account_linked", owner_id=link_code.owner_id, channel=channel.value)
        return LinkResult(success=True, message=LINK_SUCCESS_MESSAGE, owner_id=link_code.owner_id)

    async def resolve_owner(self, channel: Channel, channel_user_id: str) -> str | None:
        """Owner linked to a chat identity, if any."""
        if channel == Channel.WEB:
            return channel_user_id
        link = await self._store.get_platform_link(channel, channel_user_id)
        return link.owner_id if link else None

    async def list_linked_accounts(self, owner_id: str) -> list[PlatformLink]:
        """Platform links of an owner, newest first."""
        return await self._store.list_platform_links(owner_id)
