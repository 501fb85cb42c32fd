"""In-memory implementation of AccountStore."""

from datetime import datetime
from uuid import UUID

from memobot.accounts.models import LinkCode, PlatformLink
from memobot.accounts.store import AccountStore
from memobot.db.errors import ConflictError
from memobot.memory.models import Channel


class InMemoryAccountStore(AccountStore):
    """In-memory implementation of AccountStore for testing and development."""

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._codes: dict[UUID, LinkCode] = {}
        self._links: dict[tuple[Channel, str], PlatformLink] = {}

    async def add_link_code(self, link_code: LinkCode) -> LinkCode:
        """Insert a link code."""
        self._codes[link_code.id] = link_code.model_copy()
        return link_code

    async def expire_link_codes(self, owner_id: str, channel: Channel, now: datetime) -> int:
        """Expire the owner's unused codes for a channel."""
        expired = 0
        for code in self._codes.values():
            if code.owner_id == owner_id and code.channel == channel and code.used_at is None:
                code.expires_at = now
                expired += 1
        return expired

    async def find_valid_link_code(
        self, channel: Channel, code: str, now: datetime
    ) -> LinkCode | None:
        """An unused, unexpired code for a channel."""
        for link_code in self._codes.values():
            if link_code.channel == channel and link_code.code == code and link_code.is_valid(now):
                return link_code.model_copy()
        return None

    async def mark_link_code_used(self, link_code_id: UUID, used_at: datetime) -> None:
        """Record that a code was redeemed."""
        if link_code_id in self._codes:
            self._codes[link_code_id].used_at = used_at

    async def get_platform_link(
        self, channel: Channel, channel_user_id: str
    ) -> PlatformLink | None:
        """The link of a chat identity, if any."""
        link = self._links.get((channel, channel_user_id))
        return link.model_copy() if link else None

    async def add_platform_link(self, link: PlatformLink) -> PlatformLink:
        """Insert a platform link."""
        key = (link.channel, link.channel_user_id)
        if key in self._links:
            raise ConflictError(f"{link.channel.value} user {link.channel_user_id} already linked")
        self._links[key] = link.model_copy()
        return link

    async def list_platform_links(self, owner_id: str) -> list[PlatformLink]:
        """Links of an owner, newest first."""
        links = [link for link in self._links.values() if link.owner_id == owner_id]
        links.sort(key=lambda link: link.linked_at, reverse=True)
        return [link.model_copy() for link in links]
