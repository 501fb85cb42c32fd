"""AccountStore abstract interface."""

from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

from memobot.accounts.models import LinkCode, PlatformLink
from memobot.memory.models import Channel


class AccountStore(ABC):
    """Abstract interface for link codes and platform links."""

    @abstractmethod
    async def add_link_code(self, link_code: LinkCode) -> LinkCode:
        """Insert a link code."""
        pass

    @abstractmethod
    async def expire_link_codes(self, owner_id: str, channel: Channel, now: datetime) -> int:
        """Expire the owner's unused codes for a channel. Returns how many changed."""
        pass

    @abstractmethod
    async def find_valid_link_code(
        self, channel: Channel, code: str, now: datetime
    ) -> LinkCode | None:
        """An unused, unexpired code for a channel."""
        pass

    @abstractmethod
    async def mark_link_code_used(self, link_code_id: UUID, used_at: datetime) -> None:
        """Record that a code was redeemed."""
        pass

    @abstractmethod
    async def get_platform_link(
        self, channel: Channel, channel_user_id: str
    ) -> PlatformLink | None:
        """The link of a chat identity, if any."""
        pass

    @abstractmethod
    async def add_platform_link(self, link: PlatformLink) -> PlatformLink:
        """Insert a platform link.

        Raises:
            ConflictError: If the chat identity is already linked
        """
        pass

    @abstractmethod
    async def list_platform_links(self, owner_id: str) -> list[PlatformLink]:
        """Links of an owner, newest first."""
        pass
