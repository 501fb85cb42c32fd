"""SessionStore abstract interface."""

from abc import ABC, abstractmethod
from uuid import UUID

from memobot.conversation.models import ConversationSession
from memobot.memory.models import Channel


class SessionStore(ABC):
    """Abstract interface for conversation session storage.

    Saves are check-and-set: with expected_version, the write only happens
    if the stored version still equals it. Every successful save bumps the
    version by one.
    """

    @abstractmethod
    async def get(self, session_id: UUID) -> ConversationSession | None:
        """Get a session by ID, expired or not."""
        pass

    @abstractmethod
    async def get_by_channel(
        self,
        owner_id: str,
        channel: Channel,
        channel_user_id: str,
    ) -> ConversationSession | None:
        """Get the latest session of a channel identity."""
        pass

    @abstractmethod
    async def save(
        self,
        session: ConversationSession,
        *,
        expected_version: int | None = None,
    ) -> ConversationSession:
        """Write a session and return it with its new version.

        Raises:
            ConflictError: If expected_version no longer matches the stored version
        """
        pass

    @abstractmethod
    async def delete(self, session_id: UUID) -> bool:
        """Delete a session."""
        pass
