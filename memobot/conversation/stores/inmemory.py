"""In-memory implementation of SessionStore."""

from uuid import UUID

from memobot.conversation.models import ConversationSession
from memobot.conversation.store import SessionStore
from memobot.db.errors import ConflictError
from memobot.memory.models import Channel, utc_now


class InMemorySessionStore(SessionStore):
    """In-memory implementation of SessionStore for testing and development.

    Keeps deep copies so a caller holding a session never sees, or makes,
    changes that bypass the version check.
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._sessions: dict[UUID, ConversationSession] = {}
        self._channel_index: dict[tuple[str, Channel, str], UUID] = {}

    async def get(self, session_id: UUID) -> ConversationSession | None:
        """Get a session by ID."""
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def get_by_channel(
        self,
        owner_id: str,
        channel: Channel,
        channel_user_id: str,
    ) -> ConversationSession | None:
        """Get the latest session of a channel identity."""
        session_id = self._channel_index.get((owner_id, channel, channel_user_id))
        if session_id is None:
            return None
        return await self.get(session_id)

    async def save(
        self,
        session: ConversationSession,
        *,
        expected_version: int | None = None,
    ) -> ConversationSession:
        """Write a session if its version still matches."""
        current = self._sessions.get(session.id)
        current_version = current.version if current else 0
        if expected_version is not None and current_version != expected_version:
            raise ConflictError(
                f"Session {session.id} is at version {current_version}, "
                f"expected {expected_version}"
            )

        stored = session.model_copy(deep=True)
        stored.version = current_version + 1
        stored.updated_at = utc_now()
        self._sessions[session.id] = stored
        key = (session.owner_id, session.channel, session.channel_user_id)
        superseded = self._channel_index.get(key)
        if superseded is not None and superseded != session.id:
            self._sessions.pop(superseded, None)
        self._channel_index[key] = session.id
        return stored.model_copy(deep=True)

    async def delete(self, session_id: UUID) -> bool:
        """Delete a session."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        key = (session.owner_id, session.channel, session.channel_user_id)
        if self._channel_index.get(key) == session_id:
            del self._channel_index[key]
        return True
