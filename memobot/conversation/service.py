"""Session lifecycle and check-and-set updates."""

from collections.abc import Callable
from datetime import timedelta
from uuid import UUID

from memobot.config.models.agent import SessionConfig
from memobot.conversation.models import (
    ChatMessage,
    ConversationSession,
    ConversationState,
    MemoryDraft,
)
from memobot.conversation.store import SessionStore
from memobot.db.errors import ConflictError, NotFoundError
from memobot.memory.models import Channel, Memory, utc_now
from memobot.observability.logging import get_logger

logger = get_logger(__name__)

Mutation = Callable[[ConversationSession], None]


class SessionService:
    """Creates, reads and mutates conversation sessions.

    All writes go through `update_session`, which re-reads and re-applies
    the mutation when another writer got there first, so a change is
    always applied on top of the latest version.
    """

    def __init__(self, store: SessionStore, config: SessionConfig | None = None) -> None:
        self._store = store
        self._config = config or SessionConfig()

    @property
    def config(self) -> SessionConfig:
        """Session settings."""
        return self._config

    async def get_or_create_session(
        self,
        owner_id: str,
        channel: Channel,
        channel_user_id: str,
    ) -> ConversationSession:
        """Reuse the unexpired session of a channel identity or start a new one."""
        existing = await self._store.get_by_channel(owner_id, channel, channel_user_id)
        if existing is not None and not existing.is_expired():
            return existing

        now = utc_now()
        session = ConversationSession(
            owner_id=owner_id,
            channel=channel,
            channel_user_id=channel_user_id,
            created_at=now,
            expires_at=now + timedelta(seconds=self._config.ttl_seconds),
        )
        created = await self._store.save(session, expected_version=0)
        logger.info(
            "session_created",
            session_id=str(created.id),
            channel=channel.value,
            replaced_expired=existing is not None,
        )
        return created

    async def get_session(self, session_id: UUID) -> ConversationSession | None:
        """Get a session; expired sessions are treated as missing."""
        session = await self._store.get(session_id)
        if session is None or session.is_expired():
            return None
        return session

    async def update_session(self, session_id: UUID, mutate: Mutation) -> ConversationSession:
        """Apply mutate to the latest session version and save it with check-and-set.

        The mutation may raise to abort; nothing is written then.

        Raises:
            NotFoundError: If the session is missing or expired
            ConflictError: If every retry lost to a concurrent writer
        """
        attempts = self._config.cas_retries + 1
        for attempt in range(attempts):
            session = await self.get_session(session_id)
            if session is None:
                raise NotFoundError(f"Session {session_id} not found")

            read_version = session.version
            mutate(session)
            try:
                return await self._store.save(session, expected_version=read_version)
            except ConflictError:
                logger.info(
                    "session_update_conflict",
                    session_id=str(session_id),
                    attempt=attempt + 1,
                )

        raise ConflictError(f"Session {session_id} kept changing; gave up after {attempts} tries")

    async def append_history(
        self,
        session_id: UUID,
        messages: list[ChatMessage],
    ) -> ConversationSession:
        """Append messages, keeping the most recent history_limit entries."""
        limit = self._config.history_limit

        def _append(session: ConversationSession) -> None:
            session.message_history = [*session.message_history, *messages][-limit:]

        return await self.update_session(session_id, _append)

    async def set_state(
        self,
        session_id: UUID,
        state: ConversationState,
    ) -> ConversationSession:
        """Move a session to another state, leaving the draft alone."""

        def _set(session: ConversationSession) -> None:
            session.state = state

        return await self.update_session(session_id, _set)

    async def reset_draft(
        self,
        session_id: UUID,
        *,
        saved: Memory | None = None,
    ) -> ConversationSession:
        """Return to CONVERSATION with an empty draft, remembering a saved memory if given."""

        def _reset(session: ConversationSession) -> None:
            session.state = ConversationState.CONVERSATION
            session.draft = remembered_draft(saved) if saved else MemoryDraft()

        return await self.update_session(session_id, _reset)


def remembered_draft(memory: Memory) -> MemoryDraft:
    """Empty draft that remembers a just-saved memory."""
    return MemoryDraft(
        last_created_memory_id=memory.id,
        last_created_memory_title=memory.title,
        last_created_at=utc_now(),
    )
