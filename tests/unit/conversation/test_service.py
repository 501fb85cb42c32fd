"""Tests for SessionService."""

from datetime import timedelta
from uuid import uuid4

import pytest

from memobot.config.models.agent import SessionConfig
from memobot.conversation import (
    ChatMessage,
    ConversationState,
    MemoryDraft,
    SessionService,
)
from memobot.conversation.stores import InMemorySessionStore
from memobot.db.errors import ConflictError, NotFoundError
from memobot.memory.models import Channel, Memory, utc_now


class ConflictingStore(InMemorySessionStore):
    """Loses the first `conflicts` check-and-set saves to an imaginary writer."""

    def __init__(self, conflicts: int) -> None:
        super().__init__()
        self.conflicts = conflicts

    async def save(self, session, *, expected_version=None):
        if expected_version and self.conflicts > 0:
            self.conflicts -= 1
            raise ConflictError("lost the race")
        return await super().save(session, expected_version=expected_version)


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def service(store, session_config) -> SessionService:
    return SessionService(store, session_config)


class TestGetOrCreate:
    """Tests for session reuse and expiry."""

    async def test_reuses_live_session(self, service, owner_id) -> None:
        first = await service.get_or_create_session(owner_id, Channel.WEB, owner_id)
        second = await service.get_or_create_session(owner_id, Channel.WEB, owner_id)
        assert first.id == second.id

    async def test_channels_get_separate_sessions(self, service, owner_id) -> None:
        web = await service.get_or_create_session(owner_id, Channel.WEB, owner_id)
        telegram = await service.get_or_create_session(owner_id, Channel.TELEGRAM, "tg-1")
        assert web.id != telegram.id

    async def test_expired_session_replaced(self, service, store, owner_id) -> None:
        old = await service.get_or_create_session(owner_id, Channel.WEB, owner_id)
        old.expires_at = utc_now() - timedelta(seconds=1)
        await store.save(old)

        fresh = await service.get_or_create_session(owner_id, Channel.WEB, owner_id)

        assert fresh.id != old.id
        assert fresh.state == ConversationState.CONVERSATION
        assert await service.get_session(old.id) is None

    async def test_expiry_follows_ttl(self, store, owner_id) -> None:
        service = SessionService(store, SessionConfig(ttl_seconds=60))
        session = await service.get_or_create_session(owner_id, Channel.WEB, owner_id)
        assert session.expires_at - session.created_at == timedelta(seconds=60)


class TestUpdateSession:
    """Tests for check-and-set updates."""

    async def test_mutation_applied_and_versioned(self, service, owner_id) -> None:
        session = await service.get_or_create_session(owner_id, Channel.WEB, owner_id)
        updated = await service.set_state(session.id, ConversationState.MEMORY_CAPTURE)
        assert updated.state == ConversationState.MEMORY_CAPTURE
        assert updated.version == session.version + 1

    async def test_retries_after_conflict(self, owner_id) -> None:
        store = ConflictingStore(conflicts=2)
        service = SessionService(store, SessionConfig(cas_retries=3))
        session = await service.get_or_create_session(owner_id, Channel.WEB, owner_id)
        calls = []

        def mutate(s) -> None:
            calls.append(s.version)
            s.state = ConversationState.MEMORY_DRAFT

        updated = await service.update_session(session.id, mutate)

        assert len(calls) == 3
        assert updated.state == ConversationState.MEMORY_DRAFT

    async def test_gives_up_after_retries(self, owner_id) -> None:
        store = ConflictingStore(conflicts=10)
        service = SessionService(store, SessionConfig(cas_retries=2))
        session = await service.get_or_create_session(owner_id, Channel.WEB, owner_id)

        with pytest.raises(ConflictError):
            await service.set_state(session.id, ConversationState.MEMORY_DRAFT)

    async def test_aborting_mutation_writes_nothing(self, service, owner_id) -> None:
        session = await service.get_or_create_session(owner_id, Channel.WEB, owner_id)

        def abort(s) -> None:
            s.state = ConversationState.MEMORY_DRAFT
            raise RuntimeError("changed my mind")

        with pytest.raises(RuntimeError):
            await service.update_session(session.id, abort)
        assert (await service.get_session(session.id)).state == ConversationState.CONVERSATION

    async def test_missing_session(self, service) -> None:
        with pytest.raises(NotFoundError):
            await service.set_state(uuid4(), ConversationState.CONVERSATION)


class TestHistoryAndDrafts:
    """Tests for history trimming and draft reset."""

    async def test_history_keeps_most_recent(self, store, owner_id) -> None:
        service = SessionService(store, SessionConfig(history_limit=3))
        session = await service.get_or_create_session(owner_id, Channel.WEB, owner_id)

        for i in range(4):
            await service.append_history(session.id, [ChatMessage(role="user", content=str(i))])

        stored = await service.get_session(session.id)
        assert [m.content for m in stored.message_history] == ["1", "2", "3"]

    async def test_reset_draft_remembers_saved_memory(self, service, owner_id) -> None:
        session = await service.get_or_create_session(owner_id, Channel.WEB, owner_id)

        def start(s) -> None:
            s.state = ConversationState.MEMORY_DRAFT
            s.draft = MemoryDraft(content_parts=["Lunch with Sam"])

        await service.update_session(session.id, start)
        memory = Memory(owner_id=owner_id, content="Lunch with Sam", title="Lunch")

        reset = await service.reset_draft(session.id, saved=memory)

        assert reset.state == ConversationState.CONVERSATION
        assert reset.draft.content_parts == []
        assert reset.draft.last_created_memory_id == memory.id
        assert reset.draft.saved_recently(60)

    def test_saved_recently_window(self) -> None:
        draft = MemoryDraft(
            last_created_memory_id=uuid4(),
            last_created_at=utc_now() - timedelta(seconds=90),
        )
        assert not draft.saved_recently(60)
        assert draft.saved_recently(120)

    def test_assemble_content(self) -> None:
        draft = MemoryDraft(content_parts=["First", "  ", "Second"])
        assert draft.assemble_content() == "First\n\nSecond"
        draft.full_content = "Edited"
        assert draft.assemble_content() == "Edited"
