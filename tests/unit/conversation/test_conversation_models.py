"""Tests for conversation models."""

from datetime import timedelta
from uuid import uuid4

from memobot.conversation import ConversationSession, ConversationState, MemoryDraft
from memobot.memory.models import Channel, utc_now


class TestMemoryDraft:
    """Tests for MemoryDraft."""

    def test_assemble_joins_parts(self) -> None:
        draft = MemoryDraft(content_parts=["first", "  ", "second"])
        assert draft.assemble_content() == "first\n\nsecond"

    def test_generated_content_wins(self) -> None:
        draft = MemoryDraft(content_parts=["first"], full_content="edited")
        assert draft.assemble_content() == "edited"

    def test_empty_draft(self) -> None:
        assert MemoryDraft().assemble_content() == ""

    def test_saved_recently_within_window(self) -> None:
        saved_at = utc_now()
        draft = MemoryDraft(last_created_memory_id=uuid4(), last_created_at=saved_at)

        assert draft.saved_recently(60, now=saved_at + timedelta(seconds=59))
        assert not draft.saved_recently(60, now=saved_at + timedelta(seconds=61))

    def test_nothing_saved(self) -> None:
        assert not MemoryDraft().saved_recently(60)


class TestConversationSession:
    """Tests for ConversationSession."""

    def test_defaults(self) -> None:
        session = ConversationSession(owner_id="o", channel=Channel.WEB, channel_user_id="o")

        assert session.state == ConversationState.CONVERSATION
        assert session.version == 0
        assert not session.is_expired()
        assert not session.in_draft

    def test_draft_states(self) -> None:
        session = ConversationSession(owner_id="o", channel=Channel.WEB, channel_user_id="o")
        for state in (
            ConversationState.MEMORY_CAPTURE,
            ConversationState.MEMORY_ENRICHMENT,
            ConversationState.MEMORY_DRAFT,
        ):
            session.state = state
            assert session.in_draft

    def test_expiry(self) -> None:
        session = ConversationSession(owner_id="o", channel=Channel.WEB, channel_user_id="o")
        assert session.is_expired(now=session.expires_at)
