"""Tests for ToolHandlers."""

import asyncio
from uuid import uuid4

import pytest

from memobot.agent.handlers import (
    NO_DRAFT_MESSAGE,
    SAVE_FAILED_MESSAGE,
    TOOL_FAILED_MESSAGE,
    ToolContext,
)
from memobot.agent.tools import NEW_MEMORY_BUTTON
from memobot.conversation import ConversationState
from memobot.db.errors import ConnectionError as StoreConnectionError
from memobot.memory.models import Channel


@pytest.fixture
async def context(services, owner_id) -> ToolContext:
    session = await services.sessions.get_or_create_session(owner_id, Channel.WEB, owner_id)
    return ToolContext(owner_id=owner_id, session_id=session.id, channel=Channel.WEB)


async def capture(services, context, *parts: str) -> dict:
    """Run capture, additions and draft generation for `parts`."""
    handlers = services.handlers
    await handlers.execute("start_memory_capture", {"initial_content": parts[0]}, context)
    for part in parts[1:]:
        await handlers.execute(
            "add_to_memory_draft", {"content": part, "is_answer_to_question": True}, context
        )
    return await handlers.execute("generate_memory_draft", {}, context)


async def session_of(services, context):
    return await services.sessions.get_session(context.session_id)


class TestDispatch:
    """Tests for argument validation and unknown tools."""

    async def test_unknown_tool(self, services, context) -> None:
        result = await services.handlers.execute("launch_rockets", {}, context)
        assert result["error"] == "unknown_tool"
        assert result["tool"] == "launch_rockets"

    async def test_missing_required_argument(self, services, context) -> None:
        result = await services.handlers.execute("search_memories", {}, context)
        assert result["error"] == "invalid_arguments"
        assert result["details"][0]["loc"] == ["query"]

    async def test_malformed_json_arguments(self, services, context) -> None:
        result = await services.handlers.execute("search_memories", "{not json", context)
        assert result["error"] == "invalid_arguments"

    async def test_non_object_arguments(self, services, context) -> None:
        result = await services.handlers.execute("search_memories", "[1, 2]", context)
        assert result["error"] == "invalid_arguments"

    async def test_json_string_arguments(self, services, context) -> None:
        result = await services.handlers.execute(
            "start_memory_capture", '{"initial_content": "hello"}', context
        )
        assert result["status"] == "capture_started"

    async def test_empty_arguments_allowed_for_argless_tools(self, services, context) -> None:
        result = await services.handlers.execute("get_session_state", None, context)
        assert result["state"] == "CONVERSATION"

    async def test_unexpected_store_error_becomes_tool_error(
        self, services, context, memory_store, monkeypatch
    ) -> None:
        async def timed_out(owner_id):
            raise TimeoutError()

        monkeypatch.setattr(memory_store, "list_categories", timed_out)
        result = await services.handlers.execute("list_categories", {}, context)
        assert result == {"error": "list_categories failed", "message": TOOL_FAILED_MESSAGE}


class TestDraftFlow:
    """Tests for capture, enrichment and draft generation."""

    async def test_start_capture(self, services, context) -> None:
        result = await services.handlers.execute(
            "start_memory_capture", {"initial_content": "Lunch with Sam"}, context
        )

        assert result["status"] == "capture_started"
        session = await session_of(services, context)
        assert session.state == ConversationState.MEMORY_CAPTURE
        assert session.draft.content_parts == ["Lunch with Sam"]

    async def test_start_without_content_asks_for_it(self, services, context) -> None:
        result = await services.handlers.execute("start_memory_capture", {}, context)
        assert result["message"] == "What would you like to remember?"
        session = await session_of(services, context)
        assert session.draft.content_parts == []

    async def test_add_moves_to_enrichment(self, services, context) -> None:
        await services.handlers.execute("start_memory_capture", {"initial_content": "a"}, context)
        result = await services.handlers.execute(
            "add_to_memory_draft", {"content": "b", "is_answer_to_question": True}, context
        )

        assert result["status"] == "content_added"
        assert result["enrichment_count"] == 1
        assert result["total_parts"] == 2
        session = await session_of(services, context)
        assert session.state == ConversationState.MEMORY_ENRICHMENT

    async def test_generate_draft(self, services, context) -> None:
        result = await capture(services, context, "Lunch with Sam", "We ate ramen")

        assert result["status"] == "draft_ready"
        assert result["draft"]["title"] == "Lunch with Sam"
        assert result["draft"]["summary"] == "Caught up over lunch."
        assert result["draft"]["category"] == "Social"
        assert result["draft"]["tags"] == ["friends", "food"]

        session = await session_of(services, context)
        assert session.state == ConversationState.MEMORY_DRAFT
        assert session.draft.full_content == "Lunch with Sam\n\nWe ate ramen"

    async def test_generate_draft_without_content(self, services, context) -> None:
        await services.handlers.execute("start_memory_capture", {}, context)
        result = await services.handlers.execute("generate_memory_draft", {}, context)
        assert result["error"] == "no_draft"

    async def test_add_after_draft_invalidates_generated_fields(self, services, context) -> None:
        await capture(services, context, "Lunch with Sam")
        await services.handlers.execute("add_to_memory_draft", {"content": "More"}, context)

        session = await session_of(services, context)
        assert session.draft.title is None
        assert session.draft.full_content is None
        assert session.draft.assemble_content() == "Lunch with Sam\n\nMore"

    async def test_cancel(self, services, context) -> None:
        await capture(services, context, "Lunch with Sam")
        result = await services.handlers.execute("cancel_memory_draft", {}, context)

        assert result["status"] == "draft_cancelled"
        session = await session_of(services, context)
        assert session.state == ConversationState.CONVERSATION
        assert session.draft.content_parts == []


class TestFinalize:
    """Tests for saving a draft as a memory."""

    async def test_saves_memory(self, services, context, memory_store, owner_id) -> None:
        await capture(services, context, "Lunch with Sam", "We ate ramen")
        result = await services.handlers.execute("finalize_memory", {}, context)

        assert result["status"] == "memory_saved"
        assert result["suggested_buttons"] == [NEW_MEMORY_BUTTON]
        saved = result["memory"]
        assert saved["title"] == "Lunch with Sam"
        assert saved["category"] == "Social"
        assert sorted(saved["tags"]) == ["food", "friends"]

        memories = await memory_store.list_recent_memories(owner_id, limit=10)
        assert len(memories) == 1
        assert memories[0].content == "Lunch with Sam\n\nWe ate ramen"
        assert memories[0].embedding is not None
        assert memories[0].source_channel == Channel.WEB

        category = await memory_store.get_category_by_name(owner_id, "Social")
        assert category.memory_count == 1

        session = await session_of(services, context)
        assert session.state == ConversationState.CONVERSATION
        assert session.draft.last_created_memory_id == memories[0].id
        assert not session.draft.saving_in_progress

    async def test_title_override(self, services, context) -> None:
        await capture(services, context, "Lunch with Sam")
        result = await services.handlers.execute(
            "finalize_memory", {"title": "  Ramen day  "}, context
        )
        assert result["memory"]["title"] == "Ramen day"

    async def test_category_and_tag_overrides(self, services, context) -> None:
        await capture(services, context, "Lunch with Sam")
        result = await services.handlers.execute(
            "finalize_memory",
            {"category_override": "Food Diary", "tags_override": ["ramen"]},
            context,
        )
        assert result["memory"]["category"] == "Food Diary"
        assert result["memory"]["tags"] == ["ramen"]

    async def test_finalize_without_draft_generation(self, services, context) -> None:
        await services.handlers.execute(
            "start_memory_capture", {"initial_content": "Lunch with Sam"}, context
        )
        result = await services.handlers.execute("finalize_memory", {}, context)

        assert result["status"] == "memory_saved"
        assert result["memory"]["title"] == "Lunch with Sam"

    async def test_no_draft(self, services, context) -> None:
        result = await services.handlers.execute("finalize_memory", {}, context)
        assert result == {"error": "no_draft", "message": NO_DRAFT_MESSAGE}

    async def test_repeat_finalize_reports_already_saved(self, services, context) -> None:
        await capture(services, context, "Lunch with Sam")
        first = await services.handlers.execute("finalize_memory", {}, context)
        second = await services.handlers.execute("finalize_memory", {}, context)

        assert second["status"] == "already_saved"
        assert second["memory"]["id"] == first["memory"]["id"]

    async def test_duplicate_content_returns_existing(
        self, services, context, memory_store, owner_id
    ) -> None:
        await capture(services, context, "Lunch with Sam")
        first = await services.handlers.execute("finalize_memory", {}, context)

        await capture(services, context, "Lunch with Sam")
        second = await services.handlers.execute("finalize_memory", {}, context)

        assert second["status"] == "memory_saved"
        assert second["duplicate"] is True
        assert second["memory"]["id"] == first["memory"]["id"]
        assert len(await memory_store.list_recent_memories(owner_id, limit=10)) == 1

    async def test_concurrent_finalize_saves_once(
        self, services, context, embedder, memory_store, owner_id, monkeypatch
    ) -> None:
        await capture(services, context, "Lunch with Sam")
        original_embed = embedder.embed

        async def slow_embed(texts, **kwargs):
            await asyncio.sleep(0.05)
            return await original_embed(texts, **kwargs)

        monkeypatch.setattr(embedder, "embed", slow_embed)

        results = await asyncio.gather(
            services.handlers.execute("finalize_memory", {}, context),
            services.handlers.execute("finalize_memory", {}, context),
        )

        statuses = sorted(r["status"] for r in results)
        assert statuses.count("memory_saved") == 1
        assert set(statuses) - {"memory_saved"} <= {"saving_in_progress", "already_saved"}
        assert len(await memory_store.list_recent_memories(owner_id, limit=10)) == 1

    async def test_in_progress_marker_blocks_second_save(self, services, context) -> None:
        await capture(services, context, "Lunch with Sam")

        def _mark(session):
            session.draft.saving_in_progress = True

        await services.sessions.update_session(context.session_id, _mark)
        result = await services.handlers.execute("finalize_memory", {}, context)
        assert result["status"] == "saving_in_progress"

    async def test_failure_clears_marker_and_allows_retry(
        self, services, context, memory_store, owner_id, monkeypatch
    ) -> None:
        await capture(services, context, "Lunch with Sam")
        original_add = memory_store.add_memory
        calls = {"count": 0}

        async def flaky_add(memory):
            calls["count"] += 1
            if calls["count"] == 1:
                raise ConnectionError("database went away")
            return await original_add(memory)

        monkeypatch.setattr(memory_store, "add_memory", flaky_add)

        failed = await services.handlers.execute("finalize_memory", {}, context)
        assert failed == {"error": SAVE_FAILED_MESSAGE}
        session = await session_of(services, context)
        assert not session.draft.saving_in_progress
        assert session.state == ConversationState.MEMORY_DRAFT

        retried = await services.handlers.execute("finalize_memory", {}, context)
        assert retried["status"] == "memory_saved"
        assert len(await memory_store.list_recent_memories(owner_id, limit=10)) == 1

    async def test_failure_after_insert_rolls_back_partial_save(
        self, services, context, memory_store, owner_id, monkeypatch
    ) -> None:
        await capture(services, context, "Lunch with Sam")
        original_set_tags = memory_store.set_memory_tags
        calls = {"count": 0}

        async def flaky_set_tags(memory_id, tag_ids):
            calls["count"] += 1
            if calls["count"] == 1:
                raise StoreConnectionError("connection reset")
            return await original_set_tags(memory_id, tag_ids)

        monkeypatch.setattr(memory_store, "set_memory_tags", flaky_set_tags)

        failed = await services.handlers.execute("finalize_memory", {}, context)
        assert failed == {"error": SAVE_FAILED_MESSAGE}
        assert await memory_store.list_recent_memories(owner_id, limit=None) == []

        retried = await services.handlers.execute("finalize_memory", {}, context)
        assert retried["status"] == "memory_saved"
        assert "duplicate" not in retried

        live = await memory_store.list_recent_memories(owner_id, limit=None)
        assert len(live) == 1
        category = await memory_store.get_category_by_name(owner_id, "Social")
        assert category.memory_count == len(live)
        tags = await memory_store.get_memory_tags(owner_id, live[0].id)
        assert sorted(t.normalized_name for t in tags) == ["food", "friends"]
        assert all(t.usage_count == 1 for t in tags)

    async def test_links_related_memories(self, services, context, embedder) -> None:
        embedder.pin("Lunch with Sam", [1.0] + [0.0] * 15)
        embedder.pin("Dinner with Sam", [0.9, 0.43589] + [0.0] * 14)

        await capture(services, context, "Lunch with Sam")
        await services.handlers.execute("finalize_memory", {}, context)
        await capture(services, context, "Dinner with Sam")
        result = await services.handlers.execute("finalize_memory", {}, context)

        assert result["memory"]["related_count"] == 1


class TestMemoryManagement:
    """Tests for update, delete and listing tools."""

    @pytest.fixture
    async def saved(self, services, context) -> dict:
        await capture(services, context, "Lunch with Sam")
        result = await services.handlers.execute("finalize_memory", {}, context)
        return result["memory"]

    async def test_get_memory_by_id(self, services, context, saved) -> None:
        result = await services.handlers.execute(
            "get_memory_by_id", {"memory_id": saved["id"]}, context
        )
        assert result["content"] == "Lunch with Sam"
        assert result["category"] == "Social"

    async def test_get_unknown_memory(self, services, context) -> None:
        result = await services.handlers.execute(
            "get_memory_by_id", {"memory_id": str(uuid4())}, context
        )
        assert result == {"error": "not_found"}

    async def test_other_owner_cannot_read(self, services, saved) -> None:
        stranger = ToolContext(owner_id="owner-2", session_id=uuid4(), channel=Channel.WEB)
        result = await services.handlers.execute(
            "get_memory_by_id", {"memory_id": saved["id"]}, stranger
        )
        assert result == {"error": "not_found"}

    async def test_update_moves_category_counts(
        self, services, context, saved, memory_store, owner_id
    ) -> None:
        result = await services.handlers.execute(
            "update_memory",
            {"memory_id": saved["id"], "title": "Ramen", "category": "Food", "tags": ["ramen"]},
            context,
        )

        assert result["status"] == "memory_updated"
        assert result["memory"]["title"] == "Ramen"
        assert result["memory"]["category"] == "Food"
        assert result["memory"]["tags"] == ["ramen"]
        social = await memory_store.get_category_by_name(owner_id, "Social")
        food = await memory_store.get_category_by_name(owner_id, "Food")
        assert social.memory_count == 0
        assert food.memory_count == 1

    async def test_update_content_reembeds(self, services, context, saved, embedder) -> None:
        embedder.clear_history()
        await services.handlers.execute(
            "update_memory", {"memory_id": saved["id"], "content": "Lunch and a walk"}, context
        )
        assert "Lunch and a walk" in embedder.embedded_texts

    async def test_delete_decrements_count(
        self, services, context, saved, memory_store, owner_id
    ) -> None:
        result = await services.handlers.execute(
            "delete_memory", {"memory_id": saved["id"]}, context
        )

        assert result == {"status": "memory_deleted"}
        category = await memory_store.get_category_by_name(owner_id, "Social")
        assert category.memory_count == 0
        again = await services.handlers.execute(
            "delete_memory", {"memory_id": saved["id"]}, context
        )
        assert again == {"error": "not_found"}

    async def test_list_recent(self, services, context, saved) -> None:
        result = await services.handlers.execute("list_recent_memories", {}, context)
        assert [m["id"] for m in result["memories"]] == [saved["id"]]
        assert result["memories"][0]["category"] == "Social"

    async def test_list_recent_unknown_category(self, services, context, saved) -> None:
        result = await services.handlers.execute(
            "list_recent_memories", {"category": "Nope"}, context
        )
        assert result["memories"] == []
        assert "Nope" in result["message"]

    async def test_list_categories_and_tags(self, services, context, saved) -> None:
        categories = await services.handlers.execute("list_categories", {}, context)
        tags = await services.handlers.execute("list_tags", {}, context)

        assert categories["categories"][0]["name"] == "Social"
        assert categories["categories"][0]["memory_count"] == 1
        assert {t["name"] for t in tags["tags"]} == {"friends", "food"}

    async def test_search_returns_saved_memory(self, services, context, saved) -> None:
        result = await services.handlers.execute(
            "search_memories", {"query": "Lunch with Sam"}, context
        )
        assert saved["id"] in [m["id"] for m in result["memories"]]


class TestSessionTools:
    """Tests for reading and setting session state."""

    async def test_set_state(self, services, context) -> None:
        result = await services.handlers.execute(
            "set_session_state", {"state": "MEMORY_CAPTURE"}, context
        )
        assert result == {"status": "state_updated", "state": "MEMORY_CAPTURE"}

    async def test_set_invalid_state(self, services, context) -> None:
        result = await services.handlers.execute(
            "set_session_state", {"state": "DANCING"}, context
        )
        assert result["error"] == "invalid_arguments"

    async def test_get_state_reports_draft(self, services, context) -> None:
        await services.handlers.execute(
            "start_memory_capture", {"initial_content": "hi there"}, context
        )
        result = await services.handlers.execute("get_session_state", {}, context)
        assert result["state"] == "MEMORY_CAPTURE"
        assert result["has_draft"] is True
        assert result["draft_parts"] == 1
