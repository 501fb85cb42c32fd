"""Tests for InMemoryMemoryStore."""

from datetime import timedelta
from uuid import uuid4

import pytest

from memobot.db.errors import ConflictError, NotFoundError
from memobot.memory.models import (
    MANUAL,
    Category,
    Memory,
    MemoryRelationship,
    Tag,
    utc_now,
)
from tests.factories.vectors import at_similarity, unit


def make_memory(owner_id: str, content: str, **kwargs) -> Memory:
    return Memory(owner_id=owner_id, content=content, **kwargs)


class TestMemoryOperations:
    """Tests for memory CRUD."""

    async def test_add_and_get(self, memory_store, owner_id) -> None:
        memory = await memory_store.add_memory(make_memory(owner_id, "hello"))
        fetched = await memory_store.get_memory(owner_id, memory.id)
        assert fetched is not None
        assert fetched.content == "hello"

    async def test_other_owner_cannot_read(self, memory_store, owner_id) -> None:
        memory = await memory_store.add_memory(make_memory(owner_id, "private"))
        assert await memory_store.get_memory("someone-else", memory.id) is None

    async def test_returned_copies_are_detached(self, memory_store, owner_id) -> None:
        memory = await memory_store.add_memory(make_memory(owner_id, "original"))
        fetched = await memory_store.get_memory(owner_id, memory.id)
        fetched.content = "changed"
        again = await memory_store.get_memory(owner_id, memory.id)
        assert again.content == "original"

    async def test_soft_deleted_memory_hidden(self, memory_store, owner_id) -> None:
        memory = await memory_store.add_memory(make_memory(owner_id, "gone"))
        deleted = await memory_store.soft_delete_memory(owner_id, memory.id)

        assert deleted is not None and deleted.is_deleted
        assert await memory_store.get_memory(owner_id, memory.id) is None
        assert await memory_store.soft_delete_memory(owner_id, memory.id) is None
        assert await memory_store.find_memory_by_content(owner_id, "gone") is None

    async def test_update_missing_raises(self, memory_store, owner_id) -> None:
        with pytest.raises(NotFoundError):
            await memory_store.update_memory(make_memory(owner_id, "never stored"))

    async def test_duplicate_id_conflicts(self, memory_store, owner_id) -> None:
        memory = await memory_store.add_memory(make_memory(owner_id, "x"))
        with pytest.raises(ConflictError):
            await memory_store.add_memory(memory)

    async def test_recent_newest_first_with_category(self, memory_store, owner_id) -> None:
        category_id = uuid4()
        now = utc_now()
        for i in range(3):
            await memory_store.add_memory(
                make_memory(
                    owner_id,
                    f"m{i}",
                    created_at=now + timedelta(minutes=i),
                    category_id=category_id if i != 1 else None,
                )
            )

        recent = await memory_store.list_recent_memories(owner_id, limit=2)
        assert [m.content for m in recent] == ["m2", "m1"]

        in_category = await memory_store.list_recent_memories(
            owner_id, limit=5, category_id=category_id
        )
        assert [m.content for m in in_category] == ["m2", "m0"]

    async def test_recent_without_limit_lists_all(self, memory_store, owner_id) -> None:
        for i in range(7):
            await memory_store.add_memory(make_memory(owner_id, f"m{i}"))
        assert len(await memory_store.list_recent_memories(owner_id)) == 5
        assert len(await memory_store.list_recent_memories(owner_id, limit=None)) == 7


class TestSearch:
    """Tests for vector and keyword search."""

    async def test_vector_search_threshold_is_strict(self, memory_store, owner_id) -> None:
        close = await memory_store.add_memory(
            make_memory(owner_id, "close", embedding=at_similarity(0.9))
        )
        await memory_store.add_memory(
            make_memory(owner_id, "edge", embedding=at_similarity(0.5))
        )
        await memory_store.add_memory(make_memory(owner_id, "no vector"))

        results = await memory_store.vector_search_memories(
            owner_id, unit(1.0), limit=10, min_score=0.5
        )

        assert [m.id for m, _ in results] == [close.id]

    async def test_keyword_search_requires_term_overlap(self, memory_store, owner_id) -> None:
        await memory_store.add_memory(make_memory(owner_id, "Dinner with Ana at the harbour"))
        await memory_store.add_memory(make_memory(owner_id, "Passport renewal appointment"))
        await memory_store.add_memory(make_memory(owner_id, "Gym schedule for spring"))

        results = await memory_store.keyword_search_memories(owner_id, "passport")

        assert [m.content for m in results] == ["Passport renewal appointment"]

    async def test_keyword_search_empty_query(self, memory_store, owner_id) -> None:
        await memory_store.add_memory(make_memory(owner_id, "anything"))
        assert await memory_store.keyword_search_memories(owner_id, "  ?! ") == []


class TestTaxonomy:
    """Tests for categories and tags."""

    async def test_category_names_unique_ignoring_case(self, memory_store, owner_id) -> None:
        await memory_store.add_category(Category(owner_id=owner_id, name="Travel"))
        with pytest.raises(ConflictError):
            await memory_store.add_category(Category(owner_id=owner_id, name="travel"))
        assert await memory_store.get_category_by_name(owner_id, " TRAVEL ") is not None

    async def test_category_count_floors_at_zero(self, memory_store, owner_id) -> None:
        category = await memory_store.add_category(Category(owner_id=owner_id, name="Work"))
        assert await memory_store.adjust_category_count(owner_id, category.id, 1) == 1
        assert await memory_store.adjust_category_count(owner_id, category.id, -5) == 0
        assert await memory_store.adjust_category_count(owner_id, uuid4(), 1) is None

    async def test_tags_ordered_by_usage(self, memory_store, owner_id) -> None:
        rare = await memory_store.add_tag(
            Tag(owner_id=owner_id, name="rare", normalized_name="rare")
        )
        common = await memory_store.add_tag(
            Tag(owner_id=owner_id, name="common", normalized_name="common")
        )
        await memory_store.increment_tag_usage(owner_id, common.id, 3)
        await memory_store.increment_tag_usage(owner_id, rare.id)

        tags = await memory_store.list_tags(owner_id, limit=1)
        assert [t.name for t in tags] == ["common"]

    async def test_memory_tags_replaced(self, memory_store, owner_id) -> None:
        a = await memory_store.add_tag(Tag(owner_id=owner_id, name="a", normalized_name="a"))
        b = await memory_store.add_tag(Tag(owner_id=owner_id, name="b", normalized_name="b"))
        memory_id = uuid4()

        await memory_store.set_memory_tags(memory_id, [a.id, a.id])
        await memory_store.set_memory_tags(memory_id, [b.id])

        assert [t.name for t in await memory_store.get_memory_tags(owner_id, memory_id)] == ["b"]

    async def test_recalculate_counts_live_memories(self, memory_store, owner_id) -> None:
        category = await memory_store.add_category(
            Category(owner_id=owner_id, name="Work", memory_count=9)
        )
        await memory_store.add_memory(
            make_memory(owner_id, "standup", category_id=category.id)
        )
        dropped = await memory_store.add_memory(
            make_memory(owner_id, "retro", category_id=category.id)
        )
        await memory_store.soft_delete_memory(owner_id, dropped.id)

        assert await memory_store.recalculate_category_counts(owner_id) == {category.id: 1}
        assert (await memory_store.get_category(owner_id, category.id)).memory_count == 1

    async def test_merge_tags_moves_links_once(self, memory_store, owner_id) -> None:
        keep = await memory_store.add_tag(
            Tag(owner_id=owner_id, name="doc", normalized_name="doc", usage_count=3)
        )
        dupe = await memory_store.add_tag(
            Tag(owner_id=owner_id, name="docs", normalized_name="docs", usage_count=2)
        )
        both, only_dupe = uuid4(), uuid4()
        await memory_store.set_memory_tags(both, [keep.id, dupe.id])
        await memory_store.set_memory_tags(only_dupe, [dupe.id])

        await memory_store.merge_tags(owner_id, keep.id, [dupe.id])

        assert [t.id for t in await memory_store.get_memory_tags(owner_id, both)] == [keep.id]
        assert [t.id for t in await memory_store.get_memory_tags(owner_id, only_dupe)] == [keep.id]
        [remaining] = await memory_store.list_tags(owner_id)
        assert (remaining.id, remaining.usage_count) == (keep.id, 5)

    async def test_merge_into_missing_tag(self, memory_store, owner_id) -> None:
        with pytest.raises(NotFoundError):
            await memory_store.merge_tags(owner_id, uuid4(), [uuid4()])


class TestRelationships:
    """Tests for relationship edges."""

    async def test_upsert_keeps_one_edge_per_pair(self, memory_store, owner_id) -> None:
        first, second = uuid4(), uuid4()
        await memory_store.upsert_relationship(
            MemoryRelationship.between(owner_id, first, second, 0.7)
        )
        await memory_store.upsert_relationship(
            MemoryRelationship.between(owner_id, second, first, 0.8)
        )

        edges = await memory_store.list_relationships(owner_id, [first])
        assert len(edges) == 1
        assert edges[0].similarity_score == 0.8
        assert await memory_store.count_relationships(owner_id, second) == 1

    async def test_manual_edge_not_overwritten_by_similarity(
        self, memory_store, owner_id
    ) -> None:
        first, second = uuid4(), uuid4()
        await memory_store.upsert_relationship(
            MemoryRelationship.between(owner_id, first, second, 1.0, MANUAL)
        )
        await memory_store.upsert_relationship(
            MemoryRelationship.between(owner_id, first, second, 0.7)
        )

        [edge] = await memory_store.list_relationships(owner_id, [first])
        assert (edge.similarity_score, edge.relationship_type) == (1.0, MANUAL)

    async def test_delete_relationship_either_order(self, memory_store, owner_id) -> None:
        first, second = uuid4(), uuid4()
        await memory_store.upsert_relationship(
            MemoryRelationship.between(owner_id, first, second, 0.7)
        )

        assert await memory_store.delete_relationship("someone-else", second, first) is False
        assert await memory_store.delete_relationship(owner_id, second, first) is True
        assert await memory_store.count_relationships(owner_id, first) == 0
