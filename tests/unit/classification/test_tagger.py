"""Tests for TagService and tag normalization."""

from uuid import uuid4

import pytest

from memobot.classification import (
    TagMerge,
    TagService,
    comparison_key,
    normalize_tag_name,
    parse_tag_list,
)
from memobot.memory.models import Tag
from memobot.providers.llm import ProviderError
from tests.factories.vectors import at_similarity, unit


@pytest.fixture
def service(memory_store, embedder, utility_llm, classification_config) -> TagService:
    return TagService(memory_store, embedder, utility_llm, classification_config)


class TestNormalizeTagName:
    """Tests for normalize_tag_name."""

    @pytest.mark.parametrize(
        "raw",
        ["Family Trip", "family-trip", "FAMILY TRIP ", "family   trip", "Family Trip!"],
    )
    def test_variants_share_a_key(self, raw: str) -> None:
        assert normalize_tag_name(raw) == "family-trip"

    def test_empty_after_cleaning(self) -> None:
        assert normalize_tag_name("!!!") == "untagged"

    def test_truncated_to_fifty_characters(self) -> None:
        assert len(normalize_tag_name("a" * 80)) == 50


class TestParseTagList:
    """Tests for parse_tag_list."""

    def test_extracts_array_from_prose(self) -> None:
        reply = 'Here you go: ["Travel", " Family ", "", 3] hope that helps'
        assert parse_tag_list(reply, 5) == ["travel", "family"]

    def test_limits_count(self) -> None:
        assert parse_tag_list('["a","b","c"]', 2) == ["a", "b"]

    def test_invalid_json(self) -> None:
        assert parse_tag_list("[not json", 5) == []
        assert parse_tag_list("no array here", 5) == []


class TestGetOrCreateTags:
    """Tests for get_or_create_tags."""

    async def test_creates_new_tags_once_per_key(self, service, memory_store, owner_id) -> None:
        tags = await service.get_or_create_tags(owner_id, ["Family Trip", "family-trip", " "])

        assert [t.normalized_name for t in tags] == ["family-trip"]
        assert tags[0].name == "Family Trip"
        assert tags[0].usage_count == 1
        assert len(await memory_store.list_tags(owner_id)) == 1

    async def test_reuses_exact_and_increments_usage(
        self, service, memory_store, owner_id
    ) -> None:
        existing = await memory_store.add_tag(
            Tag(owner_id=owner_id, name="travel", normalized_name="travel", usage_count=2)
        )

        tags = await service.get_or_create_tags(owner_id, ["Travel"])

        assert [t.id for t in tags] == [existing.id]
        stored = await memory_store.get_tag_by_normalized_name(owner_id, "travel")
        assert stored.usage_count == 3

    async def test_reuses_similar_tag(self, service, memory_store, embedder, owner_id) -> None:
        existing = await memory_store.add_tag(
            Tag(owner_id=owner_id, name="vacation", normalized_name="vacation", embedding=unit(1.0))
        )
        embedder.pin("holiday", at_similarity(0.8))

        tags = await service.get_or_create_tags(owner_id, ["holiday"])

        assert [t.id for t in tags] == [existing.id]

    async def test_embedding_failure_still_creates(
        self, service, memory_store, embedder, owner_id
    ) -> None:
        embedder.fail_with(RuntimeError("down"))

        tags = await service.get_or_create_tags(owner_id, ["Recipes"])

        assert tags[0].normalized_name == "recipes"
        assert tags[0].embedding is None


class TestPreviewTags:
    """Tests for preview_tags."""

    async def test_preview_maps_to_existing_without_writing(
        self, service, memory_store, owner_id
    ) -> None:
        await memory_store.add_tag(
            Tag(owner_id=owner_id, name="work project", normalized_name="work-project")
        )

        names = await service.preview_tags(owner_id, ["Work Project", "Brand New"])

        assert names == ["work project", "Brand New"]
        assert len(await memory_store.list_tags(owner_id)) == 1


class TestExtraction:
    """Tests for tag extraction."""

    async def test_extract_and_assign(self, service, llm_provider, owner_id) -> None:
        llm_provider.when_contains("meaningful tags", '["birthday", "family"]')

        tags = await service.extract_and_assign_tags(owner_id, "Mum's 60th birthday dinner")

        assert [t.normalized_name for t in tags] == ["birthday", "family"]

    async def test_provider_failure_falls_back(self, service, llm_provider, owner_id) -> None:
        llm_provider.enqueue(ProviderError("down"))
        assert await service.extract_tag_names(owner_id, "anything") == ["general"]

    async def test_unparseable_reply_falls_back(self, service, llm_provider, owner_id) -> None:
        llm_provider.when_contains("meaningful tags", "birthday, family")
        assert await service.extract_tag_names(owner_id, "anything") == ["general"]


class TestComparisonKey:
    """Tests for the loose key used when merging."""

    @pytest.mark.parametrize(
        ("name", "key"),
        [
            ("Recipes", "recipe"),
            ("boxes", "box"),
            ("Families", "family"),
            ("glass", "glass"),
            ("work-trip", "worktrip"),
            ("bus", "bus"),
        ],
    )
    def test_keys(self, name: str, key: str) -> None:
        assert comparison_key(name) == key


class TestShouldMerge:
    """Tests for spotting spelling variants."""

    @pytest.mark.parametrize(
        ("first", "second"),
        [
            ("meeting", "mtg"),
            ("docs", "document"),
            ("recipe", "recipes"),
            ("work-trip", "work_trip"),
            ("birthday", "birthdays"),
            ("project notes", "proj notes"),
            ("vacation", "vacaton"),
        ],
    )
    def test_variants_merge(self, service, first: str, second: str) -> None:
        assert service.should_merge(first, second)
        assert service.should_merge(second, first)

    @pytest.mark.parametrize(
        ("first", "second"),
        [
            ("friends", "food"),
            ("work", "word"),
            ("company", "code"),
            ("travel", "health"),
        ],
    )
    def test_unrelated_kept_apart(self, service, first: str, second: str) -> None:
        assert not service.should_merge(first, second)


class TestMergeSimilarTags:
    """Tests for folding near-duplicate tags together."""

    async def test_merges_into_most_used(self, service, memory_store, owner_id) -> None:
        recipe = await memory_store.add_tag(
            Tag(owner_id=owner_id, name="recipe", normalized_name="recipe", usage_count=5)
        )
        recipes = await memory_store.add_tag(
            Tag(owner_id=owner_id, name="recipes", normalized_name="recipes", usage_count=2)
        )
        travel = await memory_store.add_tag(
            Tag(owner_id=owner_id, name="travel", normalized_name="travel", usage_count=1)
        )
        first, second = uuid4(), uuid4()
        await memory_store.set_memory_tags(first, [recipes.id, travel.id])
        await memory_store.set_memory_tags(second, [recipe.id, recipes.id])

        merges = await service.merge_similar_tags(owner_id)

        assert merges == [TagMerge(canonical="recipe", merged=["recipes"])]
        remaining = await memory_store.list_tags(owner_id)
        assert [(t.name, t.usage_count) for t in remaining] == [("recipe", 7), ("travel", 1)]
        assert [t.id for t in await memory_store.get_memory_tags(owner_id, first)] == [
            recipe.id,
            travel.id,
        ]
        assert [t.id for t in await memory_store.get_memory_tags(owner_id, second)] == [recipe.id]

    async def test_nothing_to_merge(self, service, memory_store, owner_id) -> None:
        await memory_store.add_tag(
            Tag(owner_id=owner_id, name="travel", normalized_name="travel")
        )
        assert await service.merge_similar_tags(owner_id) == []
        assert len(await memory_store.list_tags(owner_id)) == 1


class TestReleaseTags:
    """Tests for giving tag uses back."""

    async def test_release_decrements_once_per_tag(self, service, memory_store, owner_id) -> None:
        tag = await memory_store.add_tag(
            Tag(owner_id=owner_id, name="travel", normalized_name="travel", usage_count=2)
        )
        await service.release_tags(owner_id, [tag.id, tag.id])
        stored = await memory_store.get_tag_by_normalized_name(owner_id, "travel")
        assert stored.usage_count == 1
