"""Tests for the embedding providers and the TTL cache."""

import pytest

from memobot.config.models.providers import EmbeddingProviderConfig
from memobot.providers.embedding import (
    CachedEmbeddingProvider,
    MockEmbeddingProvider,
    cache_key,
    create_embedding_provider,
)
from memobot.providers.errors import EmbeddingError
from memobot.utils.vector import cosine_similarity


class FakeTimer:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def mock_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider(dimensions=32)


class TestMockEmbeddingProvider:
    """Tests for MockEmbeddingProvider."""

    async def test_deterministic_unit_vectors(self, mock_provider) -> None:
        first = await mock_provider.embed_single("hello")
        second = await mock_provider.embed_single("hello")
        assert first == second
        assert cosine_similarity(first, first) == pytest.approx(1.0)

    async def test_pinned_vector_returned(self, mock_provider) -> None:
        vector = [1.0] + [0.0] * 31
        mock_provider.pin("Travel", vector)
        assert await mock_provider.embed_single("  travel ") == vector

    def test_pin_wrong_dimensions_rejected(self, mock_provider) -> None:
        with pytest.raises(ValueError):
            mock_provider.pin("x", [1.0])

    async def test_fail_with_raises_embedding_error(self, mock_provider) -> None:
        mock_provider.fail_with(RuntimeError("down"))
        with pytest.raises(EmbeddingError):
            await mock_provider.embed(["x"])


class TestCacheKey:
    """Tests for cache key normalization."""

    def test_trims_lowercases_and_collapses_whitespace(self) -> None:
        assert cache_key("  Weekend   Trip\n") == "weekend trip"


class TestCachedEmbeddingProvider:
    """Tests for CachedEmbeddingProvider."""

    async def test_second_lookup_served_from_cache(self, mock_provider) -> None:
        cached = CachedEmbeddingProvider(mock_provider)

        first = await cached.embed_single("Trip to Lisbon")
        second = await cached.embed_single("trip  to lisbon")

        assert first == second
        assert len(mock_provider.call_history) == 1
        assert cached.cache_size == 1

    async def test_only_misses_reach_backend(self, mock_provider) -> None:
        cached = CachedEmbeddingProvider(mock_provider)
        await cached.embed(["a"])

        response = await cached.embed(["a", "b", "B", "c"])

        assert len(response.embeddings) == 4
        assert response.embeddings[1] == response.embeddings[2]
        assert mock_provider.call_history[-1]["texts"] == ["b", "c"]
        assert response.metadata["cache_misses"] == 2

    async def test_entries_expire_after_ttl(self, mock_provider) -> None:
        timer = FakeTimer()
        cached = CachedEmbeddingProvider(mock_provider, ttl_seconds=10, timer=timer)

        await cached.embed_single("x")
        timer.now = 11.0
        await cached.embed_single("x")

        assert len(mock_provider.call_history) == 2

    async def test_cache_is_bounded(self, mock_provider) -> None:
        cached = CachedEmbeddingProvider(mock_provider, max_size=2)
        await cached.embed(["a", "b", "c"])
        assert cached.cache_size == 2

    async def test_failures_are_not_cached(self, mock_provider) -> None:
        cached = CachedEmbeddingProvider(mock_provider)
        mock_provider.fail_with(RuntimeError("down"))
        with pytest.raises(EmbeddingError):
            await cached.embed_single("x")

        mock_provider.fail_with(None)
        assert await cached.embed_single("x")
        assert cached.cache_size == 1

    async def test_callers_cannot_corrupt_cached_vectors(self, mock_provider) -> None:
        cached = CachedEmbeddingProvider(mock_provider)
        first = await cached.embed_single("Trip to Lisbon")
        expected = list(first)

        first[0] = 42.0
        first.append(1.0)
        response = await cached.embed(["Trip to Lisbon", "trip to lisbon"])

        assert await cached.embed_single("Trip to Lisbon") == expected
        assert response.embeddings[0] == expected
        assert response.embeddings[0] is not response.embeddings[1]


class TestCreateEmbeddingProvider:
    """Tests for the embedding factory."""

    def test_mock_provider_is_wrapped_in_cache(self) -> None:
        provider = create_embedding_provider(
            EmbeddingProviderConfig(provider="mock", dimensions=8)
        )
        assert isinstance(provider, CachedEmbeddingProvider)
        assert provider.dimensions == 8
