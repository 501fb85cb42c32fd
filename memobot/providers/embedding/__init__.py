"""Embedding providers."""

from memobot.providers.embedding.base import EmbeddingProvider, EmbeddingResponse
from memobot.providers.embedding.cached import (
    CachedEmbeddingProvider,
    cache_key,
    create_embedding_provider,
)
from memobot.providers.embedding.mock import MockEmbeddingProvider

__all__ = [
    "EmbeddingProvider",
    "EmbeddingResponse",
    "CachedEmbeddingProvider",
    "MockEmbeddingProvider",
    "cache_key",
    "create_embedding_provider",
]
