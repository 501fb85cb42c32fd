"""In-process embedding cache.

Wraps any EmbeddingProvider with a bounded TTL cache keyed by normalized
text, so repeated classification of the same names and phrases inside a
turn (and across turns) does not hit the backend again.
"""

import re
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from cachetools import TTLCache

from memobot.observability.logging import get_logger
from memobot.observability.metrics import EMBEDDING_CACHE
from memobot.providers.embedding.base import EmbeddingProvider, EmbeddingResponse

if TYPE_CHECKING:
    from memobot.config.models.providers import EmbeddingProviderConfig

logger = get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


def cache_key(text: str) -> str:
    """Normalize text for cache lookup: trim, lowercase, collapse whitespace."""
    return _WHITESPACE.sub(" ", text.strip().lower())


class CachedEmbeddingProvider(EmbeddingProvider):
    """EmbeddingProvider decorator backed by a cachetools TTLCache.

    Only touched from the event loop thread; concurrent coroutines may both
    miss on the same key and embed it twice, which is harmless.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        max_size: int = 500,
        ttl_seconds: float = 3600,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._cache: TTLCache[str, tuple[float, ...]] = TTLCache(
            maxsize=max_size, ttl=ttl_seconds, timer=timer
        )

    @property
    def provider_name(self) -> str:
        """Return the wrapped provider's name."""
        return self._provider.provider_name

    @property
    def dimensions(self) -> int:
        """Return embedding dimensions."""
        return self._provider.dimensions

    @property
    def cache_size(self) -> int:
        """Number of live cache entries."""
        return len(self._cache)

    def clear(self) -> None:
        """Drop all cached embeddings."""
        self._cache.clear()

    async def embed(
        self,
        texts: list[str],
        *,
        model: str | None = None,
        **kwargs: Any,
    ) -> EmbeddingResponse:
        """Embed texts, serving cached vectors and batching the misses."""
        keys = [cache_key(text) for text in texts]
        vectors: dict[str, tuple[float, ...]] = {}
        misses: list[str] = []
        miss_keys: list[str] = []

        for text, key in zip(texts, keys):
            if key in vectors or key in miss_keys:
                continue
            cached = self._cache.get(key)
            if cached is not None:
                vectors[key] = cached
            else:
                misses.append(text)
                miss_keys.append(key)

        EMBEDDING_CACHE.labels(result="hit").inc(len(vectors))
        EMBEDDING_CACHE.labels(result="miss").inc(len(misses))

        usage = None
        response_model = model or "cache"
        if misses:
            response = await self._provider.embed(misses, model=model, **kwargs)
            for key, vector in zip(miss_keys, response.embeddings):
                frozen = tuple(vector)
                self._cache[key] = frozen
                vectors[key] = frozen
            usage = response.usage
            response_model = response.model

        logger.debug(
            "embedding_cache_lookup",
            requested=len(texts),
            hits=len(texts) - len(misses),
            misses=len(misses),
        )

        return EmbeddingResponse(
            # fresh lists per call; callers may mutate them
            embeddings=[list(vectors[key]) for key in keys],
            model=response_model,
            dimensions=self.dimensions,
            usage=usage,
            metadata={"cache_misses": len(misses)},
        )


def create_embedding_provider(config: "EmbeddingProviderConfig") -> EmbeddingProvider:
    """Build the configured embedding backend wrapped in the TTL cache."""
    provider: EmbeddingProvider
    if config.provider == "mock":
        from memobot.providers.embedding.mock import MockEmbeddingProvider

        provider = MockEmbeddingProvider(dimensions=config.dimensions)
    else:
        from memobot.providers.embedding.openai import OpenAIEmbeddingProvider

        api_key = config.api_key.get_secret_value() if config.api_key else None
        provider = OpenAIEmbeddingProvider(
            api_key=api_key,
            model=config.model,
            dimensions=config.dimensions,
            timeout=config.timeout,
            max_input_chars=config.max_input_chars,
        )
    return CachedEmbeddingProvider(
        provider,
        max_size=config.cache_size,
        ttl_seconds=config.cache_ttl_seconds,
    )
