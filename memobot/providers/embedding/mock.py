"""Mock embedding provider for testing."""

import hashlib
import math
from typing import Any

from memobot.providers.embedding.base import EmbeddingProvider, EmbeddingResponse
from memobot.providers.errors import EmbeddingError


def _pin_key(text: str) -> str:
    return text.strip().lower()


class MockEmbeddingProvider(EmbeddingProvider):
    """Mock embedding provider for testing.

    Unpinned texts get deterministic pseudo-random unit vectors derived from
    a hash of the text; at the default dimensionality two different texts
    are close to orthogonal. Tests that need a specific similarity pin
    vectors to texts with `pin()`.
    """

    def __init__(
        self,
        dimensions: int = 384,
        default_model: str = "mock-embedding",
        pinned: dict[str, list[float]] | None = None,
    ):
        """Initialize mock provider.

        Args:
            dimensions: Embedding vector dimensions
            default_model: Model name to report
            pinned: Fixed vectors keyed by text (case and surrounding whitespace ignored)
        """
        self._dimensions = dimensions
        self._default_model = default_model
        self._pinned: dict[str, list[float]] = {}
        self._call_history: list[dict[str, Any]] = []
        self._fail_with: Exception | None = None
        for text, vector in (pinned or {}).items():
            self.pin(text, vector)

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "mock"

    @property
    def dimensions(self) -> int:
        """Return embedding dimensions."""
        return self._dimensions

    @property
    def call_history(self) -> list[dict[str, Any]]:
        """Return history of calls for testing assertions."""
        return self._call_history

    @property
    def embedded_texts(self) -> list[str]:
        """Every text embedded so far, in call order."""
        return [text for call in self._call_history for text in call["texts"]]

    def clear_history(self) -> None:
        """Clear call history."""
        self._call_history.clear()

    def pin(self, text: str, vector: list[float]) -> None:
        """Return `vector` whenever `text` is embedded."""
        if len(vector) != self._dimensions:
            raise ValueError(
                f"Pinned vector has {len(vector)} dimensions, expected {self._dimensions}"
            )
        self._pinned[_pin_key(text)] = vector

    def fail_with(self, error: Exception | None) -> None:
        """Make every following embed call raise `error` (None to stop failing)."""
        self._fail_with = error

    def _generate_embedding(self, text: str) -> list[float]:
        """Generate a deterministic unit vector from text."""
        pinned = self._pinned.get(_pin_key(text))
        if pinned is not None:
            return list(pinned)

        values: list[float] = []
        block = 0
        while len(values) < self._dimensions:
            digest = hashlib.sha256(f"{block}:{text}".encode()).digest()
            values.extend((byte / 127.5) - 1.0 for byte in digest)
            block += 1
        values = values[: self._dimensions]

        magnitude = math.sqrt(sum(x * x for x in values))
        if magnitude > 0:
            values = [x / magnitude for x in values]
        return values

    async def embed(
        self,
        texts: list[str],
        *,
        model: str | None = None,
        **kwargs: Any,
    ) -> EmbeddingResponse:
        """Generate mock embeddings."""
        self._call_history.append({
            "texts": list(texts),
            "model": model or self._default_model,
            "kwargs": kwargs,
        })

        if self._fail_with is not None:
            if isinstance(self._fail_with, EmbeddingError):
                raise self._fail_with
            raise EmbeddingError(str(self._fail_with)) from self._fail_with

        return EmbeddingResponse(
            embeddings=[self._generate_embedding(text) for text in texts],
            model=model or self._default_model,
            dimensions=self._dimensions,
            usage={"total_tokens": sum(len(t) // 4 for t in texts)},
        )
