"""Labeled-bucket resolution shared by categories and tags.

Both classifiers answer the same question: given a piece of text and an
owner's existing buckets, which bucket does it belong to, or what new
bucket should be created? The answer is found by, in order:

1. an exact key match against bucket labels (optional per call),
2. the best embedding similarity at or above the reuse threshold,
3. a suggested name from a naming oracle, matched exactly by key,
4. the best similarity of the suggested name at or above the
   near-duplicate threshold,
5. otherwise a new bucket with the suggested name (or the text itself).

The resolver never writes; callers decide what to create or increment.
"""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, Literal, TypeVar

from memobot.observability.logging import get_logger
from memobot.providers.embedding import EmbeddingProvider
from memobot.utils.vector import cosine_similarity

logger = get_logger(__name__)

T = TypeVar("T")

ResolutionSource = Literal["exact", "similarity", "suggested_exact", "near_duplicate", "new"]
NamingOracle = Callable[[str, list[str]], Awaitable[str]]


@dataclass
class Resolution(Generic[T]):
    """Outcome of resolving text to a bucket.

    `match` is the reused bucket, or None when a new bucket named `name`
    should be created; `embedding` is then the vector to store with it
    (None if it could not be computed).
    """

    match: T | None
    name: str
    source: ResolutionSource
    score: float | None = None
    embedding: list[float] | None = None

    @property
    def is_new(self) -> bool:
        """Whether no existing bucket was reused."""
        return self.match is None


class LabeledBucketResolver(Generic[T]):
    """Resolve text to one of an owner's labeled buckets.

    Embedding errors propagate as ProviderError; callers choose how to
    degrade.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        *,
        label: Callable[[T], str],
        embedding: Callable[[T], list[float] | None],
        key: Callable[[str], str],
        reuse_threshold: float,
        near_duplicate_threshold: float | None = None,
        namer: NamingOracle | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            embedder: Provider for text and name vectors
            label: Display label of a bucket
            embedding: Stored vector of a bucket, if any
            key: Exact-match key for labels and text
            reuse_threshold: Minimum text-to-bucket similarity for reuse
            near_duplicate_threshold: Minimum name-to-bucket similarity for
                reusing instead of creating a suggested name; None disables
            namer: Oracle suggesting a name for text given existing labels
        """
        self._embedder = embedder
        self._label = label
        self._embedding = embedding
        self._key = key
        self.reuse_threshold = reuse_threshold
        self.near_duplicate_threshold = near_duplicate_threshold
        self._namer = namer

    def find_exact(self, text: str, candidates: Sequence[T]) -> T | None:
        """Return the first candidate whose label key equals the text key."""
        wanted = self._key(text)
        for candidate in candidates:
            if self._key(self._label(candidate)) == wanted:
                return candidate
        return None

    def best_match(
        self,
        vector: list[float],
        candidates: Sequence[T],
        threshold: float,
    ) -> tuple[T, float] | None:
        """Highest-similarity candidate at or above threshold; earlier wins ties."""
        best: tuple[T, float] | None = None
        for candidate in candidates:
            stored = self._embedding(candidate)
            if not stored or len(stored) != len(vector):
                continue
            score = cosine_similarity(vector, stored)
            if score >= threshold and (best is None or score > best[1]):
                best = (candidate, score)
        return best

    def _has_embeddings(self, candidates: Sequence[T]) -> bool:
        return any(self._embedding(c) for c in candidates)

    async def resolve(
        self,
        text: str,
        candidates: Sequence[T],
        *,
        try_exact: bool = True,
        text_embedding: list[float] | None = None,
    ) -> Resolution[T]:
        """Resolve text against candidates.

        Args:
            text: Content, or a bucket name when try_exact applies
            candidates: The owner's existing buckets
            try_exact: Whether to try an exact label match on the text first
            text_embedding: Precomputed vector for text
        """
        if try_exact:
            exact = self.find_exact(text, candidates)
            if exact is not None:
                return Resolution(match=exact, name=self._label(exact), source="exact", score=1.0)

        if text_embedding is None and (self._has_embeddings(candidates) or self._namer is None):
            text_embedding = await self._embedder.embed_single(text)

        if text_embedding is not None:
            best = self.best_match(text_embedding, candidates, self.reuse_threshold)
            if best is not None:
                match, score = best
                logger.debug(
                    "bucket_similarity_match",
                    label=self._label(match),
                    score=round(score, 3),
                )
                return Resolution(
                    match=match, name=self._label(match), source="similarity", score=score
                )

        if self._namer is None:
            return Resolution(match=None, name=text, source="new", embedding=text_embedding)

        suggested = await self._namer(text, [self._label(c) for c in candidates])

        exact = self.find_exact(suggested, candidates)
        if exact is not None:
            return Resolution(
                match=exact, name=self._label(exact), source="suggested_exact", score=1.0
            )

        name_embedding = await self._embedder.embed_single(suggested)
        if self.near_duplicate_threshold is not None:
            near = self.best_match(name_embedding, candidates, self.near_duplicate_threshold)
            if near is not None:
                match, score = near
                logger.debug(
                    "bucket_near_duplicate_match",
                    suggested=suggested,
                    label=self._label(match),
                    score=round(score, 3),
                )
                return Resolution(
                    match=match, name=self._label(match), source="near_duplicate", score=score
                )

        return Resolution(match=None, name=suggested, source="new", embedding=name_embedding)
