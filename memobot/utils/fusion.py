"""Reciprocal-rank fusion for hybrid retrieval.

Keyword and semantic rankings live on unrelated scales, so they are fused
by rank rather than by raw score:

    score(d) = sum_i weight_i / (k + rank_i(d))

with 1-based ranks. Documents missing from a list contribute nothing for it.
"""

from collections.abc import Hashable, Sequence
from typing import TypeVar

import numpy as np

K = TypeVar("K", bound=Hashable)


class RRFScorer:
    """Fuse ranked id lists with weighted reciprocal-rank fusion."""

    def __init__(self, weights: Sequence[float], k: int = 50) -> None:
        """Initialize the scorer.

        Args:
            weights: One weight per ranked list, in the order lists are passed
            k: Fusion constant; larger values flatten the rank curve
        """
        if k <= 0:
            raise ValueError(f"k must be positive, got {k}")
        self.weights = np.asarray(weights, dtype=float)
        self.k = k

    def fuse(self, rankings: Sequence[Sequence[K]]) -> list[tuple[K, float]]:
        """Fuse rankings into (id, score) pairs sorted by score descending.

        Ties keep first-seen order across the input lists.

        Raises:
            ValueError: If the number of rankings differs from the number of weights
        """
        if len(rankings) != len(self.weights):
            raise ValueError(
                f"Expected {len(self.weights)} rankings, got {len(rankings)}"
            )

        ids: list[K] = []
        index: dict[K, int] = {}
        for ranking in rankings:
            for item in ranking:
                if item not in index:
                    index[item] = len(ids)
                    ids.append(item)

        if not ids:
            return []

        scores = np.zeros(len(ids), dtype=float)
        for weight, ranking in zip(self.weights, rankings):
            for rank, item in enumerate(ranking, start=1):
                scores[index[item]] += weight / (self.k + rank)

        order = np.argsort(-scores, kind="stable")
        return [(ids[i], float(scores[i])) for i in order]
