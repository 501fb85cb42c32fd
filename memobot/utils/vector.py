"""Vector utility functions."""

import math


def cosine_similarity(vec_a: list[float], vec_b: list[float]) -> float:
    """Compute cosine similarity between two vectors.

    Args:
        vec_a: First vector
        vec_b: Second vector (must be same length as vec_a)

    Returns:
        Cosine similarity score between -1 and 1, or 0.0 for zero vectors

    Raises:
        ValueError: If vectors have different lengths or are empty
    """
    if len(vec_a) != len(vec_b):
        raise ValueError(
            f"Vectors must have same length: got {len(vec_a)} and {len(vec_b)}"
        )

    if len(vec_a) == 0:
        raise ValueError("Vectors cannot be empty")

    dot_product = sum(a * b for a, b in zip(vec_a, vec_b))
    norm_a = math.sqrt(sum(a * a for a in vec_a))
    norm_b = math.sqrt(sum(b * b for b in vec_b))

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return dot_product / (norm_a * norm_b)


def embedding_to_pgvector(embedding: list[float] | None) -> str | None:
    """Render an embedding as a pgvector literal."""
    if embedding is None:
        return None
    return f"[{','.join(map(str, embedding))}]"


def pgvector_to_embedding(value: str | None) -> list[float] | None:
    """Parse a pgvector text literal back into a list of floats."""
    if value is None:
        return None
    stripped = value.strip("[]")
    if not stripped:
        return []
    return [float(x) for x in stripped.split(",")]
