"""Classification, retrieval and relationship configuration models.

The similarity thresholds are empirically tuned starting points; they are
configuration so they can be validated against real data.
"""

from pydantic import BaseModel, Field


class ClassificationConfig(BaseModel):
    """Category and tag resolution settings."""

    category_reuse_threshold: float = Field(
        default=0.55,
        ge=0.0,
        le=1.0,
        description="Minimum similarity to reuse an existing category for content",
    )
    category_near_duplicate_threshold: float = Field(
        default=0.70,
        ge=0.0,
        le=1.0,
        description="Minimum similarity between a suggested name and an existing category",
    )
    tag_reuse_threshold: float = Field(
        default=0.60,
        ge=0.0,
        le=1.0,
        description="Minimum similarity to reuse an existing tag",
    )
    max_tags_per_memory: int = Field(
        default=5,
        gt=0,
        description="Tags extracted per memory",
    )
    max_tags_per_request: int = Field(
        default=20,
        gt=0,
        description="Upper bound on tag names resolved in one call",
    )
    default_category: str = Field(
        default="Personal",
        description="Bucket used when naming fails",
    )
    empty_category: str = Field(
        default="Uncategorized",
        description="Bucket used for empty input",
    )
    description_memory_limit: int = Field(
        default=50,
        gt=0,
        description="Recent memories considered when regenerating a description",
    )
    description_summary_limit: int = Field(
        default=20,
        gt=0,
        description="Summaries sent to the model when regenerating a description",
    )
    tag_merge_similarity: float = Field(
        default=0.80,
        ge=0.0,
        le=1.0,
        description="Edit-distance similarity for merging two tag names",
    )
    tag_merge_short_similarity: float = Field(
        default=0.85,
        ge=0.0,
        le=1.0,
        description="Merge similarity when the shorter name has at most 5 characters",
    )


class RetrievalConfig(BaseModel):
    """Search tier parameters."""

    default_limit: int = Field(default=6, gt=0, description="Default result count")
    max_limit: int = Field(default=10, gt=0, description="Maximum result count")
    network_initial_count: int = Field(
        default=6,
        gt=0,
        description="Direct matches in network search",
    )
    network_related_count: int = Field(
        default=3,
        gt=0,
        description="Neighbour fan-out per hop in network search",
    )
    network_threshold: float = Field(
        default=0.35,
        ge=0.0,
        le=1.0,
        description="Similarity floor for direct network matches",
    )
    full_text_weight: float = Field(
        default=1.5,
        ge=0.0,
        description="Keyword ranking weight in reciprocal-rank fusion",
    )
    semantic_weight: float = Field(
        default=1.0,
        ge=0.0,
        description="Semantic ranking weight in reciprocal-rank fusion",
    )
    rrf_k: int = Field(default=50, gt=0, description="Reciprocal-rank fusion constant")
    min_hybrid_score: float = Field(
        default=0.01,
        ge=0.0,
        description="Fused scores below this are discarded",
    )
    semantic_match_count: int = Field(
        default=10,
        gt=0,
        description="Top-K for semantic-only search",
    )
    semantic_threshold: float = Field(
        default=0.40,
        ge=0.0,
        le=1.0,
        description="Similarity floor for semantic-only search",
    )
    content_preview_length: int = Field(
        default=220,
        gt=0,
        description="Characters of content returned in previews",
    )


class RelationshipConfig(BaseModel):
    """Relationship graph settings."""

    related_count: int = Field(
        default=5,
        gt=0,
        description="Maximum edges created per saved memory",
    )
    similarity_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Similarity floor for creating an edge",
    )
