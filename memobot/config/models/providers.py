"""AI provider configuration models."""

from typing import Literal

from pydantic import BaseModel, Field, SecretStr

LLMProviderType = Literal["openai", "mock"]
EmbeddingProviderType = Literal["openai", "mock"]


class LLMProviderConfig(BaseModel):
    """Configuration for the reasoning provider."""

    provider: LLMProviderType = Field(
        default="openai",
        description="Provider type",
    )
    model: str = Field(
        default="gpt-4o",
        description="Primary model for the reasoning loop",
    )
    fast_model: str = Field(
        default="gpt-4o-mini",
        description="Model for button clicks, confirmations and short follow-ups",
    )
    utility_model: str = Field(
        default="gpt-4o-mini",
        description="Model for titles, category names, tags and descriptions",
    )
    fallback_models: list[str] = Field(
        default_factory=list,
        description="Models to try when the primary model fails",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="API key (prefer OPENAI_API_KEY env var)",
    )
    base_url: str | None = Field(
        default=None,
        description="Custom API base URL",
    )
    max_tokens: int = Field(
        default=1024,
        gt=0,
        description="Default max tokens",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-call timeout in seconds",
    )


class EmbeddingProviderConfig(BaseModel):
    """Configuration for the embedding provider and its cache."""

    provider: EmbeddingProviderType = Field(
        default="openai",
        description="Provider type",
    )
    model: str = Field(
        default="text-embedding-3-small",
        description="Model identifier",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="API key (prefer OPENAI_API_KEY env var)",
    )
    dimensions: int = Field(
        default=512,
        gt=0,
        description="Embedding dimensions",
    )
    cache_size: int = Field(
        default=500,
        gt=0,
        description="Maximum cached embeddings",
    )
    cache_ttl_seconds: int = Field(
        default=3600,
        gt=0,
        description="Cached embedding lifetime",
    )
    max_input_chars: int = Field(
        default=8000,
        gt=0,
        description="Input is truncated to this many characters",
    )
    timeout: float = Field(
        default=20.0,
        gt=0,
        description="Request timeout in seconds",
    )


class ProvidersConfig(BaseModel):
    """Provider configuration."""

    llm: LLMProviderConfig = Field(
        default_factory=LLMProviderConfig,
        description="Reasoning provider",
    )
    embedding: EmbeddingProviderConfig = Field(
        default_factory=EmbeddingProviderConfig,
        description="Embedding provider",
    )
