"""Configuration model exports.

    from memobot.config.models import RetrievalConfig, StorageConfig
"""

from memobot.config.models.agent import AgentConfig, SessionConfig
from memobot.config.models.api import APIConfig
from memobot.config.models.memory import (
    ClassificationConfig,
    RelationshipConfig,
    RetrievalConfig,
)
from memobot.config.models.observability import ObservabilityConfig
from memobot.config.models.providers import (
    EmbeddingProviderConfig,
    LLMProviderConfig,
    ProvidersConfig,
)
from memobot.config.models.storage import (
    PostgresConfig,
    RedisSessionConfig,
    StorageConfig,
)

__all__ = [
    "AgentConfig",
    "SessionConfig",
    "APIConfig",
    "ClassificationConfig",
    "RelationshipConfig",
    "RetrievalConfig",
    "ObservabilityConfig",
    "EmbeddingProviderConfig",
    "LLMProviderConfig",
    "ProvidersConfig",
    "PostgresConfig",
    "RedisSessionConfig",
    "StorageConfig",
]
