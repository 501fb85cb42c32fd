"""Storage backend configuration models."""

from typing import Literal

from pydantic import BaseModel, Field

BackendType = Literal["inmemory", "postgres"]
SessionBackendType = Literal["inmemory", "redis"]


class PostgresConfig(BaseModel):
    """PostgreSQL connection pool configuration."""

    dsn: str | None = Field(
        default=None,
        description="Connection URL (falls back to MEMOBOT_DATABASE_URL / DATABASE_URL)",
    )
    min_pool_size: int = Field(
        default=5,
        gt=0,
        description="Minimum connections to keep open",
    )
    max_pool_size: int = Field(
        default=20,
        gt=0,
        description="Maximum connections in pool",
    )
    max_inactive_connection_lifetime: float = Field(
        default=300.0,
        gt=0,
        description="Close connections idle longer than this (seconds)",
    )
    command_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Default timeout for queries (seconds)",
    )


class RedisSessionConfig(BaseModel):
    """Redis session store configuration."""

    url: str | None = Field(
        default=None,
        description="Redis URL (falls back to REDIS_URL)",
    )
    key_prefix: str = Field(
        default="memobot:session",
        description="Redis key prefix for session keys",
    )


class StorageConfig(BaseModel):
    """Backend selection for memory, account and session persistence."""

    backend: BackendType = Field(
        default="inmemory",
        description="Backend for memories, categories, tags and account links",
    )
    session_backend: SessionBackendType = Field(
        default="inmemory",
        description="Backend for conversation sessions",
    )
    postgres: PostgresConfig = Field(
        default_factory=PostgresConfig,
        description="PostgreSQL settings",
    )
    redis: RedisSessionConfig = Field(
        default_factory=RedisSessionConfig,
        description="Redis session settings",
    )
