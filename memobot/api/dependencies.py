"""Dependency injection for API routes.

Stores and services are configured from settings, created once and
reused. Tests override the getters with `app.dependency_overrides`.
"""

import os
from functools import lru_cache
from typing import Annotated

import redis.asyncio as redis
from fastapi import Depends, Header

from memobot.accounts import AccountLinkingService, AccountStore
from memobot.accounts.stores import InMemoryAccountStore, PostgresAccountStore
from memobot.api.services import MemoBotServices, build_services
from memobot.config.loader import load_config
from memobot.config.settings import Settings, set_toml_config
from memobot.conversation import SessionStore
from memobot.conversation.stores import InMemorySessionStore, RedisSessionStore
from memobot.db.pool import PostgresPool
from memobot.memory import MemoryStore
from memobot.memory.stores import InMemoryMemoryStore, PostgresMemoryStore
from memobot.observability.logging import get_logger
from memobot.providers.embedding import EmbeddingProvider, create_embedding_provider
from memobot.router import MessageRouter

logger = get_logger(__name__)

# Connection pool and client instances - shared across stores
_postgres_pool: PostgresPool | None = None
_redis_client: redis.Redis | None = None

_memory_store: MemoryStore | None = None
_account_store: AccountStore | None = None
_session_store: SessionStore | None = None
_embedding_provider: EmbeddingProvider | None = None
_services: MemoBotServices | None = None


@lru_cache
def get_settings() -> Settings:
    """Get application settings, falling back to defaults without config files."""
    try:
        set_toml_config(load_config())
    except FileNotFoundError:
        logger.warning("config_file_not_found", msg="Using default configuration")
        set_toml_config({})
    return Settings()


async def get_postgres_pool() -> PostgresPool:
    """Get the shared PostgreSQL pool, connecting on first access."""
    global _postgres_pool
    if _postgres_pool is None:
        config = get_settings().storage.postgres
        pool = PostgresPool(
            dsn=config.dsn,
            min_size=config.min_pool_size,
            max_size=config.max_pool_size,
            max_inactive_connection_lifetime=config.max_inactive_connection_lifetime,
            command_timeout=config.command_timeout,
        )
        await pool.connect()
        _postgres_pool = pool
    return _postgres_pool


async def get_redis_client() -> redis.Redis:
    """Get the shared Redis client."""
    global _redis_client
    if _redis_client is None:
        url = (
            get_settings().storage.redis.url
            or os.environ.get("REDIS_URL", "redis://localhost:6379")
        )
        _redis_client = redis.from_url(url, decode_responses=True)
        logger.info("redis_client_created", url=url.split("@")[-1])
    return _redis_client


async def get_memory_store() -> MemoryStore:
    """Get the MemoryStore for the configured backend."""
    global _memory_store
    if _memory_store is None:
        backend = get_settings().storage.backend
        if backend == "postgres":
            _memory_store = PostgresMemoryStore(await get_postgres_pool())
        else:
            _memory_store = InMemoryMemoryStore()
        logger.info("memory_store_initialized", store_type=backend)
    return _memory_store


async def get_account_store() -> AccountStore:
    """Get the AccountStore for the configured backend."""
    global _account_store
    if _account_store is None:
        backend = get_settings().storage.backend
        if backend == "postgres":
            _account_store = PostgresAccountStore(await get_postgres_pool())
        else:
            _account_store = InMemoryAccountStore()
        logger.info("account_store_initialized", store_type=backend)
    return _account_store


async def get_session_store() -> SessionStore:
    """Get the SessionStore for the configured session backend."""
    global _session_store
    if _session_store is None:
        settings = get_settings()
        if settings.storage.session_backend == "redis":
            _session_store = RedisSessionStore(
                await get_redis_client(), settings.storage.redis
            )
        else:
            _session_store = InMemorySessionStore()
        logger.info("session_store_initialized", store_type=settings.storage.session_backend)
    return _session_store


def get_embedding_provider() -> EmbeddingProvider:
    """Get the cached embedding provider."""
    global _embedding_provider
    if _embedding_provider is None:
        config = get_settings().providers.embedding
        _embedding_provider = create_embedding_provider(config)
        logger.info(
            "embedding_provider_initialized",
            provider=config.provider,
            model=config.model,
            dimensions=config.dimensions,
        )
    return _embedding_provider


async def get_services() -> MemoBotServices:
    """Get the service graph."""
    global _services
    if _services is None:
        _services = build_services(
            get_settings(),
            memory_store=await get_memory_store(),
            account_store=await get_account_store(),
            session_store=await get_session_store(),
            embedder=get_embedding_provider(),
        )
        logger.info("services_initialized")
    return _services


async def get_message_router(
    services: Annotated[MemoBotServices, Depends(get_services)],
) -> MessageRouter:
    """Get the MessageRouter."""
    return services.router


async def get_account_service(
    services: Annotated[MemoBotServices, Depends(get_services)],
) -> AccountLinkingService:
    """Get the AccountLinkingService."""
    return services.accounts


async def get_owner_id(
    x_owner_id: Annotated[str, Header(alias="X-Owner-Id", min_length=1)],
) -> str:
    """Owner id asserted by the authenticating proxy."""
    return x_owner_id.strip()


# Type aliases for dependency injection
SettingsDep = Annotated[Settings, Depends(get_settings)]
MemoryStoreDep = Annotated[MemoryStore, Depends(get_memory_store)]
AccountStoreDep = Annotated[AccountStore, Depends(get_account_store)]
SessionStoreDep = Annotated[SessionStore, Depends(get_session_store)]
MessageRouterDep = Annotated[MessageRouter, Depends(get_message_router)]
AccountServiceDep = Annotated[AccountLinkingService, Depends(get_account_service)]
ServicesDep = Annotated[MemoBotServices, Depends(get_services)]
OwnerIdDep = Annotated[str, Depends(get_owner_id)]


async def reset_dependencies() -> None:
    """Drain background work, close connections and forget all instances."""
    global _postgres_pool, _redis_client, _memory_store, _account_store
    global _session_store, _embedding_provider, _services

    if _services is not None:
        await _services.categories.drain()

    if _postgres_pool is not None:
        await _postgres_pool.close()
        _postgres_pool = None

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None

    _memory_store = None
    _account_store = None
    _session_store = None
    _embedding_provider = None
    _services = None
    get_settings.cache_clear()
