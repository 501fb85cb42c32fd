"""PostgreSQL implementation of AccountStore."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from uuid import UUID

import asyncpg

from memobot.accounts.models import LinkCode, PlatformLink
from memobot.accounts.store import AccountStore
from memobot.db.errors import ConflictError, ConnectionError
from memobot.db.pool import PostgresPool
from memobot.memory.models import Channel
from memobot.observability.logging import get_logger

logger = get_logger(__name__)


class PostgresAccountStore(AccountStore):
    """PostgreSQL implementation of AccountStore."""

    def __init__(self, pool: PostgresPool) -> None:
        self._pool = pool

    async def health_check(self) -> bool:
        """Return True if the database answers."""
        return await self._pool.health_check()

    @asynccontextmanager
    async def _connection(self, operation: str) -> AsyncIterator[asyncpg.Connection]:
        try:
            async with self._pool.acquire() as conn:
                yield conn
        except asyncpg.UniqueViolationError as e:
            raise ConflictError(f"{operation}: {e}", cause=e) from e
        except (asyncpg.PostgresError, asyncpg.InterfaceError, TimeoutError, OSError) as e:
            logger.error(
                "postgres_account_store_error",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ConnectionError(f"Failed to {operation}: {e}", cause=e) from e

    async def add_link_code(self, link_code: LinkCode) -> LinkCode:
        """Insert a link code."""
        async with self._connection("add link code") as conn:
            await conn.execute(
                """
                INSERT INTO link_codes (id, owner_id, channel, code, expires_at, created_at)
                VALUES ($1, $2, $3, $4, $5, $6)
                """,
                link_code.id,
                link_code.owner_id,
                link_code.channel.value,
                link_code.code,
                link_code.expires_at,
                link_code.created_at,
            )
        return link_code

    async def expire_link_codes(self, owner_id: str, channel: Channel, now: datetime) -> int:
        """Expire the owner's unused codes for a channel."""
        async with self._connection("expire link codes") as conn:
            result = await conn.execute(
                """
                UPDATE link_codes SET expires_at = $3
                WHERE owner_id = $1 AND channel = $2 AND used_at IS NULL
                """,
                owner_id,
                channel.value,
                now,
            )
        return int(result.split()[-1])

    async def find_valid_link_code(
        self, channel: Channel, code: str, now: datetime
    ) -> LinkCode | None:
        """An unused, unexpired code for a channel."""
        async with self._connection("find link code") as conn:
            row = await conn.fetchrow(
                """
                SELECT id, owner_id, channel, code, expires_at, used_at, created_at
                FROM link_codes
                WHERE channel = $1 AND code = $2 AND used_at IS NULL AND expires_at > $3
                ORDER BY created_at DESC
                LIMIT 1
                """,
                channel.value,
                code,
                now,
            )
        return LinkCode.model_validate(dict(row)) if row else None

    async def mark_link_code_used(self, link_code_id: UUID, used_at: datetime) -> None:
        """Record that a code was redeemed."""
        async with self._connection("mark link code used") as conn:
            await conn.execute(
                "UPDATE link_codes SET used_at = $2 WHERE id = $1",
                link_code_id,
                used_at,
            )

    async def get_platform_link(
        self, channel: Channel, channel_user_id: str
    ) -> PlatformLink | None:
        """The link of a chat identity, if any."""
        async with self._connection("get platform link") as conn:
            row = await conn.fetchrow(
                """
                SELECT id, owner_id, channel, channel_user_id, linked_at
                FROM platform_links WHERE channel = $1 AND channel_user_id = $2
                """,
                channel.value,
                channel_user_id,
            )
        return PlatformLink.model_validate(dict(row)) if row else None

    async def add_platform_link(self, link: PlatformLink) -> PlatformLink:
        """Insert a platform link."""
        async with self._connection("add platform link") as conn:
            await conn.execute(
                """
                INSERT INTO platform_links (id, owner_id, channel, channel_user_id, linked_at)
                VALUES ($1, $2, $3, $4, $5)
                """,
                link.id,
                link.owner_id,
                link.channel.value,
                link.channel_user_id,
                link.linked_at,
            )
        return link

    async def list_platform_links(self, owner_id: str) -> list[PlatformLink]:
        """Links of an owner, newest first."""
        async with self._connection("list platform links") as conn:
            rows = await conn.fetch(
                """
                SELECT id, owner_id, channel, channel_user_id, linked_at
                FROM platform_links WHERE owner_id = $1
                ORDER BY linked_at DESC
                """,
                owner_id,
            )
        return [PlatformLink.model_validate(dict(row)) for row in rows]
