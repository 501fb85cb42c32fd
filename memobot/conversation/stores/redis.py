"""Redis implementation of SessionStore.

Sessions are stored as JSON with a key TTL matching their expiry.
Check-and-set uses WATCH/MULTI: a concurrent write between the read and
the transaction aborts it with WatchError, surfaced as ConflictError.

Key structure:
- {prefix}:{session_id} - Session JSON
- {prefix}:channel:{owner_id}:{channel}:{channel_user_id} - Latest session id
"""

from uuid import UUID

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from memobot.config.models.storage import RedisSessionConfig
from memobot.conversation.models import ConversationSession
from memobot.conversation.store import SessionStore
from memobot.db.errors import ConflictError, ConnectionError
from memobot.memory.models import Channel, utc_now
from memobot.observability.logging import get_logger

logger = get_logger(__name__)


def _as_str(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else value


class RedisSessionStore(SessionStore):
    """Redis implementation of SessionStore."""

    def __init__(
        self,
        client: redis.Redis,
        config: RedisSessionConfig | None = None,
    ) -> None:
        """Initialize Redis session store.

        Args:
            client: Redis client instance
            config: Redis session configuration (uses defaults if not provided)
        """
        self._client = client
        self._config = config or RedisSessionConfig()
        self._prefix = self._config.key_prefix

    async def health_check(self) -> bool:
        """Return True if Redis answers a PING."""
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.warning("redis_health_check_failed", error=str(e))
            return False

    def _session_key(self, session_id: UUID) -> str:
        """Get key for a session."""
        return f"{self._prefix}:{session_id}"

    def _channel_key(self, owner_id: str, channel: Channel, channel_user_id: str) -> str:
        """Get channel index key."""
        return f"{self._prefix}:channel:{owner_id}:{channel.value}:{channel_user_id}"

    @staticmethod
    def _ttl_seconds(session: ConversationSession) -> int:
        remaining = (session.expires_at - utc_now()).total_seconds()
        return max(1, int(remaining))

    async def get(self, session_id: UUID) -> ConversationSession | None:
        """Get a session by ID."""
        try:
            data = await self._client.get(self._session_key(session_id))
        except RedisError as e:
            logger.error("redis_get_error", session_id=str(session_id), error=str(e))
            raise ConnectionError(f"Failed to get session: {e}", cause=e) from e

        if not data:
            return None
        return ConversationSession.model_validate_json(data)

    async def get_by_channel(
        self,
        owner_id: str,
        channel: Channel,
        channel_user_id: str,
    ) -> ConversationSession | None:
        """Get the latest session of a channel identity using the index."""
        try:
            session_id = await self._client.get(
                self._channel_key(owner_id, channel, channel_user_id)
            )
        except RedisError as e:
            logger.error("redis_get_by_channel_error", channel=channel.value, error=str(e))
            raise ConnectionError(f"Failed to get session by channel: {e}", cause=e) from e

        if not session_id:
            return None
        return await self.get(UUID(_as_str(session_id)))

    async def save(
        self,
        session: ConversationSession,
        *,
        expected_version: int | None = None,
    ) -> ConversationSession:
        """Write a session under WATCH, checking the stored version."""
        key = self._session_key(session.id)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                raw = await pipe.get(key)
                current_version = (
                    ConversationSession.model_validate_json(raw).version if raw else 0
                )
                if expected_version is not None and current_version != expected_version:
                    await pipe.unwatch()
                    raise ConflictError(
                        f"Session {session.id} is at version {current_version}, "
                        f"expected {expected_version}"
                    )

                stored = session.model_copy(deep=True)
                stored.version = current_version + 1
                stored.updated_at = utc_now()
                ttl = self._ttl_seconds(stored)

                pipe.multi()
                pipe.set(key, stored.model_dump_json(), ex=ttl)
                pipe.set(
                    self._channel_key(stored.owner_id, stored.channel, stored.channel_user_id),
                    str(stored.id),
                    ex=ttl,
                )
                await pipe.execute()
        except WatchError as e:
            logger.info("session_save_conflict", session_id=str(session.id))
            raise ConflictError(f"Session {session.id} changed during save", cause=e) from e
        except RedisError as e:
            logger.error("redis_save_error", session_id=str(session.id), error=str(e))
            raise ConnectionError(f"Failed to save session: {e}", cause=e) from e

        logger.debug("session_saved", session_id=str(stored.id), version=stored.version)
        return stored

    async def delete(self, session_id: UUID) -> bool:
        """Delete a session and its channel index entry."""
        session = await self.get(session_id)
        if session is None:
            return False
        try:
            channel_key = self._channel_key(
                session.owner_id, session.channel, session.channel_user_id
            )
            indexed = await self._client.get(channel_key)
            keys = [self._session_key(session_id)]
            if indexed and _as_str(indexed) == str(session_id):
                keys.append(channel_key)
            await self._client.delete(*keys)
        except RedisError as e:
            logger.error("redis_delete_error", session_id=str(session_id), error=str(e))
            raise ConnectionError(f"Failed to delete session: {e}", cause=e) from e
        return True
