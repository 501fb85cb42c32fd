"""Session store implementations."""

from memobot.conversation.stores.inmemory import InMemorySessionStore
from memobot.conversation.stores.redis import RedisSessionStore

__all__ = ["InMemorySessionStore", "RedisSessionStore"]
