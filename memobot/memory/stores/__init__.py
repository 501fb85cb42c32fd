"""Memory store implementations."""

from memobot.memory.stores.inmemory import InMemoryMemoryStore
from memobot.memory.stores.postgres import PostgresMemoryStore

__all__ = ["InMemoryMemoryStore", "PostgresMemoryStore"]
