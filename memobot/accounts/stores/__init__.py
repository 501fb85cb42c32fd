"""Account store implementations."""

from memobot.accounts.stores.inmemory import InMemoryAccountStore
from memobot.accounts.stores.postgres import PostgresAccountStore

__all__ = ["InMemoryAccountStore", "PostgresAccountStore"]
