"""Account linking: link codes and platform links."""

from memobot.accounts.models import LinkCode, LinkResult, PlatformLink
from memobot.accounts.service import AccountLinkingService
from memobot.accounts.store import AccountStore
from memobot.accounts.stores import InMemoryAccountStore, PostgresAccountStore

__all__ = [
    "AccountLinkingService",
    "AccountStore",
    "InMemoryAccountStore",
    "LinkCode",
    "LinkResult",
    "PlatformLink",
    "PostgresAccountStore",
]
