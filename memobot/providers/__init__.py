"""External model providers: embeddings and tool-calling reasoning.

Each provider has an abstract interface, an OpenAI implementation and a
deterministic mock for tests.
"""

from memobot.providers.errors import ProviderError

__all__ = ["ProviderError"]
