"""Provider error hierarchy.

Anything an embedding or reasoning backend can fail with is raised as a
ProviderError subclass, so callers that degrade gracefully catch one type.
"""


class ProviderError(Exception):
    """Base exception for embedding and LLM provider errors."""

    pass


class AuthenticationError(ProviderError):
    """Invalid or missing API key."""

    pass


class RateLimitError(ProviderError):
    """Rate limit exceeded."""

    pass


class ModelError(ProviderError):
    """Model not found or unavailable."""

    pass


class ProviderTimeoutError(ProviderError):
    """Provider call exceeded its timeout."""

    pass


class EmbeddingError(ProviderError):
    """Embedding request failed."""

    pass
