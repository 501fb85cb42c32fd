"""OpenAI embedding provider."""

import os
from typing import Any

import openai
from openai import AsyncOpenAI

from memobot.observability.logging import get_logger
from memobot.providers.embedding.base import EmbeddingProvider, EmbeddingResponse
from memobot.providers.errors import (
    AuthenticationError,
    EmbeddingError,
    ProviderTimeoutError,
    RateLimitError,
)

logger = get_logger(__name__)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Embedding provider using the OpenAI API.

    Defaults to text-embedding-3-small reduced to 512 dimensions, which is
    what the vector columns are sized for.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "text-embedding-3-small",
        dimensions: int = 512,
        timeout: float = 20.0,
        max_input_chars: int = 8000,
        base_url: str | None = None,
    ):
        """Initialize OpenAI embedding provider.

        Args:
            api_key: OpenAI API key (defaults to OPENAI_API_KEY env var)
            model: Model identifier
            dimensions: Output embedding dimensions (text-embedding-3-* only)
            timeout: Request timeout in seconds
            max_input_chars: Inputs are truncated to this many characters
            base_url: Custom API base URL
        """
        self._api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not self._api_key:
            raise ValueError("OPENAI_API_KEY environment variable not set")

        self._model = model
        self._dimensions = dimensions
        self._max_input_chars = max_input_chars
        self._client = AsyncOpenAI(api_key=self._api_key, timeout=timeout, base_url=base_url)

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "openai"

    @property
    def dimensions(self) -> int:
        """Return embedding dimensions."""
        return self._dimensions

    async def embed(
        self,
        texts: list[str],
        *,
        model: str | None = None,
        **kwargs: Any,
    ) -> EmbeddingResponse:
        """Generate embeddings using the OpenAI API."""
        use_model = model or self._model
        inputs = [text[: self._max_input_chars] for text in texts]

        api_kwargs: dict[str, Any] = {"input": inputs, "model": use_model}
        if use_model.startswith("text-embedding-3-"):
            api_kwargs["dimensions"] = self._dimensions
        api_kwargs.update(kwargs)

        logger.debug("openai_embed_request", model=use_model, num_texts=len(texts))

        try:
            response = await self._client.embeddings.create(**api_kwargs)
        except openai.RateLimitError as e:
            logger.warning("openai_embed_rate_limited", model=use_model)
            raise RateLimitError(f"Rate limited: {e}") from e
        except openai.AuthenticationError as e:
            raise AuthenticationError(f"OpenAI authentication failed: {e}") from e
        except openai.APITimeoutError as e:
            logger.warning("openai_embed_timeout", model=use_model)
            raise ProviderTimeoutError(f"Embedding request timed out: {e}") from e
        except openai.APIError as e:
            logger.error("openai_embed_error", model=use_model, error=str(e))
            raise EmbeddingError(f"OpenAI API error: {e}") from e

        embeddings = [item.embedding for item in response.data]

        usage = None
        if response.usage:
            usage = {
                "total_tokens": response.usage.total_tokens,
                "prompt_tokens": response.usage.prompt_tokens,
            }

        return EmbeddingResponse(
            embeddings=embeddings,
            model=use_model,
            dimensions=len(embeddings[0]) if embeddings else self._dimensions,
            usage=usage,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.close()
