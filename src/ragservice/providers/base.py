"""Abstract base class for embedding providers.

Why this exists:
- Allows swapping the embedding endpoint (raw HTTP, OpenAI SDK, ...)
- Enables testing with fake providers
- Provides a stable interface as providers evolve

How to extend:
1. Subclass EmbeddingProvider
2. Implement embed_batch and close
3. Register in ``create_embedding_provider``
4. Add optional dependencies to pyproject.toml

Providers never cache and never retry: one ``embed_batch`` call is one
request to the endpoint.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ragservice.config.schema import VectorizerConfig


class EmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    name = "abstract"

    def __init__(self, config: VectorizerConfig) -> None:
        """Initialize provider with configuration."""
        self.config = config

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts in one request.

        Args:
            texts: List of input texts

        Returns:
            One embedding per text, in input order

        Raises:
            EmbeddingProviderError: If the endpoint fails or answers malformed data
        """
        pass

    async def embed_text(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        embeddings = await self.embed_batch([text])
        return embeddings[0]

    def get_dimension(self) -> int:
        """Return the embedding dimension for the configured model."""
        return self.config.resolved_dimensions()

    async def close(self) -> None:
        """Release network resources."""
        pass

    async def __aenter__(self) -> "EmbeddingProvider":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(self, message: str, provider: str, original_error: Optional[Exception] = None):
        self.message = message
        self.provider = provider
        self.original_error = original_error
        super().__init__(self.message)


class EmbeddingProviderError(ProviderError):
    """Non-success or malformed response from the embedding endpoint.

    ``status`` is the HTTP status code, or None when no response was received.
    """

    def __init__(
        self,
        status: Optional[int],
        message: str,
        provider: str = "http",
        original_error: Optional[Exception] = None,
    ):
        self.status = status
        super().__init__(message, provider, original_error)

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"[{self.status}] {self.message}"
