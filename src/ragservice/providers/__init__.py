"""Embedding provider abstractions: the gateway to external embedding APIs."""

from ragservice.config.schema import VectorizerConfig
from ragservice.providers.base import EmbeddingProvider, EmbeddingProviderError, ProviderError


def create_embedding_provider(config: VectorizerConfig) -> EmbeddingProvider:
    """Factory function to create embedding providers based on configuration.

    Args:
        config: Vectorizer configuration with provider type

    Returns:
        Initialized embedding provider

    Raises:
        ValueError: If the provider type is unknown
        ProviderError: If provider initialization fails or dependencies are missing

    Example:
        config = VectorizerConfig(
            api_url="https://api.openai.com/v1/embeddings",
            api_key="sk-...",
        )
        provider = create_embedding_provider(config)
    """
    provider_type = config.provider.value

    if provider_type == "http":
        from ragservice.providers.http import HttpEmbeddingProvider

        return HttpEmbeddingProvider(config)

    elif provider_type == "openai":
        from ragservice.providers.openai import OpenAIEmbeddingProvider

        return OpenAIEmbeddingProvider(config)

    else:
        raise ValueError(
            f"Unknown embedding provider type: '{provider_type}'. "
            f"Supported types: http, openai"
        )


__all__ = [
    "EmbeddingProvider",
    "EmbeddingProviderError",
    "ProviderError",
    "create_embedding_provider",
]
