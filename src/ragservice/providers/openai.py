"""OpenAI embedding provider using the official SDK.

Alternative to the raw HTTP provider for deployments that prefer the SDK's
client handling. Sends exactly one request per ``embed_batch`` call; the SDK's
own retries are disabled so errors surface to the caller unchanged.

Trade-offs:
- Requires the ``openai`` extra
- Endpoint is configured as a base URL (``extra_params["base_url"]``)
  instead of the full embeddings URL
"""

import structlog

from ragservice.config.schema import VectorizerConfig
from ragservice.providers.base import EmbeddingProvider, EmbeddingProviderError, ProviderError

logger = structlog.get_logger(__name__)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """OpenAI embedding provider using the official SDK.

    Example:
        config = VectorizerConfig(
            provider="openai",
            api_key="sk-...",
            model="text-embedding-3-small",
        )
        provider = OpenAIEmbeddingProvider(config)
        vectors = await provider.embed_batch(["Hello world"])
    """

    name = "openai"

    def __init__(self, config: VectorizerConfig) -> None:
        """Initialize OpenAI embedding provider.

        Args:
            config: Vectorizer configuration with api_key and model

        Raises:
            ProviderError: If the API key is missing or the client cannot be built
        """
        super().__init__(config)

        if not config.api_key:
            raise ProviderError(message="API key is required", provider=self.name)

        try:
            import openai

            self._openai = openai
            client_kwargs = {
                "api_key": config.api_key,
                "timeout": config.timeout,
                "max_retries": 0,
            }
            client_kwargs.update(config.extra_params)
            self.client = openai.AsyncOpenAI(**client_kwargs)

        except ImportError as e:
            raise ProviderError(
                message="openai package not installed. Install with: pip install 'ragservice[openai]'",
                provider=self.name,
                original_error=e,
            )

        logger.info(
            "openai_embedding_provider_initialized",
            model=config.model,
            dimension=self.get_dimension(),
        )

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        try:
            response = await self.client.embeddings.create(input=texts, model=self.config.model)
        except self._openai.APIStatusError as e:
            raise EmbeddingProviderError(
                status=e.status_code,
                message=f"OpenAI embedding error: {e.message}",
                provider=self.name,
                original_error=e,
            )
        except self._openai.APIError as e:
            raise EmbeddingProviderError(
                status=None,
                message=f"OpenAI embedding request failed: {str(e)}",
                provider=self.name,
                original_error=e,
            )

        items = sorted(response.data, key=lambda item: item.index)
        if len(items) != len(texts):
            raise EmbeddingProviderError(
                status=None,
                message=f"OpenAI returned {len(items)} vectors for {len(texts)} inputs",
                provider=self.name,
            )

        if response.usage:
            logger.debug(
                "openai_embeddings_generated",
                batch_size=len(texts),
                total_tokens=response.usage.total_tokens,
                model=self.config.model,
            )

        return [list(item.embedding) for item in items]

    async def close(self) -> None:
        """Close the OpenAI client connection."""
        await self.client.close()
