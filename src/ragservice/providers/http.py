"""HTTP embedding provider for OpenAI-compatible embedding endpoints.

Sends ``POST <api_url>`` with ``{"input": [...], "model": ...}`` and a
bearer token, and expects ``{"data": [{"embedding": [...]}, ...]}`` back in
input order. Works with OpenAI, SiliconFlow, Ollama and similar gateways.
"""

from typing import Any, Optional

import httpx
import structlog

from ragservice.config.schema import VectorizerConfig
from ragservice.providers.base import EmbeddingProvider, EmbeddingProviderError

logger = structlog.get_logger(__name__)


class HttpEmbeddingProvider(EmbeddingProvider):
    """Embedding provider speaking the OpenAI embeddings wire format over httpx.

    Example:
        config = VectorizerConfig(
            api_url="https://api.openai.com/v1/embeddings",
            api_key="sk-...",
            model="text-embedding-3-small",
        )
        async with HttpEmbeddingProvider(config) as provider:
            vectors = await provider.embed_batch(["hello", "world"])
    """

    name = "http"

    def __init__(
        self,
        config: VectorizerConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the HTTP embedding provider.

        Args:
            config: Vectorizer configuration (api_url, api_key, model, timeout)
            transport: Optional httpx transport, used by tests
        """
        super().__init__(config)
        self.client = httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {config.api_key}",
                "Content-Type": "application/json",
            },
            timeout=config.timeout,
            transport=transport,
        )

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        if not self.config.api_url:
            raise EmbeddingProviderError(
                status=None,
                message="Vectorizer api_url is not configured",
                provider=self.name,
            )

        payload: dict[str, Any] = {"input": texts, "model": self.config.model}

        logger.debug(
            "calling_embeddings_api",
            batch_size=len(texts),
            model=self.config.model,
        )

        try:
            response = await self.client.post(self.config.api_url, json=payload)
        except httpx.HTTPError as e:
            raise EmbeddingProviderError(
                status=None,
                message=f"Embedding request failed: {str(e)}",
                provider=self.name,
                original_error=e,
            )

        if not response.is_success:
            raise EmbeddingProviderError(
                status=response.status_code,
                message=f"Embedding API error: {response.reason_phrase} - {response.text[:500]}",
                provider=self.name,
            )

        try:
            body = response.json()
            items = body["data"]
            if all("index" in item for item in items):
                items = sorted(items, key=lambda item: item["index"])
            embeddings = [[float(x) for x in item["embedding"]] for item in items]
        except (ValueError, KeyError, TypeError) as e:
            raise EmbeddingProviderError(
                status=response.status_code,
                message=f"Malformed embedding response: {str(e)}",
                provider=self.name,
                original_error=e,
            )

        if len(embeddings) != len(texts):
            raise EmbeddingProviderError(
                status=response.status_code,
                message=f"Embedding API returned {len(embeddings)} vectors for {len(texts)} inputs",
                provider=self.name,
            )

        usage = body.get("usage") or {}
        logger.debug(
            "embeddings_generated",
            batch_size=len(texts),
            total_tokens=usage.get("total_tokens"),
            model=self.config.model,
        )

        return embeddings

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
