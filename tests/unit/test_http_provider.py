"""Unit tests for HttpEmbeddingProvider."""

import json

import httpx
import pytest

from ragservice.config.schema import VectorizerConfig
from ragservice.providers import EmbeddingProviderError, create_embedding_provider
from ragservice.providers.http import HttpEmbeddingProvider

API_URL = "https://embeddings.example.com/v1/embeddings"


def _config(**kwargs) -> VectorizerConfig:
    values = {"api_url": API_URL, "api_key": "test-key", "model": "text-embedding-3-small"}
    values.update(kwargs)
    return VectorizerConfig(**values)


def _provider(handler, **kwargs) -> HttpEmbeddingProvider:
    return HttpEmbeddingProvider(_config(**kwargs), transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
class TestHttpEmbeddingProvider:
    """Test the OpenAI-compatible HTTP embedding gateway."""

    async def test_request_format(self):
        """Test the request carries model, inputs and bearer token."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "data": [{"embedding": [0.1, 0.2]}, {"embedding": [0.3, 0.4]}],
                    "usage": {"total_tokens": 4},
                },
            )

        provider = _provider(handler)
        vectors = await provider.embed_batch(["hello", "world"])
        await provider.close()

        assert vectors == [[0.1, 0.2], [0.3, 0.4]]
        assert seen["url"] == API_URL
        assert seen["auth"] == "Bearer test-key"
        assert seen["body"] == {"input": ["hello", "world"], "model": "text-embedding-3-small"}

    async def test_embed_text(self):
        """Test single-text embedding uses one batch request."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(json.loads(request.content)["input"])
            return httpx.Response(200, json={"data": [{"embedding": [1.0, 0.0]}]})

        async with _provider(handler) as provider:
            vector = await provider.embed_text("query")

        assert vector == [1.0, 0.0]
        assert calls == [["query"]]

    async def test_results_ordered_by_index(self):
        """Test items are reordered by their index field."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "data": [
                        {"index": 1, "embedding": [2.0]},
                        {"index": 0, "embedding": [1.0]},
                    ]
                },
            )

        async with _provider(handler) as provider:
            assert await provider.embed_batch(["a", "b"]) == [[1.0], [2.0]]

    async def test_empty_batch_skips_request(self):
        """Test an empty batch returns without calling the endpoint."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with _provider(handler) as provider:
            assert await provider.embed_batch([]) == []

    async def test_non_success_status(self):
        """Test non-2xx responses raise with the HTTP status."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": "invalid key"})

        async with _provider(handler) as provider:
            with pytest.raises(EmbeddingProviderError) as exc_info:
                await provider.embed_batch(["hello"])

        assert exc_info.value.status == 401
        assert str(exc_info.value).startswith("[401]")

    async def test_malformed_response(self):
        """Test a body without data raises."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"object": "list"})

        async with _provider(handler) as provider:
            with pytest.raises(EmbeddingProviderError, match="Malformed"):
                await provider.embed_batch(["hello"])

    async def test_count_mismatch(self):
        """Test fewer vectors than inputs raises."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": [{"embedding": [1.0]}]})

        async with _provider(handler) as provider:
            with pytest.raises(EmbeddingProviderError, match="1 vectors for 2 inputs"):
                await provider.embed_batch(["a", "b"])

    async def test_transport_error(self):
        """Test connection failures raise with no status."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _provider(handler) as provider:
            with pytest.raises(EmbeddingProviderError) as exc_info:
                await provider.embed_batch(["hello"])

        assert exc_info.value.status is None

    async def test_missing_url(self):
        """Test an unconfigured URL fails at call time, not construction."""
        provider = create_embedding_provider(VectorizerConfig())
        with pytest.raises(EmbeddingProviderError, match="api_url"):
            await provider.embed_batch(["hello"])
        await provider.close()

    async def test_dimension_from_model(self):
        """Test dimension defaults come from the model table."""
        provider = _provider(lambda request: httpx.Response(200), model="text-embedding-3-large")
        assert provider.get_dimension() == 3072
        await provider.close()
