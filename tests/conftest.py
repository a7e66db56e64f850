"""Shared fixtures: a deterministic embedding provider and service configs."""

import hashlib
from pathlib import Path
from typing import Optional

import pytest

from ragservice.config.schema import AppConfig, IndexConfig, VectorizerConfig
from ragservice.providers.base import EmbeddingProvider
from ragservice.service import RAGService

DIMENSION = 8


def hash_vector(text: str, dimension: int = DIMENSION) -> list[float]:
    """Deterministic pseudo-embedding derived from sha256 of the text."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return [(digest[i % len(digest)] - 127.5) / 127.5 for i in range(dimension)]


class FakeEmbeddingProvider(EmbeddingProvider):
    """Embedding provider that never touches the network.

    Texts listed in ``mapping`` get that exact vector; others get a hash vector.
    """

    name = "fake"

    def __init__(self, mapping: Optional[dict[str, list[float]]] = None, dimension: int = DIMENSION):
        super().__init__(VectorizerConfig(api_url="http://fake", dimensions=dimension))
        self.mapping = mapping or {}
        self.dimension = dimension
        self.batch_calls: list[list[str]] = []
        self.closed = False

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls.append(list(texts))
        return [list(self.mapping.get(text) or hash_vector(text, self.dimension)) for text in texts]

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    return tmp_path / "store"


@pytest.fixture
def config(work_dir: Path) -> AppConfig:
    """Service config using the in-memory index and 8-dimensional vectors."""
    return AppConfig(
        work_dir=work_dir,
        vectorizer=VectorizerConfig(api_url="http://fake", dimensions=DIMENSION),
        index=IndexConfig(backend="memory"),
    )


@pytest.fixture
def embedder() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
async def service(config: AppConfig, embedder: FakeEmbeddingProvider):
    """Initialized service; shut down after the test."""
    rag = RAGService(config, embedding_provider=embedder)
    await rag.initialize()
    yield rag
    await rag.shutdown()


@pytest.fixture
def make_embedder():
    """Factory for additional fake providers, e.g. one per service instance."""
    return FakeEmbeddingProvider
