"""Tests for domain entities."""

import pytest

from ragservice.entities import Chunk, RAGDocument, RAGResult
from ragservice.service import distance_to_similarity


def test_document_creation():
    """Test creating a valid document."""
    doc = RAGDocument(
        content="This is test content.",
        knowledge_base="docs",
        metadata={"source": "guide.md"},
    )

    assert doc.id is None
    assert doc.knowledge_base == "docs"
    assert doc.metadata == {"source": "guide.md"}


def test_document_empty_content_fails():
    """Test that empty content raises validation error."""
    with pytest.raises(ValueError, match="Document content cannot be empty"):
        RAGDocument(content="   ", knowledge_base="docs")


def test_document_empty_knowledge_base_fails():
    """Test that an empty knowledge base name raises validation error."""
    with pytest.raises(ValueError, match="Knowledge base name cannot be empty"):
        RAGDocument(content="text", knowledge_base="")


def test_chunk_record():
    """Test chunk records omit unset optional fields and serialize timestamps."""
    chunk = Chunk(id="doc-0", text="hello")
    record = chunk.to_record()

    assert record["id"] == "doc-0"
    assert record["text"] == "hello"
    assert isinstance(record["timestamp"], str)
    assert "source" not in record
    assert "metadata" not in record
    assert Chunk.model_validate(record).timestamp == chunk.timestamp


def test_chunk_timestamp_is_aware():
    """Test default timestamps carry a timezone."""
    assert Chunk(id="x", text="y").timestamp.tzinfo is not None


def test_result_score_bounds():
    """Test scores outside [0, 1] are rejected."""
    RAGResult(id="a", content="x", score=1.0)
    with pytest.raises(ValueError):
        RAGResult(id="a", content="x", score=1.5)


@pytest.mark.parametrize(
    "distance,expected",
    [(0.0, 1.0), (1.0, 0.5), (3.0, 0.25), (-0.0001, 1.0)],
)
def test_distance_to_similarity(distance, expected):
    """Test the distance to score mapping."""
    assert distance_to_similarity(distance) == pytest.approx(expected)


def test_similarity_is_monotonic():
    """Test larger distances never score higher."""
    scores = [distance_to_similarity(d / 10) for d in range(30)]
    assert scores == sorted(scores, reverse=True)
    assert all(0 < s <= 1 for s in scores)
