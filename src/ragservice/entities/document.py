"""RAGDocument entity - a document submitted for indexing."""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class RAGDocument(BaseModel):
    """A document to embed and store in a knowledge base.

    ``metadata["source"]`` and ``metadata["timestamp"]`` are lifted onto the
    stored chunk; the whole mapping is kept as chunk metadata as well.
    """

    id: Optional[str] = None
    content: str = Field(..., description="Text to embed and store")
    knowledge_base: str = Field(..., description="Target knowledge base name")
    metadata: Optional[dict[str, Any]] = None

    @field_validator("content")
    @classmethod
    def content_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Document content cannot be empty")
        return v

    @field_validator("knowledge_base")
    @classmethod
    def knowledge_base_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Knowledge base name cannot be empty")
        return v
