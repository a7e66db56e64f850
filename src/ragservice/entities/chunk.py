"""Chunk entity - one stored document at one ordinal slot of a knowledge base."""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Chunk(BaseModel):
    """A stored unit of a knowledge base.

    Chunks are persisted in ``<name>.chunks.json`` keyed by their ordinal,
    which is the slot of the matching vector in the knowledge base index.
    """

    id: str = Field(..., description="Stable external id (caller-supplied or doc-{ordinal})")
    text: str = Field(..., description="Raw document text")
    source: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)
    metadata: Optional[dict[str, Any]] = None

    def to_record(self) -> dict[str, Any]:
        """Return the JSON-ready form stored in the chunk map file."""
        return self.model_dump(mode="json", exclude_none=True)
