"""RAGResult entity - a retrieved chunk with similarity score."""

from typing import Any

from pydantic import BaseModel, Field


class RAGResult(BaseModel):
    """A retrieved chunk with relevance score.

    ``score`` is ``1 / (1 + cosine_distance)``: identical vectors score 1.0
    and the score decreases towards 0 as the distance grows. It is a ranking
    value, not a probability.
    """

    id: str
    content: str
    score: float = Field(..., ge=0.0, le=1.0, description="Similarity score (0-1)")
    metadata: dict[str, Any] = Field(default_factory=dict)
