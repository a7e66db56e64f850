"""Service layer - public retrieval operations.

- RAGService: search, add, update, remove and status over knowledge bases
"""

from ragservice.service.rag import (
    RAGService,
    RAGServiceError,
    ServiceNotInitializedError,
    distance_to_similarity,
)

__all__ = [
    "RAGService",
    "RAGServiceError",
    "ServiceNotInitializedError",
    "distance_to_similarity",
]
