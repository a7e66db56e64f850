"""Entities - Domain models for the retrieval service.

This module contains pure domain entities without business logic:
- Chunk: A stored document at one ordinal slot of a knowledge base
- RAGDocument: A document submitted for indexing
- RAGResult: A retrieved chunk with similarity score
- ServiceStatus: Health snapshot of the service
"""

from ragservice.entities.chunk import Chunk
from ragservice.entities.document import RAGDocument
from ragservice.entities.search_result import RAGResult
from ragservice.entities.status import KnowledgeBaseStatus, ServiceMetrics, ServiceStatus

__all__ = [
    "Chunk",
    "KnowledgeBaseStatus",
    "RAGDocument",
    "RAGResult",
    "ServiceMetrics",
    "ServiceStatus",
]
