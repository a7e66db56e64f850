"""RAG service: public search and indexing operations.

Why this exists:
- Composes the embedding provider, search cache and knowledge base registry
- Converts index distances into ranked, thresholded results
- Tracks search latency and cache metrics for status reporting

How to use:
    from ragservice.service import RAGService

    async with RAGService() as service:
        await service.add_documents([RAGDocument(content="...", knowledge_base="docs")])
        results = await service.search("question", knowledge_base="docs", k=5)

Scoring: ``score = 1 / (1 + cosine_distance)``. Distance 0 scores 1.0 and
the score approaches 0 as the distance grows. Thresholds compare against
this value.
"""

import asyncio
import time
from functools import partial
from typing import Any, Mapping, Optional, Sequence, Union

from ragservice.config.loader import load_config, merge_config
from ragservice.config.schema import AppConfig
from ragservice.core.cache import SearchCache
from ragservice.core.registry import IndexFactory, KnowledgeBaseRegistry, Neighbor
from ragservice.entities import Chunk, RAGDocument, RAGResult, ServiceMetrics, ServiceStatus
from ragservice.index import create_index_provider
from ragservice.observability.logging import configure_from_config, get_logger
from ragservice.providers import EmbeddingProvider, create_embedding_provider

logger = get_logger(__name__)

DocumentInput = Union[RAGDocument, Mapping[str, Any]]


def distance_to_similarity(distance: float) -> float:
    """Map a cosine distance to a similarity score in (0, 1]."""
    return 1.0 / (1.0 + max(distance, 0.0))


class RAGService:
    """Retrieval service over named knowledge bases."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        embedding_provider: Optional[EmbeddingProvider] = None,
        index_factory: Optional[IndexFactory] = None,
    ):
        """Initialize the service (call ``initialize`` before use).

        Args:
            config: Service configuration (default: ``load_config()``, i.e.
                defaults plus RAG_* and flat vectorizer environment variables)
            embedding_provider: Provider to use instead of the configured one
            index_factory: Index factory to use instead of the configured backend
        """
        self.config = config or load_config()
        self.embedding_provider = embedding_provider
        self._index_factory = index_factory
        self.registry: Optional[KnowledgeBaseRegistry] = None
        self.cache = SearchCache(self.config.cache_size, self.config.cache_ttl)
        self._total_searches = 0
        self._avg_search_time_ms = 0.0

    async def initialize(self, overrides: Optional[Mapping[str, Any]] = None) -> None:
        """Apply configuration overrides and open the service.

        Overrides are deep-merged, so ``{"vectorizer": {"api_key": "..."}}``
        keeps the configured URL and model.
        """
        self.config = merge_config(self.config, overrides)
        if self.config.debug:
            configure_from_config(self.config.logging, debug=True)
        await asyncio.to_thread(self.config.work_dir.mkdir, parents=True, exist_ok=True)

        if self.registry is not None:
            await self.registry.close()

        dimension = self.config.dimensions
        index_factory = self._index_factory or partial(
            create_index_provider, self.config.index, dimension, self.config.ef_search
        )
        # Resolve the backend now so a missing dependency fails here, not per call.
        index_factory()

        self.registry = KnowledgeBaseRegistry(
            work_dir=self.config.work_dir,
            dimension=dimension,
            index_factory=index_factory,
            max_memory_usage=self.config.max_memory_usage,
        )
        self.cache = SearchCache(self.config.cache_size, self.config.cache_ttl)
        if self.embedding_provider is None:
            self.embedding_provider = create_embedding_provider(self.config.vectorizer)

        logger.info(
            "rag_service_initialized",
            work_dir=str(self.config.work_dir),
            dimension=dimension,
            cache_size=self.config.cache_size,
            cache_ttl_ms=self.config.cache_ttl,
            ef_search=self.config.ef_search,
        )

    def _require_registry(self) -> KnowledgeBaseRegistry:
        if self.registry is None or self.embedding_provider is None:
            raise ServiceNotInitializedError("RAGService.initialize() has not been called")
        return self.registry

    async def search(
        self,
        query: str,
        knowledge_base: str,
        k: int = 10,
        similarity_threshold: float = 0.0,
    ) -> list[RAGResult]:
        """Search a knowledge base.

        Args:
            query: Query text
            knowledge_base: Knowledge base name
            k: Maximum number of results
            similarity_threshold: Minimum score of returned results

        Returns:
            Results sorted by descending score, all scoring at least the
            threshold; empty if the knowledge base does not exist

        Raises:
            EmbeddingProviderError: If the query cannot be embedded
            PersistenceError: If the knowledge base files are corrupt
        """
        registry = self._require_registry()
        if not query or not query.strip():
            raise ValueError("Query cannot be empty")

        started = time.perf_counter()
        query_vector = await self.embedding_provider.embed_text(query)

        cached = self.cache.get(knowledge_base, query_vector, k)
        if cached is not None:
            logger.debug("search_cache_hit", knowledge_base=knowledge_base, k=k)
            return self._apply_threshold(cached, similarity_threshold)

        neighbors = await registry.query(knowledge_base, query_vector, k)
        if neighbors is None:
            logger.debug("knowledge_base_absent", knowledge_base=knowledge_base)
            return []

        results = sorted(
            (self._to_result(neighbor) for neighbor in neighbors),
            key=lambda result: result.score,
            reverse=True,
        )
        self.cache.put(knowledge_base, query_vector, k, results)

        self._record_search((time.perf_counter() - started) * 1000)
        filtered = self._apply_threshold(results, similarity_threshold)

        logger.info(
            "search_completed",
            knowledge_base=knowledge_base,
            k=k,
            candidates=len(results),
            result_count=len(filtered),
        )
        return filtered

    @staticmethod
    def _apply_threshold(results: Sequence[RAGResult], threshold: float) -> list[RAGResult]:
        return [result for result in results if result.score >= threshold]

    @staticmethod
    def _to_result(neighbor: Neighbor) -> RAGResult:
        chunk = neighbor.chunk
        score = distance_to_similarity(neighbor.distance)
        if chunk is None:
            return RAGResult(id=f"chunk-{neighbor.ordinal}", content="", score=score)

        metadata: dict[str, Any] = {"timestamp": chunk.timestamp}
        if chunk.source is not None:
            metadata["source"] = chunk.source
        metadata.update(chunk.metadata or {})
        return RAGResult(id=chunk.id, content=chunk.text, score=score, metadata=metadata)

    def _record_search(self, duration_ms: float) -> None:
        self._total_searches += 1
        self._avg_search_time_ms += (duration_ms - self._avg_search_time_ms) / self._total_searches

    async def add_document(self, doc: DocumentInput) -> list[Chunk]:
        """Embed and store a single document."""
        return await self.add_documents([doc])

    async def add_documents(self, docs: Sequence[DocumentInput]) -> list[Chunk]:
        """Embed and store documents, one embedding call per knowledge base.

        Returns:
            The stored chunks, grouped by knowledge base in first-seen order
        """
        registry = self._require_registry()
        if not docs:
            return []

        grouped: dict[str, list[RAGDocument]] = {}
        for doc in docs:
            document = doc if isinstance(doc, RAGDocument) else RAGDocument.model_validate(dict(doc))
            grouped.setdefault(document.knowledge_base, []).append(document)

        stored: list[Chunk] = []
        for knowledge_base, kb_docs in grouped.items():
            vectors = await self.embedding_provider.embed_batch([d.content for d in kb_docs])
            chunks = await registry.ensure_capacity_and_insert(knowledge_base, vectors, kb_docs)
            self.cache.invalidate(knowledge_base)
            stored.extend(chunks)

        logger.info(
            "documents_added",
            count=len(stored),
            knowledge_bases=list(grouped),
        )
        return stored

    async def update_document(self, id: str, partial_doc: Mapping[str, Any]) -> None:
        """Update a document as remove-then-add under the same id.

        Nothing happens unless ``partial_doc`` names a knowledge base; the
        document is re-added only if it carries content.

        Known limitation: ``remove_document`` does not delete anything, so an
        update appends a second chunk with this id instead of replacing it.
        """
        knowledge_base = partial_doc.get("knowledge_base")
        if not knowledge_base:
            logger.warning("document_update_skipped", document_id=id, reason="no knowledge_base")
            return

        await self.remove_document(id)
        content = partial_doc.get("content")
        if content:
            await self.add_document(
                RAGDocument(
                    id=id,
                    content=content,
                    knowledge_base=knowledge_base,
                    metadata=partial_doc.get("metadata"),
                )
            )

    async def remove_document(self, id: str) -> bool:
        """Remove a single document (not supported).

        Removing one chunk would break contiguous ordinals and there is no
        id-to-ordinal index, so this only logs. Remove the whole knowledge
        base instead.

        Returns:
            Always False
        """
        self._require_registry()
        logger.warning("document_remove_unsupported", document_id=id)
        return False

    async def remove_knowledge_base(self, name: str) -> bool:
        """Delete a knowledge base from memory and disk.

        Returns:
            True if anything was removed
        """
        registry = self._require_registry()
        removed = await registry.remove(name)
        self.cache.invalidate(name)
        return removed

    async def list_knowledge_bases(self) -> list[str]:
        """Names of open and persisted knowledge bases."""
        registry = self._require_registry()
        return await asyncio.to_thread(registry.known_names)

    async def get_status(self) -> ServiceStatus:
        registry = self._require_registry()
        cache_stats = self.cache.stats()
        return ServiceStatus(
            status="healthy",
            knowledge_bases=registry.open_knowledge_bases(),
            metrics=ServiceMetrics(
                total_searches=self._total_searches,
                avg_search_time_ms=self._avg_search_time_ms,
                cache_hit_rate=cache_stats.hit_rate,
                cache_hits=cache_stats.hits,
                cache_misses=cache_stats.misses,
                cache_size=cache_stats.size,
                cache_max_size=cache_stats.max_size,
            ),
        )

    async def shutdown(self) -> None:
        """Persist open knowledge bases, clear the cache and release resources."""
        if self.registry is not None:
            await self.registry.close()
            self.registry = None
        self.cache.clear()
        if self.embedding_provider is not None:
            await self.embedding_provider.close()
            self.embedding_provider = None

        logger.info("rag_service_shutdown")

    async def __aenter__(self) -> "RAGService":
        if self.registry is None:
            await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()


class RAGServiceError(Exception):
    """Base exception for service errors."""

    pass


class ServiceNotInitializedError(RAGServiceError):
    """An operation was called before ``initialize``."""

    pass
