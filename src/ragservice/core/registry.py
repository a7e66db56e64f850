"""Knowledge base registry.

Owns every open knowledge base: its vector index and its ordinal-to-chunk
map. Provides high-level operations for:
- Lazily loading knowledge bases from ``<work_dir>/<name>.hnsw`` and
  ``<work_dir>/<name>.chunks.json``
- Creating knowledge bases on first insert and growing their capacity
- Assigning contiguous ordinals and persisting after every mutation
- Removing knowledge bases from memory and disk

All work on one knowledge base (load, insert, grow, persist, query, remove)
runs under that knowledge base's lock; different knowledge bases proceed
independently. Blocking index and file work is offloaded to threads.
"""

import asyncio
import json
import math
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Callable, Optional, Sequence

from ragservice.entities import Chunk, KnowledgeBaseStatus, RAGDocument
from ragservice.entities.chunk import utcnow
from ragservice.index import (
    CapacityExceededError,
    IndexNotFoundError,
    IndexProvider,
    PersistenceError,
)
from ragservice.observability.logging import get_logger

logger = get_logger(__name__)

INDEX_SUFFIX = ".hnsw"
CHUNKS_SUFFIX = ".chunks.json"

MIN_INITIAL_CAPACITY = 1024
CAPACITY_HEADROOM = 256
GROWTH_FACTOR = 1.5

IndexFactory = Callable[[], IndexProvider]


def initial_capacity(batch_size: int) -> int:
    """Capacity of a freshly created index receiving ``batch_size`` points."""
    return max(batch_size + CAPACITY_HEADROOM, MIN_INITIAL_CAPACITY)


def grown_capacity(current_count: int, batch_size: int, capacity: int) -> int:
    """Capacity to grow to when ``batch_size`` more points do not fit."""
    return max(current_count + batch_size + CAPACITY_HEADROOM, math.floor(capacity * GROWTH_FACTOR))


def clamp_k(requested: int, current_count: int, capacity: int) -> int:
    """Clamp a requested neighbor count to ``[1, min(requested, count, capacity)]``."""
    return max(1, min(requested, current_count, capacity))


def validate_name(name: str) -> str:
    """Reject names that cannot be used as a file stem inside work_dir."""
    if (
        not name
        or name in {".", ".."}
        or any(sep in name for sep in ("/", "\\", "\x00"))
    ):
        raise ValueError(f"Invalid knowledge base name: {name!r}")
    return name


@dataclass
class KnowledgeBase:
    """An open knowledge base: one index plus its chunk map."""

    name: str
    index: IndexProvider
    chunks: dict[int, Chunk] = field(default_factory=dict)
    last_update: Optional[datetime] = None

    @property
    def document_count(self) -> int:
        return self.index.current_count()


@dataclass(frozen=True)
class Neighbor:
    """One query hit; ``chunk`` is None when the chunk map has no entry."""

    ordinal: int
    distance: float
    chunk: Optional[Chunk]


class KnowledgeBaseRegistry:
    """Registry of open knowledge bases with per-knowledge-base locking.

    Example:
        registry = KnowledgeBaseRegistry(
            work_dir=Path("./VectorStore"),
            dimension=1536,
            index_factory=lambda: create_index_provider(IndexConfig(), 1536),
        )
        chunks = await registry.ensure_capacity_and_insert("docs", vectors, documents)
        neighbors = await registry.query("docs", query_vector, k=5)
    """

    def __init__(
        self,
        work_dir: Path,
        dimension: int,
        index_factory: IndexFactory,
        max_memory_usage: Optional[int] = None,
    ):
        """Initialize the registry.

        Args:
            work_dir: Directory holding the persisted index and chunk files
            dimension: Embedding dimension of newly created indices
            index_factory: Returns a fresh, unopened IndexProvider
            max_memory_usage: Byte ceiling; growing past it logs a warning
        """
        self.work_dir = Path(work_dir)
        self.dimension = dimension
        self.max_memory_usage = max_memory_usage
        self._index_factory = index_factory
        self._open: dict[str, KnowledgeBase] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    def index_path(self, name: str) -> Path:
        return self.work_dir / f"{validate_name(name)}{INDEX_SUFFIX}"

    def chunk_path(self, name: str) -> Path:
        return self.work_dir / f"{validate_name(name)}{CHUNKS_SUFFIX}"

    @asynccontextmanager
    async def _locked(self, name: str) -> AsyncIterator[None]:
        """Hold the lock of one knowledge base.

        A lock lives only while some coroutine holds or awaits it, so names
        that were merely looked up do not accumulate locks.
        """
        lock = self._locks.setdefault(name, asyncio.Lock())
        self._lock_users[name] = self._lock_users.get(name, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[name] -= 1
            if not self._lock_users[name]:
                del self._lock_users[name]
                del self._locks[name]

    def is_open(self, name: str) -> bool:
        return name in self._open

    async def get_or_load(self, name: str) -> Optional[KnowledgeBase]:
        """Return an open knowledge base, loading it from disk if needed.

        Returns:
            The knowledge base, or None if it was never created

        Raises:
            PersistenceError: If persisted state exists but cannot be read
        """
        validate_name(name)
        async with self._locked(name):
            return await self._get_or_load_unlocked(name)

    async def _get_or_load_unlocked(self, name: str) -> Optional[KnowledgeBase]:
        kb = self._open.get(name)
        if kb is not None:
            return kb

        kb = await asyncio.to_thread(self._load_from_disk, name)
        if kb is not None:
            self._open[name] = kb
            logger.info(
                "knowledge_base_loaded",
                knowledge_base=name,
                document_count=kb.document_count,
                capacity=kb.index.capacity(),
            )
        return kb

    def _load_from_disk(self, name: str) -> Optional[KnowledgeBase]:
        index_path = self.index_path(name)
        chunk_path = self.chunk_path(name)
        index_exists = index_path.exists()
        chunks_exist = chunk_path.exists()

        if not index_exists and not chunks_exist:
            return None
        if not chunks_exist:
            raise PersistenceError(
                f"Index {index_path} exists but chunk map {chunk_path} is missing",
                backend="registry",
            )
        if not index_exists:
            raise PersistenceError(
                f"Chunk map {chunk_path} exists but index {index_path} is missing",
                backend="registry",
            )

        index = self._index_factory()
        try:
            index.load(index_path)
        except IndexNotFoundError:
            # Removed between the existence check and the read.
            return None
        chunks = self._read_chunk_map(chunk_path)

        count = index.current_count()
        if set(chunks) != set(range(count)):
            logger.warning(
                "chunk_map_mismatch",
                knowledge_base=name,
                index_count=count,
                chunk_count=len(chunks),
            )

        return KnowledgeBase(
            name=name,
            index=index,
            chunks=chunks,
            last_update=datetime.fromtimestamp(chunk_path.stat().st_mtime, tz=timezone.utc),
        )

    @staticmethod
    def _read_chunk_map(path: Path) -> dict[int, Chunk]:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError("chunk map must be a JSON object")
            return {int(ordinal): Chunk.model_validate(record) for ordinal, record in raw.items()}
        except (OSError, ValueError) as e:
            raise PersistenceError(
                message=f"Failed to read chunk map {path}: {str(e)}",
                backend="registry",
                original_error=e,
            )

    async def ensure_capacity_and_insert(
        self,
        name: str,
        vectors: Sequence[Sequence[float]],
        documents: Sequence[RAGDocument],
    ) -> list[Chunk]:
        """Insert documents and their vectors, creating or growing the index.

        A new knowledge base gets the configured dimension and a capacity of
        ``max(n + 256, 1024)``. An existing one grows to
        ``max(count + n + 256, floor(capacity * 1.5))`` when the batch does not
        fit. Vectors take ordinals ``count, count + 1, ...``; both files are
        persisted before returning.

        Returns:
            The stored chunks, in input order
        """
        if len(vectors) != len(documents):
            raise ValueError(
                f"Got {len(vectors)} vectors for {len(documents)} documents"
            )
        validate_name(name)
        if not vectors:
            return []

        async with self._locked(name):
            kb = await self._get_or_load_unlocked(name)
            created = kb is None

            if kb is None:
                index = self._index_factory()
                capacity = initial_capacity(len(vectors))
                await asyncio.to_thread(index.create, capacity)
                kb = KnowledgeBase(name=name, index=index)
                logger.info(
                    "knowledge_base_created",
                    knowledge_base=name,
                    dimension=self.dimension,
                    capacity=capacity,
                )
            else:
                await self._ensure_capacity(kb, len(vectors))

            start = kb.index.current_count()
            chunks = [self._make_chunk(doc, start + offset) for offset, doc in enumerate(documents)]

            try:
                await asyncio.to_thread(kb.index.insert_batch, vectors, start)
            except CapacityExceededError:
                logger.error(
                    "capacity_invariant_violated",
                    knowledge_base=name,
                    current_count=start,
                    batch_size=len(vectors),
                    capacity=kb.index.capacity(),
                )
                raise

            for offset, chunk in enumerate(chunks):
                kb.chunks[start + offset] = chunk
            kb.last_update = utcnow()
            if created:
                self._open[name] = kb

            await asyncio.to_thread(self._persist, kb)

        logger.info(
            "documents_inserted",
            knowledge_base=name,
            count=len(chunks),
            first_ordinal=start,
            document_count=start + len(chunks),
        )
        return chunks

    async def _ensure_capacity(self, kb: KnowledgeBase, batch_size: int) -> None:
        count = kb.index.current_count()
        capacity = kb.index.capacity()
        if count + batch_size <= capacity:
            return

        new_capacity = grown_capacity(count, batch_size, capacity)
        await asyncio.to_thread(kb.index.grow, new_capacity)
        logger.info(
            "index_resized",
            knowledge_base=kb.name,
            old_capacity=capacity,
            new_capacity=new_capacity,
        )

        estimated_bytes = new_capacity * self.dimension * 4
        if self.max_memory_usage and estimated_bytes > self.max_memory_usage:
            logger.warning(
                "index_memory_ceiling_exceeded",
                knowledge_base=kb.name,
                estimated_bytes=estimated_bytes,
                max_memory_usage=self.max_memory_usage,
            )

    @staticmethod
    def _make_chunk(doc: RAGDocument, ordinal: int) -> Chunk:
        metadata = doc.metadata or {}
        source = metadata.get("source")
        return Chunk(
            id=doc.id or f"doc-{ordinal}",
            text=doc.content,
            source=str(source) if source is not None else None,
            timestamp=metadata.get("timestamp") or utcnow(),
            metadata=doc.metadata,
        )

    def _persist(self, kb: KnowledgeBase) -> None:
        """Write index then chunk map, each via a temp file and rename."""
        self.work_dir.mkdir(parents=True, exist_ok=True)

        index_path = self.index_path(kb.name)
        index_tmp = index_path.with_name(index_path.name + ".tmp")
        kb.index.save(index_tmp)
        os.replace(index_tmp, index_path)

        chunk_path = self.chunk_path(kb.name)
        chunk_tmp = chunk_path.with_name(chunk_path.name + ".tmp")
        records = {str(ordinal): chunk.to_record() for ordinal, chunk in sorted(kb.chunks.items())}
        chunk_tmp.write_text(json.dumps(records, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(chunk_tmp, chunk_path)

    async def query(
        self, name: str, vector: Sequence[float], k: int
    ) -> Optional[list[Neighbor]]:
        """Return the nearest neighbors of ``vector``, ascending by distance.

        ``k`` is clamped to the knowledge base size and capacity.

        Returns:
            Neighbors, or None if the knowledge base does not exist
        """
        validate_name(name)
        async with self._locked(name):
            kb = await self._get_or_load_unlocked(name)
            if kb is None:
                return None

            count = kb.index.current_count()
            if count == 0:
                return []

            effective_k = clamp_k(k, count, kb.index.capacity())
            pairs = await asyncio.to_thread(kb.index.query, vector, effective_k)

        return [
            Neighbor(ordinal=ordinal, distance=distance, chunk=kb.chunks.get(ordinal))
            for ordinal, distance in pairs
        ]

    async def remove(self, name: str) -> bool:
        """Drop a knowledge base from memory and delete its files.

        Missing files are ignored, so removing twice is harmless.

        Returns:
            True if anything was removed
        """
        validate_name(name)
        async with self._locked(name):
            removed = self._open.pop(name, None) is not None
            for path in (self.index_path(name), self.chunk_path(name)):
                try:
                    await asyncio.to_thread(path.unlink)
                    removed = True
                except FileNotFoundError:
                    pass

        logger.info("knowledge_base_removed", knowledge_base=name, existed=removed)
        return removed

    async def save_all(self) -> None:
        """Persist every open knowledge base."""
        for name, kb in list(self._open.items()):
            async with self._locked(name):
                if self._open.get(name) is kb:
                    await asyncio.to_thread(self._persist, kb)
                    logger.debug("knowledge_base_saved", knowledge_base=name)

    async def close(self) -> None:
        """Persist and release every open knowledge base."""
        await self.save_all()
        self._open.clear()

    def known_names(self) -> list[str]:
        """Names of open knowledge bases plus those persisted in work_dir."""
        names = set(self._open)
        if self.work_dir.is_dir():
            names.update(
                path.name[: -len(CHUNKS_SUFFIX)] for path in self.work_dir.glob(f"*{CHUNKS_SUFFIX}")
            )
        return sorted(names)

    def open_knowledge_bases(self) -> list[KnowledgeBaseStatus]:
        return [
            KnowledgeBaseStatus(
                name=kb.name,
                document_count=kb.document_count,
                capacity=kb.index.capacity(),
                last_update=kb.last_update,
            )
            for kb in self._open.values()
        ]
