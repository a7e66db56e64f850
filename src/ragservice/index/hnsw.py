"""HNSW index backend using hnswlib.

Each knowledge base gets one ``hnswlib.Index`` in cosine space, persisted
with hnswlib's own binary format as ``<name>.hnsw``.

Why this exists:
- Sub-linear approximate search over large knowledge bases
- Compact native persistence, no external service

Trade-offs:
- Capacity is fixed at creation and must be grown explicitly
- Recall is approximate; ef_search trades latency for recall
"""

from pathlib import Path
from typing import Optional, Sequence

import hnswlib
import numpy as np
import structlog

from ragservice.config.schema import IndexConfig
from ragservice.index.base import (
    IndexNotFoundError,
    IndexProvider,
    PersistenceError,
    Vector,
    VectorIndexError,
)

logger = structlog.get_logger(__name__)


class HnswIndexProvider(IndexProvider):
    """hnswlib-backed index provider.

    Example:
        provider = HnswIndexProvider(dimension=1536, config=IndexConfig())
        provider.create(initial_capacity=1024)
        provider.insert(vector, 0)
        neighbors = provider.query(vector, k=1)
    """

    backend = "hnsw"

    def __init__(self, dimension: int, config: IndexConfig, ef_search: int = 150) -> None:
        super().__init__(dimension, config, ef_search)
        self._index: Optional[hnswlib.Index] = None

    def _require(self) -> hnswlib.Index:
        if self._index is None:
            raise VectorIndexError("Index not created or loaded", backend=self.backend)
        return self._index

    def create(self, initial_capacity: int) -> None:
        index = hnswlib.Index(space="cosine", dim=self.dimension)
        index.init_index(
            max_elements=initial_capacity,
            ef_construction=self.config.ef_construction,
            M=self.config.m,
            random_seed=self.config.random_seed,
        )
        index.set_ef(self.ef_search)
        self._index = index

        logger.debug(
            "hnsw_index_created",
            dimension=self.dimension,
            capacity=initial_capacity,
            m=self.config.m,
            ef_construction=self.config.ef_construction,
        )

    def _add(self, vectors: Sequence[Vector], first_ordinal: int) -> None:
        data = np.asarray(vectors, dtype=np.float32)
        ids = np.arange(first_ordinal, first_ordinal + len(vectors), dtype=np.int64)
        self._require().add_items(data, ids)

    def query(self, vector: Vector, k: int) -> list[tuple[int, float]]:
        self.check_dimension(vector)
        labels, distances = self._require().knn_query(
            np.asarray([vector], dtype=np.float32), k=k
        )
        return [(int(label), float(distance)) for label, distance in zip(labels[0], distances[0])]

    def current_count(self) -> int:
        return int(self._require().get_current_count())

    def capacity(self) -> int:
        return int(self._require().get_max_elements())

    def _resize(self, new_capacity: int) -> None:
        self._require().resize_index(new_capacity)

    def save(self, path: Path) -> None:
        self._require().save_index(str(path))

    def load(self, path: Path) -> None:
        if not path.exists():
            raise IndexNotFoundError(f"No index at {path}", backend=self.backend)

        index = hnswlib.Index(space="cosine", dim=self.dimension)
        try:
            index.load_index(str(path))
        except Exception as e:
            raise PersistenceError(
                message=f"Failed to load HNSW index from {path}: {str(e)}",
                backend=self.backend,
                original_error=e,
            )
        index.set_ef(self.ef_search)
        self._index = index

        logger.debug(
            "hnsw_index_loaded",
            path=str(path),
            count=index.get_current_count(),
            capacity=index.get_max_elements(),
        )
