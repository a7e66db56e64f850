"""Brute-force in-memory index backend.

Exact cosine search over a numpy matrix. Useful for:
- Testing without native extensions
- Small knowledge bases where exact recall matters more than speed

Persisted as numpy ``.npz`` content written to the same ``<name>.hnsw``
path the HNSW backend uses, so the registry does not care which backend
produced a file (the two formats are not interchangeable).
"""

from pathlib import Path
from typing import Sequence

import numpy as np

from ragservice.config.schema import IndexConfig
from ragservice.index.base import (
    IndexNotFoundError,
    IndexProvider,
    PersistenceError,
    Vector,
    VectorIndexError,
)


class InMemoryIndexProvider(IndexProvider):
    """Exact cosine index backed by a preallocated numpy matrix."""

    backend = "memory"

    def __init__(self, dimension: int, config: IndexConfig, ef_search: int = 150) -> None:
        super().__init__(dimension, config, ef_search)
        self._vectors: np.ndarray | None = None
        self._labels: np.ndarray | None = None
        self._count = 0

    def _require(self) -> np.ndarray:
        if self._vectors is None:
            raise VectorIndexError("Index not created or loaded", backend=self.backend)
        return self._vectors

    def create(self, initial_capacity: int) -> None:
        self._vectors = np.zeros((initial_capacity, self.dimension), dtype=np.float32)
        self._labels = np.zeros(initial_capacity, dtype=np.int64)
        self._count = 0

    def _add(self, vectors: Sequence[Vector], first_ordinal: int) -> None:
        matrix = self._require()
        n = len(vectors)
        matrix[self._count : self._count + n] = np.asarray(vectors, dtype=np.float32)
        self._labels[self._count : self._count + n] = np.arange(first_ordinal, first_ordinal + n)
        self._count += n

    def query(self, vector: Vector, k: int) -> list[tuple[int, float]]:
        self.check_dimension(vector)
        stored = self._require()[: self._count]
        if self._count == 0:
            return []

        query = np.asarray(vector, dtype=np.float32)
        norms = np.linalg.norm(stored, axis=1) * np.linalg.norm(query)
        dots = stored @ query
        with np.errstate(divide="ignore", invalid="ignore"):
            similarity = np.where(norms > 0, dots / norms, 0.0)
        distances = 1.0 - similarity

        order = np.argsort(distances, kind="stable")[:k]
        return [(int(self._labels[i]), float(distances[i])) for i in order]

    def current_count(self) -> int:
        self._require()
        return self._count

    def capacity(self) -> int:
        return int(self._require().shape[0])

    def _resize(self, new_capacity: int) -> None:
        matrix = self._require()
        grown = np.zeros((new_capacity, self.dimension), dtype=np.float32)
        grown[: self._count] = matrix[: self._count]
        labels = np.zeros(new_capacity, dtype=np.int64)
        labels[: self._count] = self._labels[: self._count]
        self._vectors, self._labels = grown, labels

    def save(self, path: Path) -> None:
        matrix = self._require()
        with open(path, "wb") as f:
            np.savez(
                f,
                vectors=matrix[: self._count],
                labels=self._labels[: self._count],
                capacity=np.array(matrix.shape[0], dtype=np.int64),
            )

    def load(self, path: Path) -> None:
        if not path.exists():
            raise IndexNotFoundError(f"No index at {path}", backend=self.backend)

        try:
            with open(path, "rb") as f, np.load(f, allow_pickle=False) as data:
                vectors = data["vectors"]
                labels = data["labels"]
                capacity = int(data["capacity"])
        except Exception as e:
            raise PersistenceError(
                message=f"Failed to load in-memory index from {path}: {str(e)}",
                backend=self.backend,
                original_error=e,
            )

        if vectors.ndim != 2 or (len(vectors) and vectors.shape[1] != self.dimension):
            raise PersistenceError(
                message=(
                    f"Index at {path} has shape {vectors.shape}, "
                    f"expected dimension {self.dimension}"
                ),
                backend=self.backend,
            )

        self.create(max(capacity, len(vectors)))
        self._vectors[: len(vectors)] = vectors
        self._labels[: len(labels)] = labels
        self._count = len(vectors)
