"""Abstract base class for vector index backends.

Why this exists:
- Treats the approximate-nearest-neighbor engine as a pluggable capability
- Keeps ordinal assignment and growth policy in the registry, not the engine
- Enables testing with a brute-force in-memory implementation

How to extend:
1. Subclass IndexProvider
2. Implement all abstract methods (all of them are blocking calls)
3. Register the backend in ``create_index_provider``
4. Add optional dependencies to pyproject.toml

Distances are cosine distances; the registry converts them to similarity
scores with ``1 / (1 + distance)``.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence

from ragservice.config.schema import IndexConfig

Vector = Sequence[float]


class IndexProvider(ABC):
    """Capability over a single fixed-dimension ANN index.

    A provider is constructed for one dimension and is unusable until
    either ``create`` or ``load`` has been called.
    """

    backend = "abstract"

    def __init__(self, dimension: int, config: IndexConfig, ef_search: int = 150) -> None:
        """Initialize provider for a fixed dimension."""
        if dimension <= 0:
            raise ValueError(f"Index dimension must be positive, got {dimension}")
        self.dimension = dimension
        self.config = config
        self.ef_search = ef_search

    @abstractmethod
    def create(self, initial_capacity: int) -> None:
        """Allocate a fresh, empty index holding up to ``initial_capacity`` points."""
        pass

    @abstractmethod
    def _add(self, vectors: Sequence[Vector], first_ordinal: int) -> None:
        """Store already-validated vectors at consecutive ordinals."""
        pass

    @abstractmethod
    def query(self, vector: Vector, k: int) -> list[tuple[int, float]]:
        """Return up to k (ordinal, distance) pairs ordered by ascending distance.

        The caller clamps k to ``[1, min(requested, current_count, capacity)]``
        and never queries an empty index.
        """
        pass

    @abstractmethod
    def current_count(self) -> int:
        """Return the number of stored points."""
        pass

    @abstractmethod
    def capacity(self) -> int:
        """Return the maximum number of points before a grow is required."""
        pass

    @abstractmethod
    def _resize(self, new_capacity: int) -> None:
        """Reallocate to a larger capacity."""
        pass

    @abstractmethod
    def save(self, path: Path) -> None:
        """Write the index to ``path``."""
        pass

    @abstractmethod
    def load(self, path: Path) -> None:
        """Read the index from ``path``.

        Raises:
            IndexNotFoundError: If ``path`` does not exist
            PersistenceError: If ``path`` exists but cannot be read
        """
        pass

    def insert(self, vector: Vector, ordinal: int) -> None:
        """Add one point at ``ordinal``.

        Raises:
            CapacityExceededError: If ``ordinal >= capacity()``
            DimensionMismatchError: If the vector length is wrong
        """
        self.insert_batch([vector], ordinal)

    def insert_batch(self, vectors: Sequence[Vector], first_ordinal: int) -> None:
        """Add points at ``first_ordinal``, ``first_ordinal + 1``, ...

        Raises:
            CapacityExceededError: If the last ordinal does not fit
            DimensionMismatchError: If any vector length is wrong
        """
        if not vectors:
            return
        if first_ordinal < 0:
            raise ValueError(f"Ordinal must be non-negative, got {first_ordinal}")
        last_ordinal = first_ordinal + len(vectors) - 1
        if last_ordinal >= self.capacity():
            raise CapacityExceededError(
                f"Ordinal {last_ordinal} exceeds index capacity {self.capacity()}",
                backend=self.backend,
            )
        for position, vector in enumerate(vectors):
            self.check_dimension(vector, position)
        self._add(vectors, first_ordinal)

    def grow(self, new_capacity: int) -> None:
        """Reallocate to ``new_capacity``, which must exceed the current capacity."""
        if new_capacity <= self.capacity():
            raise ValueError(
                f"New capacity {new_capacity} must exceed current capacity {self.capacity()}"
            )
        self._resize(new_capacity)

    def check_dimension(self, vector: Vector, position: int = 0) -> None:
        if len(vector) != self.dimension:
            raise DimensionMismatchError(
                f"Vector at position {position} has dimension {len(vector)}, "
                f"index expects {self.dimension}",
                backend=self.backend,
            )


class VectorIndexError(Exception):
    """Base exception for vector index errors."""

    def __init__(self, message: str, backend: str, original_error: Optional[Exception] = None):
        self.message = message
        self.backend = backend
        self.original_error = original_error
        super().__init__(self.message)


class IndexNotFoundError(VectorIndexError):
    """No persisted index exists yet (soft condition)."""


class PersistenceError(VectorIndexError):
    """Persisted index or chunk map exists but is corrupt or unreadable."""


class CapacityExceededError(VectorIndexError):
    """Insert attempted past the index capacity without a preceding grow."""


class DimensionMismatchError(VectorIndexError):
    """Vector length does not match the index dimension."""
