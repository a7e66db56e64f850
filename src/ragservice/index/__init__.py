"""Vector index layer: ANN backends behind the IndexProvider capability."""

from ragservice.config.schema import IndexConfig
from ragservice.index.base import (
    CapacityExceededError,
    DimensionMismatchError,
    IndexNotFoundError,
    IndexProvider,
    PersistenceError,
    VectorIndexError,
)


def create_index_provider(config: IndexConfig, dimension: int, ef_search: int = 150) -> IndexProvider:
    """Factory function to create an (empty, unopened) index provider.

    The caller opens the returned provider with ``create`` or ``load``.

    Args:
        config: Index configuration with backend type and HNSW parameters
        dimension: Vector dimension of the index
        ef_search: Query breadth applied after create/load

    Returns:
        Index provider for the configured backend

    Raises:
        ValueError: If the backend is unknown
        VectorIndexError: If the backend's dependencies are missing

    Example:
        provider = create_index_provider(IndexConfig(backend="memory"), dimension=8)
        provider.create(initial_capacity=1024)
    """
    backend = config.backend.value

    if backend == "memory":
        from ragservice.index.memory import InMemoryIndexProvider

        return InMemoryIndexProvider(dimension, config, ef_search)

    elif backend == "hnsw":
        try:
            from ragservice.index.hnsw import HnswIndexProvider

            return HnswIndexProvider(dimension, config, ef_search)
        except ImportError as e:
            raise VectorIndexError(
                message="HNSW index backend requires hnswlib. Install with: pip install hnswlib",
                backend="hnsw",
                original_error=e,
            )

    else:
        raise ValueError(
            f"Unknown index backend: '{backend}'. Supported backends: hnsw, memory"
        )


__all__ = [
    "CapacityExceededError",
    "DimensionMismatchError",
    "IndexNotFoundError",
    "IndexProvider",
    "PersistenceError",
    "VectorIndexError",
    "create_index_provider",
]
