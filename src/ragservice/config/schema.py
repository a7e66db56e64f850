"""Configuration schema using Pydantic.

Why this exists:
- Type-safe configuration with validation
- Environment variable support (RAG_ prefix, nested blocks via "__")
- Clear documentation of all settings and their defaults

How to extend:
1. Add new fields to existing config classes
2. Create new config classes for new components
3. Merge overrides through ``merge_config`` so nested blocks stay intact
"""

from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Default embedding dimension per model name
MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "text-embedding-ada-001": 1024,
    "Qwen/Qwen3-Embedding-4B": 2560,
    "Qwen/Qwen3-Embedding-2560": 2560,
}

DEFAULT_DIMENSION = 1536


def default_dimensions(model: str) -> int:
    """Return the default embedding dimension for a model name."""
    return MODEL_DIMENSIONS.get(model, DEFAULT_DIMENSION)


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EmbeddingProviderType(str, Enum):
    """Supported embedding providers."""

    HTTP = "http"
    OPENAI = "openai"


class IndexBackendType(str, Enum):
    """Supported vector index backends."""

    HNSW = "hnsw"
    MEMORY = "memory"


class VectorizerConfig(BaseModel):
    """Embedding endpoint configuration.

    ``dimensions`` is optional: when unset, the dimension is looked up from
    the model table (falling back to 1536).
    """

    provider: EmbeddingProviderType = EmbeddingProviderType.HTTP
    api_url: str = ""
    api_key: str = ""
    model: str = "text-embedding-3-small"
    dimensions: Optional[int] = Field(default=None, gt=0)
    timeout: float = Field(default=60.0, gt=0)
    extra_params: dict[str, Any] = Field(default_factory=dict)

    def resolved_dimensions(self) -> int:
        """Return the configured dimension or the model default."""
        return self.dimensions or default_dimensions(self.model)


class IndexConfig(BaseModel):
    """Vector index configuration.

    M, ef_construction and random_seed are fixed at index creation;
    ef_search is applied every time an index is created or loaded.
    """

    backend: IndexBackendType = IndexBackendType.HNSW
    m: int = Field(default=16, gt=0)
    ef_construction: int = Field(default=200, gt=0)
    random_seed: int = 100


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = LogLevel.INFO
    json_logs: bool = False
    enable_file: bool = False
    log_dir: Optional[Path] = None
    max_days: int = Field(default=30, gt=0)

    def model_post_init(self, __context: Any) -> None:
        """Expand ~ in paths."""
        if self.log_dir:
            self.log_dir = self.log_dir.expanduser()


class AppConfig(BaseSettings):
    """Main service configuration.

    Loads from:
    1. Config file (TOML) or ``RAGService.initialize`` overrides
    2. Environment variables (prefixed with RAG_, nested with __)
    3. .env file
    """

    model_config = SettingsConfigDict(
        env_prefix="RAG_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    work_dir: Path = Path("./VectorStore")
    cache_size: int = Field(default=100, gt=0)
    cache_ttl: int = Field(default=60_000, gt=0, description="Cache TTL in milliseconds")
    ef_search: int = Field(default=150, gt=0)
    max_memory_usage: int = Field(default=500 * 1024 * 1024, gt=0, description="Bytes")
    debug: bool = False

    # Component configurations
    vectorizer: VectorizerConfig = Field(default_factory=VectorizerConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def model_post_init(self, __context: Any) -> None:
        """Expand ~ in work_dir."""
        self.work_dir = self.work_dir.expanduser()

    @property
    def dimensions(self) -> int:
        return self.vectorizer.resolved_dimensions()
