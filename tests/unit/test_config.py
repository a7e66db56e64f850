"""Unit tests for configuration loading and merging."""

from pathlib import Path

import pytest

from ragservice.config.loader import _flat_env_overrides, deep_merge, load_config, merge_config
from ragservice.config.schema import AppConfig, VectorizerConfig, default_dimensions


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove environment variables that would leak into config loading."""
    for name in (
        "RAG_VECTORIZER_API_URL",
        "RAG_VECTORIZER_API_KEY",
        "RAG_VECTORIZER_MODEL",
        "RAG_VECTORIZER_DIMENSIONS",
        "RAG_STORAGE_PATH",
        "RAG_WORK_DIR",
        "RAG_CACHE_SIZE",
        "API_URL",
        "API_Key",
        "WhitelistEmbeddingModel",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    """Test default values."""
    config = AppConfig()

    assert config.work_dir == Path("./VectorStore")
    assert config.cache_size == 100
    assert config.cache_ttl == 60_000
    assert config.ef_search == 150
    assert config.max_memory_usage == 500 * 1024 * 1024
    assert config.index.m == 16
    assert config.index.ef_construction == 200
    assert config.dimensions == 1536


def test_dimension_table():
    """Test model dimension lookup and fallback."""
    assert default_dimensions("text-embedding-3-large") == 3072
    assert default_dimensions("text-embedding-ada-001") == 1024
    assert default_dimensions("Qwen/Qwen3-Embedding-4B") == 2560
    assert default_dimensions("unknown-model") == 1536
    assert VectorizerConfig(model="text-embedding-3-large", dimensions=256).resolved_dimensions() == 256


def test_deep_merge_keeps_nested_fields():
    """Test overriding one nested key keeps its siblings."""
    base = {"vectorizer": {"api_url": "http://x", "model": "m"}, "cache_size": 10}
    merged = deep_merge(base, {"vectorizer": {"api_key": "k"}})

    assert merged == {"vectorizer": {"api_url": "http://x", "model": "m", "api_key": "k"}, "cache_size": 10}
    assert base["vectorizer"] == {"api_url": "http://x", "model": "m"}


def test_merge_config_partial_vectorizer(tmp_path):
    """Test a partial vectorizer override keeps URL and model."""
    config = AppConfig(
        work_dir=tmp_path,
        vectorizer=VectorizerConfig(api_url="http://embed", model="text-embedding-3-large"),
    )

    merged = merge_config(config, {"vectorizer": {"api_key": "secret"}, "cache_size": 5})

    assert merged.vectorizer.api_url == "http://embed"
    assert merged.vectorizer.model == "text-embedding-3-large"
    assert merged.vectorizer.api_key == "secret"
    assert merged.cache_size == 5
    assert merged.work_dir == tmp_path


def test_merge_config_no_overrides():
    """Test merging nothing returns the same config."""
    config = AppConfig()
    assert merge_config(config, None) is config


def test_flat_env_priority():
    """Test RAG_-prefixed flat variables win over legacy names."""
    overrides = _flat_env_overrides(
        {
            "API_URL": "http://legacy",
            "RAG_VECTORIZER_API_URL": "http://preferred",
            "API_Key": "legacy-key",
            "WhitelistEmbeddingModel": "text-embedding-ada-002",
            "RAG_STORAGE_PATH": "/data/kb",
        }
    )

    assert overrides == {
        "vectorizer": {
            "api_url": "http://preferred",
            "api_key": "legacy-key",
            "model": "text-embedding-ada-002",
        },
        "work_dir": "/data/kb",
    }


def test_load_config_from_toml(tmp_path, monkeypatch):
    """Test TOML values, env substitution and flat env overrides."""
    monkeypatch.setenv("EMBED_KEY", "from-env")
    monkeypatch.setenv("RAG_VECTORIZER_MODEL", "text-embedding-3-large")
    config_file = tmp_path / "ragservice.toml"
    config_file.write_text(
        f"""
work_dir = "{tmp_path / 'store'}"
cache_size = 7

[vectorizer]
api_url = "http://embed.local/v1/embeddings"
api_key = "${{EMBED_KEY}}"
model = "text-embedding-3-small"

[index]
backend = "memory"
""",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.work_dir == tmp_path / "store"
    assert config.cache_size == 7
    assert config.vectorizer.api_key == "from-env"
    assert config.vectorizer.model == "text-embedding-3-large"
    assert config.dimensions == 3072
    assert config.index.backend.value == "memory"


def test_nested_env_variables(monkeypatch):
    """Test RAG_ prefixed nested environment variables."""
    monkeypatch.setenv("RAG_CACHE_SIZE", "42")
    monkeypatch.setenv("RAG_INDEX__BACKEND", "memory")

    config = AppConfig()

    assert config.cache_size == 42
    assert config.index.backend.value == "memory"


def test_invalid_values():
    """Test validation rejects non-positive sizes."""
    with pytest.raises(ValueError):
        AppConfig(cache_size=0)
    with pytest.raises(ValueError):
        VectorizerConfig(dimensions=0)
