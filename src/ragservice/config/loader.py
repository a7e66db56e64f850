"""Configuration loading from files, environment and runtime overrides.

Supports:
- TOML config files with ${VAR} / ${VAR:-default} substitution
- Environment variables (RAG_* prefix, nested blocks via "__")
- Flat vectorizer variables used by existing deployments
  (RAG_VECTORIZER_API_URL, API_URL, API_Key, WhitelistEmbeddingModel, ...)
- .env files
- Deep merging of runtime overrides (``RAGService.initialize``)
"""

import copy
import os
import re
import tomllib
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

from ragservice.config.schema import AppConfig
from ragservice.observability.logging import get_logger

logger = get_logger(__name__)


# (config path, env var names in priority order)
FLAT_ENV_VARS: list[tuple[tuple[str, ...], tuple[str, ...]]] = [
    (("vectorizer", "api_url"), ("RAG_VECTORIZER_API_URL", "API_URL")),
    (("vectorizer", "api_key"), ("RAG_VECTORIZER_API_KEY", "API_Key")),
    (("vectorizer", "model"), ("RAG_VECTORIZER_MODEL", "WhitelistEmbeddingModel")),
    (("vectorizer", "dimensions"), ("RAG_VECTORIZER_DIMENSIONS",)),
    (("work_dir",), ("RAG_STORAGE_PATH",)),
]


def _substitute_env_vars(obj: Any) -> Any:
    """Recursively substitute environment variables in a data structure.

    Supports formats:
    - ${VAR_NAME}
    - ${VAR_NAME:-default}

    Args:
        obj: Input data (dict, list, str, etc.)

    Returns:
        Data structure with environment variables substituted
    """
    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_substitute_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        def replace_var(match):
            var_expr = match.group(1)
            if ":-" in var_expr:
                var_name, default_value = var_expr.split(":-", 1)
                return os.getenv(var_name.strip(), default_value)
            var_name = var_expr.strip()
            value = os.getenv(var_name)
            if value is None:
                logger.warning(
                    "env_var_not_found",
                    var_name=var_name,
                    suggestion="Check that the environment variable is set",
                )
                return match.group(0)
            return value

        return re.sub(r"\$\{([^}]+)\}", replace_var, obj)
    else:
        return obj


def deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``overrides`` into a copy of ``base``.

    Nested mappings are merged key by key; any other value replaces the
    base value.
    """
    merged = copy.deepcopy(dict(base))
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _flat_env_overrides(environ: Optional[Mapping[str, str]] = None) -> dict[str, Any]:
    """Collect the flat vectorizer/storage variables into a nested mapping."""
    environ = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}
    for path, names in FLAT_ENV_VARS:
        value = next((environ[name] for name in names if environ.get(name)), None)
        if value is None:
            continue
        target = overrides
        for part in path[:-1]:
            target = target.setdefault(part, {})
        target[path[-1]] = value
    return overrides


def merge_config(config: AppConfig, overrides: Optional[Mapping[str, Any]]) -> AppConfig:
    """Return a new config with ``overrides`` deep-merged over ``config``.

    Nested blocks such as ``vectorizer`` are merged, not replaced, so
    ``{"vectorizer": {"api_key": "..."}}`` keeps the configured URL and model.
    """
    if not overrides:
        return config
    merged = deep_merge(config.model_dump(), overrides)
    return AppConfig(**merged)


def load_config(
    config_path: Optional[Path] = None,
    env_file: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> AppConfig:
    """Load service configuration.

    Priority (highest to lowest):
    1. Explicit overrides
    2. Flat environment variables (RAG_VECTORIZER_API_URL, API_URL, ...)
    3. Config file
    4. RAG_* environment variables
    5. Defaults

    Args:
        config_path: Path to TOML config file
        env_file: Path to .env file
        overrides: Mapping deep-merged over everything else

    Returns:
        Loaded and validated configuration
    """
    if env_file and env_file.exists():
        load_dotenv(env_file)
        logger.info("loaded_env_file", path=str(env_file))

    config_data: dict[str, Any] = {}
    if config_path and config_path.exists():
        with open(config_path, "rb") as f:
            config_data = tomllib.load(f)
        logger.info("loaded_config_file", path=str(config_path))
        config_data = _substitute_env_vars(config_data)

    config_data = deep_merge(config_data, _flat_env_overrides())
    if overrides:
        config_data = deep_merge(config_data, overrides)

    config = AppConfig(**config_data)
    logger.info(
        "config_loaded",
        work_dir=str(config.work_dir),
        embedding_provider=config.vectorizer.provider.value,
        embedding_model=config.vectorizer.model,
        dimensions=config.dimensions,
        index_backend=config.index.backend.value,
    )

    return config


def get_default_config_path() -> Path:
    """Get the default config file path.

    Searches in order:
    1. ./ragservice.toml
    2. ~/.ragservice/config.toml
    3. /etc/ragservice/config.toml
    """
    search_paths = [
        Path.cwd() / "ragservice.toml",
        Path.home() / ".ragservice" / "config.toml",
        Path("/etc/ragservice/config.toml"),
    ]

    for path in search_paths:
        if path.exists():
            return path

    return search_paths[0]
