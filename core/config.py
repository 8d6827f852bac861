"""Configuration loading."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

try:
    import tomllib
except ImportError:
    import tomli as tomllib

import tomli_w

from core.errors import ConfigError


@dataclass(frozen=True)
class Config:
    """Application configuration."""
    # Per-repository state directory, relative to the repository root
    state_dir: str
    log_level: str
    # Embedding settings
    embeddings_backend: str
    embeddings_model: str
    embeddings_dimension: int
    # Index settings
    index_batch_size: int
    index_workers: int
    index_max_bytes: int
    # Query settings
    query_num_results: int


DEFAULT_CONFIG = Config(
    state_dir=".cearch",
    log_level="WARNING",
    embeddings_backend="sentence_transformers",
    embeddings_model="sentence-transformers/all-MiniLM-L6-v2",
    embeddings_dimension=384,
    index_batch_size=64,
    index_workers=4,
    index_max_bytes=1_000_000,
    query_num_results=7,
)


def default_config_path() -> Path:
    """Location of the user config file."""
    return Path.home() / ".cearch.toml"


def get_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from ~/.cearch.toml if present, else use defaults.

    Args:
        config_path: Explicit config file to read instead of the default.

    Returns:
        The loaded configuration.
    """
    config_path = config_path or default_config_path()

    if not config_path.exists():
        return DEFAULT_CONFIG

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        # If loading fails, return defaults
        return DEFAULT_CONFIG

    embeddings = data.get("embeddings", {})
    index = data.get("index", {})
    query = data.get("query", {})

    return Config(
        state_dir=data.get("state_dir", DEFAULT_CONFIG.state_dir),
        log_level=data.get("log_level", DEFAULT_CONFIG.log_level),
        embeddings_backend=embeddings.get("backend", DEFAULT_CONFIG.embeddings_backend),
        embeddings_model=embeddings.get("model", DEFAULT_CONFIG.embeddings_model),
        embeddings_dimension=embeddings.get("dimension", DEFAULT_CONFIG.embeddings_dimension),
        index_batch_size=index.get("batch_size", DEFAULT_CONFIG.index_batch_size),
        index_workers=index.get("workers", DEFAULT_CONFIG.index_workers),
        index_max_bytes=index.get("max_bytes", DEFAULT_CONFIG.index_max_bytes),
        query_num_results=query.get("num_results", DEFAULT_CONFIG.query_num_results),
    )


def validate_config(config: Config) -> Config:
    """
    Check the numeric embedding and index settings.

    Raises:
        ConfigError: If a setting is out of range.
    """
    positive = {
        "embeddings.dimension": config.embeddings_dimension,
        "index.batch_size": config.index_batch_size,
        "index.workers": config.index_workers,
    }
    for key, value in positive.items():
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise ConfigError(f"{key} must be a positive integer, got {value!r}")
    if not isinstance(config.index_max_bytes, int) or config.index_max_bytes < 0:
        raise ConfigError(f"index.max_bytes must be >= 0, got {config.index_max_bytes!r}")
    return config


def save_config(config: Config, config_path: Optional[Path] = None) -> None:
    """
    Save configuration to ~/.cearch.toml.

    Args:
        config: The configuration to save.
        config_path: Explicit destination instead of the default.
    """
    config_path = config_path or default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = {
        "state_dir": config.state_dir,
        "log_level": config.log_level,
        "embeddings": {
            "backend": config.embeddings_backend,
            "model": config.embeddings_model,
            "dimension": config.embeddings_dimension,
        },
        "index": {
            "batch_size": config.index_batch_size,
            "workers": config.index_workers,
            "max_bytes": config.index_max_bytes,
        },
        "query": {
            "num_results": config.query_num_results,
        },
    }

    with open(config_path, "wb") as f:
        tomli_w.dump(config_dict, f)
