"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers, later layers winning:

  1. ``config/config.yaml`` -- static defaults checked into the repo
  2. ``.env`` file          -- local developer overrides
  3. Environment variables  -- set at deploy time

The YAML file is read first, then values coming from :class:`Settings`
are deep-merged on top::

    base = {"chunking": {"max_chunk_size": 1000}}
    overrides = {"chunking": {"overlap": 150}}
    result = {"chunking": {"max_chunk_size": 1000, "overlap": 150}}
"""

from pathlib import Path

import yaml

from ragdocs.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.
        settings: Settings instance to merge; a fresh one is built when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "embedding": {
            "model": settings.openai_embedding_model,
            "batch_size": settings.embedding_batch_size,
            "retry_attempts": settings.embedding_retry_attempts,
            "retry_delay": settings.embedding_retry_delay,
            "retry_backoff": settings.embedding_retry_backoff,
            "batch_pause": settings.embedding_batch_pause,
        },
        "chunking": {
            "max_chunk_size": settings.chunk_max_size,
            "overlap": settings.chunk_overlap,
            "min_chunk_size": settings.chunk_min_size,
        },
        "storage": {
            "database_path": settings.database_path,
            "upload_dir": settings.upload_dir,
            "stale_processing_minutes": settings.stale_processing_minutes,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
