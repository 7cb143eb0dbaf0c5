"""Configuration: pydantic-settings ``Settings`` plus the YAML loader."""

from ragdocs.config.loader import load_config
from ragdocs.config.settings import Settings

__all__ = ["Settings", "load_config"]
