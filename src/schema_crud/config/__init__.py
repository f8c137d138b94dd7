"""Configuration management: TOML loading and config models.

Usage:
    >>> from schema_crud.config import load_engine_config, EngineConfig, ConnectionProfile
"""

from schema_crud.config.loader import load_engine_config
from schema_crud.config.models import ConnectionProfile, EngineConfig

__all__ = ["load_engine_config", "ConnectionProfile", "EngineConfig"]
