"""Pydantic models for engine configuration."""

from pydantic import BaseModel, Field


# ============================================================================
# Configuration Models
# ============================================================================


class ConnectionProfile(BaseModel):
    """Database connection profile from the ``[connections.<name>]`` table."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    provider: str = "postgres"


class EngineConfig(BaseModel):
    """Complete engine configuration.

    Passed explicitly to every engine instance; nothing is read from
    process-global state, so engines with different settings can coexist.
    """

    schema_path: str = "schemas"
    debug_mode: bool = False

    # Persistent cache tier (memory tier is always on)
    cache_enabled: bool = False
    cache_url: str | None = None
    cache_prefix: str = "schema_crud:schema:"
    cache_ttl: int | None = None  # None: never expire

    default_connection: str | None = None
    connections: dict[str, ConnectionProfile] = Field(default_factory=dict)
