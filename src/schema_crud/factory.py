"""Database client and engine factory.

Connections come from ``EngineConfig.connections``; each named profile
gets one lazily created ``AsyncPostgresAdapter``.  There is no module
level adapter: every ``ConnectionRegistry`` (and so every engine) owns
its own clients.

Usage:
    from schema_crud.config import load_engine_config
    from schema_crud.factory import create_service

    service = create_service(load_engine_config("schema_crud.toml"))
    users = service.get_model_instance("users")
    row = await users.find(1)
    await service.close()
"""

import logging
from typing import TYPE_CHECKING
from urllib.parse import quote

from schema_crud.adapters import AsyncPostgresAdapter, DatabaseClient
from schema_crud.config.models import ConnectionProfile, EngineConfig
from schema_crud.errors import ConnectionNotFoundError
from schema_crud.schema.cache import RedisCacheBackend, SchemaCache

if TYPE_CHECKING:
    from schema_crud.service import SchemaService

logger = logging.getLogger(__name__)

DEFAULT_CONNECTION = "default"


# ============================================================================
# URL Resolution
# ============================================================================


def resolve_url(profile: ConnectionProfile) -> str:
    """Resolve profile URL with password substitution.

    Example:
        >>> resolve_url(ConnectionProfile(url="postgresql://u:[YOUR-PASSWORD]@h/db", db_password="p@ss"))
        'postgresql://u:p%40ss@h/db'
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


# ============================================================================
# Connection Registry
# ============================================================================


class ConnectionRegistry:
    """Maps connection names to database clients.

    ``None`` means the configured default connection, falling back to a
    profile literally named ``default``.

    Args:
        config: Engine configuration holding the connection profiles.
        clients: Pre-built clients by name (tests, custom adapters).
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        clients: dict[str, DatabaseClient] | None = None,
    ):
        self._config = config or EngineConfig()
        self._clients: dict[str, DatabaseClient] = dict(clients or {})

    @property
    def default_name(self) -> str:
        return self._config.default_connection or DEFAULT_CONNECTION

    def names(self) -> list[str]:
        """Every configured or registered connection name."""
        return sorted(set(self._config.connections) | set(self._clients))

    def register(self, name: str, client: DatabaseClient) -> None:
        self._clients[name] = client

    def get(self, name: str | None = None) -> DatabaseClient:
        """Client for connection *name*, creating the adapter on first use.

        Raises:
            ConnectionNotFoundError: If no profile or client exists for *name*.
        """
        name = name or self.default_name
        if name in self._clients:
            return self._clients[name]

        profile = self._config.connections.get(name)
        if profile is None:
            raise ConnectionNotFoundError(
                f"Connection '{name}' is not configured. "
                f"Available: {', '.join(self.names()) or '(none)'}"
            )
        if profile.provider != "postgres":
            raise ConnectionNotFoundError(
                f"Connection '{name}' uses unsupported provider '{profile.provider}'"
            )

        if self._config.debug_mode:
            logger.debug("Creating database client for connection '%s'", name)
        client = AsyncPostgresAdapter(resolve_url(profile))
        self._clients[name] = client
        return client

    async def close(self) -> None:
        """Close every client created or registered so far."""
        clients, self._clients = list(self._clients.values()), {}
        for client in clients:
            await client.close()


# ============================================================================
# Engine Factory
# ============================================================================


def create_cache(config: EngineConfig) -> SchemaCache:
    """Schema cache for *config*; Redis-backed when the persistent tier is enabled."""
    backend = None
    if config.cache_enabled:
        if not config.cache_url:
            raise ValueError("cache_enabled requires cache_url")
        backend = RedisCacheBackend(config.cache_url)
    return SchemaCache(
        backend=backend,
        prefix=config.cache_prefix,
        ttl=config.cache_ttl,
        debug_mode=config.debug_mode,
    )


def create_service(
    config: EngineConfig,
    registry: ConnectionRegistry | None = None,
) -> "SchemaService":
    """Build a fully wired ``SchemaService`` from configuration."""
    from schema_crud.service import SchemaService

    return SchemaService(
        config,
        cache=create_cache(config),
        registry=registry or ConnectionRegistry(config),
    )
