"""Two-tier cache for canonical schemas.

Tier 1 is a process-local dict keyed by ``(model, connection)`` and
returns the identical ``Schema`` object on every hit.  Tier 2 is an
optional shared store (Redis) holding the schema as JSON so other
processes can skip parsing and validation.

Entries never expire unless a TTL is configured.  Invalidation is always
explicit via ``clear()`` or ``clear_all()``.

Usage:
    from schema_crud.schema.cache import RedisCacheBackend, SchemaCache

    cache = SchemaCache(backend=RedisCacheBackend("redis://localhost:6379/0"))
    schema = cache.get("users", "db1")
    if schema is None:
        cache.set("users", "db1", load_schema())
"""

import logging
from typing import Protocol

import redis

from schema_crud.errors import CacheUnavailableError
from schema_crud.schema.models import Schema

logger = logging.getLogger(__name__)

DEFAULT_CACHE_PREFIX = "schema_crud:schema:"


def cache_key(model: str, connection: str | None = None) -> str:
    """Key for one (model, connection) entry.

    Example:
        >>> cache_key("users"), cache_key("users", "db1")
        ('users:default', 'users:db1')
    """
    return f"{model}:{connection or 'default'}"


class CacheBackend(Protocol):
    """Persistent tier interface.  Values are JSON strings."""

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def delete_prefix(self, prefix: str) -> int:
        ...


class RedisCacheBackend:
    """Redis implementation of ``CacheBackend``.

    Every Redis failure is raised as ``CacheUnavailableError``; the engine
    does not retry.

    Args:
        url: Redis connection URL.
        client: Pre-built client (tests); ``url`` is ignored when given.
    """

    def __init__(self, url: str | None = None, client: "redis.Redis | None" = None):
        if client is None:
            if not url:
                raise ValueError("RedisCacheBackend needs a url or a client")
            client = redis.from_url(url, decode_responses=True)
        self._client = client

    def get(self, key: str) -> str | None:
        try:
            return self._client.get(key)
        except redis.RedisError as e:
            raise CacheUnavailableError(f"Schema cache read failed for '{key}': {e}") from e

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        try:
            self._client.set(key, value, ex=ttl)
        except redis.RedisError as e:
            raise CacheUnavailableError(f"Schema cache write failed for '{key}': {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except redis.RedisError as e:
            raise CacheUnavailableError(f"Schema cache delete failed for '{key}': {e}") from e

    def delete_prefix(self, prefix: str) -> int:
        try:
            keys = list(self._client.scan_iter(match=f"{prefix}*"))
            if keys:
                self._client.delete(*keys)
            return len(keys)
        except redis.RedisError as e:
            raise CacheUnavailableError(f"Schema cache clear failed for '{prefix}*': {e}") from e

    def close(self) -> None:
        self._client.close()


class SchemaCache:
    """Process-local schema cache with an optional persistent tier.

    Args:
        backend: Persistent tier, or ``None`` for memory only.
        prefix: Key prefix used in the persistent tier.
        ttl: Persistent entry lifetime in seconds; ``None`` never expires.
        debug_mode: Log hits and misses at debug level.
    """

    def __init__(
        self,
        backend: CacheBackend | None = None,
        prefix: str = DEFAULT_CACHE_PREFIX,
        ttl: int | None = None,
        debug_mode: bool = False,
    ):
        self._memory: dict[tuple[str, str | None], Schema] = {}
        self._backend = backend
        self._prefix = prefix
        self._ttl = ttl
        self._debug = debug_mode

    @property
    def backend(self) -> CacheBackend | None:
        return self._backend

    def get(self, model: str, connection: str | None = None) -> Schema | None:
        """Return the cached schema or ``None`` on a miss in both tiers.

        A persistent hit is promoted into the process-local tier.

        Raises:
            CacheUnavailableError: If the persistent tier cannot be read.
        """
        key = (model, connection)
        if key in self._memory:
            self._log("Schema cache hit (memory): %s", cache_key(model, connection))
            return self._memory[key]

        if self._backend is None:
            self._log("Schema cache miss: %s", cache_key(model, connection))
            return None

        payload = self._backend.get(self._prefix + cache_key(model, connection))
        if payload is None:
            self._log("Schema cache miss: %s", cache_key(model, connection))
            return None

        schema = Schema.model_validate_json(payload)
        self._memory[key] = schema
        self._log("Schema cache hit (persistent): %s", cache_key(model, connection))
        return schema

    def set(self, model: str, connection: str | None, schema: Schema) -> None:
        """Store *schema* in both tiers.

        Raises:
            CacheUnavailableError: If the persistent tier cannot be written.
                The process-local tier is updated regardless.
        """
        self._memory[(model, connection)] = schema
        if self._backend is not None:
            self._backend.set(
                self._prefix + cache_key(model, connection),
                schema.model_dump_json(),
                self._ttl,
            )

    def has(self, model: str, connection: str | None = None) -> bool:
        """True if the process-local tier holds the entry."""
        return (model, connection) in self._memory

    def clear(self, model: str, connection: str | None = None) -> None:
        """Drop one entry from both tiers."""
        self._memory.pop((model, connection), None)
        if self._backend is not None:
            self._backend.delete(self._prefix + cache_key(model, connection))
        self._log("Schema cache cleared: %s", cache_key(model, connection))

    def clear_all(self) -> None:
        """Drop every entry from both tiers."""
        self._memory.clear()
        if self._backend is not None:
            removed = self._backend.delete_prefix(self._prefix)
            self._log("Schema cache cleared %d persistent entries", removed)

    def __len__(self) -> int:
        return len(self._memory)

    def _log(self, message: str, *args: object) -> None:
        if self._debug:
            logger.debug(message, *args)
