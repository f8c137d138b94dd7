"""Tests for connection registry and engine factory."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from schema_crud.config.models import ConnectionProfile, EngineConfig
from schema_crud.errors import ConnectionNotFoundError
from schema_crud.factory import ConnectionRegistry, create_cache, create_service, resolve_url
from schema_crud.schema.cache import RedisCacheBackend
from schema_crud.service import SchemaService


def _config(**overrides) -> EngineConfig:
    return EngineConfig(
        connections={
            "default": ConnectionProfile(url="postgresql://u:p@localhost/app"),
            "legacy": ConnectionProfile(url="mysql://u:p@localhost/app", provider="mysql"),
        },
        **overrides,
    )


class TestResolveUrl:
    """Verify password placeholder substitution."""

    def test_substitutes_quoted_password(self) -> None:
        profile = ConnectionProfile(url="postgresql://u:[YOUR-PASSWORD]@h/db", db_password="p@ss/word")
        assert resolve_url(profile) == "postgresql://u:p%40ss%2Fword@h/db"

    def test_no_placeholder(self) -> None:
        profile = ConnectionProfile(url="postgresql://u:p@h/db", db_password="other")
        assert resolve_url(profile) == "postgresql://u:p@h/db"

    def test_no_password(self) -> None:
        profile = ConnectionProfile(url="postgresql://u:[YOUR-PASSWORD]@h/db")
        assert resolve_url(profile) == "postgresql://u:[YOUR-PASSWORD]@h/db"


class TestConnectionRegistry:
    """Verify lazy client creation per connection name."""

    def test_registered_client(self) -> None:
        client = AsyncMock()
        registry = ConnectionRegistry(clients={"db1": client})
        assert registry.get("db1") is client

    def test_none_means_default(self) -> None:
        client = AsyncMock()
        registry = ConnectionRegistry(_config(default_connection="main"), clients={"main": client})
        assert registry.default_name == "main"
        assert registry.get(None) is client

    def test_unknown_connection(self) -> None:
        with pytest.raises(ConnectionNotFoundError, match="'nope' is not configured"):
            ConnectionRegistry(_config()).get("nope")

    def test_unsupported_provider(self) -> None:
        with pytest.raises(ConnectionNotFoundError, match="unsupported provider 'mysql'"):
            ConnectionRegistry(_config()).get("legacy")

    def test_adapter_created_once(self) -> None:
        with patch("schema_crud.factory.AsyncPostgresAdapter") as adapter_cls:
            registry = ConnectionRegistry(_config())
            first = registry.get()
            second = registry.get("default")
        assert first is second
        adapter_cls.assert_called_once_with("postgresql://u:p@localhost/app")

    def test_names(self) -> None:
        registry = ConnectionRegistry(_config(), clients={"extra": AsyncMock()})
        assert registry.names() == ["default", "extra", "legacy"]

    @pytest.mark.asyncio
    async def test_close_all(self) -> None:
        first, second = AsyncMock(), AsyncMock()
        registry = ConnectionRegistry(clients={"a": first})
        registry.register("b", second)
        await registry.close()
        first.close.assert_awaited_once()
        second.close.assert_awaited_once()
        assert registry.names() == []


class TestCreateCache:
    """Verify the persistent tier is wired from config."""

    def test_memory_only(self) -> None:
        assert create_cache(EngineConfig()).backend is None

    def test_redis_backend(self) -> None:
        with patch("schema_crud.schema.cache.redis.from_url", return_value=MagicMock()) as from_url:
            cache = create_cache(EngineConfig(cache_enabled=True, cache_url="redis://localhost:6379/0"))
        assert isinstance(cache.backend, RedisCacheBackend)
        from_url.assert_called_once_with("redis://localhost:6379/0", decode_responses=True)

    def test_enabled_without_url(self) -> None:
        with pytest.raises(ValueError, match="cache_url"):
            create_cache(EngineConfig(cache_enabled=True))


def test_create_service() -> None:
    config = _config(schema_path="docs")
    service = create_service(config)
    assert isinstance(service, SchemaService)
    assert service.config is config
    assert str(service.loader.schema_path) == "docs"
    assert service.registry.default_name == "default"
