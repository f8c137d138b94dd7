"""Shared fixtures: an on-disk schema store and a mocked database client."""

import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from schema_crud.config.models import EngineConfig
from schema_crud.factory import ConnectionRegistry
from schema_crud.schema.cache import SchemaCache
from schema_crud.service import SchemaService


USERS_DOCUMENT = {
    "model": "users",
    "table": "users",
    "title": "Users",
    "singularTitle": "User",
    "softDelete": True,
    "titleField": "name",
    "defaultSort": {"name": "asc"},
    "permissions": {"read": "view_users", "update": "update_users"},
    "fields": {
        "id": {"type": "int", "autoIncrement": True, "showIn": ["detail"]},
        "name": {
            "type": "varchar",
            "showIn": ["list", "form", "detail"],
            "sortable": True,
            "filterable": True,
            "filterType": "like",
            "searchable": True,
            "validation": {"required": True, "length": {"max": 50}},
        },
        "email": {
            "type": "email",
            "listable": True,
            "searchable": True,
            "validation": {"unique": True},
        },
        "password": {"type": "password", "showIn": ["create", "edit"]},
        "active": {"type": "boolean-tgl", "listable": True, "filterable": True},
        "created_at": {"type": "timestamp", "readonly": True},
    },
    "relationships": [
        {
            "name": "roles",
            "type": "many_to_many",
            "pivotTable": "role_user",
            "foreignKey": "user_id",
            "relatedKey": "role_id",
        },
        {
            "name": "permissions",
            "type": "belongs_to_many_through",
            "through": "roles",
            "first_pivot_table": "role_user",
            "first_foreign_key": "user_id",
            "first_related_key": "role_id",
            "second_pivot_table": "permission_role",
            "second_foreign_key": "role_id",
            "second_related_key": "permission_id",
        },
    ],
    "details": [
        {"model": "roles", "foreignKey": "user_id"},
        {"model": "posts", "foreignKey": "user_id", "listFields": ["title"]},
    ],
}

ROLES_DOCUMENT = {
    "model": "roles",
    "table": "roles",
    "fields": {
        "id": {"type": "integer", "autoIncrement": True},
        "name": {"type": "string", "listable": True, "sortable": True},
    },
}

PERMISSIONS_DOCUMENT = {
    "model": "permissions",
    "table": "permissions",
    "softDelete": True,
    "fields": {
        "id": {"type": "integer", "autoIncrement": True},
        "slug": {"type": "string", "listable": True},
    },
}

DB1_USERS_DOCUMENT = {
    "model": "users",
    "table": "app_users",
    "fields": {"id": {"type": "integer", "autoIncrement": True}},
}


def write_document(root: Path, model: str, document: dict, connection: str | None = None) -> Path:
    directory = root / connection if connection else root
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{model}.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


@pytest.fixture
def schema_store(tmp_path: Path) -> Path:
    """Document store with users, roles, permissions and a db1/users override."""
    root = tmp_path / "schemas"
    write_document(root, "users", USERS_DOCUMENT)
    write_document(root, "roles", ROLES_DOCUMENT)
    write_document(root, "permissions", PERMISSIONS_DOCUMENT)
    write_document(root, "users", DB1_USERS_DOCUMENT, connection="db1")
    return root


@pytest.fixture
def mock_client() -> AsyncMock:
    """DatabaseClient double; every protocol method is an AsyncMock."""
    client = AsyncMock()
    client.select.return_value = []
    client.fetch_all.return_value = []
    client.fetch_value.return_value = 0
    return client


@pytest.fixture
def service(schema_store: Path, mock_client: AsyncMock) -> SchemaService:
    config = EngineConfig(schema_path=str(schema_store))
    registry = ConnectionRegistry(config, clients={"default": mock_client, "db1": mock_client})
    return SchemaService(config, cache=SchemaCache(), registry=registry)


@pytest.fixture
def users_document() -> dict:
    """Fresh copy of the raw users document."""
    return json.loads(json.dumps(USERS_DOCUMENT))
