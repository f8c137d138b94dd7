"""Database adapters for schema-crud.

Usage:
    >>> from schema_crud.adapters import DatabaseClient, AsyncPostgresAdapter
"""

from schema_crud.adapters.base import DatabaseClient
from schema_crud.adapters.postgres import AsyncPostgresAdapter, create_async_engine_pooled

__all__ = ["DatabaseClient", "AsyncPostgresAdapter", "create_async_engine_pooled"]
