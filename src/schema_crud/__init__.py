"""schema-crud: schema-driven CRUD entities, listings and relationships.

Describe a table once as a JSON document and get validated record
operations, context-filtered schema views, and sortable/filterable
listings that follow declared relationships.

Usage:
    from schema_crud import EngineConfig, SchemaService, ListingRequest
    from schema_crud import load_engine_config, create_service
"""

__version__ = "0.1.0"

# Adapters
from schema_crud.adapters.base import DatabaseClient
from schema_crud.adapters.postgres import AsyncPostgresAdapter

# Config
from schema_crud.config.loader import load_engine_config
from schema_crud.config.models import ConnectionProfile, EngineConfig

# Engine
from schema_crud.entity import SchemaEntity
from schema_crud.errors import (
    CacheUnavailableError,
    ConnectionNotFoundError,
    InvalidModelNameError,
    RecordNotFoundError,
    RecordValidationError,
    RelationshipConfigurationError,
    SchemaCrudError,
    SchemaNotFoundError,
    SchemaValidationError,
)
from schema_crud.factory import ConnectionRegistry, create_service, resolve_url
from schema_crud.query.builder import ListingRequest, ListingResult
from schema_crud.schema.models import Schema, parse_model_reference
from schema_crud.service import SchemaService

__all__ = [
    # Adapters
    "DatabaseClient",
    "AsyncPostgresAdapter",
    # Config
    "load_engine_config",
    "ConnectionProfile",
    "EngineConfig",
    # Engine
    "SchemaService",
    "SchemaEntity",
    "Schema",
    "ListingRequest",
    "ListingResult",
    "parse_model_reference",
    # Factory
    "ConnectionRegistry",
    "create_service",
    "resolve_url",
    # Errors
    "SchemaCrudError",
    "SchemaNotFoundError",
    "SchemaValidationError",
    "RelationshipConfigurationError",
    "InvalidModelNameError",
    "ConnectionNotFoundError",
    "CacheUnavailableError",
    "RecordNotFoundError",
    "RecordValidationError",
]
