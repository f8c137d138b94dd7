"""Schema documents: models, loading, validation, normalization, caching and filtering.

Usage:
    from schema_crud.schema import SchemaLoader, validate_document, normalize_document
    from schema_crud.schema import Schema, filter_schema, parse_model_reference
    from schema_crud.schema import SchemaIntrospector, generate_schema
"""

from schema_crud.schema.cache import CacheBackend, RedisCacheBackend, SchemaCache, cache_key
from schema_crud.schema.filter import base_metadata, field_in_context, filter_schema
from schema_crud.schema.generator import generate_schema
from schema_crud.schema.introspector import ColumnInfo, ForeignKeyInfo, SchemaIntrospector, TableInfo
from schema_crud.schema.loader import SchemaLoader
from schema_crud.schema.models import (
    DetailConfig,
    FieldDef,
    FieldType,
    FilterType,
    FrozenDict,
    ModelReference,
    Relationship,
    RelationshipType,
    Schema,
    derive_visibility,
    parse_model_reference,
    thaw,
    validate_model_name,
)
from schema_crud.schema.normalizer import normalize_document
from schema_crud.schema.validator import validate_document

__all__ = [
    # Models
    "DetailConfig",
    "FieldDef",
    "FieldType",
    "FilterType",
    "FrozenDict",
    "ModelReference",
    "Relationship",
    "RelationshipType",
    "Schema",
    "derive_visibility",
    "parse_model_reference",
    "thaw",
    "validate_model_name",
    # Pipeline
    "SchemaLoader",
    "validate_document",
    "normalize_document",
    # Cache
    "CacheBackend",
    "RedisCacheBackend",
    "SchemaCache",
    "cache_key",
    # Filtering
    "base_metadata",
    "field_in_context",
    "filter_schema",
    # Generation
    "ColumnInfo",
    "ForeignKeyInfo",
    "SchemaIntrospector",
    "TableInfo",
    "generate_schema",
]
