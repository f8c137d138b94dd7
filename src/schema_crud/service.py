"""Engine entry point: schemas, filtered views, entities and listings.

``SchemaService`` is what a web layer talks to.  Each instance carries its
own configuration, cache and connection registry.

Usage:
    from schema_crud.config import EngineConfig
    from schema_crud.service import SchemaService

    service = SchemaService(EngineConfig(schema_path="schemas"))
    schema = service.get_schema("users")
    view = service.filter_schema_with_related(schema, "detail", include_related=True)
    result = await service.list_related("users", 5, "roles", ListingRequest(page=1))
"""

import logging
from typing import Any

from pydantic import ValidationError

from schema_crud.config.models import EngineConfig
from schema_crud.entity import SchemaEntity
from schema_crud.errors import SchemaCrudError, SchemaValidationError
from schema_crud.factory import ConnectionRegistry, create_cache
from schema_crud.query.builder import ListingRequest, ListingResult
from schema_crud.query.listing import run_relation_listing
from schema_crud.query.relations import related_model_name
from schema_crud.schema.cache import SchemaCache
from schema_crud.schema.filter import filter_schema
from schema_crud.schema.loader import SchemaLoader
from schema_crud.schema.models import Schema, parse_model_reference, validate_model_name
from schema_crud.schema.normalizer import normalize_document
from schema_crud.schema.validator import validate_document

logger = logging.getLogger(__name__)


class SchemaService:
    """Loads, caches and serves schemas, and binds them to tables.

    Args:
        config: Engine configuration.
        cache: Schema cache (default: built from *config*, Redis-backed when
            ``cache_enabled`` is set).
        registry: Connection registry (default: built from *config*).
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        cache: SchemaCache | None = None,
        registry: ConnectionRegistry | None = None,
    ):
        self._config = config or EngineConfig()
        self._loader = SchemaLoader(self._config.schema_path)
        self._cache = cache if cache is not None else create_cache(self._config)
        self._registry = registry if registry is not None else ConnectionRegistry(self._config)

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def loader(self) -> SchemaLoader:
        return self._loader

    @property
    def cache(self) -> SchemaCache:
        return self._cache

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Schemas
    # ------------------------------------------------------------------

    def get_schema(self, model: str, connection: str | None = None) -> Schema:
        """Canonical schema for *model*, loaded once per (model, connection).

        Raises:
            InvalidModelNameError: If *model* is not ``[A-Za-z0-9_]+``.
            SchemaNotFoundError: If no document exists.
            SchemaValidationError: If the document is invalid.
            CacheUnavailableError: If the persistent cache tier fails.
        """
        validate_model_name(model)
        cached = self._cache.get(model, connection)
        if cached is not None:
            return cached

        schema = self.load_schema(model, connection)
        self._cache.set(model, connection, schema)
        return schema

    def get_schema_by_reference(self, reference: str) -> Schema:
        """``get_schema`` for a ``model`` or ``model@connection`` reference."""
        ref = parse_model_reference(reference)
        return self.get_schema(ref.model, ref.connection)

    def load_schema(self, model: str, connection: str | None = None) -> Schema:
        """Load, validate and normalize a document, bypassing the cache."""
        document, source_connection = self._loader.load_document(model, connection)
        document = self._loader.apply_defaults(document)
        validate_document(document, model)
        canonical = normalize_document(document)
        try:
            schema = Schema.model_validate({**canonical, "source_connection": source_connection})
        except ValidationError as e:
            raise SchemaValidationError(f"Schema for model '{model}' is invalid: {e}") from e

        if self._config.debug_mode:
            logger.debug(
                "Loaded schema '%s' (connection=%s, source=%s, %d fields)",
                model,
                connection,
                source_connection,
                len(schema.fields),
            )
        return schema

    def filter_schema_for_context(self, schema: Schema, context: str | None = None) -> dict[str, Any]:
        """View of *schema* for one context, a comma-separated set, or ``None`` for all."""
        return filter_schema(schema, context, self._config.debug_mode)

    def filter_schema_with_related(
        self,
        schema: Schema,
        context: str | None = None,
        include_related: bool = False,
        related_context: str = "list",
        connection: str | None = None,
    ) -> dict[str, Any]:
        """Filtered view plus, optionally, a ``related_schemas`` map."""
        result = self.filter_schema_for_context(schema, context)
        if include_related:
            result["related_schemas"] = self.load_related_schemas(schema, related_context, connection)
        return result

    def load_related_schemas(
        self,
        schema: Schema,
        context: str = "list",
        connection: str | None = None,
    ) -> dict[str, dict[str, Any]]:
        """Filtered schemas of every table *schema* refers to.

        Names come from ``details[].model`` and ``relationships[].name``.
        A related schema that fails to load is logged and skipped.
        """
        names: list[str] = []
        for name in [d.model for d in schema.details] + [r.name for r in schema.relationships]:
            if name not in names:
                names.append(name)

        related: dict[str, dict[str, Any]] = {}
        for name in names:
            try:
                related_schema = self.get_schema(name, connection)
            except SchemaCrudError as e:
                logger.warning("Skipping related schema '%s' of '%s': %s", name, schema.model, e)
                continue
            related[name] = self.filter_schema_for_context(related_schema, context)
        return related

    # ------------------------------------------------------------------
    # Entities and Listings
    # ------------------------------------------------------------------

    def get_model_instance(self, model: str, connection: str | None = None) -> SchemaEntity:
        """Entity bound to *model* (``model`` or ``model@connection``)."""
        ref = parse_model_reference(model)
        connection = connection or ref.connection
        schema = self.get_schema(ref.model, connection)
        return SchemaEntity(
            schema,
            self._registry,
            connection=connection,
            debug_mode=self._config.debug_mode,
        )

    async def list_records(
        self,
        model: str,
        request: ListingRequest | None = None,
        connection: str | None = None,
    ) -> ListingResult:
        return await self.get_model_instance(model, connection).list(request)

    async def list_related(
        self,
        model: str,
        parent_id: Any,
        relation: str,
        request: ListingRequest | None = None,
        connection: str | None = None,
    ) -> ListingResult:
        """Rows of *relation* that belong to record *parent_id* of *model*.

        Raises:
            RelationshipConfigurationError: If the relation is unknown or
                lacks join keys.
        """
        parent = self.get_model_instance(model, connection)
        related = self.get_schema(related_model_name(parent.schema, relation), connection)
        return await run_relation_listing(
            parent.client,
            parent.schema,
            relation,
            parent_id,
            related,
            request,
            self._config.debug_mode,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def clear_cache(self, model: str, connection: str | None = None) -> None:
        self._cache.clear(model, connection)

    def clear_all_cache(self) -> None:
        self._cache.clear_all()

    async def close(self) -> None:
        await self._registry.close()
