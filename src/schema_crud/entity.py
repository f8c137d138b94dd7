"""Schema-bound data access for one table.

``SchemaEntity`` is configured entirely from a canonical schema: table,
connection, writable columns, value casts, timestamps and soft-delete
column.  Record operations are async and run through the client the
connection registry hands out for the entity's connection.

Usage:
    from schema_crud.entity import SchemaEntity

    users = SchemaEntity(schema, registry)
    user = await users.create({"name": "Ann", "email": "ann@example.com"})
    await users.update(user["id"], {"name": "Anne"})
    await users.delete(user["id"])      # soft delete when enabled
    await users.attach("roles", user["id"], [1, 2])
"""

import json
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Iterable

from schema_crud.adapters.base import DatabaseClient
from schema_crud.errors import (
    RecordNotFoundError,
    RecordValidationError,
    RelationshipConfigurationError,
)
from schema_crud.query.builder import ListingRequest, ListingResult, deleted_at_column
from schema_crud.query.listing import run_listing
from schema_crud.query.transform import cast_value
from schema_crud.passwords import hash_password
from schema_crud.schema.models import SENSITIVE_FIELD_TYPES, CastType, Relationship, Schema
from schema_crud.validation import RecordValidator

if TYPE_CHECKING:
    from schema_crud.factory import ConnectionRegistry

logger = logging.getLogger(__name__)

CREATED_AT = "created_at"
UPDATED_AT = "updated_at"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SchemaEntity:
    """A table binding derived from a schema.

    Args:
        schema: Canonical schema to configure from.
        registry: Connection registry supplying database clients.  Only
            needed for record operations.
        connection: Request-time connection override.  Wins over the
            connection implied by the schema.
        debug_mode: Log configuration and SQL at debug level.
    """

    def __init__(
        self,
        schema: Schema,
        registry: "ConnectionRegistry | None" = None,
        connection: str | None = None,
        debug_mode: bool = False,
    ):
        self._registry = registry
        self._override: str | None = None
        self._debug = debug_mode
        self.configure_from_schema(schema)
        if connection is not None:
            self.set_connection(connection)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure_from_schema(self, schema: Schema) -> "SchemaEntity":
        """(Re)bind this entity to *schema* and derive its column metadata."""
        self._schema = schema
        self._fillable = frozenset(name for name, field in schema.fields.items() if field.is_writable)
        self._casts = {
            name: field.traits.cast
            for name, field in schema.fields.items()
            if field.traits.cast is not None
        }
        self._validator = RecordValidator(schema)
        if self._debug:
            logger.debug(
                "Configured entity '%s': table=%s connection=%s fillable=%s soft_delete=%s",
                schema.model,
                schema.table,
                self.connection,
                sorted(self._fillable),
                self.get_deleted_at_column(),
            )
        return self

    def set_connection(self, name: str | None) -> None:
        """Explicit connection override; ``None`` restores schema-derived resolution."""
        self._override = name

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def table(self) -> str:
        return self._schema.table

    @property
    def primary_key(self) -> str:
        return self._schema.primary_key

    @property
    def connection(self) -> str | None:
        """Effective connection name (``None`` = registry default).

        Precedence: explicit override, then the connection directory the
        document was loaded from, then the document's ``connection`` key.
        """
        return self._override or self._schema.source_connection or self._schema.connection

    @property
    def fillable(self) -> frozenset[str]:
        """Writable columns: all fields except auto-increment, read-only and computed."""
        return self._fillable

    @property
    def casts(self) -> dict[str, CastType]:
        return dict(self._casts)

    @property
    def timestamps(self) -> bool:
        return self._schema.timestamps

    @property
    def validator(self) -> RecordValidator:
        return self._validator

    def get_deleted_at_column(self) -> str | None:
        """Soft-delete column, or ``None`` (never an empty string)."""
        return deleted_at_column(self._schema)

    def is_soft_deleted(self, row: dict[str, Any]) -> bool:
        column = self.get_deleted_at_column()
        return column is not None and row.get(column) is not None

    def cast_row(self, row: dict[str, Any]) -> dict[str, Any]:
        """Apply the type casts to a raw row."""
        return {
            name: cast_value(self._schema.fields[name], value) if name in self._casts else value
            for name, value in row.items()
        }

    # ------------------------------------------------------------------
    # Record Operations
    # ------------------------------------------------------------------

    @property
    def client(self) -> DatabaseClient:
        if self._registry is None:
            raise RuntimeError(f"Entity '{self._schema.model}' has no connection registry")
        return self._registry.get(self.connection)

    async def find(self, record_id: Any, with_trashed: bool = False) -> dict[str, Any]:
        """Fetch one row by primary key.

        Raises:
            RecordNotFoundError: If no (non-deleted) row has *record_id*.
        """
        filters: dict[str, Any] = {self.primary_key: record_id}
        column = self.get_deleted_at_column()
        if column is not None and not with_trashed:
            filters[column] = None

        rows = await self.client.select(self.table, "*", filters)
        if not rows:
            raise RecordNotFoundError(f"{self._schema.display_singular_title} '{record_id}' not found")
        return self.cast_row(rows[0])

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        """Validate and insert a record; returns the stored row.

        Raises:
            RecordValidationError: If the payload fails validation or a
                ``unique`` field value is already taken.
        """
        clean = self._validator.validate(data)
        await self._check_unique(clean)
        row = self._prepare_write(clean, creating=True)
        if self._debug:
            logger.debug("Inserting into %s: %s", self.table, sorted(row))
        return self.cast_row(await self.client.insert(self.table, row))

    async def update(self, record_id: Any, data: dict[str, Any]) -> dict[str, Any]:
        """Validate supplied fields and update the record.

        Raises:
            RecordNotFoundError: If the record does not exist.
            RecordValidationError: If the payload fails validation.
        """
        await self.find(record_id)
        clean = self._validator.validate(data, partial=True)
        await self._check_unique(clean, exclude_id=record_id)
        row = self._prepare_write(clean, creating=False)
        if not row:
            return await self.find(record_id)
        try:
            updated = await self.client.update(self.table, row, {self.primary_key: record_id})
        except ValueError as e:
            raise RecordNotFoundError(str(e)) from e
        return self.cast_row(updated)

    async def delete(self, record_id: Any) -> None:
        """Soft delete when the schema enables it, hard delete otherwise."""
        await self.find(record_id)
        column = self.get_deleted_at_column()
        if column is not None:
            await self.client.update(self.table, {column: _utcnow()}, {self.primary_key: record_id})
        else:
            await self.client.delete(self.table, {self.primary_key: record_id})

    async def restore(self, record_id: Any) -> dict[str, Any]:
        """Clear the soft-delete marker on a record.

        Raises:
            ValueError: If the schema does not use soft delete.
            RecordNotFoundError: If the record does not exist.
        """
        column = self.get_deleted_at_column()
        if column is None:
            raise ValueError(f"Model '{self._schema.model}' does not use soft delete")
        await self.find(record_id, with_trashed=True)
        return self.cast_row(
            await self.client.update(self.table, {column: None}, {self.primary_key: record_id})
        )

    async def list(self, request: ListingRequest | None = None) -> ListingResult:
        """Listing over this entity's table."""
        return await run_listing(self.client, self._schema, request, self._debug)

    # ------------------------------------------------------------------
    # Pivot Maintenance
    # ------------------------------------------------------------------

    async def attach(self, relation: str, record_id: Any, related_ids: Iterable[Any]) -> int:
        """Link *record_id* to each of *related_ids* through the relation's pivot table.

        Existing links are left alone.

        Returns:
            Number of pivot rows inserted.
        """
        relationship = self._pivot_relationship(relation)
        pivot, fk, rk = relationship.pivot_table, relationship.foreign_key, relationship.related_key

        inserted = 0
        for related_id in related_ids:
            existing = await self.client.select(pivot, rk, {fk: record_id, rk: related_id})
            if existing:
                continue
            await self.client.insert(pivot, {fk: record_id, rk: related_id})
            inserted += 1
        return inserted

    async def detach(self, relation: str, record_id: Any, related_ids: Iterable[Any] | None = None) -> None:
        """Remove pivot rows for *related_ids*, or every link when ``None``."""
        relationship = self._pivot_relationship(relation)
        pivot, fk, rk = relationship.pivot_table, relationship.foreign_key, relationship.related_key

        if related_ids is None:
            await self.client.delete(pivot, {fk: record_id})
            return
        for related_id in related_ids:
            await self.client.delete(pivot, {fk: record_id, rk: related_id})

    def _pivot_relationship(self, relation: str) -> Relationship:
        relationship = self._schema.get_relationship(relation)
        if relationship is None or not relationship.is_many_to_many:
            raise RelationshipConfigurationError(
                f"Model '{self._schema.model}' has no many-to-many relationship named '{relation}'"
            )
        missing = relationship.missing_join_keys()
        if missing:
            raise RelationshipConfigurationError(
                f"Relationship '{relation}' on model '{self._schema.model}' is missing "
                f"required configuration: {', '.join(missing)}"
            )
        return relationship

    # ------------------------------------------------------------------
    # Write Helpers
    # ------------------------------------------------------------------

    def _prepare_write(self, clean: dict[str, Any], creating: bool) -> dict[str, Any]:
        row: dict[str, Any] = {}
        for name, value in clean.items():
            if name not in self._fillable:
                continue
            if self._schema.fields[name].type in SENSITIVE_FIELD_TYPES:
                # blank keeps the stored password
                if value is None or value == "":
                    continue
                value = hash_password(str(value))
            cast = self._casts.get(name)
            if cast == CastType.JSON and isinstance(value, (dict, list)):
                value = json.dumps(value)
            elif cast in (CastType.DATE, CastType.DATETIME):
                value = cast_value(self._schema.fields[name], value)
            row[name] = value

        if row and self.timestamps:
            now = _utcnow()
            if creating:
                row.setdefault(CREATED_AT, now)
            row[UPDATED_AT] = now
        return row

    async def _check_unique(self, clean: dict[str, Any], exclude_id: Any = None) -> None:
        errors = []
        for name in self._validator.unique_fields:
            if clean.get(name) is None:
                continue
            rows = await self.client.select(self.table, self.primary_key, {name: clean[name]})
            if any(str(row.get(self.primary_key)) != str(exclude_id) for row in rows):
                errors.append({"field": name, "message": "has already been taken"})
        if errors:
            raise RecordValidationError(
                f"Validation failed for '{self._schema.model}': "
                + "; ".join(f"{e['field']}: {e['message']}" for e in errors),
                errors,
            )
