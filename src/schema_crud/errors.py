"""Exception hierarchy for schema-crud.

Every error raised by the engine derives from ``SchemaCrudError`` and
carries a ``status_code`` hint so a web layer can map it to a response
without inspecting messages.

Usage:
    from schema_crud.errors import SchemaNotFoundError

    try:
        schema = service.get_schema("users")
    except SchemaNotFoundError as e:
        return {"error": str(e)}, e.status_code
"""

from typing import Any


class SchemaCrudError(Exception):
    """Base class for all schema-crud errors."""

    status_code: int = 500


class SchemaNotFoundError(SchemaCrudError):
    """Raised when no schema document exists for a model."""

    status_code = 404


class SchemaValidationError(SchemaCrudError):
    """Raised when a schema document is structurally invalid."""

    status_code = 500


class RelationshipConfigurationError(SchemaCrudError):
    """Raised when a relationship cannot be traversed as configured."""

    status_code = 500


class InvalidModelNameError(SchemaCrudError):
    """Raised when a model reference contains illegal characters."""

    status_code = 400


class UnknownContextError(SchemaCrudError):
    """Raised when a filtered view is requested for an unknown context name."""

    status_code = 400


class ConnectionNotFoundError(SchemaCrudError):
    """Raised when a connection name has no configured profile."""

    status_code = 500


class CacheUnavailableError(SchemaCrudError):
    """Raised when the persistent schema cache cannot be reached."""

    status_code = 503


class RecordNotFoundError(SchemaCrudError):
    """Raised when a record lookup by primary key finds nothing."""

    status_code = 404


class RecordValidationError(SchemaCrudError):
    """Raised when a create/update payload fails field validation.

    Attributes:
        errors: One dict per failure with ``field`` and ``message`` keys.
    """

    status_code = 422

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors: list[dict[str, Any]] = errors or []
