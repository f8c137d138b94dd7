"""Structural validation of raw schema documents.

Pure logic -- no I/O.  Runs once per load, before normalization and
caching, so a cached schema is always structurally sound.

Usage:
    from schema_crud.schema.validator import validate_document

    validate_document(document, "users")   # raises SchemaValidationError
"""

import logging
from typing import Any

from pydantic.alias_generators import to_camel

from schema_crud.errors import SchemaValidationError
from schema_crud.schema.models import RelationshipType

logger = logging.getLogger(__name__)

REQUIRED_KEYS: tuple[str, ...] = ("model", "table")

RELATIONSHIP_TYPES: frozenset[str] = frozenset(t.value for t in RelationshipType)

_PIVOT_KEYS: tuple[str, ...] = ("pivot_table", "foreign_key", "related_key")

_THROUGH_KEYS: tuple[str, ...] = (
    "first_pivot_table",
    "first_foreign_key",
    "first_related_key",
    "second_pivot_table",
    "second_foreign_key",
    "second_related_key",
)


def _get(mapping: dict[str, Any], key: str) -> Any:
    """Read *key* in snake_case or camelCase spelling."""
    if key in mapping:
        return mapping[key]
    return mapping.get(to_camel(key))


def validate_document(document: dict[str, Any], model: str) -> None:
    """Validate a raw schema document.

    Checks:
    - ``model`` and ``table`` are present and non-empty
    - ``fields`` (if present) is an object of objects
    - a field's ``show_in`` (if present) is a list of context names
    - every relationship has a ``name`` and a recognised ``type``
    - many-to-many relationships declare ``pivot_table``, ``foreign_key``
      and ``related_key``
    - two-hop relationships declare both pivot hops
    - every ``details`` entry names a ``model``

    Args:
        document: Raw document, as parsed from JSON.
        model: Requested model name, used in error messages.

    Raises:
        SchemaValidationError: On the first structural problem found.

    Examples:
        >>> validate_document({"model": "users", "table": "users"}, "users")

        >>> validate_document({"model": "users"}, "users")
        Traceback (most recent call last):
        ...
        schema_crud.errors.SchemaValidationError: Schema for model 'users' is missing required field: table
    """
    for key in REQUIRED_KEYS:
        if not document.get(key):
            raise SchemaValidationError(
                f"Schema for model '{model}' is missing required field: {key}"
            )

    if document["model"] != model:
        logger.warning(
            "Schema model name '%s' does not match requested model '%s'",
            document["model"],
            model,
        )

    fields = document.get("fields", {})
    if not isinstance(fields, dict):
        raise SchemaValidationError(
            f"Schema for model '{model}' must define 'fields' as an object"
        )
    for name, field in fields.items():
        if not isinstance(field, dict):
            raise SchemaValidationError(
                f"Field '{name}' in schema '{model}' must be an object"
            )
        show_in = _get(field, "show_in")
        if show_in is not None and (
            not isinstance(show_in, list) or not all(isinstance(context, str) for context in show_in)
        ):
            raise SchemaValidationError(
                f"Field '{name}' in schema '{model}' must define 'show_in' as a list of context names"
            )

    relationships = document.get("relationships", [])
    if not isinstance(relationships, list):
        raise SchemaValidationError(
            f"Schema for model '{model}' must define 'relationships' as a list"
        )
    for relationship in relationships:
        _validate_relationship(relationship, model)

    details = document.get("details", [])
    if not isinstance(details, list):
        raise SchemaValidationError(
            f"Schema for model '{model}' must define 'details' as a list"
        )
    for detail in details:
        if not isinstance(detail, dict) or not detail.get("model"):
            raise SchemaValidationError(
                f"Every 'details' entry in schema '{model}' must name a 'model'"
            )


def _validate_relationship(relationship: Any, model: str) -> None:
    if not isinstance(relationship, dict) or not relationship.get("name"):
        raise SchemaValidationError(
            f"Every relationship in schema '{model}' must be an object with a 'name'"
        )

    name = relationship["name"]
    rel_type = relationship.get("type", RelationshipType.MANY_TO_MANY.value)
    if rel_type not in RELATIONSHIP_TYPES:
        raise SchemaValidationError(
            f"Relationship '{name}' in schema '{model}' has unknown type '{rel_type}'. "
            f"Expected one of: {', '.join(sorted(RELATIONSHIP_TYPES))}"
        )

    if rel_type in (RelationshipType.MANY_TO_MANY.value, RelationshipType.BELONGS_TO_MANY.value):
        required = _PIVOT_KEYS
    elif rel_type == RelationshipType.BELONGS_TO_MANY_THROUGH.value:
        required = _THROUGH_KEYS
    else:
        return

    missing = [key for key in required if not _get(relationship, key)]
    if missing:
        raise SchemaValidationError(
            f"Relationship '{name}' in schema '{model}' is missing required "
            f"configuration: {', '.join(missing)}"
        )
