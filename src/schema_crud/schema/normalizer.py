"""Rewrite shorthand and legacy document notations into canonical form.

Runs after validation on a plain dict and returns a new dict; the input
is never modified.  Steps, in order:

1. camelCase keys -> snake_case (document, field, relationship, detail)
2. ORM-style field attributes (``nullable``, ``unique``, ``length``, ...)
3. nested ``lookup``/``references`` -> flat ``lookup_*`` keys
4. legacy boolean sub-types (``boolean-tgl`` ...) -> ``boolean`` + ``ui``
5. type aliases (``int``, ``varchar``, ``timestamp`` ...) -> canonical type
6. derived ``visibility`` for every field

Usage:
    from schema_crud.schema.normalizer import normalize_document

    canonical = normalize_document(document)
"""

import copy
import logging
import re
from typing import Any

from pydantic.alias_generators import to_snake

from schema_crud.errors import SchemaValidationError
from schema_crud.schema.models import FieldType, derive_visibility

logger = logging.getLogger(__name__)

# Legacy boolean sub-type suffix -> UI hint
BOOLEAN_UI_HINTS: dict[str, str] = {
    "tgl": "toggle",
    "chk": "checkbox",
    "sel": "select",
    "yn": "select",
}

_BOOLEAN_SUBTYPE_RE = re.compile(r"^boolean-(tgl|chk|sel|yn)$")
_TEXTAREA_RE = re.compile(r"^textarea(?:-r(\d+))?(?:c(\d+))?$")
_CANONICAL_TYPES = frozenset(t.value for t in FieldType)

TYPE_ALIASES: dict[str, FieldType] = {
    "int": FieldType.INTEGER,
    "bigint": FieldType.INTEGER,
    "smallint": FieldType.INTEGER,
    "bool": FieldType.BOOLEAN,
    "varchar": FieldType.STRING,
    "char": FieldType.STRING,
    "double": FieldType.FLOAT,
    "numeric": FieldType.DECIMAL,
    "timestamp": FieldType.DATETIME,
    "array": FieldType.JSON,
    "jsonb": FieldType.JSON,
}


def normalize_document(document: dict[str, Any]) -> dict[str, Any]:
    """Return the canonical form of a validated document.

    Args:
        document: Validated raw document.

    Returns:
        New dict with snake_case keys, canonical field types and a derived
        ``visibility`` tuple on every field.

    Raises:
        SchemaValidationError: If a field declares an unknown type.
    """
    result = _snake_keys(copy.deepcopy(document))

    fields = {}
    for name, field in result.get("fields", {}).items():
        field = _snake_keys(field)
        field = normalize_orm_attributes(field)
        field = normalize_lookup_attributes(field)
        field = normalize_boolean_type(field)
        field["type"] = resolve_field_type(field.get("type"), name, result.get("model", "?"))
        field["visibility"] = derive_visibility(field)
        fields[name] = field
    result["fields"] = fields

    result["relationships"] = [_snake_keys(r) for r in result.get("relationships", [])]
    result["details"] = [_snake_keys(d) for d in result.get("details", [])]

    return result


def _snake_keys(mapping: dict[str, Any]) -> dict[str, Any]:
    """Rename camelCase keys to snake_case; an explicit snake key wins."""
    result: dict[str, Any] = {}
    for key, value in mapping.items():
        snake = to_snake(key)
        if snake != key and snake in mapping:
            continue
        result[snake] = value
    return result


# ============================================================================
# Field-level steps
# ============================================================================


def normalize_orm_attributes(field: dict[str, Any]) -> dict[str, Any]:
    """Map common ORM attribute spellings onto the document's own keys.

    Example:
        >>> normalize_orm_attributes({"nullable": False, "length": 50})["validation"]
        {'length': {'max': 50}}
    """
    field = dict(field)
    legacy = field.pop("validate", None)
    validation = dict(field.get("validation") or legacy or {})

    if "nullable" in field:
        nullable = field.pop("nullable")
        field.setdefault("required", not nullable)

    if "unique" in field:
        validation.setdefault("unique", field.pop("unique"))

    if "length" in field:
        validation.setdefault("length", {"max": field.pop("length")})

    if "default_value" in field:
        field.setdefault("default", field.pop("default_value"))

    ui = field.get("ui")
    if isinstance(ui, dict):
        for key in ("label", "show_in", "sortable", "filterable"):
            if key in ui:
                field.setdefault(key, ui[key])
        field["ui"] = ui.get("widget")
        if ui.get("type") == "lookup" and field.get("type", "integer") == "integer":
            field["type"] = FieldType.SMARTLOOKUP.value

    if validation:
        field["validation"] = validation
    return field


def normalize_lookup_attributes(field: dict[str, Any]) -> dict[str, Any]:
    """Flatten ``lookup``/``references`` objects into ``lookup_model``, ``lookup_id``, ``lookup_desc``."""
    field = dict(field)
    references = field.pop("references", None)
    if isinstance(references, dict):
        field.setdefault("lookup", {
            "model": references.get("model") or references.get("table"),
            "id": references.get("key") or references.get("id") or "id",
            "desc": references.get("display") or references.get("desc") or "name",
        })
        if field.get("type", "integer") == "integer" and ("display" in references or "desc" in references):
            field["type"] = FieldType.SMARTLOOKUP.value

    if field.get("type") != FieldType.SMARTLOOKUP.value:
        return field

    lookup = field.get("lookup")
    if isinstance(lookup, dict):
        for key in ("model", "id", "desc"):
            if key in lookup:
                field.setdefault(f"lookup_{key}", lookup[key])
    for key in ("model", "id", "desc"):
        if key in field:
            field.setdefault(f"lookup_{key}", field[key])
    return field


def normalize_boolean_type(field: dict[str, Any]) -> dict[str, Any]:
    """Collapse ``boolean-<ui>`` spellings into ``boolean`` plus a ``ui`` hint.

    An explicit ``ui`` is preserved.  Plain booleans default to ``checkbox``.

    Examples:
        >>> normalize_boolean_type({"type": "boolean-tgl"})
        {'type': 'boolean', 'ui': 'toggle'}
        >>> normalize_boolean_type({"type": "boolean-yn", "ui": "radio"})
        {'type': 'boolean', 'ui': 'radio'}
    """
    field = dict(field)
    match = _BOOLEAN_SUBTYPE_RE.match(str(field.get("type", "")))
    if match:
        field["type"] = FieldType.BOOLEAN.value
        if not field.get("ui"):
            field["ui"] = BOOLEAN_UI_HINTS[match.group(1)]
    elif field.get("type") == FieldType.BOOLEAN.value and not field.get("ui"):
        field["ui"] = "checkbox"
    return field


def resolve_field_type(raw_type: Any, name: str, model: str) -> str:
    """Map a declared type (or alias) to a canonical ``FieldType`` value.

    ``textarea-r<rows>c<cols>`` resolves to ``text``; the row count is not
    part of the type and is left to the ``rows`` key.

    Raises:
        SchemaValidationError: If the type is not recognised.
    """
    if raw_type is None:
        return FieldType.STRING.value

    value = str(raw_type).lower()
    if value in _CANONICAL_TYPES:
        return value
    if value in TYPE_ALIASES:
        return TYPE_ALIASES[value].value
    if _TEXTAREA_RE.match(value):
        return FieldType.TEXT.value

    raise SchemaValidationError(
        f"Field '{name}' in schema '{model}' has unknown type '{raw_type}'"
    )

