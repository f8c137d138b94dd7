"""Context-specific views of a canonical schema.

A consumer asks for the subset of a schema it needs: a list page, a
form, a detail page, or a metadata-only lookup.  Every view is a new
plain dict; the cached ``Schema`` is never modified.

Field inclusion per context:

- ``list``: opt-in.  ``show_in`` contains ``list``, or (without
  ``show_in``) the field sets ``listable: true``.
- ``form``/``create``/``edit``: opt-out.  Included unless the derived
  visibility excludes it.  Read-only, auto-increment and computed
  fields are never part of a form.
- ``detail``: opt-out.  Included unless ``viewable: false`` or the type
  is sensitive.
- ``meta``: no fields at all.

Usage:
    from schema_crud.schema.filter import filter_schema

    view = filter_schema(schema, "list")
    views = filter_schema(schema, "list,form")   # {"model": ..., "contexts": {...}}
"""

import logging
from typing import Any

from schema_crud.errors import UnknownContextError
from schema_crud.schema.models import SENSITIVE_FIELD_TYPES, FieldDef, FieldType, Schema, thaw

logger = logging.getLogger(__name__)

FORM_CONTEXTS: frozenset[str] = frozenset({"form", "create", "edit"})

CONTEXTS: frozenset[str] = frozenset({"list", "detail", "meta"}) | FORM_CONTEXTS

FULL_CONTEXT = "full"

# Pass-through UI keys, per view
_LIST_UI_KEYS = ("width", "field_template")
_FORM_UI_KEYS = (
    "placeholder",
    "description",
    "icon",
    "rows",
    "lookup_model",
    "lookup_id",
    "lookup_desc",
)
_DETAIL_UI_KEYS = ("description", "field_template")


# ============================================================================
# Public API
# ============================================================================


def filter_schema(schema: Schema, context: str | None = None, debug_mode: bool = False) -> dict[str, Any]:
    """Build the view of *schema* for *context*.

    Args:
        schema: Canonical schema.
        context: ``None``, blank or ``"full"`` for the complete document, a
            single context name, or a comma-separated list of names.
        debug_mode: Log which fields each context kept.

    Returns:
        A new dict.  For several contexts: top-level metadata plus a
        ``contexts`` map keyed by context name.

    Raises:
        UnknownContextError: If a single context name is not recognised.
            Unknown names inside a comma-separated list are skipped with a warning.

    Example:
        >>> schema = Schema(model="users", table="users", fields={"name": {"listable": True}})
        >>> list(filter_schema(schema, "list")["fields"])
        ['name']
        >>> "fields" in filter_schema(schema, "meta")
        False
    """
    if context is not None:
        context = context.strip()
    if not context or context == FULL_CONTEXT:
        return schema.model_dump(mode="json", exclude={"source_connection"})

    if "," in context:
        names = [name.strip() for name in context.split(",") if name.strip()]
        result = base_metadata(schema)
        result["contexts"] = {}
        for name in names:
            if name not in CONTEXTS:
                logger.warning("Skipping unknown schema context '%s' for model '%s'", name, schema.model)
                continue
            result["contexts"][name] = _context_view(schema, name, debug_mode)
        return result

    if context not in CONTEXTS:
        raise UnknownContextError(
            f"Unknown schema context '{context}'. Expected one of: {', '.join(sorted(CONTEXTS))}"
        )

    if context == "meta":
        return _context_view(schema, context, debug_mode)
    return {**base_metadata(schema), **_context_view(schema, context, debug_mode)}


def base_metadata(schema: Schema) -> dict[str, Any]:
    """Context-independent metadata shared by every non-meta view."""
    return {
        "model": schema.model,
        "title": schema.display_title,
        "singular_title": schema.display_singular_title,
        "primary_key": schema.primary_key,
        "title_field": schema.title_field,
        "description": schema.description,
        "permissions": dict(schema.permissions),
        "actions": [thaw(action) for action in schema.actions],
    }


def field_in_context(field: FieldDef, context: str) -> bool:
    """True if *field* belongs in the *context* view.

    Examples:
        >>> field_in_context(FieldDef(), "list")
        False
        >>> field_in_context(FieldDef(listable=True), "list")
        True
        >>> field_in_context(FieldDef(readonly=True), "form")
        False
    """
    if context == "list":
        if field.show_in is not None:
            return "list" in field.show_in
        return field.listable is True

    if context in FORM_CONTEXTS:
        if not field.is_writable:
            return False
        wanted = ("create", "edit") if context == "form" else (context,)
        return any(name in field.visibility for name in wanted)

    if context == "detail":
        return "detail" in field.visibility and field.type not in SENSITIVE_FIELD_TYPES

    return False


# ============================================================================
# Per-context views
# ============================================================================


def _context_view(schema: Schema, context: str, debug_mode: bool) -> dict[str, Any]:
    if context == "meta":
        return {
            "model": schema.model,
            "title": schema.display_title,
            "singular_title": schema.display_singular_title,
            "primary_key": schema.primary_key,
            "permissions": dict(schema.permissions),
        }

    if context == "list":
        view = {
            "fields": {
                name: _list_field(name, field)
                for name, field in schema.fields.items()
                if field_in_context(field, "list")
            },
            "default_sort": dict(schema.default_sort),
        }
    elif context in FORM_CONTEXTS:
        view = {
            "fields": {
                name: _form_field(name, field)
                for name, field in schema.fields.items()
                if field_in_context(field, context)
            },
        }
    else:
        view = {
            "fields": {
                name: _detail_field(name, field)
                for name, field in schema.fields.items()
                if field_in_context(field, "detail")
            },
            "details": [detail.model_dump(mode="json", exclude_none=True) for detail in schema.details],
            "relationships": [rel.model_dump(mode="json", exclude_none=True) for rel in schema.relationships],
            "actions": [thaw(action) for action in schema.actions],
            "title_field": schema.title_field,
        }

    if debug_mode:
        logger.debug(
            "Filtered schema '%s' for context '%s': %s",
            schema.model,
            context,
            ", ".join(view["fields"]) or "(no fields)",
        )
    return view


def _label(name: str, field: FieldDef) -> str:
    return field.label or name


def _pass_through(field: FieldDef, keys: tuple[str, ...]) -> dict[str, Any]:
    return {key: field.extra(key) for key in keys if field.extra(key) is not None}


def _list_field(name: str, field: FieldDef) -> dict[str, Any]:
    view: dict[str, Any] = {
        "type": field.type.value,
        "label": _label(name, field),
        "sortable": field.sortable is True,
        "filterable": field.filterable is True,
    }
    if field.filterable:
        view["filter_type"] = field.filter_type.value
    if field.date_format:
        view["date_format"] = field.date_format
    if field.ui:
        view["ui"] = field.ui
    view.update(_pass_through(field, _LIST_UI_KEYS))
    return view


def _form_field(name: str, field: FieldDef) -> dict[str, Any]:
    view: dict[str, Any] = {
        "type": field.type.value,
        "label": _label(name, field),
        "required": field.required,
        "editable": field.editable is not False,
        "validation": thaw(field.validation),
    }
    if field.default is not None:
        view["default"] = field.default
    if field.ui:
        view["ui"] = field.ui
    if field.show_in is not None:
        view["show_in"] = list(field.show_in)
    view.update(_pass_through(field, _FORM_UI_KEYS))
    return view


def _detail_field(name: str, field: FieldDef) -> dict[str, Any]:
    view: dict[str, Any] = {
        "type": field.type.value,
        "label": _label(name, field),
        "editable": field.editable is not False and field.is_writable,
        "readonly": field.readonly or field.type == FieldType.PASSWORD,
    }
    if field.default is not None:
        view["default"] = field.default
    if field.date_format:
        view["date_format"] = field.date_format
    view.update(_pass_through(field, _DETAIL_UI_KEYS))
    return view
