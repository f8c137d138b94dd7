"""Pydantic models for schema documents.

This module contains the canonical, read-only representation of a table
document after loading, validation and normalization:
- Enums: FieldType, CastType, FilterType, RelationshipType
- Document models: FieldDef, Relationship, DetailConfig, Schema
- Model references: ModelReference, parse_model_reference()

All document models are frozen and their mappings are ``FrozenDict``
instances, so a cached ``Schema`` cannot be changed in place.  Consumers
build derived copies (see ``schema_crud.schema.filter``) and use ``thaw()``
when they need a mutable mapping.
"""

import copy
import re
from enum import Enum
from typing import Annotated, Any, NamedTuple, NoReturn

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator

from schema_crud.errors import InvalidModelNameError


# ============================================================================
# Enums
# ============================================================================


class FieldType(str, Enum):
    """Canonical field types accepted in a document."""

    INTEGER = "integer"
    STRING = "string"
    TEXT = "text"
    BOOLEAN = "boolean"
    DECIMAL = "decimal"
    FLOAT = "float"
    CURRENCY = "currency"
    DATE = "date"
    DATETIME = "datetime"
    JSON = "json"
    MULTISELECT = "multiselect"
    EMAIL = "email"
    URL = "url"
    PHONE = "phone"
    ZIP = "zip"
    ADDRESS = "address"
    PASSWORD = "password"
    SMARTLOOKUP = "smartlookup"


class CastType(str, Enum):
    """Value casts applied when reading a column."""

    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    JSON = "json"
    DATE = "date"
    DATETIME = "datetime"


class FilterType(str, Enum):
    """Per-field filter operators for listing queries."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    LIKE = "like"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IN = "in"
    BETWEEN = "between"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


class RelationshipType(str, Enum):
    """Ways a schema can traverse to another table."""

    ONE_TO_MANY = "one_to_many"
    MANY_TO_MANY = "many_to_many"
    BELONGS_TO_MANY = "belongs_to_many"
    BELONGS_TO_MANY_THROUGH = "belongs_to_many_through"


class TypeTraits(NamedTuple):
    """Static behaviour attached to a field type."""

    cast: CastType | None
    text_like: bool


# Cast and text-search eligibility per field type.
FIELD_TYPE_TRAITS: dict[FieldType, TypeTraits] = {
    FieldType.INTEGER: TypeTraits(CastType.INTEGER, False),
    FieldType.SMARTLOOKUP: TypeTraits(CastType.INTEGER, False),
    FieldType.DECIMAL: TypeTraits(CastType.FLOAT, False),
    FieldType.FLOAT: TypeTraits(CastType.FLOAT, False),
    FieldType.CURRENCY: TypeTraits(CastType.FLOAT, False),
    FieldType.BOOLEAN: TypeTraits(CastType.BOOLEAN, False),
    FieldType.JSON: TypeTraits(CastType.JSON, False),
    FieldType.MULTISELECT: TypeTraits(CastType.JSON, False),
    FieldType.DATE: TypeTraits(CastType.DATE, False),
    FieldType.DATETIME: TypeTraits(CastType.DATETIME, False),
    FieldType.STRING: TypeTraits(None, True),
    FieldType.TEXT: TypeTraits(None, True),
    FieldType.EMAIL: TypeTraits(None, True),
    FieldType.URL: TypeTraits(None, True),
    FieldType.PHONE: TypeTraits(None, True),
    FieldType.ZIP: TypeTraits(None, True),
    FieldType.ADDRESS: TypeTraits(None, True),
    FieldType.PASSWORD: TypeTraits(None, False),
}

# Types whose values must never be shown on a read-only page.
SENSITIVE_FIELD_TYPES: frozenset[FieldType] = frozenset({FieldType.PASSWORD})

# Context names a field can be made visible in.
FIELD_CONTEXTS: tuple[str, ...] = ("list", "create", "edit", "detail")


def derive_visibility(field: dict[str, Any]) -> tuple[str, ...]:
    """Compute the contexts a field is visible in.

    Explicit ``show_in`` is authoritative, except that sensitive types never
    reach ``detail``; ``form`` expands to create and edit.  Otherwise every
    context is included except:

    - ``detail`` for sensitive types (password) and ``viewable: false``
    - ``create``/``edit`` for ``editable: false``, read-only, auto-increment
      and computed fields
    - ``list`` for ``listable: false``

    Examples:
        >>> derive_visibility({"type": "password"})
        ('list', 'create', 'edit')
        >>> derive_visibility({"type": "string", "show_in": ["form", "detail"]})
        ('create', 'edit', 'detail')
    """
    field_type = field.get("type")
    field_type = getattr(field_type, "value", field_type)
    sensitive = field_type in {t.value for t in SENSITIVE_FIELD_TYPES}

    show_in = field.get("show_in")
    if show_in is not None:
        expanded: list[str] = []
        for context in show_in:
            for name in (("create", "edit") if context == "form" else (context,)):
                if name not in expanded and not (sensitive and name == "detail"):
                    expanded.append(name)
        return tuple(expanded)

    contexts = list(FIELD_CONTEXTS)
    if field.get("listable") is False:
        contexts.remove("list")
    if (
        field.get("editable") is False
        or field.get("readonly")
        or field.get("auto_increment")
        or field.get("computed")
    ):
        contexts.remove("create")
        contexts.remove("edit")
    if sensitive or field.get("viewable") is False:
        contexts.remove("detail")
    return tuple(contexts)


# ============================================================================
# Read-only Mappings
# ============================================================================


class FrozenDict(dict):
    """A ``dict`` whose mutating methods raise ``TypeError``.

    Used for every mapping held by a cached ``Schema`` so callers sharing
    the object cannot change it in place.

    Example:
        >>> permissions = FrozenDict(read="view_users")
        >>> permissions["read"] = "x"
        Traceback (most recent call last):
        ...
        TypeError: FrozenDict is read-only
    """

    def _readonly(self, *args: Any, **kwargs: Any) -> NoReturn:
        raise TypeError(f"{type(self).__name__} is read-only")

    __setitem__ = __delitem__ = __ior__ = _readonly
    clear = pop = popitem = setdefault = update = _readonly

    def __reduce__(self):
        return (type(self), (dict(self),))

    def __copy__(self) -> "FrozenDict":
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> "FrozenDict":
        return type(self)({key: copy.deepcopy(value, memo) for key, value in self.items()})


def freeze(value: Any) -> Any:
    """Recursively turn dicts into ``FrozenDict``; other values are returned as-is."""
    if isinstance(value, dict):
        return FrozenDict({key: freeze(item) for key, item in value.items()})
    return value


def thaw(value: Any) -> Any:
    """Plain, mutable deep copy of a (possibly frozen) mapping or list."""
    if isinstance(value, dict):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, list):
        return [thaw(item) for item in value]
    return value


ReadOnly = AfterValidator(freeze)


# ============================================================================
# Document Models
# ============================================================================


class FieldDef(BaseModel):
    """One column's declared type, validation and per-context visibility.

    Tri-state flags (``editable``, ``listable``, ...) are ``None`` when the
    document leaves them unset.  ``show_in`` is the explicit visibility list
    from the document; ``visibility`` is derived from ``show_in`` and the
    flags when not supplied.

    Unknown keys (``width``, ``placeholder``, lookup settings, ...) are kept
    in ``model_extra`` and passed through to UI-facing views.

    Example:
        >>> field = FieldDef(type="string", listable=True)
        >>> field.listable, field.show_in
        (True, None)
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    type: FieldType = FieldType.STRING
    label: str | None = None
    required: bool = False
    readonly: bool = False
    auto_increment: bool = False
    computed: bool = False
    editable: bool | None = None
    listable: bool | None = None
    viewable: bool | None = None
    filterable: bool | None = None
    sortable: bool | None = None
    searchable: bool | None = None
    show_in: tuple[str, ...] | None = None
    visibility: tuple[str, ...] = ()
    validation: Annotated[dict[str, Any], ReadOnly] = Field(default_factory=FrozenDict)
    filter_type: FilterType = FilterType.EQUALS
    sort_column: str | None = None
    default: Any = None
    ui: str | None = None
    date_format: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _fill_visibility(cls, data: Any) -> Any:
        if isinstance(data, dict) and "visibility" not in data:
            data = {**data, "visibility": derive_visibility(data)}
        return data

    @property
    def traits(self) -> TypeTraits:
        """Static behaviour for this field's type."""
        return FIELD_TYPE_TRAITS[self.type]

    @property
    def is_writable(self) -> bool:
        """False for auto-increment, read-only and computed columns."""
        return not (self.auto_increment or self.readonly or self.computed)

    def extra(self, key: str, default: Any = None) -> Any:
        """Read a pass-through key that is not part of the model."""
        return (self.model_extra or {}).get(key, default)


class Relationship(BaseModel):
    """A declared way to traverse from one table to another."""

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str
    type: RelationshipType = RelationshipType.MANY_TO_MANY
    pivot_table: str | None = None
    foreign_key: str | None = None
    related_key: str | None = None
    related_table: str | None = None
    related_primary_key: str | None = None
    title: str | None = None

    # Two-hop (belongs_to_many_through) configuration
    through: str | None = None
    first_pivot_table: str | None = None
    first_foreign_key: str | None = None
    first_related_key: str | None = None
    second_pivot_table: str | None = None
    second_foreign_key: str | None = None
    second_related_key: str | None = None

    @property
    def is_many_to_many(self) -> bool:
        return self.type in (RelationshipType.MANY_TO_MANY, RelationshipType.BELONGS_TO_MANY)

    @property
    def is_through(self) -> bool:
        return self.type == RelationshipType.BELONGS_TO_MANY_THROUGH

    def missing_join_keys(self) -> list[str]:
        """Names of join keys this relationship needs but does not have."""
        if self.is_many_to_many:
            required = ("pivot_table", "foreign_key", "related_key")
        elif self.is_through:
            required = (
                "first_pivot_table",
                "first_foreign_key",
                "first_related_key",
                "second_pivot_table",
                "second_foreign_key",
                "second_related_key",
            )
        else:
            return []
        return [key for key in required if not getattr(self, key)]


class DetailConfig(BaseModel):
    """A related table exposed as a nested listing under a record."""

    model_config = ConfigDict(frozen=True, extra="allow")

    model: str
    foreign_key: str | None = None
    list_fields: tuple[str, ...] | None = None
    title: str | None = None


class Schema(BaseModel):
    """Canonical (validated and normalized) description of one table.

    ``source_connection`` records the connection subdirectory the document
    was read from, if any.  It is not part of the document format.

    Example:
        >>> schema = Schema(model="users", table="users")
        >>> schema.primary_key, schema.soft_delete
        ('id', False)
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    model: str
    table: str
    primary_key: str = "id"
    connection: str | None = None
    timestamps: bool = True
    soft_delete: bool = False
    deleted_at_column: str | None = "deleted_at"
    title: str | None = None
    singular_title: str | None = None
    title_field: str | None = None
    description: str | None = None
    default_sort: Annotated[dict[str, str], ReadOnly] = Field(default_factory=FrozenDict)
    permissions: Annotated[dict[str, str], ReadOnly] = Field(default_factory=FrozenDict)
    fields: Annotated[dict[str, FieldDef], ReadOnly] = Field(default_factory=FrozenDict)
    relationships: tuple[Relationship, ...] = ()
    details: tuple[DetailConfig, ...] = ()
    actions: tuple[Annotated[dict[str, Any], ReadOnly], ...] = ()
    source_connection: str | None = None

    @field_validator("default_sort")
    @classmethod
    def _normalize_sort_direction(cls, value: dict[str, str]) -> dict[str, str]:
        return FrozenDict(
            (name, "desc" if str(direction).lower() == "desc" else "asc")
            for name, direction in value.items()
        )

    def get_relationship(self, name: str) -> Relationship | None:
        for relationship in self.relationships:
            if relationship.name == name:
                return relationship
        return None

    def get_detail(self, model: str) -> DetailConfig | None:
        for detail in self.details:
            if detail.model == model:
                return detail
        return None

    def fields_where(self, flag: str) -> list[str]:
        """Names of fields that explicitly set ``flag`` to True.

        Example:
            >>> schema = Schema(model="t", table="t", fields={"a": {"sortable": True}})
            >>> schema.fields_where("sortable")
            ['a']
        """
        return [name for name, field in self.fields.items() if getattr(field, flag) is True]

    @property
    def display_title(self) -> str:
        return self.title or self.model.capitalize()

    @property
    def display_singular_title(self) -> str:
        return self.singular_title or self.title or self.model.capitalize()


# ============================================================================
# Model References
# ============================================================================


_MODEL_NAME_RE = re.compile(r"^[A-Za-z0-9_]+$")


class ModelReference(NamedTuple):
    """A model name with an optional connection qualifier."""

    model: str
    connection: str | None = None


def validate_model_name(name: str) -> str:
    """Reject model names that could escape the document store.

    Raises:
        InvalidModelNameError: If *name* is not ``[A-Za-z0-9_]+``.
    """
    if not _MODEL_NAME_RE.match(name or ""):
        raise InvalidModelNameError(f"Invalid model name: '{name}'")
    return name


def parse_model_reference(reference: str) -> ModelReference:
    """Split ``"model"`` or ``"model@connection"`` into its parts.

    Everything after the first ``@`` is the connection name.

    Examples:
        >>> parse_model_reference("users@db1")
        ModelReference(model='users', connection='db1')
        >>> parse_model_reference("users@db1@backup")
        ModelReference(model='users', connection='db1@backup')
        >>> parse_model_reference("users")
        ModelReference(model='users', connection=None)
    """
    if "@" in reference:
        model, connection = reference.split("@", 1)
        return ModelReference(validate_model_name(model), connection or None)
    return ModelReference(validate_model_name(reference), None)
