"""Draft schema documents from introspected tables.

The generated document is a starting point for an operator to edit, not a
finished schema: every column gets conservative visibility flags and the
validation rules the database itself enforces (not-null, length, unique).

Usage:
    from schema_crud.schema.generator import generate_schema
    from schema_crud.schema.introspector import SchemaIntrospector

    with SchemaIntrospector(url) as introspector:
        document = generate_schema(introspector.introspect_table("users"))
"""

from typing import Any

from schema_crud.schema.introspector import ColumnInfo, TableInfo
from schema_crud.schema.models import FieldType

# information_schema data_type -> field type
COLUMN_TYPE_MAP: dict[str, FieldType] = {
    "smallint": FieldType.INTEGER,
    "integer": FieldType.INTEGER,
    "bigint": FieldType.INTEGER,
    "numeric": FieldType.DECIMAL,
    "decimal": FieldType.DECIMAL,
    "real": FieldType.FLOAT,
    "double precision": FieldType.FLOAT,
    "money": FieldType.CURRENCY,
    "boolean": FieldType.BOOLEAN,
    "date": FieldType.DATE,
    "timestamp without time zone": FieldType.DATETIME,
    "timestamp with time zone": FieldType.DATETIME,
    "json": FieldType.JSON,
    "jsonb": FieldType.JSON,
    "text": FieldType.TEXT,
    "character varying": FieldType.STRING,
    "character": FieldType.STRING,
}

SOFT_DELETE_COLUMN = "deleted_at"
TIMESTAMP_COLUMNS = ("created_at", "updated_at")


def field_type_for(column: ColumnInfo) -> FieldType:
    """Field type for a column, using the column name for email/password.

    Example:
        >>> field_type_for(ColumnInfo(name="email", data_type="character varying"))
        <FieldType.EMAIL: 'email'>
    """
    if column.name == "password" or column.name.endswith("_password"):
        return FieldType.PASSWORD
    field_type = COLUMN_TYPE_MAP.get(column.data_type, FieldType.STRING)
    if field_type == FieldType.STRING and column.name in ("email", "email_address"):
        return FieldType.EMAIL
    return field_type


def _field_for(column: ColumnInfo, table: TableInfo) -> dict[str, Any]:
    field_type = field_type_for(column)
    field: dict[str, Any] = {
        "type": field_type.value,
        "label": column.name.replace("_", " ").title(),
    }

    if column.name in table.primary_key:
        field.update(auto_increment=True, readonly=True, listable=True, sortable=True)
        return field

    if column.name in TIMESTAMP_COLUMNS:
        field.update(readonly=True, listable=False, sortable=True)
        return field

    validation: dict[str, Any] = {}
    if not column.is_nullable and column.default is None:
        field["required"] = True
    if column.max_length:
        validation["length"] = {"max": column.max_length}
    if column.name in table.unique_columns:
        validation["unique"] = True
    if field_type == FieldType.EMAIL:
        validation["email"] = True
    if validation:
        field["validation"] = validation

    if field_type == FieldType.PASSWORD:
        field.update(listable=False, viewable=False)
        return field

    text_like = field_type in (FieldType.STRING, FieldType.EMAIL)
    field.update(
        listable=field_type not in (FieldType.TEXT, FieldType.JSON),
        sortable=field_type not in (FieldType.TEXT, FieldType.JSON),
        filterable=text_like or field_type in (FieldType.INTEGER, FieldType.BOOLEAN),
        searchable=text_like,
    )
    if text_like:
        field["filter_type"] = "like"
    return field


def generate_schema(table: TableInfo) -> dict[str, Any]:
    """Draft a schema document for one introspected table.

    - the primary key is ``auto_increment`` and ``readonly``
    - a ``deleted_at`` column turns on ``soft_delete``
    - ``created_at``/``updated_at`` columns turn on ``timestamps``
    - inbound foreign keys become one-to-many ``details`` entries
    """
    columns = table.columns
    primary_key = table.primary_key[0] if table.primary_key else "id"

    fields = {
        name: _field_for(column, table)
        for name, column in columns.items()
        if name != SOFT_DELETE_COLUMN
    }

    title_field = next(
        (name for name in ("name", "title", "slug", "email") if name in columns),
        primary_key,
    )
    title = table.name.replace("_", " ").title()

    document: dict[str, Any] = {
        "model": table.name,
        "table": table.name,
        "title": title,
        "singular_title": title[:-1] if title.endswith("s") else title,
        "primary_key": primary_key,
        "title_field": title_field,
        "timestamps": all(name in columns for name in TIMESTAMP_COLUMNS),
        "soft_delete": SOFT_DELETE_COLUMN in columns,
        "default_sort": {primary_key: "asc"},
        "permissions": {
            "read": f"view_{table.name}",
            "create": f"create_{table.name}",
            "update": f"update_{table.name}",
            "delete": f"delete_{table.name}",
        },
        "fields": fields,
    }

    details = [
        {
            "model": fk.table,
            "foreign_key": fk.column,
            "title": fk.table.replace("_", " ").title(),
        }
        for fk in table.referenced_by
        if fk.table != table.name
    ]
    if details:
        document["details"] = details
    return document
