"""Per-field value casting for rows read from the database."""

import json
from datetime import date, datetime
from typing import Any, Iterable

from schema_crud.schema.models import SENSITIVE_FIELD_TYPES, CastType, FieldDef, Schema

_FALSE_STRINGS = frozenset({"", "0", "false", "no", "off"})


def cast_value(field: FieldDef, value: Any) -> Any:
    """Cast a stored value to the field type's Python representation.

    Values that do not fit the cast are returned unchanged.

    Examples:
        >>> cast_value(FieldDef(type="integer"), "42")
        42
        >>> cast_value(FieldDef(type="boolean"), "0")
        False
        >>> cast_value(FieldDef(type="json"), '{"a": 1}')
        {'a': 1}
    """
    if value is None:
        return None

    cast = field.traits.cast
    try:
        if cast == CastType.INTEGER:
            return int(value)
        if cast == CastType.FLOAT:
            return float(value)
        if cast == CastType.BOOLEAN:
            if isinstance(value, str):
                return value.strip().lower() not in _FALSE_STRINGS
            return bool(value)
        if cast == CastType.JSON and isinstance(value, (str, bytes)):
            return json.loads(value)
        if cast == CastType.DATE:
            return _parse_date(value).date()
        if cast == CastType.DATETIME:
            return _parse_date(value)
    except (TypeError, ValueError):
        return value
    return value


def format_value(field: FieldDef, value: Any) -> Any:
    """Cast a value for output.  Dates become strings, formatted per ``date_format``.

    Example:
        >>> format_value(FieldDef(type="date", date_format="%d/%m/%Y"), "2024-03-01T10:00:00")
        '01/03/2024'
    """
    value = cast_value(field, value)
    if isinstance(value, (date, datetime)):
        if field.date_format:
            return value.strftime(field.date_format)
        return value.isoformat()
    return value


def transform_row(schema: Schema, row: dict[str, Any], columns: Iterable[str] | None = None) -> dict[str, Any]:
    """Project and format one row for output.

    Args:
        schema: Schema describing the row's table.
        row: Raw row from the adapter.
        columns: Columns to keep (the primary key is always kept).  ``None``
            keeps every column.

    Sensitive field values (passwords) are never included.
    """
    keep = None if columns is None else {schema.primary_key, *columns}
    result: dict[str, Any] = {}
    for name, value in row.items():
        if keep is not None and name not in keep:
            continue
        field = schema.fields.get(name)
        if field is None:
            result[name] = value
            continue
        if field.type in SENSITIVE_FIELD_TYPES:
            continue
        result[name] = format_value(field, value)
    return result


def _parse_date(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
