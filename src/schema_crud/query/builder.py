"""Listing query construction.

Builds raw SQL with named ``:p_N`` parameters from a canonical schema and
a ``ListingRequest``.  Nothing here touches a database; the runner in
``schema_crud.query.listing`` wraps the result in ``text()`` and executes
it.

Column names only ever come from the schema.  Request keys that are not
declared filterable/sortable are ignored, never interpolated.

Usage:
    from schema_crud.query.builder import ListingRequest, build_listing

    query = build_listing(schema, ListingRequest(filters={"status": "active"}, page=2))
    sql, params = query.to_sql()
    count_sql, count_params = query.count_sql()
"""

import logging
import re
from typing import Any, NamedTuple

from pydantic import BaseModel, Field, field_validator

from schema_crud.schema.models import CastType, FieldDef, FilterType, Schema

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


# ============================================================================
# Request / Result Models
# ============================================================================


class ListingRequest(BaseModel):
    """Sort, filter, search and pagination for one listing call.

    ``size`` of ``0`` or ``None`` returns every row; larger values are
    capped at ``MAX_PAGE_SIZE``.

    Example:
        >>> ListingRequest(size=500).size
        100
        >>> ListingRequest(size=0).size is None
        True
    """

    sorts: dict[str, str] = Field(default_factory=dict)
    filters: dict[str, Any] = Field(default_factory=dict)
    search: str | None = None
    page: int = Field(default=1, ge=1)
    size: int | None = DEFAULT_PAGE_SIZE

    @field_validator("size")
    @classmethod
    def _cap_size(cls, value: int | None) -> int | None:
        if not value or value < 0:
            return None
        return min(value, MAX_PAGE_SIZE)

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> "ListingRequest":
        """Build a request from flat query-string style parameters.

        Recognises ``sort``/``order``, ``sorts``, ``filters``, ``search``,
        ``page`` and ``size``.

        Example:
            >>> ListingRequest.from_params({"sort": "name", "order": "desc", "page": "2"}).sorts
            {'name': 'desc'}
        """
        sorts = dict(params.get("sorts") or {})
        if params.get("sort"):
            sorts[params["sort"]] = params.get("order", "asc")
        return cls(
            sorts=sorts,
            filters=dict(params.get("filters") or {}),
            search=params.get("search") or None,
            page=int(params.get("page", 1)),
            size=int(params["size"]) if params.get("size") not in (None, "") else DEFAULT_PAGE_SIZE,
        )


class ListingResult(BaseModel):
    """Rows of one page plus total and filtered counts."""

    rows: list[dict[str, Any]] = Field(default_factory=list)
    count: int = 0
    count_filtered: int = 0


class SqlQuery(NamedTuple):
    sql: str
    params: dict[str, Any]


# ============================================================================
# Select Query
# ============================================================================


class SelectQuery:
    """Mutable SELECT assembled clause by clause.

    Args:
        source: FROM clause body (a table, or a table with joins).
        columns: Select list.
        distinct: Emit ``SELECT DISTINCT``.
    """

    def __init__(self, source: str, columns: str = "*", distinct: bool = False):
        self.source = source
        self.columns = columns
        self.distinct = distinct
        self.conditions: list[str] = []
        self.params: dict[str, Any] = {}
        self.order_by: list[str] = []
        self.limit: int | None = None
        self.offset: int = 0
        # Conditions added before filters/search; the unfiltered total counts these only
        self._base_condition_count = 0

    def bind(self, value: Any) -> str:
        """Register *value* as a fresh parameter and return its placeholder."""
        name = f"p_{len(self.params)}"
        self.params[name] = value
        return f":{name}"

    def where(self, condition: str) -> "SelectQuery":
        self.conditions.append(condition)
        return self

    def seal_base(self) -> "SelectQuery":
        """Mark the current conditions as the unfiltered scope."""
        self._base_condition_count = len(self.conditions)
        return self

    def to_sql(self) -> SqlQuery:
        sql = self._select(self.conditions)
        if self.order_by:
            sql += " ORDER BY " + ", ".join(self.order_by)
        if self.limit is not None:
            sql += f" LIMIT {int(self.limit)} OFFSET {int(self.offset)}"
        return SqlQuery(sql, dict(self.params))

    def count_sql(self, filtered: bool = True) -> SqlQuery:
        """COUNT over the same scope; ``filtered=False`` drops filters and search."""
        conditions = self.conditions if filtered else self.conditions[: self._base_condition_count]
        inner = self._select(conditions)
        params = {k: v for k, v in self.params.items() if re.search(rf":{k}\b", inner)}
        return SqlQuery(f"SELECT COUNT(*) FROM ({inner}) AS counted", params)

    def _select(self, conditions: list[str]) -> str:
        keyword = "SELECT DISTINCT" if self.distinct else "SELECT"
        sql = f"{keyword} {self.columns} FROM {self.source}"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        return sql


# ============================================================================
# Clause Builders
# ============================================================================


def deleted_at_column(schema: Schema) -> str | None:
    """Soft-delete column, or ``None`` when soft delete is off or the name is blank.

    Examples:
        >>> deleted_at_column(Schema(model="t", table="t"))
        >>> deleted_at_column(Schema(model="t", table="t", soft_delete=True))
        'deleted_at'
        >>> deleted_at_column(Schema(model="t", table="t", soft_delete=True, deleted_at_column="  "))
    """
    if not schema.soft_delete:
        return None
    column = (schema.deleted_at_column or "").strip()
    return column or None


def qualify(table: str, column: str) -> str:
    """Prefix *column* with *table* unless it is already qualified."""
    return column if "." in column else f"{table}.{column}"


def apply_soft_delete(query: SelectQuery, schema: Schema, table: str) -> None:
    column = deleted_at_column(schema)
    if column is not None:
        query.where(f"{qualify(table, column)} IS NULL")


def coerce_value(field: FieldDef, value: Any) -> Any:
    """Convert a request value to the field's column type.

    Raises:
        ValueError: If the value cannot be converted.
    """
    cast = field.traits.cast
    if cast == CastType.INTEGER:
        return int(value)
    if cast == CastType.FLOAT:
        return float(value)
    if cast == CastType.BOOLEAN:
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    return value


def _split_values(value: Any) -> list[Any]:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _text_column(field: FieldDef, column: str) -> str:
    return column if field.traits.text_like else f"CAST({column} AS TEXT)"


def apply_filters(query: SelectQuery, schema: Schema, filters: dict[str, Any], table: str) -> None:
    """Add one predicate per filterable field present in *filters*.

    Unknown keys, empty values, malformed ``between`` ranges and values
    that cannot be coerced to the column type are skipped.
    """
    allowed = set(schema.fields_where("filterable"))
    for name, value in filters.items():
        if name not in allowed:
            logger.debug("Ignoring filter on non-filterable field '%s'", name)
            continue
        if value is None or value == "" or value == []:
            continue

        field = schema.fields[name]
        column = qualify(table, name)
        try:
            condition = _filter_condition(query, field, column, value)
        except (TypeError, ValueError):
            logger.warning("Ignoring filter '%s' on '%s': cannot use value %r", name, schema.model, value)
            continue
        if condition:
            query.where(condition)


def _filter_condition(query: SelectQuery, field: FieldDef, column: str, value: Any) -> str | None:
    filter_type = field.filter_type

    if filter_type == FilterType.LIKE:
        return f"{_text_column(field, column)} LIKE {query.bind(f'%{value}%')}"
    if filter_type == FilterType.STARTS_WITH:
        return f"{_text_column(field, column)} LIKE {query.bind(f'{value}%')}"
    if filter_type == FilterType.ENDS_WITH:
        return f"{_text_column(field, column)} LIKE {query.bind(f'%{value}')}"

    if filter_type == FilterType.IN:
        values = [coerce_value(field, v) for v in _split_values(value)]
        if not values:
            return None
        return f"{column} IN ({', '.join(query.bind(v) for v in values)})"

    if filter_type == FilterType.BETWEEN:
        bounds = _split_values(value)
        if len(bounds) != 2:
            return None
        low, high = (coerce_value(field, v) for v in bounds)
        return f"{column} BETWEEN {query.bind(low)} AND {query.bind(high)}"

    operators = {
        FilterType.EQUALS: "=",
        FilterType.NOT_EQUALS: "<>",
        FilterType.GREATER_THAN: ">",
        FilterType.LESS_THAN: "<",
    }
    return f"{column} {operators[filter_type]} {query.bind(coerce_value(field, value))}"


def apply_search(query: SelectQuery, schema: Schema, search: str | None, table: str) -> None:
    """OR a ``LIKE %term%`` across every searchable field."""
    term = (search or "").strip()
    fields = schema.fields_where("searchable")
    if not term or not fields:
        return
    placeholder = query.bind(f"%{term}%")
    parts = [
        f"{_text_column(schema.fields[name], qualify(table, name))} LIKE {placeholder}"
        for name in fields
    ]
    query.where("(" + " OR ".join(parts) + ")")


def _direction(value: Any) -> str:
    return "DESC" if str(value).lower() == "desc" else "ASC"


def apply_sorts(query: SelectQuery, schema: Schema, sorts: dict[str, str], table: str) -> None:
    """ORDER BY requested sortable fields, else the schema's ``default_sort``."""
    allowed = set(schema.fields_where("sortable"))
    order: list[str] = []
    for name, direction in sorts.items():
        if name not in allowed:
            logger.debug("Ignoring sort on non-sortable field '%s'", name)
            continue
        column = schema.fields[name].sort_column or name
        order.append(f"{qualify(table, column)} {_direction(direction)}")

    if not order:
        for name, direction in schema.default_sort.items():
            field = schema.fields.get(name)
            column = (field.sort_column if field else None) or name
            order.append(f"{qualify(table, column)} {_direction(direction)}")

    query.order_by = order


def paginate(query: SelectQuery, page: int, size: int | None) -> None:
    if size is None:
        query.limit = None
        query.offset = 0
        return
    query.limit = size
    query.offset = (max(page, 1) - 1) * size


def apply_request(query: SelectQuery, schema: Schema, request: ListingRequest, table: str) -> SelectQuery:
    """Seal the current scope, then add filters, search, sorting and paging."""
    query.seal_base()
    apply_filters(query, schema, request.filters, table)
    apply_search(query, schema, request.search, table)
    apply_sorts(query, schema, request.sorts, table)
    paginate(query, request.page, request.size)
    return query


def build_listing(schema: Schema, request: ListingRequest) -> SelectQuery:
    """Listing query over the schema's own table.

    Example:
        >>> schema = Schema(model="users", table="users", soft_delete=True)
        >>> build_listing(schema, ListingRequest()).to_sql().sql
        'SELECT * FROM users WHERE users.deleted_at IS NULL LIMIT 10 OFFSET 0'
    """
    query = SelectQuery(schema.table)
    apply_soft_delete(query, schema, schema.table)
    return apply_request(query, schema, request, schema.table)
