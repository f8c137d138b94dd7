"""Execute listing and nested relationship queries.

Usage:
    from schema_crud.query.listing import run_listing

    result = await run_listing(client, schema, ListingRequest(search="ann"))
    result.rows, result.count, result.count_filtered
"""

import logging
from typing import Any

from schema_crud.adapters.base import DatabaseClient
from schema_crud.query.builder import ListingRequest, ListingResult, SelectQuery, build_listing
from schema_crud.query.relations import build_relation_query, resolve_relation
from schema_crud.query.transform import transform_row
from schema_crud.schema.filter import field_in_context
from schema_crud.schema.models import Schema

logger = logging.getLogger(__name__)


def list_columns(schema: Schema) -> list[str] | None:
    """Columns a listing returns: the list-context fields.

    ``None`` (every column) only for a schema that declares no fields.
    """
    if not schema.fields:
        return None
    return [name for name, field in schema.fields.items() if field_in_context(field, "list")]


async def execute_listing(
    client: DatabaseClient,
    schema: Schema,
    query: SelectQuery,
    columns: list[str] | None,
    debug_mode: bool = False,
) -> ListingResult:
    """Run the page query and both counts for a built listing query."""
    sql, params = query.to_sql()
    total_sql, total_params = query.count_sql(filtered=False)
    filtered_sql, filtered_params = query.count_sql()

    if debug_mode:
        logger.debug("Listing SQL for '%s': %s %s", schema.model, sql, params)

    count = int(await client.fetch_value(total_sql, total_params) or 0)
    if filtered_sql == total_sql:
        count_filtered = count
    else:
        count_filtered = int(await client.fetch_value(filtered_sql, filtered_params) or 0)

    rows = await client.fetch_all(sql, params)
    return ListingResult(
        rows=[transform_row(schema, row, columns) for row in rows],
        count=count,
        count_filtered=count_filtered,
    )


async def run_listing(
    client: DatabaseClient,
    schema: Schema,
    request: ListingRequest | None = None,
    debug_mode: bool = False,
) -> ListingResult:
    """Sorted, filtered, searched and paginated rows of the schema's table."""
    query = build_listing(schema, request or ListingRequest())
    return await execute_listing(client, schema, query, list_columns(schema), debug_mode)


async def run_relation_listing(
    client: DatabaseClient,
    parent: Schema,
    relation: str,
    parent_id: Any,
    related: Schema,
    request: ListingRequest | None = None,
    debug_mode: bool = False,
) -> ListingResult:
    """Rows of *relation* belonging to *parent_id*.

    Rows are projected to the detail entry's ``list_fields`` when it
    declares them, otherwise to the related schema's list fields.

    Raises:
        RelationshipConfigurationError: If the relation is unknown or
            lacks join keys.  Raised before any query runs.
    """
    detail, _ = resolve_relation(parent, relation)
    query = build_relation_query(parent, relation, parent_id, related, request)

    if detail is not None and detail.list_fields:
        columns: list[str] | None = list(detail.list_fields)
    else:
        columns = list_columns(related)
    return await execute_listing(client, related, query, columns, debug_mode)
