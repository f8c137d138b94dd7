"""Nested relationship query construction.

Resolves ``GET base/{id}/{relation}`` into one of three shapes, picked
from the parent schema's ``details`` and ``relationships``:

- direct foreign key::

      SELECT * FROM related WHERE related.fk = :parent_id

- single join through a pivot table (many-to-many)::

      SELECT related.* FROM related
      JOIN pivot ON related.pk = pivot.related_key
      WHERE pivot.foreign_key = :parent_id

- double join through two pivot tables (belongs_to_many_through)::

      SELECT DISTINCT related.* FROM related
      JOIN second ON related.pk = second.second_related_key
      JOIN first ON second.second_foreign_key = first.first_related_key
      WHERE first.first_foreign_key = :parent_id

Missing join keys raise ``RelationshipConfigurationError`` before any SQL
is assembled.
"""

from typing import Any

from schema_crud.errors import RelationshipConfigurationError
from schema_crud.query.builder import ListingRequest, SelectQuery, apply_request, apply_soft_delete
from schema_crud.schema.models import DetailConfig, Relationship, RelationshipType, Schema


def resolve_relation(parent: Schema, relation: str) -> tuple[DetailConfig | None, Relationship | None]:
    """Find the detail entry and relationship that govern *relation*.

    Raises:
        RelationshipConfigurationError: If *parent* declares neither.
    """
    detail = parent.get_detail(relation)
    relationship = parent.get_relationship(relation)
    if detail is None and relationship is None:
        raise RelationshipConfigurationError(
            f"Model '{parent.model}' has no relation named '{relation}'"
        )
    return detail, relationship


def related_model_name(parent: Schema, relation: str) -> str:
    """Logical model name whose schema describes the rows of *relation*.

    A detail entry names its model directly; a relationship may point at a
    different table through ``related_table``.
    """
    detail, relationship = resolve_relation(parent, relation)
    if detail is not None:
        return detail.model
    return relationship.related_table or relationship.name


def build_relation_query(
    parent: Schema,
    relation: str,
    parent_id: Any,
    related: Schema,
    request: ListingRequest | None = None,
) -> SelectQuery:
    """Listing query for the rows of *relation* that belong to *parent_id*.

    Args:
        parent: Schema of the base model.
        relation: Relation name (a ``details[].model`` or ``relationships[].name``).
        parent_id: Primary key value of the parent row.
        related: Schema of the related model (drives filters, sorting and
            the soft-delete predicate).
        request: Sorting, filtering, search and paging.

    Raises:
        RelationshipConfigurationError: If the relation is unknown or lacks
            join keys.

    Example:
        >>> users = Schema(
        ...     model="users", table="users",
        ...     relationships=[{"name": "roles", "type": "many_to_many",
        ...                     "pivot_table": "role_user", "foreign_key": "user_id",
        ...                     "related_key": "role_id"}],
        ... )
        >>> roles = Schema(model="roles", table="roles")
        >>> build_relation_query(users, "roles", 5, roles, ListingRequest(size=0)).to_sql().sql
        'SELECT roles.* FROM roles JOIN role_user ON roles.id = role_user.role_id WHERE role_user.user_id = :parent_id'
    """
    detail, relationship = resolve_relation(parent, relation)
    table = (relationship.related_table if relationship else None) or related.table

    if relationship is None or relationship.type == RelationshipType.ONE_TO_MANY:
        query = _direct_query(parent, relation, table, detail, relationship)
    else:
        missing = relationship.missing_join_keys()
        if missing:
            raise RelationshipConfigurationError(
                f"Relationship '{relation}' on model '{parent.model}' is missing "
                f"required configuration: {', '.join(missing)}"
            )
        pk = relationship.related_primary_key or related.primary_key
        if relationship.is_through:
            query = _through_query(relationship, table, pk)
        else:
            query = _pivot_query(relationship, table, pk)

    query.params["parent_id"] = parent_id
    apply_soft_delete(query, related, table)
    apply_request(query, related, request or ListingRequest(), table)

    return query


def _direct_query(
    parent: Schema,
    relation: str,
    table: str,
    detail: DetailConfig | None,
    relationship: Relationship | None,
) -> SelectQuery:
    foreign_key = (detail.foreign_key if detail else None) or (relationship.foreign_key if relationship else None)
    if not foreign_key:
        raise RelationshipConfigurationError(
            f"Relation '{relation}' on model '{parent.model}' has no foreign_key"
        )
    query = SelectQuery(table)
    query.where(f"{table}.{foreign_key} = :parent_id")
    return query


def _pivot_query(relationship: Relationship, table: str, pk: str) -> SelectQuery:
    pivot = relationship.pivot_table
    query = SelectQuery(
        f"{table} JOIN {pivot} ON {table}.{pk} = {pivot}.{relationship.related_key}",
        columns=f"{table}.*",
    )
    query.where(f"{pivot}.{relationship.foreign_key} = :parent_id")
    return query


def _through_query(relationship: Relationship, table: str, pk: str) -> SelectQuery:
    first = relationship.first_pivot_table
    second = relationship.second_pivot_table
    source = (
        f"{table} "
        f"JOIN {second} ON {table}.{pk} = {second}.{relationship.second_related_key} "
        f"JOIN {first} ON {second}.{relationship.second_foreign_key} = {first}.{relationship.first_related_key}"
    )
    query = SelectQuery(source, columns=f"{table}.*", distinct=True)
    query.where(f"{first}.{relationship.first_foreign_key} = :parent_id")
    return query
