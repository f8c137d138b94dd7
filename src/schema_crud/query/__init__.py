"""Listing and relationship query building and execution.

Usage:
    >>> from schema_crud.query import ListingRequest, build_listing, run_listing
"""

from schema_crud.query.builder import (
    ListingRequest,
    ListingResult,
    SelectQuery,
    SqlQuery,
    build_listing,
    deleted_at_column,
)
from schema_crud.query.listing import run_listing, run_relation_listing
from schema_crud.query.relations import build_relation_query, related_model_name
from schema_crud.query.transform import cast_value, transform_row

__all__ = [
    "ListingRequest",
    "ListingResult",
    "SelectQuery",
    "SqlQuery",
    "build_listing",
    "build_relation_query",
    "cast_value",
    "deleted_at_column",
    "related_model_name",
    "run_listing",
    "run_relation_listing",
    "transform_row",
]
