"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol that bound entities and listing
queries run against.  All methods are ``async def``.

Usage:
    from schema_crud.adapters.base import DatabaseClient

    async def count_users(client: DatabaseClient) -> int:
        return await client.fetch_value("SELECT COUNT(*) FROM users")
"""

from typing import Any, Protocol


class DatabaseClient(Protocol):
    """Database client interface that all adapters must implement.

    The table-level methods (``select``, ``insert``, ``update``,
    ``delete``) back record operations.  ``fetch_all`` and
    ``fetch_value`` run generated SQL with named ``:param`` placeholders.
    """

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select rows from table.

        Args:
            table: Table name.
            columns: Comma-separated column names, or ``"*"``.
            filters: Optional dict of field=value filters (all must match via AND).
                A ``None`` value matches ``IS NULL``.
            order_by: Optional column name to sort by.

        Returns:
            List of dicts, one per row.  Empty list if no matches.
        """
        ...

    async def insert(self, table: str, data: dict) -> dict:
        """Insert row into table and return the created row.

        Raises:
            Exception: If duplicate key or constraint violation.
        """
        ...

    async def update(self, table: str, data: dict, filters: dict[str, Any]) -> dict:
        """Update rows in table and return the first updated row.

        Raises:
            ValueError: If no rows match filters.
        """
        ...

    async def delete(self, table: str, filters: dict[str, Any]) -> None:
        """Delete rows matching every filter."""
        ...

    async def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute a statement that returns no rows."""
        ...

    async def fetch_all(self, sql: str, params: dict | None = None) -> list[dict]:
        """Run a query and return every row as a dict.

        Example:
            rows = await client.fetch_all(
                "SELECT * FROM roles WHERE id = :p_0", {"p_0": 5}
            )
        """
        ...

    async def fetch_value(self, sql: str, params: dict | None = None) -> Any:
        """Run a query and return the first column of the first row (or None)."""
        ...

    async def close(self) -> None:
        """Close database connection and clean up resources."""
        ...
