"""PostgreSQL table introspection via information_schema.

Reads what ``generate_schema`` needs to draft a document for a table:
- columns with data type, nullability, default and character length
- primary key, unique and foreign key constraints
- foreign keys in other tables that point at the table

Uses psycopg (v3) for PostgreSQL connections.
"""

import psycopg
from psycopg import Connection
from pydantic import BaseModel, Field


# ============================================================================
# Introspection Models
# ============================================================================


class ColumnInfo(BaseModel):
    """A database column."""

    name: str
    data_type: str
    is_nullable: bool = True
    default: str | None = None
    max_length: int | None = None


class ForeignKeyInfo(BaseModel):
    """A foreign key from ``table.column`` to ``references_table.references_column``."""

    table: str
    column: str
    references_table: str
    references_column: str


class TableInfo(BaseModel):
    """Columns and keys of one table."""

    name: str
    columns: dict[str, ColumnInfo] = Field(default_factory=dict)
    primary_key: list[str] = Field(default_factory=list)
    unique_columns: set[str] = Field(default_factory=set)
    foreign_keys: list[ForeignKeyInfo] = Field(default_factory=list)
    referenced_by: list[ForeignKeyInfo] = Field(default_factory=list)


# ============================================================================
# Introspector
# ============================================================================


class SchemaIntrospector:
    """Introspects PostgreSQL tables.

    Usage:
        with SchemaIntrospector(database_url) as introspector:
            tables = introspector.get_tables()
            users = introspector.introspect_table("users")
    """

    # Tables never offered for document generation
    EXCLUDED_TABLES = {
        "schema_migrations",
        "pg_stat_statements",
        "spatial_ref_sys",
    }

    def __init__(self, database_url: str):
        self._database_url = database_url
        self._conn: Connection | None = None

    def __enter__(self) -> "SchemaIntrospector":
        url = self._database_url
        if "connect_timeout" not in url:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}connect_timeout=10"

        self._conn = psycopg.connect(url)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    def _cursor(self):
        if not self._conn:
            raise RuntimeError("Introspector not connected. Use with statement.")
        return self._conn.cursor()

    def get_tables(self, schema_name: str = "public") -> list[str]:
        """All base table names in *schema_name*, minus ``EXCLUDED_TABLES``."""
        query = """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = %s
              AND table_type = 'BASE TABLE'
            ORDER BY table_name
        """
        with self._cursor() as cur:
            cur.execute(query, (schema_name,))
            return [row[0] for row in cur.fetchall() if row[0] not in self.EXCLUDED_TABLES]

    def introspect_table(self, table_name: str, schema_name: str = "public") -> TableInfo:
        """Columns, keys and inbound foreign keys of one table.

        Raises:
            LookupError: If the table has no columns (does not exist).
        """
        columns = self._get_columns(schema_name, table_name)
        if not columns:
            raise LookupError(f"Table '{schema_name}.{table_name}' not found")

        table = TableInfo(name=table_name, columns=columns)
        self._load_constraints(schema_name, table)
        table.referenced_by = self._get_inbound_foreign_keys(schema_name, table_name)
        return table

    def _get_columns(self, schema_name: str, table_name: str) -> dict[str, ColumnInfo]:
        query = """
            SELECT
                column_name,
                data_type,
                is_nullable,
                column_default,
                character_maximum_length
            FROM information_schema.columns
            WHERE table_schema = %s
              AND table_name = %s
            ORDER BY ordinal_position
        """
        with self._cursor() as cur:
            cur.execute(query, (schema_name, table_name))
            columns = {}
            for col_name, data_type, is_nullable, default, max_length in cur.fetchall():
                columns[col_name] = ColumnInfo(
                    name=col_name,
                    data_type=data_type.lower(),
                    is_nullable=(is_nullable == "YES"),
                    default=default,
                    max_length=max_length,
                )
            return columns

    def _load_constraints(self, schema_name: str, table: TableInfo) -> None:
        query = """
            SELECT
                tc.constraint_type,
                kcu.column_name,
                ccu.table_name AS references_table,
                ccu.column_name AS references_column
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
                ON tc.constraint_name = kcu.constraint_name
                AND tc.table_schema = kcu.table_schema
            LEFT JOIN information_schema.constraint_column_usage ccu
                ON tc.constraint_name = ccu.constraint_name
                AND tc.constraint_type = 'FOREIGN KEY'
            WHERE tc.table_schema = %s
              AND tc.table_name = %s
            ORDER BY tc.constraint_name, kcu.ordinal_position
        """
        with self._cursor() as cur:
            cur.execute(query, (schema_name, table.name))
            for ctype, col_name, ref_table, ref_col in cur.fetchall():
                if ctype == "PRIMARY KEY" and col_name not in table.primary_key:
                    table.primary_key.append(col_name)
                elif ctype == "UNIQUE":
                    table.unique_columns.add(col_name)
                elif ctype == "FOREIGN KEY" and ref_table:
                    table.foreign_keys.append(
                        ForeignKeyInfo(
                            table=table.name,
                            column=col_name,
                            references_table=ref_table,
                            references_column=ref_col,
                        )
                    )

    def _get_inbound_foreign_keys(self, schema_name: str, table_name: str) -> list[ForeignKeyInfo]:
        query = """
            SELECT
                kcu.table_name,
                kcu.column_name,
                ccu.column_name AS references_column
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
                ON tc.constraint_name = kcu.constraint_name
                AND tc.table_schema = kcu.table_schema
            JOIN information_schema.constraint_column_usage ccu
                ON tc.constraint_name = ccu.constraint_name
            WHERE tc.constraint_type = 'FOREIGN KEY'
              AND tc.table_schema = %s
              AND ccu.table_name = %s
            ORDER BY kcu.table_name, kcu.column_name
        """
        with self._cursor() as cur:
            cur.execute(query, (schema_name, table_name))
            return [
                ForeignKeyInfo(
                    table=src_table,
                    column=src_column,
                    references_table=table_name,
                    references_column=ref_column,
                )
                for src_table, src_column, ref_column in cur.fetchall()
            ]
