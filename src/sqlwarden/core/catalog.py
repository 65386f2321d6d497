"""Schema exploration for agents: databases, tables, columns, foreign keys.

Built on SQLAlchemy's inspector so the same calls work on SQL Server,
PostgreSQL and SQLite. Rows are plain dicts, ready for JSON replies.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.engine import Inspector
from sqlalchemy.exc import SQLAlchemyError

from sqlwarden.core.session import SQLAlchemySession
from sqlwarden.exceptions import QueryError

logger = logging.getLogger(__name__)

_SQLSERVER_DATABASES = """
    SELECT name AS database_name, database_id, create_date, collation_name,
           state_desc AS state
    FROM sys.databases
    WHERE name NOT IN ('master', 'tempdb', 'model', 'msdb')
    ORDER BY name
"""

_POSTGRES_DATABASES = """
    SELECT datname AS database_name
    FROM pg_database
    WHERE NOT datistemplate
    ORDER BY datname
"""


class SchemaCatalog:
    """Read-only view of the connected database's schema.

    One catalog belongs to one session; the inspector caches what it reads,
    so create a new catalog to see schema changes.
    """

    def __init__(self, session: SQLAlchemySession) -> None:
        """Initialize the catalog.

        Args:
            session: Open session (after any database switch)
        """
        self._session = session
        self._inspector: Inspector = session.inspector()

    def _schema_name(self, schema: str | None) -> str | None:
        return schema or self._inspector.default_schema_name

    def list_databases(self) -> list[dict[str, Any]]:
        """List databases visible to the connection.

        SQL Server and PostgreSQL read their system catalogs; SQLite lists
        the attached databases.
        """
        dialect = self._session.dialect
        if dialect == "mssql":
            return self._session.query(_SQLSERVER_DATABASES).rows
        if dialect == "postgresql":
            return self._session.query(_POSTGRES_DATABASES).rows
        try:
            names = self._inspector.get_schema_names()
        except SQLAlchemyError as e:
            raise QueryError(f"Could not list databases: {e}") from e
        return [{"database_name": name} for name in names]

    def list_tables(self, schema: str | None = None) -> list[dict[str, Any]]:
        """List tables and views in a schema (the default schema if omitted)."""
        try:
            tables = self._inspector.get_table_names(schema=schema)
            views = self._inspector.get_view_names(schema=schema)
        except SQLAlchemyError as e:
            raise QueryError(f"Could not list tables: {e}", {"schema": schema}) from e

        schema_name = self._schema_name(schema)
        rows = [
            {"schema_name": schema_name, "table_name": name, "table_type": "BASE TABLE"}
            for name in tables
        ]
        rows.extend(
            {"schema_name": schema_name, "table_name": name, "table_type": "VIEW"}
            for name in views
        )
        return sorted(rows, key=lambda row: row["table_name"])

    def describe_table(self, table_name: str, schema: str | None = None) -> list[dict[str, Any]]:
        """Column definitions of a table, in ordinal order.

        Raises:
            QueryError: If the table does not exist
        """
        try:
            if not self._inspector.has_table(table_name, schema=schema):
                raise QueryError(
                    f"Table '{table_name}' not found. "
                    "Use list_tables to see the available tables.",
                    {"table_name": table_name, "schema": schema},
                )
            columns = self._inspector.get_columns(table_name, schema=schema)
            primary_key = self._inspector.get_pk_constraint(table_name, schema=schema)
        except SQLAlchemyError as e:
            raise QueryError(
                f"Could not describe table '{table_name}': {e}",
                {"table_name": table_name, "schema": schema},
            ) from e

        key_columns = set(primary_key.get("constrained_columns") or [])
        return [
            {
                "column_name": column["name"],
                "data_type": self._type_name(column["type"]),
                "is_nullable": bool(column.get("nullable", True)),
                "column_default": column.get("default"),
                "is_primary_key": column["name"] in key_columns,
            }
            for column in columns
        ]

    def list_foreign_keys(self, schema: str | None = None) -> list[dict[str, Any]]:
        """Foreign key relationships in a schema, one row per column pair."""
        rows: list[dict[str, Any]] = []
        try:
            for table in self._inspector.get_table_names(schema=schema):
                for fk in self._inspector.get_foreign_keys(table, schema=schema):
                    pairs = zip(fk["constrained_columns"], fk["referred_columns"], strict=False)
                    for parent_column, referenced_column in pairs:
                        rows.append(
                            {
                                "foreign_key_name": fk.get("name"),
                                "parent_table": table,
                                "parent_column": parent_column,
                                "referenced_schema": fk.get("referred_schema"),
                                "referenced_table": fk["referred_table"],
                                "referenced_column": referenced_column,
                            }
                        )
        except SQLAlchemyError as e:
            raise QueryError(f"Could not list foreign keys: {e}", {"schema": schema}) from e
        return rows

    def _type_name(self, column_type: Any) -> str:
        try:
            return str(column_type.compile(dialect=self._inspector.dialect))
        except Exception:
            logger.debug(f"Could not render column type {column_type!r}")
            return type(column_type).__name__
