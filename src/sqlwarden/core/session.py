"""Query sessions: the request capability consumed by the streaming handler.

A session runs one-shot queries and can stream a result set row by row,
reporting column metadata and rows through callbacks as they arrive.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import Connection, inspect, text
from sqlalchemy.engine import Inspector

from sqlwarden.core.types import QueryOutcome
from sqlwarden.exceptions import QueryError, SQLWardenError

logger = logging.getLogger(__name__)

ColumnsCallback = Callable[[Sequence[str]], None]
RowCallback = Callable[[dict[str, Any]], None]

# Schema used when a caller does not name one
DEFAULT_SCHEMAS = {"mssql": "dbo", "postgresql": "public", "sqlite": "main"}


@runtime_checkable
class QuerySession(Protocol):
    """Request capability supplied by the connection layer."""

    @property
    def dialect(self) -> str: ...

    @property
    def default_schema(self) -> str | None: ...

    def quote_identifier(self, name: str) -> str: ...

    def query(self, sql: str, params: Mapping[str, Any] | None = None) -> QueryOutcome: ...

    def stream(
        self,
        sql: str,
        on_columns: ColumnsCallback,
        on_row: RowCallback,
    ) -> int | None: ...

    def use_database(self, database: str) -> None: ...


class SQLAlchemySession:
    """QuerySession backed by a SQLAlchemy Connection.

    The session does not own the connection; DatabaseConnection.session()
    opens and closes it.
    """

    def __init__(self, connection: Connection) -> None:
        """Initialize the session.

        Args:
            connection: Open SQLAlchemy connection
        """
        self._conn = connection

    @property
    def dialect(self) -> str:
        """Dialect name (sqlite, postgresql, mssql, ...)."""
        return self._conn.dialect.name

    @property
    def default_schema(self) -> str | None:
        """Default schema of the connected database."""
        try:
            name = inspect(self._conn).default_schema_name
        except Exception:
            name = None
        return name or DEFAULT_SCHEMAS.get(self.dialect)

    def quote_identifier(self, name: str) -> str:
        """Quote an identifier using the dialect's rules."""
        return self._conn.dialect.identifier_preparer.quote_identifier(name)

    def inspector(self) -> Inspector:
        """Schema inspector bound to this session's connection."""
        return inspect(self._conn)

    def query(self, sql: str, params: Mapping[str, Any] | None = None) -> QueryOutcome:
        """Execute a statement and materialize all rows.

        Args:
            sql: SQL text
            params: Optional bind parameters

        Returns:
            QueryOutcome with rows as dicts

        Raises:
            QueryError: If execution fails
        """
        try:
            result = self._conn.execute(text(sql), dict(params or {}))
            if not result.returns_rows:
                return QueryOutcome(rows_affected=result.rowcount)
            columns = list(result.keys())
            rows = [dict(row) for row in result.mappings()]
        except Exception as e:
            raise QueryError(f"Query execution failed: {e}") from e
        return QueryOutcome(rows=rows, columns=columns, rows_affected=len(rows))

    def stream(
        self,
        sql: str,
        on_columns: ColumnsCallback,
        on_row: RowCallback,
    ) -> int | None:
        """Execute a statement with a server-side cursor, one callback per row.

        Args:
            sql: SQL text
            on_columns: Called once with column names before the first row
            on_row: Called for every row, in arrival order

        Returns:
            Rows affected for statements without a result set, else None

        Raises:
            QueryError: If execution or row fetching fails
        """
        try:
            result = self._conn.execution_options(stream_results=True).execute(text(sql))
            if not result.returns_rows:
                return result.rowcount
            on_columns(list(result.keys()))
            for row in result.mappings():
                on_row(dict(row))
            return None
        except SQLWardenError:
            raise
        except Exception as e:
            raise QueryError(f"Streaming query failed: {e}") from e

    def use_database(self, database: str) -> None:
        """Switch the active database for this session.

        Only dialects with a USE statement support switching.

        Raises:
            QueryError: If the dialect cannot switch databases
        """
        if self.dialect not in ("mssql", "mysql", "mariadb"):
            raise QueryError(
                f"Switching databases is not supported on {self.dialect}. "
                "Connect with a URL that names the target database instead.",
                {"database": database, "dialect": self.dialect},
            )
        logger.debug(f"Switching database to {database}")
        self.query(f"USE {self.quote_identifier(database)}")

    def commit(self) -> None:
        """Commit the current transaction."""
        self._conn.commit()

    def rollback(self) -> None:
        """Roll back the current transaction."""
        self._conn.rollback()
