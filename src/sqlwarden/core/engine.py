"""SQLWarden facade: validated, streaming-aware query execution."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from sqlwarden.core.catalog import SchemaCatalog
from sqlwarden.core.connection import DatabaseConnection
from sqlwarden.core.types import (
    Chunk,
    ExecutionContext,
    OutputFormat,
    PerformanceStats,
    QueryRecord,
    SafetyPolicy,
    StreamingConfig,
    StreamResult,
)
from sqlwarden.exceptions import QueryError, QueryValidationError
from sqlwarden.query.formatter import ResponseFormatter
from sqlwarden.query.metrics import PerformanceMonitor
from sqlwarden.query.validator import QueryValidator, ValidationResult
from sqlwarden.streaming.handler import StreamingHandler, build_export_query

if TYPE_CHECKING:
    from sqlwarden.config import ServerConfig
    from sqlwarden.tools import ToolDefinition, ToolRegistry

logger = logging.getLogger(__name__)

# Rows returned by get_table_data when no limit is given
DEFAULT_TABLE_DATA_LIMIT = 100


class SQLWarden:
    """Main SQLWarden class - policy-gated query execution for agents.

    Every statement passes the QueryValidator before it reaches the
    database; large results are streamed in bounded chunks by the
    StreamingHandler. All results are JSON-serializable.

    Example:
        warden = SQLWarden("sqlite:///./app.db")
        result = warden.execute_query("SELECT id, name FROM users WHERE active = 1")
        print(result.recordset)

        export = warden.export_table("orders", output_format="csv")
        csv_text = warden.reconstruct_from_chunks(export.chunks, "csv")
    """

    def __init__(
        self,
        url: str,
        echo: bool = False,
        policy: SafetyPolicy | None = None,
        streaming: StreamingConfig | None = None,
        monitor: PerformanceMonitor | None = None,
    ) -> None:
        """Initialize SQLWarden.

        Args:
            url: Database connection URL
            echo: Whether to echo SQL statements (for debugging)
            policy: Safety policy (read-only by default)
            streaming: Streaming configuration
            monitor: Performance monitor (a default one if not provided)
        """
        self._connection = DatabaseConnection(url, echo=echo)
        self._validator = QueryValidator(policy)
        self._streaming = StreamingHandler(streaming)
        self._monitor = monitor or PerformanceMonitor()
        streaming_config = self._streaming.get_config()
        self._formatter = ResponseFormatter(
            max_response_size=streaming_config.max_response_size,
            max_json_chunk_size=streaming_config.max_json_chunk_size,
        )
        self._tool_registry: ToolRegistry | None = None

    @classmethod
    def from_config(cls, config: ServerConfig) -> SQLWarden:
        """Create an instance from a ServerConfig."""
        return cls(
            config.database_url,
            echo=config.echo,
            policy=config.security_policy(),
            streaming=config.streaming,
            monitor=PerformanceMonitor(
                enabled=config.monitoring.enabled,
                max_history=config.monitoring.max_history,
                slow_query_threshold_ms=config.monitoring.slow_query_threshold_ms,
            ),
        )

    @property
    def connection(self) -> DatabaseConnection:
        """Underlying database connection."""
        return self._connection

    @property
    def formatter(self) -> ResponseFormatter:
        """Reply envelope builder used by the tool surfaces."""
        return self._formatter

    @property
    def streaming_handler(self) -> StreamingHandler:
        """Streaming handler used for execution."""
        return self._streaming

    def close(self) -> None:
        """Close the database connection."""
        self._connection.close()

    def __enter__(self) -> SQLWarden:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Context manager exit."""
        self.close()

    # === Validation ===

    def validate(self, sql: str) -> ValidationResult:
        """Validate a query against the current safety policy without running it.

        Args:
            sql: SQL query

        Returns:
            ValidationResult (allowed flag, reason, query type, warnings)
        """
        return self._validator.validate(sql)

    def update_validator_config(self, **changes: bool) -> SafetyPolicy:
        """Update the safety policy. Takes effect for the next query.

        Args:
            **changes: read_only_mode, allow_destructive_operations and/or
                allow_schema_changes

        Returns:
            The new policy
        """
        return self._validator.update_config(**changes)

    def get_validator_config(self) -> SafetyPolicy:
        """Get a copy of the current safety policy."""
        return self._validator.get_config()

    # === Execution ===

    def execute_query(
        self,
        sql: str,
        database: str | None = None,
        output_format: OutputFormat = "json",
        force_streaming: bool = False,
        pretty_print: bool = False,
        tool: str = "execute_query",
    ) -> StreamResult:
        """Validate and execute a SQL query.

        Large results (unfiltered SELECT *, bulk operations) are streamed in
        chunks; everything else returns a flat recordset.

        Args:
            sql: SQL query to execute
            database: Database to switch to first (SQL Server only)
            output_format: Chunk encoding for streamed results ("json", "csv", "raw")
            force_streaming: Always use the streaming path
            pretty_print: Indent JSON chunks
            tool: Tool name recorded in performance metrics

        Returns:
            StreamResult

        Raises:
            QueryValidationError: If the safety policy rejects the query
            QueryError: If execution fails
        """
        validation = self._validator.validate(sql)
        if validation.query_type == "empty":
            raise QueryError("Nothing to execute: the query is empty.")
        if not validation.allowed:
            raise QueryValidationError(validation)

        context = ExecutionContext(
            database=database,
            output_format=output_format,
            force_streaming=force_streaming,
            pretty_print=pretty_print,
        )
        return self._run(tool, sql, database, context)

    def export_table(
        self,
        table_name: str,
        schema: str | None = None,
        database: str | None = None,
        limit: int | None = None,
        where_clause: str | None = None,
        output_format: OutputFormat = "csv",
        pretty_print: bool = False,
    ) -> StreamResult:
        """Export a table through the streaming path.

        The generated SELECT (including the WHERE clause) is validated like
        any other query.

        Args:
            table_name: Table to export
            schema: Table schema (database default if omitted)
            database: Database to switch to first (SQL Server only)
            limit: Maximum rows to export
            where_clause: Optional filter, without the WHERE keyword
            output_format: "csv", "json" or "raw"
            pretty_print: Indent JSON chunks

        Returns:
            Streaming StreamResult

        Raises:
            QueryValidationError: If the generated query is rejected
            QueryError: If execution fails
        """
        start_time = time.perf_counter()
        query = table_name
        try:
            with self._connection.session() as session:
                query = build_export_query(session, table_name, schema, limit, where_clause)
                validation = self._validator.validate(query)
                if not validation.allowed:
                    raise QueryValidationError(validation)

                result = self._streaming.stream_table_export(
                    session,
                    table_name,
                    schema=schema,
                    database=database,
                    limit=limit,
                    where_clause=where_clause,
                    output_format=output_format,
                    pretty_print=pretty_print,
                )
        except QueryValidationError:
            raise
        except Exception as e:
            self._record_failure("export_table", query, database, start_time, e)
            raise

        self._record_success("export_table", query, database, result)
        return result

    # === Schema Exploration ===

    def list_databases(self) -> list[dict[str, Any]]:
        """List databases visible to the connection."""
        return self._inspect("list_databases", None, lambda catalog: catalog.list_databases())

    def list_tables(
        self, schema: str | None = None, database: str | None = None
    ) -> list[dict[str, Any]]:
        """List tables and views.

        Args:
            schema: Schema to list (database default if omitted)
            database: Database to switch to first (SQL Server only)

        Returns:
            Rows with schema_name, table_name and table_type
        """
        return self._inspect("list_tables", database, lambda catalog: catalog.list_tables(schema))

    def describe_table(
        self,
        table_name: str,
        schema: str | None = None,
        database: str | None = None,
    ) -> list[dict[str, Any]]:
        """Describe the columns of a table.

        Returns:
            Rows with column_name, data_type, is_nullable, column_default
            and is_primary_key

        Raises:
            QueryError: If the table does not exist
        """
        return self._inspect(
            "describe_table", database, lambda catalog: catalog.describe_table(table_name, schema)
        )

    def list_foreign_keys(
        self, schema: str | None = None, database: str | None = None
    ) -> list[dict[str, Any]]:
        """List foreign key relationships, one row per column pair."""
        return self._inspect(
            "list_foreign_keys", database, lambda catalog: catalog.list_foreign_keys(schema)
        )

    def get_table_data(
        self,
        table_name: str,
        schema: str | None = None,
        database: str | None = None,
        limit: int = DEFAULT_TABLE_DATA_LIMIT,
        where_clause: str | None = None,
        output_format: OutputFormat = "json",
    ) -> StreamResult:
        """Sample rows from a table.

        Unlike export_table, the streaming decision is left to the handler,
        which knows the table and can check its size.

        Raises:
            QueryValidationError: If the generated query is rejected
            QueryError: If execution fails
        """
        start_time = time.perf_counter()
        query = table_name
        try:
            with self._connection.session() as session:
                if database:
                    session.use_database(database)
                query = build_export_query(session, table_name, schema, limit, where_clause)
                validation = self._validator.validate(query)
                if not validation.allowed:
                    raise QueryValidationError(validation)

                context = ExecutionContext(
                    table_name=table_name,
                    schema=schema,
                    database=database,
                    output_format=output_format,
                )
                result = self._streaming.execute_query_with_streaming(session, query, context)
        except QueryValidationError:
            raise
        except Exception as e:
            self._record_failure("get_table_data", query, database, start_time, e)
            raise

        self._record_success("get_table_data", query, database, result)
        return result

    def _inspect(
        self,
        tool: str,
        database: str | None,
        read: Callable[[SchemaCatalog], list[dict[str, Any]]],
    ) -> list[dict[str, Any]]:
        start_time = time.perf_counter()
        try:
            with self._connection.session() as session:
                if database:
                    session.use_database(database)
                rows = read(SchemaCatalog(session))
        except Exception as e:
            self._record_failure(tool, tool, database, start_time, e)
            raise

        self._monitor.record_query(
            tool=tool,
            query=tool,
            execution_time_ms=(time.perf_counter() - start_time) * 1000,
            success=True,
            row_count=len(rows),
            database=database,
        )
        return rows

    def _run(
        self,
        tool: str,
        sql: str,
        database: str | None,
        context: ExecutionContext,
    ) -> StreamResult:
        start_time = time.perf_counter()
        try:
            with self._connection.session() as session:
                if database:
                    session.use_database(database)
                result = self._streaming.execute_query_with_streaming(session, sql, context)
        except Exception as e:
            self._record_failure(tool, sql, database, start_time, e)
            raise

        self._record_success(tool, sql, database, result)
        return result

    def _record_success(
        self, tool: str, query: str, database: str | None, result: StreamResult
    ) -> None:
        self._monitor.record_query(
            tool=tool,
            query=query,
            execution_time_ms=result.performance.duration_ms,
            success=True,
            row_count=result.total_rows,
            streaming=result.streaming,
            database=database,
        )

    def _record_failure(
        self,
        tool: str,
        query: str,
        database: str | None,
        start_time: float,
        error: Exception,
    ) -> None:
        logger.error(f"{tool} failed: {error}")
        self._monitor.record_query(
            tool=tool,
            query=query,
            execution_time_ms=(time.perf_counter() - start_time) * 1000,
            success=False,
            database=database,
            error=str(error),
        )

    # === Results ===

    def reconstruct_from_chunks(
        self,
        chunks: Iterable[Chunk | Mapping[str, Any]] | None,
        output_format: OutputFormat = "json",
    ) -> list[Any] | str:
        """Rebuild one result from streamed chunks.

        Raises:
            ReconstructionSecurityError: If a JSON chunk is unsafe
        """
        return self._streaming.reconstruct_from_chunks(chunks, output_format)

    # === Configuration & Monitoring ===

    def get_streaming_config(self) -> StreamingConfig:
        """Get a copy of the streaming configuration."""
        return self._streaming.get_config()

    def update_streaming_config(self, **changes: Any) -> StreamingConfig:
        """Update the streaming configuration. Takes effect for the next query."""
        config = self._streaming.update_config(**changes)
        self._formatter.max_response_size = config.max_response_size
        self._formatter.max_json_chunk_size = config.max_json_chunk_size
        return config

    def get_performance_stats(self) -> PerformanceStats:
        """Aggregated performance statistics for recent queries."""
        return self._monitor.get_stats()

    def get_query_performance(
        self,
        limit: int = 50,
        tool_filter: str | None = None,
        slow_only: bool = False,
    ) -> list[QueryRecord]:
        """Recent query records, newest first.

        Args:
            limit: Maximum number of records
            tool_filter: Only records for this tool
            slow_only: Only queries above the slow query threshold
        """
        return self._monitor.get_recent(limit, tool=tool_filter, slow_only=slow_only)

    def get_connection_health(self) -> dict[str, Any]:
        """Connection and pool diagnostics (never raises)."""
        return self._connection.get_health()

    # === Tools (Agent Integration) ===

    @property
    def tools(self) -> ToolRegistry:
        """Get tool registry.

        Returns:
            ToolRegistry with all available tools
        """
        if self._tool_registry is None:
            from sqlwarden.tools import ToolRegistry

            self._tool_registry = ToolRegistry(self)
        return self._tool_registry

    def get_tools(self) -> list[ToolDefinition]:
        """Get all available tools."""
        return self.tools.get_all()
