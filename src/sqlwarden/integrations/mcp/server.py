"""MCP server for SQLWarden.

Exposes policy-gated SQL execution as MCP tools for AI agents.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from mcp.server.fastmcp import FastMCP  # type: ignore[import-not-found]

from sqlwarden import SQLWarden
from sqlwarden.config import ServerConfig
from sqlwarden.core.types import OutputFormat
from sqlwarden.exceptions import QueryValidationError

# Configure logging to stderr (important for stdio transport)
logging.basicConfig(level=logging.INFO, stream=sys.stderr)
logger = logging.getLogger(__name__)

# Create MCP server
mcp = FastMCP("sqlwarden")

# Global SQLWarden instance (set during server startup)
_warden: SQLWarden | None = None


def get_warden() -> SQLWarden:
    """Get the SQLWarden instance."""
    if _warden is None:
        raise RuntimeError("SQLWarden not initialized. Call create_server() first.")
    return _warden


def _rejected(e: QueryValidationError) -> str:
    return json.dumps({"error": str(e), "validation": e.result.to_dict()})


# === Query Tools ===


@mcp.tool()
def sqlwarden_execute_query(
    query: str,
    database: str | None = None,
    output_format: OutputFormat = "json",
    force_streaming: bool = False,
) -> str:
    """Execute a SQL query under the server's safety policy.

    The query is validated before it reaches the database:
    - Read-only mode (the default) admits SELECT, SHOW, DESCRIBE, EXPLAIN
      and WITH ... SELECT only
    - Schema changes need allow_schema_changes
    - INSERT/UPDATE/DELETE/TRUNCATE/EXEC/CALL need allow_destructive_operations

    Unfiltered SELECT * and bulk queries are streamed in chunks and returned
    as one payload; oversized payloads are truncated (see "truncated").

    Args:
        query: SQL query to execute
        database: Database to switch to first (SQL Server only)
        output_format: "json" (rows), "csv" (text) or "raw" (rows)
        force_streaming: Always use the streaming path

    Returns:
        JSON with:
        - data: Rows (json/raw) or CSV text
        - row_count, rows_affected, columns
        - streaming, chunk_count
        - performance: {duration_ms, row_count, memory_efficient, ...}
        - error: Error message if the query was rejected or failed
        - validation: Validation details if the query was rejected
    """
    warden = get_warden()
    try:
        result = warden.execute_query(
            query,
            database=database,
            output_format=output_format,
            force_streaming=force_streaming,
            tool="sqlwarden_execute_query",
        )
        reply = warden.formatter.format_stream_result(
            result,
            tool="sqlwarden_execute_query",
            query=query,
            output_format=output_format,
            database=database,
        )
        return json.dumps(reply, default=str)
    except QueryValidationError as e:
        return _rejected(e)
    except Exception as e:
        return json.dumps({"error": str(e)})


@mcp.tool()
def sqlwarden_validate_query(query: str) -> str:
    """Check whether a SQL query would be allowed, without running it.

    Args:
        query: SQL query to check

    Returns:
        JSON with allowed, reason, query_type, matched_keyword and warnings.
    """
    try:
        return json.dumps(get_warden().validate(query).to_dict())
    except Exception as e:
        return json.dumps({"error": str(e)})


# === Schema Tools ===


@mcp.tool()
def sqlwarden_list_databases() -> str:
    """List the databases visible to the connection.

    Returns:
        JSON with databases (database_name, ...) and count.
    """
    try:
        databases = get_warden().list_databases()
        return json.dumps({"databases": databases, "count": len(databases)}, default=str)
    except Exception as e:
        return json.dumps({"error": str(e)})


@mcp.tool()
def sqlwarden_list_tables(schema: str | None = None, database: str | None = None) -> str:
    """List tables and views. Start here to discover what can be queried.

    Args:
        schema: Schema to list (database default if omitted)
        database: Database to switch to first (SQL Server only)

    Returns:
        JSON with tables (schema_name, table_name, table_type) and count.
    """
    try:
        tables = get_warden().list_tables(schema=schema, database=database)
        return json.dumps({"tables": tables, "count": len(tables)})
    except Exception as e:
        return json.dumps({"error": str(e)})


@mcp.tool()
def sqlwarden_describe_table(
    table_name: str,
    schema: str | None = None,
    database: str | None = None,
) -> str:
    """Get the column definitions of a table.

    Args:
        table_name: Table to describe
        schema: Table schema (database default if omitted)
        database: Database to switch to first (SQL Server only)

    Returns:
        JSON with columns: column_name, data_type, is_nullable,
        column_default, is_primary_key.
    """
    try:
        columns = get_warden().describe_table(table_name, schema=schema, database=database)
        return json.dumps({"table": table_name, "columns": columns}, default=str)
    except Exception as e:
        return json.dumps({"error": str(e)})


@mcp.tool()
def sqlwarden_list_foreign_keys(schema: str | None = None, database: str | None = None) -> str:
    """List foreign key relationships, one row per column pair.

    Args:
        schema: Schema to inspect (database default if omitted)
        database: Database to switch to first (SQL Server only)

    Returns:
        JSON with foreign_keys (foreign_key_name, parent_table, parent_column,
        referenced_table, referenced_column) and count.
    """
    try:
        foreign_keys = get_warden().list_foreign_keys(schema=schema, database=database)
        return json.dumps({"foreign_keys": foreign_keys, "count": len(foreign_keys)})
    except Exception as e:
        return json.dumps({"error": str(e)})


@mcp.tool()
def sqlwarden_get_table_data(
    table_name: str,
    schema: str | None = None,
    database: str | None = None,
    limit: int = 100,
    where_clause: str | None = None,
) -> str:
    """Get sample rows from a table.

    The generated SELECT is validated under the safety policy.

    Args:
        table_name: Table to read
        schema: Table schema (database default if omitted)
        database: Database to switch to first (SQL Server only)
        limit: Maximum number of rows (default 100)
        where_clause: Filter without the WHERE keyword, e.g. "status = 'open'"

    Returns:
        JSON with data (rows), row_count, streaming and performance.
    """
    warden = get_warden()
    try:
        result = warden.get_table_data(
            table_name,
            schema=schema,
            database=database,
            limit=limit,
            where_clause=where_clause,
        )
        reply = warden.formatter.format_stream_result(
            result,
            tool="sqlwarden_get_table_data",
            query=f"sample {table_name}",
            database=database,
        )
        return json.dumps(reply, default=str)
    except QueryValidationError as e:
        return _rejected(e)
    except Exception as e:
        return json.dumps({"error": str(e)})


@mcp.tool()
def sqlwarden_export_table(
    table_name: str,
    schema: str | None = None,
    database: str | None = None,
    limit: int | None = None,
    where_clause: str | None = None,
    output_format: OutputFormat = "csv",
) -> str:
    """Export a table through the streaming path.

    Args:
        table_name: Table to export
        schema: Table schema (database default if omitted)
        database: Database to switch to first (SQL Server only)
        limit: Maximum number of rows
        where_clause: Filter without the WHERE keyword, e.g. "status = 'open'"
        output_format: "csv" (default), "json" or "raw"

    Returns:
        JSON with the exported data, row and chunk counts, and performance.
    """
    warden = get_warden()
    try:
        result = warden.export_table(
            table_name,
            schema=schema,
            database=database,
            limit=limit,
            where_clause=where_clause,
            output_format=output_format,
        )
        reply = warden.formatter.format_stream_result(
            result,
            tool="sqlwarden_export_table",
            query=f"export {table_name}",
            output_format=output_format,
            database=database,
        )
        return json.dumps(reply, default=str)
    except QueryValidationError as e:
        return _rejected(e)
    except Exception as e:
        return json.dumps({"error": str(e)})


# === Configuration & Monitoring Tools ===


@mcp.tool()
def sqlwarden_get_security_config() -> str:
    """Get the current safety policy.

    Returns:
        JSON with read_only_mode, allow_destructive_operations and
        allow_schema_changes.
    """
    return json.dumps(get_warden().get_validator_config().model_dump())


@mcp.tool()
def sqlwarden_get_streaming_config() -> str:
    """Get the current streaming configuration.

    Returns:
        JSON with batch_size, max_memory_mb, max_response_size,
        enable_streaming and max_json_chunk_size.
    """
    return json.dumps(get_warden().get_streaming_config().model_dump())


@mcp.tool()
def sqlwarden_get_performance_stats() -> str:
    """Get aggregated statistics for recently executed queries.

    Returns:
        JSON with total, failed, streaming and slow query counts plus
        average and maximum execution time.
    """
    return json.dumps(get_warden().get_performance_stats().model_dump())


@mcp.tool()
def sqlwarden_get_query_performance(
    limit: int = 50,
    tool_filter: str | None = None,
    slow_only: bool = False,
) -> str:
    """Get recent query records, newest first.

    Args:
        limit: Maximum number of records (default 50)
        tool_filter: Only records for this tool name
        slow_only: Only queries above the slow query threshold

    Returns:
        JSON with queries (tool, query, execution_time_ms, success, ...) and count.
    """
    records = get_warden().get_query_performance(
        limit=limit, tool_filter=tool_filter, slow_only=slow_only
    )
    return json.dumps(
        {"queries": [record.model_dump(mode="json") for record in records], "count": len(records)}
    )


@mcp.tool()
def sqlwarden_get_connection_health() -> str:
    """Check that the database answers and report connection pool usage.

    Returns:
        JSON with connected, status, dialect, latency_ms and pool counters.
    """
    return json.dumps(get_warden().get_connection_health())


def create_server(
    database_url: str | None = None,
    echo: bool = False,
    config: ServerConfig | None = None,
) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        database_url: Database URL (overrides the configured one)
        echo: Whether to echo SQL statements
        config: Server configuration (loaded from the environment if omitted)

    Returns:
        Configured FastMCP server instance
    """
    global _warden
    config = config or ServerConfig.from_env()
    updates: dict[str, object] = {}
    if database_url:
        updates["database_url"] = database_url
    if echo:
        updates["echo"] = True
    if updates:
        config = config.model_copy(update=updates)

    for warning in config.validate_settings():
        logger.warning(warning)

    _warden = SQLWarden.from_config(config)
    logger.info(f"SQLWarden initialized: {config.summary()}")
    return mcp


def main() -> None:
    """Entry point for running the MCP server."""
    parser = argparse.ArgumentParser(description="SQLWarden MCP Server")
    parser.add_argument(
        "--database",
        "-d",
        default=None,
        help="Database URL (default: $SQLWARDEN_URL or sqlite:///./sqlwarden.db)",
    )
    parser.add_argument(
        "--echo",
        action="store_true",
        help="Echo SQL statements",
    )
    args = parser.parse_args()

    config = ServerConfig.from_env()
    logging.getLogger().setLevel(config.log_level)

    create_server(args.database, echo=args.echo, config=config)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
