"""Tool registry for agent access."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from sqlwarden.core.types import OutputFormat
from sqlwarden.tools.base import ToolDefinition, function_to_tool_definition

if TYPE_CHECKING:
    from sqlwarden.core.engine import SQLWarden


class ToolRegistry:
    """Registry of tools for agent consumption.

    Wraps SQLWarden operations so every tool returns a JSON-serializable
    dict, ready for OpenAI or Anthropic tool calling.
    """

    def __init__(self, warden: SQLWarden) -> None:
        """Initialize tool registry.

        Args:
            warden: SQLWarden instance
        """
        self._warden = warden
        self._tools: dict[str, ToolDefinition] = {}
        self._register_default_tools()

    def _register_default_tools(self) -> None:
        self.register(
            name="sqlwarden_execute_query",
            description="Execute a SQL query under the current safety policy. "
            "Rejected queries raise an error naming the policy setting that blocked them. "
            "Large results are streamed and returned as one payload.",
            func=self._tool_execute_query,
        )

        self.register(
            name="sqlwarden_validate_query",
            description="Check whether a SQL query would be allowed, without running it. "
            "Use this before executing anything that is not a plain SELECT.",
            func=self._tool_validate_query,
        )

        self.register(
            name="sqlwarden_list_databases",
            description="List the databases visible to the connection.",
            func=self._tool_list_databases,
        )

        self.register(
            name="sqlwarden_list_tables",
            description="List tables and views in a schema. Start here to discover "
            "what can be queried.",
            func=self._tool_list_tables,
        )

        self.register(
            name="sqlwarden_describe_table",
            description="Get column names, types, nullability, defaults and primary key "
            "flags for a table.",
            func=self._tool_describe_table,
        )

        self.register(
            name="sqlwarden_list_foreign_keys",
            description="List foreign key relationships in a schema (parent and "
            "referenced table and column).",
            func=self._tool_list_foreign_keys,
        )

        self.register(
            name="sqlwarden_get_table_data",
            description="Get sample rows from a table with an optional filter and limit "
            "(100 rows by default). The generated query is validated like any other.",
            func=self._tool_get_table_data,
        )

        self.register(
            name="sqlwarden_export_table",
            description="Export a table (optionally filtered and limited) as CSV or JSON "
            "through the streaming path.",
            func=self._tool_export_table,
        )

        self.register(
            name="sqlwarden_get_security_config",
            description="Get the current safety policy (read-only mode, destructive "
            "operations, schema changes).",
            func=self._tool_get_security_config,
        )

        self.register(
            name="sqlwarden_get_streaming_config",
            description="Get the current streaming configuration (batch size, limits).",
            func=self._tool_get_streaming_config,
        )

        self.register(
            name="sqlwarden_get_performance_stats",
            description="Get aggregated statistics for recently executed queries.",
            func=self._tool_get_performance_stats,
        )

        self.register(
            name="sqlwarden_get_query_performance",
            description="Get recent query records (newest first), optionally filtered "
            "by tool or limited to slow queries.",
            func=self._tool_get_query_performance,
        )

        self.register(
            name="sqlwarden_get_connection_health",
            description="Check that the database answers and report connection pool usage.",
            func=self._tool_get_connection_health,
        )

    def _tool_execute_query(
        self,
        query: str,
        database: str | None = None,
        output_format: OutputFormat = "json",
        force_streaming: bool = False,
    ) -> dict[str, Any]:
        """Execute a SQL query (tool wrapper).

        Args:
            query: SQL query
            database: Database to switch to first
            output_format: Encoding for streamed results
            force_streaming: Always stream the result

        Returns:
            Reply envelope with data, row count and performance
        """
        result = self._warden.execute_query(
            query,
            database=database,
            output_format=output_format,
            force_streaming=force_streaming,
            tool="sqlwarden_execute_query",
        )
        return self._warden.formatter.format_stream_result(
            result,
            tool="sqlwarden_execute_query",
            query=query,
            output_format=output_format,
            database=database,
        )

    def _tool_validate_query(self, query: str) -> dict[str, Any]:
        """Validate a SQL query (tool wrapper)."""
        return self._warden.formatter.format_validation(self._warden.validate(query))

    def _tool_list_databases(self) -> dict[str, Any]:
        databases = self._warden.list_databases()
        return {"databases": databases, "count": len(databases)}

    def _tool_list_tables(
        self, schema: str | None = None, database: str | None = None
    ) -> dict[str, Any]:
        """List tables (tool wrapper).

        Args:
            schema: Schema to list (database default if omitted)
            database: Database to switch to first
        """
        tables = self._warden.list_tables(schema=schema, database=database)
        return {"tables": tables, "count": len(tables)}

    def _tool_describe_table(
        self,
        table_name: str,
        schema: str | None = None,
        database: str | None = None,
    ) -> dict[str, Any]:
        """Describe a table (tool wrapper).

        Args:
            table_name: Table to describe
            schema: Table schema
            database: Database to switch to first
        """
        columns = self._warden.describe_table(table_name, schema=schema, database=database)
        return {"table": table_name, "columns": columns}

    def _tool_list_foreign_keys(
        self, schema: str | None = None, database: str | None = None
    ) -> dict[str, Any]:
        """List foreign keys (tool wrapper)."""
        foreign_keys = self._warden.list_foreign_keys(schema=schema, database=database)
        return {"foreign_keys": foreign_keys, "count": len(foreign_keys)}

    def _tool_get_table_data(
        self,
        table_name: str,
        schema: str | None = None,
        database: str | None = None,
        limit: int = 100,
        where_clause: str | None = None,
    ) -> dict[str, Any]:
        """Sample table rows (tool wrapper).

        Args:
            table_name: Table to read
            schema: Table schema
            database: Database to switch to first
            limit: Maximum rows
            where_clause: Filter without the WHERE keyword
        """
        result = self._warden.get_table_data(
            table_name,
            schema=schema,
            database=database,
            limit=limit,
            where_clause=where_clause,
        )
        return self._warden.formatter.format_stream_result(
            result,
            tool="sqlwarden_get_table_data",
            query=f"sample {table_name}",
            output_format="json",
            database=database,
        )

    def _tool_export_table(
        self,
        table_name: str,
        schema: str | None = None,
        database: str | None = None,
        limit: int | None = None,
        where_clause: str | None = None,
        output_format: OutputFormat = "csv",
    ) -> dict[str, Any]:
        """Export a table (tool wrapper)."""
        result = self._warden.export_table(
            table_name,
            schema=schema,
            database=database,
            limit=limit,
            where_clause=where_clause,
            output_format=output_format,
        )
        return self._warden.formatter.format_stream_result(
            result,
            tool="sqlwarden_export_table",
            query=f"export {table_name}",
            output_format=output_format,
            database=database,
        )

    def _tool_get_security_config(self) -> dict[str, Any]:
        return self._warden.get_validator_config().model_dump()

    def _tool_get_streaming_config(self) -> dict[str, Any]:
        return self._warden.get_streaming_config().model_dump()

    def _tool_get_performance_stats(self) -> dict[str, Any]:
        return self._warden.get_performance_stats().model_dump()

    def _tool_get_query_performance(
        self,
        limit: int = 50,
        tool_filter: str | None = None,
        slow_only: bool = False,
    ) -> dict[str, Any]:
        """Recent query records (tool wrapper).

        Args:
            limit: Maximum records
            tool_filter: Only records for this tool
            slow_only: Only slow queries
        """
        records = self._warden.get_query_performance(
            limit=limit, tool_filter=tool_filter, slow_only=slow_only
        )
        return {
            "queries": [record.model_dump(mode="json") for record in records],
            "count": len(records),
        }

    def _tool_get_connection_health(self) -> dict[str, Any]:
        return self._warden.get_connection_health()

    def register(
        self,
        name: str,
        func: Callable[..., Any],
        description: str | None = None,
    ) -> ToolDefinition:
        """Register a tool.

        Args:
            name: Tool name
            func: Function to call
            description: Tool description

        Returns:
            Created ToolDefinition
        """
        tool = function_to_tool_definition(func, name=name, description=description)
        self._tools[name] = tool
        return tool

    def get(self, name: str) -> ToolDefinition | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def call(self, name: str, **arguments: Any) -> Any:
        """Invoke a registered tool by name.

        Raises:
            KeyError: If no tool has that name
        """
        tool = self._tools.get(name)
        if tool is None:
            raise KeyError(f"Unknown tool '{name}'. Available: {', '.join(self._tools)}")
        return tool(**arguments)

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def get_all(self) -> list[ToolDefinition]:
        """Get all registered tools."""
        return list(self._tools.values())

    def to_openai_format(self) -> list[dict[str, Any]]:
        """Export all tools in OpenAI function calling format."""
        return [tool.to_openai_format() for tool in self._tools.values()]

    def to_anthropic_format(self) -> list[dict[str, Any]]:
        """Export all tools in Anthropic format."""
        return [tool.to_anthropic_format() for tool in self._tools.values()]

    def to_dict(self) -> list[dict[str, Any]]:
        """Export all tools as dicts."""
        return [tool.to_dict() for tool in self._tools.values()]
