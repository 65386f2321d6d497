"""Streaming execution for large query results.

Decides between a single round trip and row-by-row streaming, groups
streamed rows into bounded batches, encodes each batch as a chunk, and
rebuilds full results from chunk lists.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from sqlwarden.core.session import QuerySession
from sqlwarden.core.types import (
    Chunk,
    ExecutionContext,
    OutputFormat,
    PerformanceData,
    StreamingConfig,
    StreamingStats,
    StreamResult,
    merge_config,
)
from sqlwarden.exceptions import QueryError
from sqlwarden.query.shape import analyze_shape
from sqlwarden.streaming.encoders import batch_to_csv, batch_to_json, encoded_size
from sqlwarden.streaming.reconstruct import reconstruct_from_chunks

logger = logging.getLogger(__name__)

# Tables above either threshold are streamed
STREAM_ROW_THRESHOLD = 10_000
STREAM_SIZE_THRESHOLD_MB = 10

# Rows serialized when estimating memory usage
MEMORY_SAMPLE_SIZE = 100

_TABLE_SIZE_QUERIES = {
    "mssql": """
        SELECT
            SUM(p.rows) AS estimated_rows,
            SUM(a.total_pages) * 8 / 1024.0 AS estimated_size_mb
        FROM sys.tables t
        INNER JOIN sys.partitions p ON t.object_id = p.object_id
        INNER JOIN sys.allocation_units a ON p.partition_id = a.container_id
        INNER JOIN sys.schemas s ON t.schema_id = s.schema_id
        WHERE t.name = :table_name
          AND s.name = :schema_name
          AND p.index_id <= 1
    """,
    "postgresql": """
        SELECT
            GREATEST(c.reltuples, 0)::bigint AS estimated_rows,
            pg_total_relation_size(c.oid) / 1048576.0 AS estimated_size_mb
        FROM pg_class c
        INNER JOIN pg_namespace n ON n.oid = c.relnamespace
        WHERE c.relname = :table_name
          AND n.nspname = :schema_name
    """,
}


def table_size_query(
    session: QuerySession, table_name: str, schema: str | None
) -> tuple[str, dict[str, Any]]:
    """Catalog statistics query and bind parameters for the session's dialect.

    Dialects without cheap catalog statistics fall back to COUNT(*).
    """
    if session.dialect in _TABLE_SIZE_QUERIES:
        params = {"table_name": table_name, "schema_name": schema}
        return _TABLE_SIZE_QUERIES[session.dialect], params
    target = session.quote_identifier(table_name)
    if schema and session.dialect != "sqlite":
        target = f"{session.quote_identifier(schema)}.{target}"
    return f"SELECT COUNT(*) AS estimated_rows FROM {target}", {}


def build_export_query(
    session: QuerySession,
    table_name: str,
    schema: str | None = None,
    limit: int | None = None,
    where_clause: str | None = None,
) -> str:
    """Build the SELECT statement for a table export.

    SQL Server gets ``SELECT TOP n``; other dialects get ``LIMIT n``.
    """
    if limit is not None and (not isinstance(limit, int) or limit <= 0):
        raise QueryError(f"Export limit must be a positive integer, got {limit!r}")

    target = session.quote_identifier(table_name)
    if schema:
        target = f"{session.quote_identifier(schema)}.{target}"

    use_top = limit is not None and session.dialect == "mssql"
    query = f"SELECT{f' TOP {limit}' if use_top else ''} * FROM {target}"
    if where_clause:
        query += f" WHERE {where_clause}"
    if limit is not None and not use_top:
        query += f" LIMIT {limit}"
    return query


class StreamingHandler:
    """Executes queries, streaming large results in bounded batches.

    Configuration is read once per call as a snapshot; update_config swaps in
    a new config object, so in-flight calls are unaffected.
    """

    def __init__(self, config: StreamingConfig | None = None, **overrides: Any) -> None:
        """Initialize the handler.

        Args:
            config: Streaming configuration (defaults if not provided)
            **overrides: Individual config fields applied on top of ``config``
        """
        base = config or StreamingConfig()
        self._config = merge_config(base, overrides) if overrides else base

    # === Execution ===

    def execute_query_with_streaming(
        self,
        session: QuerySession,
        query: str,
        context: ExecutionContext | None = None,
    ) -> StreamResult:
        """Execute a query, streaming when the result is expected to be large.

        Args:
            session: Active query session
            query: SQL to execute (already validated by the caller)
            context: Per-call execution context

        Returns:
            StreamResult with either a recordset or chunks

        Raises:
            QueryError: If the underlying database call fails
        """
        context = context or ExecutionContext()
        config = self.get_config()
        start_time = time.perf_counter()

        if self.should_stream(session, query, context, config=config):
            return self.execute_streaming_query(session, query, context, start_time, config)
        return self.execute_regular_query(session, query, context, start_time)

    def should_stream(
        self,
        session: QuerySession,
        query: str,
        context: ExecutionContext,
        config: StreamingConfig | None = None,
    ) -> bool:
        """Decide whether a query should take the streaming path.

        Args:
            session: Active query session (used for the table-size lookup)
            query: SQL to execute
            context: Execution context
            config: Config snapshot (current config if omitted)

        Returns:
            True to stream, False for a single round trip
        """
        config = config or self._config
        if not config.enable_streaming:
            return False

        if context.force_streaming:
            return True

        shape = analyze_shape(query)
        if shape.unfiltered_select_star or shape.bulk_operation:
            return True

        if context.table_name:
            return self._table_exceeds_thresholds(session, context)

        return False

    def _table_exceeds_thresholds(self, session: QuerySession, context: ExecutionContext) -> bool:
        """Read catalog statistics for the context table. Fails toward False."""
        table_name = context.table_name or ""
        try:
            schema = context.schema or session.default_schema
            sql, params = table_size_query(session, table_name, schema)
            outcome = session.query(sql, params)
            if not outcome.rows:
                return False
            stats = outcome.rows[0]
            estimated_rows = float(stats.get("estimated_rows") or 0)
            estimated_size_mb = float(stats.get("estimated_size_mb") or 0)
        except Exception as e:
            logger.warning(f"Could not determine table size for streaming decision: {e}")
            return False

        logger.debug(
            f"Table {table_name}: ~{estimated_rows:.0f} rows, ~{estimated_size_mb:.1f} MB"
        )
        return estimated_rows > STREAM_ROW_THRESHOLD or estimated_size_mb > STREAM_SIZE_THRESHOLD_MB

    def execute_regular_query(
        self,
        session: QuerySession,
        query: str,
        context: ExecutionContext,
        start_time: float | None = None,
    ) -> StreamResult:
        """Execute a query in a single round trip.

        Args:
            session: Active query session
            query: SQL to execute
            context: Execution context
            start_time: perf_counter() value when the call started

        Returns:
            Non-streaming StreamResult with the full recordset
        """
        start_time = start_time if start_time is not None else time.perf_counter()
        outcome = session.query(query)
        duration_ms = (time.perf_counter() - start_time) * 1000

        context.columns = list(outcome.columns)
        return StreamResult(
            streaming=False,
            recordset=outcome.rows,
            total_rows=len(outcome.rows),
            rows_affected=outcome.rows_affected,
            columns=context.columns,
            performance=PerformanceData(
                duration_ms=duration_ms,
                row_count=len(outcome.rows),
                memory_used_mb=self.estimate_memory_usage(outcome.rows),
                memory_efficient=False,
            ),
        )

    def execute_streaming_query(
        self,
        session: QuerySession,
        query: str,
        context: ExecutionContext,
        start_time: float | None = None,
        config: StreamingConfig | None = None,
    ) -> StreamResult:
        """Execute a query row by row, flushing rows into chunks.

        Rows are appended to a batch as the session reports them. A full
        batch becomes the next chunk; the final partial batch is flushed when
        the result set ends. Any error aborts the call without a partial result.

        Args:
            session: Active query session
            query: SQL to execute
            context: Execution context (format, CSV header state)
            start_time: perf_counter() value when the call started
            config: Config snapshot (current config if omitted)

        Returns:
            Streaming StreamResult with ordered chunks
        """
        start_time = start_time if start_time is not None else time.perf_counter()
        batch_size = (config or self._config).batch_size
        chunks: list[Chunk] = []
        batch: list[dict[str, Any]] = []
        total_rows = 0

        def on_columns(columns: Sequence[str]) -> None:
            context.columns = list(columns)

        def on_row(row: dict[str, Any]) -> None:
            nonlocal batch, total_rows
            total_rows += 1
            batch.append(row)
            if len(batch) >= batch_size:
                self.process_batch(batch, chunks, len(chunks) + 1, context)
                batch = []

        rows_affected = session.stream(query, on_columns=on_columns, on_row=on_row)

        if batch:
            self.process_batch(batch, chunks, len(chunks) + 1, context)

        chunk_count = len(chunks)
        return StreamResult(
            streaming=True,
            chunks=chunks,
            chunk_count=chunk_count,
            total_rows=total_rows,
            rows_affected=rows_affected,
            columns=context.columns,
            performance=PerformanceData(
                duration_ms=(time.perf_counter() - start_time) * 1000,
                row_count=total_rows,
                avg_batch_size=total_rows / chunk_count if chunk_count else 0,
                memory_efficient=True,
            ),
        )

    def process_batch(
        self,
        batch: Sequence[dict[str, Any]],
        chunks: list[Chunk],
        chunk_number: int,
        context: ExecutionContext,
    ) -> Chunk:
        """Encode a batch and append it to the chunk list.

        Args:
            batch: Rows of the batch
            chunks: Chunk list to append to
            chunk_number: 1-based number of the new chunk
            context: Execution context (output format, CSV header state)

        Returns:
            The appended chunk
        """
        data: list[dict[str, Any]] | str
        if context.output_format == "csv":
            data = batch_to_csv(batch, context)
        elif context.output_format == "json":
            data = batch_to_json(batch, context)
        else:
            data = list(batch)

        chunk = Chunk(
            chunk_number=chunk_number,
            data=data,
            row_count=len(batch),
            size=encoded_size(data),
        )
        chunks.append(chunk)
        return chunk

    def stream_table_export(
        self,
        session: QuerySession,
        table_name: str,
        schema: str | None = None,
        database: str | None = None,
        limit: int | None = None,
        where_clause: str | None = None,
        output_format: OutputFormat = "csv",
        pretty_print: bool = False,
    ) -> StreamResult:
        """Export a table with streaming forced on.

        Args:
            session: Active query session
            table_name: Table to export
            schema: Schema of the table (session default if omitted)
            database: Database to switch to first
            limit: Maximum number of rows
            where_clause: Filter appended as ``WHERE <clause>``
            output_format: "csv", "json" or "raw"
            pretty_print: Indent JSON chunks

        Returns:
            Streaming StreamResult
        """
        if database:
            session.use_database(database)

        query = build_export_query(session, table_name, schema, limit, where_clause)
        context = ExecutionContext(
            table_name=table_name,
            schema=schema,
            database=database,
            output_format=output_format,
            force_streaming=True,
            pretty_print=pretty_print,
        )
        logger.info(f"Exporting {table_name} as {output_format}")
        return self.execute_query_with_streaming(session, query, context)

    # === Results ===

    def estimate_memory_usage(self, recordset: Sequence[dict[str, Any]] | None) -> float:
        """Estimate the in-memory footprint of a recordset, in MB.

        Up to MEMORY_SAMPLE_SIZE rows are measured exactly; larger recordsets
        are extrapolated from the average size of the first
        MEMORY_SAMPLE_SIZE rows.
        """
        if not recordset:
            return 0.0

        sample = recordset[:MEMORY_SAMPLE_SIZE]
        sample_bytes = sum(
            len(json.dumps(row, default=str).encode("utf-8")) for row in sample
        )
        if len(recordset) <= MEMORY_SAMPLE_SIZE:
            total_bytes = float(sample_bytes)
        else:
            total_bytes = sample_bytes / len(sample) * len(recordset)
        return total_bytes / (1024 * 1024)

    def reconstruct_from_chunks(
        self,
        chunks: Iterable[Chunk | Mapping[str, Any]] | None,
        output_format: OutputFormat = "json",
    ) -> list[Any] | str:
        """Rebuild one result from chunks (see streaming.reconstruct).

        Raises:
            ReconstructionSecurityError: If a JSON chunk is unsafe
        """
        return reconstruct_from_chunks(
            chunks, output_format, max_json_chunk_size=self._config.max_json_chunk_size
        )

    def get_streaming_stats(self, result: StreamResult) -> StreamingStats:
        """Project a result onto reporting statistics."""
        if not result.streaming:
            return StreamingStats(
                streaming=False,
                memory_efficient=False,
                total_rows=result.total_rows,
            )

        chunk_count = result.chunk_count or 0
        return StreamingStats(
            streaming=True,
            memory_efficient=True,
            total_rows=result.total_rows,
            chunk_count=chunk_count,
            avg_chunk_size=result.total_rows / chunk_count if chunk_count else 0,
            performance=result.performance,
        )

    # === Configuration ===

    def update_config(self, **changes: Any) -> StreamingConfig:
        """Merge changes into the configuration.

        Raises:
            ConfigurationError: If a key is unknown or a value is invalid
        """
        self._config = merge_config(self._config, changes)
        logger.info(f"Streaming config updated: {changes}")
        return self.get_config()

    def get_config(self) -> StreamingConfig:
        """Get a copy of the current configuration."""
        return self._config.model_copy()
