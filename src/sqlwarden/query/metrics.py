"""Query performance monitoring for SQLWarden.

Keeps a bounded in-memory history of tool calls and aggregates it on demand.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import UTC, datetime

from sqlwarden.core.types import PerformanceStats, QueryRecord

logger = logging.getLogger(__name__)

# Stored query text is cut to this many characters
MAX_QUERY_TEXT_LENGTH = 500


class PerformanceMonitor:
    """Records duration, row count and outcome for every executed query.

    Flags slow queries in the log so operators can spot them without
    polling the stats.
    """

    def __init__(
        self,
        enabled: bool = True,
        max_history: int = 1000,
        slow_query_threshold_ms: float = 5000.0,
    ) -> None:
        """Initialize the monitor.

        Args:
            enabled: Whether to record anything at all
            max_history: Number of records retained (oldest dropped first)
            slow_query_threshold_ms: Queries slower than this are logged as slow
        """
        self._enabled = enabled
        self._slow_query_threshold_ms = slow_query_threshold_ms
        self._history: deque[QueryRecord] = deque(maxlen=max_history)

    @property
    def enabled(self) -> bool:
        """Check if monitoring is enabled."""
        return self._enabled

    def record_query(
        self,
        tool: str,
        query: str,
        execution_time_ms: float,
        success: bool,
        row_count: int = 0,
        streaming: bool = False,
        database: str | None = None,
        error: str | None = None,
    ) -> QueryRecord | None:
        """Record one query execution.

        Args:
            tool: Tool or operation name
            query: SQL text (truncated for storage)
            execution_time_ms: Wall-clock duration
            success: Whether the query succeeded
            row_count: Rows returned
            streaming: Whether the streaming path was used
            database: Target database, if any
            error: Error message for failed queries

        Returns:
            The stored record, or None when monitoring is disabled
        """
        if not self._enabled:
            return None

        record = QueryRecord(
            tool=tool,
            query=query[:MAX_QUERY_TEXT_LENGTH],
            execution_time_ms=execution_time_ms,
            success=success,
            row_count=row_count,
            streaming=streaming,
            database=database,
            error=error,
            timestamp=datetime.now(UTC),
        )
        self._history.append(record)

        if execution_time_ms > self._slow_query_threshold_ms:
            logger.warning(
                f"Slow query in {tool}: {execution_time_ms:.0f}ms "
                f"(threshold: {self._slow_query_threshold_ms:.0f}ms)"
            )
        return record

    def get_stats(self) -> PerformanceStats:
        """Aggregate the retained history.

        Returns:
            PerformanceStats over all retained records
        """
        records = list(self._history)
        if not records:
            return PerformanceStats(slow_query_threshold_ms=self._slow_query_threshold_ms)

        durations = [r.execution_time_ms for r in records]
        return PerformanceStats(
            total_queries=len(records),
            failed_queries=sum(1 for r in records if not r.success),
            streaming_queries=sum(1 for r in records if r.streaming),
            slow_queries=sum(1 for d in durations if d > self._slow_query_threshold_ms),
            avg_execution_time_ms=sum(durations) / len(durations),
            max_execution_time_ms=max(durations),
            total_rows=sum(r.row_count for r in records),
            slow_query_threshold_ms=self._slow_query_threshold_ms,
        )

    def get_recent(
        self,
        limit: int = 50,
        tool: str | None = None,
        slow_only: bool = False,
    ) -> list[QueryRecord]:
        """Most recent records, newest first.

        Args:
            limit: Maximum number of records returned
            tool: Only records for this tool
            slow_only: Only records above the slow query threshold
        """
        records = [
            record
            for record in reversed(self._history)
            if (tool is None or record.tool == tool)
            and (not slow_only or record.execution_time_ms > self._slow_query_threshold_ms)
        ]
        return records[: max(limit, 0)]

    def reset(self) -> None:
        """Drop all recorded history."""
        self._history.clear()
