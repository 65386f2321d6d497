"""Core types for SQLWarden.

All types are designed to be JSON-serializable for agent consumption.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from sqlwarden.exceptions import ConfigurationError

OutputFormat = Literal["raw", "json", "csv"]


class SafetyPolicy(BaseModel):
    """Policy flags that gate which statements may run.

    Secure by default: read-only, no destructive operations, no schema changes.
    """

    read_only_mode: bool = True
    allow_destructive_operations: bool = False
    allow_schema_changes: bool = False

    model_config = {"extra": "forbid"}


class StreamingConfig(BaseModel):
    """Configuration for the streaming handler."""

    batch_size: int = Field(default=1000, gt=0, description="Rows per chunk")
    max_memory_mb: float = Field(
        default=50, gt=0, description="Memory budget before switching to streaming"
    )
    max_response_size: int = Field(
        default=1_000_000, gt=0, description="Maximum response size in characters"
    )
    enable_streaming: bool = Field(default=True, description="Allow the streaming path at all")
    max_json_chunk_size: int = Field(
        default=10 * 1024 * 1024,
        gt=0,
        description="Largest JSON chunk payload (bytes) accepted during reconstruction",
    )

    model_config = {"extra": "forbid"}


@dataclass
class ExecutionContext:
    """Per-call execution parameters.

    One instance belongs to exactly one query or export. ``csv_header_added``
    and ``columns`` are scratch state written while batches are encoded.
    """

    table_name: str | None = None
    schema: str | None = None
    database: str | None = None
    output_format: OutputFormat = "raw"
    force_streaming: bool = False
    pretty_print: bool = False

    csv_header_added: bool = False
    columns: list[str] | None = field(default=None, repr=False)


class Chunk(BaseModel):
    """One ordered unit of a streamed result."""

    chunk_number: int
    data: list[dict[str, Any]] | str
    row_count: int
    size: int


class PerformanceData(BaseModel):
    """Timing and memory facts for one execution."""

    duration_ms: float
    row_count: int
    memory_efficient: bool
    memory_used_mb: float | None = None
    avg_batch_size: float | None = None


class StreamResult(BaseModel):
    """Result of a regular or streaming execution."""

    success: bool = True
    streaming: bool
    recordset: list[dict[str, Any]] | None = None
    chunks: list[Chunk] | None = None
    chunk_count: int | None = None
    total_rows: int
    rows_affected: int | None = None
    columns: list[str] | None = None
    performance: PerformanceData


class StreamingStats(BaseModel):
    """Reporting projection of a StreamResult."""

    streaming: bool
    memory_efficient: bool
    total_rows: int
    chunk_count: int | None = None
    avg_chunk_size: float | None = None
    performance: PerformanceData | None = None


class QueryOutcome(BaseModel):
    """Fully materialized result of a single round trip."""

    rows: list[dict[str, Any]] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)
    rows_affected: int | None = None


# === Performance Monitoring Types ===


class QueryRecord(BaseModel):
    """Telemetry for a single tool call."""

    tool: str
    query: str
    execution_time_ms: float
    success: bool
    row_count: int = 0
    streaming: bool = False
    database: str | None = None
    error: str | None = None
    timestamp: datetime


class PerformanceStats(BaseModel):
    """Aggregated telemetry over the retained history."""

    total_queries: int = 0
    failed_queries: int = 0
    streaming_queries: int = 0
    slow_queries: int = 0
    avg_execution_time_ms: float = 0.0
    max_execution_time_ms: float = 0.0
    total_rows: int = 0
    slow_query_threshold_ms: float = 0.0


ConfigT = TypeVar("ConfigT", bound=BaseModel)


def merge_config(current: ConfigT, changes: dict[str, Any]) -> ConfigT:
    """Return a new validated copy of ``current`` with ``changes`` applied.

    Raises:
        ConfigurationError: If a key is unknown or a value is invalid
    """
    try:
        return type(current).model_validate({**current.model_dump(), **changes})
    except PydanticValidationError as e:
        error = e.errors()[0]
        setting = ".".join(str(part) for part in error["loc"])
        raise ConfigurationError(setting, error.get("input"), error["msg"]) from e
