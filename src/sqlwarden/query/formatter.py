"""Response envelopes for tool replies.

Turns StreamResults and ValidationResults into JSON-serializable dicts and
truncates oversized textual payloads.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlwarden.core.types import OutputFormat, StreamResult
from sqlwarden.streaming.reconstruct import DEFAULT_MAX_JSON_CHUNK_SIZE, reconstruct_from_chunks

if TYPE_CHECKING:
    from sqlwarden.query.validator import ValidationResult

# Query text echoed in metadata is cut to this many characters
MAX_QUERY_ECHO = 200


class ResponseFormatter:
    """Builds reply envelopes with metadata and size truncation."""

    def __init__(
        self,
        max_response_size: int = 1_000_000,
        include_metadata: bool = True,
        max_json_chunk_size: int = DEFAULT_MAX_JSON_CHUNK_SIZE,
    ) -> None:
        """Initialize the formatter.

        Args:
            max_response_size: Largest payload (characters) before truncation
            include_metadata: Whether to add a metadata block to replies
            max_json_chunk_size: Size cap for JSON chunk payloads when flattening
        """
        self.max_response_size = max_response_size
        self.max_json_chunk_size = max_json_chunk_size
        self.include_metadata = include_metadata

    def format_stream_result(
        self,
        result: StreamResult,
        tool: str,
        query: str | None = None,
        output_format: OutputFormat = "json",
        database: str | None = None,
    ) -> dict[str, Any]:
        """Build the reply for a query or export.

        Streamed chunks are flattened back into one payload in chunk order.

        Args:
            result: Execution result
            tool: Tool name for metadata
            query: SQL text for metadata
            output_format: Format the chunks were encoded in
            database: Target database for metadata

        Returns:
            Reply dict with ``data``, ``row_count``, ``streaming`` and ``performance``

        Raises:
            ReconstructionSecurityError: If a chunk cannot be safely reconstructed
        """
        if result.streaming:
            data: Any = reconstruct_from_chunks(
                result.chunks, output_format, self.max_json_chunk_size
            )
        else:
            data = result.recordset or []

        reply: dict[str, Any] = {
            "success": result.success,
            "streaming": result.streaming,
            "row_count": result.total_rows,
            "rows_affected": result.rows_affected,
            "columns": result.columns,
            "chunk_count": result.chunk_count,
            "performance": result.performance.model_dump(),
        }
        reply.update(self._truncate(data))

        if self.include_metadata:
            reply["metadata"] = {
                "tool": tool,
                "query": self._truncate_query(query) if query else None,
                "database": database,
                "format": output_format,
                "timestamp": datetime.now(UTC).isoformat(),
            }
        return reply

    def format_validation(self, result: ValidationResult) -> dict[str, Any]:
        """Build the reply for a validation-only call."""
        return result.to_dict()

    def _truncate(self, data: Any) -> dict[str, Any]:
        """Cut a payload down to max_response_size characters.

        Text is cut directly; row lists lose trailing rows until the JSON
        encoding fits.
        """
        if isinstance(data, str):
            if len(data) <= self.max_response_size:
                return {"data": data, "truncated": False}
            return {
                "data": data[: self.max_response_size],
                "truncated": True,
                "original_size": len(data),
            }

        encoded_length = len(json.dumps(data, default=str))
        if encoded_length <= self.max_response_size:
            return {"data": data, "truncated": False}

        # Scale down proportionally, then trim until it fits
        keep = max(int(len(data) * self.max_response_size / encoded_length), 0)
        while keep > 0 and len(json.dumps(data[:keep], default=str)) > self.max_response_size:
            keep = keep * 9 // 10
        return {
            "data": data[:keep],
            "truncated": True,
            "original_size": encoded_length,
            "rows_returned": keep,
        }

    def _truncate_query(self, query: str) -> str:
        if len(query) <= MAX_QUERY_ECHO:
            return query
        return query[:MAX_QUERY_ECHO] + "..."
