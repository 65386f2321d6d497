"""Tests for response envelopes."""

import pytest

from sqlwarden.core.types import Chunk, PerformanceData, StreamResult
from sqlwarden.exceptions import ReconstructionSecurityError
from sqlwarden.query.formatter import MAX_QUERY_ECHO, ResponseFormatter
from sqlwarden.query.validator import QueryValidator


def _regular(rows: list[dict]) -> StreamResult:
    return StreamResult(
        streaming=False,
        recordset=rows,
        total_rows=len(rows),
        columns=list(rows[0]) if rows else [],
        performance=PerformanceData(duration_ms=1.5, row_count=len(rows), memory_efficient=False),
    )


def _streamed(chunks: list[Chunk], total_rows: int) -> StreamResult:
    return StreamResult(
        streaming=True,
        chunks=chunks,
        chunk_count=len(chunks),
        total_rows=total_rows,
        performance=PerformanceData(duration_ms=3.0, row_count=total_rows, memory_efficient=True),
    )


class TestFormatStreamResult:
    """Reply envelopes for executions."""

    def test_regular_result(self):
        reply = ResponseFormatter().format_stream_result(
            _regular([{"id": 1}, {"id": 2}]), tool="execute_query", query="SELECT id FROM t"
        )
        assert reply["data"] == [{"id": 1}, {"id": 2}]
        assert reply["row_count"] == 2
        assert reply["streaming"] is False
        assert reply["truncated"] is False
        assert reply["performance"]["duration_ms"] == 1.5
        assert reply["metadata"]["tool"] == "execute_query"
        assert reply["metadata"]["query"] == "SELECT id FROM t"

    def test_streamed_json_flattened(self):
        chunks = [
            Chunk(chunk_number=1, data='[{"id":1}]', row_count=1, size=10),
            Chunk(chunk_number=2, data='[{"id":2}]', row_count=1, size=10),
        ]
        reply = ResponseFormatter().format_stream_result(
            _streamed(chunks, 2), tool="export_table", output_format="json"
        )
        assert reply["data"] == [{"id": 1}, {"id": 2}]
        assert reply["chunk_count"] == 2

    def test_streamed_csv_flattened(self):
        chunks = [
            Chunk(chunk_number=1, data="id\n1\n", row_count=1, size=5),
            Chunk(chunk_number=2, data="2\n", row_count=1, size=2),
        ]
        reply = ResponseFormatter().format_stream_result(
            _streamed(chunks, 2), tool="export_table", output_format="csv"
        )
        assert reply["data"] == "id\n1\n2\n"

    def test_json_chunk_size_cap_applies(self):
        chunks = [Chunk(chunk_number=1, data='[{"id":1},{"id":2}]', row_count=2, size=19)]
        formatter = ResponseFormatter(max_json_chunk_size=10)
        with pytest.raises(ReconstructionSecurityError, match="exceeds maximum size limit"):
            formatter.format_stream_result(_streamed(chunks, 2), tool="t", output_format="json")

    def test_text_truncated(self):
        chunks = [Chunk(chunk_number=1, data="x" * 100, row_count=1, size=100)]
        reply = ResponseFormatter(max_response_size=10).format_stream_result(
            _streamed(chunks, 1), tool="export_table", output_format="csv"
        )
        assert reply["data"] == "x" * 10
        assert reply["truncated"] is True
        assert reply["original_size"] == 100

    def test_rows_truncated_to_fit(self):
        rows = [{"id": i, "payload": "y" * 50} for i in range(100)]
        reply = ResponseFormatter(max_response_size=1000).format_stream_result(
            _regular(rows), tool="execute_query"
        )
        assert reply["truncated"] is True
        assert 0 < reply["rows_returned"] < 100
        assert reply["data"] == rows[: reply["rows_returned"]]
        assert reply["row_count"] == 100

    def test_long_query_echo_shortened(self):
        reply = ResponseFormatter().format_stream_result(
            _regular([]), tool="execute_query", query="SELECT " + "a" * 500
        )
        assert len(reply["metadata"]["query"]) == MAX_QUERY_ECHO + 3

    def test_metadata_optional(self):
        reply = ResponseFormatter(include_metadata=False).format_stream_result(
            _regular([]), tool="execute_query"
        )
        assert "metadata" not in reply


class TestFormatValidation:
    def test_validation_reply(self):
        result = QueryValidator().validate("DROP TABLE users")
        reply = ResponseFormatter().format_validation(result)
        assert reply["allowed"] is False
        assert reply["query_type"] == "schema"
