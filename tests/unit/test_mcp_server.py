"""Unit tests for the SQLWarden MCP server integration.

FastMCP tools are plain functions returning JSON strings, so they are
called directly here.
"""

from __future__ import annotations

import json
from collections.abc import Generator

import pytest

# Skip entire module if mcp is not installed (optional dependency)
pytest.importorskip("mcp", reason="mcp not installed (install with: pip install sqlwarden[mcp])")

from sqlwarden import SQLWarden  # noqa: E402
from sqlwarden.config import ServerConfig  # noqa: E402
from sqlwarden.integrations.mcp import server as mcp_server  # noqa: E402


@pytest.fixture(autouse=True)
def set_mcp_warden(warden: SQLWarden) -> Generator[None, None, None]:
    """Inject the seeded warden into the MCP server global before each test."""
    mcp_server._warden = warden
    yield
    mcp_server._warden = None


def _ok(result: str) -> dict:
    data = json.loads(result)
    assert "error" not in data, f"Unexpected error: {data.get('error')}"
    return data


def _err(result: str) -> dict:
    data = json.loads(result)
    assert data.get("error"), f"Expected error, got: {data}"
    return data


class TestExecuteQuery:
    def test_select(self) -> None:
        data = _ok(mcp_server.sqlwarden_execute_query("SELECT id FROM users WHERE id <= 2"))
        assert data["data"] == [{"id": 1}, {"id": 2}]
        assert data["streaming"] is False

    def test_streamed_csv(self) -> None:
        data = _ok(mcp_server.sqlwarden_execute_query("SELECT * FROM users", output_format="csv"))
        assert data["streaming"] is True
        assert data["data"].startswith("id,name,note\n")
        assert data["row_count"] == 25

    def test_rejected_query(self) -> None:
        data = _err(mcp_server.sqlwarden_execute_query("DROP TABLE users"))
        assert data["validation"]["query_type"] == "schema"
        assert "allow_schema_changes=true" in data["error"]

    def test_execution_error(self) -> None:
        data = _err(mcp_server.sqlwarden_execute_query("SELECT id FROM nowhere"))
        assert "validation" not in data


class TestValidateQuery:
    def test_allowed(self) -> None:
        data = _ok(mcp_server.sqlwarden_validate_query("SELECT * FROM users"))
        assert data["allowed"] is True
        assert data["warnings"]

    def test_denied(self) -> None:
        data = _ok(mcp_server.sqlwarden_validate_query("UPDATE users SET name = 'x'"))
        assert data["allowed"] is False
        assert data["query_type"] == "non-select"


class TestExportTable:
    def test_export_json(self) -> None:
        data = _ok(
            mcp_server.sqlwarden_export_table("users", where_clause="id = 7", output_format="json")
        )
        assert data["data"] == [{"id": 7, "name": "user7", "note": "note 7"}]

    def test_export_injection_rejected(self) -> None:
        data = _err(mcp_server.sqlwarden_export_table("users", where_clause="1=1; DELETE FROM users"))
        assert data["validation"]["allowed"] is False

    def test_export_missing_table(self) -> None:
        _err(mcp_server.sqlwarden_export_table("ghosts"))


class TestSchemaTools:
    def test_list_databases(self) -> None:
        data = _ok(mcp_server.sqlwarden_list_databases())
        assert data["databases"] == [{"database_name": "main"}]
        assert data["count"] == 1

    def test_list_tables(self) -> None:
        data = _ok(mcp_server.sqlwarden_list_tables())
        assert data["tables"] == [
            {"schema_name": "main", "table_name": "users", "table_type": "BASE TABLE"}
        ]

    def test_describe_table(self) -> None:
        data = _ok(mcp_server.sqlwarden_describe_table("users"))
        assert [c["column_name"] for c in data["columns"]] == ["id", "name", "note"]

    def test_describe_missing_table(self) -> None:
        data = _err(mcp_server.sqlwarden_describe_table("ghosts"))
        assert "list_tables" in data["error"]

    def test_list_foreign_keys(self) -> None:
        data = _ok(mcp_server.sqlwarden_list_foreign_keys())
        assert data == {"foreign_keys": [], "count": 0}

    def test_get_table_data(self) -> None:
        data = _ok(mcp_server.sqlwarden_get_table_data("users", limit=1))
        assert data["data"] == [{"id": 1, "name": "user1", "note": "note 1"}]

    def test_get_table_data_injection_rejected(self) -> None:
        data = _err(
            mcp_server.sqlwarden_get_table_data("users", where_clause="1=1; DROP TABLE users")
        )
        assert data["validation"]["query_type"] == "schema"


class TestMonitoringTools:
    def test_query_performance(self) -> None:
        mcp_server.sqlwarden_execute_query("SELECT id FROM users WHERE id = 1")
        mcp_server.sqlwarden_execute_query("SELECT missing FROM users")
        data = _ok(mcp_server.sqlwarden_get_query_performance())
        assert data["count"] == 2
        assert data["queries"][0]["success"] is False
        assert data["queries"][1]["success"] is True

    def test_connection_health(self) -> None:
        data = _ok(mcp_server.sqlwarden_get_connection_health())
        assert data["connected"] is True
        assert data["pool"]["checked_out"] == 0


class TestConfigTools:
    def test_security_config(self) -> None:
        data = _ok(mcp_server.sqlwarden_get_security_config())
        assert data == {
            "read_only_mode": True,
            "allow_destructive_operations": False,
            "allow_schema_changes": False,
        }

    def test_streaming_config(self) -> None:
        data = _ok(mcp_server.sqlwarden_get_streaming_config())
        assert data["batch_size"] == 1000
        assert data["enable_streaming"] is True

    def test_performance_stats(self) -> None:
        mcp_server.sqlwarden_execute_query("SELECT id FROM users WHERE id = 1")
        data = _ok(mcp_server.sqlwarden_get_performance_stats())
        assert data["total_queries"] == 1


class TestServerSetup:
    def test_uninitialized(self) -> None:
        mcp_server._warden = None
        with pytest.raises(RuntimeError, match="not initialized"):
            mcp_server.get_warden()

    def test_create_server(self, warden: SQLWarden) -> None:
        url = warden.connection.url
        config = ServerConfig(database_url="sqlite:///ignored.db", read_only_mode=False)
        server = mcp_server.create_server(url, config=config)
        assert server is mcp_server.mcp

        created = mcp_server.get_warden()
        assert created.get_validator_config().read_only_mode is False
        assert created.connection.url == url
        created.close()
