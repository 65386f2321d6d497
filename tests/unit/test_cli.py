"""CLI command tests for SQLWarden."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from sqlwarden.cli.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated_env(clean_env: None) -> None:
    """Keep the developer's SQLWARDEN_* settings out of CLI tests."""


class TestVersionCommand:
    def test_version_output(self) -> None:
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "SQLWarden v" in result.stdout


class TestQueryCommands:
    """query run / query validate."""

    def test_run_json(self, seeded_url: str) -> None:
        result = runner.invoke(
            app, ["-d", seeded_url, "--json", "query", "run", "SELECT id FROM users WHERE id < 3"]
        )
        assert result.exit_code == 0, result.stdout
        data = json.loads(result.stdout)
        assert data["data"] == [{"id": 1}, {"id": 2}]
        assert data["row_count"] == 2

    def test_run_table_output(self, seeded_url: str) -> None:
        result = runner.invoke(
            app, ["-d", seeded_url, "query", "run", "SELECT name FROM users WHERE id = 4"]
        )
        assert result.exit_code == 0, result.stdout
        assert "user4" in result.stdout
        assert "Execution time" in result.stdout

    def test_run_streamed_csv(self, seeded_url: str) -> None:
        result = runner.invoke(
            app,
            ["-d", seeded_url, "query", "run", "SELECT * FROM users", "--format", "csv"],
        )
        assert result.exit_code == 0, result.stdout
        assert result.stdout.startswith("id,name,note\n1,user1,note 1\n")
        assert "Streamed in 1 chunks" in result.stdout

    def test_run_from_file(self, seeded_url: str, tmp_path: Path) -> None:
        sql_file = tmp_path / "report.sql"
        sql_file.write_text("SELECT COUNT(*) AS n FROM users")
        result = runner.invoke(app, ["-d", seeded_url, "--json", "query", "run", "-f", str(sql_file)])
        assert result.exit_code == 0, result.stdout
        assert json.loads(result.stdout)["data"] == [{"n": 25}]

    def test_run_rejected(self, seeded_url: str) -> None:
        result = runner.invoke(app, ["-d", seeded_url, "--json", "query", "run", "DELETE FROM users"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["error"] == "QueryValidationError"
        assert data["context"]["query_type"] == "non-select"

    def test_run_write_with_flags(self, seeded_url: str) -> None:
        result = runner.invoke(
            app,
            [
                "-d",
                seeded_url,
                "--write",
                "--allow-destructive",
                "--json",
                "query",
                "run",
                "DELETE FROM users WHERE id > 24",
            ],
        )
        assert result.exit_code == 0, result.stdout
        assert json.loads(result.stdout)["rows_affected"] == 1

    def test_run_without_sql(self, seeded_url: str) -> None:
        result = runner.invoke(app, ["-d", seeded_url, "query", "run"])
        assert result.exit_code == 1

    def test_validate_allowed(self, seeded_url: str) -> None:
        result = runner.invoke(app, ["-d", seeded_url, "--json", "query", "validate", "SELECT 1"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["allowed"] is True

    def test_validate_rejected(self, seeded_url: str) -> None:
        result = runner.invoke(app, ["-d", seeded_url, "query", "validate", "DROP TABLE users"])
        assert result.exit_code == 1
        assert "Rejected" in result.stdout


class TestExportCommands:
    """export table."""

    def test_export_to_file(self, seeded_url: str, tmp_path: Path) -> None:
        target = tmp_path / "users.csv"
        result = runner.invoke(
            app,
            ["-d", seeded_url, "--json", "export", "table", "users", "-n", "3", "-o", str(target)],
        )
        assert result.exit_code == 0, result.stdout
        assert json.loads(result.stdout)["success"] is True
        assert target.read_text() == (
            "id,name,note\n1,user1,note 1\n2,user2,note 2\n3,user3,\n"
        )

    def test_export_json_stdout(self, seeded_url: str) -> None:
        result = runner.invoke(
            app,
            ["-d", seeded_url, "--json", "export", "table", "users", "--where", "id > 23",
             "--format", "json"],
        )
        assert result.exit_code == 0, result.stdout
        data = json.loads(result.stdout)
        assert data["row_count"] == 2
        assert [row["id"] for row in data["data"]] == [24, 25]

    def test_export_rejects_injection(self, seeded_url: str) -> None:
        result = runner.invoke(
            app,
            ["-d", seeded_url, "export", "table", "users", "--where", "1=1; DROP TABLE users"],
        )
        assert result.exit_code == 1

    def test_export_bad_format(self, seeded_url: str) -> None:
        result = runner.invoke(
            app, ["-d", seeded_url, "export", "table", "users", "--format", "xml"]
        )
        assert result.exit_code == 1


class TestSchemaCommands:
    """schema databases / tables / describe / foreign-keys."""

    def test_tables_json(self, seeded_url: str) -> None:
        result = runner.invoke(app, ["-d", seeded_url, "--json", "schema", "tables"])
        assert result.exit_code == 0, result.stdout
        data = json.loads(result.stdout)
        assert [t["table_name"] for t in data] == ["users"]

    def test_tables_table_output(self, seeded_url: str) -> None:
        result = runner.invoke(app, ["-d", seeded_url, "schema", "tables"])
        assert result.exit_code == 0, result.stdout
        assert "users" in result.stdout

    def test_describe_json(self, seeded_url: str) -> None:
        result = runner.invoke(app, ["-d", seeded_url, "--json", "schema", "describe", "users"])
        assert result.exit_code == 0, result.stdout
        columns = json.loads(result.stdout)
        assert columns[0]["column_name"] == "id"
        assert columns[0]["is_primary_key"] is True

    def test_describe_missing_table(self, seeded_url: str) -> None:
        result = runner.invoke(app, ["-d", seeded_url, "--json", "schema", "describe", "ghosts"])
        assert result.exit_code == 1
        assert json.loads(result.stdout)["error"] == "QueryError"

    def test_foreign_keys_and_databases(self, seeded_url: str) -> None:
        result = runner.invoke(app, ["-d", seeded_url, "--json", "schema", "foreign-keys"])
        assert result.exit_code == 0, result.stdout
        assert json.loads(result.stdout) == []

        result = runner.invoke(app, ["-d", seeded_url, "--json", "schema", "databases"])
        assert result.exit_code == 0, result.stdout
        assert json.loads(result.stdout) == [{"database_name": "main"}]


class TestHealthCommand:
    def test_healthy(self, seeded_url: str) -> None:
        result = runner.invoke(app, ["-d", seeded_url, "--json", "health"])
        assert result.exit_code == 0, result.stdout
        data = json.loads(result.stdout)
        assert data["connected"] is True
        assert data["dialect"] == "sqlite"

    def test_unreachable(self, tmp_path: Path) -> None:
        url = f"sqlite:///{tmp_path / 'missing' / 'nope.db'}"
        result = runner.invoke(app, ["-d", url, "health"])
        assert result.exit_code == 1
        assert "Disconnected" in result.stdout


class TestConfigCommands:
    """config show."""

    def test_show_json(self, seeded_url: str) -> None:
        result = runner.invoke(app, ["-d", seeded_url, "--json", "config", "show"])
        assert result.exit_code == 0, result.stdout
        data = json.loads(result.stdout)
        assert data["security"]["read_only_mode"] is True
        assert data["warnings"] == []

    def test_show_reflects_flags(self, seeded_url: str) -> None:
        result = runner.invoke(
            app, ["-d", seeded_url, "--write", "--allow-schema-changes", "--json", "config", "show"]
        )
        data = json.loads(result.stdout)
        assert data["security"]["read_only_mode"] is False
        assert data["security"]["allow_schema_changes"] is True
        assert len(data["warnings"]) == 1

    def test_invalid_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SQLWARDEN_STREAMING_BATCH_SIZE", "lots")
        result = runner.invoke(app, ["--json", "config", "show"])
        assert result.exit_code == 1
        assert json.loads(result.stdout)["error"] == "ConfigurationError"

    def test_show_table(self, seeded_url: str) -> None:
        result = runner.invoke(app, ["-d", seeded_url, "config", "show"])
        assert result.exit_code == 0
        assert "read_only_mode" in result.stdout
