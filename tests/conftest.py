"""Shared test fixtures for SQLWarden."""

import os
from collections.abc import Callable, Generator, Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import text

from sqlwarden import SQLWarden
from sqlwarden.core.types import QueryOutcome
from sqlwarden.exceptions import QueryError


class FakeSession:
    """In-memory QuerySession for driving the streaming handler.

    ``rows`` are reported through the streaming callbacks; ``table_stats`` answers
    the catalog size query (a dict, or an exception to raise).
    """

    def __init__(
        self,
        rows: list[dict[str, Any]] | None = None,
        dialect: str = "postgresql",
        table_stats: dict[str, Any] | Exception | None = None,
        fail_after: int | None = None,
    ) -> None:
        self.rows = rows or []
        self._dialect = dialect
        self.table_stats = table_stats
        self.fail_after = fail_after
        self.queries: list[tuple[str, dict[str, Any]]] = []
        self.streamed: list[str] = []
        self.databases: list[str] = []

    @property
    def dialect(self) -> str:
        return self._dialect

    @property
    def default_schema(self) -> str | None:
        return {"mssql": "dbo", "postgresql": "public"}.get(self._dialect, "main")

    def quote_identifier(self, name: str) -> str:
        if self._dialect == "mssql":
            return f"[{name}]"
        return f'"{name}"'

    def query(self, sql: str, params: Mapping[str, Any] | None = None) -> QueryOutcome:
        self.queries.append((sql, dict(params or {})))
        if "estimated_rows" in sql:
            if isinstance(self.table_stats, Exception):
                raise self.table_stats
            return QueryOutcome(rows=[self.table_stats] if self.table_stats else [])
        columns = list(self.rows[0].keys()) if self.rows else []
        return QueryOutcome(rows=list(self.rows), columns=columns, rows_affected=len(self.rows))

    def stream(
        self,
        sql: str,
        on_columns: Callable[[Sequence[str]], None],
        on_row: Callable[[dict[str, Any]], None],
    ) -> int | None:
        self.streamed.append(sql)
        on_columns(list(self.rows[0].keys()) if self.rows else [])
        for index, row in enumerate(self.rows):
            if self.fail_after is not None and index == self.fail_after:
                raise QueryError("Streaming query failed: connection reset")
            on_row(dict(row))
        return None

    def use_database(self, database: str) -> None:
        self.databases.append(database)


@pytest.fixture
def make_session() -> Callable[..., FakeSession]:
    """Factory for fake query sessions."""
    return FakeSession


def _make_rows(count: int) -> list[dict[str, Any]]:
    """Rows with an id, a name and a nullable note."""
    return [
        {"id": i, "name": f"user{i}", "note": None if i % 3 == 0 else f"note {i}"}
        for i in range(1, count + 1)
    ]


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    """URL of a fresh SQLite database file."""
    return f"sqlite:///{tmp_path / 'warden.db'}"


def _seed_users(warden: SQLWarden, count: int = 25) -> None:
    """Create and fill a users table, bypassing the safety policy."""
    with warden.connection.engine.begin() as conn:
        conn.execute(
            text("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL, note TEXT)")
        )
        for row in _make_rows(count):
            conn.execute(
                text("INSERT INTO users (id, name, note) VALUES (:id, :name, :note)"), row
            )


@pytest.fixture
def warden(sqlite_url: str) -> Generator[SQLWarden, None, None]:
    """SQLWarden over SQLite with 25 seeded users and default policy."""
    instance = SQLWarden(sqlite_url)
    _seed_users(instance)
    yield instance
    instance.close()


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove SQLWARDEN_* variables so config tests see defaults."""
    for name in list(os.environ):
        if name.startswith("SQLWARDEN_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_rows() -> Callable[[int], list[dict[str, Any]]]:
    """Factory for sample rows."""
    return _make_rows


@pytest.fixture
def seeded_url(sqlite_url: str) -> str:
    """URL of a SQLite file that already holds 25 users."""
    instance = SQLWarden(sqlite_url)
    _seed_users(instance)
    instance.close()
    return sqlite_url
