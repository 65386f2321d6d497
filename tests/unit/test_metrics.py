"""Tests for the performance monitor."""

import logging

import pytest

from sqlwarden.query.metrics import MAX_QUERY_TEXT_LENGTH, PerformanceMonitor


class TestPerformanceMonitor:
    """Recording and aggregation."""

    def test_empty_stats(self):
        stats = PerformanceMonitor(slow_query_threshold_ms=250).get_stats()
        assert stats.total_queries == 0
        assert stats.avg_execution_time_ms == 0.0
        assert stats.slow_query_threshold_ms == 250

    def test_aggregation(self):
        monitor = PerformanceMonitor(slow_query_threshold_ms=100)
        monitor.record_query("execute_query", "SELECT 1", 10.0, True, row_count=1)
        monitor.record_query("execute_query", "SELECT *", 200.0, True, row_count=50, streaming=True)
        monitor.record_query("export_table", "SELECT x", 30.0, False, error="boom")

        stats = monitor.get_stats()
        assert stats.total_queries == 3
        assert stats.failed_queries == 1
        assert stats.streaming_queries == 1
        assert stats.slow_queries == 1
        assert stats.total_rows == 51
        assert stats.avg_execution_time_ms == pytest.approx(80.0)
        assert stats.max_execution_time_ms == 200.0

    def test_history_is_bounded(self):
        monitor = PerformanceMonitor(max_history=3)
        for i in range(5):
            monitor.record_query("execute_query", f"SELECT {i}", float(i), True)
        recent = monitor.get_recent()
        assert [r.query for r in recent] == ["SELECT 4", "SELECT 3", "SELECT 2"]
        assert monitor.get_stats().total_queries == 3

    def test_recent_filters(self):
        monitor = PerformanceMonitor(slow_query_threshold_ms=100)
        monitor.record_query("execute_query", "SELECT 1", 10.0, True)
        monitor.record_query("export_table", "SELECT a", 300.0, True)
        monitor.record_query("execute_query", "SELECT 2", 150.0, True)

        assert [r.query for r in monitor.get_recent(tool="execute_query")] == [
            "SELECT 2",
            "SELECT 1",
        ]
        assert [r.query for r in monitor.get_recent(slow_only=True)] == ["SELECT 2", "SELECT a"]
        assert [r.query for r in monitor.get_recent(limit=1)] == ["SELECT 2"]

    def test_query_text_truncated(self):
        monitor = PerformanceMonitor()
        record = monitor.record_query("execute_query", "x" * 2000, 1.0, True)
        assert record is not None
        assert len(record.query) == MAX_QUERY_TEXT_LENGTH

    def test_disabled_records_nothing(self):
        monitor = PerformanceMonitor(enabled=False)
        assert monitor.enabled is False
        assert monitor.record_query("execute_query", "SELECT 1", 1.0, True) is None
        assert monitor.get_stats().total_queries == 0

    def test_slow_query_logged(self, caplog: pytest.LogCaptureFixture):
        monitor = PerformanceMonitor(slow_query_threshold_ms=50)
        with caplog.at_level(logging.WARNING, logger="sqlwarden.query.metrics"):
            monitor.record_query("export_table", "SELECT * FROM big", 75.0, True)
        assert "Slow query in export_table" in caplog.text

    def test_reset(self):
        monitor = PerformanceMonitor()
        monitor.record_query("execute_query", "SELECT 1", 1.0, True)
        monitor.reset()
        assert monitor.get_recent() == []
