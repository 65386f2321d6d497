"""Query safety for SQLWarden.

Classification and policy checks for agent-issued SQL, plus the telemetry
and reply formatting that wrap execution.

Components:
    1. Query Validator - Classifies statements and applies the safety policy
    2. Query Shape - Structural facts shared by validation and streaming
    3. Performance Monitor - Bounded history of executed queries
    4. Response Formatter - JSON-serializable reply envelopes
"""

from sqlwarden.query.formatter import ResponseFormatter
from sqlwarden.query.metrics import PerformanceMonitor
from sqlwarden.query.shape import QueryShape, analyze_shape, extract_tables
from sqlwarden.query.validator import (
    QueryCategory,
    QueryValidator,
    ValidationResult,
    validate_query,
)

__all__ = [
    "QueryValidator",
    "QueryCategory",
    "ValidationResult",
    "validate_query",
    "QueryShape",
    "analyze_shape",
    "extract_tables",
    "PerformanceMonitor",
    "ResponseFormatter",
]
