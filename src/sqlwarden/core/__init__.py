"""Core components for SQLWarden."""

from sqlwarden.core.connection import DatabaseConnection
from sqlwarden.core.session import QuerySession, SQLAlchemySession
from sqlwarden.core.types import (
    Chunk,
    ExecutionContext,
    SafetyPolicy,
    StreamingConfig,
    StreamResult,
)

__all__ = [
    "DatabaseConnection",
    "QuerySession",
    "SQLAlchemySession",
    "SafetyPolicy",
    "StreamingConfig",
    "ExecutionContext",
    "Chunk",
    "StreamResult",
]
