"""Custom exceptions for SQLWarden.

All exceptions are designed with agent-first principles:
- Actionable error messages that tell what went wrong AND how to fix it
- Include context about the failing query or chunk when relevant
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sqlwarden.query.validator import ValidationResult


class SQLWardenError(Exception):
    """Base exception for all SQLWarden errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Return error as JSON-serializable dict for agent consumption."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConnectionError(SQLWardenError):
    """Failed to connect to the database."""

    pass


class ConfigurationError(SQLWardenError):
    """A configuration value is missing or invalid."""

    def __init__(self, setting: str, value: Any, expected: str) -> None:
        message = f"Invalid value {value!r} for '{setting}'. Expected {expected}."
        super().__init__(message, {"setting": setting, "value": value, "expected": expected})
        self.setting = setting
        self.value = value


class QueryError(SQLWardenError):
    """Query execution failed."""

    pass


class QueryValidationError(QueryError):
    """Query was rejected by the safety policy."""

    def __init__(self, result: ValidationResult) -> None:
        message = f"Query validation failed: {result.reason}"
        super().__init__(
            message,
            {
                "query_type": str(result.query_type),
                "reason": result.reason,
                "fallback": result.fallback,
            },
        )
        self.result = result


class ReconstructionSecurityError(SQLWardenError):
    """A streamed chunk could not be safely turned back into rows.

    Raised for oversized payloads, malformed JSON, dangerous object keys and
    non-array payloads. Callers must treat it as a failed export.
    """

    def __init__(self, message: str, chunk_number: int | None = None) -> None:
        super().__init__(message, {"chunk_number": chunk_number})
        self.chunk_number = chunk_number
