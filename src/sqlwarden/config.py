"""Server configuration loaded from environment variables.

Every setting has a secure default; only explicit opt-ins relax the safety
policy.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

from sqlwarden.core.connection import redact_url
from sqlwarden.core.types import SafetyPolicy, StreamingConfig
from sqlwarden.exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./sqlwarden.db"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class MonitoringConfig(BaseModel):
    """Performance monitoring settings."""

    enabled: bool = True
    max_history: int = Field(default=1000, gt=0)
    slow_query_threshold_ms: float = Field(default=5000.0, gt=0)


class ServerConfig(BaseModel):
    """Complete SQLWarden configuration."""

    database_url: str = DEFAULT_DATABASE_URL
    read_only_mode: bool = True
    allow_destructive_operations: bool = False
    allow_schema_changes: bool = False
    streaming: StreamingConfig = Field(
        default_factory=lambda: StreamingConfig(max_memory_mb=100, max_response_size=10_485_760)
    )
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    log_level: str = "INFO"
    echo: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ServerConfig:
        """Load configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            ServerConfig

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        env = os.environ if environ is None else environ

        log_level = env.get("SQLWARDEN_LOG_LEVEL", "INFO").upper()
        if log_level not in _LOG_LEVELS:
            raise ConfigurationError("SQLWARDEN_LOG_LEVEL", log_level, " or ".join(_LOG_LEVELS))

        return cls(
            database_url=env.get("SQLWARDEN_URL") or DEFAULT_DATABASE_URL,
            # Read-only stays on unless explicitly disabled
            read_only_mode=env.get("SQLWARDEN_READ_ONLY", "true").lower() != "false",
            allow_destructive_operations=_flag(env, "SQLWARDEN_ALLOW_DESTRUCTIVE_OPERATIONS"),
            allow_schema_changes=_flag(env, "SQLWARDEN_ALLOW_SCHEMA_CHANGES"),
            streaming=StreamingConfig(
                enable_streaming=env.get("SQLWARDEN_ENABLE_STREAMING", "true").lower() != "false",
                batch_size=_int(env, "SQLWARDEN_STREAMING_BATCH_SIZE", 1000),
                max_memory_mb=_int(env, "SQLWARDEN_STREAMING_MAX_MEMORY_MB", 100),
                max_response_size=_int(env, "SQLWARDEN_STREAMING_MAX_RESPONSE_SIZE", 10_485_760),
            ),
            monitoring=MonitoringConfig(
                enabled=env.get("SQLWARDEN_ENABLE_PERFORMANCE_MONITORING", "true").lower()
                != "false",
                max_history=_int(env, "SQLWARDEN_MAX_METRICS_HISTORY", 1000),
                slow_query_threshold_ms=_int(env, "SQLWARDEN_SLOW_QUERY_THRESHOLD_MS", 5000),
            ),
            log_level=log_level,
            echo=_flag(env, "SQLWARDEN_ECHO"),
        )

    def security_policy(self) -> SafetyPolicy:
        """Safety policy described by this configuration."""
        return SafetyPolicy(
            read_only_mode=self.read_only_mode,
            allow_destructive_operations=self.allow_destructive_operations,
            allow_schema_changes=self.allow_schema_changes,
        )

    def validate_settings(self) -> list[str]:
        """Warnings about risky but valid settings."""
        warnings = []
        if not self.read_only_mode and self.allow_destructive_operations:
            warnings.append("Destructive operations are enabled - use caution in production")
        if not self.read_only_mode and self.allow_schema_changes:
            warnings.append("Schema changes are enabled - use caution in production")
        if not self.streaming.enable_streaming:
            warnings.append("Streaming is disabled - large results are loaded into memory")
        return warnings

    def summary(self) -> dict[str, Any]:
        """Configuration summary safe for logging (credentials redacted)."""
        return {
            "database_url": redact_url(self.database_url),
            "read_only_mode": self.read_only_mode,
            "allow_destructive_operations": self.allow_destructive_operations,
            "allow_schema_changes": self.allow_schema_changes,
            "streaming": self.streaming.enable_streaming,
            "batch_size": self.streaming.batch_size,
            "performance_monitoring": self.monitoring.enabled,
            "log_level": self.log_level,
        }


def _flag(env: Mapping[str, str], name: str) -> bool:
    """Opt-in flag: only the literal "true" enables it."""
    return env.get(name, "false").lower() == "true"


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(name, raw, "an integer") from e
    if value <= 0:
        raise ConfigurationError(name, raw, "a positive integer")
    return value
