"""CLI context management for the SQLWarden instance and shared state."""

from dataclasses import dataclass, field

from sqlwarden import SQLWarden
from sqlwarden.config import ServerConfig


@dataclass
class CLIContext:
    """Shared context for CLI commands.

    Holds the resolved configuration and lazily opens the database.
    """

    config: ServerConfig
    json_output: bool
    _warden: SQLWarden | None = field(default=None, init=False, repr=False)

    @property
    def database_url(self) -> str:
        return self.config.database_url

    def get_warden(self) -> SQLWarden:
        """Get or create the SQLWarden instance (lazy initialization).

        Returns:
            SQLWarden instance
        """
        if self._warden is None:
            self._warden = SQLWarden.from_config(self.config)
        return self._warden

    def close(self) -> None:
        """Close database connection if open."""
        if self._warden is not None:
            self._warden.close()
            self._warden = None
