"""Output formatting for CLI commands."""

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.pretty import pprint
from rich.table import Table

from sqlwarden.exceptions import SQLWardenError
from sqlwarden.query.validator import ValidationResult

console = Console()


class OutputFormatter:
    """Formats output for terminal or JSON mode."""

    def __init__(self, json_mode: bool = False) -> None:
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
        """
        self.json_mode = json_mode

    def print_table(
        self,
        title: str,
        data: list[dict[str, Any]],
        columns: list[str],
    ) -> None:
        """Print rows as a Rich table or JSON array.

        Args:
            title: Table title
            data: List of row dictionaries
            columns: Column names to display
        """
        if self.json_mode:
            print(json.dumps(data, default=str, indent=2))
            return

        table = Table(title=title, show_header=True, header_style="bold magenta")
        for col in columns:
            table.add_column(col)
        for row in data:
            table.add_row(*["" if row.get(col) is None else str(row.get(col)) for col in columns])
        console.print(table)

    def print_validation(self, result: ValidationResult) -> None:
        """Print a validation verdict with its warnings."""
        if self.json_mode:
            print(json.dumps(result.to_dict(), indent=2))
            return

        style = "green" if result.allowed else "red"
        verdict = "Allowed" if result.allowed else "Rejected"
        body = f"{result.reason}\n\nType: {result.query_type}"
        if result.matched_keyword:
            body += f"\nKeyword: {result.matched_keyword}"
        console.print(Panel(body, title=f"[{style}]{verdict}[/{style}]", border_style=style))
        for warning in result.warnings:
            console.print(f"  ⚠ {warning}", style="yellow")

    def print_settings(self, title: str, settings: dict[str, Any]) -> None:
        """Print a flat mapping as a two-column table or JSON object."""
        if self.json_mode:
            print(json.dumps(settings, default=str, indent=2))
            return

        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("Setting")
        table.add_column("Value")
        for key, value in settings.items():
            table.add_row(key, str(value))
        console.print(table)

    def print_success(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Print success message.

        Args:
            message: Success message
            details: Optional details to display
        """
        if self.json_mode:
            output = {"success": True, "message": message}
            if details:
                output.update(details)
            print(json.dumps(output, default=str, indent=2))
        else:
            console.print(f"✓ {message}", style="green")
            if details:
                for key, value in details.items():
                    console.print(f"  {key}: {value}", style="dim")

    def print_error(self, error: Exception) -> None:
        """Print error message.

        Args:
            error: Exception to display
        """
        if self.json_mode:
            if isinstance(error, SQLWardenError):
                print(json.dumps(error.to_dict(), default=str, indent=2))
            else:
                print(json.dumps({"error": str(error)}, indent=2))
            return

        error_text = str(error)
        if isinstance(error, SQLWardenError) and error.context:
            context_str = "\n".join(f"{k}: {v}" for k, v in error.context.items())
            error_text = f"{error_text}\n\n{context_str}"

        console.print(Panel(error_text, title="[red]Error[/red]", border_style="red"))

    def print_data(self, data: Any) -> None:
        """Print generic data (dict, list, etc.).

        Args:
            data: Data to print
        """
        if self.json_mode:
            print(json.dumps(data, default=str, indent=2))
        else:
            pprint(data, console=console, expand_all=True)
