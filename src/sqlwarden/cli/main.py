"""SQLWarden CLI - Main entry point."""

from typing import Annotated

import typer

import sqlwarden
from sqlwarden.cli.context import CLIContext
from sqlwarden.cli.output import OutputFormatter
from sqlwarden.config import ServerConfig
from sqlwarden.exceptions import ConfigurationError

# Create main Typer app
app = typer.Typer(
    name="sqlwarden",
    help="SQLWarden CLI - Policy-gated SQL with streaming results",
    no_args_is_help=True,
)

# Store CLI context globally (will be set in callback)
state: dict[str, CLIContext] = {}


@app.callback()
def main_callback(
    ctx: typer.Context,
    database: Annotated[
        str | None,
        typer.Option(
            "--database",
            "-d",
            envvar="SQLWARDEN_URL",
            help="Database URL (SQL Server, PostgreSQL or SQLite)",
        ),
    ] = None,
    echo: Annotated[
        bool,
        typer.Option(
            "--echo",
            "-e",
            help="Echo SQL statements to console",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            "-j",
            help="Output as JSON (machine-readable)",
        ),
    ] = False,
    write: Annotated[
        bool,
        typer.Option(
            "--write",
            help="Disable read-only mode (same as SQLWARDEN_READ_ONLY=false)",
        ),
    ] = False,
    allow_destructive: Annotated[
        bool,
        typer.Option(
            "--allow-destructive",
            help="Allow INSERT/UPDATE/DELETE/TRUNCATE/EXEC/CALL",
        ),
    ] = False,
    allow_schema_changes: Annotated[
        bool,
        typer.Option(
            "--allow-schema-changes",
            help="Allow CREATE/DROP/ALTER/GRANT/REVOKE",
        ),
    ] = False,
) -> None:
    """Initialize CLI context with global options."""
    try:
        config = ServerConfig.from_env()
    except ConfigurationError as e:
        OutputFormatter(json_output).print_error(e)
        raise typer.Exit(code=1)

    updates: dict[str, object] = {}
    if database:
        updates["database_url"] = database
    if echo:
        updates["echo"] = True
    if write:
        updates["read_only_mode"] = False
    if allow_destructive:
        updates["allow_destructive_operations"] = True
    if allow_schema_changes:
        updates["allow_schema_changes"] = True

    cli_ctx = CLIContext(
        config=config.model_copy(update=updates),
        json_output=json_output,
    )

    # Store in Typer context for command access
    ctx.obj = cli_ctx
    state["cli_ctx"] = cli_ctx


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"SQLWarden v{sqlwarden.__version__}")


@app.command()
def health(ctx: typer.Context) -> None:
    """Check the database connection and show pool usage."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        report = cli_ctx.get_warden().get_connection_health()
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()

    if cli_ctx.json_output:
        formatter.print_data(report)
    else:
        pool = report.pop("pool", {})
        formatter.print_settings(
            "Connection", {**report, **{f"pool {key}": value for key, value in pool.items()}}
        )
    if not report["connected"]:
        raise typer.Exit(code=1)


# Register command groups
from sqlwarden.cli.commands import config, export, query, schema  # noqa: E402

app.add_typer(query.app, name="query")
app.add_typer(export.app, name="export")
app.add_typer(schema.app, name="schema")
app.add_typer(config.app, name="config")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
