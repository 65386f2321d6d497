"""Query execution commands."""

from pathlib import Path
from typing import Annotated

import typer

from sqlwarden.cli.context import CLIContext
from sqlwarden.cli.output import OutputFormatter, console

# Create query subcommand group
app = typer.Typer(help="Execute and validate SQL queries")


def _load_sql(sql: str | None, from_file: str | None) -> str:
    if from_file:
        return Path(from_file).read_text()
    if sql:
        return sql
    raise typer.BadParameter("Either provide SQL or use --file")


@app.command("run")
def query_run(
    ctx: typer.Context,
    sql: Annotated[
        str | None,
        typer.Argument(help="SQL query to execute"),
    ] = None,
    from_file: Annotated[
        str | None,
        typer.Option("--file", "-f", help="Load SQL from file"),
    ] = None,
    output_format: Annotated[
        str,
        typer.Option("--format", help="Encoding for streamed results: json, csv or raw"),
    ] = "json",
    force_streaming: Annotated[
        bool,
        typer.Option("--stream", help="Always use the streaming path"),
    ] = False,
    target_db: Annotated[
        str | None,
        typer.Option("--use", help="Database to switch to first (SQL Server only)"),
    ] = None,
    show_metrics: Annotated[
        bool,
        typer.Option("--metrics/--no-metrics", help="Show performance metrics"),
    ] = True,
) -> None:
    """Execute a SQL query under the safety policy.

    Examples:

        sqlwarden query run "SELECT id, name FROM users WHERE active = 1"
        sqlwarden query run --file report.sql --stream --format csv
        sqlwarden --write --allow-destructive query run "DELETE FROM sessions WHERE expired = 1"
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        if output_format not in ("json", "csv", "raw"):
            raise typer.BadParameter("--format must be json, csv or raw")
        sql_content = _load_sql(sql, from_file)

        warden = cli_ctx.get_warden()
        result = warden.execute_query(
            sql_content,
            database=target_db,
            output_format=output_format,  # type: ignore[arg-type]
            force_streaming=force_streaming,
            tool="cli",
        )
        reply = warden.formatter.format_stream_result(
            result,
            tool="cli",
            query=sql_content,
            output_format=output_format,  # type: ignore[arg-type]
            database=target_db,
        )

        if cli_ctx.json_output:
            formatter.print_data(reply)
            return

        data = reply["data"]
        if isinstance(data, str):
            typer.echo(data, nl=False)
        elif data:
            formatter.print_table(f"{result.total_rows} rows", data, result.columns or [])
        elif result.rows_affected is not None:
            typer.echo(f"Query executed successfully ({result.rows_affected} rows affected)")
        else:
            typer.echo("Query executed successfully (no results)")

        if reply["truncated"]:
            console.print("Result truncated to the configured response size.", style="yellow")

        if show_metrics:
            console.print(
                f"\nExecution time: {result.performance.duration_ms:.2f}ms", style="dim"
            )
            if result.streaming:
                console.print(f"Streamed in {result.chunk_count} chunks", style="dim")

        for warning in warden.validate(sql_content).warnings:
            console.print(f"  ⚠ {warning}", style="yellow")

    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("validate")
def query_validate(
    ctx: typer.Context,
    sql: Annotated[
        str | None,
        typer.Argument(help="SQL query to validate"),
    ] = None,
    from_file: Annotated[
        str | None,
        typer.Option("--file", "-f", help="Load SQL from file"),
    ] = None,
) -> None:
    """Validate a SQL query without executing it.

    Exits with code 1 when the current policy would reject the query.

    Examples:

        sqlwarden query validate "DROP TABLE users"
        sqlwarden query validate --file migration.sql
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        sql_content = _load_sql(sql, from_file)
        result = cli_ctx.get_warden().validate(sql_content)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()

    formatter.print_validation(result)
    if not result.allowed:
        raise typer.Exit(code=1)
