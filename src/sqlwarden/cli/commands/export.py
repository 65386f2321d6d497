"""Table export commands."""

import json
from pathlib import Path
from typing import Annotated

import typer

from sqlwarden.cli.context import CLIContext
from sqlwarden.cli.output import OutputFormatter, console

app = typer.Typer(help="Stream tables out as CSV or JSON")


@app.command("table")
def export_table(
    ctx: typer.Context,
    table_name: Annotated[str, typer.Argument(help="Table to export")],
    schema: Annotated[
        str | None,
        typer.Option("--schema", "-s", help="Table schema (database default if omitted)"),
    ] = None,
    target_db: Annotated[
        str | None,
        typer.Option("--use", help="Database to switch to first (SQL Server only)"),
    ] = None,
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", help="Maximum rows to export"),
    ] = None,
    where: Annotated[
        str | None,
        typer.Option("--where", "-w", help="Filter without the WHERE keyword"),
    ] = None,
    output_format: Annotated[
        str,
        typer.Option("--format", help="csv or json"),
    ] = "csv",
    pretty: Annotated[
        bool,
        typer.Option("--pretty", help="Indent JSON output"),
    ] = False,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write to file instead of stdout"),
    ] = None,
) -> None:
    """Export a table through the streaming path.

    Examples:

        sqlwarden export table orders --where "status = 'open'" -o open_orders.csv
        sqlwarden export table users --format json --limit 100
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        if output_format not in ("csv", "json"):
            raise typer.BadParameter("--format must be csv or json")

        warden = cli_ctx.get_warden()
        result = warden.export_table(
            table_name,
            schema=schema,
            database=target_db,
            limit=limit,
            where_clause=where,
            output_format=output_format,  # type: ignore[arg-type]
            pretty_print=pretty,
        )
        data = warden.reconstruct_from_chunks(result.chunks, output_format)  # type: ignore[arg-type]
        text = data if isinstance(data, str) else json.dumps(data, default=str, indent=2)

        if output is not None:
            output.write_text(text)
            formatter.print_success(
                f"Exported {result.total_rows} rows from {table_name}",
                {
                    "file": str(output),
                    "chunks": result.chunk_count,
                    "duration_ms": round(result.performance.duration_ms, 2),
                },
            )
        elif cli_ctx.json_output:
            formatter.print_data(
                {
                    "table": table_name,
                    "row_count": result.total_rows,
                    "chunk_count": result.chunk_count,
                    "data": data,
                }
            )
        else:
            typer.echo(text, nl=isinstance(data, list))
            console.print(
                f"{result.total_rows} rows in {result.chunk_count} chunks", style="dim"
            )

    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
