"""Schema exploration commands."""

from typing import Annotated

import typer

from sqlwarden.cli.context import CLIContext
from sqlwarden.cli.output import OutputFormatter

app = typer.Typer(help="Explore databases, tables and relationships")

SchemaOption = Annotated[
    str | None,
    typer.Option("--schema", "-s", help="Schema to inspect (database default if omitted)"),
]
UseOption = Annotated[
    str | None,
    typer.Option("--use", help="Database to switch to first (SQL Server only)"),
]


@app.command("databases")
def schema_databases(ctx: typer.Context) -> None:
    """List the databases visible to the connection."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        databases = cli_ctx.get_warden().list_databases()
        formatter.print_table(
            f"Databases ({len(databases)} total)", databases, ["database_name"]
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("tables")
def schema_tables(
    ctx: typer.Context,
    schema: SchemaOption = None,
    target_db: UseOption = None,
) -> None:
    """List tables and views."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        tables = cli_ctx.get_warden().list_tables(schema=schema, database=target_db)
        formatter.print_table(
            f"Tables ({len(tables)} total)",
            tables,
            ["schema_name", "table_name", "table_type"],
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("describe")
def schema_describe(
    ctx: typer.Context,
    table_name: Annotated[str, typer.Argument(help="Table to describe")],
    schema: SchemaOption = None,
    target_db: UseOption = None,
) -> None:
    """Show the columns of a table.

    Examples:

        sqlwarden schema describe orders
        sqlwarden --json schema describe customers --schema sales
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        columns = cli_ctx.get_warden().describe_table(
            table_name, schema=schema, database=target_db
        )
        formatter.print_table(
            f"Table: {table_name}",
            columns,
            ["column_name", "data_type", "is_nullable", "column_default", "is_primary_key"],
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("foreign-keys")
def schema_foreign_keys(
    ctx: typer.Context,
    schema: SchemaOption = None,
    target_db: UseOption = None,
) -> None:
    """List foreign key relationships."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        foreign_keys = cli_ctx.get_warden().list_foreign_keys(schema=schema, database=target_db)
        formatter.print_table(
            f"Foreign keys ({len(foreign_keys)} total)",
            foreign_keys,
            ["parent_table", "parent_column", "referenced_table", "referenced_column"],
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()

