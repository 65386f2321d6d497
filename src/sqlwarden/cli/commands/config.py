"""Configuration inspection commands."""

import typer

from sqlwarden.cli.context import CLIContext
from sqlwarden.cli.output import OutputFormatter, console

app = typer.Typer(help="Inspect the effective configuration")


@app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration (credentials redacted).

    Combines environment variables with the global CLI options.

    Examples:

        sqlwarden config show
        sqlwarden --write --json config show
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)
    config = cli_ctx.config
    warnings = config.validate_settings()

    if cli_ctx.json_output:
        formatter.print_data(
            {
                "summary": config.summary(),
                "security": config.security_policy().model_dump(),
                "streaming": config.streaming.model_dump(),
                "monitoring": config.monitoring.model_dump(),
                "warnings": warnings,
            }
        )
        return

    formatter.print_settings("Server", config.summary())
    formatter.print_settings("Security policy", config.security_policy().model_dump())
    formatter.print_settings("Streaming", config.streaming.model_dump())
    for warning in warnings:
        console.print(f"⚠ {warning}", style="yellow")
