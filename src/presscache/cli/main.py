"""
Main CLI entry point for presscache.
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.panel import Panel

from presscache import __version__
from presscache.cli.commands import cache
from presscache.cli.commands.schedule import schedule
from presscache.cli.commands.serve import serve
from presscache.container import container
from presscache.logging_config import configure_logging

console = Console()

app = typer.Typer(
    name="presscache",
    help="Durable image cache for expiring content-source attachments",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Add subcommands
app.add_typer(cache.app, name="cache", help="Image cache commands")
app.command(name="serve")(serve)
app.command(name="schedule")(schedule)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(
        Panel(
            f"[bold blue]presscache[/bold blue] v{__version__}",
            title="Version",
            border_style="blue",
        )
    )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-v", help="Show version and exit"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", help="Enable debug logging"
    ),
) -> None:
    """
    presscache - Durable image cache for expiring content-source attachments.

    Serves content-source images from a local content-addressed cache and
    refreshes them on a publication-aware schedule.
    """
    if version:
        console.print(f"presscache v{__version__}")
        raise typer.Exit(code=0)

    configure_logging("DEBUG" if verbose else container.settings.log_level)

    if ctx.invoked_subcommand is None:
        console.print(
            "[yellow]Use 'presscache --help' for available commands[/yellow]"
        )
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
