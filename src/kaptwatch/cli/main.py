"""
KaptWatch CLI - Main entry point.

Tracks K-apt apartment procurement notices and keeps a curated
selection in step with the live catalog.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
import yaml
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.traceback import install as install_rich_traceback

from kaptwatch import __app_name__, __version__
from kaptwatch.core.config import AppConfig

# Load environment variables from .env (if present)
load_dotenv()

# Install rich traceback for better error display
install_rich_traceback(show_locals=False, width=120)

console = Console()
err_console = Console(stderr=True)

# Create main app
app = typer.Typer(
    name=__app_name__,
    help="K-apt procurement notice tracker",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        help="Path to app.yaml (default: configs/app.yaml)",
        envvar="KAPTWATCH_CONFIG",
    ),
) -> None:
    """KaptWatch - K-apt procurement notice tracker."""
    from kaptwatch.cli.runtime import set_config_path

    set_config_path(config)


# =============================================================================
# Import and register subcommand modules
# =============================================================================

from .commands import bids, schedule, selection, sync  # noqa: E402

app.add_typer(sync.app, name="sync", help="Synchronize the notice catalog")
app.add_typer(bids.app, name="bids", help="View the synchronized notice catalog")
app.add_typer(selection.app, name="selection", help="Manage the curated notice selection")
app.add_typer(schedule.app, name="schedule", help="Run scheduled synchronizations")


# =============================================================================
# Init Command
# =============================================================================

CONFIG_HEADER = "# KaptWatch configuration (generated by `kaptwatch init`)\n\n"


@app.command()
def init(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite an existing app.yaml",
    ),
) -> None:
    """Write a default app.yaml and create the data and log directories.

    The database schema is created as well, so ``sync run`` can start
    from an empty catalog.
    """
    from kaptwatch.cli.runtime import config_path, load_config, open_store

    path = config_path()
    if path.exists() and not force:
        console.print(f"[dim]Keeping existing {path} (use --force to overwrite)[/dim]")
    else:
        _write_default_config(path)
        console.print(f"Wrote [cyan]{path}[/cyan]")

    app_config = load_config(setup_logs=False)
    app_config.ensure_directories()
    open_store(app_config).close()

    console.print(Panel.fit(
        f"Database: [cyan]{app_config.storage.url}[/cyan]\n\n"
        "Next: [yellow]kaptwatch sync run[/yellow], then "
        "[yellow]kaptwatch bids list[/yellow]",
        title="[bold green]KaptWatch ready[/bold green]",
        border_style="green",
    ))


def _write_default_config(path: Path) -> None:
    data = AppConfig().model_dump(mode="json")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        CONFIG_HEADER + yaml.safe_dump(data, allow_unicode=True, sort_keys=False),
        encoding="utf-8",
    )


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
