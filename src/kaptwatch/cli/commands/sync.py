"""
Sync commands: run a catalog synchronization and inspect past runs.
"""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from kaptwatch.core.models import SyncReport

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Synchronize the notice catalog",
    no_args_is_help=True,
)


@app.command("run")
def run_sync(
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Fetch and reconcile, but don't save results",
    ),
) -> None:
    """Fetch the catalog and reconcile the selection.

    Examples:
        kaptwatch sync run
        kaptwatch sync run --dry-run
    """
    from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

    from kaptwatch.cli.runtime import dry_run_store, load_config, store_scope
    from kaptwatch.core.errors import SyncBusyError, SyncFailedError
    from kaptwatch.core.notify import LogNotifier
    from kaptwatch.core.orchestrator import SyncOrchestrator

    config = load_config()
    if dry_run:
        console.print("[yellow]Dry run mode - results will not be saved[/yellow]")

    with store_scope(config) as db_store, Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task("[cyan]Synchronizing K-apt notices...[/cyan]", total=None)
        orchestrator = SyncOrchestrator.from_config(
            config.source,
            dry_run_store(db_store) if dry_run else db_store,
            notifiers=[LogNotifier()],
            sync_log_limit=config.storage.sync_log_limit,
        )
        try:
            report = asyncio.run(orchestrator.run_sync(trigger="manual"))
        except SyncBusyError as e:
            err_console.print(f"[yellow]{e}[/yellow]")
            raise typer.Exit(1)
        except SyncFailedError as e:
            err_console.print(f"[red]{escape(e.report.summary())}[/red]")
            raise typer.Exit(1)

    _show_report(report)


def _show_report(report: SyncReport) -> None:
    console.print()
    console.print(f"[bold green]{escape(report.summary())}[/bold green]")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Pages fetched", str(report.pages_fetched))
    table.add_row("Total notices", str(report.total_bids))
    table.add_row("New notices", str(report.newly_added))
    table.add_row("Selection updated", str(report.updated_in_selection))
    table.add_row("Selection unchanged", str(report.unchanged_in_selection))
    table.add_row("Removed from selection", str(report.removed_from_selection))
    table.add_row("Invalid selections removed", str(report.invalid_selections_removed))
    if report.duration_seconds is not None:
        table.add_row("Duration", f"{report.duration_seconds:.1f}s")

    console.print(table)

    if report.field_changes:
        console.print()
        console.print("[bold]Changed selected notices:[/bold]")
        for bid_id, fields in report.field_changes.items():
            console.print(f"  {escape(bid_id)}: {', '.join(fields)}")

    if report.warnings:
        console.print()
        console.print(f"[yellow]Warnings ({len(report.warnings)}):[/yellow]")
        for warning in report.warnings[:10]:
            console.print(f"  [dim]- {escape(warning)}[/dim]")
        if len(report.warnings) > 10:
            console.print(f"  [dim]... and {len(report.warnings) - 10} more[/dim]")


@app.command("status")
def sync_status() -> None:
    """Show the last completed sync and the latest logged run."""
    from kaptwatch.cli.runtime import load_config, store_scope
    from kaptwatch.persistence.repo import SyncLogRepository

    config = load_config(setup_logs=False)
    with store_scope(config) as store:
        log_repo = SyncLogRepository(store, limit=config.storage.sync_log_limit)
        last_update = log_repo.last_update()
        latest = log_repo.history(limit=1)

    if last_update is None:
        console.print("[dim]No sync has completed yet. Run:[/dim] kaptwatch sync run")
    else:
        console.print(f"[bold]Last update:[/bold] {last_update:%Y-%m-%d %H:%M:%S} UTC")

    if latest:
        event = latest[0]
        outcome = "[green]success[/green]" if event.get("success") else "[red]failed[/red]"
        console.print(f"[bold]Last run:[/bold] {event.get('timestamp')} ({event.get('type')}) {outcome}")
        if event.get("error"):
            console.print(f"  [red]{escape(str(event['error']))}[/red]")


@app.command("history")
def sync_history(
    limit: int = typer.Option(
        20,
        "--limit",
        "-n",
        help="Number of runs to show",
    ),
) -> None:
    """Show recent sync runs, newest first."""
    from kaptwatch.cli.runtime import load_config, store_scope
    from kaptwatch.persistence.repo import SyncLogRepository

    with store_scope(load_config(setup_logs=False)) as store:
        events = SyncLogRepository(store).history(limit=limit)

    if not events:
        console.print("[dim]No sync runs logged yet.[/dim]")
        return

    table = Table(title=f"Sync History ({len(events)} shown)", show_header=True, header_style="bold magenta")
    table.add_column("Time", style="dim", no_wrap=True)
    table.add_column("Trigger")
    table.add_column("Result", justify="center")
    table.add_column("Pages", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("New", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Removed", justify="right")
    table.add_column("Invalid", justify="right")

    for event in events:
        result = "[green]OK[/green]" if event.get("success") else "[red]FAILED[/red]"
        table.add_row(
            str(event.get("timestamp", ""))[:19],
            str(event.get("type", "")),
            result,
            str(event.get("pagesFetched", 0)),
            str(event.get("totalBids", 0)),
            str(event.get("newlyAdded", 0)),
            str(event.get("updatedInSelection", 0)),
            str(event.get("removedFromSelection", 0)),
            str(event.get("invalidSelectionsRemoved", 0)),
        )

    console.print(table)
