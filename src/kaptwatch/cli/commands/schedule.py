"""
Schedule commands.
"""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Run scheduled synchronizations",
    no_args_is_help=True,
)


@app.command("info")
def schedule_info() -> None:
    """Show configured sync times and the next run."""
    from kaptwatch.cli.runtime import load_config
    from kaptwatch.core.scheduler import next_run_time

    config = load_config(setup_logs=False)
    schedule = config.schedule

    table = Table(title="Sync Schedule", show_header=True, header_style="bold magenta")
    table.add_column("Time of Day", style="cyan")
    table.add_column("Timezone")
    for value in schedule.times:
        table.add_row(value, schedule.timezone)
    console.print(table)

    if not schedule.enabled:
        console.print("[yellow]Scheduling is disabled[/yellow]")
        return

    from datetime import datetime, timezone

    upcoming = next_run_time(datetime.now(timezone.utc), schedule.parsed_times(), schedule.timezone)
    if upcoming is not None:
        console.print(f"[bold]Next run:[/bold] {upcoming:%Y-%m-%d %H:%M %Z}")


@app.command("start")
def start_scheduler() -> None:
    """Run the scheduler in the foreground (Ctrl+C to stop)."""
    from kaptwatch.cli.runtime import load_config, store_scope
    from kaptwatch.core.notify import LogNotifier
    from kaptwatch.core.orchestrator import SyncOrchestrator
    from kaptwatch.core.scheduler import SchedulerService

    config = load_config()
    if not config.schedule.enabled:
        err_console.print("[yellow]Scheduling is disabled in configuration[/yellow]")
        raise typer.Exit(1)

    with store_scope(config) as store:
        orchestrator = SyncOrchestrator.from_config(
            config.source,
            store,
            notifiers=[LogNotifier()],
            sync_log_limit=config.storage.sync_log_limit,
        )
        service = SchedulerService(orchestrator, config.schedule)

        upcoming = service.next_run()
        console.print(
            f"[bold]Scheduler running[/bold] at {', '.join(config.schedule.times)} "
            f"({config.schedule.timezone})"
        )
        if upcoming is not None:
            console.print(f"[dim]Next run: {upcoming:%Y-%m-%d %H:%M %Z}[/dim]")

        try:
            asyncio.run(service.start())
        except KeyboardInterrupt:
            console.print("\n[yellow]Scheduler stopped[/yellow]")
