"""
Selection commands: curate notices and their scheduling annotations.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from kaptwatch.core.models import SelectionEntry, SubmissionMethod
from kaptwatch.persistence.repo import SelectionRepository, SnapshotRepository

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Manage the curated notice selection",
    no_args_is_help=True,
)


@contextmanager
def _repos() -> Iterator[tuple[SnapshotRepository, SelectionRepository]]:
    from kaptwatch.cli.runtime import load_config, store_scope

    with store_scope(load_config(setup_logs=False)) as store:
        yield SnapshotRepository(store), SelectionRepository(store)


def _visit_text(entry: SelectionEntry) -> str:
    visit = entry.annotation.site_visit
    if not visit.enabled:
        return "[dim]-[/dim]"
    return escape(f"{visit.date} {visit.start_time}~{visit.end_time}".strip())


def _pt_text(entry: SelectionEntry) -> str:
    pt = entry.annotation.site_pt
    if not pt.enabled:
        return "[dim]-[/dim]"
    return escape(f"{pt.date} {pt.time}".strip())


@app.command("list")
def list_selection() -> None:
    """Show selected notices in selection order."""
    with _repos() as (_, selections):
        selection = selections.load()

        if not len(selection):
            console.print("[dim]No notices selected.[/dim] Add one with: kaptwatch selection add <id>")
            return

        table = Table(title=f"Selection ({len(selection)})", show_header=True, header_style="bold magenta")
        table.add_column("#", style="dim", justify="right")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Title", max_width=45)
        table.add_column("Apartment", max_width=20)
        table.add_column("Deadline", justify="right")
        table.add_column("Bid Time")
        table.add_column("Method")
        table.add_column("Site Visit")
        table.add_column("Site PT")

        for position, entry in enumerate(selection.ordered_entries(), start=1):
            record = entry.record
            deadline = record.deadline.strftime("%Y-%m-%d %H:%M") if record.deadline else escape(record.deadline_raw)
            table.add_row(
                str(position),
                escape(record.id),
                escape(record.title),
                escape(record.apt_name),
                deadline or "[dim]-[/dim]",
                escape(entry.annotation.bid_time) or "[dim]-[/dim]",
                entry.annotation.submission_method.value,
                _visit_text(entry),
                _pt_text(entry),
            )

        console.print(table)


@app.command("add")
def add_to_selection(
    bid_id: str = typer.Argument(..., help="Notice id from the catalog"),
) -> None:
    """Select a notice (it moves to the top of the selection)."""
    with _repos() as (snapshots, selections):
        record = snapshots.load().get(bid_id)
        if record is None:
            err_console.print(f"[red]Notice not found in the catalog:[/red] {escape(bid_id)}")
            raise typer.Exit(1)

        selection = selections.load()
        selection.select(record)
        selections.save(selection)
        console.print(f"[green]Selected[/green] {escape(record.id)}: {escape(record.title)}")


@app.command("remove")
def remove_from_selection(
    bid_id: str = typer.Argument(..., help="Selected notice id"),
) -> None:
    """Deselect a notice."""
    with _repos() as (_, selections):
        selection = selections.load()
        if not selection.deselect(bid_id):
            err_console.print(f"[red]Notice is not selected:[/red] {escape(bid_id)}")
            raise typer.Exit(1)

        selections.save(selection)
        console.print(f"[green]Removed[/green] {escape(bid_id)}")


@app.command("annotate")
def annotate_selection(
    bid_id: str = typer.Argument(..., help="Selected notice id"),
    bid_time: Optional[str] = typer.Option(None, "--bid-time", help="Bid time of day (HH:MM)"),
    method: Optional[SubmissionMethod] = typer.Option(None, "--method", help="Submission method"),
    visit_date: Optional[str] = typer.Option(None, "--visit-date", help="Site visit date (YYYY-MM-DD)"),
    visit_start: Optional[str] = typer.Option(None, "--visit-start", help="Site visit start (HH:MM)"),
    visit_end: Optional[str] = typer.Option(None, "--visit-end", help="Site visit end (HH:MM)"),
    no_visit: bool = typer.Option(False, "--no-visit", help="Clear the site visit"),
    pt_date: Optional[str] = typer.Option(None, "--pt-date", help="Site presentation date (YYYY-MM-DD)"),
    pt_time: Optional[str] = typer.Option(None, "--pt-time", help="Site presentation time (HH:MM)"),
    no_pt: bool = typer.Option(False, "--no-pt", help="Clear the site presentation"),
) -> None:
    """Set scheduling details on a selected notice.

    Examples:
        kaptwatch selection annotate 123 --bid-time 14:00 --method in-person
        kaptwatch selection annotate 123 --visit-date 2025-06-12 --visit-start 10:00 --visit-end 12:00
    """
    from dataclasses import replace

    from kaptwatch.core.models import SitePresentation, SiteVisit

    with _repos() as (_, selections):
        selection = selections.load()
        if bid_id not in selection:
            err_console.print(f"[red]Notice is not selected:[/red] {escape(bid_id)}")
            raise typer.Exit(1)

        current = selection.entries[bid_id].annotation
        changes: dict = {}

        if bid_time is not None:
            changes["bid_time"] = bid_time
        if method is not None:
            changes["submission_method"] = method

        if no_visit:
            changes["site_visit"] = SiteVisit()
        elif any(v is not None for v in (visit_date, visit_start, visit_end)):
            visit = current.site_visit
            changes["site_visit"] = replace(
                visit,
                enabled=True,
                date=visit_date if visit_date is not None else visit.date,
                start_time=visit_start if visit_start is not None else visit.start_time,
                end_time=visit_end if visit_end is not None else visit.end_time,
            )

        if no_pt:
            changes["site_pt"] = SitePresentation()
        elif pt_date is not None or pt_time is not None:
            pt = current.site_pt
            changes["site_pt"] = replace(
                pt,
                enabled=True,
                date=pt_date if pt_date is not None else pt.date,
                time=pt_time if pt_time is not None else pt.time,
            )

        if not changes:
            err_console.print("[yellow]Nothing to change[/yellow]")
            raise typer.Exit(1)

        selection.annotate(bid_id, **changes)
        selections.save(selection)
        console.print(f"[green]Updated[/green] {escape(bid_id)}")


@app.command("clear")
def clear_selection(
    yes: bool = typer.Option(False, "--yes", "-y", help="Don't ask for confirmation"),
) -> None:
    """Deselect everything."""
    with _repos() as (_, selections):
        selection = selections.load()
        if not len(selection):
            console.print("[dim]Selection is already empty.[/dim]")
            return

        if not yes and not typer.confirm(f"Clear {len(selection)} selected notices?"):
            raise typer.Abort()

        selection.clear()
        selections.save(selection)
        console.print("[green]Selection cleared[/green]")


@app.command("save")
def save_selection() -> None:
    """Archive the current selection under a timestamped name."""
    with _repos() as (_, selections):
        selection = selections.load()
        name = selections.save_named(selection)
        console.print(f"[green]Saved[/green] {len(selection)} notices as [cyan]{escape(name)}[/cyan]")


@app.command("saved")
def list_saved() -> None:
    """List archived selections."""
    with _repos() as (_, selections):
        archives = selections.list_named()
        if not archives:
            console.print("[dim]No saved selections.[/dim]")
            return

        table = Table(title="Saved Selections", show_header=True, header_style="bold magenta")
        table.add_column("Name", style="cyan")
        table.add_column("Saved At")
        table.add_column("Notices", justify="right")
        for archive in archives:
            table.add_row(escape(archive["name"]), str(archive["savedAt"] or "-")[:19], str(archive["count"]))
        console.print(table)


@app.command("restore")
def restore_selection(
    name: str = typer.Argument(..., help="Archive name (as shown by 'selection saved')"),
) -> None:
    """Replace the current selection with an archived one."""
    with _repos() as (_, selections):
        try:
            restored = selections.load_named(name)
        except KeyError:
            err_console.print(f"[red]Saved selection not found:[/red] {escape(name)}")
            raise typer.Exit(1)

        selections.save(restored)
        console.print(f"[green]Restored[/green] {len(restored)} notices from {escape(name)}")
