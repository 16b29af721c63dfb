"""
Notice catalog commands.
"""

from __future__ import annotations

import csv
import sys
from typing import Optional

import orjson
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from kaptwatch.core.models import BidRecord

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="View the synchronized notice catalog",
    no_args_is_help=True,
)

CSV_COLUMNS = [
    "id", "title", "aptName", "type", "method", "status",
    "region", "category", "postDate", "deadline", "detailLink",
]


def _load_records() -> list[BidRecord]:
    from kaptwatch.cli.runtime import load_config, store_scope
    from kaptwatch.persistence.repo import SnapshotRepository

    with store_scope(load_config(setup_logs=False)) as store:
        return list(SnapshotRepository(store).load())


def _matches(value: Optional[str], field_value: str) -> bool:
    return value is None or field_value.lower() == value.lower()


@app.command("list")
def list_bids(
    region: Optional[str] = typer.Option(
        None,
        "--region",
        "-r",
        help="Filter by region (Seoul, Incheon, Gyeonggi, Gangwon, Chungbuk, Chungnam, other)",
    ),
    category: Optional[str] = typer.Option(
        None,
        "--category",
        "-c",
        help="Filter by category (security, service, contractor, other)",
    ),
    limit: int = typer.Option(
        20,
        "--limit",
        "-n",
        help="Maximum results to show",
    ),
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format (table, json, csv)",
    ),
) -> None:
    """List notices from the last synchronized snapshot.

    Examples:
        kaptwatch bids list --region Seoul --category security
        kaptwatch bids list --format json -n 100
    """
    if format not in ("table", "json", "csv"):
        err_console.print(f"[red]Unknown format:[/red] {format}")
        err_console.print("[dim]Supported: table, json, csv[/dim]")
        raise typer.Exit(1)

    records = [
        r for r in _load_records()
        if _matches(region, r.region) and _matches(category, r.category)
    ][:limit]

    if not records:
        console.print("[dim]No notices found matching criteria.[/dim]")
        return

    if format == "json":
        console.print_json(orjson.dumps([r.to_dict() for r in records]).decode("utf-8"))
        return

    if format == "csv":
        writer = csv.DictWriter(sys.stdout, fieldnames=CSV_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        for r in records:
            writer.writerow({k: v if v is not None else "" for k, v in r.to_dict().items()})
        return

    table = Table(title=f"Notices ({len(records)} shown)", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Title", max_width=50)
    table.add_column("Apartment", max_width=25)
    table.add_column("Region")
    table.add_column("Category")
    table.add_column("Status", justify="center")
    table.add_column("Posted", justify="right")
    table.add_column("Deadline", justify="right")

    for r in records:
        table.add_row(
            escape(r.id),
            escape(r.title),
            escape(r.apt_name),
            r.region,
            r.category,
            escape(r.status) or "[dim]-[/dim]",
            r.post_date.strftime("%Y-%m-%d") if r.post_date else escape(r.post_date_raw) or "[dim]-[/dim]",
            r.deadline.strftime("%Y-%m-%d %H:%M") if r.deadline else escape(r.deadline_raw) or "[dim]-[/dim]",
        )

    console.print(table)


@app.command("stats")
def show_stats() -> None:
    """Show the category and region breakdown of the snapshot."""
    from kaptwatch.core.catalog.assembler import breakdown
    from kaptwatch.core.models import BidSnapshot

    snapshot = BidSnapshot(tuple(_load_records()))
    if not len(snapshot):
        console.print("[dim]No notices synchronized yet. Run:[/dim] kaptwatch sync run")
        return

    categories, regions = breakdown(snapshot)
    console.print(f"[bold]Total notices:[/bold] {len(snapshot)}")
    console.print()

    for title, counts in (("By Category", categories), ("By Region", regions)):
        table = Table(title=title, show_header=True, header_style="bold magenta")
        table.add_column("Name", style="cyan")
        table.add_column("Count", justify="right")
        for name, count in counts.most_common():
            table.add_row(name, str(count))
        console.print(table)
