"""Command-line entrypoints for the local ERP document."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich import print
from rich.console import Console
from rich.table import Table

from sajitech.config import configure_logging, load_config
from sajitech.models.state import AppState
from sajitech.services.notification_service import NotificationService
from sajitech.services.report_service import executive_report
from sajitech.services.scoring import ClientSegment, client_segments
from sajitech.services.stock_service import StockService
from sajitech.services.workflow_service import Workspace

app = typer.Typer(add_completion=False, help="Sajitech ERP CLI")
backup_app = typer.Typer(add_completion=False, help="Remote backup (explicit push / pull)")
app.add_typer(backup_app, name="backup")

_settings: Optional[Path] = None


def _workspace() -> Workspace:
    config = load_config(_settings)
    configure_logging(config)
    return Workspace(config)


@app.callback()
def main_options(settings: Optional[Path] = typer.Option(None, dir_okay=False, help="Path to settings.json")) -> None:
    global _settings
    _settings = settings


@app.command()
def init(force: bool = typer.Option(False, help="Overwrite an existing state document")) -> None:
    """Create an empty state document."""
    ws = _workspace()
    path = ws.store.filepath
    if path.exists() and not force:
        print(f"[yellow]{path} already exists[/yellow] (use --force to reset)")
        raise typer.Exit(code=1)
    state = AppState.initial()
    state.revision = ws.store.disk_revision() if path.exists() else 0
    ws.store.save(state)
    print(f"State document created -> {path}")


@app.command()
def summary() -> None:
    """Counts, low-stock products, client segments and the executive report."""
    ws = _workspace()
    state = ws.state
    console = Console()

    counts = Table(title="Documents")
    counts.add_column("Collection")
    counts.add_column("Count", justify="right")
    for name in ("clients", "products", "invoices", "purchases", "expenses", "sales", "missions", "tickets"):
        counts.add_row(name, str(len(getattr(state, name))))
    console.print(counts)

    low = StockService(state, ws.rules).low_stock()
    if low:
        table = Table(title="Low stock")
        table.add_column("Product")
        table.add_column("Qty", justify="right")
        table.add_column("Min", justify="right")
        for p in low:
            table.add_row(p.name, f"{p.stock_qty:g}", f"{p.min_stock:g}")
        console.print(table)

    stats = client_segments(state, config=ws.rules.scoring)
    segments = {seg: 0 for seg in ClientSegment}
    for s in stats.values():
        segments[s.segment] += 1
    print("[bold]Segments:[/bold] " + "  ".join(f"{seg.value}: {n}" for seg, n in segments.items()))

    report = executive_report(state, ws.rules.report)
    finance = Table(title="Executive report")
    finance.add_column("Indicator")
    finance.add_column("Value", justify="right")
    for label, value in (
        ("Revenue", report.revenue), ("Purchases", report.purchases), ("Expenses", report.expenses),
        ("Profit", report.profit), ("Fuel cost", report.fuel_cost), ("Distance (km)", report.distance_km),
        ("Cost / km", report.cost_per_km), ("Resolution rate (%)", report.resolution_rate),
    ):
        finance.add_row(label, f"{value:,.2f}")
    for name, value in report.stock_by_category.items():
        finance.add_row(f"Stock: {name}", f"{value:,.2f}")
    console.print(finance)
    for ins in report.insights:
        colour = {"Positive": "green", "Negative": "red"}.get(ins.kind.value, "yellow")
        print(f"[{colour}]{ins.title}[/{colour}] {ins.message} ({ins.impact})")


@app.command()
def pulse() -> None:
    """Run the pulse checks once and save."""
    ws = _workspace()
    with ws.transaction() as state:
        raised = NotificationService(state, ws.rules).run_pulse_checks()
    print(f"{len(raised)} new notification(s)")
    for n in raised:
        print(f"- [red]{n.priority.value}[/red] {n.title}")


@backup_app.command("push")
def backup_push(owner: str = typer.Argument(..., help="Owner id of the remote backup row")) -> None:
    """Upload the local document."""
    ws = _workspace()
    if not ws.push_backup(owner):
        print("[red]Backup push failed[/red]")
        raise typer.Exit(code=1)
    print(f"[green]Backup pushed[/green] for {owner}")


@backup_app.command("pull")
def backup_pull(owner: str = typer.Argument(..., help="Owner id of the remote backup row")) -> None:
    """Replace the local document with the remote backup."""
    ws = _workspace()
    if not ws.pull_backup(owner):
        print("[red]Backup pull failed or no backup found[/red]")
        raise typer.Exit(code=1)
    print(f"[green]Local document restored[/green] from {owner}")


def main():
    app()


if __name__ == "__main__":
    main()
