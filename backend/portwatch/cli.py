"""PortWatch CLI — port call detection and port KPIs.

Commands:
  init     — create tables and seed port geofences
  detect   — run port call detection over recent AIS positions
  metrics  — rolling 7-day KPIs per port
  daily    — arrivals/departures per UTC day for one port
  busiest  — ports ranked by 7-day arrivals
  status   — per-vessel port state summary
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table


app = typer.Typer(
    name="portwatch",
    help="Geofence port call detection and rolling port KPIs.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    from portwatch.config import settings
    logging.basicConfig(level=logging.DEBUG if verbose else settings.LOG_LEVEL)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("init")
def init(
    seed: bool = typer.Option(True, "--seed/--no-seed", help="Seed built-in major ports"),
):
    """Create the database schema and seed port geofences."""
    try:
        from portwatch.database import init_db, SessionLocal

        with console.status("[bold]Creating database..."):
            init_db()

        if seed:
            from portwatch.modules.port_seed import seed_ports
            db = SessionLocal()
            try:
                with console.status("[bold]Seeding ports..."):
                    counts = seed_ports(db)
            finally:
                db.close()
            console.print(
                f"Ports: [green]{counts['inserted']} inserted[/green], {counts['skipped']} already present"
            )
        console.print("[green]Setup complete![/green]")
    except Exception as e:
        console.print(f"[red]Setup failed: {e}[/red]")
        raise typer.Exit(1)


@app.command("detect")
def detect(
    vessel_id: Optional[int] = typer.Option(None, "--vessel-id", help="Only process this vessel"),
    lookback_hours: Optional[float] = typer.Option(
        None, "--lookback-hours", help="Position window (default: PORT_CALL_LOOKBACK_HOURS)"
    ),
):
    """Open and close port calls from recent AIS positions."""
    from portwatch.database import SessionLocal
    from portwatch.modules.port_call_state import PortStateConflictError
    from portwatch.modules.port_detector import process_port_calls_for_vessel, run_port_call_processing

    db = SessionLocal()
    try:
        with console.status("[bold]Detecting port calls..."):
            if vessel_id is not None:
                try:
                    result = process_port_calls_for_vessel(db, vessel_id, lookback_hours=lookback_hours)
                except PortStateConflictError as e:
                    console.print(f"[red]{e}, try again[/red]")
                    raise typer.Exit(1)
                summary = {
                    "vessels_processed": 1,
                    "port_calls_opened": len(result.opened_call_ids),
                    "port_calls_closed": len(result.closed_call_ids),
                    "conflicts": 0,
                }
            else:
                summary = run_port_call_processing(db, lookback_hours=lookback_hours)
    finally:
        db.close()

    console.print(
        f"Vessels: {summary['vessels_processed']:,}  |  "
        f"[green]{summary['port_calls_opened']} opened[/green]  "
        f"[cyan]{summary['port_calls_closed']} closed[/cyan]"
    )
    if summary["conflicts"]:
        console.print(f"[yellow]{summary['conflicts']} vessel(s) skipped after state conflicts[/yellow]")


@app.command("metrics")
def metrics(
    port_id: Optional[int] = typer.Option(None, "--port-id", help="Only this port"),
    as_of: Optional[datetime] = typer.Option(None, "--as-of", help="Window end (UTC), default now"),
):
    """Show rolling 7-day KPIs per port."""
    from portwatch.config import settings
    from portwatch.database import SessionLocal
    from portwatch.models.port import Port
    from portwatch.modules.port_metrics import get_port_metrics_7d

    now = as_of or datetime.utcnow()
    db = SessionLocal()
    try:
        query = db.query(Port).order_by(Port.name)
        if port_id is not None:
            query = query.filter(Port.port_id == port_id)
        ports = query.all()
        if not ports:
            console.print("[yellow]No ports found.[/yellow]")
            raise typer.Exit(1)

        table = Table(title=f"Port KPIs — {settings.PORT_METRICS_WINDOW_DAYS}d to {now:%Y-%m-%d %H:%M} UTC")
        table.add_column("Port", style="cyan")
        table.add_column("Arrivals", justify="right")
        table.add_column("Departures", justify="right")
        table.add_column("Vessels", justify="right")
        table.add_column("Open", justify="right")
        table.add_column("Avg dwell (h)", justify="right")
        for port in ports:
            m = get_port_metrics_7d(db, port.port_id, now=now)
            dwell = f"{m.avg_dwell_hours_7d:.1f}" if m.avg_dwell_hours_7d is not None else "-"
            table.add_row(
                port.name,
                str(m.arrivals_7d),
                str(m.departures_7d),
                str(m.unique_vessels_7d),
                str(m.open_calls),
                dwell,
            )
        console.print(table)
    finally:
        db.close()


@app.command("daily")
def daily(
    port_id: int = typer.Option(..., "--port-id", help="Port to report"),
    as_of: Optional[datetime] = typer.Option(None, "--as-of", help="Last day of the series (UTC), default today"),
):
    """Show arrivals and departures per UTC day for one port."""
    from portwatch.database import SessionLocal
    from portwatch.models.port import Port
    from portwatch.modules.port_metrics import get_daily_arrivals_departures

    db = SessionLocal()
    try:
        port = db.query(Port).filter(Port.port_id == port_id).first()
        if port is None:
            console.print(f"[red]Port {port_id} not found.[/red]")
            raise typer.Exit(1)
        series = get_daily_arrivals_departures(db, port_id, now=as_of or datetime.utcnow())
    finally:
        db.close()

    table = Table(title=f"{port.name}: daily arrivals and departures (UTC)")
    table.add_column("Day", style="cyan")
    table.add_column("Arrivals", justify="right")
    table.add_column("Departures", justify="right")
    for d in series:
        table.add_row(d.day.isoformat(), str(d.arrivals), str(d.departures))
    console.print(table)


@app.command("busiest")
def busiest(
    limit: int = typer.Option(20, "--limit", min=1, help="Number of ports to show"),
    as_of: Optional[datetime] = typer.Option(None, "--as-of", help="Window end (UTC), default now"),
):
    """Rank ports by arrivals over the rolling window."""
    from portwatch.database import SessionLocal
    from portwatch.modules.port_metrics import get_top_busy_ports

    db = SessionLocal()
    try:
        ranked = get_top_busy_ports(db, limit=limit, now=as_of or datetime.utcnow())
    finally:
        db.close()

    if not ranked:
        console.print("[yellow]No arrivals in the window.[/yellow]")
        return

    table = Table(title="Busiest ports")
    table.add_column("#", justify="right")
    table.add_column("Port", style="cyan")
    table.add_column("Country")
    table.add_column("Arrivals", justify="right")
    table.add_column("Vessels", justify="right")
    table.add_column("Avg dwell (h)", justify="right")
    for rank, b in enumerate(ranked, 1):
        table.add_row(
            str(rank), b.name, b.country, str(b.arrivals_7d),
            str(b.unique_vessels_7d), f"{b.avg_dwell_hours_7d:.1f}",
        )
    console.print(table)

@app.command("status")
def status():
    """Show per-vessel port tracking state."""
    from portwatch.database import SessionLocal
    from portwatch.modules.port_detector import get_port_tracking_status

    db = SessionLocal()
    try:
        info = get_port_tracking_status(db)
    finally:
        db.close()

    console.print("[bold]Port tracking[/bold]")
    console.print(f"  Vessels tracked: {info['tracked_vessels']:,}")
    console.print(f"  In port now: [green]{info['vessels_in_port']:,}[/green]")
    console.print(f"  Open calls: {info['open_calls']:,}")
    if info["open_calls"] != info["vessels_in_port"]:
        console.print(
            "[yellow]Open call count differs from vessels in port — "
            "some calls may have been closed or opened outside detection.[/yellow]"
        )
