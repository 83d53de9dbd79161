"""CLI commands for the scheduling engine."""

import asyncio
from datetime import date, datetime, timezone
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from telehealth_scheduling import __version__
from telehealth_scheduling.config import get_settings
from telehealth_scheduling.scheduling.calendar import generate_month_grid, month_grid_rows
from telehealth_scheduling.scheduling.models import DateRange, SlotPage, TimeWindow, load_zone
from telehealth_scheduling.scheduling.session_window import can_start_session

app = typer.Typer(
    name="telehealth-sched",
    help="Calendar grids, session join windows and practitioner availability",
    add_completion=False,
)
console = Console()

_WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def _parse_instant(value: str, tz_name: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=load_zone(tz_name))
    return parsed


def get_slot_store(tz_name: str):
    """Get a slot store wired to the configured backend."""
    from telehealth_scheduling.api import ApiClient
    from telehealth_scheduling.cache import QueryCache
    from telehealth_scheduling.scheduling.slot_store import AvailabilitySlotStore

    return AvailabilitySlotStore(ApiClient(), QueryCache(), timezone=tz_name)


@app.command()
def version():
    """Show version information."""
    console.print(f"Telehealth Scheduling v{__version__}")


@app.command()
def grid(
    year: int = typer.Argument(..., help="Calendar year"),
    month: int = typer.Argument(..., min=1, max=12, help="Month number (1-12)"),
    tz: Optional[str] = typer.Option(None, "--tz", "-t", help="IANA timezone"),
):
    """Print a Monday-first month grid."""
    tz_name = tz or get_settings().default_timezone
    try:
        days = generate_month_grid(year, month - 1, tz_name)
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"{date(year, month, 1):%B %Y} ({tz_name})")
    for name in _WEEKDAYS:
        table.add_column(name, justify="right")
    for row in month_grid_rows(days):
        table.add_row(
            *[str(d.day) if d.in_current_month else f"[dim]{d.day}[/dim]" for d in row]
        )
    console.print(table)


@app.command("join-check")
def join_check(
    start: str = typer.Argument(..., help="Session start (ISO 8601)"),
    end: str = typer.Argument(..., help="Session end (ISO 8601)"),
    tz: Optional[str] = typer.Option(None, "--tz", "-t", help="IANA timezone"),
    now: Optional[str] = typer.Option(None, "--now", help="Evaluate at this instant instead of the clock"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Check whether a session can be joined."""
    tz_name = tz or get_settings().default_timezone
    try:
        window = TimeWindow(
            start=_parse_instant(start, tz_name),
            end=_parse_instant(end, tz_name),
            timezone=tz_name,
        )
        at = _parse_instant(now, tz_name) if now else datetime.now(timezone.utc)
        decision = can_start_session(window, tz_name, now=at)
    except (ValueError, ValidationError) as e:
        console.print(f"[red]Invalid session window: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if output_json:
        console.print(decision.model_dump_json(indent=2))
        return

    color = "red" if decision.blocked else "green"
    console.print(
        Panel(
            f"[bold]Blocked:[/bold] {decision.blocked}\n"
            f"[bold]Minutes until start:[/bold] {decision.minutes_until_start:.1f}\n"
            f"[bold]Minutes until end:[/bold] {decision.minutes_until_end:.1f}",
            title="Join Session",
            border_style=color,
        )
    )


@app.command()
def slots(
    practitioner_id: str = typer.Argument(..., help="Practitioner (therapist) ID"),
    start_date: str = typer.Option(..., "--from", help="First day (YYYY-MM-DD)"),
    end_date: Optional[str] = typer.Option(None, "--to", help="Last day (YYYY-MM-DD)"),
    tz: Optional[str] = typer.Option(None, "--tz", "-t", help="IANA timezone"),
):
    """List a practitioner's availability slots."""
    tz_name = tz or get_settings().default_timezone
    try:
        date_range = DateRange(
            start=date.fromisoformat(start_date),
            end=date.fromisoformat(end_date or start_date),
        )
    except (ValueError, ValidationError) as e:
        console.print(f"[red]Invalid date range: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    store = get_slot_store(tz_name)

    async def _run() -> SlotPage:
        try:
            return await store.fetch_slots(practitioner_id, date_range)
        finally:
            await store.client.aclose()

    page = asyncio.run(_run())
    if page.failed:
        console.print(f"[red]Could not load slots: {escape(page.error)}[/red]")
        raise typer.Exit(1)
    if not page.data:
        console.print("[yellow]No slots available[/yellow]")
        return

    table = Table(title=f"Availability for {practitioner_id}")
    table.add_column("ID")
    table.add_column("Slot")
    table.add_column("Status")
    for slot, option in zip(page.data, store.to_options(page.data)):
        table.add_row(slot.id, option.label, slot.status.value)
    console.print(table)


if __name__ == "__main__":
    app()
