"""CLI commands for the clinic calendar."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from clinic_calendar.config import get_settings
from clinic_calendar.errors import SchedulingError
from clinic_calendar.scheduling.conflicts import (
    detect_recurring_conflicts,
    suggest_alternative_times,
)
from clinic_calendar.scheduling.models import Appointment, Conflict
from clinic_calendar.scheduling.recurrence import (
    format_recurring_pattern,
    generate_recurring_dates,
    parse_pattern,
)
from clinic_calendar.scheduling.timezones import ensure_iana_timezone, from_utc, to_utc

app = typer.Typer(
    name="clinic-calendar",
    help="Recurrence expansion and conflict checks for clinician calendars",
    add_completion=False,
)
console = Console()


def _fail(message: str) -> NoReturn:
    console.print(f"[red]{escape(message)}[/red]")
    raise typer.Exit(1)


def _read_json(path: Path) -> Any:
    if not path.exists():
        _fail(f"File not found: {path}")
    try:
        return json.loads(path.read_text())
    except json.JSONDecodeError as e:
        _fail(f"Invalid JSON in {path}: {e}")


def _load_appointments(
    candidate_file: Path, existing_file: Path
) -> tuple[Appointment, list[Appointment]]:
    candidate_data = _read_json(candidate_file)
    existing_data = _read_json(existing_file)
    if not isinstance(existing_data, list):
        _fail(f"{existing_file} must contain a JSON list of appointments")
    try:
        candidate = Appointment.model_validate(candidate_data)
        existing = [Appointment.model_validate(item) for item in existing_data]
    except ValueError as e:
        _fail(f"Invalid appointment: {e}")
    return candidate, existing


def _clock(value: datetime, zone: str) -> str:
    return from_utc(value, zone).strftime("%Y-%m-%d %H:%M %Z")


@app.command()
def expand(
    pattern_file: Path = typer.Argument(..., help="JSON file with the recurrence pattern"),
    start: str = typer.Option(
        ..., "--start", "-s", help="First occurrence, e.g. 2024-01-01T09:00 (local time)"
    ),
    tz: Optional[str] = typer.Option(None, "--tz", help="Zone for patterns that carry none"),
    max_occurrences: Optional[int] = typer.Option(
        None, "--max", "-m", help="Ceiling for open-ended patterns"
    ),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Expand a recurrence pattern into occurrence times."""
    settings = get_settings()
    raw = _read_json(pattern_file)

    try:
        first = datetime.fromisoformat(start)
    except ValueError:
        _fail(f"Invalid start time: {start}")

    try:
        pattern = parse_pattern(raw)
    except SchedulingError as e:
        _fail(f"Invalid pattern: {e}")

    if pattern.timezone is None:
        zone = ensure_iana_timezone(tz, default=settings.default_timezone)
        pattern = pattern.model_copy(update={"timezone": zone})

    dates = generate_recurring_dates(first, pattern, max_occurrences or settings.max_occurrences)

    if output_json:
        console.print_json(json.dumps([d.isoformat() for d in dates]))
        return

    table = Table(title=format_recurring_pattern(pattern))
    table.add_column("#", justify="right")
    table.add_column("Local")
    table.add_column("UTC")
    for i, d in enumerate(dates, 1):
        table.add_row(
            str(i),
            d.strftime("%a %Y-%m-%d %H:%M %Z"),
            to_utc(d).strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def describe(
    pattern_file: Path = typer.Argument(..., help="JSON file with the recurrence pattern"),
):
    """Print a readable description of a recurrence pattern."""
    raw = _read_json(pattern_file)
    try:
        pattern = parse_pattern(raw)
    except SchedulingError as e:
        _fail(f"Invalid pattern: {e}")
    console.print(format_recurring_pattern(pattern))


def _conflict_table(conflicts: list[Conflict], zone: str) -> Table:
    table = Table(title=f"{len(conflicts)} conflict(s)")
    table.add_column("Occurrence")
    table.add_column("Type")
    table.add_column("Existing")
    table.add_column("Overlap (min)", justify="right")
    table.add_column("Resolutions")
    for conflict in conflicts:
        table.add_row(
            _clock(conflict.candidate.start, zone),
            conflict.type.value,
            conflict.existing_id,
            f"{conflict.overlap_minutes:g}",
            ", ".join(r.value for r in conflict.possible_resolutions),
        )
    return table


@app.command()
def conflicts(
    candidate_file: Path = typer.Argument(..., help="JSON file with the proposed appointment"),
    existing_file: Path = typer.Argument(..., help="JSON list of booked appointments"),
    tz: Optional[str] = typer.Option(None, "--tz", help="Clinician time zone"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Check a proposed appointment (or series) against booked ones."""
    settings = get_settings()
    candidate, existing = _load_appointments(candidate_file, existing_file)
    zone = ensure_iana_timezone(tz, default=settings.default_timezone)

    found = detect_recurring_conflicts(
        candidate,
        existing,
        zone,
        max_occurrences=settings.max_occurrences,
        adjacency_minutes=settings.adjacency_threshold_minutes,
    )

    if output_json:
        console.print_json(json.dumps([c.model_dump(mode="json") for c in found]))
    elif not found:
        console.print("[green]No conflicts[/green]")
    else:
        console.print(_conflict_table(found, zone))


@app.command()
def suggest(
    candidate_file: Path = typer.Argument(..., help="JSON file with the proposed appointment"),
    existing_file: Path = typer.Argument(..., help="JSON list of booked appointments"),
    tz: Optional[str] = typer.Option(None, "--tz", help="Clinician time zone"),
    count: Optional[int] = typer.Option(
        None, "--count", "-n", help="Number of alternatives to propose"
    ),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Suggest conflict-free times for a proposed appointment."""
    settings = get_settings()
    candidate, existing = _load_appointments(candidate_file, existing_file)
    zone = ensure_iana_timezone(tz, default=settings.default_timezone)

    suggestions = suggest_alternative_times(
        candidate,
        existing,
        zone,
        max_suggestions=count or settings.max_suggestions,
        business_hours=settings.business_hours,
        adjacency_minutes=settings.adjacency_threshold_minutes,
    )

    if output_json:
        console.print_json(
            json.dumps(
                [{"start": s.start.isoformat(), "end": s.end.isoformat()} for s in suggestions]
            )
        )
        return

    if not suggestions:
        console.print("[yellow]No free time found on this day or the next[/yellow]")
        return

    table = Table(title="Suggested times")
    table.add_column("Start")
    table.add_column("End")
    for s in suggestions:
        table.add_row(_clock(s.start, zone), _clock(s.end, zone))
    console.print(table)


@app.command()
def version():
    """Show version information."""
    from clinic_calendar import __version__

    console.print(f"clinic-calendar v{__version__}")


if __name__ == "__main__":
    app()
