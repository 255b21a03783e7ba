"""
Main CLI application using Typer.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Annotated

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.in_memory import InMemoryAvailabilityOracle, InMemoryBookingStore
from ..adapters.openai_client import OpenAIRoutingClient
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import SchedulingError
from ..domain.models import Event, RoutingDecision
from ..domain.slot_calculator import normalize_timezone
from ..services.booking_orchestrator import BookingOrchestrator
from ..services.conflict_validator import SlotConflictValidator
from ..services.routing import RoutingEngine
from ..services.slot_finder import SlotFinderService

app = typer.Typer(
    name="slotrouter",
    help="Find bookable meeting slots and route bookings to hosts",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./slotrouter.yaml")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")]


@dataclass
class Runtime:
    """Services wired against the in-memory adapters."""
    config: AppConfig
    events: Dict[int, Event]
    store: InMemoryBookingStore
    slot_finder: SlotFinderService
    routing_engine: RoutingEngine
    orchestrator: BookingOrchestrator


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=False)],
        force=True,
    )


def _load_runtime(config_file: Optional[Path], verbose: bool) -> Runtime:
    """
    Load configuration and wire the services.

    Seeded bookings block their hosts in the availability oracle, the same
    way bookings created through the orchestrator do.
    """
    config_path = config_file or get_default_config_path()
    config = AppConfig.load_from_yaml(config_path)
    _configure_logging("DEBUG" if verbose else config.log_level)

    events = config.build_events()
    store = InMemoryBookingStore(bookings=config.build_bookings())
    oracle = InMemoryAvailabilityOracle()

    for booking in store.all():
        event = events.get(booking.event_id)
        if booking.is_active() and event is not None:
            oracle.record_booking(
                booking,
                BookingOrchestrator.blocked_hosts(event, booking),
                buffer_minutes=event.config.buffer_minutes,
            )

    routing_engine = RoutingEngine(
        repository=store,
        oracle=oracle,
        ai_client=OpenAIRoutingClient.from_config(config.ai),
    )
    validator = SlotConflictValidator(repository=store, oracle=oracle)

    return Runtime(
        config=config,
        events=events,
        store=store,
        slot_finder=SlotFinderService(repository=store, oracle=oracle),
        routing_engine=routing_engine,
        orchestrator=BookingOrchestrator(
            validator=validator,
            routing_engine=routing_engine,
            repository=store,
            availability_sync=oracle,
        ),
    )


def _require_event(runtime: Runtime, event_id: int) -> Event:
    event = runtime.events.get(event_id)
    if event is None:
        console.print(f"[bold red]Error:[/bold red] Unknown event {event_id}")
        raise typer.Exit(1)
    return event


def _parse_instant(value: str, tz: str) -> DateTime:
    try:
        parsed = pendulum.parse(value, tz=tz)
    except ValueError as e:
        console.print(f"[red]Could not parse datetime '{value}': {e}[/red]")
        raise typer.Exit(1)

    if not isinstance(parsed, DateTime):
        console.print(f"[red]'{value}' is not a date and time[/red]")
        raise typer.Exit(1)
    return parsed


def _resolve_interval(event: Event, start: str, end: Optional[str], tz: str):
    start_dt = _parse_instant(start, tz)
    if end:
        end_dt = _parse_instant(end, tz)
    else:
        end_dt = start_dt.add(minutes=event.config.default_duration_minutes())
    return start_dt, end_dt


def _build_form_data(name: Optional[str], email: Optional[str], fields: Optional[List[str]]) -> Dict[str, Any]:
    form_data: Dict[str, Any] = {"primary_contact": {"name": name, "email": email}}

    for item in fields or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            console.print(f"[yellow]Warning: ignoring field '{item}', expected key=value[/yellow]")
            continue
        form_data[key.strip()] = value.strip()

    return form_data


def _print_decision(decision: RoutingDecision, title: str) -> None:
    result = decision.to_result()
    body = (
        f"[bold]Host:[/bold] {result['assigned_name'] or '-'} (ID {result['assigned_to'] or '-'})\n"
        f"[bold]Method:[/bold] {result['routing_method']}"
    )
    if decision.reason:
        body += f"\n[bold]Reason:[/bold] {decision.reason}"
    console.print(Panel.fit(body, title=title))


@app.command()
def slots(
    event_id: Annotated[int, typer.Argument(help="Event id from the config file")],
    date: Annotated[Optional[str], typer.Option("--date", help="Date (YYYY-MM-DD), defaults to today")] = None,
    timezone: Annotated[Optional[str], typer.Option("--timezone", "--tz", help="Client timezone (IANA)")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Meeting duration in minutes")] = None,
    buffer: Annotated[Optional[int], typer.Option("--buffer", help="Buffer after existing bookings in minutes")] = None,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    List bookable slots of an event for one day.

    Examples:

        slotrouter slots 1 --date 2024-11-25 --tz Europe/Berlin
        slotrouter slots 1 --duration 60 --buffer 15
    """
    try:
        runtime = _load_runtime(config_file, verbose)
        event = _require_event(runtime, event_id)
        tz = normalize_timezone(timezone or runtime.config.defaults.timezone)
        requested = date or pendulum.now(tz).to_date_string()

        found = runtime.slot_finder.find_slots(
            event,
            requested,
            duration_minutes=duration,
            timezone=tz,
            buffer_minutes=buffer,
        )

        console.print()
        if not found:
            console.print(
                f"[yellow]No bookable slots for '{event.name}' on {requested}.[/yellow]\n"
                "Try another date or a shorter duration."
            )
        else:
            console.print(f"[bold green]{len(found)} slot(s) for '{event.name}' on {requested}:[/bold green]\n")
            for slot in found:
                console.print(f"  {slot.format_display()}")
        console.print()

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def book(
    event_id: Annotated[int, typer.Argument(help="Event id from the config file")],
    start: Annotated[str, typer.Option("--start", help="Start (ISO 8601, e.g. 2024-11-25T09:00)")],
    end: Annotated[Optional[str], typer.Option("--end", help="End, defaults to start + default duration")] = None,
    timezone: Annotated[Optional[str], typer.Option("--timezone", "--tz", help="Timezone of start/end without offset")] = None,
    name: Annotated[Optional[str], typer.Option("--name", help="Name of the person booking")] = None,
    email: Annotated[Optional[str], typer.Option("--email", help="Email of the person booking")] = None,
    field: Annotated[Optional[List[str]], typer.Option("--field", "-f", help="Custom form field as key=value")] = None,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Validate a slot, route it to a host and create the booking.
    """
    try:
        runtime = _load_runtime(config_file, verbose)
        event = _require_event(runtime, event_id)
        tz = timezone or runtime.config.defaults.timezone
        start_dt, end_dt = _resolve_interval(event, start, end, tz)

        outcome = runtime.orchestrator.create_booking(
            event,
            start_dt,
            end_dt,
            form_data=_build_form_data(name, email, field),
        )

        booking = outcome.booking
        console.print()
        console.print(Panel.fit(
            f"[bold green]Booking {booking.id} created[/bold green]\n\n"
            f"[bold]Event:[/bold] {event.name}\n"
            f"[bold]Time:[/bold] {booking.start.in_timezone(tz).format('YYYY-MM-DD HH:mm')}"
            f" - {booking.end.in_timezone(tz).format('HH:mm')} ({tz})",
            title="Booking"
        ))
        if outcome.decision is not None:
            _print_decision(outcome.decision, title="Routing")
        console.print()

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def route(
    event_id: Annotated[int, typer.Argument(help="Event id from the config file")],
    start: Annotated[str, typer.Option("--start", help="Start (ISO 8601)")],
    end: Annotated[Optional[str], typer.Option("--end", help="End, defaults to start + default duration")] = None,
    timezone: Annotated[Optional[str], typer.Option("--timezone", "--tz", help="Timezone of start/end without offset")] = None,
    name: Annotated[Optional[str], typer.Option("--name", help="Name of the person booking")] = None,
    email: Annotated[Optional[str], typer.Option("--email", help="Email of the person booking")] = None,
    field: Annotated[Optional[List[str]], typer.Option("--field", "-f", help="Custom form field as key=value")] = None,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Dry-run the routing decision for a booking request without creating it.
    """
    try:
        runtime = _load_runtime(config_file, verbose)
        event = _require_event(runtime, event_id)
        if not event.config.routing_enabled:
            console.print(f"[yellow]Routing is not enabled for '{event.name}'.[/yellow]")
            raise typer.Exit(1)

        tz = timezone or runtime.config.defaults.timezone
        start_dt, end_dt = _resolve_interval(event, start, end, tz)

        decision = runtime.routing_engine.route(
            event,
            start_dt,
            end_dt,
            _build_form_data(name, email, field),
        )
        console.print()
        _print_decision(decision, title="Routing test")
        console.print()

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def events(
    config_file: ConfigOption = None,
):
    """
    List all configured events.
    """
    try:
        config_path = config_file or get_default_config_path()
        config = AppConfig.load_from_yaml(config_path)

        if not config.events:
            console.print("[yellow]No events defined in the config file.[/yellow]")
            return

        table = Table(
            title="Configured events",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("ID", style="bold yellow")
        table.add_column("Name")
        table.add_column("Availability", style="dim")
        table.add_column("Routing", style="dim")
        table.add_column("Hosts")

        for event in config.build_events().values():
            routing = event.config.routing_fallback.value if event.config.routing_enabled else "off"
            hosts = ", ".join(user.name for user in event.host_pool()) or "-"
            table.add_row(
                str(event.id),
                event.name,
                event.config.availability_type.value,
                routing,
                hosts,
            )

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotrouter[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
