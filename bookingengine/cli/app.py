"""
Operator CLI using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Annotated

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.memory_store import InMemoryReservationStore
from ..adapters.rest_store import RestReservationStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import BookingEngineError
from ..domain.metrics import BucketMode, MetricsAggregator, ReportRole
from ..domain.models import DateRange, to_date
from ..domain.slot_calculator import SlotCalculator
from ..services.booking_service import BookingService
from ..services.ports import ReservationStoreProtocol
from ..services.reporting_service import ReportingService

app = typer.Typer(
    name="bookingengine",
    help="Query availability, agendas and revenue reports of a booking store",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")]


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def build_store(config: AppConfig) -> ReservationStoreProtocol:
    """Create the data store selected in the configuration."""
    if config.store.backend == "rest":
        return RestReservationStore(
            base_url=config.store.base_url,
            api_key=config.store.api_key,
            timeout_seconds=config.store.timeout_seconds,
        )

    if config.store.data_file is None:
        return InMemoryReservationStore()
    return InMemoryReservationStore.from_json_file(config.store.data_file)


def build_booking_service(config: AppConfig, store: ReservationStoreProtocol) -> BookingService:
    calculator = SlotCalculator(
        granularity_minutes=config.slots.granularity_minutes,
        same_day_buffer_minutes=config.slots.same_day_buffer_minutes,
    )
    return BookingService(
        store,
        calculator,
        timeout_seconds=config.store.timeout_seconds,
        timezone=config.timezone,
    )


def build_reporting_service(config: AppConfig, store: ReservationStoreProtocol) -> ReportingService:
    aggregator = MetricsAggregator(
        top_services_limit=config.metrics.top_services_limit,
        week_starts_on=config.metrics.week_starts_on,
    )
    return ReportingService(store, aggregator, timeout_seconds=config.store.timeout_seconds)


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    if isinstance(error, BookingEngineError) and error.retryable:
        console.print("[yellow]This error is temporary; try again.[/yellow]")
    raise typer.Exit(1)


@app.command()
def slots(
    business_id: Annotated[str, typer.Argument(help="Business identifier")],
    professional_id: Annotated[str, typer.Argument(help="Professional identifier")],
    date: Annotated[Optional[str], typer.Option("--date", help="Date (YYYY-MM-DD). Defaults to today")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Total duration in minutes")] = None,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    List bookable start times for a professional on a date.

    Examples:

        bookingengine slots salon-1 pro-1 --date 2024-11-25 --duration 60
    """
    _setup_logging(verbose)
    try:
        config = _load_config(config_file)
        day = to_date(date) if date else to_date(pendulum.now(config.timezone))
        minutes = duration if duration is not None else config.slots.default_duration_minutes

        service = build_booking_service(config, build_store(config))
        found = asyncio.run(
            service.available_slots(
                business_id=business_id,
                professional_id=professional_id,
                date=day,
                duration_minutes=minutes,
            )
        )
    except (FileNotFoundError, ValueError, BookingEngineError) as e:
        _fail(e)

    console.print()
    if not found:
        console.print(
            f"[yellow]⚠ No bookable times on {day.format('DD.MM.YYYY')} for {minutes} min.[/yellow]"
        )
    else:
        console.print(f"[bold green]✓ {len(found)} bookable time(s) on {day.format('DD.MM.YYYY')}:[/bold green]\n")
        console.print("  " + "  ".join(slot.time for slot in found))
    console.print()


@app.command()
def agenda(
    professional_id: Annotated[str, typer.Argument(help="Professional identifier")],
    date: Annotated[Optional[str], typer.Option("--date", help="Date (YYYY-MM-DD). Defaults to today")] = None,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Show a professional's reservations for one day.
    """
    _setup_logging(verbose)
    try:
        config = _load_config(config_file)
        day = to_date(date) if date else to_date(pendulum.now(config.timezone))
        service = build_booking_service(config, build_store(config))
        reservations = asyncio.run(service.day_agenda(professional_id, day))
    except (FileNotFoundError, ValueError, BookingEngineError) as e:
        _fail(e)

    if not reservations:
        console.print(f"\n[yellow]No reservations on {day.format('DD.MM.YYYY')}.[/yellow]\n")
        return

    table = Table(
        title=f"Agenda {day.format('DD.MM.YYYY')}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Time", style="bold yellow")
    table.add_column("Duration")
    table.add_column("Services")
    table.add_column("Status", style="dim")
    table.add_column("Value", justify="right")

    for reservation in reservations:
        table.add_row(
            reservation.time,
            f"{reservation.duration_minutes} min",
            reservation.service_label,
            reservation.status.value,
            f"{reservation.value:.2f}",
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def report(
    business_id: Annotated[str, typer.Argument(help="Business identifier")],
    start: Annotated[str, typer.Option("--start", help="Start date (YYYY-MM-DD)")],
    end: Annotated[str, typer.Option("--end", help="End date (YYYY-MM-DD)")],
    role: Annotated[ReportRole, typer.Option("--role", help="Viewer role")] = ReportRole.OWNER,
    professional_id: Annotated[Optional[str], typer.Option("--professional", "-p", help="Restrict to one professional")] = None,
    bucket: Annotated[BucketMode, typer.Option("--bucket", help="Time series bucket")] = BucketMode.DAY,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Show revenue, rates, service mix and ranking for a date range.
    """
    _setup_logging(verbose)
    try:
        config = _load_config(config_file)
        service = build_reporting_service(config, build_store(config))
        metrics = asyncio.run(
            service.build_metrics(
                business_id=business_id,
                date_range=DateRange(start, end),
                role=role,
                professional_id=professional_id,
                bucket=bucket,
            )
        )
    except (FileNotFoundError, ValueError, BookingEngineError) as e:
        _fail(e)

    console.print()
    console.print(Panel.fit(
        f"[bold]Gross:[/bold] {metrics.gross_revenue:.2f}\n"
        f"[bold]Net:[/bold] {metrics.net_revenue:.2f}\n"
        f"[bold]Average ticket:[/bold] {metrics.average_ticket:.2f}\n"
        f"[bold]Completed / canceled:[/bold] {metrics.completed_count} / {metrics.canceled_count}\n"
        f"[bold]Attendance:[/bold] {metrics.attendance_rate:.0%}  "
        f"[bold]Cancellation:[/bold] {metrics.cancellation_rate:.0%}",
        title=f"Report {start} → {end} ({role.value})"
    ))

    series = Table(title="Revenue", show_header=True, header_style="bold cyan")
    series.add_column("From", style="bold yellow")
    series.add_column("Gross", justify="right")
    series.add_column("Net", justify="right")
    series.add_column("Completed", justify="right")
    for point in metrics.series:
        series.add_row(
            point.bucket_start.format("DD.MM.YYYY"),
            f"{point.gross:.2f}",
            f"{point.net:.2f}",
            str(point.completed),
        )
    console.print(series)

    if metrics.top_services:
        console.print("\n[bold]Top services:[/bold]")
        for entry in metrics.top_services:
            console.print(f"  {entry.name}: {entry.count}")

    if metrics.ranking:
        console.print("\n[bold]Ranking:[/bold]")
        for position, entry in enumerate(metrics.ranking, 1):
            console.print(f"  {position}. {entry.name or entry.professional_id}: {entry.revenue:.2f} ({entry.completed})")
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]bookingengine[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
