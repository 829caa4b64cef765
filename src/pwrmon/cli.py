"""Command-line interface for Power Monitor."""

from datetime import datetime

import click
from rich.console import Console
from rich.table import Table

from pwrmon.core.periods import GRANULARITIES, PERIODS
from pwrmon.utils.exceptions import PwrmonError

console = Console()


def load_settings(config_path: str | None = None):
    """Load and validate settings.

    Args:
        config_path: Optional path to .env file.

    Returns:
        Validated Settings object.
    """
    from pwrmon.config.logging import configure_logging
    from pwrmon.config.settings import Settings, get_settings

    try:
        settings = Settings(_env_file=config_path) if config_path else get_settings()
        configure_logging(settings)
        return settings
    except Exception as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        console.print("\n[yellow]Hint:[/yellow] Settings are read from PWRMON_* variables or .env")
        console.print("See .env.example for all available options.")
        raise SystemExit(1) from None


def _format_time(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "-"


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    help="Path to .env configuration file",
)
@click.pass_context
def cli(ctx: click.Context, config: str | None) -> None:
    """Power Monitor - collect and analyze ESP32 power meter readings."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config


@cli.command()
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Initialize the database schema."""
    from pwrmon.config.logging import get_logger
    from pwrmon.db.engine import create_engine, create_tables

    settings = load_settings(ctx.obj.get("config_path"))
    logger = get_logger(__name__)

    console.print("[bold]Initializing database...[/bold]")

    try:
        engine = create_engine(settings)
        create_tables(engine)
        console.print("[green]Database initialized successfully![/green]")
        logger.info("Database initialized")
    except Exception as e:
        console.print(f"[red]Failed to initialize database:[/red] {e}")
        logger.error("Database initialization failed", error=str(e))
        raise SystemExit(1) from None


@cli.command()
@click.option("--host", help="Bind address (defaults to PWRMON_HOST)")
@click.option("--port", "-p", type=int, help="Port (defaults to PWRMON_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Run the HTTP API server."""
    import uvicorn

    from pwrmon.api.app import create_app

    settings = load_settings(ctx.obj.get("config_path"))
    host = host or settings.host
    port = port or settings.port

    console.print(f"[bold]Serving Power Monitor on {host}:{port}[/bold]")
    if reload:
        uvicorn.run("pwrmon.api.app:create_app", factory=True, host=host, port=port, reload=True)
    else:
        uvicorn.run(create_app(settings), host=host, port=port, log_config=None)


@cli.command()
@click.argument("device_id")
@click.option("--name", "-n", required=True, help="Display name")
@click.option("--description", "-d", help="Free-text description")
@click.option("--location", "-l", help="Where the device is installed")
@click.pass_context
def create_device(
    ctx: click.Context,
    device_id: str,
    name: str,
    description: str | None,
    location: str | None,
) -> None:
    """Register a device and print its API key."""
    from pwrmon.config.logging import get_logger
    from pwrmon.db.engine import create_engine, create_tables, get_session
    from pwrmon.db.repositories.device import DeviceRepository

    settings = load_settings(ctx.obj.get("config_path"))
    logger = get_logger(__name__)

    try:
        engine = create_engine(settings)
        create_tables(engine)
        with get_session(engine) as session:
            device = DeviceRepository(session).create(device_id, name, description, location)
            api_key = device.api_key
    except PwrmonError as e:
        console.print(f"[red]Failed to create device:[/red] {e}")
        raise SystemExit(1) from None

    console.print(f"[green]Device {device_id} created.[/green]")
    console.print(f"API key: [bold]{api_key}[/bold]")
    logger.info("Device created", device_id=device_id)


@cli.command()
@click.option("--limit", default=50, show_default=True, help="Maximum devices to show")
@click.option("--offset", default=0, show_default=True, help="Devices to skip")
@click.pass_context
def list_devices(ctx: click.Context, limit: int, offset: int) -> None:
    """List devices with their latest reading."""
    from pwrmon.db.engine import create_engine, get_session
    from pwrmon.db.repositories.device import DeviceRepository

    settings = load_settings(ctx.obj.get("config_path"))
    engine = create_engine(settings)

    try:
        with get_session(engine) as session:
            repo = DeviceRepository(session)
            rows = repo.list_with_latest_readings(limit=limit, offset=offset)
            total = repo.count()

            if not rows:
                console.print(
                    "[yellow]No devices registered. Run 'pwrmon create-device' first.[/yellow]"
                )
                return

            table = Table(title="Devices")
            table.add_column("ID", style="cyan")
            table.add_column("Device ID", style="green")
            table.add_column("Name")
            table.add_column("Location")
            table.add_column("Active")
            table.add_column("Power (W)")
            table.add_column("Last Reading")

            for device, reading in rows:
                table.add_row(
                    str(device.id),
                    device.device_id,
                    device.name,
                    device.location or "-",
                    "[green]yes[/green]" if device.is_active else "[red]no[/red]",
                    f"{reading.power:.2f}" if reading else "-",
                    _format_time(reading.timestamp if reading else None),
                )
    except PwrmonError as e:
        console.print(f"[red]Failed to list devices:[/red] {e}")
        raise SystemExit(1) from None

    console.print(table)
    console.print(f"\nShowing {len(rows)} of {total} device(s)")


@cli.command()
@click.argument("username")
@click.argument("email")
@click.password_option()
@click.option("--admin", is_flag=True, help="Grant the admin role")
@click.pass_context
def create_user(ctx: click.Context, username: str, email: str, password: str, admin: bool) -> None:
    """Create a dashboard user. Admins are only created here."""
    from pwrmon.db.engine import create_engine, create_tables, get_session
    from pwrmon.services.auth import AuthService

    settings = load_settings(ctx.obj.get("config_path"))

    try:
        engine = create_engine(settings)
        create_tables(engine)
        with get_session(engine) as session:
            user = AuthService(session, settings).register(
                username, email, password, role="admin" if admin else "user"
            )
            role = user.role
    except PwrmonError as e:
        console.print(f"[red]Failed to create user:[/red] {e}")
        raise SystemExit(1) from None

    console.print(f"[green]User {username} created with role {role}.[/green]")


@cli.command()
@click.option("--days", type=int, help="Keep this many days (defaults to PWRMON_RETENTION_DAYS)")
@click.pass_context
def prune_readings(ctx: click.Context, days: int | None) -> None:
    """Delete readings older than the retention window."""
    from pwrmon.config.logging import get_logger
    from pwrmon.db.engine import create_engine, get_session
    from pwrmon.db.repositories.reading import ReadingRepository

    settings = load_settings(ctx.obj.get("config_path"))
    days = days if days is not None else settings.retention_days
    logger = get_logger(__name__, retention_days=days)

    try:
        engine = create_engine(settings)
        with get_session(engine) as session:
            deleted = ReadingRepository(session).prune(older_than_days=days)
    except PwrmonError as e:
        console.print(f"[red]Prune failed:[/red] {e}")
        logger.error("Reading prune failed", error=str(e))
        raise SystemExit(1) from None

    logger.info("Readings pruned", deleted=deleted)
    console.print(f"[green]Deleted {deleted} reading(s) older than {days} days[/green]")


@cli.command()
@click.argument("device_id")
@click.option(
    "--period",
    "-p",
    type=click.Choice(PERIODS),
    default="today",
    show_default=True,
    help="Statistics window",
)
@click.option(
    "--granularity",
    "-g",
    type=click.Choice(GRANULARITIES),
    help="Also break the window down into hour, day or month averages",
)
@click.pass_context
def stats(ctx: click.Context, device_id: str, period: str, granularity: str | None) -> None:
    """Show energy statistics for a device."""
    from pwrmon.core.aggregator import grouped_averages, window_stats
    from pwrmon.core.cost import estimate_cost
    from pwrmon.core.periods import resolve_period
    from pwrmon.db.engine import create_engine, get_session
    from pwrmon.db.repositories.device import DeviceRepository

    settings = load_settings(ctx.obj.get("config_path"))
    engine = create_engine(settings)

    try:
        with get_session(engine) as session:
            device = DeviceRepository(session).find_by_device_id(device_id)
            if device is None:
                console.print(f"[red]Device {device_id} not found[/red]")
                raise SystemExit(1)

            window = resolve_period(period, datetime.now())
            result = window_stats(session, device_id, window.start, window.end)
            buckets = (
                grouped_averages(session, device_id, granularity, window.start, window.end)
                if granularity
                else []
            )
    except PwrmonError as e:
        console.print(f"[red]Failed to compute statistics:[/red] {e}")
        raise SystemExit(1) from None

    table = Table(title=f"{device.name} ({device_id}) - {period}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("From", _format_time(window.start))
    table.add_row("To", _format_time(window.end))
    table.add_row("Readings", str(result.reading_count))
    table.add_row("Total energy (kWh)", f"{result.total_energy:.3f}")
    table.add_row("Average power (W)", f"{result.avg_power:.2f}")
    table.add_row("Peak power (W)", f"{result.peak_power:.2f}")
    table.add_row("Minimum power (W)", f"{result.min_power:.2f}")
    table.add_row(
        "Estimated cost",
        f"{estimate_cost(result.total_energy, settings.energy_tariff):.2f}",
    )
    console.print(table)

    if not granularity:
        return
    if not buckets:
        console.print(f"[yellow]No readings to group by {granularity}[/yellow]")
        return

    breakdown = Table(title=f"Averages per {granularity}")
    breakdown.add_column(granularity.capitalize(), style="cyan")
    breakdown.add_column("Readings", justify="right")
    breakdown.add_column("Avg voltage (V)", justify="right")
    breakdown.add_column("Avg current (A)", justify="right")
    breakdown.add_column("Avg power (W)", justify="right")
    breakdown.add_column("Energy (kWh)", justify="right")
    for bucket in buckets:
        breakdown.add_row(
            bucket.period,
            str(bucket.reading_count),
            f"{bucket.avg_voltage:.2f}",
            f"{bucket.avg_current:.3f}",
            f"{bucket.avg_power:.2f}",
            f"{bucket.total_energy:.3f}",
        )
    console.print(breakdown)


if __name__ == "__main__":
    cli()
