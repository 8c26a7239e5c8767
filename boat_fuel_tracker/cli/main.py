"""
CLI interface for Boat Fuel Tracker.

Provides command-line access to fuel-up recording and statistics. The
acting identity is given with ``--as``; authentication is assumed to have
happened already.
"""

import sys
from dataclasses import replace
from decimal import Decimal
from typing import Any, Dict, List, NoReturn, Optional

import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from boat_fuel_tracker.config.loader import (
    AppConfig,
    configure_logging,
    default_config,
    load_config,
)
from boat_fuel_tracker.core.access import Identity
from boat_fuel_tracker.core.errors import FuelTrackerError, NotFoundError, ValidationError
from boat_fuel_tracker.core.service import FuelUpService
from boat_fuel_tracker.core.statistics import FuelUpStatistics
from boat_fuel_tracker.demo.seed_demo_data import seed_demo_data
from boat_fuel_tracker.storage.models import FuelUp, User
from boat_fuel_tracker.storage.repository import (
    FuelUpRepository,
    UserRepository,
    initialize_schema,
)

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

ACTING_USER_HELP = "User id of the acting (already authenticated) user"


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML configuration file"
    ),
    db: Optional[str] = typer.Option(
        None,
        "--db",
        help="Override the database path"
    )
):
    """Boat Fuel Tracker CLI."""
    try:
        app_config = load_config(config) if config else default_config()
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid configuration:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)
    if db:
        app_config = replace(app_config, database=replace(app_config.database, path=db))
    configure_logging(app_config.logging.level)
    ctx.obj = app_config

    if ctx.invoked_subcommand is None:
        console.print("Boat Fuel Tracker - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Initialize the Boat Fuel Tracker database."""
    try:
        initialize_schema(_config(ctx).database.path)
    except FuelTrackerError as e:
        _fail(e)
    console.print("[green]✓[/] Database initialized successfully")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def register(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="Unique user id"),
    email: str = typer.Argument(..., help="Unique email address"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Display name"),
    admin: bool = typer.Option(False, "--admin", help="Grant the admin role")
):
    """Register a new user."""
    try:
        user = _service(ctx).register_user(
            User(user_id=user_id, email=email, display_name=name, is_admin=admin)
        )
    except FuelTrackerError as e:
        _fail(e)
    console.print(f"[green]✓[/] Registered user {escape(user.user_id)}")
    sys.exit(EXIT_CODE_PASS)


@app.command("delete-user")
def delete_user(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="User to delete with all their fuel-ups"),
    acting_user: str = typer.Option(..., "--as", help=ACTING_USER_HELP)
):
    """Delete a user and all of their fuel-ups."""
    try:
        service = _service(ctx)
        deleted = service.delete_user(_identity(service, acting_user), user_id)
    except FuelTrackerError as e:
        _fail(e)
    if deleted:
        console.print(f"[green]✓[/] Deleted user {escape(user_id)}")
    else:
        console.print(f"[dim]No user {escape(user_id)}; nothing deleted[/]")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def add(
    ctx: typer.Context,
    acting_user: str = typer.Option(..., "--as", help=ACTING_USER_HELP),
    fuel_date: str = typer.Option(..., "--date", "-d", help="Purchase date (YYYY-MM-DD)"),
    gallons: str = typer.Option(..., "--gallons", "-g", help="Gallons purchased"),
    price: str = typer.Option(..., "--price", "-p", help="Price per gallon"),
    owner: Optional[str] = typer.Option(
        None, "--user", "-u", help="Owner of the fuel-up (defaults to the acting user)"
    ),
    engine_hours: Optional[str] = typer.Option(None, "--engine-hours", help="Engine hours reading"),
    location: Optional[str] = typer.Option(None, "--location", help="Where the fuel was bought"),
    notes: Optional[str] = typer.Option(None, "--notes", help="Free-text notes")
):
    """Record a fuel purchase."""
    try:
        service = _service(ctx)
        identity = _identity(service, acting_user)
        created = service.create_fuel_up(identity, FuelUp(
            user_id=owner or acting_user,
            date=fuel_date,
            gallons=gallons,
            price_per_gallon=price,
            engine_hours=engine_hours,
            location=location,
            notes=notes
        ))
    except FuelTrackerError as e:
        _fail(e)
    console.print(
        f"[green]✓[/] Fuel-up {created.id} recorded: "
        f"{created.gallons} gal x {_format_currency(created.price_per_gallon)} "
        f"= {_format_currency(created.total_cost)}"
    )
    sys.exit(EXIT_CODE_PASS)


@app.command()
def update(
    ctx: typer.Context,
    fuel_up_id: int = typer.Argument(..., help="Fuel-up id"),
    acting_user: str = typer.Option(..., "--as", help=ACTING_USER_HELP),
    fuel_date: Optional[str] = typer.Option(None, "--date", "-d", help="Purchase date (YYYY-MM-DD)"),
    gallons: Optional[str] = typer.Option(None, "--gallons", "-g", help="Gallons purchased"),
    price: Optional[str] = typer.Option(None, "--price", "-p", help="Price per gallon"),
    engine_hours: Optional[str] = typer.Option(None, "--engine-hours", help="Engine hours reading"),
    location: Optional[str] = typer.Option(None, "--location", help="Where the fuel was bought"),
    notes: Optional[str] = typer.Option(None, "--notes", help="Free-text notes")
):
    """Change fields of a fuel-up; total cost is recomputed."""
    candidates: Dict[str, Any] = {
        "date": fuel_date,
        "gallons": gallons,
        "price_per_gallon": price,
        "engine_hours": engine_hours,
        "location": location,
        "notes": notes,
    }
    mutations = {k: v for k, v in candidates.items() if v is not None}
    try:
        if not mutations:
            raise ValidationError("Nothing to update; pass at least one field option")
        service = _service(ctx)
        updated = service.update_fuel_up(_identity(service, acting_user), fuel_up_id, mutations)
    except FuelTrackerError as e:
        _fail(e)
    console.print(
        f"[green]✓[/] Fuel-up {updated.id} updated, total {_format_currency(updated.total_cost)}"
    )
    sys.exit(EXIT_CODE_PASS)


@app.command("list")
def list_fuel_ups(
    ctx: typer.Context,
    acting_user: str = typer.Option(..., "--as", help=ACTING_USER_HELP),
    owner: Optional[str] = typer.Option(None, "--user", "-u", help="Whose fuel-ups to list"),
    start: Optional[str] = typer.Option(None, "--start", help="First date included (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, "--end", help="Last date included (YYYY-MM-DD)")
):
    """List fuel-ups, most recent purchase first."""
    target = owner or acting_user
    try:
        service = _service(ctx)
        identity = _identity(service, acting_user)
        if start is None and end is None:
            fuel_ups = service.list_fuel_ups(identity, target)
        elif start is None or end is None:
            raise ValidationError("--start and --end must be given together")
        else:
            fuel_ups = service.list_fuel_ups_in_range(identity, target, start, end)
    except FuelTrackerError as e:
        _fail(e)

    if not fuel_ups:
        console.print(f"\n[dim]No fuel-ups found for {escape(target)}.[/]")
        sys.exit(EXIT_CODE_PASS)
    _display_fuel_ups(target, fuel_ups)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def delete(
    ctx: typer.Context,
    fuel_up_id: int = typer.Argument(..., help="Fuel-up id"),
    acting_user: str = typer.Option(..., "--as", help=ACTING_USER_HELP)
):
    """Delete a fuel-up. Deleting an unknown id succeeds."""
    try:
        service = _service(ctx)
        service.delete_fuel_up(_identity(service, acting_user), fuel_up_id)
    except FuelTrackerError as e:
        _fail(e)
    console.print(f"[green]✓[/] Fuel-up {fuel_up_id} deleted")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def stats(
    ctx: typer.Context,
    acting_user: str = typer.Option(..., "--as", help=ACTING_USER_HELP),
    owner: Optional[str] = typer.Option(None, "--user", "-u", help="Whose statistics to show")
):
    """Show spending statistics."""
    target = owner or acting_user
    try:
        service = _service(ctx)
        statistics = service.get_statistics(_identity(service, acting_user), target)
    except FuelTrackerError as e:
        _fail(e)
    _display_statistics(target, statistics)
    sys.exit(EXIT_CODE_PASS)


@app.command("seed-demo")
def seed_demo(ctx: typer.Context):
    """Insert a demo user with sample fuel-ups."""
    try:
        created = seed_demo_data(_config(ctx).database.path)
    except FuelTrackerError as e:
        _fail(e)
    console.print(f"[green]✓[/] Demo fuel-ups inserted: {len(created)}")
    sys.exit(EXIT_CODE_PASS)


def _config(ctx: typer.Context) -> AppConfig:
    return ctx.obj if isinstance(ctx.obj, AppConfig) else default_config()


def _service(ctx: typer.Context) -> FuelUpService:
    database = _config(ctx).database
    return FuelUpService(
        FuelUpRepository(database.path, database.timeout_seconds),
        UserRepository(database.path, database.timeout_seconds)
    )


def _identity(service: FuelUpService, user_id: str) -> Identity:
    """Resolve the acting user; roles follow the stored admin flag."""
    user = service.users.get(user_id)
    if user is None:
        raise NotFoundError(f"Unknown acting user: {user_id}")
    return Identity.for_user(user)


def _fail(error: FuelTrackerError) -> NoReturn:
    console.print(f"[red]{type(error).__name__}:[/] {escape(str(error))}")
    sys.exit(EXIT_CODE_FAIL)


def _format_currency(amount: Optional[Decimal]) -> str:
    """Format currency for display; stored values keep full precision."""
    if amount is None:
        return "-"
    return f"${amount:,.2f}"


def _display_fuel_ups(user_id: str, fuel_ups: List[FuelUp]) -> None:
    table = Table(title=f"Fuel-ups for {escape(user_id)}")
    table.add_column("ID", justify="right")
    table.add_column("Date")
    table.add_column("Gallons", justify="right")
    table.add_column("Price/Gal", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Location")
    for fuel_up in fuel_ups:
        table.add_row(
            str(fuel_up.id),
            fuel_up.date.isoformat(),
            str(fuel_up.gallons),
            _format_currency(fuel_up.price_per_gallon),
            _format_currency(fuel_up.total_cost),
            escape(fuel_up.location or "")
        )
    console.print(table)


def _display_statistics(user_id: str, statistics: FuelUpStatistics) -> None:
    console.print(f"\n[bold]Fuel Statistics for {escape(user_id)}[/bold]")
    console.print("-" * 40)
    console.print(f"Fill-ups: {statistics.count}")
    console.print(f"Total gallons: {statistics.total_gallons}")
    console.print(f"Total spent: {_format_currency(statistics.total_spent)}")
    console.print(f"Average price/gallon: {_format_currency(statistics.average_price_per_gallon)}")


if __name__ == "__main__":
    app()
