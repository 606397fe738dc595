"""OrderUp CLI: order browsing and picklist fulfillment from the terminal.

Usage:
    orderup orders list --status Initiated --pages 2
    orderup orders show 1001
    orderup locations
    orderup dashboard
    orderup picklist simulate -o 1001 -o 1002 -l LOC-1 --type WAREHOUSE
    orderup picklist fulfill -o 1001 -l LOC-1 --pick-all --finalize
    orderup picklist list
    orderup auth set-token
    orderup config show
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Optional, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console

from src.cli.config import OrderUpConfig, load_config
from src.cli.factory import (
    get_credentials,
    get_fulfillment_api,
    get_fulfillment_controller,
    get_gateway,
    get_orders_api,
)
from src.cli.output import (
    format_cli_error,
    format_dashboard,
    format_fulfillments_table,
    format_locations_table,
    format_order_detail,
    format_orders_table,
    format_picklist,
    format_session,
)
from src.errors import OrderUpError
from src.services.fulfillment import FulfillmentSession
from src.services.order_query import DateRange, OrderFilterSelection
from src.services.paginated_fetcher import PaginatedFetcher
from src.services.picklist import LocationType, simulate

_log = logging.getLogger(__name__)

T = TypeVar("T")

app = typer.Typer(
    name="orderup",
    help="Order fulfillment client: orders, picklists and packing",
    no_args_is_help=True,
)
orders_app = typer.Typer(help="Browse commerce orders")
picklist_app = typer.Typer(help="Simulate, pick and finalize fulfillments")
auth_app = typer.Typer(help="Manage the stored access token")
config_app = typer.Typer(help="Configuration management")

app.add_typer(orders_app, name="orders")
app.add_typer(picklist_app, name="picklist")
app.add_typer(auth_app, name="auth")
app.add_typer(config_app, name="config")

console = Console()

# --- Global state ---
_config_path: str | None = None
_verbose: bool = False


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to orderup.yaml config file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """OrderUp CLI."""
    global _config_path, _verbose
    _config_path = config
    _verbose = verbose


def _configure_logging(cfg: OrderUpConfig) -> None:
    level = logging.DEBUG if _verbose else getattr(
        logging, cfg.logging.level.upper(), logging.WARNING
    )
    logging.basicConfig(level=level, format=cfg.logging.format)


def _load() -> OrderUpConfig:
    """Load config and configure logging, exiting on a bad config file."""
    try:
        cfg = load_config(config_path=_config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Config file not found:[/red] {e}")
        raise typer.Exit(1)
    except ValidationError as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)
    _configure_logging(cfg)
    return cfg


def _run(coro_fn: Callable[[], Awaitable[T]]) -> T:
    """Run a command coroutine, rendering OrderUpError and exiting 1."""
    try:
        return asyncio.run(coro_fn())
    except OrderUpError as e:
        console.print(format_cli_error(e))
        raise typer.Exit(1)


async def _load_pages(fetcher: PaginatedFetcher, pages: int) -> None:
    """Load up to ``pages`` pages, raising the fetcher's error if one is recorded."""
    await fetcher.load_first_page()
    while fetcher.state.current_page < pages and fetcher.state.has_more:
        if fetcher.state.last_error is not None:
            break
        await fetcher.load_next_page()
    if fetcher.state.last_error is not None:
        raise fetcher.state.last_error


def _parse_pick(spec: str) -> tuple[str, int]:
    line_id, sep, quantity = spec.rpartition("=")
    if not sep or not line_id:
        raise typer.BadParameter(f"Expected LINE_ID=QTY, got '{spec}'")
    try:
        return line_id, int(quantity)
    except ValueError:
        raise typer.BadParameter(f"Quantity must be an integer in '{spec}'")


# --- Orders ---


@orders_app.command("list")
def orders_list(
    source: list[str] = typer.Option([], "--source", help="Order source (repeatable)"),
    status: list[str] = typer.Option([], "--status", "-s", help="Order status (repeatable)"),
    payment_status: list[str] = typer.Option(
        [], "--payment-status", help="PAID or UNPAID (repeatable)"
    ),
    date_range: Optional[DateRange] = typer.Option(
        None, "--date-range", "-d", help="Relative date window"
    ),
    start: Optional[datetime] = typer.Option(
        None, "--from", formats=["%Y-%m-%d"], help="Custom range start"
    ),
    end: Optional[datetime] = typer.Option(
        None, "--to", formats=["%Y-%m-%d"], help="Custom range end"
    ),
    search: str = typer.Option("", "--search", "-q", help="Order ID or customer name"),
    pages: int = typer.Option(1, "--pages", "-p", min=1, help="Pages to load"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List orders matching the given filters."""
    cfg = _load()
    if (start or end) and date_range is None:
        date_range = DateRange.CUSTOM
    selection = OrderFilterSelection(
        sources=source,
        statuses=status,
        payment_statuses=payment_status,
        date_range=date_range,
        custom_start=start.date() if start else None,
        custom_end=end.date() if end else None,
        search_text=search,
    )

    async def _cmd():
        async with get_gateway(cfg) as gateway:
            fetcher = get_orders_api(gateway, cfg).orders_fetcher(selection)
            await _load_pages(fetcher, pages)
            state = fetcher.state
            console.print(format_orders_table(list(state.items), state, as_json=json_output))

    _run(_cmd)


@orders_app.command("show")
def orders_show(
    order_id: str = typer.Argument(help="Order ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show one order with its items."""
    cfg = _load()

    async def _cmd():
        async with get_gateway(cfg) as gateway:
            order = await get_orders_api(gateway, cfg).get_order_by_id(order_id)
            console.print(format_order_detail(order, as_json=json_output))

    _run(_cmd)


# --- Locations and dashboard ---


@app.command()
def locations(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List stores and warehouses that can fulfill orders."""
    cfg = _load()

    async def _cmd():
        async with get_gateway(cfg) as gateway:
            result = await get_orders_api(gateway, cfg).get_locations()
            console.print(format_locations_table(result, as_json=json_output))

    _run(_cmd)


@app.command()
def dashboard(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show order and picklist counters."""
    cfg = _load()

    async def _cmd():
        async with get_gateway(cfg) as gateway:
            stats = await get_orders_api(gateway, cfg).get_dashboard_stats()
            console.print(format_dashboard(stats, as_json=json_output))

    _run(_cmd)


# --- Picklist ---


@picklist_app.command("simulate")
def picklist_simulate(
    order: list[str] = typer.Option(..., "--order", "-o", help="Order ID (repeatable)"),
    location: str = typer.Option(..., "--location", "-l", help="Location ID"),
    location_type: LocationType = typer.Option(
        LocationType.STORE, "--type", "-t", case_sensitive=False, help="STORE or WAREHOUSE"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Preview the items needed to fulfill orders, without creating anything."""
    cfg = _load()

    async def _cmd():
        async with get_gateway(cfg) as gateway:
            lines = await simulate(
                get_fulfillment_api(gateway, cfg), order, location, location_type
            )
            console.print(format_picklist(lines, as_json=json_output))

    _run(_cmd)


@picklist_app.command("fulfill")
def picklist_fulfill(
    order: list[str] = typer.Option(..., "--order", "-o", help="Order ID (repeatable)"),
    location: str = typer.Option(..., "--location", "-l", help="Location ID"),
    location_type: LocationType = typer.Option(
        LocationType.STORE, "--type", "-t", case_sensitive=False, help="STORE or WAREHOUSE"
    ),
    fulfillment_id: Optional[str] = typer.Option(
        None, "--fulfillment-id", help="Re-open an existing draft instead of simulating"
    ),
    pick: list[str] = typer.Option(
        [], "--pick", help="Picked quantity as LINE_ID=QTY (repeatable)"
    ),
    pick_all: bool = typer.Option(False, "--pick-all", help="Mark every line fully picked"),
    finalize: bool = typer.Option(False, "--finalize", help="Finalize packing after submit"),
):
    """Build a picklist, record picked quantities, submit and optionally finalize."""
    cfg = _load()
    picks = [_parse_pick(spec) for spec in pick]

    async def _cmd() -> FulfillmentSession:
        async with get_gateway(cfg) as gateway:
            controller = get_fulfillment_controller(gateway, cfg)
            controller.subscribe(
                lambda s: _log.debug("Fulfillment stage -> %s", s.stage.value)
            )

            if fulfillment_id:
                ok = await controller.resume(fulfillment_id, order, location, location_type)
            else:
                ok = await controller.start(order, location, location_type)
            if not ok:
                return controller.session

            for line_id, quantity in picks:
                controller.adjust_picked_quantity(line_id, value=quantity)
            if pick_all:
                controller.mark_all_picked()

            session = controller.session
            console.print(format_picklist(session.lines))
            if not session.can_submit:
                console.print(
                    "[yellow]Nothing picked yet. Use --pick LINE_ID=QTY or --pick-all.[/yellow]"
                )
                return session

            if await controller.submit() and finalize:
                await controller.finalize()
            return controller.session

    session = _run(_cmd)
    console.print(format_session(session))
    if session.last_error is not None:
        raise typer.Exit(1)


@picklist_app.command("list")
def picklist_list(
    pages: int = typer.Option(1, "--pages", "-p", min=1, help="Pages to load"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List existing fulfillments (picklists)."""
    cfg = _load()

    async def _cmd():
        async with get_gateway(cfg) as gateway:
            fetcher = get_fulfillment_api(gateway, cfg).fulfillments_fetcher()
            await _load_pages(fetcher, pages)
            console.print(
                format_fulfillments_table(list(fetcher.state.items), as_json=json_output)
            )

    _run(_cmd)


# --- Auth ---


@auth_app.command("set-token")
def auth_set_token(
    token: str = typer.Option(
        ..., prompt=True, hide_input=True, help="Bearer access token"
    ),
):
    """Store an access token for subsequent commands."""
    cfg = _load()
    get_credentials(cfg).set(token.strip())
    console.print("[green]Access token stored.[/green]")


@auth_app.command("clear")
def auth_clear():
    """Remove the stored access token and related credentials."""
    cfg = _load()
    get_credentials(cfg).clear()
    console.print("[yellow]Credentials cleared.[/yellow]")


@auth_app.command("status")
def auth_status():
    """Show whether an access token is stored."""
    cfg = _load()
    if get_credentials(cfg).get():
        console.print("[green]Access token present.[/green]")
    else:
        console.print("[yellow]No access token stored.[/yellow]")
        raise typer.Exit(1)


# --- Config ---


@config_app.command("show")
def config_show():
    """Display resolved configuration."""
    cfg = _load()

    console.print(f"[bold]Environment:[/bold] {cfg.environment}")
    console.print(f"  base_url: {cfg.resolved_base_url}")
    console.print(f"  timeout: {cfg.api.timeout}s")

    console.print("\n[bold]Endpoints:[/bold]")
    for name, path in cfg.endpoints.model_dump().items():
        console.print(f"  {name}: {path}")

    console.print("\n[bold]Paging:[/bold]")
    console.print(f"  page_size: {cfg.paging.page_size}")

    console.print("\n[bold]Credentials:[/bold]")
    console.print(f"  backend: {cfg.credentials.backend}")
    console.print(f"  service: {cfg.credentials.service_name}")

    console.print("\n[bold]Logging:[/bold]")
    console.print(f"  level: {cfg.logging.level}")


@config_app.command("validate")
def config_validate(
    config: Optional[str] = typer.Option(None, "--config", help="Config file path"),
):
    """Validate a config file without contacting the backend."""
    path = config or _config_path
    try:
        cfg = load_config(config_path=path)
    except FileNotFoundError as e:
        console.print(f"[red]Config file not found:[/red] {e}")
        raise typer.Exit(1)
    except (ValueError, TypeError) as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)
    console.print("[green]Config is valid.[/green]")
    console.print(f"  Environment: {cfg.environment} ({cfg.resolved_base_url})")
    console.print(f"  Page size: {cfg.paging.page_size}")


if __name__ == "__main__":
    app()
