"""CLI output formatters for Rich tables and JSON.

Provides human-readable Rich table output (default) and machine-parseable
JSON output (--json flag). All formatting goes through these functions
so the CLI commands stay clean.
"""

import dataclasses
import json
from collections.abc import Iterable

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from src.errors import OrderUpError, format_error
from src.services.fulfillment import FulfillmentSession, FulfillmentStage
from src.services.models import DashboardStats, FulfillmentSummary, Location, Order
from src.services.paginated_fetcher import PageState
from src.services.picklist import PicklistLine, group_lines_by_bin

console = Console()

# The orders table is rendered at least this wide so no column is truncated away
ORDERS_TABLE_MIN_WIDTH = 120

# Stage color map
STAGE_COLORS = {
    FulfillmentStage.SIMULATING: "yellow",
    FulfillmentStage.READY_TO_SUBMIT: "blue",
    FulfillmentStage.SUBMITTING: "blue",
    FulfillmentStage.PACKING: "cyan",
    FulfillmentStage.FINALIZING: "cyan",
    FulfillmentStage.FINALIZED: "green",
}

PAYMENT_COLORS = {
    "PAID": "green",
    "UNPAID": "red",
}


def format_amount(amount: float | None) -> str:
    """Format an order amount as a dollar string, or "-" for None."""
    if amount is None:
        return "-"
    return f"${amount:,.2f}"


def _render(renderable, min_width: int = 0) -> str:
    if console.width >= min_width:
        render_console = console
    else:
        render_console = Console(width=min_width, force_terminal=console.is_terminal)
    with render_console.capture() as capture:
        render_console.print(renderable)
    return capture.get()


def _to_json(value) -> str:
    return json.dumps(value, indent=2, default=str)


def format_orders_table(
    orders: list[Order],
    state: PageState | None = None,
    as_json: bool = False,
) -> str:
    """Format loaded orders as a Rich table or JSON.

    Args:
        orders: Orders to display.
        state: Fetcher state, used for the "page X of Y" caption.
        as_json: If True, return JSON string instead of Rich table.

    Returns:
        Formatted string output.
    """
    if as_json:
        return _to_json([dataclasses.asdict(o) for o in orders])

    if not orders:
        return "No orders found."

    table = Table(title="Orders", show_lines=False)
    table.add_column("Order ID", style="cyan", no_wrap=True)
    table.add_column("Number")
    table.add_column("Source")
    table.add_column("Status")
    table.add_column("Payment")
    table.add_column("Customer")
    table.add_column("Items", justify="right")
    table.add_column("Amount", justify="right")
    table.add_column("Date")

    for order in orders:
        payment = order.payment_status or "-"
        color = PAYMENT_COLORS.get(payment, "white")
        table.add_row(
            order.id,
            order.order_number,
            order.source or "-",
            order.status or "-",
            f"[{color}]{payment}[/{color}]",
            order.customer,
            str(order.total_item_quantity) if order.total_item_quantity is not None else "-",
            format_amount(order.amount),
            order.created_at[:19] if order.created_at else "-",
        )

    if state is not None:
        table.caption = (
            f"Page {state.current_page} of {state.total_pages}, "
            f"{len(state.items)} of {state.total_records} order(s) loaded"
        )
    return _render(table, min_width=ORDERS_TABLE_MIN_WIDTH)


def format_order_detail(order: Order, as_json: bool = False) -> str:
    """Format one order with its items as a Rich panel or JSON."""
    if as_json:
        return _to_json(dataclasses.asdict(order))

    lines = [
        f"[bold]Order ID:[/bold]  {order.id}",
        f"[bold]Number:[/bold]    {order.order_number}",
        f"[bold]Source:[/bold]    {order.source or '-'}",
        f"[bold]Status:[/bold]    {order.status or '-'}",
        f"[bold]Payment:[/bold]   {order.payment_status or '-'}",
        f"[bold]Customer:[/bold]  {order.customer}",
        f"[bold]Amount:[/bold]    {format_amount(order.amount)}",
        f"[bold]Date:[/bold]      {order.created_at[:19] if order.created_at else '-'}",
    ]
    if order.items:
        lines.append("")
        lines.append("[bold]Items:[/bold]")
        for item in order.items:
            lines.append(f"  {item.quantity} x {item.product_name} ({item.product_id})")

    return _render(Panel("\n".join(lines), title="Order Detail", border_style="cyan"))


def format_locations_table(locations: list[Location], as_json: bool = False) -> str:
    if as_json:
        return _to_json([dataclasses.asdict(loc) for loc in locations])

    if not locations:
        return "No locations found."

    table = Table(title="Locations")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Type")
    table.add_column("Address")
    for loc in locations:
        table.add_row(loc.id, loc.name, loc.type, loc.address or "-")
    return _render(table)


def format_dashboard(stats: DashboardStats, as_json: bool = False) -> str:
    if as_json:
        return _to_json(dataclasses.asdict(stats))

    table = Table(show_header=False, box=None)
    table.add_row("Total orders:", str(stats.total_orders))
    for name, count in stats.order_counts.items():
        table.add_row(f"  {name}:", str(count))
    table.add_row("Active picklists:", str(stats.active_picklists))
    table.add_row("Ready for pickup:", str(stats.ready_for_pickup))
    return _render(Panel(table, title="[bold]Dashboard[/bold]", border_style="green"))


def format_picklist(lines: Iterable[PicklistLine], as_json: bool = False) -> str:
    """Format picklist lines grouped by bin.

    Lines without a bin are listed under "Unassigned Bin".
    """
    lines = list(lines)
    if as_json:
        return _to_json([dataclasses.asdict(line) for line in lines])

    if not lines:
        return "Picklist is empty."

    table = Table(title="Picklist", show_lines=False)
    table.add_column("Bin", style="magenta")
    table.add_column("Line", style="dim")
    table.add_column("Product", style="bold")
    table.add_column("Location")
    table.add_column("Picked", justify="right")
    table.add_column("Available", justify="right")

    for bin_name, bin_lines in group_lines_by_bin(lines).items():
        for index, line in enumerate(bin_lines):
            if line.is_fully_picked:
                picked_color = "green"
            elif line.is_picked:
                picked_color = "yellow"
            else:
                picked_color = "white"
            table.add_row(
                bin_name if index == 0 else "",
                line.id,
                line.product_name,
                line.location_label or "-",
                f"[{picked_color}]{line.picked_quantity}/{line.required_quantity}[/{picked_color}]",
                str(line.available_quantity) if line.available_quantity is not None else "-",
            )
    return _render(table)


def format_session(session: FulfillmentSession) -> str:
    """Format a fulfillment session summary as a Rich panel."""
    color = STAGE_COLORS.get(session.stage, "white")
    lines = [
        f"[bold]Stage:[/bold]       [{color}]{session.stage.value}[/{color}]",
        f"[bold]Fulfillment:[/bold] {session.fulfillment_id or '-'}",
        f"[bold]Orders:[/bold]      {', '.join(sorted(session.order_ids))}",
        f"[bold]Location:[/bold]    {session.location_id} ({session.location_type.value})",
        f"[bold]Picked:[/bold]      {session.picked_count}/{len(session.lines)} line(s)",
    ]
    if session.last_error is not None:
        lines.append("")
        lines.append(f"[bold red]Error:[/bold red] {escape(str(session.last_error))}")
    return _render(Panel("\n".join(lines), title="Fulfillment", border_style=color))


def format_fulfillments_table(
    summaries: list[FulfillmentSummary], as_json: bool = False
) -> str:
    if as_json:
        return _to_json([dataclasses.asdict(s) for s in summaries])

    if not summaries:
        return "No fulfillments found."

    table = Table(title="Fulfillments")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Location")
    table.add_column("Orders")
    table.add_column("Created")
    for s in summaries:
        table.add_row(
            s.id,
            s.status or "-",
            s.location_name or s.location_id or "-",
            ", ".join(s.order_ids) or "-",
            s.created_at[:19] if s.created_at else "-",
        )
    return _render(table)


def format_cli_error(error: OrderUpError) -> str:
    """Render an OrderUpError for the terminal."""
    return _render(
        Panel(escape(format_error(error)), title="[bold red]Error[/bold red]", border_style="red")
    )
