"""CLI UI components (Rich).

Why separate components:
- Keeps command logic apart from visual details.
- Lets several commands reuse the same tables and panels.
"""

from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel
from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import Page, User
from core.errors import ValidationError
from core.resources import ResourceDescriptor
from core.services.sales_monitor import BranchSales


def print_banner(console: Console) -> None:
    """Print the welcome banner (interactive login only)."""

    title = Text("dealerdesk", style="bold cyan")
    subtitle = Text("Branches • Inventory • Customers • Orders", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def _cell(value: object) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:,.2f}"
    return str(value)


def build_resource_table(descriptor: ResourceDescriptor, items: Iterable[BaseModel], *, title: str | None = None) -> Table:
    table = Table(title=title or descriptor.label)
    for index, column in enumerate(descriptor.columns):
        table.add_column(
            column.replace("_", " ").title(),
            style="cyan" if index == 0 else "white",
            no_wrap=index == 0,
        )
    for item in items:
        table.add_row(*(_cell(getattr(item, column, None)) for column in descriptor.columns))
    return table


def page_caption(page: Page) -> str:
    first = (page.page - 1) * page.page_size + 1 if page.items else 0
    last = first + len(page.items) - 1 if page.items else 0
    return f"{first}-{last} of {page.total} (page {page.page})"


def build_user_panel(user: User) -> Panel:
    body = Text()
    body.append(f"{user.username}\n", style="bold")
    if user.email:
        body.append(f"{user.email}\n")
    body.append(f"Role: {user.role or 'unknown'}", style="dim")
    return Panel(body, title=Text("Signed in", style="bold green"), border_style="green")


def build_sales_table(summaries: Iterable[BranchSales]) -> Table:
    table = Table(title="Sales by branch")
    table.add_column("#", style="dim", no_wrap=True)
    table.add_column("Branch", style="cyan")
    table.add_column("City", style="white")
    table.add_column("Orders", justify="right")
    table.add_column("Units", justify="right")
    table.add_column("Revenue", justify="right", style="green")
    table.add_column("Location", style="magenta")
    for rank, summary in enumerate(summaries, start=1):
        location = f"{summary.latitude:.4f}, {summary.longitude:.4f}" if summary.has_location else "-"
        table.add_row(
            str(rank),
            summary.branch_name,
            summary.city or "-",
            str(summary.order_count),
            str(summary.units),
            f"{summary.revenue:,.2f}",
            location,
        )
    return table


def print_validation_errors(console: Console, error: ValidationError) -> None:
    console.print(f"[red]Rejected:[/red] {error}")
    for field, messages in sorted(error.field_errors.items()):
        for message in messages:
            console.print(f"  [yellow]{field}[/yellow]: {message}")
