"""dealerdesk CLI (Typer).

Each command is a "view": it builds the application context, resolves the
session, passes the route guard and only then talks to the backend.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from adapters.order_document import export_order_html, export_order_pdf
from cli.doctor import app as doctor_app
from cli.ui_components import (
    build_resource_table,
    build_sales_table,
    build_user_panel,
    page_caption,
    print_banner,
    print_validation_errors,
)
from core.config import AppSettings
from core.domain.session import SessionSnapshot
from core.errors import (
    ApiError,
    ConfigError,
    InvalidCredentials,
    NetworkError,
    NotFound,
    Unauthorized,
    ValidationError,
)
from core.resources import SALES_ORDERS, ListParams, ResourceDescriptor, get_resource
from core.services.app_context import AppContext, build_app_context
from core.services.route_guard import GuardDecision, guard
from core.services.sales_monitor import build_static_map_url, collect_orders, summarize_sales

app = typer.Typer(no_args_is_help=True, help="Car-dealership management client.")
app.add_typer(doctor_app, name="doctor")

_console = Console()
_err_console = Console(stderr=True)

View = Callable[[AppContext], Awaitable[None]]


class ConsoleNavigator:
    """Renders the login redirect as a hint on the terminal."""

    def __init__(self, console: Console) -> None:
        self._console = console

    def redirect(self, view: str) -> None:
        self._console.print(
            f"[yellow]Session expired.[/yellow] Sign in again with `dealerdesk login` ({view})."
        )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=_err_console, show_path=False)],
        force=True,
    )


def _settings(ctx: typer.Context) -> AppSettings:
    settings = ctx.obj if isinstance(ctx.obj, AppSettings) else None
    return settings or AppSettings()


def _resource(name: str) -> ResourceDescriptor:
    try:
        return get_resource(name)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc), param_hint="RESOURCE") from exc


def parse_sort(values: Iterable[str]) -> dict[str, str]:
    """`["name", "price:desc"]` -> `{"name": "asc", "price": "desc"}`."""

    sort: dict[str, str] = {}
    for raw in values:
        field, _, direction = raw.partition(":")
        direction = (direction or "asc").lower()
        if not field or direction not in ("asc", "desc"):
            raise typer.BadParameter(f"Invalid sort {raw!r}; use field or field:asc|desc", param_hint="--sort")
        sort[field] = direction
    return sort


def parse_filters(values: Iterable[str]) -> dict[str, object]:
    """`["city=Lima", "price:$gte=10000"]` -> bracket-notation-ready filters."""

    filters: dict[str, object] = {}
    for raw in values:
        left, sep, value = raw.partition("=")
        if not sep or not left:
            raise typer.BadParameter(f"Invalid filter {raw!r}; use field=value or field:$op=value", param_hint="--filter")
        field, _, operator = left.partition(":")
        if operator:
            existing = filters.get(field)
            conditions = dict(existing) if isinstance(existing, dict) else {}
            conditions[operator] = value
            filters[field] = conditions
        else:
            filters[field] = value
    return filters


def _load_payload(data: str | None, file: Path | None) -> dict[str, Any]:
    if (data is None) == (file is None):
        raise typer.BadParameter("Provide exactly one of --data or --file")
    raw = data if data is not None else file.read_text(encoding="utf-8")  # type: ignore[union-attr]
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Payload is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise typer.BadParameter("Payload must be a JSON object")
    return payload


def require_session(
    snapshot: SessionSnapshot,
    allowed_roles: Iterable[str] | None = None,
    *,
    require_user: bool = False,
) -> None:
    """Apply the route guard to a command; exits unless it may render."""

    decision = guard(snapshot, allowed_roles)
    if decision is GuardDecision.RENDER:
        if require_user and snapshot.user is None:
            _console.print("[yellow]Signed in, but the backend returned no user profile.[/yellow]")
            raise typer.Exit(code=1)
        return
    if decision is GuardDecision.REDIRECT:
        _console.print("[yellow]Not signed in.[/yellow] Run `dealerdesk login` first.")
    elif decision is GuardDecision.FORBIDDEN:
        _console.print(f"[red]Forbidden:[/red] role {snapshot.role or 'unknown'} cannot use this command.")
    else:
        _console.print(f"[yellow]Session check still pending[/yellow] ({snapshot.state.label()}).")
    raise typer.Exit(code=1)


def _run_view(
    settings: AppSettings,
    view: View,
    *,
    allowed_roles: Iterable[str] | None = None,
    guarded: bool = True,
) -> None:
    async def runner() -> None:
        async with build_app_context(settings, navigator=ConsoleNavigator(_console)) as context:
            if guarded:
                with _console.status("Checking session..."):
                    snapshot = await context.session.bootstrap()
                require_session(snapshot, allowed_roles)
            await view(context)

    try:
        asyncio.run(runner())
    except ValidationError as exc:
        print_validation_errors(_console, exc)
        raise typer.Exit(code=1) from exc
    except Unauthorized as exc:
        # The navigator already told the user to sign in again.
        raise typer.Exit(code=1) from exc
    except InvalidCredentials as exc:
        _console.print(f"[red]Login failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    except NotFound as exc:
        _console.print(f"[red]Not found:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    except (NetworkError, ApiError, ConfigError) as exc:
        _console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR."),
) -> None:
    settings = AppSettings()
    configure_logging(log_level or settings.log_level)
    ctx.obj = settings


@app.command()
def login(
    ctx: typer.Context,
    identifier: str = typer.Option(..., prompt=True, help="Username or email."),
    password: str = typer.Option(..., prompt=True, hide_input=True),
) -> None:
    """Sign in and store the session credential."""

    async def view(context: AppContext) -> None:
        await context.session.login(identifier, password)
        user = context.session.user
        if user is not None:
            _console.print(build_user_panel(user))
        else:
            _console.print("[green]Signed in.[/green]")

    print_banner(_console)
    _run_view(_settings(ctx), view, guarded=False)


@app.command()
def logout(ctx: typer.Context) -> None:
    """Forget the stored credential."""

    async def view(context: AppContext) -> None:
        context.session.logout()
        _console.print("Signed out.")

    _run_view(_settings(ctx), view, guarded=False)


@app.command()
def whoami(ctx: typer.Context) -> None:
    """Show the signed-in user and role."""

    async def view(context: AppContext) -> None:
        snapshot = context.session.snapshot
        require_session(snapshot, require_user=True)
        _console.print(build_user_panel(snapshot.user))

    _run_view(_settings(ctx), view)


@app.command(name="list")
def list_records(
    ctx: typer.Context,
    resource: str = typer.Argument(..., help="branches, car-models, customers or sales-orders."),
    page: int = typer.Option(1, "--page", min=1),
    page_size: Optional[int] = typer.Option(None, "--page-size", min=1, max=100),
    sort: Optional[List[str]] = typer.Option(None, "--sort", help="field or field:asc|desc (repeatable)."),
    filters: Optional[List[str]] = typer.Option(None, "--filter", help="field=value or field:$op=value (repeatable)."),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON."),
) -> None:
    """List records of a collection."""

    descriptor = _resource(resource)
    settings = _settings(ctx)
    params = ListParams(
        page=page,
        page_size=page_size or settings.page_size,
        sort=parse_sort(sort or []),
        filters=parse_filters(filters or []),
    )

    async def view(context: AppContext) -> None:
        result = await context.accessor(descriptor).list(params)
        if as_json:
            _console.print_json(data=result.model_dump(mode="json"))
            return
        table = build_resource_table(descriptor, result.items)
        table.caption = page_caption(result)
        _console.print(table)

    _run_view(settings, view)


@app.command()
def get(
    ctx: typer.Context,
    resource: str = typer.Argument(...),
    entity_id: int = typer.Argument(..., metavar="ID"),
    as_json: bool = typer.Option(False, "--json"),
) -> None:
    """Show one record."""

    descriptor = _resource(resource)

    async def view(context: AppContext) -> None:
        entity = await context.accessor(descriptor).get(entity_id)
        if as_json:
            _console.print_json(data=entity.model_dump(mode="json"))
        else:
            _console.print(build_resource_table(descriptor, [entity]))

    _run_view(_settings(ctx), view)


@app.command()
def create(
    ctx: typer.Context,
    resource: str = typer.Argument(...),
    data: Optional[str] = typer.Option(None, "--data", help="JSON object."),
    file: Optional[Path] = typer.Option(None, "--file", exists=True, dir_okay=False),
) -> None:
    """Create a record from a JSON payload."""

    descriptor = _resource(resource)
    payload = _load_payload(data, file)
    settings = _settings(ctx)

    async def view(context: AppContext) -> None:
        entity = await context.accessor(descriptor).create(payload)
        _console.print(f"[green]Created[/green] {descriptor.name} {getattr(entity, 'id', '?')}")

    _run_view(settings, view, allowed_roles=settings.editor_roles)


@app.command()
def update(
    ctx: typer.Context,
    resource: str = typer.Argument(...),
    entity_id: int = typer.Argument(..., metavar="ID"),
    data: Optional[str] = typer.Option(None, "--data", help="JSON object with changed fields."),
    file: Optional[Path] = typer.Option(None, "--file", exists=True, dir_okay=False),
) -> None:
    """Update a record."""

    descriptor = _resource(resource)
    payload = _load_payload(data, file)
    settings = _settings(ctx)

    async def view(context: AppContext) -> None:
        await context.accessor(descriptor).update(entity_id, payload)
        _console.print(f"[green]Updated[/green] {descriptor.name} {entity_id}")

    _run_view(settings, view, allowed_roles=settings.editor_roles)


@app.command()
def delete(
    ctx: typer.Context,
    resource: str = typer.Argument(...),
    entity_id: int = typer.Argument(..., metavar="ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
) -> None:
    """Delete a record."""

    descriptor = _resource(resource)
    settings = _settings(ctx)
    if not yes:
        typer.confirm(f"Delete {descriptor.name} {entity_id}?", abort=True)

    async def view(context: AppContext) -> None:
        await context.accessor(descriptor).remove(entity_id)
        _console.print(f"[green]Deleted[/green] {descriptor.name} {entity_id}")

    _run_view(settings, view, allowed_roles=settings.admin_roles)


@app.command(name="order-pdf")
def order_pdf(
    ctx: typer.Context,
    order_id: int = typer.Argument(..., metavar="ORDER_ID"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Destination file."),
    html: bool = typer.Option(False, "--html", help="Write HTML instead of PDF."),
) -> None:
    """Generate the order document for a sales order."""

    settings = _settings(ctx)

    async def view(context: AppContext) -> None:
        order = await context.accessor(SALES_ORDERS).get(order_id)
        suffix = ".html" if html else ".pdf"
        target = output or Path("orders") / f"order-{order.order_number}{suffix}"
        if html:
            path = export_order_html(order=order, output_path=target, dealer_name=settings.dealer_name)
        else:
            try:
                path = export_order_pdf(order=order, output_path=target, dealer_name=settings.dealer_name)
            except (ImportError, OSError) as exc:
                fallback = target.with_suffix(".html")
                _console.print(f"[yellow]PDF rendering unavailable ({exc}); writing HTML instead.[/yellow]")
                path = export_order_html(order=order, output_path=fallback, dealer_name=settings.dealer_name)
        _console.print(f"[green]Saved[/green] {path}")

    _run_view(settings, view)


@app.command()
def sales(
    ctx: typer.Context,
    date_from: Optional[datetime] = typer.Option(None, "--from", formats=["%Y-%m-%d"]),
    date_to: Optional[datetime] = typer.Option(None, "--to", formats=["%Y-%m-%d"]),
    show_map: bool = typer.Option(False, "--map", help="Also print a static map URL."),
) -> None:
    """Sales monitoring: orders and revenue per branch."""

    settings = _settings(ctx)

    async def view(context: AppContext) -> None:
        orders = await collect_orders(
            context.accessor(SALES_ORDERS),
            date_from=date_from.date() if date_from else None,
            date_to=date_to.date() if date_to else None,
        )
        summaries = summarize_sales(orders)
        _console.print(build_sales_table(summaries))
        if show_map:
            _console.print(build_static_map_url(summaries, settings.maps_api_key), soft_wrap=True)

    _run_view(settings, view)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
