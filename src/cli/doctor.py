"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from adapters.http_client import build_api_client, send
from adapters.order_document import export_order_pdf
from adapters.token_store import FileTokenStore, MemoryTokenStore
from core.config import AppSettings, write_user_env_vars
from core.domain.models import SalesOrder
from core.errors import DealerDeskError

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_backend(settings: AppSettings) -> tuple[bool, str]:
    """Probe one collection, authenticated with the API token when set."""

    store = MemoryTokenStore(settings.api_token)
    try:
        async with build_api_client(settings, token_store=store) as client:
            response = await send(client, "GET", "/branches", params={"pagination[pageSize]": "1"})
    except DealerDeskError as exc:
        return False, str(exc)
    return response.is_success, f"HTTP {response.status_code}"


def _check_pdf() -> tuple[bool, str]:
    """Render a minimal order document to detect WeasyPrint issues."""

    order = SalesOrder(id=0, order_number="DOCTOR-0", quantity=1, unit_price=1.0)
    try:
        with tempfile.TemporaryDirectory() as tmp:
            export_order_pdf(order=order, output_path=Path(tmp) / "doctor.pdf", dealer_name="doctor")
    except (ImportError, OSError) as exc:
        return False, str(exc)
    return True, "OK"


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()

    table = Table(title="dealerdesk Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    # Config
    table.add_row("Backend URL", "OK", settings.api_base_url)
    if settings.api_token:
        table.add_row("API token", "OK", "Used for the connectivity probe")
    else:
        table.add_row("API token", "OPTIONAL", "No token -> probe runs unauthenticated")
    if settings.jwt_secret:
        table.add_row("JWT secret", "OK", "Stored credentials are signature-checked")
    else:
        table.add_row("JWT secret", "OPTIONAL", "Expiry checked, signature left to the backend")
    if settings.maps_api_key:
        table.add_row("Maps key", "OK", "`sales --map` enabled")
    else:
        table.add_row("Maps key", "OPTIONAL", "No key -> no static sales map")

    store = FileTokenStore(settings.resolved_token_path())
    has_session = store.read() is not None
    table.add_row("Session", "OK" if has_session else "NONE", str(store.path))

    # Connectivity (best-effort)
    ok_http, detail_http = asyncio.run(_check_backend(settings))
    table.add_row("Backend connectivity", "OK" if ok_http else "FAIL", detail_http)

    # PDF
    ok_pdf, detail_pdf = _check_pdf()
    table.add_row("WeasyPrint PDF", "OK" if ok_pdf else "FAIL", detail_pdf)

    _console.print(table)

    if not ok_pdf:
        _console.print(
            "\n[yellow]Note:[/yellow] When PDF export fails, `order-pdf` automatically falls back to HTML."
        )


@app.command(name="setup")
def setup() -> None:
    """Interactive backend setup (stores config in the user config .env)."""

    settings = AppSettings()
    backend_url = typer.prompt("Backend URL", default=settings.backend_url, show_default=True).strip()
    api_token = typer.prompt("API token (optional)", default="", show_default=False, hide_input=True).strip()
    maps_key = typer.prompt("Maps API key (optional)", default="", show_default=False).strip()
    dealer_name = typer.prompt("Dealership name", default=settings.dealer_name, show_default=True).strip()

    if not backend_url.startswith(("http://", "https://")):
        raise typer.BadParameter("Backend URL must start with http:// or https://")

    env_path = write_user_env_vars(
        {
            "DEALERDESK_BACKEND_URL": backend_url,
            "DEALERDESK_API_TOKEN": api_token or None,
            "DEALERDESK_MAPS_API_KEY": maps_key or None,
            "DEALERDESK_DEALER_NAME": dealer_name or None,
        }
    )

    _console.print(f"[green]Saved config to:[/green] {env_path}")
