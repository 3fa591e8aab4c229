"""Order document export.

Why in adapters:
- PDF/HTML are infrastructure details (WeasyPrint/Jinja2).
- The Core only knows the `SalesOrder` aggregate.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.domain.models import SalesOrder


_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def _get_env() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "xml"]),
    )
    env.filters["money"] = format_money
    return env


def format_money(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{value:,.2f}"


def render_order_html(*, order: SalesOrder, dealer_name: str) -> str:
    """Render a self-contained HTML order document."""

    generated_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
    subtotal = order.quantity * order.unit_price
    template = _get_env().get_template("order.html")
    return template.render(
        order=order,
        dealer_name=dealer_name,
        generated_at=generated_at,
        subtotal=subtotal,
        total=order.total,
        document_id=f"{order.order_number}:{generated_at}",
    )


def export_order_html(*, order: SalesOrder, output_path: Path, dealer_name: str) -> Path:
    """Write the order document as HTML.

    Fallback when PDF rendering is not supported by the environment, and handy
    for debugging the template.
    """

    output_path.parent.mkdir(parents=True, exist_ok=True)
    html = render_order_html(order=order, dealer_name=dealer_name)
    output_path.write_text(html, encoding="utf-8")
    return output_path


def export_order_pdf(*, order: SalesOrder, output_path: Path, dealer_name: str) -> Path:
    """Write the order document as PDF.

    Synchronous: WeasyPrint is local CPU/IO work.
    """

    # WeasyPrint loads Pango at import time; HTML export must work without it.
    from weasyprint import HTML  # noqa: PLC0415

    output_path.parent.mkdir(parents=True, exist_ok=True)
    html = render_order_html(order=order, dealer_name=dealer_name)
    HTML(string=html, base_url=str(_TEMPLATES_DIR)).write_pdf(str(output_path))
    return output_path
