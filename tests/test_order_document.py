from __future__ import annotations

from datetime import date

from adapters.order_document import export_order_html, format_money, render_order_html
from core.domain.models import Branch, CarModel, Customer, SalesOrder


def _order() -> SalesOrder:
    return SalesOrder(
        id=11,
        order_number="SO-0011",
        order_date=date(2024, 3, 5),
        status="confirmed",
        quantity=2,
        unit_price=15000,
        discount=500,
        notes="Deliver <before> Friday",
        customer=Customer(id=4, full_name="Luis Paz", document_number="40102030"),
        car_model=CarModel(id=9, name="Corolla", brand="Toyota", model_year=2024),
        branch=Branch(id=1, name="Centro", city="Lima"),
    )


def test_format_money() -> None:
    assert format_money(29500) == "29,500.00"
    assert format_money(None) == "-"


def test_render_includes_parties_and_totals() -> None:
    html = render_order_html(order=_order(), dealer_name="Acme Motors")

    assert "Acme Motors" in html
    assert "SO-0011" in html
    assert "Luis Paz" in html
    assert "Toyota Corolla" in html
    assert "30,000.00" in html
    assert "29,500.00" in html


def test_render_escapes_free_text() -> None:
    html = render_order_html(order=_order(), dealer_name="Acme")

    assert "&lt;before&gt;" in html
    assert "<before>" not in html


def test_render_without_relations() -> None:
    html = render_order_html(order=SalesOrder(id=1, order_number="SO-1"), dealer_name="Acme")

    assert "SO-1" in html


def test_export_html_writes_file(tmp_path) -> None:
    path = export_order_html(order=_order(), output_path=tmp_path / "out" / "SO-0011.html", dealer_name="Acme")

    assert path.exists()
    assert "SO-0011" in path.read_text(encoding="utf-8")
