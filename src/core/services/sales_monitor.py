"""Sales monitoring: per-branch aggregates for the monitoring view.

Orders are pulled page by page through the generic accessor, grouped by branch
and ranked by revenue. Branches with coordinates can be plotted on a static
map (the maps SDK itself stays out of this package; we only build its URL).
"""

from __future__ import annotations

import string
from dataclasses import dataclass
from datetime import date
from typing import Iterable
from urllib.parse import urlencode

from adapters.crud import CrudAccessor
from core.domain.models import SalesOrder
from core.errors import ConfigError
from core.resources import ListParams

STATIC_MAP_URL = "https://maps.googleapis.com/maps/api/staticmap"
UNASSIGNED = "Unassigned"
EXCLUDED_STATUSES = frozenset({"cancelled", "canceled"})
_MARKER_LABELS = string.digits[1:] + string.ascii_uppercase


@dataclass
class BranchSales:
    branch_id: int | None
    branch_name: str
    city: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    order_count: int = 0
    units: int = 0
    revenue: float = 0.0

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


def summarize_sales(
    orders: Iterable[SalesOrder],
    *,
    excluded_statuses: Iterable[str] = EXCLUDED_STATUSES,
) -> list[BranchSales]:
    """Group orders by branch, highest revenue first."""

    excluded = {s.lower() for s in excluded_statuses}
    by_branch: dict[int | None, BranchSales] = {}
    for order in orders:
        if order.status.lower() in excluded:
            continue
        branch = order.branch
        key = branch.id if branch else None
        summary = by_branch.get(key)
        if summary is None:
            if branch is None:
                summary = BranchSales(branch_id=None, branch_name=UNASSIGNED)
            else:
                summary = BranchSales(
                    branch_id=branch.id,
                    branch_name=branch.name,
                    city=branch.city,
                    latitude=branch.latitude,
                    longitude=branch.longitude,
                )
            by_branch[key] = summary
        summary.order_count += 1
        summary.units += order.quantity
        summary.revenue += order.total

    return sorted(by_branch.values(), key=lambda s: (-s.revenue, s.branch_name))


async def collect_orders(
    accessor: CrudAccessor,
    *,
    date_from: date | None = None,
    date_to: date | None = None,
    page_size: int = 100,
) -> list[SalesOrder]:
    """Fetch every order in the date window, following pagination."""

    window: dict[str, object] = {}
    if date_from:
        window["$gte"] = date_from.isoformat()
    if date_to:
        window["$lte"] = date_to.isoformat()
    filters: dict[str, object] = {"orderDate": window} if window else {}

    orders: list[SalesOrder] = []
    page = 1
    while True:
        result = await accessor.list(ListParams(page=page, page_size=page_size, filters=filters))
        orders.extend(result.items)
        if not result.items or len(orders) >= result.total:
            break
        page += 1
    return orders


def build_static_map_url(
    summaries: Iterable[BranchSales],
    api_key: str | None,
    *,
    size: str = "640x400",
) -> str:
    """Static map with one labelled marker per located branch, in rank order."""

    if not api_key:
        raise ConfigError("A maps API key is required (DEALERDESK_MAPS_API_KEY)")

    params: list[tuple[str, str]] = [("size", size)]
    located = [s for s in summaries if s.has_location]
    for index, summary in enumerate(located):
        label = _MARKER_LABELS[index] if index < len(_MARKER_LABELS) else ""
        marker = f"{summary.latitude},{summary.longitude}"
        params.append(("markers", f"label:{label}|{marker}" if label else marker))
    params.append(("key", api_key))
    return f"{STATIC_MAP_URL}?{urlencode(params)}"
