"""Backend collections known to dealerdesk.

Each collection is described by data, not code: the generic CRUD accessor
reads its endpoint name, model, relation population and default sort from a
`ResourceDescriptor` and never branches on which resource it is serving.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Mapping, TypeVar

from pydantic import BaseModel

from core.domain.models import Branch, CarModel, Customer, SalesOrder
from core.errors import ConfigError

T = TypeVar("T", bound=BaseModel)

SORT_DIRECTIONS = ("asc", "desc")


@dataclass(frozen=True)
class ResourceDescriptor(Generic[T]):
    """Configuration for one collection endpoint."""

    name: str
    model: type[T]
    label: str
    # "*" populates every relation; a mapping gives per-relation subfields.
    populate: str | Mapping[str, str] | None = None
    default_sort: Mapping[str, str] = field(default_factory=dict)
    # Other resources whose cached reads embed this one.
    dependents: tuple[str, ...] = ()
    columns: tuple[str, ...] = ("id",)


@dataclass
class ListParams:
    """Filter/sort/pagination options for a list call."""

    page: int = 1
    page_size: int = 25
    sort: dict[str, str] = field(default_factory=dict)
    filters: dict[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")
        for field_name, direction in self.sort.items():
            if direction.lower() not in SORT_DIRECTIONS:
                raise ValueError(f"sort direction for {field_name!r} must be asc or desc")


BRANCHES = ResourceDescriptor(
    name="branches",
    model=Branch,
    label="Branches",
    default_sort={"name": "asc"},
    dependents=("sales-orders",),
    columns=("id", "name", "code", "city", "phone"),
)

CAR_MODELS = ResourceDescriptor(
    name="car-models",
    model=CarModel,
    label="Car models",
    default_sort={"brand": "asc", "name": "asc"},
    dependents=("sales-orders",),
    columns=("id", "brand", "name", "model_year", "price"),
)

CUSTOMERS = ResourceDescriptor(
    name="customers",
    model=Customer,
    label="Customers",
    default_sort={"fullName": "asc"},
    dependents=("sales-orders",),
    columns=("id", "full_name", "email", "phone"),
)

SALES_ORDERS = ResourceDescriptor(
    name="sales-orders",
    model=SalesOrder,
    label="Sales orders",
    populate={"customer": "*", "carModel": "*", "branch": "*"},
    default_sort={"orderDate": "desc"},
    columns=("id", "order_number", "order_date", "status", "quantity", "unit_price"),
)

RESOURCES: dict[str, ResourceDescriptor] = {
    d.name: d for d in (BRANCHES, CAR_MODELS, CUSTOMERS, SALES_ORDERS)
}


def get_resource(name: str) -> ResourceDescriptor:
    try:
        return RESOURCES[name]
    except KeyError:
        known = ", ".join(sorted(RESOURCES))
        raise ConfigError(f"Unknown resource {name!r} (known: {known})") from None
