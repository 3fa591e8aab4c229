"""Domain models (Pydantic v2).

Why Pydantic in the domain:
- Strict validation and self-documenting fields (Field) without coupling the
  Core to I/O libraries.
- The backend speaks camelCase; aliases keep Python names snake_case while
  accepting the wire shape as-is.

Note:
- These models describe *what* the dealership data is, not *how* it is fetched.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict


class Entity(BaseModel):
    """Base for every backend collection entry."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)

    id: int = Field(..., description="Backend identifier.")


class User(BaseModel):
    """Authenticated user as returned by the identity endpoint."""

    model_config = ConfigDict(extra="ignore")

    id: int
    username: str = Field(..., min_length=1)
    email: str | None = None
    role: str | None = Field(
        default=None,
        description="Role name (e.g. 'ADMIN'); flattened from the role relation.",
    )
    blocked: bool = False

    @field_validator("role", mode="before")
    @classmethod
    def _flatten_role(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return value.get("name") or value.get("type")
        return value


class Branch(Entity):
    name: str = Field(..., min_length=1, max_length=128)
    code: str | None = None
    address: str | None = None
    city: str | None = None
    phone: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class CarModel(Entity):
    name: str = Field(..., min_length=1, max_length=128)
    brand: str | None = None
    model_year: int | None = Field(default=None, ge=1900, le=2100)
    price: float | None = Field(default=None, ge=0)
    color: str | None = None


class Customer(Entity):
    full_name: str = Field(..., min_length=1, max_length=256)
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    document_number: str | None = None


class SalesOrder(Entity):
    """A vehicle sales order, the source of order documents and sales stats."""

    order_number: str = Field(..., min_length=1, max_length=64)
    order_date: date | None = None
    status: str = Field(default="draft")
    quantity: int = Field(default=1, ge=1)
    unit_price: float = Field(default=0.0, ge=0)
    discount: float = Field(default=0.0, ge=0)
    notes: str | None = None

    customer: Customer | None = None
    car_model: CarModel | None = None
    branch: Branch | None = None

    @property
    def total(self) -> float:
        return max(self.quantity * self.unit_price - self.discount, 0.0)


class Pagination(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)

    page: int = 1
    page_size: int = 25
    page_count: int | None = None
    total: int | None = None


T = TypeVar("T", bound=BaseModel)


class Page(BaseModel, Generic[T]):
    """Unwrapped list result: ordered items plus the backend's total count."""

    items: list[T] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)
    page: int = 1
    page_size: int = 25
