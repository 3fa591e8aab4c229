"""Generic CRUD accessor over the CMS collection endpoints.

Why a single accessor class:
- Every collection speaks the same envelope (`{data, meta}`) and the same
  bracket-notation query language, so list/get/create/update/remove are
  written once.
- What differs per collection (model, populate rules, default sort) comes from
  `core.resources.ResourceDescriptor`.
"""

from __future__ import annotations

import logging
from typing import Any, Generic, Mapping, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from adapters.http_client import error_from_response, send
from adapters.query_cache import QueryCache, QueryKey
from core.domain.models import Page, Pagination
from core.errors import ApiError, NotFound
from core.resources import ListParams, ResourceDescriptor

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def _format_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def populate_params(populate: str | Mapping[str, str] | None) -> list[tuple[str, str]]:
    if populate is None:
        return []
    if isinstance(populate, str):
        return [("populate", populate)]
    return [(f"populate[{relation}]", subfields) for relation, subfields in populate.items()]


def build_query_params(descriptor: ResourceDescriptor, params: ListParams) -> list[tuple[str, str]]:
    """Translate `ListParams` into the backend's bracket-notation query.

    `ListParams(page=2, page_size=10)` on branches yields `pagination[page]=2`,
    `pagination[pageSize]=10` and the default `sort[name]=asc`.
    """

    query: list[tuple[str, str]] = [
        ("pagination[page]", str(params.page)),
        ("pagination[pageSize]", str(params.page_size)),
    ]

    sort = params.sort or descriptor.default_sort
    for field_name, direction in sort.items():
        query.append((f"sort[{field_name}]", direction.lower()))

    for field_name, condition in params.filters.items():
        if isinstance(condition, Mapping):
            for operator, value in condition.items():
                op = operator if operator.startswith("$") else f"${operator}"
                query.append((f"filters[{field_name}][{op}]", _format_value(value)))
        else:
            query.append((f"filters[{field_name}][$eq]", _format_value(condition)))

    query.extend(populate_params(descriptor.populate))
    return query


def _is_relation_envelope(value: object) -> bool:
    return isinstance(value, dict) and "data" in value and set(value) <= {"data", "meta"}


def normalize_entity(raw: Any) -> Any:
    """Flatten `{id, attributes}` entities and nested relation envelopes."""

    if not isinstance(raw, dict):
        return raw
    if isinstance(raw.get("attributes"), dict):
        flat: dict[str, Any] = {"id": raw.get("id"), **raw["attributes"]}
    else:
        flat = dict(raw)

    for key, value in flat.items():
        if _is_relation_envelope(value):
            flat[key] = normalize_data(value["data"])
    return flat


def normalize_data(data: Any) -> Any:
    if isinstance(data, list):
        return [normalize_entity(item) for item in data]
    return normalize_entity(data)


def unwrap_envelope(body: Any) -> tuple[Any, Pagination | None]:
    """Split a response body into (normalized data, pagination or None)."""

    if not isinstance(body, dict) or "data" not in body:
        raise ApiError("Malformed response: missing 'data' envelope")

    pagination = None
    meta = body.get("meta")
    if isinstance(meta, dict) and isinstance(meta.get("pagination"), dict):
        pagination = Pagination.model_validate(meta["pagination"])
    return normalize_data(body["data"]), pagination


class CrudAccessor(Generic[T]):
    """list/get/create/update/remove for one collection."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        descriptor: ResourceDescriptor[T],
        cache: QueryCache | None = None,
    ) -> None:
        self._client = client
        self._descriptor = descriptor
        self._cache = cache if cache is not None else QueryCache()

    @property
    def name(self) -> str:
        return self._descriptor.name

    @property
    def descriptor(self) -> ResourceDescriptor[T]:
        return self._descriptor

    def _path(self, entity_id: object | None = None) -> str:
        if entity_id is None:
            return f"/{self.name}"
        return f"/{self.name}/{entity_id}"

    def _parse(self, data: Any) -> T:
        try:
            return self._descriptor.model.model_validate(data)
        except PydanticValidationError as exc:
            raise ApiError(f"Malformed {self.name} entity: {exc.error_count()} invalid field(s)") from exc

    def _body(self, response: httpx.Response, entity_id: object | None = None) -> Any:
        if response.status_code == 404 and entity_id is not None:
            raise NotFound(self.name, entity_id)
        if not response.is_success:
            raise error_from_response(response)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(f"Malformed response from {self.name}: not JSON") from exc

    def _single(self, body: Any, entity_id: object | None) -> T:
        data, _ = unwrap_envelope(body)
        if not data:
            if entity_id is None:
                raise ApiError(f"Backend returned no {self.name} entity")
            raise NotFound(self.name, entity_id)
        if isinstance(data, list):
            raise ApiError(f"Expected a single {self.name} entity, got a list")
        return self._parse(data)

    def _invalidate(self) -> None:
        self._cache.invalidate(self.name)
        for dependent in self._descriptor.dependents:
            self._cache.invalidate(dependent)

    @staticmethod
    def _payload(payload: BaseModel | Mapping[str, Any]) -> dict[str, Any]:
        if isinstance(payload, BaseModel):
            return payload.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"id"})
        return dict(payload)

    async def list(self, params: ListParams | None = None) -> Page:
        params = params or ListParams()
        query = build_query_params(self._descriptor, params)
        key = QueryKey.build(self.name, [("op", "list"), *query])

        async def load() -> Page:
            response = await send(self._client, "GET", self._path(), params=query)
            data, pagination = unwrap_envelope(self._body(response))
            if not isinstance(data, list):
                raise ApiError(f"Expected a list of {self.name}")
            items = [self._parse(item) for item in data]
            total = pagination.total if pagination and pagination.total is not None else len(items)
            return Page(items=items, total=total, page=params.page, page_size=params.page_size)

        return await self._cache.fetch(key, load)

    async def get(self, entity_id: int | str) -> T:
        query = populate_params(self._descriptor.populate)
        key = QueryKey.build(self.name, [("op", "get"), ("id", entity_id), *query])

        async def load() -> T:
            response = await send(self._client, "GET", self._path(entity_id), params=query)
            return self._single(self._body(response, entity_id), entity_id)

        return await self._cache.fetch(key, load)

    async def create(self, payload: BaseModel | Mapping[str, Any]) -> T:
        response = await send(
            self._client,
            "POST",
            self._path(),
            json={"data": self._payload(payload)},
            params=populate_params(self._descriptor.populate),
        )
        body = self._body(response)
        self._invalidate()
        entity = self._single(body, None)
        logger.info("Created %s %s", self.name, getattr(entity, "id", "?"))
        return entity

    async def update(self, entity_id: int | str, payload: BaseModel | Mapping[str, Any]) -> T:
        response = await send(
            self._client,
            "PUT",
            self._path(entity_id),
            json={"data": self._payload(payload)},
            params=populate_params(self._descriptor.populate),
        )
        body = self._body(response, entity_id)
        self._invalidate()
        logger.info("Updated %s %s", self.name, entity_id)
        return self._single(body, entity_id)

    async def remove(self, entity_id: int | str) -> None:
        response = await send(self._client, "DELETE", self._path(entity_id))
        self._body(response, entity_id)
        self._invalidate()
        logger.info("Deleted %s %s", self.name, entity_id)


def make_accessor(
    client: httpx.AsyncClient,
    descriptor: ResourceDescriptor[T],
    cache: QueryCache | None = None,
) -> CrudAccessor[T]:
    return CrudAccessor(client, descriptor, cache)
