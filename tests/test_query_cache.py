from __future__ import annotations

import asyncio

import pytest

from adapters.query_cache import QueryCache, QueryKey


def test_equal_params_make_equal_keys_regardless_of_order() -> None:
    a = QueryKey.build("branches", {"page": 1, "pageSize": 10})
    b = QueryKey.build("branches", [("pageSize", "10"), ("page", "1")])

    assert a == b
    assert hash(a) == hash(b)
    assert a != QueryKey.build("customers", {"page": 1, "pageSize": 10})
    assert a != QueryKey.build("branches", {"page": 2, "pageSize": 10})


@pytest.mark.asyncio
async def test_fetch_reuses_cached_value() -> None:
    cache = QueryCache()
    key = QueryKey.build("branches", {"page": 1})
    calls: list[int] = []

    async def loader() -> list[int]:
        calls.append(1)
        return [1, 2, 3]

    first = await cache.fetch(key, loader)
    second = await cache.fetch(key, loader)

    assert first is second
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_invalidate_marks_only_that_resource_stale() -> None:
    cache = QueryCache()
    branches = QueryKey.build("branches", {"page": 1})
    customers = QueryKey.build("customers", {"page": 1})

    async def value() -> str:
        return "v"

    await cache.fetch(branches, value)
    await cache.fetch(customers, value)

    assert cache.invalidate("branches") == 1
    assert cache.is_stale(branches)
    assert cache.peek(branches) is None
    assert cache.peek(customers) == "v"


@pytest.mark.asyncio
async def test_load_straddling_invalidation_is_stored_stale() -> None:
    cache = QueryCache()
    key = QueryKey.build("branches")
    gate = asyncio.Event()

    async def slow_loader() -> str:
        await gate.wait()
        return "old"

    pending = asyncio.ensure_future(cache.fetch(key, slow_loader))
    await asyncio.sleep(0)
    cache.invalidate("branches")
    gate.set()

    assert await pending == "old"
    assert cache.is_stale(key)


@pytest.mark.asyncio
async def test_ttl_expiry() -> None:
    now = [100.0]
    cache = QueryCache(ttl_seconds=5, clock=lambda: now[0])
    key = QueryKey.build("branches")

    async def value() -> str:
        return "v"

    await cache.fetch(key, value)
    now[0] += 6

    assert cache.is_stale(key)


def test_sort_priority_is_part_of_the_key() -> None:
    brand_first = QueryKey.build("car-models", [("sort[brand]", "asc"), ("sort[name]", "asc"), ("page", "1")])
    name_first = QueryKey.build("car-models", [("page", "1"), ("sort[name]", "asc"), ("sort[brand]", "asc")])
    same_sort = QueryKey.build("car-models", [("sort[brand]", "asc"), ("page", "1"), ("sort[name]", "asc")])

    assert brand_first != name_first
    assert brand_first == same_sort


@pytest.mark.asyncio
async def test_concurrent_fetches_share_one_load() -> None:
    cache = QueryCache()
    key = QueryKey.build("branches", {"page": 1})
    gate = asyncio.Event()
    calls: list[int] = []

    async def loader() -> str:
        calls.append(1)
        await gate.wait()
        return "v"

    first = asyncio.ensure_future(cache.fetch(key, loader))
    second = asyncio.ensure_future(cache.fetch(key, loader))
    await asyncio.sleep(0)
    gate.set()

    assert await asyncio.gather(first, second) == ["v", "v"]
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_shared_load_failure_reaches_every_waiter() -> None:
    cache = QueryCache()
    key = QueryKey.build("branches")
    gate = asyncio.Event()

    async def failing() -> str:
        await gate.wait()
        raise RuntimeError("backend down")

    first = asyncio.ensure_future(cache.fetch(key, failing))
    second = asyncio.ensure_future(cache.fetch(key, failing))
    await asyncio.sleep(0)
    gate.set()

    results = await asyncio.gather(first, second, return_exceptions=True)
    assert all(isinstance(r, RuntimeError) for r in results)
    assert cache.is_stale(key)


@pytest.mark.asyncio
async def test_read_after_invalidation_does_not_join_older_load() -> None:
    cache = QueryCache()
    key = QueryKey.build("branches")
    gate = asyncio.Event()
    values = iter(["before", "after"])

    async def loader() -> str:
        value = next(values)
        if value == "before":
            await gate.wait()
        return value

    older = asyncio.ensure_future(cache.fetch(key, loader))
    await asyncio.sleep(0)
    cache.invalidate("branches")

    assert await cache.fetch(key, loader) == "after"
    gate.set()
    assert await older == "before"
    assert cache.peek(key) == "after"
