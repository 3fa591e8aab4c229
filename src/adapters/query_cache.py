"""Server-state cache for CRUD reads.

Entries are keyed by `QueryKey` (resource name + frozen parameter set). Reads
are served from the cache until a mutation on the same resource marks every
entry under that resource as stale; the next read refetches. Concurrent reads
of the same key share one backend call.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Mapping, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Params whose relative order changes the result (sort priority).
_ORDERED_PREFIXES = ("sort",)


@dataclass(frozen=True)
class QueryKey:
    """Hashable cache identifier; equal (resource, params) give equal keys.

    Parameter order is ignored except among `sort[...]` entries, where the
    first one is the primary sort.
    """

    resource: str
    params: tuple[tuple[str, str], ...] = ()

    @classmethod
    def build(
        cls,
        resource: str,
        params: Mapping[str, object] | Iterable[tuple[str, object]] | None = None,
    ) -> "QueryKey":
        if params is None:
            items: Iterable[tuple[str, object]] = ()
        elif isinstance(params, Mapping):
            items = params.items()
        else:
            items = params
        pairs = [(str(k), str(v)) for k, v in items]
        ordered = [p for p in pairs if p[0].startswith(_ORDERED_PREFIXES)]
        unordered = sorted(p for p in pairs if not p[0].startswith(_ORDERED_PREFIXES))
        return cls(resource=resource, params=tuple(unordered) + tuple(ordered))


@dataclass
class _Entry:
    value: Any
    fetched_at: float
    stale: bool = False


class QueryCache:
    """In-memory query cache with per-resource invalidation.

    `ttl_seconds=None` keeps entries until invalidated.
    """

    def __init__(self, ttl_seconds: float | None = None, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[QueryKey, _Entry] = {}
        self._pending: dict[QueryKey, asyncio.Future] = {}
        # Bumped on every invalidation; a load that straddles one is stored stale.
        self._generations: dict[str, int] = defaultdict(int)

    def __len__(self) -> int:
        return len(self._entries)

    def _is_fresh(self, entry: _Entry) -> bool:
        if entry.stale:
            return False
        if self._ttl is not None and self._clock() - entry.fetched_at > self._ttl:
            return False
        return True

    def peek(self, key: QueryKey) -> Any | None:
        """Return the fresh cached value for `key`, or None."""

        entry = self._entries.get(key)
        if entry is None or not self._is_fresh(entry):
            return None
        return entry.value

    def is_stale(self, key: QueryKey) -> bool:
        entry = self._entries.get(key)
        return entry is None or not self._is_fresh(entry)

    async def _load(self, key: QueryKey, loader: Callable[[], Awaitable[T]], generation: int) -> T:
        value = await loader()
        stale = generation != self._generations[key.resource]
        current = self._entries.get(key)
        if stale and current is not None and self._is_fresh(current):
            # A newer load already stored a fresh value.
            return value
        self._entries[key] = _Entry(value=value, fetched_at=self._clock(), stale=stale)
        return value

    def _forget(self, key: QueryKey, future: asyncio.Future) -> None:
        if self._pending.get(key) is future:
            del self._pending[key]
        if not future.cancelled():
            # Mark the outcome retrieved even if every waiter went away.
            future.exception()

    async def fetch(self, key: QueryKey, loader: Callable[[], Awaitable[T]]) -> T:
        """Serve `key` from cache, join an identical load in flight, or run `loader`."""

        entry = self._entries.get(key)
        if entry is not None and self._is_fresh(entry):
            logger.debug("Cache HIT %s %s", key.resource, key.params)
            return entry.value

        pending = self._pending.get(key)
        if pending is None:
            logger.debug("Cache MISS %s %s", key.resource, key.params)
            generation = self._generations[key.resource]
            pending = asyncio.ensure_future(self._load(key, loader, generation))
            self._pending[key] = pending
            pending.add_done_callback(lambda future: self._forget(key, future))
        else:
            logger.debug("Cache JOIN %s %s", key.resource, key.params)
        # One waiter being cancelled must not cancel the shared load.
        return await asyncio.shield(pending)

    def _drop_pending(self, resource: str | None = None) -> None:
        for key in [k for k in self._pending if resource is None or k.resource == resource]:
            self._generations[key.resource] += 1
            del self._pending[key]

    def invalidate(self, resource: str) -> int:
        """Mark every entry under `resource` as stale. Returns how many.

        Loads already in flight for `resource` are detached, so the next read
        issues a fresh request instead of joining them.
        """

        self._generations[resource] += 1
        self._drop_pending(resource)
        count = 0
        for key, entry in self._entries.items():
            if key.resource == resource:
                entry.stale = True
                count += 1
        logger.debug("Invalidated %d cached queries for %s", count, resource)
        return count

    def clear(self) -> None:
        self._drop_pending()
        self._entries.clear()
