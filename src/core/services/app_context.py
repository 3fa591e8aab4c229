"""Application context.

One explicit object carries everything a view needs (settings, credential
store, HTTP client, query cache, session controller and one CRUD accessor per
collection). Entry points build it once and pass it down instead of reaching
for module-level globals.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx

from adapters.crud import CrudAccessor, make_accessor
from adapters.http_client import ClientHooks, build_api_client
from adapters.query_cache import QueryCache
from adapters.token_store import FileTokenStore
from core.config import AppSettings
from core.domain.session import SessionSnapshot, SessionState
from core.interfaces.navigator import Navigator
from core.interfaces.token_store import TokenStore
from core.resources import RESOURCES, ResourceDescriptor, get_resource
from core.services.session import SessionController


@dataclass
class AppContext:
    settings: AppSettings
    token_store: TokenStore
    client: httpx.AsyncClient
    cache: QueryCache
    session: SessionController
    accessors: dict[str, CrudAccessor] = field(default_factory=dict)

    def accessor(self, resource: str | ResourceDescriptor) -> CrudAccessor:
        name = resource if isinstance(resource, str) else resource.name
        if name not in self.accessors:
            self.accessors[name] = make_accessor(self.client, get_resource(name), self.cache)
        return self.accessors[name]

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "AppContext":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def build_app_context(
    settings: AppSettings | None = None,
    *,
    token_store: TokenStore | None = None,
    navigator: Navigator | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AppContext:
    """Wire store -> session -> client -> accessors.

    The client's 401 hook points at `SessionController.expire`, and the cache
    is dropped whenever the session ends so no data outlives its user.
    """

    settings = settings or AppSettings()
    token_store = token_store or FileTokenStore(settings.resolved_token_path())
    cache = QueryCache()

    session = SessionController(token_store=token_store, settings=settings, navigator=navigator)
    client = build_api_client(
        settings,
        token_store=token_store,
        hooks=ClientHooks(unauthorized=session.expire),
        transport=transport,
    )
    session.attach_client(client)

    def drop_cache_on_signout(snapshot: SessionSnapshot) -> None:
        if snapshot.state is SessionState.UNAUTHENTICATED:
            cache.clear()

    session.subscribe(drop_cache_on_signout)

    accessors = {name: make_accessor(client, descriptor, cache) for name, descriptor in RESOURCES.items()}
    return AppContext(
        settings=settings,
        token_store=token_store,
        client=client,
        cache=cache,
        session=session,
        accessors=accessors,
    )
