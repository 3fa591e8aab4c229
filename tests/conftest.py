"""
Pytest config.

The packages live under `src/` (`cli`, `core`, `adapters`). When the project is
not installed in editable mode, put `src/` on sys.path so tests can import them.

`FakeBackend` stands in for the CMS: routes are (method, path) pairs answered
through an `httpx.MockTransport`, and every request is recorded.
"""

from __future__ import annotations

import inspect
import os
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Union

import httpx
import pytest


def _ensure_src_on_syspath() -> None:
    src = Path(__file__).resolve().parents[1] / "src"
    src_str = str(src)
    if src_str not in sys.path:
        sys.path.insert(0, src_str)


_ensure_src_on_syspath()

from adapters.token_store import MemoryTokenStore  # noqa: E402
from core.config import AppSettings  # noqa: E402
from core.services.app_context import build_app_context  # noqa: E402

BACKEND_URL = "http://cms.test"

Handler = Callable[[httpx.Request], Union[httpx.Response, Awaitable[httpx.Response]]]


class RecordingNavigator:
    def __init__(self) -> None:
        self.redirects: list[str] = []

    def redirect(self, view: str) -> None:
        self.redirects.append(view)


class FakeBackend:
    def __init__(self) -> None:
        self._routes: dict[tuple[str, str], Handler] = {}
        self.calls: list[httpx.Request] = []

    def route(
        self,
        method: str,
        path: str,
        handler: Handler | None = None,
        *,
        status: int = 200,
        json: Any = None,
    ) -> None:
        """Register a handler, or a canned `status`/`json` answer, for `/api{path}`."""

        if handler is None:

            def handler(request: httpx.Request) -> httpx.Response:
                return httpx.Response(status, json=json)

        self._routes[(method.upper(), f"/api{path}")] = handler

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        handler = self._routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(
                404,
                json={"data": None, "error": {"status": 404, "name": "NotFoundError", "message": "Not Found"}},
            )
        result = handler(request)
        if inspect.isawaitable(result):
            result = await result
        return result

    def count(self, method: str, path: str) -> int:
        return sum(1 for r in self.calls if r.method == method.upper() and r.url.path == f"/api{path}")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


def make_settings(**overrides: Any) -> AppSettings:
    values: dict[str, Any] = {"backend_url": BACKEND_URL}
    values.update(overrides)
    return AppSettings(_env_file=None, **values)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in list(os.environ):
        if name.startswith("DEALERDESK_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def settings() -> AppSettings:
    return make_settings()


@pytest.fixture
def navigator() -> RecordingNavigator:
    return RecordingNavigator()


@pytest.fixture
def token_store() -> MemoryTokenStore:
    return MemoryTokenStore()


@pytest.fixture
def app_context(settings, token_store, navigator, backend):
    return build_app_context(settings, token_store=token_store, navigator=navigator, transport=backend.transport)
