from __future__ import annotations

import httpx
import pytest

from adapters.http_client import (
    ClientHooks,
    build_api_client,
    error_from_response,
    parse_field_errors,
    send,
)
from adapters.token_store import MemoryTokenStore
from core.errors import ApiError, NetworkError, Unauthorized, ValidationError


@pytest.mark.asyncio
async def test_attaches_bearer_when_credential_stored(settings, backend) -> None:
    backend.route("GET", "/branches", json={"data": []})
    store = MemoryTokenStore("tok-1")

    async with build_api_client(settings, token_store=store, transport=backend.transport) as client:
        await send(client, "GET", "/branches")

    assert backend.calls[0].headers["Authorization"] == "Bearer tok-1"
    assert str(backend.calls[0].url).startswith("http://cms.test/api/branches")


@pytest.mark.asyncio
async def test_sends_unauthenticated_without_credential(settings, backend) -> None:
    backend.route("GET", "/branches", json={"data": []})

    async with build_api_client(settings, token_store=MemoryTokenStore(), transport=backend.transport) as client:
        await send(client, "GET", "/branches")

    assert "Authorization" not in backend.calls[0].headers


@pytest.mark.asyncio
async def test_auth_endpoints_never_carry_credential(settings, backend) -> None:
    backend.route("POST", "/auth/local", json={"jwt": "new"})

    async with build_api_client(settings, token_store=MemoryTokenStore("old"), transport=backend.transport) as client:
        await send(client, "POST", "/auth/local", json={})

    assert "Authorization" not in backend.calls[0].headers


@pytest.mark.asyncio
async def test_401_clears_store_fires_hook_and_raises(settings, backend) -> None:
    backend.route("GET", "/customers", status=401, json={"error": {"status": 401}})
    store = MemoryTokenStore("expired")
    fired: list[bool] = []

    async with build_api_client(
        settings,
        token_store=store,
        hooks=ClientHooks(unauthorized=lambda: fired.append(True)),
        transport=backend.transport,
    ) as client:
        with pytest.raises(Unauthorized):
            await send(client, "GET", "/customers")

    assert store.read() is None
    assert fired == [True]


@pytest.mark.asyncio
async def test_401_for_replaced_credential_leaves_store_alone(settings, backend) -> None:
    store = MemoryTokenStore("old")

    def rotate_then_reject(request: httpx.Request) -> httpx.Response:
        store.save("new")
        return httpx.Response(401, json={"error": {"status": 401}})

    backend.route("GET", "/customers", rotate_then_reject)
    fired: list[bool] = []

    async with build_api_client(
        settings,
        token_store=store,
        hooks=ClientHooks(unauthorized=lambda: fired.append(True)),
        transport=backend.transport,
    ) as client:
        with pytest.raises(Unauthorized):
            await send(client, "GET", "/customers")

    assert store.read() == "new"
    assert fired == []


@pytest.mark.asyncio
async def test_401_on_login_is_not_a_session_expiry(settings, backend) -> None:
    backend.route("POST", "/auth/local", status=401, json={"error": {"message": "nope"}})
    store = MemoryTokenStore("keep")
    fired: list[bool] = []

    async with build_api_client(
        settings,
        token_store=store,
        hooks=ClientHooks(unauthorized=lambda: fired.append(True)),
        transport=backend.transport,
    ) as client:
        response = await send(client, "POST", "/auth/local", json={})

    assert response.status_code == 401
    assert store.read() == "keep"
    assert fired == []


@pytest.mark.asyncio
async def test_transport_failure_becomes_network_error(settings) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport = httpx.MockTransport(refuse)
    async with build_api_client(settings, token_store=MemoryTokenStore(), transport=transport) as client:
        with pytest.raises(NetworkError):
            await send(client, "GET", "/branches")


def _response(status: int, body: object) -> httpx.Response:
    return httpx.Response(status, json=body, request=httpx.Request("POST", "http://cms.test/api/x"))


def test_parse_field_errors_groups_by_path() -> None:
    body = {
        "data": None,
        "error": {
            "status": 400,
            "name": "ValidationError",
            "message": "2 errors occurred",
            "details": {
                "errors": [
                    {"path": ["name"], "message": "name must be defined."},
                    {"path": ["address", "city"], "message": "too short"},
                    {"path": ["name"], "message": "must be unique"},
                ]
            },
        },
    }

    assert parse_field_errors(body) == {
        "name": ["name must be defined.", "must be unique"],
        "address.city": ["too short"],
    }


def test_error_from_response_validation() -> None:
    body = {"error": {"message": "Invalid", "details": {"errors": [{"path": ["email"], "message": "bad"}]}}}
    error = error_from_response(_response(400, body))

    assert isinstance(error, ValidationError)
    assert error.field_errors == {"email": ["bad"]}
    assert str(error) == "Invalid"


def test_error_from_response_forbidden_is_plain_api_error() -> None:
    error = error_from_response(_response(403, {"error": {"message": "Forbidden"}}))

    assert type(error) is ApiError
    assert error.status_code == 403


def test_error_from_response_server_error_without_json() -> None:
    response = httpx.Response(502, text="Bad Gateway", request=httpx.Request("GET", "http://cms.test/api/x"))
    error = error_from_response(response)

    assert type(error) is ApiError
    assert error.status_code == 502
