"""httpx wrapper for the CMS backend.

Why a wrapper:
- Standardizes base URL, timeouts, headers and logging for every call.
- Owns the two interceptors: bearer attachment on the way out and session
  expiry on 401 on the way back.
- Eases testing: callers may inject an `httpx.MockTransport`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from core.config import AppSettings
from core.errors import ApiError, NetworkError, Unauthorized, ValidationError
from core.interfaces.token_store import TokenStore

logger = logging.getLogger(__name__)

_AUTH_PATH_MARKER = "/auth/"
# Request extension recording which credential a request was sent with.
CREDENTIAL_EXTENSION = "dealerdesk.credential"


@dataclass
class ClientHooks:
    """Callbacks the HTTP layer fires into the session layer."""

    unauthorized: Callable[[], None] | None = None


def is_auth_endpoint(request: httpx.Request) -> bool:
    """Login/register/password endpoints never carry (or expire) a credential."""

    return _AUTH_PATH_MARKER in request.url.path


def build_api_client(
    settings: AppSettings | None = None,
    *,
    token_store: TokenStore,
    hooks: ClientHooks | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create the `httpx.AsyncClient` used by every backend call.

    The 401 interceptor clears the store and fires `hooks.unauthorized` before
    raising `Unauthorized`, so the caller can never handle the response as data.
    It only does so while the rejected credential is still the stored one; a
    401 for an older credential just raises.
    """

    settings = settings or AppSettings()
    hooks = hooks or ClientHooks()

    async def attach_credential(request: httpx.Request) -> None:
        if is_auth_endpoint(request):
            return
        credential = token_store.read()
        request.extensions[CREDENTIAL_EXTENSION] = credential
        if credential:
            request.headers["Authorization"] = f"Bearer {credential}"

    async def log_request(request: httpx.Request) -> None:
        logger.debug("-> %s %s", request.method, request.url)

    async def log_response(response: httpx.Response) -> None:
        request = response.request
        logger.debug("<- %s %s %s", response.status_code, request.method, request.url)

    async def expire_on_unauthorized(response: httpx.Response) -> None:
        if response.status_code != 401 or is_auth_endpoint(response.request):
            return
        rejected = response.request.extensions.get(CREDENTIAL_EXTENSION)
        if rejected is None or rejected != token_store.read():
            # Sent with a credential that has since been replaced or dropped.
            logger.debug("Ignoring 401 for a superseded credential")
            raise Unauthorized()
        logger.info("Backend rejected the credential; clearing session")
        token_store.clear()
        if hooks.unauthorized is not None:
            hooks.unauthorized()
        raise Unauthorized()

    headers = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
    }
    return httpx.AsyncClient(
        base_url=settings.api_base_url,
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        headers=headers,
        transport=transport,
        event_hooks={
            "request": [attach_credential, log_request],
            "response": [log_response, expire_on_unauthorized],
        },
    )


async def send(client: httpx.AsyncClient, method: str, url: str, **kwargs: Any) -> httpx.Response:
    """Issue a request, mapping transport failures to `NetworkError`."""

    try:
        return await client.request(method, url, **kwargs)
    except httpx.TransportError as exc:
        logger.warning("Request %s %s failed: %s", method, url, exc)
        raise NetworkError(f"Backend unreachable: {exc}") from exc


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def parse_field_errors(body: Any) -> dict[str, list[str]]:
    """Collect `{field: [messages]}` from a backend error body."""

    if not isinstance(body, dict):
        return {}
    error = body.get("error")
    if not isinstance(error, dict):
        return {}
    details = error.get("details")
    raw_errors = details.get("errors") if isinstance(details, dict) else None
    if not isinstance(raw_errors, list):
        return {}

    out: dict[str, list[str]] = {}
    for item in raw_errors:
        if not isinstance(item, dict):
            continue
        path = item.get("path")
        if isinstance(path, list):
            field = ".".join(str(p) for p in path) or "_"
        else:
            field = str(path or "_")
        message = str(item.get("message") or "invalid")
        out.setdefault(field, []).append(message)
    return out


def error_from_response(response: httpx.Response) -> ApiError:
    """Translate a non-2xx response into the error taxonomy.

    400/422, or any 4xx carrying field errors, become `ValidationError`.
    """

    body = _json_or_none(response)
    message = f"Backend returned HTTP {response.status_code}"
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        message = str(body["error"].get("message") or message)

    field_errors = parse_field_errors(body)
    status = response.status_code
    if 400 <= status < 500 and (field_errors or status in (400, 422)):
        return ValidationError(message, field_errors=field_errors, status_code=status)
    return ApiError(message, status_code=status)
