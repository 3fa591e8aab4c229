"""Session controller.

Owns the only in-memory session state and funnels every change through four
transitions: `bootstrap` (startup revalidation), `login`, `logout` and
`expire` (backend rejected the credential). Views read immutable
`SessionSnapshot`s and may subscribe to changes.

The startup check races the identity call against a fixed timer. Whichever
settles first decides; the loser is not cancelled, its result is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

import httpx
from pydantic import ValidationError as PydanticValidationError

from adapters.credentials import inspect_credential
from adapters.http_client import error_from_response, send
from core.config import AppSettings
from core.domain.models import User
from core.domain.session import SessionSnapshot, SessionState
from core.errors import ApiError, DealerDeskError, InvalidCredentials, SessionTimeout, Unauthorized
from core.interfaces.navigator import LOGIN_VIEW, Navigator
from core.interfaces.token_store import TokenStore

logger = logging.getLogger(__name__)

IDENTITY_PATH = "/users/me"
LOGIN_PATH = "/auth/local"
# Statuses the login endpoint uses for a wrong identifier or password.
REJECTED_LOGIN_STATUSES = (400, 401)

SessionListener = Callable[[SessionSnapshot], None]


def _consume_orphan(task: asyncio.Task) -> None:
    # Late identity results are ignored; retrieve them so asyncio does not warn.
    if not task.cancelled() and task.exception() is not None:
        logger.debug("Discarded late identity failure: %s", task.exception())


class SessionController:
    def __init__(
        self,
        *,
        token_store: TokenStore,
        settings: AppSettings | None = None,
        client: httpx.AsyncClient | None = None,
        navigator: Navigator | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._store = token_store
        self._client = client
        self._navigator = navigator
        self._snapshot = SessionSnapshot()
        self._listeners: list[SessionListener] = []
        # Bumped by every transition that supersedes an in-flight bootstrap.
        self._generation = 0

    def attach_client(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    @property
    def state(self) -> SessionState:
        return self._snapshot.state

    @property
    def user(self) -> User | None:
        return self._snapshot.user

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register `listener`; returns a function that unregisters it."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _transition(self, state: SessionState, user: User | None = None) -> None:
        previous = self._snapshot.state
        self._snapshot = SessionSnapshot(state=state, user=user)
        if previous != state:
            logger.info("Session %s -> %s", previous.value, state.value)
        for listener in list(self._listeners):
            listener(self._snapshot)

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("SessionController has no HTTP client attached")
        return self._client

    def _drop_credential(self) -> None:
        self._store.clear()
        self._transition(SessionState.UNAUTHENTICATED)

    async def fetch_identity(self) -> User:
        """Verify the stored credential against the backend."""

        response = await send(self._require_client(), "GET", IDENTITY_PATH, params={"populate": "role"})
        if not response.is_success:
            raise error_from_response(response)
        try:
            return User.model_validate(response.json())
        except (ValueError, PydanticValidationError) as exc:
            raise ApiError("Malformed identity response") from exc

    async def bootstrap(self) -> SessionSnapshot:
        """Resolve the startup state exactly once, within the configured bound."""

        credential = self._store.read()
        if not credential:
            self._transition(SessionState.UNAUTHENTICATED)
            return self._snapshot

        info = inspect_credential(credential, self._settings.jwt_secret)
        if info is not None and not info.is_usable():
            logger.info("Stored credential is expired or wrongly signed; skipping identity check")
            self._drop_credential()
            return self._snapshot

        self._generation += 1
        generation = self._generation
        self._transition(SessionState.CHECKING)

        task = asyncio.ensure_future(self.fetch_identity())
        timeout = self._settings.session_check_timeout_seconds
        done, _ = await asyncio.wait({task}, timeout=timeout)

        if generation != self._generation:
            # login/logout/expire ran while we were waiting; it already decided.
            if not done:
                task.add_done_callback(_consume_orphan)
            elif not task.cancelled():
                task.exception()
            return self._snapshot

        if not done:
            task.add_done_callback(_consume_orphan)
            exc: BaseException | None = SessionTimeout(f"Identity check did not finish within {timeout:.1f}s")
        else:
            exc = task.exception()
        if exc is not None:
            logger.warning("Signing out: %s", exc)
            self._drop_credential()
            return self._snapshot

        self._transition(SessionState.AUTHENTICATED, task.result())
        return self._snapshot

    async def login(self, identifier: str, password: str) -> User | None:
        """Exchange credentials for a bearer token and start a session."""

        response = await send(
            self._require_client(),
            "POST",
            LOGIN_PATH,
            json={"identifier": identifier, "password": password},
        )
        if response.status_code in REJECTED_LOGIN_STATUSES:
            error = error_from_response(response)
            raise InvalidCredentials(str(error), status_code=response.status_code)
        if not response.is_success:
            raise error_from_response(response)

        try:
            body = response.json()
        except ValueError as exc:
            raise ApiError("Malformed login response: not JSON") from exc
        token = body.get("jwt") if isinstance(body, dict) else None
        if not isinstance(token, str) or not token:
            raise ApiError("Login response did not include a credential")

        self._generation += 1
        generation = self._generation
        self._store.save(token)
        raw_user = body.get("user")
        try:
            user = User.model_validate(raw_user) if isinstance(raw_user, dict) else None
        except PydanticValidationError:
            logger.debug("Login response carried an unreadable user; loading identity instead")
            user = None
        self._transition(SessionState.AUTHENTICATED, user)

        if user is None or user.role is None:
            try:
                user = await self.fetch_identity()
            except Unauthorized:
                raise
            except DealerDeskError as exc:
                logger.warning("Logged in but could not load role: %s", exc)
            else:
                if generation == self._generation:
                    self._transition(SessionState.AUTHENTICATED, user)
        return user

    def logout(self) -> None:
        self._generation += 1
        self._drop_credential()

    def expire(self) -> None:
        """Backend rejected the credential: sign out and go to the login view."""

        self._generation += 1
        self._drop_credential()
        if self._navigator is not None:
            self._navigator.redirect(LOGIN_VIEW)
