from __future__ import annotations

import pytest

from core.domain.models import User
from core.domain.session import SessionSnapshot, SessionState
from core.services.route_guard import GuardDecision, guard, role_allowed


def _signed_in(role: str | None) -> SessionSnapshot:
    return SessionSnapshot(SessionState.AUTHENTICATED, User(id=1, username="u", role=role))


@pytest.mark.parametrize("state", [SessionState.UNKNOWN, SessionState.CHECKING])
def test_unsettled_session_shows_loading(state: SessionState) -> None:
    assert guard(SessionSnapshot(state), ["ADMIN"]) is GuardDecision.LOADING


def test_signed_out_redirects() -> None:
    assert guard(SessionSnapshot(SessionState.UNAUTHENTICATED)) is GuardDecision.REDIRECT


def test_any_role_when_no_allow_list() -> None:
    assert guard(_signed_in("SALES")) is GuardDecision.RENDER
    assert guard(_signed_in(None)) is GuardDecision.RENDER


def test_role_outside_allow_list_is_forbidden() -> None:
    assert guard(_signed_in("SALES"), ["ADMIN", "MANAGER"]) is GuardDecision.FORBIDDEN
    assert guard(_signed_in(None), ["ADMIN"]) is GuardDecision.FORBIDDEN


def test_role_match_ignores_case() -> None:
    assert role_allowed("admin", ["ADMIN"])
    assert guard(_signed_in("Manager"), ["ADMIN", "manager"]) is GuardDecision.RENDER


def test_state_helpers() -> None:
    assert SessionState.AUTHENTICATED.is_settled
    assert SessionState.UNAUTHENTICATED.is_settled
    assert not SessionState.CHECKING.is_settled
    assert SessionState.CHECKING.label() == "Checking"
