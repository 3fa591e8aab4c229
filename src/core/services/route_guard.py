"""Route guard for protected views.

`guard` is a pure function of the session snapshot: callers decide how to
render each decision (the CLI prints a spinner line, a login hint or a
permission error).
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable

from core.domain.session import SessionSnapshot, SessionState


class GuardDecision(str, Enum):
    RENDER = "render"
    LOADING = "loading"
    REDIRECT = "redirect"
    FORBIDDEN = "forbidden"


def role_allowed(role: str | None, allowed_roles: Iterable[str] | None) -> bool:
    """Case-insensitive allow-list check; no allow-list means any role."""

    if allowed_roles is None:
        return True
    allowed = {r.strip().upper() for r in allowed_roles}
    return role is not None and role.strip().upper() in allowed


def guard(snapshot: SessionSnapshot, allowed_roles: Iterable[str] | None = None) -> GuardDecision:
    if not snapshot.state.is_settled:
        return GuardDecision.LOADING
    if snapshot.state is SessionState.UNAUTHENTICATED:
        return GuardDecision.REDIRECT
    if not role_allowed(snapshot.role, allowed_roles):
        return GuardDecision.FORBIDDEN
    return GuardDecision.RENDER
