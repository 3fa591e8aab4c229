"""Session state for dealerdesk.

The session is derived, never stored: it is rebuilt at startup by revalidating
the persisted credential. Keeping the state enum in the domain layer lets the
controller, the route guard and the CLI share a single source of truth.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from core.domain.models import User


class SessionState(str, Enum):
    """Lifecycle of the client session."""

    UNKNOWN = "unknown"
    CHECKING = "checking"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"

    @property
    def is_settled(self) -> bool:
        """True once the startup check has produced a definitive answer."""

        return self in (SessionState.AUTHENTICATED, SessionState.UNAUTHENTICATED)

    def label(self) -> str:
        """Human readable label for status lines and logging."""

        return self.value.capitalize()


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of the session handed to guards and views."""

    state: SessionState = SessionState.UNKNOWN
    user: User | None = None

    @property
    def role(self) -> str | None:
        return self.user.role if self.user else None
