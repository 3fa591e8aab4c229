"""Navigation contract.

The session controller redirects to the login view when a credential is
rejected. What "redirect" means depends on the front end: the CLI prints a
hint, tests record the target.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

LOGIN_VIEW = "/login"


@runtime_checkable
class Navigator(Protocol):
    def redirect(self, view: str) -> None:
        """Send the user to `view`."""

        ...
