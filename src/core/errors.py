"""Error taxonomy for dealerdesk.

Every failure in the client degrades to one of these; none is fatal. The CLI
maps them to user-facing messages, the session controller recovers some of
them locally.
"""

from __future__ import annotations


class DealerDeskError(Exception):
    """Base exception for dealerdesk."""


class ConfigError(DealerDeskError):
    """Missing or invalid configuration."""


class NetworkError(DealerDeskError):
    """The request never reached the backend (DNS, connect, read timeout...)."""


class ApiError(DealerDeskError):
    """Non-2xx response that has no more specific meaning."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class Unauthorized(ApiError):
    """401 from the backend. Always clears the session."""

    def __init__(self, message: str = "Session expired or invalid credential") -> None:
        super().__init__(message, status_code=401)


class InvalidCredentials(ApiError):
    """Login rejected (wrong identifier/password)."""


class NotFound(ApiError):
    """Single entity does not exist."""

    def __init__(self, resource: str, entity_id: object) -> None:
        self.resource = resource
        self.entity_id = entity_id
        super().__init__(f"{resource} {entity_id} not found", status_code=404)


class ValidationError(ApiError):
    """4xx carrying field-level errors, handed to the caller for display."""

    def __init__(
        self,
        message: str,
        field_errors: dict[str, list[str]] | None = None,
        status_code: int | None = 400,
    ) -> None:
        self.field_errors = field_errors or {}
        super().__init__(message, status_code=status_code)


class SessionTimeout(DealerDeskError):
    """The identity check did not settle within the configured bound."""
