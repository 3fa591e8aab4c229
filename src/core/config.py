"""Core configuration.

Why here:
- Centralizes environment variables (pydantic-settings) away from the CLI.
- Lets adapters (HTTP, token store, PDF, maps) read config consistently.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_user_config_dir() -> Path:
    """Per-user configuration directory (cross-platform, no dependencies).

    Also hosts the persisted session credential, so it must be writable.
    """

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "dealerdesk"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "dealerdesk"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "dealerdesk"
    return Path.home() / ".config" / "dealerdesk"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str | None]) -> Path:
    """Write/update variables in the user's global .env."""

    env_path = get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# dealerdesk user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Central application configuration.

    Why pydantic-settings:
    - Typed, validated env vars at the edge without leaking into the Core.
    - A single configuration contract for CLI and adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="DEALERDESK_",
        extra="ignore",
        case_sensitive=False,
        # Order: project first (dev), then the user's global config.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    backend_url: str = Field(
        default="http://localhost:1337",
        min_length=8,
        description="Base URL of the CMS backend (without the /api suffix).",
    )
    api_token: str | None = Field(
        default=None,
        description="Optional backend API token for non-interactive (service) use.",
    )
    jwt_secret: str | None = Field(
        default=None,
        description="Credential-signing secret; enables signature checks on stored tokens.",
    )
    maps_api_key: str | None = Field(
        default=None,
        description="Maps API key used to build sales-monitoring static maps.",
    )

    http_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Per-request timeout (seconds).",
    )
    session_check_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Upper bound for the startup identity check (seconds).",
    )
    user_agent: str = Field(
        default="dealerdesk/0.1",
        min_length=1,
        description="User-Agent sent to the backend.",
    )
    page_size: int = Field(
        default=25,
        ge=1,
        le=100,
        description="Default page size for list views.",
    )
    dealer_name: str = Field(
        default="Dealer",
        min_length=1,
        description="Dealership name printed on order documents.",
    )
    editor_roles: list[str] = Field(
        default_factory=lambda: ["ADMIN", "MANAGER"],
        description="Roles allowed to create and update records.",
    )
    admin_roles: list[str] = Field(
        default_factory=lambda: ["ADMIN"],
        description="Roles allowed to delete records.",
    )
    token_path: Path | None = Field(
        default=None,
        description="Override for the persisted credential file.",
    )
    log_level: str = Field(
        default="WARNING",
        description="Logging level for the CLI (DEBUG, INFO, WARNING, ERROR).",
    )

    @property
    def api_base_url(self) -> str:
        return self.backend_url.rstrip("/") + "/api"

    def resolved_token_path(self) -> Path:
        return self.token_path or (get_user_config_dir() / "session.json")
