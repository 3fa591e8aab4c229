"""Credential stores.

Why in adapters:
- Where the credential lives (a file, memory, the environment) is an
  infrastructure detail. The Core only knows `core.interfaces.TokenStore`.

The file store mirrors a browser's persistent key-value storage: one JSON
object, one fixed key, survives restarts.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"


class FileTokenStore:
    """Persists the bearer credential under `TOKEN_KEY` in a JSON file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, object]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.warning("Ignoring unreadable credential file %s", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def save(self, credential: str) -> None:
        data = self._load()
        data[TOKEN_KEY] = credential
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")
        try:
            self._path.chmod(0o600)
        except OSError:
            pass

    def read(self) -> str | None:
        value = self._load().get(TOKEN_KEY)
        if isinstance(value, str) and value:
            return value
        return None

    def clear(self) -> None:
        data = self._load()
        if TOKEN_KEY not in data:
            return
        del data[TOKEN_KEY]
        if data:
            self._path.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")
        else:
            self._path.unlink(missing_ok=True)
        logger.debug("Cleared stored credential at %s", self._path)


class MemoryTokenStore:
    """Process-local store (tests, throwaway sessions)."""

    def __init__(self, credential: str | None = None) -> None:
        self._credential = credential

    def save(self, credential: str) -> None:
        self._credential = credential

    def read(self) -> str | None:
        return self._credential

    def clear(self) -> None:
        self._credential = None

