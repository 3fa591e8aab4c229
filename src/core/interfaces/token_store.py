"""Credential storage contract.

Why Protocol:
- A structural contract (duck typing) without rigid inheritance.
- File-backed, in-memory and service-token stores are interchangeable and
  testable without coupling the Core to the filesystem.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenStore(Protocol):
    """Holds at most one bearer credential.

    Design rules:
    - Operations are single-value and synchronous; no multi-step transaction.
    - `read` returns None when nothing is stored.
    """

    def save(self, credential: str) -> None:
        ...

    def read(self) -> str | None:
        ...

    def clear(self) -> None:
        ...
