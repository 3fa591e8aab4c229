"""Core interfaces/abstractions.

Why:
- Defines contracts (Protocol) implemented by concrete adapters.
- Inverts dependencies: the Core depends on abstractions.
"""

from core.interfaces.navigator import LOGIN_VIEW, Navigator
from core.interfaces.token_store import TokenStore

__all__ = ["LOGIN_VIEW", "Navigator", "TokenStore"]
