"""Local inspection of the stored bearer credential (PyJWT).

The backend issues JWTs. Decoding one locally lets the session skip the
network round-trip when the token is obviously expired or was signed with a
different secret. Opaque (non-JWT) credentials are left to the identity check.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

import jwt  # PyJWT

_ALGORITHMS = ["HS256", "HS384", "HS512"]


@dataclass(frozen=True)
class CredentialInfo:
    subject: str | None
    expires_at: datetime | None
    signature_checked: bool
    signature_valid: bool = True

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at

    def is_usable(self, now: datetime | None = None) -> bool:
        return self.signature_valid and not self.is_expired(now)


def inspect_credential(token: str, secret: str | None = None) -> CredentialInfo | None:
    """Decode `token` without contacting the backend.

    Returns None when the credential is not a JWT. When `secret` is given the
    signature is verified; expiry is always reported, never enforced here.
    """

    options = {"verify_exp": False}
    try:
        if secret:
            claims = jwt.decode(token, secret, algorithms=_ALGORITHMS, options=options)
        else:
            claims = jwt.decode(token, options={**options, "verify_signature": False})
    except jwt.InvalidSignatureError:
        return CredentialInfo(subject=None, expires_at=None, signature_checked=True, signature_valid=False)
    except jwt.PyJWTError:
        return None

    exp = claims.get("exp")
    expires_at = None
    if isinstance(exp, (int, float)):
        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)

    subject = claims.get("id", claims.get("sub"))
    return CredentialInfo(
        subject=str(subject) if subject is not None else None,
        expires_at=expires_at,
        signature_checked=bool(secret),
    )
