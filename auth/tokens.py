"""
auth/tokens.py -- Stateless session tokens (JWT, HS256).

Security design decisions:
  JWT: python-jose with HS256. Issuer and verifier are the same process, so a
       symmetric MAC is sufficient. Tokens carry only the user id (sub) and the
       iat/exp timestamps. The role is NOT a claim: authorization reads it from
       the store on every request (see auth/gate.py).

  Lifetime: fixed 24 hours from issuance. There is no revocation list --
       logout is client-side deletion, and a deleted or demoted account keeps
       a structurally valid token until it expires. The gate's fresh role
       lookup is what makes demotion and deletion effective immediately.

  Failure semantics: authenticate() returns None for a malformed token, a bad
       signature, a foreign algorithm, a missing subject, or an expired token.
       The cases are not distinguished to the caller.

  SECRET_KEY: injected by the caller (create_app builds SessionTokens from the
       validated Settings). This module never reads the environment.

Layer rule: no imports from api/, core/, or tickets/.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.models import SessionClaims

ALGORITHM = "HS256"
SESSION_TTL = timedelta(hours=24)

_BEARER_PREFIX = "Bearer "


class SessionTokens:
    """Issues and verifies session tokens with a process-wide signing key.

    The key is read-only after construction, so one instance is safely shared
    by every request handler.
    """

    def __init__(self, secret_key: str, ttl: timedelta = SESSION_TTL) -> None:
        if not secret_key:
            raise ValueError("SessionTokens requires a non-empty secret key")
        self._secret_key = secret_key
        self.ttl = ttl

    def issue(self, user_id: str, now: datetime | None = None) -> str:
        """Return a signed token for user_id, valid for ttl from now."""
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)

    def claims(self, token: str) -> SessionClaims | None:
        """Verify signature and expiry; return the decoded claims or None."""
        if not isinstance(token, str) or not token:
            return None
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[ALGORITHM])
        except JWTError:
            return None
        subject = payload.get("sub")
        issued_at = payload.get("iat")
        expires_at = payload.get("exp")
        if not isinstance(subject, str) or not subject:
            return None
        if not isinstance(issued_at, int) or not isinstance(expires_at, int):
            return None
        return SessionClaims(
            user_id=subject,
            issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
        )

    def authenticate(self, token: str) -> str | None:
        """Return the user id carried by a valid token, None otherwise."""
        claims = self.claims(token)
        return claims.user_id if claims is not None else None


def bearer_token(header: str | None) -> str | None:
    """Extract the token from an "Authorization: Bearer <token>" header value.

    A missing header, another scheme, or an empty token all return None,
    which callers treat exactly like an invalid token.
    """
    if not header or not header.startswith(_BEARER_PREFIX):
        return None
    token = header[len(_BEARER_PREFIX) :].strip()
    return token or None
