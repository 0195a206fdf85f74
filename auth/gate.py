"""
auth/gate.py -- Two-stage access control: authenticate, then authorize.

Every protected operation goes through AccessGate.require_role(), which
always runs the stages in this order:

  1. authenticate -- verify the session token. Failure raises Unauthenticated
     (HTTP 401) before any role is looked at.
  2. authorize    -- fresh store lookup of the caller's current role. A
     deleted account or a role outside allowed_roles raises Forbidden (403).
  3. ownership    -- optional predicate supplied by the resource owner (e.g.
     "this ticket is assigned to the caller"), evaluated only after stage 2
     passed. Failure raises Forbidden.

The role is never cached in the token or here. A role change made by an
admin is honored on the caller's very next request, with the same token.

Layer rule: no imports from api/, core/, or tickets/.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Protocol

from auth.errors import Forbidden, Unauthenticated
from auth.models import Principal, Role, User
from auth.tokens import SessionTokens

logger = logging.getLogger("helpdesk.auth")

OwnershipCheck = Callable[[Principal], bool]


class CredentialStore(Protocol):
    """The user lookups the gate depends on. auth.store.UserStore satisfies it."""

    def find_by_id(self, user_id: str) -> User | None: ...

    def find_by_email(self, email: str) -> User | None: ...


class AccessGate:
    """Composes SessionTokens and a CredentialStore into per-request checks."""

    def __init__(self, store: CredentialStore, sessions: SessionTokens) -> None:
        self.store = store
        self.sessions = sessions

    def authorize(self, user_id: str, allowed_roles: Role | Iterable[Role]) -> Principal | None:
        """Return a Principal if user_id currently holds an allowed role, else None."""
        allowed = _as_role_set(allowed_roles)
        user = self.store.find_by_id(user_id)
        if user is None:
            return None
        if user.role not in allowed:
            return None
        return Principal(user_id=user.id, role=user.role)

    def require_role(
        self,
        token: str | None,
        allowed_roles: Role | Iterable[Role],
        owns: OwnershipCheck | None = None,
    ) -> Principal:
        """Authenticate token, authorize its user, then apply the ownership check.

        Raises Unauthenticated or Forbidden. Neither carries any detail about
        which check failed.
        """
        user_id = self.sessions.authenticate(token) if token else None
        if user_id is None:
            raise Unauthenticated()
        principal = self.authorize(user_id, allowed_roles)
        if principal is None:
            logger.info("Access denied for user %s (role check)", user_id)
            raise Forbidden()
        if owns is not None and not owns(principal):
            logger.info("Access denied for user %s (ownership check)", user_id)
            raise Forbidden()
        return principal


def _as_role_set(allowed_roles: Role | Iterable[Role]) -> frozenset[Role]:
    if isinstance(allowed_roles, (Role, str)):
        return frozenset({Role(allowed_roles)})
    return frozenset(Role(r) for r in allowed_roles)
