"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

One auth method: the "Authorization: Bearer <token>" header. A missing or
malformed header is treated exactly like an invalid token.

require_roles(*roles) builds a dependency that runs the AccessGate's
two-stage check and returns the caller's Principal:
  - HTTP 401 when the token is missing, malformed, forged or expired.
  - HTTP 403 when the token is fine but the account is gone or its current
    role is not allowed.

guard() is the same check with an optional ownership predicate, for routes
that need to look at the resource before deciding (see api/access.py).

Layer rule: no imports from api/, core/, or tickets/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from typing import Callable, Iterable

from fastapi import HTTPException, Request

from auth.errors import AuthError, Forbidden, Unauthenticated
from auth.gate import AccessGate, OwnershipCheck
from auth.models import ALL_ROLES, Principal, Role
from auth.tokens import bearer_token


def get_gate(request: Request) -> AccessGate:
    return request.app.state.gate


def http_error(exc: AuthError) -> HTTPException:
    """Translate an auth-core exception into the API's structured HTTPException."""
    if isinstance(exc, Unauthenticated):
        status_code = 401
    elif isinstance(exc, Forbidden):
        status_code = 403
    else:
        status_code = 400
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return HTTPException(
        status_code=status_code,
        detail={"code": exc.code, "message": str(exc)},
        headers=headers,
    )


def guard(
    request: Request,
    allowed_roles: Iterable[Role],
    owns: OwnershipCheck | None = None,
) -> Principal:
    """Run authenticate -> authorize -> ownership for the current request."""
    token = bearer_token(request.headers.get("Authorization"))
    try:
        return get_gate(request).require_role(token, allowed_roles, owns=owns)
    except (Unauthenticated, Forbidden) as exc:
        raise http_error(exc) from None


def require_roles(*roles: Role) -> Callable[[Request], Principal]:
    """Return a dependency that admits callers holding one of roles.

    Use as a FastAPI dependency:
        @router.patch("/admin/users/{user_id}/role")
        def route(principal: Principal = Depends(require_roles(Role.ADMIN))): ...
    """
    allowed = frozenset(roles) or ALL_ROLES

    def dependency(request: Request) -> Principal:
        return guard(request, allowed)

    return dependency


# Any signed-in account whose record still exists.
get_current_principal = require_roles(*ALL_ROLES)
require_agent = require_roles(Role.AGENT)
require_admin = require_roles(Role.ADMIN)
