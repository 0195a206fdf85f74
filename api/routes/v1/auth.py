"""
api/routes/v1/auth.py -- Registration, login and identity endpoints.

Routes:
  POST /api/v1/auth/register   -- create a USER account (public)
  POST /api/v1/auth/login      -- password login; returns a bearer token (public)
  GET  /api/v1/auth/me         -- current user info (any role)

There is no logout route: sessions are stateless, so logging out is the
client discarding its token.

Security:
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on login responses.
  Login returns the same error for an unknown email and a wrong password.
  Handlers are plain `def` so bcrypt runs in FastAPI's thread pool instead of
  blocking the event loop.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.models import ErrorDetail, ErrorResponse, LoginRequest, LoginResponse, RegisterRequest, UserResponse
from auth.dependencies import get_current_principal
from auth.errors import InvalidCredentials
from auth.models import Principal, Role, User
from auth.passwords import authenticate_user, hash_password
from auth.store import UserStore
from auth.tokens import SessionTokens

logger = logging.getLogger("helpdesk.api.auth")

# Auth policy:
# - POST /api/v1/auth/register: public -- self-service signup, always role USER
# - POST /api/v1/auth/login:    public -- login endpoint must be unauthenticated
# - GET  /api/v1/auth/me:       requires auth (get_current_principal)
router = APIRouter()


@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Create a new USER account.

    Email uniqueness is enforced by the store's UNIQUE constraint, so two
    concurrent registrations for the same address cannot both succeed.
    """
    user_store: UserStore = request.app.state.user_store
    settings = request.app.state.settings

    if user_store.find_by_email(body.email) is not None:
        raise _email_taken()

    new_user = User(
        email=body.email,
        name=body.name,
        hashed_password=hash_password(body.password, rounds=settings.bcrypt_rounds),
        role=Role.USER,
    )
    try:
        user_id = user_store.create_user(new_user)
    except IntegrityError as exc:
        raise _email_taken() from exc

    logger.info("Registered user %s", user_id)
    return UserResponse.from_user(user_store.find_by_id(user_id))


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a 24-hour bearer token."""
    user_store: UserStore = request.app.state.user_store
    sessions: SessionTokens = request.app.state.sessions
    settings = request.app.state.settings

    try:
        user = authenticate_user(user_store, body.email, body.password, rounds=settings.bcrypt_rounds)
    except InvalidCredentials as exc:
        resp = JSONResponse(
            status_code=401,
            content=ErrorResponse(error=ErrorDetail(code=exc.code, message=str(exc))).model_dump(),
        )
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp

    token = sessions.issue(user.id)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=int(sessions.ttl.total_seconds()),
            user=UserResponse.from_user(user),
        ).model_dump(mode="json"),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.get("/auth/me", response_model=UserResponse)
def me(request: Request, principal: Principal = Depends(get_current_principal)) -> UserResponse:
    """Return identity information for the currently authenticated user."""
    user_store: UserStore = request.app.state.user_store
    user = user_store.find_by_id(principal.user_id)
    if user is None:
        # Deleted between the gate's lookup and this one.
        raise HTTPException(
            status_code=403,
            detail=ErrorDetail(code="forbidden", message="You do not have access to this resource.").model_dump(),
        )
    return UserResponse.from_user(user)


def _email_taken() -> HTTPException:
    return HTTPException(
        status_code=409,
        detail=ErrorDetail(code="conflict", message="An account with that email already exists.").model_dump(),
    )
