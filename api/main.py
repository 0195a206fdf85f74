"""
api/main.py -- FastAPI application factory for the helpdesk.

Run with:      uvicorn asgi:app --reload

create_app(settings) builds a fully wired app from an injected Settings
instance. asgi.py calls it once with the environment-derived settings; tests
call it with their own. A missing or short SECRET_KEY fails here, at
startup, never on a request.

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. log_requests          -- one log line per request with latency

Lifespan handles startup (stores, session signer, access gate, upload dir)
and shutdown (dispose DB engines) symmetrically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.admin import router as admin_router
from api.routes.v1.agent import router as agent_router
from api.routes.v1.auth import router as auth_router
from api.routes.v1.tickets import router as tickets_router
from api.routes.v1.uploads import router as uploads_router
from auth.gate import AccessGate
from auth.passwords import dummy_hash
from auth.store import UserStore
from auth.tokens import SessionTokens
from core.config import Settings, get_settings
from tickets.store import TicketStore

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("helpdesk.api")


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. The gate is built last because it needs both the user store
    and the session signer.
    """
    settings: Settings = app.state.settings
    logger.info("Helpdesk API starting up")

    app.state.user_store = UserStore(settings.database_url)
    app.state.ticket_store = TicketStore(settings.database_url)
    app.state.sessions = SessionTokens(settings.secret_key)
    app.state.gate = AccessGate(app.state.user_store, app.state.sessions)
    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    dummy_hash(settings.bcrypt_rounds)  # login timing equalization at the configured cost
    logger.info("Stores initialized (uploads in %s)", settings.upload_dir)

    yield

    app.state.ticket_store.close()
    app.state.user_store.close()
    logger.info("Helpdesk API shutdown complete")


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str([{"loc": e.get("loc"), "msg": e.get("msg")} for e in exc.errors()]),
            )
        ).model_dump(),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with detail=ErrorDetail(...).model_dump()
    (a dict). When detail is already a structured dict, use it directly as the
    error field rather than stringifying it -- str(dict) produces a Python repr,
    not JSON.
    """
    headers = getattr(exc, "headers", None)
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=headers)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=headers,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Wall-clock time is captured around call_next so latency is
# reported on every response.
# ---------------------------------------------------------------------------


async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Health endpoint
#
# Registered directly on the app (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=__version__)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the helpdesk ASGI app.

    With no argument, settings come from get_settings(), which raises
    ConfigurationError when SECRET_KEY is missing or too short.
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="Helpdesk API",
        description="Role-based support ticketing: users file tickets, agents work them, admins triage.",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.settings = settings

    # Starlette wraps middleware in reverse registration order: the last one
    # added is outermost. Register innermost first.
    app.middleware("http")(log_requests)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PATCH"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.add_api_route("/api/v1/health", health, methods=["GET"], response_model=HealthResponse, tags=["Health"])
    app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
    app.include_router(tickets_router, prefix="/api/v1", tags=["Tickets"])
    app.include_router(agent_router, prefix="/api/v1", tags=["Agent"])
    app.include_router(admin_router, prefix="/api/v1", tags=["Admin"])
    app.include_router(uploads_router, prefix="/api/v1", tags=["Uploads"])

    # check_dir=False: the directory is created by the lifespan, after this runs.
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")

    return app
