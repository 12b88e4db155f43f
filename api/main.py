"""
api/main.py -- FastAPI application entry point for the SSO core.

Run with:  python main.py serve
           uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. log_requests      -- method, path, status, latency for every request
  2. enforce_deadline  -- opens the per-request deadline scope that the
                          storage engine checks before every SQL statement
  3. CORSMiddleware    -- adds CORS headers for configured browser origins

Lifespan opens the storage engine (connection pool) on startup, wires the
services onto app.state, and disposes the engine on shutdown.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.errors import sso_error_handler
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.apps import router as apps_router
from api.routes.v1.auth import router as auth_router
from api.routes.v1.permissions import router as permissions_router
from auth.gate import AuthorizationGate
from auth.tokens import TokenIssuer
from core.config import get_settings
from core.deadline import request_deadline
from core.errors import SSOError
from core.log import setup_logging
from services.apps import AppService
from services.auth import AuthService
from services.permissions import PermissionService
from storage.store import Storage

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

_settings = get_settings()
setup_logging(_settings.env)
logger = logging.getLogger("sso.api")


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def attach_services(app: FastAPI, storage: Storage, token_ttl: timedelta) -> None:
    """Build the service graph on top of one Storage and park it on app.state.

    Storage plays every capability role (credentials, apps, ledger, unit of
    work); each service only sees the ones it declares.
    """
    issuer = TokenIssuer()
    gate = AuthorizationGate(apps=storage, ledger=storage, issuer=issuer)
    app.state.storage = storage
    app.state.auth_service = AuthService(
        users=storage, apps=storage, ledger=storage, issuer=issuer, token_ttl=token_ttl
    )
    app.state.permission_service = PermissionService(users=storage, apps=storage, ledger=storage, gate=gate)
    app.state.app_service = AppService(users=storage, apps=storage, ledger=storage, gate=gate, uow=storage)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the storage pool on startup and release it on shutdown."""
    logger.info("SSO API starting up (env=%s)", _settings.env)
    storage = Storage(_settings.database_url)
    attach_services(app, storage, _settings.token_ttl)
    logger.info("Storage initialized")

    yield

    app.state.storage.close()
    logger.info("SSO API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SSO API",
    description="Multi-tenant authentication: per-app session tokens and creator/admin roles.",
    version=VERSION,
    lifespan=lifespan,
    # The interactive docs expose the full surface; keep them off in production.
    docs_url=None if _settings.env == "prod" else "/docs",
    redoc_url=None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-Request-Timeout"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Deadline middleware
#
# The server-wide budget comes from SSO_REQUEST_TIMEOUT_SECONDS. A client may ask
# for a shorter one with "X-Request-Timeout: <seconds>"; larger, zero,
# negative or unparsable values are ignored.
# ---------------------------------------------------------------------------


def _requested_timeout(request: Request) -> float:
    budget = _settings.request_timeout_seconds
    raw = request.headers.get("x-request-timeout")
    if raw:
        try:
            requested = float(raw)
        except ValueError:
            return budget
        if math.isfinite(requested) and requested > 0:
            return min(budget, requested)
    return budget


@app.middleware("http")
async def enforce_deadline(request: Request, call_next):
    with request_deadline(_requested_timeout(request)):
        return await call_next(request)


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
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
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(permissions_router, prefix="/api/v1", tags=["Permissions"])
app.include_router(apps_router, prefix="/api/v1", tags=["Apps"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------

app.add_exception_handler(SSOError, sso_error_handler)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for framework-level HTTP errors (404, 405, ...)."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
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
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"], response_model=HealthResponse)
def health(request: Request) -> HealthResponse:
    """Return liveness, version and a database round-trip check."""
    database = "ok" if request.app.state.storage.ping() else "error"
    status = "healthy" if database == "ok" else "degraded"
    return HealthResponse(status=status, version=VERSION, components={"app": "ok", "database": database})
