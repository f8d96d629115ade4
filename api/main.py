"""
api/main.py -- FastAPI application entry point for TaskFlow.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. log_requests        -- method, path, status, latency for every request
  2. CORSMiddleware      -- CORS headers for allowed browser origins
  3. session_lifecycle   -- restore / expire / rotate the session, commit it
                            and its cookie on the way out (session/middleware.py)

CSRF is not a middleware: it is a router-level dependency (require_csrf) so
that exactly the state-mutating API routes are gated, and the failure is a
normal exception mapped to 403 below.

Lifespan handles startup (settings, session backend, user store, purge task)
and shutdown (cancel purge task, close DB connections) symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.session import router as session_router
from auth.store import UserStore
from core.config import get_settings
from session.backend import SessionBackend, SqlSessionBackend
from session.errors import ForbiddenError, SessionBackendUnavailable
from session.middleware import SessionLocks, session_lifecycle

__version__ = "0.3.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("taskflow.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Delete session records idle longer than the inactivity timeout.

    Expired sessions are already rejected on access; this only reclaims
    storage, including identifiers kept alive by regenerate(delete_old=False).
    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine cleanly.
    """
    settings = app.state.settings
    while True:
        await asyncio.sleep(settings.session_purge_interval)
        backend: SessionBackend = app.state.session_backend
        try:
            removed = backend.purge_expired(settings.session_inactivity_timeout)
        except SessionBackendUnavailable:
            logger.exception("Session purge failed")
            continue
        if removed:
            logger.info("Purged %d stale session records", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order matters:
      1. Settings first -- everything else is configured from them.
      2. Session backend -- SqlSessionBackend raises SessionBackendUnavailable
         if the storage medium cannot be opened, and the server refuses to
         start rather than serve requests with no session layer.
      3. User store.
      4. Purge task last -- references app.state.session_backend.
    """
    logger.info("TaskFlow API starting up")
    settings = get_settings()
    app.state.settings = settings
    app.state.session_backend = (
        SqlSessionBackend(settings.session_db_url) if settings.session_db_url else SqlSessionBackend()
    )
    app.state.session_clock = time.time
    app.state.session_locks = SessionLocks()
    logger.info(
        "Sessions initialized (timeout=%ds, rotation=%ds, cookie=%s)",
        settings.session_inactivity_timeout,
        settings.session_rotation_interval,
        settings.session_cookie_name,
    )
    app.state.user_store = UserStore(settings.auth_db_url) if settings.auth_db_url else UserStore()
    logger.info("Auth initialized")
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    app.state.session_backend.close()
    app.state.user_store.close()
    logger.info("TaskFlow API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="TaskFlow API",
    description="Project, task and worker management.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette wraps middleware so that the LAST registered is the OUTERMOST.
# session_lifecycle is registered first so it sits closest to the routes.
# ---------------------------------------------------------------------------

app.middleware("http")(session_lifecycle)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_credentials=True,  # session cookie
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "X-CSRF-Token"],
    max_age=3600,
)


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
app.include_router(session_router, prefix="/api/v1", tags=["Session"])
# Web UI router is mounted by asgi.py, not here.


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(ForbiddenError)
async def forbidden_handler(request: Request, exc: ForbiddenError) -> JSONResponse:
    """Return 403 for CSRF and other authorization rejections.

    The exception message (e.g. which check failed) is logged by the raiser
    and never returned -- the client only learns that the action was rejected.
    """
    return JSONResponse(
        status_code=403,
        content=ErrorResponse(
            error=ErrorDetail(code="forbidden", message="Action rejected. Please retry.")
        ).model_dump(),
    )


@app.exception_handler(SessionBackendUnavailable)
async def session_unavailable_handler(request: Request, exc: SessionBackendUnavailable) -> JSONResponse:
    """Return 503 when session storage fails inside a route handler."""
    logger.error("Session backend unavailable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content=ErrorResponse(
            error=ErrorDetail(
                code="session_unavailable",
                message="The service is temporarily unavailable. Please retry later.",
            )
        ).model_dump(),
    )


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


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
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
# Health endpoint
#
# Exempt from session handling (session/middleware.py EXEMPT_PATHS) so load
# balancer probes do not mint a session record per hit.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return API liveness, version and component status."""
    backend = getattr(request.app.state, "session_backend", None)
    components = {"app": "ok", "sessions": "ok" if backend is not None else "error"}
    return HealthResponse(version=__version__, components=components)
