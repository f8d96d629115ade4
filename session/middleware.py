"""
session/middleware.py -- HTTP middleware that drives the session lifecycle.

Pattern: Interceptor. Registered in api/main.py with
    app.middleware("http")(session_lifecycle)

For every request (except the exempt paths below):
  1. Read the session identifier from the cookie -- cookie only [S5].
  2. Acquire the per-session lock for that identifier.
  3. Open a SessionContext, run restore -> inactivity check -> identity restore.
  4. Expose the context as request.state.session and call the route.
  5. Commit: persist the record, set or delete the cookie on the response.

Collaborators are read from app.state, wired in the lifespan:
  app.state.settings         -- core.config.Settings
  app.state.session_backend  -- session.backend.SessionBackend
  app.state.session_clock    -- () -> float epoch seconds (time.time)

Concurrency: requests carrying the same cookie are serialized by an
asyncio.Lock held from restore to commit. Without it, two parallel requests
could both rotate the identifier and one would silently drop the other's
writes -- including a freshly generated CSRF token. The lock is process-local:
it is only sufficient for single-process deployments (see DESIGN.md).

A SessionBackendUnavailable raised anywhere in the lifecycle ends the request
with 503. Middleware runs outside FastAPI's exception handlers, so the
response is built here rather than in api/main.py.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Request
from fastapi.responses import JSONResponse

from core.config import get_settings
from session.context import SessionContext
from session.errors import SessionBackendUnavailable

logger = logging.getLogger("taskflow.session")

# Requests that never touch the session: load balancer probes and static assets.
EXEMPT_PATHS = ("/api/v1/health",)
EXEMPT_PREFIXES = ("/static/",)


class SessionLocks:
    """One asyncio.Lock per session identifier, dropped when nobody holds or waits.

    All bookkeeping happens on the event loop thread, so the dict needs no
    extra synchronization.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: Counter[str] = Counter()

    @asynccontextmanager
    async def hold(self, session_id: str | None) -> AsyncIterator[None]:
        if not session_id:
            # A fresh session has a brand-new identifier nobody else knows yet.
            yield
            return
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._users[session_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[session_id] -= 1
            if self._users[session_id] <= 0:
                del self._users[session_id]
                self._locks.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._locks)


def _unavailable_response() -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={
            "error": {
                "code": "session_unavailable",
                "message": "The service is temporarily unavailable. Please retry later.",
            }
        },
    )


async def session_lifecycle(request: Request, call_next):
    path = request.url.path
    if path in EXEMPT_PATHS or path.startswith(EXEMPT_PREFIXES):
        return await call_next(request)

    state = request.app.state
    settings = getattr(state, "settings", None) or get_settings()
    backend = getattr(state, "session_backend", None)
    if backend is None:
        logger.error("No session backend configured; refusing %s %s", request.method, path)
        return _unavailable_response()
    clock = getattr(state, "session_clock", time.time)
    locks: SessionLocks | None = getattr(state, "session_locks", None)
    if locks is None:
        locks = state.session_locks = SessionLocks()

    cookie_id = request.cookies.get(settings.session_cookie_name)
    async with locks.hold(cookie_id):
        try:
            context = SessionContext.open(backend, settings, session_id=cookie_id, clock=clock)
            context.start()
        except SessionBackendUnavailable:
            logger.exception("Session backend unavailable on %s %s", request.method, path)
            return _unavailable_response()

        request.state.session = context
        response = await call_next(request)

        try:
            context.commit(response)
        except SessionBackendUnavailable:
            logger.exception("Session could not be saved on %s %s", request.method, path)
            return _unavailable_response()
    return response
