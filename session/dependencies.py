"""
session/dependencies.py -- FastAPI Depends() helpers for the session layer.

get_session()          -- the request's SessionContext (set by the middleware).
require_csrf()         -- CSRF gate; attach to routers that mutate state:
                              APIRouter(dependencies=[Depends(require_csrf)])
                          Safe methods pass through untouched.
try_get_identity()     -- soft variant, returns None for anonymous requests.
get_current_identity() -- raises HTTP 401 when nobody is logged in.

CsrfError propagates as an exception; api/main.py maps it to a 403 with a
generic message.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from session.context import SessionContext
from session.errors import SessionNotStartedError
from session.models import Identity


def get_session(request: Request) -> SessionContext:
    context = getattr(request.state, "session", None)
    if context is None:
        raise SessionNotStartedError(f"No session context on {request.url.path}; is session_lifecycle installed?")
    return context


def require_csrf(request: Request) -> None:
    get_session(request).csrf.protect(request.method, request.headers)


def try_get_identity(request: Request) -> Identity | None:
    context = getattr(request.state, "session", None)
    if context is None:
        return None
    return context.current_identity


def get_current_identity(request: Request) -> Identity:
    """Require an authenticated identity. Raises HTTP 401 otherwise.

    An expired session reaches here as anonymous -- inactivity is a state
    transition, not an error, and this is where it becomes a 401.
    """
    identity = try_get_identity(request)
    if identity is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return identity
