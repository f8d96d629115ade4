"""
api/routes/v1/session.py -- Session introspection and CSRF token exposure.

Routes:
  GET /api/v1/session/csrf  -- the session's anti-CSRF token (created on demand)
  GET /api/v1/session       -- whether a session is active / authenticated

Both are safe methods, so exposing the token here does not weaken the CSRF
gate: a cross-site page can trigger the GET but cannot read the response.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.models import CsrfTokenResponse, SessionStatusResponse
from session.context import SessionContext
from session.dependencies import get_session

router = APIRouter()


@router.get("/session/csrf", response_model=CsrfTokenResponse)
async def csrf_token(context: SessionContext = Depends(get_session)) -> JSONResponse:
    body = CsrfTokenResponse(csrf_token=context.csrf.generate(), header_name=context.csrf.header_name)
    resp = JSONResponse(content=body.model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/session", response_model=SessionStatusResponse)
async def session_status(context: SessionContext = Depends(get_session)) -> SessionStatusResponse:
    return SessionStatusResponse(
        active=context.store.is_active(),
        authenticated=context.current_identity is not None,
        state=context.state.value,
    )
