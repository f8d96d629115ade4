"""
api/routes/v1/auth.py -- Login, logout and current-identity endpoints.

Routes:
  POST /api/v1/auth/login   -- email/password login; rotates the session id
  POST /api/v1/auth/logout  -- destroys the session; cookie deleted on response
  GET  /api/v1/auth/me      -- current identity (requires auth)

Security:
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [C3] Every mutating route on this router requires a valid X-CSRF-Token
       header (router-level require_csrf dependency). That includes login:
       a forged login request could otherwise sign the victim into an
       attacker-controlled account.
  [M5] Cache-Control: no-store on login responses.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import LoginRequest, MeResponse, MessageResponse
from auth.passwords import authenticate_user
from auth.session_auth import destroy_session, set_authorized_session
from auth.store import UserStore
from session.context import SessionContext
from session.dependencies import get_current_identity, get_session, require_csrf
from session.models import Identity

router = APIRouter(dependencies=[Depends(require_csrf)])  # [C3]


def _me(identity: Identity) -> MeResponse:
    return MeResponse(
        public_id=identity.public_id,
        email=identity.email,
        full_name=identity.full_name,
        role=identity.role,
        job_titles=identity.job_titles,
    )


@router.post("/auth/login", response_model=MeResponse)
def login(
    request: Request,
    body: LoginRequest,
    context: SessionContext = Depends(get_session),
) -> JSONResponse:
    """Authenticate with email and password and bind the user to the session.

    Returns the same generic error for an unknown email and a wrong password
    so the response does not reveal which accounts exist.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid email or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp

    identity = set_authorized_session(context, user)
    resp = JSONResponse(status_code=200, content=_me(identity).model_dump())
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
async def logout(context: SessionContext = Depends(get_session)) -> MessageResponse:
    """End the session. The middleware deletes the cookie on the way out."""
    destroy_session(context)
    return MessageResponse(message="Logged out.")


@router.get("/auth/me", response_model=MeResponse)
async def me(identity: Identity = Depends(get_current_identity)) -> MeResponse:
    """Return identity information for the currently authenticated user."""
    return _me(identity)
