"""
web/routes.py -- Jinja2 template routes for the TaskFlow web UI.

These routes serve server-rendered HTML. They share app.state and the
per-request SessionContext with the API routes but return HTML instead of JSON.

Every page extends layout.html, which embeds the session's anti-CSRF token
once in <meta name="csrf-token">. The page script reads it from there and
attaches it as the X-CSRF-Token header to every mutating fetch() call, so
the token never appears in a URL. Forms that post natively can use
{{ csrf_input(request) }} to carry the same token as a hidden field.

Routes:
  GET  /        -- home page (auth required)
  GET  /login   -- login form; submits to POST /api/v1/auth/login via fetch()
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from markupsafe import Markup, escape

from session.dependencies import get_session, try_get_identity
from session.models import SessionState

logger = logging.getLogger("taskflow.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

# ---------------------------------------------------------------------------
# Template globals
# ---------------------------------------------------------------------------


def csrf_token(request: Request) -> str:
    """Return the session's CSRF token, creating it on first render."""
    return get_session(request).csrf.generate()


def csrf_input(request: Request) -> Markup:
    """Return a hidden <input> carrying the CSRF token for native form posts."""
    token = escape(csrf_token(request))
    return Markup(f'<input type="hidden" name="csrf_token" id="csrf_token" value="{token}">')


templates.env.globals["csrf_token"] = csrf_token
templates.env.globals["csrf_input"] = csrf_input
templates.env.globals["current_identity"] = try_get_identity

# Whitelist mapping for ?error= query params on /login [M3].
# The raw query param is NEVER passed to templates.
_ERROR_MESSAGES: dict[str, str] = {
    "expired": "Your session expired after a period of inactivity. Please log in again.",
    "signed_out": "You have been logged out.",
}


def _require_auth(request: Request) -> Optional[RedirectResponse]:
    """Return a redirect to /login for anonymous requests, None if OK.

    A session that expired on this very request gets ?error=expired so the
    login page can say why the user was signed out.

        if redirect := _require_auth(request):
            return redirect
    """
    if try_get_identity(request) is not None:
        return None
    context = getattr(request.state, "session", None)
    if context is not None and context.state is SessionState.DESTROYED:
        return RedirectResponse("/login?error=expired", status_code=302)
    return RedirectResponse("/login", status_code=302)


@router.get("/", response_class=HTMLResponse)
def home(request: Request) -> HTMLResponse:
    if redirect := _require_auth(request):
        return redirect
    return templates.TemplateResponse(request, "index.html", {"identity": try_get_identity(request)})


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request) -> HTMLResponse:
    """Render the login page. Already-authenticated users go straight to /."""
    if try_get_identity(request) is not None:
        return RedirectResponse("/", status_code=302)
    error_msg = _ERROR_MESSAGES.get(request.query_params.get("error", ""), None)
    return templates.TemplateResponse(request, "login.html", {"error_msg": error_msg})
