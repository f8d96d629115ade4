"""
API request and response models for TaskFlow REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in session/models.py and
auth/models.py, which own the internal domain representation. Route handlers
map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class CsrfTokenResponse(BaseModel):
    """Response for GET /api/v1/session/csrf.

    Client-side code attaches csrf_token to the X-CSRF-Token header of every
    POST/PUT/PATCH/DELETE it sends.
    """

    model_config = ConfigDict(frozen=True)

    csrf_token: str
    header_name: str


class SessionStatusResponse(BaseModel):
    """Response for GET /api/v1/session."""

    model_config = ConfigDict(frozen=True)

    active: bool
    authenticated: bool
    state: str


class MeResponse(BaseModel):
    """Response for GET /api/v1/auth/me and POST /api/v1/auth/login."""

    model_config = ConfigDict(frozen=True)

    public_id: str
    email: str
    full_name: str
    role: str
    job_titles: list[str] = []


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = {}
