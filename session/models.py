"""
session/models.py -- Domain dataclasses for the session layer.

Pattern: Data class (pure data container, near-zero logic). Mirrors
auth/models.py -- dataclasses own domain shape; stores and managers do the work.

Layer rule: no imports from api/, web/, or auth/.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Reserved session keys (backend-internal)
# ---------------------------------------------------------------------------

USER_ID_KEY = "user_id"
IDENTITY_KEY = "user_data"
CSRF_TOKEN_KEY = "csrf_token"
LAST_ACTIVITY_KEY = "last_activity"
LAST_REGENERATE_KEY = "last_regenerate"


class SessionState(str, enum.Enum):
    """Outcome of one InactivityMonitor.check() call."""

    UNESTABLISHED = "unestablished"
    ACTIVE = "active"
    ROTATED = "rotated"
    DESTROYED = "destroyed"


@dataclass
class SessionRecord:
    """Server-side state bound to one session identifier.

    data holds every stored key, the reserved keys above included, plus any
    application key/value pairs. The backend persists data as JSON, so values
    must be JSON-serializable.
    """

    session_id: str
    data: dict[str, Any] = field(default_factory=dict)
    updated_at: float | None = None

    @property
    def csrf_token(self) -> str | None:
        return self.data.get(CSRF_TOKEN_KEY)

    @property
    def last_activity(self) -> float | None:
        return self.data.get(LAST_ACTIVITY_KEY)

    @property
    def last_regenerate(self) -> float | None:
        return self.data.get(LAST_REGENERATE_KEY)

    @property
    def identity_payload(self) -> dict | None:
        return self.data.get(IDENTITY_KEY)


@dataclass
class Identity:
    """The authenticated principal, rehydrated from the session payload.

    job_titles is a list here; the payload may carry either a list or the
    comma-separated string form the login flow historically wrote.
    Dates stay ISO-8601 strings -- this object is read by templates and JSON
    responses, never used for date arithmetic.
    """

    id: int
    public_id: str
    first_name: str
    last_name: str
    role: str
    email: str
    created_at: str
    middle_name: str | None = None
    gender: str | None = None
    birth_date: str | None = None
    job_titles: list[str] = field(default_factory=list)
    contact_number: str | None = None
    bio: str | None = None
    profile_link: str | None = None
    additional_info: str | None = None

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(p for p in parts if p)
