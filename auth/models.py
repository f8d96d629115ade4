"""
auth/models.py -- Domain dataclass for the user account behind a login.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in session/models.py -- dataclasses own domain shape; stores and routes do
the work.

Only the fields the login flow needs to authenticate a user and to build the
session identity payload live here. Projects, tasks and worker assignments
are owned elsewhere.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLES = ("projectManager", "worker")


@dataclass
class User:
    """A TaskFlow account.

    public_id is the externally visible identifier (UUID string); id is the
    database key and never leaves the server except inside the session.
    job_titles is stored comma-separated, the same form the identity payload
    accepts.
    """

    email: str
    first_name: str
    last_name: str
    role: str  # "projectManager", "worker"
    hashed_password: str
    id: int | None = None
    public_id: str | None = None
    middle_name: str | None = None
    gender: str | None = None  # "male", "female"
    birth_date: str | None = None  # YYYY-MM-DD
    job_titles: str = ""
    contact_number: str | None = None
    bio: str | None = None
    profile_link: str | None = None
    additional_info: str | None = None
    created_at: str | None = None
    is_active: bool = True
