"""
auth/passwords.py -- Password hashing and timing-equalized login checks.

Security design decisions:
  Passwords: bcrypt directly (no passlib wrapper). Bcrypt's cost factor makes
       brute-force expensive, which is what low-entropy secrets need.

  Timing: _DUMMY_HASH lets authenticate_user() run bcrypt even when the email
       is unknown, so response time does not reveal whether an account
       exists [C1].

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import bcrypt

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("taskflow.auth")


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt ignores input past 72 bytes; the API layer caps passwords at 255
    characters (Pydantic field), which is the accepted trade-off.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the DB: treat as a failed login, not a crash.
        logger.warning("Stored password hash is malformed")
        return False


# Computed once at import so the first login is not measurably slower.
_DUMMY_HASH: str = hash_password("taskflow_timing_dummy")


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Authenticate an email/password login with timing equalization [C1].

    Returns the User on success, None on any failure.
    """
    user = store.get_by_email(email)
    if user is None:
        # Equalize timing -- do NOT return before running bcrypt.
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    if not user.is_active:
        return None
    return user
