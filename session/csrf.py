"""
session/csrf.py -- Anti-forgery token issue and validation.

One token per session, created lazily on first need and never rotated
implicitly: replacing it would break every open form and tab still holding
the old value. Identifier rotation (SessionStore.regenerate) copies it forward.

protect() gates state-mutating requests (POST, PUT, PATCH, DELETE). The
candidate token is read from a dedicated request header only -- never from
the body or query string -- which keeps it out of access logs and cached
URLs. Safe methods (GET, HEAD, OPTIONS) are never checked.

Layer rule: no imports from api/, web/, or auth/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

from session.errors import CsrfError
from session.models import CSRF_TOKEN_KEY
from session.store import SessionStore
from session.tokens import constant_time_equals, generate_token, short

logger = logging.getLogger("taskflow.csrf")

CSRF_HEADER = "X-CSRF-Token"
MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class CsrfTokenManager:
    """Generate, store and validate the session's anti-CSRF token.

    Usage:
        csrf = CsrfTokenManager(store)
        token = csrf.generate()              # embed in the page
        csrf.protect(request.method, request.headers)   # raises CsrfError
    """

    def __init__(
        self,
        store: SessionStore,
        header_name: str = CSRF_HEADER,
        token_factory: Callable[[], str] = generate_token,
    ) -> None:
        self._store = store
        self.header_name = header_name
        self._token_factory = token_factory

    def generate(self) -> str:
        """Return the session's token, creating it if none exists yet.

        A session that expired earlier in this request is replaced by a fresh
        one, so pages rendered for the now-anonymous client still get a token.
        """
        if not self._store.is_active():
            self._store.create()
        if not self._store.has(CSRF_TOKEN_KEY):
            self._store.set(CSRF_TOKEN_KEY, self._token_factory())
        return self._store.get(CSRF_TOKEN_KEY)

    def get(self) -> str | None:
        """Return the stored token without side effects."""
        if not self._store.is_active():
            return None
        return self._store.get(CSRF_TOKEN_KEY)

    def set(self, token: str) -> None:
        """Overwrite the stored token. Not used by normal request processing."""
        self._store.set(CSRF_TOKEN_KEY, token)

    def validate(self, candidate: str | None) -> bool:
        """True only if a token is stored and candidate matches it exactly.

        Uses a constant-time comparison so response timing does not reveal
        how many leading characters of a guess were right.
        """
        stored = self.get()
        if not stored or not candidate:
            return False
        return constant_time_equals(stored, candidate)

    @staticmethod
    def is_mutating(method: str) -> bool:
        return method.upper() in MUTATING_METHODS

    def protect(self, method: str, headers: Mapping[str, str]) -> None:
        """Raise CsrfError if a mutating request lacks a valid token header."""
        if not self.is_mutating(method):
            return
        candidate = headers.get(self.header_name) or ""
        if not self.validate(candidate):
            logger.warning(
                "CSRF check failed for %s in session %s (header %s)",
                method.upper(),
                short(self._store.session_id or ""),
                "present" if candidate else "missing",
            )
            raise CsrfError("CSRF Protection: Invalid Token")
