"""
session/store.py -- Lifecycle of one server-side session record per client.

SessionStore is constructed once per inbound request (see session/context.py)
with the identifier the client presented in its cookie. It is the single
point of truth for session presence, field access, identifier rotation and
destruction during that request; commit() writes the outcome back to the
backend and onto the response cookie.

State machine (per record):
  Unestablished --create()--> Active --destroy()--> Destroyed
  Active --regenerate()--> Active (new session_id, same data)
  Destroyed is terminal for the record; a later create() mints a fresh one.

Security:
  [S4] Strict mode. An identifier the backend does not know is never adopted:
       create() mints a fresh one instead. A client cannot choose its own
       session identifier (fixation).
  [S5] Cookie-only transport. The identifier is passed in by the middleware
       from request.cookies -- never from the query string or body.
  [S6] regenerate() saves the complete record under the new identifier before
       the old one is touched, so the CSRF token is never observable as
       missing under either identifier.

Layer rule: no imports from api/, web/, or auth/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from core.config import SessionCookieConfig
from session.backend import SessionBackend
from session.errors import SessionNotStartedError
from session.identity import IdentityCache
from session.models import IDENTITY_KEY, Identity, SessionRecord
from session.tokens import generate_token, short

if TYPE_CHECKING:
    from starlette.responses import Response

logger = logging.getLogger("taskflow.session")


class SessionStore:
    """Request-scoped handle on one session record.

    Usage:
        store = SessionStore(backend, cookie_config, session_id=request.cookies.get(name))
        store.restore()
        store.set("theme", "dark")
        store.commit(response)
    """

    def __init__(
        self,
        backend: SessionBackend,
        cookie: SessionCookieConfig,
        session_id: str | None = None,
        deserializer: Callable[[Any], Identity] | None = None,
        token_factory: Callable[[], str] = generate_token,
    ) -> None:
        self._backend = backend
        self._cookie = cookie
        self._token_factory = token_factory
        # What the client sent. Compared in commit() to decide on Set-Cookie.
        self._incoming_id = session_id or None
        # What create() will try to load. Cleared once consumed or destroyed.
        self._requested_id = self._incoming_id
        self._record: SessionRecord | None = None
        self.identity = IdentityCache(self) if deserializer is None else IdentityCache(self, deserializer)

    # ------------------------------------------------------------------
    # Presence
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str | None:
        return self._record.session_id if self._record is not None else None

    @property
    def cookie(self) -> SessionCookieConfig:
        return self._cookie

    def create(self) -> SessionStore:
        """Bind an active record to this request. Idempotent.

        Loads the record named by the client's cookie if the backend knows it,
        otherwise starts a fresh, empty record under a new identifier [S4].
        """
        if self._record is not None:
            return self
        record = None
        if self._requested_id:
            record = self._backend.load(self._requested_id)
            if record is None:
                logger.info("Rejected unknown session identifier %s", short(self._requested_id))
        if record is None:
            record = SessionRecord(session_id=self._token_factory())
            logger.debug("Started session %s", short(record.session_id))
        self._record = record
        self._requested_id = None
        return self

    def is_active(self) -> bool:
        return self._record is not None

    def restore(self) -> None:
        """Make sure a session is active and rehydrate the identity cache from it."""
        if not self.is_active():
            self.create()
        if self.has(IDENTITY_KEY) and self.identity.get_instance() is None:
            self.identity.restore()

    # ------------------------------------------------------------------
    # Key/value access
    # ------------------------------------------------------------------

    def _require(self) -> SessionRecord:
        if self._record is None:
            raise SessionNotStartedError("No active session. Call create() or restore() first.")
        return self._record

    def get(self, key: str, default: Any = None) -> Any:
        return self._require().data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._require().data[key] = value

    def has(self, key: str) -> bool:
        """True if key is stored with a non-None value."""
        return self._require().data.get(key) is not None

    def remove(self, key: str) -> None:
        self._require().data.pop(key, None)

    # ------------------------------------------------------------------
    # Rotation and teardown
    # ------------------------------------------------------------------

    def regenerate(self, delete_old: bool = True) -> None:
        """Move the record to a new identifier, carrying every field forward.

        delete_old=False leaves the previous identifier loadable (with its
        last saved state) so an in-flight duplicate request from the same
        client is not orphaned. Without an active session this is a no-op.

        The previous identifier keeps only that snapshot. Fields written later
        in this request (a CSRF token minted after rotation, say) are saved
        under the new identifier alone, and a duplicate request on the old
        cookie rotates again from the snapshot. SessionLocks serializes per
        identifier, so it does not cover requests on the old and new cookies.
        """
        if self._record is None:
            return
        old_id = self._record.session_id
        new_id = self._token_factory()
        self._backend.save(new_id, SessionRecord(session_id=new_id, data=dict(self._record.data)))  # [S6]
        if delete_old:
            self._backend.delete(old_id)
        self._record.session_id = new_id
        logger.info(
            "Rotated session %s -> %s (old %s)",
            short(old_id),
            short(new_id),
            "deleted" if delete_old else "kept",
        )

    def clear(self) -> None:
        """Remove every stored key but keep the identifier."""
        if self._record is None:
            return
        self._record.data.clear()
        self.identity.destroy()

    def destroy(self) -> None:
        """Clear all state, invalidate the identifier and drop the cached identity.

        Safe to call any number of times.
        """
        self._requested_id = None
        self.identity.destroy()
        if self._record is None:
            return
        session_id = self._record.session_id
        self._record.data.clear()
        self._record = None
        self._backend.delete(session_id)
        logger.info("Destroyed session %s", short(session_id))

    # ------------------------------------------------------------------
    # End of request
    # ------------------------------------------------------------------

    def commit(self, response: Response) -> None:
        """Persist the record and synchronize the client's cookie with it.

        Set-Cookie is sent only when the identifier changed during this
        request (new session or rotation). A client that presented a cookie
        for a session that ended gets the cookie deleted.
        """
        if self._record is not None:
            self._backend.save(self._record.session_id, self._record)
            if self._record.session_id != self._incoming_id:
                response.set_cookie(
                    self._cookie.name,
                    value=self._record.session_id,
                    max_age=self._cookie.lifetime,
                    path=self._cookie.path,
                    domain=self._cookie.domain,
                    secure=self._cookie.secure,
                    httponly=self._cookie.httponly,
                    samesite=self._cookie.samesite,
                )
        elif self._incoming_id is not None:
            response.delete_cookie(
                self._cookie.name,
                path=self._cookie.path,
                domain=self._cookie.domain,
                secure=self._cookie.secure,
                httponly=self._cookie.httponly,
                samesite=self._cookie.samesite,
            )
