"""
session/identity.py -- Request-scoped cache of the current authenticated identity.

The login flow (auth/session_auth.py) writes a serialized Identity into the
session under IDENTITY_KEY. IdentityCache turns that payload back into an
Identity at most once per request, so route handlers and templates can ask
for the current user as often as they like without re-parsing.

A payload that fails validation is NOT an error for the request: the cache
degrades to anonymous, logs a warning, and the caller's authorization logic
decides whether anonymous access is allowed.

Layer rule: no imports from api/, web/, or auth/.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter, ValidationError

from session.models import IDENTITY_KEY, Identity
from session.tokens import short

if TYPE_CHECKING:
    from session.store import SessionStore

logger = logging.getLogger("taskflow.identity")

_IDENTITY_ADAPTER = TypeAdapter(Identity)


def identity_from_payload(payload: Any) -> Identity:
    """Validate a stored payload and build the Identity it describes.

    Raises ValidationError (or TypeError) when the payload is corrupted or
    written by an incompatible schema.
    """
    if not isinstance(payload, dict):
        raise TypeError(f"identity payload must be a mapping, got {type(payload).__name__}")
    data = dict(payload)
    job_titles = data.get("job_titles")
    if isinstance(job_titles, str):
        data["job_titles"] = [t.strip() for t in job_titles.split(",") if t.strip()]
    return _IDENTITY_ADAPTER.validate_python(data)


def identity_to_payload(identity: Identity) -> dict:
    """Serialize an Identity into the JSON-safe dict stored in the session."""
    return dataclasses.asdict(identity)


class IdentityCache:
    """At most one rehydrated Identity per request, owned by one SessionStore."""

    def __init__(
        self,
        store: SessionStore,
        deserializer: Callable[[Any], Identity] = identity_from_payload,
    ) -> None:
        self._store = store
        self._deserialize = deserializer
        self._identity: Identity | None = None
        # Set once a payload has been tried, so a bad payload is parsed (and
        # logged) once per request rather than on every restore() call.
        self._attempted = False

    def restore(self) -> None:
        """Rehydrate from the session payload unless already done."""
        if self._identity is not None or self._attempted:
            return
        if not self._store.is_active():
            return
        payload = self._store.get(IDENTITY_KEY)
        if payload is None:
            return
        self._attempted = True
        try:
            self._identity = self._deserialize(payload)
        except (ValidationError, TypeError, ValueError) as exc:
            logger.warning(
                "Unreadable identity payload in session %s, continuing as anonymous: %s",
                short(self._store.session_id or ""),
                exc,
            )
            self._identity = None

    def instantiate(self, identity: Identity) -> None:
        """Seed the cache directly (login flow)."""
        self._identity = identity
        self._attempted = True

    def get_instance(self) -> Identity | None:
        return self._identity

    def destroy(self) -> None:
        self._identity = None
        self._attempted = False
