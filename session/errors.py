"""
session/errors.py -- Exception taxonomy for the session layer.

Propagation policy:
  ForbiddenError            -- security failure. Aborts the mutating request
                               with a 403; the message returned to the client
                               never carries the internal reason.
  SessionBackendUnavailable -- infrastructure failure. Fatal for the request;
                               the middleware answers 503 without running the
                               route handler.
  SessionNotStartedError    -- programmer error (field access before
                               create()/restore()). Not caught anywhere.

Identity payloads that fail to deserialize are NOT represented here: they are
absorbed by IdentityCache and degrade to an anonymous request.
"""


class SessionError(Exception):
    """Base class for all session-layer errors."""


class ForbiddenError(SessionError):
    """The request is not allowed to proceed (HTTP 403)."""


class CsrfError(ForbiddenError):
    """A state-mutating request carried a missing or invalid anti-CSRF token."""


class SessionBackendUnavailable(SessionError):
    """The session storage medium cannot be initialized or reached."""


class SessionNotStartedError(SessionError, RuntimeError):
    """A session field was accessed before the session was created."""
