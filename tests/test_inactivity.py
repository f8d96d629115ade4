"""
tests/test_inactivity.py -- Idle expiry boundary and identifier rotation.

The unit tests drive InactivityMonitor directly against a SessionStore. The
scenario test at the bottom replays whole requests through SessionContext,
carrying the session id from one "response" to the next "request" the way a
browser's cookie jar would.
"""

from __future__ import annotations

import pytest
from starlette.responses import Response

from session.context import SessionContext
from session.inactivity import INACTIVITY_TIMEOUT, ROTATION_INTERVAL, InactivityMonitor
from session.models import (
    CSRF_TOKEN_KEY,
    IDENTITY_KEY,
    LAST_ACTIVITY_KEY,
    LAST_REGENERATE_KEY,
    SessionRecord,
    SessionState,
)

T0 = 1_000_000.0


@pytest.fixture
def seeded(backend, make_store, clock):
    """Return a factory: store bound to a persisted record with the given timestamps."""

    def _seed(last_activity=None, last_regenerate=None, **extra):
        data = dict(extra)
        if last_activity is not None:
            data[LAST_ACTIVITY_KEY] = last_activity
        if last_regenerate is not None:
            data[LAST_REGENERATE_KEY] = last_regenerate
        backend.save("sid", SessionRecord(session_id="sid", data=data))
        store = make_store("sid")
        store.restore()
        return store, InactivityMonitor(store, clock=clock)

    return _seed


def test_defaults_match_documented_windows():
    assert INACTIVITY_TIMEOUT == 1800
    assert ROTATION_INTERVAL == 300


def test_no_session_is_unestablished(make_store, clock):
    store = make_store()
    assert InactivityMonitor(store, clock=clock).check() is SessionState.UNESTABLISHED
    assert not store.is_active()


def test_first_observation_only_stamps_activity(seeded, clock):
    store, monitor = seeded()
    clock.now = T0
    assert monitor.check() is SessionState.ACTIVE
    assert store.get(LAST_ACTIVITY_KEY) == T0
    assert store.get(LAST_REGENERATE_KEY) is None
    assert store.session_id == "sid"


def test_idle_exactly_at_timeout_is_still_valid(seeded, clock):
    store, monitor = seeded(last_activity=T0, last_regenerate=T0)
    clock.now = T0 + INACTIVITY_TIMEOUT
    state = monitor.check()
    assert state is not SessionState.DESTROYED
    assert store.is_active()
    assert store.get(LAST_ACTIVITY_KEY) == T0 + INACTIVITY_TIMEOUT


def test_idle_one_second_past_timeout_destroys(seeded, clock, backend, identity_payload):
    store, monitor = seeded(last_activity=T0, last_regenerate=T0, **{IDENTITY_KEY: identity_payload})
    assert store.identity.get_instance() is not None
    clock.now = T0 + INACTIVITY_TIMEOUT + 1
    assert monitor.check() is SessionState.DESTROYED
    assert not store.is_active()
    assert store.identity.get_instance() is None
    assert "sid" not in backend


def test_activity_within_window_refreshes_without_rotation(seeded, clock):
    store, monitor = seeded(last_activity=T0, last_regenerate=T0)
    clock.now = T0 + 60
    assert monitor.check() is SessionState.ACTIVE
    assert store.get(LAST_ACTIVITY_KEY) == T0 + 60
    assert store.session_id == "sid"


def test_missing_last_regenerate_triggers_rotation(seeded, clock):
    store, monitor = seeded(last_activity=T0)
    clock.now = T0 + 1
    assert monitor.check() is SessionState.ROTATED
    assert store.session_id != "sid"
    assert store.get(LAST_REGENERATE_KEY) == T0 + 1


def test_rotation_interval_boundary_is_strict(seeded, clock):
    store, monitor = seeded(last_activity=T0, last_regenerate=T0)
    clock.now = T0 + ROTATION_INTERVAL
    assert monitor.check() is SessionState.ACTIVE
    assert store.session_id == "sid"

    clock.now = T0 + ROTATION_INTERVAL + 1
    assert monitor.check() is SessionState.ROTATED
    assert store.session_id != "sid"


def test_rotation_keeps_csrf_token_and_old_identifier(seeded, clock, backend):
    store, monitor = seeded(last_activity=T0, last_regenerate=T0, **{CSRF_TOKEN_KEY: "tok"})
    clock.now = T0 + ROTATION_INTERVAL + 1
    monitor.check()
    assert store.get(CSRF_TOKEN_KEY) == "tok"
    # delete_old=False: an in-flight duplicate request on the old id still works.
    assert backend.load("sid").csrf_token == "tok"


def test_last_activity_never_moves_backwards(seeded, clock):
    store, monitor = seeded(last_activity=T0, last_regenerate=T0)
    clock.now = T0 - 5
    monitor.check()
    assert store.get(LAST_ACTIVITY_KEY) == T0


# ---------------------------------------------------------------------------
# Request-sequence scenario
# ---------------------------------------------------------------------------


def _request(backend, settings, clock, cookie):
    """Process one request and return (context, cookie the browser now holds)."""
    context = SessionContext.open(backend, settings, session_id=cookie, clock=clock)
    context.start()
    context.commit(Response())
    return context, context.store.session_id


def test_idle_window_is_measured_from_the_refreshed_timestamp(backend, settings, clock, identity_payload):
    clock.now = 0.0
    context, cookie = _request(backend, settings, clock, None)
    assert context.store.get(LAST_ACTIVITY_KEY) == 0.0

    # Login flow (out of scope here) stores the identity payload.
    record = backend.load(cookie)
    record.data[IDENTITY_KEY] = identity_payload
    backend.save(cookie, record)

    clock.now = 1799.0
    context, cookie = _request(backend, settings, clock, cookie)
    assert context.state is not SessionState.DESTROYED
    assert context.current_identity is not None

    # Idle is exactly the timeout, measured from 1799, not from 0.
    clock.now = 1800.0 + 1799.0
    context, cookie = _request(backend, settings, clock, cookie)
    assert context.state is not SessionState.DESTROYED
    assert context.store.is_active()
    assert context.current_identity is not None

    clock.advance(INACTIVITY_TIMEOUT + 1)
    context, cookie = _request(backend, settings, clock, cookie)
    assert context.state is SessionState.DESTROYED
    assert context.store.is_active() is False
    assert context.identity.get_instance() is None
    assert cookie is None
