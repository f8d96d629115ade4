"""
session/inactivity.py -- Idle expiry and periodic identifier rotation.

Runs once per request, right after SessionStore.restore():

  1. No last_activity yet (first request of the session): stamp it, done.
  2. idle = now - last_activity
     idle >  timeout -> destroy the session; the request continues anonymous.
     idle <= timeout -> refresh last_activity, then rotate the identifier if
                        last_regenerate is missing or older than the interval.

The boundary is strict: an idle time exactly equal to the timeout is still a
live session.

Rotation uses regenerate(delete_old=False). The previous identifier stays
loadable so a duplicate request already in flight (double-submitted XHR)
is not invalidated mid-rotation; the purge loop collects it later.

Layer rule: no imports from api/, web/, or auth/.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from session.models import LAST_ACTIVITY_KEY, LAST_REGENERATE_KEY, SessionState
from session.store import SessionStore
from session.tokens import short

logger = logging.getLogger("taskflow.session")

INACTIVITY_TIMEOUT = 1800  # 30 minutes
ROTATION_INTERVAL = 300  # 5 minutes


class InactivityMonitor:
    def __init__(
        self,
        store: SessionStore,
        timeout: float = INACTIVITY_TIMEOUT,
        rotation_interval: float = ROTATION_INTERVAL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self.timeout = timeout
        self.rotation_interval = rotation_interval
        self._clock = clock

    def check(self) -> SessionState:
        """Apply expiry and rotation to the active record. Returns the resulting state."""
        store = self._store
        if not store.is_active():
            return SessionState.UNESTABLISHED

        now = self._clock()
        last_activity = store.get(LAST_ACTIVITY_KEY)
        if last_activity is None:
            store.set(LAST_ACTIVITY_KEY, now)
            return SessionState.ACTIVE

        idle = now - last_activity
        if idle > self.timeout:
            logger.info("Session %s expired after %.0fs idle", short(store.session_id or ""), idle)
            store.destroy()
            return SessionState.DESTROYED

        # Never move backwards, even if the clock does.
        store.set(LAST_ACTIVITY_KEY, max(now, last_activity))

        last_regenerate = store.get(LAST_REGENERATE_KEY)
        if last_regenerate is None or now - last_regenerate > self.rotation_interval:
            store.regenerate(delete_old=False)
            store.set(LAST_REGENERATE_KEY, now)
            return SessionState.ROTATED
        return SessionState.ACTIVE
