"""
session/context.py -- The per-request session context object.

SessionContext replaces process-wide session/identity singletons: one is
built for every inbound request, threaded through the call chain on
request.state.session, and discarded with the request.

    ctx = SessionContext.open(backend, settings, cookie_id, clock=time.time)
    ctx.start()                  # restore -> inactivity check -> identity restore
    ...                          # route handler; csrf.protect() via dependency
    ctx.commit(response)         # persist record, Set-Cookie / delete cookie
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from core.config import Settings
from session.backend import SessionBackend
from session.csrf import CsrfTokenManager
from session.identity import IdentityCache
from session.inactivity import InactivityMonitor
from session.models import Identity, SessionState
from session.store import SessionStore

if TYPE_CHECKING:
    from starlette.responses import Response


@dataclass
class SessionContext:
    store: SessionStore
    monitor: InactivityMonitor
    csrf: CsrfTokenManager
    state: SessionState = SessionState.UNESTABLISHED

    @classmethod
    def open(
        cls,
        backend: SessionBackend,
        settings: Settings,
        session_id: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> SessionContext:
        store = SessionStore(backend, settings.cookie_config(), session_id=session_id)
        monitor = InactivityMonitor(
            store,
            timeout=settings.session_inactivity_timeout,
            rotation_interval=settings.session_rotation_interval,
            clock=clock,
        )
        csrf = CsrfTokenManager(store, header_name=settings.csrf_header_name)
        return cls(store=store, monitor=monitor, csrf=csrf)

    @property
    def identity(self) -> IdentityCache:
        return self.store.identity

    @property
    def current_identity(self) -> Identity | None:
        return self.store.identity.get_instance()

    def start(self) -> SessionState:
        """Run the per-request control flow up to (not including) CSRF protection."""
        self.store.restore()
        self.state = self.monitor.check()
        self.identity.restore()
        return self.state

    def commit(self, response: Response) -> None:
        self.store.commit(response)
