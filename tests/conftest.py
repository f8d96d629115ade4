"""
tests/conftest.py -- Shared fixtures for TaskFlow session tests.

This module provides:
  - FakeClock: a settable epoch-seconds clock injected into InactivityMonitor
  - settings / backend / clock / make_store: unit-test building blocks
  - identity_payload: a valid serialized identity as written by the login flow
  - app_client: TestClient over the real ASGI app (API + web routers) with a
    patched lifespan wiring an in-memory session backend, a fake clock and a
    seeded user store

Design: the user store uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from typing import NamedTuple

# Set DEBUG before any core import so Settings() does not warn about
# insecure cookies on every instantiation.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.models import User
from auth.passwords import hash_password
from auth.store import UserStore
from core.config import Settings
from session.backend import MemorySessionBackend
from session.middleware import SessionLocks
from session.store import SessionStore

TEST_EMAIL = "ada@example.com"
TEST_PASSWORD = "correct-horse-battery"
START_TIME = 1_700_000_000.0


class FakeClock:
    """Callable clock returning a controllable epoch timestamp."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Unit-test building blocks
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(debug=True)


@pytest.fixture
def backend() -> MemorySessionBackend:
    return MemorySessionBackend()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_store(backend: MemorySessionBackend, settings: Settings) -> Callable[..., SessionStore]:
    """Return a factory building a SessionStore as the middleware would for one request."""

    def _make(session_id: str | None = None, **kwargs) -> SessionStore:
        return SessionStore(backend, settings.cookie_config(), session_id=session_id, **kwargs)

    return _make


@pytest.fixture
def identity_payload() -> dict:
    return {
        "id": 7,
        "public_id": "3f1c2a9e-6b0d-4c8e-9a55-0e5d1f2b7c41",
        "first_name": "Ada",
        "middle_name": None,
        "last_name": "Lovelace",
        "gender": "female",
        "birth_date": "1815-12-10",
        "role": "projectManager",
        "job_titles": "Analyst,Engineer",
        "contact_number": "+44 20 7946 0000",
        "email": TEST_EMAIL,
        "bio": None,
        "profile_link": None,
        "created_at": "2024-01-01T00:00:00+00:00",
        "additional_info": None,
    }


# ---------------------------------------------------------------------------
# Integration client
# ---------------------------------------------------------------------------


class AppHarness(NamedTuple):
    client: TestClient
    backend: MemorySessionBackend
    clock: FakeClock
    settings: Settings


@pytest.fixture(scope="session")
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore(db_url="sqlite:///file:test_auth_sessions?mode=memory&cache=shared&uri=true")
    store.create_user(
        User(
            email=TEST_EMAIL,
            first_name="Ada",
            last_name="Lovelace",
            role="projectManager",
            job_titles="Analyst,Engineer",
            hashed_password=hash_password(TEST_PASSWORD),
        )
    )
    yield store
    store.close()


def _patch_lifespan(settings: Settings, backend, clock: FakeClock, user_store: UserStore):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine so shutdown can cancel a real
    asyncio.Task, as the production lifespan does.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.session_backend = backend
        app.state.session_clock = clock
        app.state.session_locks = SessionLocks()
        app.state.user_store = user_store
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@pytest.fixture
def app_client(
    settings: Settings,
    backend: MemorySessionBackend,
    clock: FakeClock,
    user_store: UserStore,
) -> Generator[AppHarness, None, None]:
    """Yield a fresh client per test: empty session backend, empty cookie jar.

    follow_redirects=False so web tests can assert on redirect locations.
    """
    app.router.lifespan_context = _patch_lifespan(settings, backend, clock, user_store)
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield AppHarness(client, backend, clock, settings)
