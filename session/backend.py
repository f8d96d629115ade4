"""
session/backend.py -- Pluggable storage for session records.

Pattern: Repository. SessionStore talks to a SessionBackend and never knows
which medium sits behind it:

  MemorySessionBackend -- process-local dict guarded by a threading.Lock.
                          Used by the test suite and single-process dev runs.
  SqlSessionBackend    -- SQLAlchemy Core table, SQLite by default. Same
                          repository shape as auth/store.py.

Contract:
  load(id)          -> SessionRecord | None   (None = unknown identifier)
  save(id, record)  -> None                    (insert or replace, atomic)
  delete(id)        -> None                    (unknown id is not an error)
  purge_expired(s)  -> int                     (records untouched for > s seconds)

Every method raises SessionBackendUnavailable when the medium cannot be
reached. Callers must not treat that as "no session" -- an unreachable store
and an anonymous visitor are different states.

Concurrency: save() is atomic per record, but neither backend serializes a
full request's read-modify-write. That is the job of the per-session lock in
session/middleware.py. A multi-process deployment needs a backend with
compare-and-swap on save, which neither class here provides.

Layer rule: no imports from api/, web/, or auth/.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path

from sqlalchemy import Column, Float, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from session.errors import SessionBackendUnavailable
from session.models import SessionRecord
from session.tokens import short

logger = logging.getLogger("taskflow.session")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'taskflow_sessions.db'}"


class SessionBackend(ABC):
    """Abstract storage for SessionRecord objects keyed by session identifier."""

    @abstractmethod
    def load(self, session_id: str) -> SessionRecord | None: ...

    @abstractmethod
    def save(self, session_id: str, record: SessionRecord) -> None: ...

    @abstractmethod
    def delete(self, session_id: str) -> None: ...

    @abstractmethod
    def purge_expired(self, max_idle: float, now: float | None = None) -> int: ...

    def close(self) -> None:
        """Release resources. Default: nothing to release."""


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class MemorySessionBackend(SessionBackend):
    """Thread-safe dict backend.

    Records are deep-copied on the way in and out so a caller mutating its
    SessionRecord never changes the stored state until it calls save().
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, SessionRecord] = {}

    def load(self, session_id: str) -> SessionRecord | None:
        with self._lock:
            record = self._records.get(session_id)
            return copy.deepcopy(record) if record is not None else None

    def save(self, session_id: str, record: SessionRecord) -> None:
        stored = SessionRecord(session_id=session_id, data=copy.deepcopy(record.data), updated_at=time.time())
        with self._lock:
            self._records[session_id] = stored

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._records.pop(session_id, None)

    def purge_expired(self, max_idle: float, now: float | None = None) -> int:
        cutoff = (time.time() if now is None else now) - max_idle
        with self._lock:
            stale = [sid for sid, rec in self._records.items() if (rec.updated_at or 0) < cutoff]
            for sid in stale:
                del self._records[sid]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._records


# ---------------------------------------------------------------------------
# SQL backend
# ---------------------------------------------------------------------------

_metadata = MetaData()

_sessions = Table(
    "sessions",
    _metadata,
    Column("session_id", String(64), primary_key=True),
    Column("data", Text, nullable=False),  # JSON object
    Column("updated_at", Float, nullable=False, index=True),  # epoch seconds
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


class SqlSessionBackend(SessionBackend):
    """SQLAlchemy Core session table.

    Usage:
        backend = SqlSessionBackend()
        backend.save("abc...", SessionRecord(session_id="abc...", data={"k": 1}))
        record = backend.load("abc...")
        backend.close()

    Schema creation happens in __init__. If the database cannot be opened
    (read-only directory, bad URL, server down) the constructor raises
    SessionBackendUnavailable so the app refuses to start rather than
    serving requests with a broken session layer.
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        try:
            self.engine: Engine = create_engine(db_url, connect_args=connect_args)
            if db_url.startswith("sqlite") and "mode=memory" not in db_url:
                event.listen(self.engine, "connect", _set_wal_mode)
            _metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            logger.error("Session storage could not be initialized: %s", exc)
            raise SessionBackendUnavailable("Session storage could not be initialized.") from exc

    def load(self, session_id: str) -> SessionRecord | None:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    _sessions.select().where(_sessions.c.session_id == session_id)
                ).fetchone()
        except SQLAlchemyError as exc:
            raise SessionBackendUnavailable("Session storage is unreachable.") from exc
        if row is None:
            return None
        try:
            data = json.loads(row.data)
        except ValueError:
            # A corrupted row is indistinguishable from a forged identifier.
            logger.warning("Discarding unreadable session record %s", short(session_id))
            return None
        if not isinstance(data, dict):
            return None
        return SessionRecord(session_id=row.session_id, data=data, updated_at=row.updated_at)

    def save(self, session_id: str, record: SessionRecord) -> None:
        payload = json.dumps(record.data)
        try:
            with self.engine.begin() as conn:
                conn.execute(_sessions.delete().where(_sessions.c.session_id == session_id))
                conn.execute(
                    _sessions.insert().values(session_id=session_id, data=payload, updated_at=time.time())
                )
        except SQLAlchemyError as exc:
            raise SessionBackendUnavailable("Session storage is unreachable.") from exc

    def delete(self, session_id: str) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(_sessions.delete().where(_sessions.c.session_id == session_id))
        except SQLAlchemyError as exc:
            raise SessionBackendUnavailable("Session storage is unreachable.") from exc

    def purge_expired(self, max_idle: float, now: float | None = None) -> int:
        """Delete records not saved for more than max_idle seconds. Returns rows removed.

        This also collects identifiers left behind by regenerate(delete_old=False).
        """
        cutoff = (time.time() if now is None else now) - max_idle
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_sessions.delete().where(_sessions.c.updated_at < cutoff))
        except SQLAlchemyError as exc:
            raise SessionBackendUnavailable("Session storage is unreachable.") from exc
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()
