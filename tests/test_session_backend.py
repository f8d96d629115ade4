"""
tests/test_session_backend.py -- MemorySessionBackend and SqlSessionBackend contract.

SQL tests use named shared-memory SQLite URIs, one per test, so they never
touch the filesystem and never see each other's rows.
"""

from __future__ import annotations

import itertools
import time

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from session.backend import MemorySessionBackend, SqlSessionBackend
from session.errors import SessionBackendUnavailable
from session.models import SessionRecord

_db_counter = itertools.count()


@pytest.fixture
def sql_backend():
    backend = SqlSessionBackend(f"sqlite:///file:test_sessions_{next(_db_counter)}?mode=memory&cache=shared&uri=true")
    yield backend
    backend.close()


@pytest.fixture(params=["memory", "sql"])
def any_backend(request, sql_backend):
    if request.param == "memory":
        return MemorySessionBackend()
    return sql_backend


class TestContract:
    def test_load_unknown_returns_none(self, any_backend):
        assert any_backend.load("nope") is None

    def test_save_then_load(self, any_backend):
        any_backend.save("sid", SessionRecord(session_id="sid", data={"csrf_token": "t", "n": [1, 2]}))
        record = any_backend.load("sid")
        assert record.session_id == "sid"
        assert record.data == {"csrf_token": "t", "n": [1, 2]}
        assert record.csrf_token == "t"
        assert record.updated_at is not None

    def test_save_replaces(self, any_backend):
        any_backend.save("sid", SessionRecord(session_id="sid", data={"v": 1}))
        any_backend.save("sid", SessionRecord(session_id="sid", data={"v": 2}))
        assert any_backend.load("sid").data == {"v": 2}

    def test_delete_is_silent_for_unknown_ids(self, any_backend):
        any_backend.save("sid", SessionRecord(session_id="sid"))
        any_backend.delete("sid")
        any_backend.delete("sid")
        assert any_backend.load("sid") is None

    def test_loaded_record_is_a_copy(self, any_backend):
        any_backend.save("sid", SessionRecord(session_id="sid", data={"v": 1}))
        record = any_backend.load("sid")
        record.data["v"] = 99
        assert any_backend.load("sid").data == {"v": 1}

    def test_purge_expired(self, any_backend):
        any_backend.save("stale", SessionRecord(session_id="stale"))
        removed = any_backend.purge_expired(max_idle=60, now=time.time() + 61)
        assert removed == 1
        assert any_backend.load("stale") is None

    def test_purge_keeps_recent_records(self, any_backend):
        any_backend.save("fresh", SessionRecord(session_id="fresh"))
        assert any_backend.purge_expired(max_idle=60) == 0
        assert any_backend.load("fresh") is not None


class TestSqlBackend:
    def test_unwritable_location_is_fatal(self):
        with pytest.raises(SessionBackendUnavailable):
            SqlSessionBackend("sqlite:////nonexistent-taskflow-dir/sub/sessions.db")

    def test_corrupted_row_is_treated_as_unknown(self, sql_backend):
        with sql_backend.engine.begin() as conn:
            conn.execute(
                text("INSERT INTO sessions (session_id, data, updated_at) VALUES (:sid, :data, :ts)"),
                {"sid": "bad", "data": "{not json", "ts": time.time()},
            )
        assert sql_backend.load("bad") is None

    def test_unreachable_database_raises_unavailable(self, sql_backend, monkeypatch):
        class RefusingEngine:
            def connect(self):
                raise OperationalError("connect", {}, Exception("database is locked"))

            begin = connect

            def dispose(self):
                pass

        monkeypatch.setattr(sql_backend, "engine", RefusingEngine())
        with pytest.raises(SessionBackendUnavailable):
            sql_backend.load("sid")
        with pytest.raises(SessionBackendUnavailable):
            sql_backend.save("sid", SessionRecord(session_id="sid"))
        with pytest.raises(SessionBackendUnavailable):
            sql_backend.delete("sid")
