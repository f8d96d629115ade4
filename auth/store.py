"""
auth/store.py -- SQLAlchemy Core persistence for user accounts.

Pattern: Repository + Data Mapper (same as session/backend.py).
UserStore is the repository; _row_to_user is the mapper. Route code never
touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Emails are normalized to lowercase on write and on lookup, so
  "Ada@Example.com" and "ada@example.com" cannot become two accounts.

DB path: auth/taskflow_auth.db (sibling to session/taskflow_sessions.db).

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

from auth.models import User

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'taskflow_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("public_id", String(36), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("first_name", String(50), nullable=False),
    Column("middle_name", String(50)),
    Column("last_name", String(50), nullable=False),
    Column("gender", String(10)),
    Column("birth_date", String(10)),  # YYYY-MM-DD
    Column("role", String(30), nullable=False, server_default="worker"),
    Column("job_titles", Text, nullable=False, server_default=""),  # comma-separated
    Column("contact_number", String(20)),
    Column("bio", Text),
    Column("profile_link", Text),
    Column("additional_info", Text),
    Column("created_at", String(32), nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety (set per connection)."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        public_id=row.public_id,
        email=row.email,
        hashed_password=row.hashed_password,
        first_name=row.first_name,
        middle_name=row.middle_name,
        last_name=row.last_name,
        gender=row.gender,
        birth_date=row.birth_date,
        role=row.role,
        job_titles=row.job_titles or "",
        contact_number=row.contact_number,
        bio=row.bio,
        profile_link=row.profile_link,
        additional_info=row.additional_info,
        created_at=row.created_at,
        is_active=bool(row.is_active),
    )


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore()
        store.create_user(User(email="ada@example.com", first_name="Ada", last_name="Lovelace",
                               role="projectManager", hashed_password=hash_password("secret")))
        user = store.get_by_email("ada@example.com")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.insert().values(
                    public_id=user.public_id or str(uuid.uuid4()),
                    email=user.email.lower(),
                    hashed_password=user.hashed_password,
                    first_name=user.first_name,
                    middle_name=user.middle_name,
                    last_name=user.last_name,
                    gender=user.gender,
                    birth_date=user.birth_date,
                    role=user.role,
                    job_titles=user.job_titles,
                    contact_number=user.contact_number,
                    bio=user.bio,
                    profile_link=user.profile_link,
                    additional_info=user.additional_info,
                    created_at=user.created_at or _now_iso(),
                    is_active=1 if user.is_active else 0,
                )
            )
        return result.inserted_primary_key[0]

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row else None

    def get_by_email(self, email: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email.lower())).fetchone()
        return _row_to_user(row) if row else None

    def close(self) -> None:
        self.engine.dispose()
