"""
identity/sql_store.py -- SQLAlchemy Core persistence for the Identity Store.

Pattern: Repository + Data Mapper. SqlUserStore is the repository;
_row_to_user / _user_values are the mappers. Services never touch SQL.

SQLAlchemy Core (not ORM) keeps identity.models.User the authoritative domain
shape. Swapping SQLite for PostgreSQL is a connection string change.

Uniqueness:
  UNIQUE indexes on username and email are the source of truth. create()
  and update() run an in-transaction pre-check so the common conflict gets a
  precise message, but a concurrent writer can still slip in between that
  check and the commit. The IntegrityError the database then raises is the
  authoritative signal and is translated to ValidationError. Running at
  READ COMMITTED (or stronger) with these indexes is enough to rule out
  duplicate usernames and emails under concurrent registration.

Security:
  All queries use bound parameters. No f-strings in SQL.

SQLite:
  A plain in-memory URL (sqlite:// or sqlite:///:memory:) is rewritten to a
  uniquely named shared-cache URI (file:<name>?mode=memory&cache=shared),
  so every pooled connection sees the same database while two stores stay
  isolated from each other. One anchor connection is held open for the
  store's lifetime; the database is freed when its last connection closes.
  Shared-cache connections fail fast with "database table is locked"
  instead of waiting, so every operation on an in-memory database runs
  under the store's lock. File databases serialize only writes.

Timestamps are stored as ISO 8601 UTC strings, like the rest of the schema
family this module follows.

Layer rule: imports only identity.errors / identity.models / identity.roles /
identity.store.
"""

from __future__ import annotations

import logging
import threading
import uuid
from contextlib import nullcontext
from datetime import datetime

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, or_, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import QueuePool

from identity.errors import NotFoundError, RepositoryError, ValidationError
from identity.models import User
from identity.roles import RoleName
from identity.store import UserStore, email_taken, username_taken

logger = logging.getLogger("idgate.identity.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),  # uuid4, canonical text form
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default=RoleName.User.value),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# SQLite connection tuning
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers proceed while a writer commits.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _is_sqlite_memory(db_url: str) -> bool:
    return db_url in ("sqlite://", "sqlite:///:memory:") or (
        db_url.startswith("sqlite") and "mode=memory" in db_url
    )


def _shared_memory_url(db_url: str) -> str:
    """Map a plain :memory: URL to a named shared-cache URI; pass others through."""
    if db_url in ("sqlite://", "sqlite:///:memory:"):
        return f"sqlite:///file:idgate_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    return db_url


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SqlUserStore(UserStore):
    """UserStore backed by any SQLAlchemy-supported relational database.

    Usage:
        store = SqlUserStore("sqlite:///./idgate.db")
        store = SqlUserStore("postgresql://user:pw@host/db")
        store.create(user)
        store.find_by_username("alice")
        store.close()

    Safe to share between threads.
    """

    def __init__(self, db_url: str) -> None:
        is_sqlite = db_url.startswith("sqlite")
        in_memory = _is_sqlite_memory(db_url)
        connect_args: dict = {}
        engine_kwargs: dict = {}
        if is_sqlite:
            connect_args["check_same_thread"] = False
        if in_memory:
            db_url = _shared_memory_url(db_url)
            engine_kwargs["poolclass"] = QueuePool

        self._lock = threading.Lock() if is_sqlite else None
        self._lock_reads = in_memory
        self._anchor = None
        try:
            self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_kwargs)
            if is_sqlite and not in_memory:
                event.listen(self.engine, "connect", _set_wal_mode)
            if in_memory:
                self._anchor = self.engine.raw_connection()
            metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Database initialisation failed: {exc}") from exc

    def _guard(self, write: bool = True):
        if self._lock is None or not (write or self._lock_reads):
            return nullcontext()
        return self._lock

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _check_unique(self, conn: Connection, user: User) -> None:
        rows = conn.execute(
            select(_users.c.username, _users.c.email).where(
                or_(_users.c.username == user.username, _users.c.email == user.email),
                _users.c.id != str(user.id),
            )
        ).fetchall()
        for row in rows:
            if row.username == user.username:
                raise username_taken(user.username)
        if rows:
            raise email_taken(user.email)

    def create(self, user: User) -> None:
        """Insert user inside one transaction.

        Raises ValidationError when the pre-check finds a conflict or when
        the database's unique indexes reject the commit.
        """
        try:
            with self._guard(), self.engine.begin() as conn:
                self._check_unique(conn, user)
                conn.execute(_users.insert().values(id=str(user.id), **_user_values(user)))
        except IntegrityError as exc:
            logger.warning("Unique constraint rejected create for %r", user.username)
            raise ValidationError("Username or email already exists") from exc
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Database error: {exc}") from exc

    def update(self, user: User) -> None:
        try:
            with self._guard(), self.engine.begin() as conn:
                exists = conn.execute(select(_users.c.id).where(_users.c.id == str(user.id))).first()
                if exists is None:
                    raise NotFoundError(f"User with ID {user.id} not found")
                self._check_unique(conn, user)
                conn.execute(_users.update().where(_users.c.id == str(user.id)).values(**_user_values(user)))
        except IntegrityError as exc:
            logger.warning("Unique constraint rejected update for user %s", user.id)
            raise ValidationError("Username or email already exists") from exc
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Database error: {exc}") from exc

    def delete(self, user_id: uuid.UUID) -> None:
        try:
            with self._guard(), self.engine.begin() as conn:
                result = conn.execute(_users.delete().where(_users.c.id == str(user_id)))
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Database error: {exc}") from exc
        if result.rowcount == 0:
            raise NotFoundError(f"User with ID {user_id} not found")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _fetch_one(self, clause) -> User | None:
        try:
            with self._guard(write=False), self.engine.connect() as conn:
                row = conn.execute(_users.select().where(clause)).fetchone()
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Database error: {exc}") from exc
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: uuid.UUID) -> User:
        user = self._fetch_one(_users.c.id == str(user_id))
        if user is None:
            raise NotFoundError(f"User with ID {user_id} not found")
        return user

    def find_by_username(self, username: str) -> User | None:
        return self._fetch_one(_users.c.username == username)

    def find_by_email(self, email: str) -> User | None:
        return self._fetch_one(_users.c.email == email)

    def find_all(self) -> list[User]:
        try:
            with self._guard(write=False), self.engine.connect() as conn:
                rows = conn.execute(_users.select().order_by(_users.c.username)).fetchall()
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Database error: {exc}") from exc
        return [_row_to_user(r) for r in rows]

    def close(self) -> None:
        if self._anchor is not None:
            self._anchor.close()
            self._anchor = None
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _user_values(user: User) -> dict:
    return {
        "username": user.username,
        "email": user.email,
        "password_hash": user.password_hash,
        "role": user.role.value,
        "created_at": user.created_at.isoformat(),
        "updated_at": user.updated_at.isoformat(),
    }


def _row_to_user(row) -> User:
    try:
        return User(
            id=uuid.UUID(row.id),
            username=row.username,
            email=row.email,
            password_hash=row.password_hash,
            role=RoleName(row.role),
            created_at=datetime.fromisoformat(row.created_at),
            updated_at=datetime.fromisoformat(row.updated_at),
        )
    except ValueError as exc:
        raise RepositoryError(f"Corrupt user row {row.id!r}: {exc}") from exc
