"""
identity/memory_store.py -- In-process Identity Store.

Records live in a dict keyed by id, with secondary dicts mapping username
and email to id so uniqueness checks are O(1) instead of a scan.

Concurrency: a single-writer / multi-reader lock guards all three dicts.
create(), update() and delete() hold the write side for the whole
check-then-write sequence, which makes the uniqueness check and the insert
one indivisible step. Readers share the read side and are excluded only
while a writer holds the lock. Waiting writers block new readers so a steady
stream of lookups cannot starve registration.

Records are copied on the way in and on the way out. A caller mutating a
returned User does not change stored state until it calls update().

Layer rule: imports only identity.errors / identity.models / identity.store.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

from identity.errors import NotFoundError, ValidationError
from identity.models import User
from identity.store import UserStore, email_taken, username_taken

logger = logging.getLogger("idgate.identity.store")


class ReadWriteLock:
    """Writer-preferring readers/writer lock built on threading.Condition."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def _copy(user: User) -> User:
    return dataclasses.replace(user)


class InMemoryUserStore(UserStore):
    """Thread-safe UserStore kept entirely in process memory.

    Usage:
        store = InMemoryUserStore()
        store.create(User(username="alice", email="alice@x.com", password_hash=h))
        store.find_by_username("alice")
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._users: dict[uuid.UUID, User] = {}
        self._by_username: dict[str, uuid.UUID] = {}
        self._by_email: dict[str, uuid.UUID] = {}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _check_unique(self, user: User) -> None:
        # Caller must hold the write lock.
        owner = self._by_username.get(user.username)
        if owner is not None and owner != user.id:
            raise username_taken(user.username)
        owner = self._by_email.get(user.email)
        if owner is not None and owner != user.id:
            raise email_taken(user.email)

    def create(self, user: User) -> None:
        with self._lock.write():
            if user.id in self._users:
                raise ValidationError(f"User with ID {user.id} already exists")
            self._check_unique(user)
            stored = _copy(user)
            self._users[stored.id] = stored
            self._by_username[stored.username] = stored.id
            self._by_email[stored.email] = stored.id
        logger.debug("Created user %s in memory store", user.id)

    def update(self, user: User) -> None:
        with self._lock.write():
            current = self._users.get(user.id)
            if current is None:
                raise NotFoundError(f"User with ID {user.id} not found")
            self._check_unique(user)
            stored = _copy(user)
            del self._by_username[current.username]
            del self._by_email[current.email]
            self._users[stored.id] = stored
            self._by_username[stored.username] = stored.id
            self._by_email[stored.email] = stored.id

    def delete(self, user_id: uuid.UUID) -> None:
        with self._lock.write():
            current = self._users.pop(user_id, None)
            if current is None:
                raise NotFoundError(f"User with ID {user_id} not found")
            del self._by_username[current.username]
            del self._by_email[current.email]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_id(self, user_id: uuid.UUID) -> User:
        with self._lock.read():
            user = self._users.get(user_id)
            if user is None:
                raise NotFoundError(f"User with ID {user_id} not found")
            return _copy(user)

    def find_by_username(self, username: str) -> User | None:
        with self._lock.read():
            user_id = self._by_username.get(username)
            return _copy(self._users[user_id]) if user_id is not None else None

    def find_by_email(self, email: str) -> User | None:
        with self._lock.read():
            user_id = self._by_email.get(email)
            return _copy(self._users[user_id]) if user_id is not None else None

    def find_all(self) -> list[User]:
        with self._lock.read():
            users = [_copy(u) for u in self._users.values()]
        return sorted(users, key=lambda u: u.username)
