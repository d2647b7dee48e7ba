"""
identity/store.py -- Identity Store contract shared by every persistence backend.

Pattern: Repository. UserStore is the abstract repository; backends are
InMemoryUserStore (identity/memory_store.py) and SqlUserStore
(identity/sql_store.py). Services only ever see this interface.

Uniqueness contract:
  username and email are each unique across all live users. create() and
  update() check that no *other* user holds the candidate username or email
  and commit the write as one indivisible step with respect to concurrent
  callers. On conflict they raise ValidationError and change nothing. Two
  concurrent create() calls with the same username can never both succeed.

Not-found contract:
  update(), delete() and find_by_id() raise NotFoundError for an unknown id.
  find_by_username() and find_by_email() return None instead: a missing
  name is an expected answer, not an error.

Backend failures raise RepositoryError.

Layer rule: imports only identity.errors / identity.models.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod

from identity.errors import ValidationError
from identity.models import User


class UserStore(ABC):
    """Abstract CRUD repository for User records with username/email uniqueness."""

    @abstractmethod
    def create(self, user: User) -> None:
        """Insert user. Raises ValidationError if its username or email is taken."""

    @abstractmethod
    def update(self, user: User) -> None:
        """Replace the stored record with user.id.

        Raises NotFoundError if the id is unknown, ValidationError if another
        user holds the new username or email.
        """

    @abstractmethod
    def delete(self, user_id: uuid.UUID) -> None:
        """Remove the record. Raises NotFoundError if the id is unknown."""

    @abstractmethod
    def find_by_id(self, user_id: uuid.UUID) -> User:
        """Return the record. Raises NotFoundError if the id is unknown."""

    @abstractmethod
    def find_by_username(self, username: str) -> User | None:
        """Exact, case-sensitive match."""

    @abstractmethod
    def find_by_email(self, email: str) -> User | None:
        """Exact, case-sensitive match."""

    @abstractmethod
    def find_all(self) -> list[User]:
        """Return every user ordered by username."""

    def close(self) -> None:
        """Release backend resources. No-op unless the backend holds any."""


def username_taken(username: str) -> ValidationError:
    return ValidationError(f"Username {username} already exists")


def email_taken(email: str) -> ValidationError:
    return ValidationError(f"Email {email} already exists")
