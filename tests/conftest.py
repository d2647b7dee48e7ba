"""
tests/conftest.py -- Shared fixtures for the idgate test suite.

This module provides:
  - hasher: PasswordHasher at bcrypt's minimum work factor (4) for speed
  - tokens: TokenService with a fixed test secret
  - FakeClock: settable clock for crossing token expiry without sleeping
  - memory_store / sql_store: fresh, isolated Identity Store backends
  - store: parametrized over both backends so contract tests run twice
  - auth_service / user_service: services wired to an in-memory store

The DEBUG env var is set before any core import so Settings() can
auto-generate SECRET_KEY in dev mode instead of raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator

# Set DEBUG before any core/identity import.
os.environ.setdefault("DEBUG", "true")

import pytest

from identity.memory_store import InMemoryUserStore
from identity.passwords import PasswordHasher
from identity.service import AuthService
from identity.sql_store import SqlUserStore
from identity.store import UserStore
from identity.tokens import TokenService
from identity.users import UserService

TEST_SECRET = "test-secret-key-0123456789abcdef-0123456789abcdef"


class FakeClock:
    """Callable clock returning a settable Unix timestamp."""

    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(secret_key=TEST_SECRET)


@pytest.fixture
def memory_store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def sql_store() -> Generator[SqlUserStore, None, None]:
    s = SqlUserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture(params=["memory", "sql"])
def store(request) -> Generator[UserStore, None, None]:
    """Each contract test runs once per backend."""
    if request.param == "memory":
        yield InMemoryUserStore()
    else:
        s = SqlUserStore("sqlite:///:memory:")
        yield s
        s.close()


@pytest.fixture
def auth_service(memory_store, hasher, tokens) -> AuthService:
    return AuthService(memory_store, hasher, tokens, token_ttl_seconds=3600)


@pytest.fixture
def user_service(memory_store, hasher) -> UserService:
    return UserService(memory_store, hasher)
