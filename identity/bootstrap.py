"""
identity/bootstrap.py -- Composition root: build identity components from Settings.

This is the only identity module that reads core.config. It turns the
process Settings into plain constructor arguments once, at startup, so every
other component stays configurable from test fixtures.

Usage:
    auth = create_auth_service()              # uses get_settings()
    users = create_user_service(auth)
    app.state.auth_service = auth
"""

from __future__ import annotations

import logging

from core.config import MEMORY_DATABASE_URL, Settings, get_settings
from identity.memory_store import InMemoryUserStore
from identity.passwords import PasswordHasher
from identity.service import AuthService
from identity.sql_store import SqlUserStore
from identity.store import UserStore
from identity.tokens import TokenService
from identity.users import UserService

logger = logging.getLogger("idgate.identity")


def create_user_store(database_url: str) -> UserStore:
    """Return the store selected by database_url ("memory://" or an SQLAlchemy URL)."""
    if database_url == MEMORY_DATABASE_URL:
        logger.info("Using in-memory identity store")
        return InMemoryUserStore()
    logger.info("Using SQL identity store")
    return SqlUserStore(database_url)


def create_auth_service(settings: Settings | None = None) -> AuthService:
    settings = settings or get_settings()
    return AuthService(
        store=create_user_store(settings.database_url),
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        tokens=TokenService(secret_key=settings.secret_key),
        token_ttl_seconds=settings.token_expire_seconds,
    )


def create_user_service(auth_service: AuthService) -> UserService:
    """Return a UserService sharing auth_service's store and hasher."""
    return UserService(store=auth_service.store, hasher=auth_service.hasher)
