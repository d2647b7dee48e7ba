"""
identity/models.py -- Domain dataclasses for identity entities and results.

Pattern: Data class. Dataclasses own domain shape; stores and services do the
work. The only derived data is User.permissions, which is looked up from the
role on every access so it can never drift from the role name.

Layer rule: imports only identity.roles.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from identity.roles import DEFAULT_ROLE, RoleName, has_permission, permissions_for


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class User:
    """An identity record.

    password_hash is an opaque bcrypt string; the plaintext is never stored.
    created_at and updated_at default to the same instant when omitted.
    """

    username: str
    email: str
    password_hash: str
    role: RoleName = DEFAULT_ROLE
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.created_at is None:
            self.created_at = utcnow()
        if self.updated_at is None:
            self.updated_at = self.created_at

    @property
    def permissions(self) -> frozenset[str]:
        return permissions_for(self.role)

    def has_permission(self, permission: str) -> bool:
        return has_permission(self.role, permission)


@dataclass(frozen=True)
class TokenClaims:
    """Signed payload of an access token. Wire names: sub, iat, exp, role."""

    subject: str
    role: RoleName
    issued_at: int
    expires_at: int

    def to_payload(self) -> dict:
        return {
            "sub": self.subject,
            "iat": self.issued_at,
            "exp": self.expires_at,
            "role": self.role.value,
        }


@dataclass(frozen=True)
class TokenResponse:
    """Result of a successful login."""

    token: str
    expires_at: datetime
    user_id: str
    username: str
    role: RoleName


@dataclass(frozen=True)
class UserSummary:
    """Result of a successful registration."""

    user_id: str
    username: str
    email: str
    role: RoleName


@dataclass(frozen=True)
class UserRecord:
    """Administrative view of a user. Never carries the password hash."""

    id: str
    username: str
    email: str
    role: RoleName
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> UserRecord:
        return cls(
            id=str(user.id),
            username=user.username,
            email=user.email,
            role=user.role,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )
