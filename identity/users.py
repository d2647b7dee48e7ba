"""
identity/users.py -- Administrative user management (get, list, create, update, delete).

Ids arrive as strings from the request layer. A string that is not a UUID is
a ValidationError ("Invalid user ID format"); a well-formed id with no
record is a NotFoundError.

update_user() applies any subset of fields. A username or email already
held by a *different* user is rejected before the write; the store's atomic
check at update() time remains the final guard. Results are UserRecord
values, which never carry the password hash.

Layer rule: imports only identity modules.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid

from identity.errors import ValidationError
from identity.models import User, UserRecord, utcnow
from identity.passwords import PasswordHasher
from identity.roles import RoleName
from identity.service import check_password, clean_email, clean_username
from identity.store import UserStore

logger = logging.getLogger("idgate.identity.users")


def parse_user_id(user_id: str | uuid.UUID) -> uuid.UUID:
    if isinstance(user_id, uuid.UUID):
        return user_id
    try:
        return uuid.UUID(str(user_id))
    except ValueError as exc:
        raise ValidationError("Invalid user ID format") from exc


class UserService:
    def __init__(self, store: UserStore, hasher: PasswordHasher) -> None:
        self.store = store
        self.hasher = hasher

    def get_user(self, user_id: str) -> UserRecord:
        return UserRecord.from_user(self.store.find_by_id(parse_user_id(user_id)))

    def list_users(self) -> list[UserRecord]:
        return [UserRecord.from_user(u) for u in self.store.find_all()]

    def create_user(self, username: str, email: str, password: str, role: RoleName | str) -> UserRecord:
        username = clean_username(username)
        email = clean_email(email)
        check_password(password)
        resolved_role = RoleName.parse(role)

        if self.store.find_by_username(username) is not None:
            raise ValidationError("Username already exists")
        if self.store.find_by_email(email) is not None:
            raise ValidationError("Email already exists")

        user = User(
            username=username,
            email=email,
            password_hash=self.hasher.hash(password),
            role=resolved_role,
        )
        self.store.create(user)
        logger.info("Created user %r with role %s", username, resolved_role.value)
        return UserRecord.from_user(user)

    def update_user(
        self,
        user_id: str,
        *,
        username: str | None = None,
        email: str | None = None,
        password: str | None = None,
        role: RoleName | str | None = None,
    ) -> UserRecord:
        uid = parse_user_id(user_id)
        existing = self.store.find_by_id(uid)
        changes: dict = {}

        if username is not None:
            username = clean_username(username)
            found = self.store.find_by_username(username)
            if found is not None and found.id != uid:
                raise ValidationError("Username already exists")
            changes["username"] = username

        if email is not None:
            email = clean_email(email)
            found = self.store.find_by_email(email)
            if found is not None and found.id != uid:
                raise ValidationError("Email already exists")
            changes["email"] = email

        if password is not None:
            changes["password_hash"] = self.hasher.hash(check_password(password))

        if role is not None:
            changes["role"] = RoleName.parse(role)

        updated = dataclasses.replace(existing, updated_at=utcnow(), **changes)
        self.store.update(updated)
        logger.info("Updated user %s (%s)", uid, ", ".join(sorted(changes)) or "no fields")
        return UserRecord.from_user(updated)

    def delete_user(self, user_id: str) -> None:
        uid = parse_user_id(user_id)
        self.store.delete(uid)
        logger.info("Deleted user %s", uid)
