"""
identity/service.py -- Login and registration on top of store, hasher, and tokens.

login():
  1. find_by_username, after the same whitespace trim register() applies.
     Unknown -> InvalidCredentialsError.
  2. verify password against the stored hash. Mismatch -> the same
     InvalidCredentialsError, with the same message.
  3. issue a token for the user's id and role with the configured TTL.
  Nothing is written.

  Timing equalization: an unknown username still pays for one bcrypt verify
  (against a dummy hash computed at construction), so response time does not
  reveal whether the username exists.

register():
  1. reject an existing username or email (ValidationError) before hashing,
     so doomed requests never pay the bcrypt cost.
  2. hash the password.
  3. resolve the role, defaulting to User.
  4. create the record. The store's own atomic uniqueness check is still the
     authoritative guard against a racing registration that passed step 1.

Layer rule: imports only identity modules. Configuration arrives through the
constructor (see identity/bootstrap.py).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from identity.errors import InvalidCredentialsError, ValidationError
from identity.models import TokenClaims, TokenResponse, User, UserSummary
from identity.passwords import PasswordHasher
from identity.roles import DEFAULT_ROLE, RoleName, authorize
from identity.store import UserStore
from identity.tokens import DEFAULT_TTL_SECONDS, TokenService

logger = logging.getLogger("idgate.identity.service")

_DUMMY_PASSWORD = "idgate_timing_dummy"


# ---------------------------------------------------------------------------
# Input validation (shared with identity/users.py)
# ---------------------------------------------------------------------------


def clean_username(username: str) -> str:
    username = (username or "").strip()
    if not username:
        raise ValidationError("Username must not be empty")
    return username


def clean_email(email: str) -> str:
    email = (email or "").strip()
    local, sep, domain = email.partition("@")
    if not sep or not local or not domain or "@" in domain:
        raise ValidationError("Email must be a valid address")
    return email


def check_password(password: str) -> str:
    if not password:
        raise ValidationError("Password must not be empty")
    return password


class AuthService:
    """Compose the Identity Store, PasswordHasher, and TokenService.

    Usage:
        auth = AuthService(store, PasswordHasher(rounds=12), TokenService(secret))
        auth.register("alice", "alice@x.com", "pw123456")
        response = auth.login("alice", "pw123456")
        claims = auth.validate_token(response.token)
    """

    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        token_ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.token_ttl_seconds = token_ttl_seconds
        self._dummy_hash = hasher.hash(_DUMMY_PASSWORD)

    def login(self, username: str, password: str) -> TokenResponse:
        username = (username or "").strip()
        user = self.store.find_by_username(username)
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt.
            self.hasher.verify(password, self._dummy_hash)
            logger.warning("Login rejected for %r", username)
            raise InvalidCredentialsError()
        if not self.hasher.verify(password, user.password_hash):
            logger.warning("Login rejected for %r", username)
            raise InvalidCredentialsError()

        claims = self.tokens.build_claims(user.id, user.role, self.token_ttl_seconds)
        token = self.tokens.sign(claims)
        logger.info("Login successful for %r", username)
        return TokenResponse(
            token=token,
            expires_at=datetime.fromtimestamp(claims.expires_at, tz=timezone.utc),
            user_id=str(user.id),
            username=user.username,
            role=user.role,
        )

    def register(
        self,
        username: str,
        email: str,
        password: str,
        role: RoleName | str | None = None,
    ) -> UserSummary:
        username = clean_username(username)
        email = clean_email(email)
        check_password(password)
        resolved_role = RoleName.parse(role) if role is not None else DEFAULT_ROLE

        if self.store.find_by_username(username) is not None:
            logger.warning("Registration rejected for %r: username exists", username)
            raise ValidationError("Username already exists")
        if self.store.find_by_email(email) is not None:
            logger.warning("Registration rejected for %r: email exists", username)
            raise ValidationError("Email already exists")

        user = User(
            username=username,
            email=email,
            password_hash=self.hasher.hash(password),
            role=resolved_role,
        )
        self.store.create(user)
        logger.info("Registered user %r with role %s", username, resolved_role.value)
        return UserSummary(
            user_id=str(user.id),
            username=user.username,
            email=user.email,
            role=user.role,
        )

    def validate_token(self, token: str) -> TokenClaims:
        return self.tokens.validate(token)

    @staticmethod
    def authorize(caller_role: RoleName, required_role: RoleName) -> bool:
        return authorize(caller_role, required_role)
