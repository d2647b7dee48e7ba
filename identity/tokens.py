"""
identity/tokens.py -- Issue and validate signed, expiring access tokens.

Security design decisions:
  Format: standard compact JWT (header.payload.signature), HS256 over a
       shared secret, via python-jose. Payload fields are exactly sub, iat,
       exp (integer Unix seconds) and role (RoleName value), so any JWT
       library holding the secret can verify a token.

  Stateless: no session table and no revocation list. A token is valid iff
       its signature verifies and exp >= now. A leaked, unexpired token stays
       valid until it expires; rotating the secret invalidates all tokens.

  Expiry: python-jose checks exp itself, but validate() re-checks exp against
       the service's own clock afterwards. Expiry enforcement therefore does
       not depend on a library default staying switched on.

  Errors: any parse, signature, or claim-shape failure raises
       TokenMalformedError; a past exp raises TokenExpiredError. Both are
       AuthenticationError subclasses, so the request layer answers 401 for
       either without revealing which.

Layer rule: imports only identity.errors / identity.models / identity.roles.
The secret is passed in by the composition root, never read from the
environment here.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable

from jose import ExpiredSignatureError, JWTError, jwt

from identity.errors import TokenExpiredError, TokenMalformedError
from identity.models import TokenClaims
from identity.roles import RoleName

logger = logging.getLogger("idgate.identity.tokens")

ALGORITHM = "HS256"
DEFAULT_TTL_SECONDS = 3600


class TokenService:
    """Mint and verify HS256 JWTs carrying subject, role, and validity window.

    Usage:
        tokens = TokenService(secret_key=settings.secret_key)
        token = tokens.issue(user.id, user.role, ttl_seconds=3600)
        claims = tokens.validate(token)   # TokenClaims or raises

    clock returns the current Unix time in seconds. Tests inject a fake clock
    to cross the expiry boundary without sleeping.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = ALGORITHM,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret_key:
            raise ValueError("secret_key must be non-empty")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._clock = clock

    def now(self) -> int:
        return int(self._clock())

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def build_claims(self, subject_id: uuid.UUID | str, role: RoleName, ttl_seconds: int) -> TokenClaims:
        """Return claims issued now and expiring ttl_seconds later."""
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        issued_at = self.now()
        return TokenClaims(
            subject=str(subject_id),
            role=RoleName(role),
            issued_at=issued_at,
            expires_at=issued_at + ttl_seconds,
        )

    def sign(self, claims: TokenClaims) -> str:
        """Encode and sign claims. Identical claims always produce the identical token."""
        return jwt.encode(claims.to_payload(), self._secret_key, algorithm=self._algorithm)

    def issue(self, subject_id: uuid.UUID | str, role: RoleName, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> str:
        return self.sign(self.build_claims(subject_id, role, ttl_seconds))

    # ------------------------------------------------------------------
    # Validate
    # ------------------------------------------------------------------

    def validate(self, token: str) -> TokenClaims:
        """Verify signature and expiry of token and return its claims.

        Raises TokenMalformedError if the token cannot be parsed, the
        signature does not verify, or the payload lacks a usable sub, iat,
        exp, or role. Raises TokenExpiredError if exp < now.
        """
        if not isinstance(token, str) or not token:
            raise TokenMalformedError()
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except ExpiredSignatureError as exc:
            logger.debug("Token rejected: expired (library check)")
            raise TokenExpiredError() from exc
        except JWTError as exc:
            logger.debug("Token rejected: malformed or bad signature")
            raise TokenMalformedError() from exc

        claims = _claims_from_payload(payload)
        if claims.expires_at < self.now():
            logger.debug("Token rejected: expired")
            raise TokenExpiredError()
        return claims


# ---------------------------------------------------------------------------
# Payload mapper
# ---------------------------------------------------------------------------


def _int_claim(payload: dict, name: str) -> int:
    value = payload.get(name)
    # bool is an int subclass; a JSON true/false is never a timestamp.
    if isinstance(value, bool) or not isinstance(value, int):
        logger.debug("Token rejected: %s claim missing or not an integer", name)
        raise TokenMalformedError()
    return value


def _claims_from_payload(payload: dict) -> TokenClaims:
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        logger.debug("Token rejected: sub claim missing")
        raise TokenMalformedError()
    try:
        role = RoleName(payload.get("role"))
    except ValueError as exc:
        logger.debug("Token rejected: unknown role claim")
        raise TokenMalformedError() from exc
    return TokenClaims(
        subject=subject,
        role=role,
        issued_at=_int_claim(payload, "iat"),
        expires_at=_int_claim(payload, "exp"),
    )
