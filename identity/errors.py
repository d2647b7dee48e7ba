"""
identity/errors.py -- Error taxonomy for the identity core.

Every failure the core reports is an IdentityError subclass. Each class
carries a `category` that the request layer maps to a user-facing status
(see identity.dependencies.http_status_for). Third-party exceptions are
translated at the module that calls the library, with `raise ... from exc`
so the original cause stays on the traceback.

Messages for credential and token failures are deliberately coarse. A wrong
username and a wrong password produce the same InvalidCredentialsError text,
so the response never reveals which part was wrong.

Layer rule: no imports from core/ or any other identity module.
"""

from __future__ import annotations


class IdentityError(Exception):
    """Base class for every error raised by the identity core."""

    category = "internal_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


# ---------------------------------------------------------------------------
# unauthorized
# ---------------------------------------------------------------------------


class AuthenticationError(IdentityError):
    """Bad credentials, malformed token, or expired token."""

    category = "unauthorized"


class InvalidCredentialsError(AuthenticationError):
    """Login failed. Raised for both an unknown username and a wrong password."""

    def __init__(self, message: str = "Invalid username or password") -> None:
        super().__init__(message)


class TokenMalformedError(AuthenticationError):
    """Token could not be parsed, its signature does not verify, or its claims are unusable."""

    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(message)


class TokenExpiredError(AuthenticationError):
    """Token signature is valid but its exp claim is in the past."""

    def __init__(self, message: str = "Token expired") -> None:
        super().__init__(message)


# ---------------------------------------------------------------------------
# forbidden / bad_request / not_found
# ---------------------------------------------------------------------------


class AuthorizationError(IdentityError):
    category = "forbidden"


class ValidationError(IdentityError):
    """Duplicate username/email or malformed input such as a bad user id."""

    category = "bad_request"


class NotFoundError(IdentityError):
    category = "not_found"


# ---------------------------------------------------------------------------
# internal_error
# ---------------------------------------------------------------------------


class RepositoryError(IdentityError):
    """Backend failure. Surfaced unchanged; the caller owns any retry policy."""


class HashingError(IdentityError):
    """Password could not be encoded, or a stored hash is not a well-formed bcrypt hash."""
