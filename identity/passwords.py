"""
identity/passwords.py -- One-way password hashing with bcrypt.

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection feeds bcrypt a password longer than 72 bytes, which bcrypt 4.x+
rejects. Direct usage has no compatibility shim.

Work factor: the cost is 2**rounds key-expansion iterations and is embedded
in every hash, so verify() always uses the cost the hash was created with.
Raising rounds later only affects new hashes.

72-byte limit: bcrypt only reads the first 72 bytes of its input. Inputs are
truncated explicitly so current bcrypt releases (which raise on longer
input) behave like older ones. Two passwords sharing their first 72 UTF-8
bytes therefore verify against each other's hash.

Layer rule: imports only identity.errors.
"""

from __future__ import annotations

import re

import bcrypt

from identity.errors import HashingError

DEFAULT_ROUNDS = 12
_MAX_PASSWORD_BYTES = 72

# $2b$12$ + 22 chars of salt + 31 chars of digest, bcrypt's radix-64 alphabet.
_BCRYPT_HASH_RE = re.compile(r"^\$2[abxy]?\$(\d{2})\$[./A-Za-z0-9]{53}$")


def _encode(plain: str) -> bytes:
    try:
        return plain.encode("utf-8")[:_MAX_PASSWORD_BYTES]
    except (UnicodeEncodeError, AttributeError) as exc:
        raise HashingError("Password could not be encoded as UTF-8") from exc


class PasswordHasher:
    """Salted bcrypt hashing with a configurable work factor.

    Usage:
        hasher = PasswordHasher(rounds=12)
        stored = hasher.hash("s3cret")
        hasher.verify("s3cret", stored)   # True
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        if rounds < 4 or rounds > 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        self.rounds = rounds

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of plain. A fresh salt makes every call's output distinct."""
        pw_bytes = _encode(plain)
        return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=self.rounds)).decode("ascii")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if plain matches hashed.

        A wrong password returns False. A hash that is not a well-formed
        bcrypt string raises HashingError instead, so data corruption is
        never mistaken for a failed login.
        """
        if not isinstance(hashed, str) or not _BCRYPT_HASH_RE.match(hashed):
            raise HashingError("Stored password hash is not a valid bcrypt hash")
        pw_bytes = _encode(plain)
        try:
            return bcrypt.checkpw(pw_bytes, hashed.encode("ascii"))
        except ValueError as exc:
            raise HashingError("Stored password hash is not a valid bcrypt hash") from exc
