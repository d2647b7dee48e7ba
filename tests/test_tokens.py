"""Unit tests for identity/tokens.py -- JWT issuance, signature checks, and expiry.

Covers:
- issue/validate round trip preserves subject and role; exp - iat == ttl
- wire format is a standard three-part HS256 JWT with exactly sub/iat/exp/role
- identical inputs and timestamp produce an identical token
- bad signature, garbage, tampering, and bad claims -> TokenMalformedError
- ttl=1 boundary: valid at exp, TokenExpiredError one second later
- expiry is enforced by the service's own clock, not only python-jose's check

Time is controlled with FakeClock; nothing sleeps.
"""

import base64
import json
import time
import uuid

import pytest
from jose import jwt

from identity.errors import AuthenticationError, TokenExpiredError, TokenMalformedError
from identity.roles import RoleName
from identity.tokens import TokenService
from tests.conftest import TEST_SECRET, FakeClock


def _sign_raw(payload: dict, secret: str = TEST_SECRET) -> str:
    return jwt.encode(payload, secret, algorithm="HS256")


def _b64(obj: dict) -> str:
    return base64.urlsafe_b64encode(json.dumps(obj).encode()).rstrip(b"=").decode()


class TestIssue:
    def test_round_trip(self, tokens: TokenService) -> None:
        uid = uuid.uuid4()
        claims = tokens.validate(tokens.issue(uid, RoleName.Manager, ttl_seconds=600))
        assert claims.subject == str(uid)
        assert claims.role is RoleName.Manager
        assert claims.expires_at - claims.issued_at == 600

    def test_wire_format(self, tokens: TokenService) -> None:
        token = tokens.issue("abc", RoleName.User, ttl_seconds=60)
        assert token.count(".") == 2
        assert jwt.get_unverified_header(token)["alg"] == "HS256"
        payload = jwt.get_unverified_claims(token)
        assert set(payload) == {"sub", "iat", "exp", "role"}
        assert payload["role"] == "User"
        assert isinstance(payload["iat"], int)
        assert isinstance(payload["exp"], int)

    def test_external_verifier_accepts_token(self, tokens: TokenService) -> None:
        token = tokens.issue("abc", RoleName.Admin, ttl_seconds=60)
        payload = jwt.decode(token, TEST_SECRET, algorithms=["HS256"])
        assert payload["sub"] == "abc"
        assert payload["role"] == "Admin"

    def test_deterministic_for_same_timestamp(self) -> None:
        clock = FakeClock(time.time())
        a = TokenService(TEST_SECRET, clock=clock)
        b = TokenService(TEST_SECRET, clock=clock)
        assert a.issue("abc", RoleName.User, 60) == b.issue("abc", RoleName.User, 60)

    def test_non_positive_ttl_rejected(self, tokens: TokenService) -> None:
        with pytest.raises(ValueError):
            tokens.issue("abc", RoleName.User, ttl_seconds=0)

    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(ValueError):
            TokenService(secret_key="")


class TestMalformed:
    def test_wrong_secret(self, tokens: TokenService) -> None:
        other = TokenService("another-secret-key-0123456789abcdef-xyz")
        with pytest.raises(TokenMalformedError):
            tokens.validate(other.issue("abc", RoleName.Admin, 60))

    @pytest.mark.parametrize("garbage", ["", "not-a-token", "a.b.c", "a.b"])
    def test_garbage(self, tokens: TokenService, garbage: str) -> None:
        with pytest.raises(TokenMalformedError):
            tokens.validate(garbage)

    def test_tampered_payload(self, tokens: TokenService) -> None:
        header, _payload, signature = tokens.issue("abc", RoleName.User, 60).split(".")
        forged = tokens.issue("abc", RoleName.Admin, 60).split(".")[1]
        with pytest.raises(TokenMalformedError):
            tokens.validate(f"{header}.{forged}.{signature}")

    def test_unsigned_token_rejected(self, tokens: TokenService) -> None:
        now = int(time.time())
        header = _b64({"alg": "none", "typ": "JWT"})
        payload = _b64({"sub": "abc", "iat": now, "exp": now + 60, "role": "Admin"})
        token = f"{header}.{payload}."
        with pytest.raises(TokenMalformedError):
            tokens.validate(token)

    def test_unknown_role(self, tokens: TokenService) -> None:
        now = int(time.time())
        token = _sign_raw({"sub": "abc", "iat": now, "exp": now + 60, "role": "Superuser"})
        with pytest.raises(TokenMalformedError):
            tokens.validate(token)

    @pytest.mark.parametrize("missing", ["sub", "iat", "exp", "role"])
    def test_missing_claim(self, tokens: TokenService, missing: str) -> None:
        now = int(time.time())
        payload = {"sub": "abc", "iat": now, "exp": now + 60, "role": "User"}
        del payload[missing]
        with pytest.raises(TokenMalformedError):
            tokens.validate(_sign_raw(payload))

    def test_malformed_is_authentication_error(self) -> None:
        assert issubclass(TokenMalformedError, AuthenticationError)


class TestExpiry:
    def test_valid_before_boundary(self) -> None:
        clock = FakeClock(time.time())
        svc = TokenService(TEST_SECRET, clock=clock)
        token = svc.issue("abc", RoleName.User, ttl_seconds=1)
        assert svc.validate(token).subject == "abc"

    def test_valid_exactly_at_exp(self) -> None:
        clock = FakeClock(time.time())
        svc = TokenService(TEST_SECRET, clock=clock)
        token = svc.issue("abc", RoleName.User, ttl_seconds=1)
        clock.advance(1)
        assert svc.validate(token).role is RoleName.User

    def test_expired_after_boundary(self) -> None:
        clock = FakeClock(time.time())
        svc = TokenService(TEST_SECRET, clock=clock)
        token = svc.issue("abc", RoleName.User, ttl_seconds=1)
        clock.advance(2)
        # Real time has not reached exp, so only the service's own check can reject this.
        with pytest.raises(TokenExpiredError):
            svc.validate(token)

    def test_library_expiry_maps_to_expired(self, tokens: TokenService) -> None:
        past = TokenService(TEST_SECRET, clock=FakeClock(time.time() - 100))
        token = past.issue("abc", RoleName.User, ttl_seconds=1)
        with pytest.raises(TokenExpiredError):
            tokens.validate(token)

    def test_expired_is_authentication_error(self) -> None:
        assert issubclass(TokenExpiredError, AuthenticationError)
