"""Unit tests for identity/roles.py -- permission sets and the authorization decision table.

Covers:
- permissions_for() reproduces the fixed per-role permission sets
- authorize() reproduces all 16 (caller, required) pairs
- require_role() raises AuthorizationError on deny
- RoleName.parse() accepts enum members and case-insensitive names
"""

import pytest

from identity.errors import AuthorizationError, ValidationError
from identity.models import User
from identity.roles import RoleName, authorize, has_permission, permissions_for, require_role

A, M, U, G = RoleName.Admin, RoleName.Manager, RoleName.User, RoleName.Guest

# (caller, required) -> allowed
_EXPECTED = {
    (A, A): True,
    (A, M): True,
    (A, U): True,
    (A, G): True,
    (M, A): False,
    (M, M): True,
    (M, U): True,
    (M, G): True,
    (U, A): False,
    (U, M): False,
    (U, U): True,
    (U, G): True,
    (G, A): False,
    (G, M): False,
    (G, U): False,
    (G, G): True,
}


class TestPermissions:
    def test_admin_permissions(self) -> None:
        assert permissions_for(A) == {
            "users:read",
            "users:write",
            "users:delete",
            "roles:read",
            "roles:write",
            "roles:delete",
        }

    def test_manager_permissions(self) -> None:
        assert permissions_for(M) == {"users:read", "users:write", "roles:read"}

    def test_user_permissions(self) -> None:
        assert permissions_for(U) == {"users:read"}

    def test_guest_has_no_permissions(self) -> None:
        assert permissions_for(G) == frozenset()

    def test_permission_sets_are_immutable(self) -> None:
        assert isinstance(permissions_for(A), frozenset)

    def test_has_permission(self) -> None:
        assert has_permission(M, "users:write")
        assert not has_permission(M, "users:delete")
        assert not has_permission(G, "users:read")


class TestAuthorize:
    @pytest.mark.parametrize(("caller", "required"), list(_EXPECTED))
    def test_decision_table(self, caller: RoleName, required: RoleName) -> None:
        assert authorize(caller, required) is _EXPECTED[(caller, required)]

    def test_table_covers_every_pair(self) -> None:
        assert len(_EXPECTED) == len(RoleName) ** 2

    def test_require_role_allows_silently(self) -> None:
        require_role(M, U)

    def test_require_role_raises_on_deny(self) -> None:
        with pytest.raises(AuthorizationError) as exc_info:
            require_role(U, M)
        assert exc_info.value.category == "forbidden"


class TestParse:
    def test_enum_member_passes_through(self) -> None:
        assert RoleName.parse(M) is M

    @pytest.mark.parametrize("raw", ["Manager", "manager", " MANAGER "])
    def test_string_is_case_insensitive(self, raw: str) -> None:
        assert RoleName.parse(raw) is M

    @pytest.mark.parametrize("raw", ["superuser", "", 3])
    def test_unknown_role_is_validation_error(self, raw) -> None:
        with pytest.raises(ValidationError):
            RoleName.parse(raw)


class TestUserPermissions:
    def test_permissions_follow_role(self) -> None:
        user = User(username="alice", email="alice@x.com", password_hash="x", role=M)
        assert user.has_permission("users:write")
        assert user.permissions == permissions_for(M)
        user.role = G
        assert user.permissions == frozenset()
        assert not user.has_permission("users:read")

    def test_default_role_is_user(self) -> None:
        assert User(username="a", email="a@x.com", password_hash="x").role is U
