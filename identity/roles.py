"""
identity/roles.py -- Role model: permission sets and the authorization decision table.

Permissions are a pure function of the role name. Nothing stores or mutates
them per user; User.permissions looks them up here on every access.

The authorization rule is an explicit (caller, required) table rather than a
numeric rank comparison. Today the table happens to coincide with the total
order Admin > Manager > User > Guest, but the table is the contract: a new
role must be given an explicit row and column here, never a rank.

Layer rule: imports only identity.errors.
"""

from __future__ import annotations

from enum import Enum

from identity.errors import AuthorizationError, ValidationError


class RoleName(str, Enum):
    """Closed set of access tiers. The value is the wire form used in the JWT role claim."""

    Admin = "Admin"
    Manager = "Manager"
    User = "User"
    Guest = "Guest"

    @classmethod
    def parse(cls, value: RoleName | str) -> RoleName:
        """Return the RoleName for value (case-insensitive), or raise ValidationError."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for role in cls:
                if role.value.lower() == value.strip().lower():
                    return role
        raise ValidationError(f"Unknown role: {value!r}")


DEFAULT_ROLE = RoleName.User

# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------

_PERMISSIONS: dict[RoleName, frozenset[str]] = {
    RoleName.Admin: frozenset(
        {
            "users:read",
            "users:write",
            "users:delete",
            "roles:read",
            "roles:write",
            "roles:delete",
        }
    ),
    RoleName.Manager: frozenset({"users:read", "users:write", "roles:read"}),
    RoleName.User: frozenset({"users:read"}),
    RoleName.Guest: frozenset(),
}


def permissions_for(role: RoleName) -> frozenset[str]:
    """Return the immutable permission set granted to role."""
    return _PERMISSIONS[role]


def has_permission(role: RoleName, permission: str) -> bool:
    return permission in _PERMISSIONS[role]


# ---------------------------------------------------------------------------
# Authorization decision table
# ---------------------------------------------------------------------------

# _ACCESS[caller] is the set of required roles the caller may satisfy.
_ACCESS: dict[RoleName, frozenset[RoleName]] = {
    RoleName.Admin: frozenset({RoleName.Admin, RoleName.Manager, RoleName.User, RoleName.Guest}),
    RoleName.Manager: frozenset({RoleName.Manager, RoleName.User, RoleName.Guest}),
    RoleName.User: frozenset({RoleName.User, RoleName.Guest}),
    RoleName.Guest: frozenset({RoleName.Guest}),
}


def authorize(caller_role: RoleName, required_role: RoleName) -> bool:
    """Return True if a caller holding caller_role may access a route requiring required_role."""
    return required_role in _ACCESS[caller_role]


def require_role(caller_role: RoleName, required_role: RoleName) -> None:
    """Raise AuthorizationError unless authorize(caller_role, required_role) allows."""
    if not authorize(caller_role, required_role):
        raise AuthorizationError("Insufficient permissions")
