"""
identity/dependencies.py -- FastAPI Depends() helpers for the authentication and authorization gates.

The host application stores an AuthService on app.state.auth_service at
startup. Routes then declare:

    @router.get("/reports")
    def reports(claims: TokenClaims = Depends(require_role(RoleName.Manager))): ...

get_current_claims() is the authentication gate: it reads
"Authorization: Bearer <token>", validates it, and raises HTTP 401 on any
failure. require_role() wraps it with the authorization gate and raises
HTTP 403 when the decision table denies.

Expired and malformed tokens get the same 401 body. The category is enough
for a client to re-authenticate; the reason is only logged.

Layer rule: may import fastapi because it is part of FastAPI's dependency
injection system. No route definitions live here.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import HTTPException, Request

from identity.errors import AuthenticationError, IdentityError
from identity.models import TokenClaims
from identity.roles import RoleName, authorize

_STATUS_BY_CATEGORY: dict[str, int] = {
    "unauthorized": 401,
    "forbidden": 403,
    "bad_request": 400,
    "not_found": 404,
    "internal_error": 500,
}


def http_status_for(error: IdentityError) -> int:
    """Map an identity error to the HTTP status the request layer should answer with."""
    return _STATUS_BY_CATEGORY.get(error.category, 500)


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def get_current_claims(request: Request) -> TokenClaims:
    """Require a valid Bearer token. Raises HTTP 401 if missing, malformed, or expired."""
    token = _bearer_token(request)
    if token is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    auth_service = request.app.state.auth_service
    try:
        return auth_service.validate_token(token)
    except AuthenticationError:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Invalid or expired token."},
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_role(required: RoleName) -> Callable[[Request], TokenClaims]:
    """Build a dependency that admits callers whose role satisfies required.

    Raises HTTP 401 if unauthenticated, HTTP 403 if the role is insufficient.
    """

    def dependency(request: Request) -> TokenClaims:
        claims = get_current_claims(request)
        if not authorize(claims.role, required):
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": "Insufficient permissions."},
            )
        return claims

    return dependency
