"""
auth/dependencies.py -- FastAPI Depends() helpers that turn an access token into a Principal.

This is the authentication boundary: every handler behind get_principal()
receives a verified Principal and never looks at tokens itself.

  Authorization: Bearer <access token>
    missing header         -> 401 Unauthenticated
    token fails to verify  -> 403 Forbidden (expired, tampered, malformed)
    user unknown/inactive  -> 401 Unauthenticated
    otherwise              -> Principal(user_id, is_admin from the UserStore)

The refresh endpoint is the only route that does not use get_principal();
it authenticates with the refresh cookie instead.

Layer rule: no imports from api/ or projects/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import Principal
from auth.store import UserStore
from auth.tokens import TokenVerificationError, verify_access_token
from core.errors import AccessDenied, Forbidden, Unauthenticated


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        return token or None
    return None


def get_principal(request: Request) -> Principal:
    """Require a valid access token and return the request's Principal.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(principal: Principal = Depends(get_principal)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise Unauthenticated("Unauthorized.", "No access token was presented.")
    try:
        payload = verify_access_token(token)
    except TokenVerificationError as exc:
        raise Forbidden("Forbidden.", f"Invalid access token: {exc}") from exc

    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(payload.user_id)
    if user is None:
        raise Unauthenticated(
            "There is no user with the given credentials.",
            "The access token refers to a user that does not exist.",
        )
    if not user.is_active:
        raise Unauthenticated("This profile is inactive.", "The access token belongs to an inactive user.")
    return Principal(user_id=user.id, is_admin=user.is_admin)


def require_admin(request: Request) -> Principal:
    """Require an admin principal. 401 for everyone else.

    Use as a FastAPI dependency:
        @router.get("/admin-only")
        def route(principal: Principal = Depends(require_admin)): ...
    """
    principal = get_principal(request)
    if not principal.is_admin:
        raise AccessDenied("You don't have access to this function.", "User is not an admin.")
    return principal
