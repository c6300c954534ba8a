"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in projects/models.py -- dataclasses own domain shape; stores and routes do
the work.

Layer rule: no imports from api/ or projects/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered account.

    username and email are globally unique (UNIQUE constraints in auth/store.py).
    is_active / is_admin are only changed by an admin-authorized action; users
    are never hard-deleted, deactivation is the only removal path.
    """

    username: str
    email: str
    hashed_password: str
    id: int | None = None
    is_active: bool = True
    is_admin: bool = False
    created_at: str | None = None


@dataclass(frozen=True)
class Principal:
    """The authenticated actor of a request.

    Resolved once per request by auth.dependencies.get_principal(): user_id comes
    from the verified access token, is_admin is read from the UserStore so a
    demoted admin loses rights on the next request, not at token expiry.
    """

    user_id: int
    is_admin: bool = False


@dataclass(frozen=True)
class TokenPayload:
    """Verified claims of an access or refresh token."""

    user_id: int
    jti: str
    expires_at: int


@dataclass(frozen=True)
class TokenPair:
    """Result of a successful login or refresh-token rotation."""

    user_id: int
    access_token: str
    refresh_token: str
