"""
auth/tokens.py -- JWT session tokens, password hashing, and the refresh cookie.

Security design decisions:
  JWT: python-jose with HS256. Two token kinds, two secrets:
       access  -- ACCESS_TOKEN_SECRET, 10 minutes, carried by the client
                  in the Authorization header.
       refresh -- REFRESH_TOKEN_SECRET, 5 days, carried only in the
                  httpOnly "refreshToken" cookie.
       Payload is {userId, iat, exp, jti}. jti makes every issued token
       unique, so a rotated refresh token never equals the one it replaced,
       and leaves room for a server-side denylist keyed by token id.

       Verification raises TokenVerificationError on any failure (expired,
       bad signature, malformed, missing userId). The route layer turns that
       into Forbidden (403).

  Rotation: rotate() verifies the presented refresh token and issues a new
       access + refresh pair. The old refresh token is NOT revoked server-side
       -- it stays valid until natural expiry. Logout and rotation only
       replace the cookie. Known gap; see DESIGN.md.

  Passwords: bcrypt with a fresh random salt per call. _DUMMY_HASH enables
       timing equalization in accounts.login() so response time does not
       reveal whether a username exists.

Layer rule: no imports from api/ or projects/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from auth.models import TokenPair, TokenPayload
from core.config import get_settings

logger = logging.getLogger("projecthub.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

REFRESH_COOKIE_NAME = "refreshToken"


class TokenVerificationError(Exception):
    """Raised when a token is expired, tampered with, or malformed."""


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are truncated by bcrypt. The API layer caps
    password length (Pydantic field) well below that threshold.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash -- treat as a mismatch.
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("projecthub_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def _issue(user_id: int, secret: str, lifetime_seconds: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "userId": user_id,
        "iat": now,
        "exp": now + timedelta(seconds=lifetime_seconds),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, secret, algorithm=_ALGORITHM)


def issue_access_token(user_id: int) -> str:
    """Sign a short-lived access token for user_id with the access secret."""
    return _issue(user_id, _settings.access_token_secret, _settings.access_token_expire_seconds)


def issue_refresh_token(user_id: int) -> str:
    """Sign a long-lived refresh token for user_id with the refresh secret."""
    return _issue(user_id, _settings.refresh_token_secret, _settings.refresh_token_expire_seconds)


def issue_token_pair(user_id: int) -> TokenPair:
    return TokenPair(
        user_id=user_id,
        access_token=issue_access_token(user_id),
        refresh_token=issue_refresh_token(user_id),
    )


def verify_token(token: str, secret: str) -> TokenPayload:
    """Decode and verify a token signed with secret.

    Raises TokenVerificationError on any failure. python-jose checks the
    signature and the exp claim; the userId claim is checked here.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
    except JWTError as exc:
        raise TokenVerificationError(str(exc)) from exc
    user_id = payload.get("userId")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise TokenVerificationError("Token payload has no valid userId claim.")
    return TokenPayload(user_id=user_id, jti=str(payload.get("jti", "")), expires_at=int(payload["exp"]))


def verify_access_token(token: str) -> TokenPayload:
    return verify_token(token, _settings.access_token_secret)


def verify_refresh_token(token: str) -> TokenPayload:
    return verify_token(token, _settings.refresh_token_secret)


def rotate(old_refresh_token: str) -> TokenPair:
    """Exchange a valid refresh token for a brand-new access + refresh pair.

    Raises TokenVerificationError if old_refresh_token does not verify with the
    refresh secret. The new pair carries the same userId as the old token.
    """
    payload = verify_refresh_token(old_refresh_token)
    logger.debug("Rotating refresh token jti=%s for user_id=%d", payload.jti, payload.user_id)
    return issue_token_pair(payload.user_id)


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_refresh_cookie(response, token: str) -> None:
    """Write the refresh token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="none" + secure: the SPA frontend lives on another origin, so the
        cookie has to travel cross-site; browsers only accept SameSite=None
        together with Secure.
    max_age: matches the refresh token lifetime so both expire together.
    """
    response.set_cookie(
        REFRESH_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="none",
        secure=_settings.secure_cookies,
        max_age=_settings.refresh_token_expire_seconds,
    )


def clear_refresh_cookie(response) -> None:
    """Expire the refresh cookie. Attributes must match set_refresh_cookie()."""
    response.delete_cookie(
        REFRESH_COOKIE_NAME,
        httponly=True,
        samesite="none",
        secure=_settings.secure_cookies,
    )
