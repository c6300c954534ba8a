"""
auth/accounts.py -- Registration and login against the Credential Store.

register() and login() raise core.errors exceptions for every expected
failure; the route layer only shapes the success response.

Registration checks username first, then email, and reports the first
conflict found. The UNIQUE constraints in auth/store.py back both checks up:
when two registrations race past the lookups, the losing insert raises
IntegrityError and is reported as the same Conflict.

Login keeps the original client messages (unknown username, wrong password,
inactive profile are distinguishable) but equalizes bcrypt work so the
response time does not leak which branch was taken.

Layer rule: no imports from api/ or projects/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.models import TokenPair, User
from auth.store import UserStore
from auth.tokens import _DUMMY_HASH, hash_password, issue_token_pair, verify_password
from core.errors import Conflict, Unauthenticated

logger = logging.getLogger("projecthub.auth")


def register(store: UserStore, username: str, email: str, password: str, is_admin: bool = False) -> int:
    """Create an active user and return its id. Non-admin unless is_admin.

    Raises Conflict if the username (checked first) or the email is taken.
    """
    if store.get_by_username(username) is not None:
        raise Conflict(
            "This username is already in use.",
            "There was a duplicate for username at registration.",
        )
    if store.get_by_email(email) is not None:
        raise Conflict(
            "This email is already in use.",
            "There was a duplicate for email at registration.",
        )

    user = User(username=username, email=email, hashed_password=hash_password(password), is_admin=is_admin)
    try:
        user_id = store.create_user(user)
    except IntegrityError as exc:
        raise Conflict(
            "This username or email is already in use.",
            "A concurrent registration claimed the username or email.",
        ) from exc
    logger.info("Registered user_id=%d", user_id)
    return user_id


def login(store: UserStore, username: str, password: str) -> TokenPair:
    """Verify credentials and issue a fresh access + refresh pair.

    Raises Unauthenticated for an unknown username, a wrong password, or an
    inactive profile, checked in that order.
    """
    user = store.get_by_username(username)
    if user is None:
        # Equalize timing -- do NOT return before running bcrypt.
        verify_password(password, _DUMMY_HASH)
        logger.info("Login failed: unknown username")
        raise Unauthenticated(
            "There is no user with the given username.",
            "No user was found with the given username at login.",
        )
    if not verify_password(password, user.hashed_password):
        logger.info("Login failed: bad password for user_id=%d", user.id)
        raise Unauthenticated(
            "Password does not match.",
            "Users password didn't match at login.",
        )
    if not user.is_active:
        logger.info("Login failed: inactive user_id=%d", user.id)
        raise Unauthenticated(
            "This profile is inactive.",
            "Users profile is inactive at login.",
        )
    return issue_token_pair(user.id)
