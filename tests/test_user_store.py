"""
tests/test_user_store.py -- Unit tests for auth/store.py and auth/accounts.py.

Covers:
  - UNIQUE username / email enforced by the store itself
  - exact-match search on username, or username-or-email
  - update_user whitelist and count_active_admins
  - register(): conflict order (username first), no partial writes
  - login(): success, unknown user, wrong password, inactive profile
"""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from auth import accounts
from auth.models import User
from auth.tokens import verify_access_token, verify_refresh_token
from core.errors import Conflict, Unauthenticated


class TestUserStore:
    def test_create_and_fetch(self, user_store, make_user) -> None:
        uid = make_user(user_store, "alice")
        user = user_store.get_by_id(uid)
        assert user.username == "alice"
        assert user.email == "alice@example.com"
        assert user.is_active is True
        assert user.is_admin is False
        assert user.created_at
        assert user_store.get_by_username("alice").id == uid
        assert user_store.get_by_email("alice@example.com").id == uid

    def test_missing_user_is_none(self, user_store) -> None:
        assert user_store.get_by_id(999) is None
        assert user_store.get_by_username("nobody") is None

    def test_has_users(self, user_store, make_user) -> None:
        assert user_store.has_users() is False
        make_user(user_store, "alice")
        assert user_store.has_users() is True

    def test_duplicate_username_rejected_by_constraint(self, user_store, make_user) -> None:
        make_user(user_store, "alice")
        with pytest.raises(IntegrityError):
            user_store.create_user(User(username="alice", email="other@example.com", hashed_password="x"))

    def test_duplicate_email_rejected_by_constraint(self, user_store, make_user) -> None:
        make_user(user_store, "alice")
        with pytest.raises(IntegrityError):
            user_store.create_user(User(username="alice2", email="alice@example.com", hashed_password="x"))

    def test_search_only_username_is_exact(self, user_store, make_user) -> None:
        make_user(user_store, "alice")
        make_user(user_store, "alicia")
        assert [u.username for u in user_store.search_users("alice", only_username=True)] == ["alice"]
        assert user_store.search_users("ali", only_username=True) == []
        assert user_store.search_users("alice@example.com", only_username=True) == []

    def test_search_username_or_email(self, user_store, make_user) -> None:
        make_user(user_store, "alice")
        found = user_store.search_users("alice@example.com", only_username=False)
        assert [u.username for u in found] == ["alice"]

    def test_get_many(self, user_store, make_user) -> None:
        a = make_user(user_store, "alice")
        b = make_user(user_store, "bob")
        users = user_store.get_many([a, b, 999])
        assert set(users) == {a, b}

    def test_update_user_and_whitelist(self, user_store, make_user) -> None:
        uid = make_user(user_store, "alice")
        assert user_store.update_user(uid, is_admin=True) is True
        assert user_store.get_by_id(uid).is_admin is True
        assert user_store.update_user(999, is_admin=True) is False
        with pytest.raises(ValueError):
            user_store.update_user(uid, username="mallory")

    def test_count_active_admins(self, user_store, make_user) -> None:
        make_user(user_store, "root", is_admin=True)
        make_user(user_store, "old-root", is_admin=True, is_active=False)
        make_user(user_store, "alice")
        assert user_store.count_active_admins() == 1

    def test_list_users_sorted(self, user_store, make_user) -> None:
        make_user(user_store, "carol")
        make_user(user_store, "alice")
        assert [u.username for u in user_store.list_users()] == ["alice", "carol"]


class TestRegister:
    def test_register_creates_active_non_admin(self, user_store) -> None:
        uid = accounts.register(user_store, "alice", "alice@example.com", "pw")
        user = user_store.get_by_id(uid)
        assert user.is_active is True
        assert user.is_admin is False
        assert user.hashed_password != "pw"

    def test_duplicate_username_reported_first(self, user_store, make_user) -> None:
        make_user(user_store, "alice")
        with pytest.raises(Conflict) as exc_info:
            accounts.register(user_store, "alice", "alice@example.com", "pw")
        assert exc_info.value.client_msg == "This username is already in use."

    def test_duplicate_email(self, user_store, make_user) -> None:
        make_user(user_store, "alice")
        with pytest.raises(Conflict) as exc_info:
            accounts.register(user_store, "bob", "alice@example.com", "pw")
        assert exc_info.value.client_msg == "This email is already in use."
        assert user_store.get_by_username("bob") is None

    def test_lost_race_reported_as_conflict(self, user_store, make_user, monkeypatch) -> None:
        """Both lookups pass, then the insert hits the UNIQUE constraint."""
        make_user(user_store, "alice")
        monkeypatch.setattr(user_store, "get_by_username", lambda username: None)
        monkeypatch.setattr(user_store, "get_by_email", lambda email: None)
        with pytest.raises(Conflict):
            accounts.register(user_store, "alice", "alice2@example.com", "pw")


class TestLogin:
    def test_login_issues_pair_for_user(self, user_store, make_user, password) -> None:
        uid = make_user(user_store, "alice")
        pair = accounts.login(user_store, "alice", password)
        assert pair.user_id == uid
        assert verify_access_token(pair.access_token).user_id == uid
        assert verify_refresh_token(pair.refresh_token).user_id == uid

    def test_unknown_username(self, user_store, password) -> None:
        with pytest.raises(Unauthenticated) as exc_info:
            accounts.login(user_store, "ghost", password)
        assert exc_info.value.client_msg == "There is no user with the given username."

    def test_wrong_password(self, user_store, make_user) -> None:
        make_user(user_store, "alice")
        with pytest.raises(Unauthenticated) as exc_info:
            accounts.login(user_store, "alice", "wrong")
        assert exc_info.value.client_msg == "Password does not match."

    def test_inactive_user(self, user_store, make_user, password) -> None:
        make_user(user_store, "alice", is_active=False)
        with pytest.raises(Unauthenticated) as exc_info:
            accounts.login(user_store, "alice", password)
        assert exc_info.value.client_msg == "This profile is inactive."
