"""
api/routes/users.py -- User listing, search, and admin user management.

Routes:
  GET   /api/users                                  -- all users (admin only)
  GET   /api/users/search/{search}/{only_username}  -- exact-match lookup (any authenticated user)
  PATCH /api/users/{user_id}                        -- set isActive / isAdmin (admin only)

Security:
  Search returns id + username only, so any member can find a user to add
  to a project without seeing emails or flags.
  PATCH blocks self-deactivation, self-demotion, and removing the last
  active admin (no recovery path without database access).
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from api.models import UserPatch, UserResponse, UserRow, UserSearchResponse, UserSearchRow, UsersResponse
from api.routes.common import get_user_store
from auth.dependencies import get_principal, require_admin
from auth.models import Principal, User
from core.errors import Internal, InvalidInput, NotFound

logger = logging.getLogger("projecthub.api")

router = APIRouter()


def _to_row(user: User | None) -> UserRow:
    if user is None:
        raise Internal(error="User not found after write.")
    return UserRow(
        id=user.id,
        username=user.username,
        email=user.email,
        is_active=user.is_active,
        is_admin=user.is_admin,
        created_at=user.created_at or "",
    )


@router.get("/users", response_model=UsersResponse)
def list_users(request: Request, principal: Principal = Depends(require_admin)) -> UsersResponse:
    return UsersResponse(users=[_to_row(u) for u in get_user_store(request).list_users()])


@router.get("/users/search/{search}/{only_username}", response_model=UserSearchResponse)
def search_users(
    request: Request,
    search: str,
    only_username: bool,
    principal: Principal = Depends(get_principal),
) -> UserSearchResponse:
    users = get_user_store(request).search_users(search, only_username)
    return UserSearchResponse(users=[UserSearchRow(id=u.id, username=u.username) for u in users])


@router.patch("/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: int,
    body: UserPatch,
    principal: Principal = Depends(require_admin),
) -> UserResponse:
    """Update a user's active status or admin flag. Admin only."""
    user_store = get_user_store(request)

    target = user_store.get_by_id(user_id)
    if target is None:
        raise NotFound("There is no user with the given id.", f"No user with id {user_id}.")

    losing_admin = target.is_admin and target.is_active and (body.is_active is False or body.is_admin is False)
    if target.id == principal.user_id and (body.is_active is False or body.is_admin is False):
        raise InvalidInput(
            "You cannot deactivate or demote your own account.",
            "Admin tried to deactivate or demote itself.",
        )
    if losing_admin and user_store.count_active_admins() <= 1:
        raise InvalidInput(
            "Cannot deactivate or demote the last active admin account.",
            "The change would leave no active admin.",
        )

    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise InvalidInput("No fields to update.", "The request body had no isActive or isAdmin value.")

    user_store.update_user(user_id, **updates)
    logger.info("User %d updated by admin user_id=%d: %s", user_id, principal.user_id, updates)
    return UserResponse(user=_to_row(user_store.get_by_id(user_id)), client_msg="Successfully updated user!")
