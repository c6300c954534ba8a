"""
api/routes/members.py -- Project membership endpoints.

Routes:
  GET    /api/members/{name}                     -- members plus the owner (isOwner=true)
  POST   /api/members/add/{name}                 -- add a member; owner or admin
  DELETE /api/members/remove/{name}/{member_id}  -- remove a member; owner or admin

Guards on top of the rule table (projects/policy.py):
  add:    never the owner, never yourself, never an existing member.
  remove: never the owner (for admins too), only existing members.

A duplicate add that slips past is_member() under concurrency is stopped by
the UNIQUE (project_id, user_id) constraint and reported the same way.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError

from api.models import Envelope, MemberAdd, MemberRow, MembersResponse
from api.routes.common import get_project_store, get_user_store, load_project
from auth.dependencies import get_principal
from auth.models import Principal
from core.errors import NotFound
from projects.policy import (
    REASON_ALREADY_MEMBER,
    Action,
    Decision,
    authorize,
    check_add_member,
    check_remove_member,
    deny,
)

logger = logging.getLogger("projecthub.api")

router = APIRouter()


@router.get("/members/{name}", response_model=MembersResponse)
def list_members(request: Request, name: str, principal: Principal = Depends(get_principal)) -> MembersResponse:
    store = get_project_store(request)
    project = load_project(store, name)
    authorize(store, principal, project, Action.LIST_MEMBERS)

    member_ids = store.list_member_ids(project.id)
    users = get_user_store(request).get_many(member_ids + [project.owner_id])
    rows = [MemberRow(id=uid, username=users[uid].username) for uid in member_ids if uid in users]
    owner = users.get(project.owner_id)
    if owner is not None:
        rows.append(MemberRow(id=owner.id, username=owner.username, is_owner=True))
    return MembersResponse(users=rows)


@router.post("/members/add/{name}", response_model=Envelope)
def add_member(
    request: Request,
    name: str,
    body: MemberAdd,
    principal: Principal = Depends(get_principal),
) -> Envelope:
    store = get_project_store(request)
    project = load_project(store, name)
    authorize(store, principal, project, Action.ADD_MEMBER)

    target = get_user_store(request).get_by_id(body.member_id)
    if target is None:
        raise NotFound("There is no user with the given id.", f"No user with id {body.member_id}.")

    already_member = store.is_member(project.id, target.id)
    deny(check_add_member(project, principal.user_id, target.id, already_member), principal, project, Action.ADD_MEMBER)
    try:
        store.add_member(project.id, target.id)
    except IntegrityError:
        deny(Decision(False, REASON_ALREADY_MEMBER), principal, project, Action.ADD_MEMBER)
    logger.info("User %d added to project %d by user_id=%d", target.id, project.id, principal.user_id)
    return Envelope(client_msg="Successfully added member to project!")


@router.delete("/members/remove/{name}/{member_id}", response_model=Envelope)
def remove_member(
    request: Request,
    name: str,
    member_id: int,
    principal: Principal = Depends(get_principal),
) -> Envelope:
    store = get_project_store(request)
    project = load_project(store, name)
    authorize(store, principal, project, Action.REMOVE_MEMBER)

    is_member = store.is_member(project.id, member_id)
    deny(check_remove_member(project, member_id, is_member), principal, project, Action.REMOVE_MEMBER)
    store.remove_member(project.id, member_id)
    logger.info("User %d removed from project %d by user_id=%d", member_id, project.id, principal.user_id)
    return Envelope(client_msg="Successfully removed member from project!")
