"""
projects/policy.py -- The authorization policy: one rule table for every project action.

Every handler that touches a project goes through authorize(). There is no
per-route role check anywhere else, so changing who may do what is a change
to _RULES and nothing more.

Role resolution (highest wins):
    ADMIN   principal.is_admin
    OWNER   project.owner_id == principal.user_id
    MEMBER  a ProjectMember record exists for (project, principal)
    NONE    otherwise

Active-status rule:
    Admins bypass it. Everyone else is denied on an inactive project unless
    the action is exempt (VIEW_ACTIVE_STATUS, so the client can still render
    the "inactive" banner).

Membership is read fresh from the store on every call. Nothing is cached
between requests, so a removal takes effect on the removed user's next call.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from auth.models import Principal
from core.errors import AccessDenied
from projects.models import Project
from projects.store import ProjectStore

logger = logging.getLogger("projecthub.projects")


class Role(str, Enum):
    ADMIN = "admin"
    OWNER = "owner"
    MEMBER = "member"
    NONE = "none"


class Action(str, Enum):
    VIEW_PROJECT = "view_project"
    VIEW_PROJECT_DETAILS = "view_project_details"
    VIEW_OWNER = "view_owner"
    VIEW_ACTIVE_STATUS = "view_active_status"
    LIST_MEMBERS = "list_members"
    LIST_TASKS = "list_tasks"
    CREATE_TASK = "create_task"
    UPDATE_TASK = "update_task"
    UPDATE_TASK_STATUS = "update_task_status"
    UPDATE_PROJECT = "update_project"
    ADD_MEMBER = "add_member"
    REMOVE_MEMBER = "remove_member"
    UPDATE_OWNER = "update_owner"
    UPDATE_ACTIVE_STATUS = "update_active_status"
    SEARCH_PROJECTS = "search_projects"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""


ALLOW = Decision(True)

REASON_INACTIVE = "project inactive"
REASON_NO_ACCESS = "not owner/member/admin"
REASON_OWNER_REQUIRED = "owner or admin required"
REASON_ADMIN_REQUIRED = "admin required"
REASON_OWNER_NOT_MEMBER = "owner can't be a member"
REASON_SELF_ADD = "can't add yourself"
REASON_ALREADY_MEMBER = "already a member"
REASON_REMOVE_OWNER = "owner can't be removed"
REASON_NOT_MEMBER = "not a member"
REASON_SAME_OWNER = "already the owner"

_MEMBER_ROLES = frozenset({Role.OWNER, Role.MEMBER})
_OWNER_ROLES = frozenset({Role.OWNER})
_ADMIN_ONLY: frozenset = frozenset()

# action -> (non-admin roles allowed, deny reason, active check applies)
_RULES: dict[Action, tuple[frozenset, str, bool]] = {
    Action.VIEW_PROJECT: (_MEMBER_ROLES, REASON_NO_ACCESS, True),
    Action.VIEW_PROJECT_DETAILS: (_MEMBER_ROLES, REASON_NO_ACCESS, True),
    Action.VIEW_OWNER: (_MEMBER_ROLES, REASON_NO_ACCESS, True),
    Action.VIEW_ACTIVE_STATUS: (_MEMBER_ROLES, REASON_NO_ACCESS, False),
    Action.LIST_MEMBERS: (_MEMBER_ROLES, REASON_NO_ACCESS, True),
    Action.LIST_TASKS: (_MEMBER_ROLES, REASON_NO_ACCESS, True),
    Action.CREATE_TASK: (_MEMBER_ROLES, REASON_NO_ACCESS, True),
    Action.UPDATE_TASK: (_MEMBER_ROLES, REASON_NO_ACCESS, True),
    Action.UPDATE_TASK_STATUS: (_MEMBER_ROLES, REASON_NO_ACCESS, True),
    Action.UPDATE_PROJECT: (_MEMBER_ROLES, REASON_NO_ACCESS, True),
    Action.ADD_MEMBER: (_OWNER_ROLES, REASON_OWNER_REQUIRED, True),
    Action.REMOVE_MEMBER: (_OWNER_ROLES, REASON_OWNER_REQUIRED, True),
    Action.UPDATE_OWNER: (_ADMIN_ONLY, REASON_ADMIN_REQUIRED, False),
    Action.UPDATE_ACTIVE_STATUS: (_ADMIN_ONLY, REASON_ADMIN_REQUIRED, False),
    Action.SEARCH_PROJECTS: (_ADMIN_ONLY, REASON_ADMIN_REQUIRED, False),
}

_CLIENT_MESSAGES = {
    REASON_INACTIVE: "This project is inactive.",
    REASON_NO_ACCESS: "You don't have access to this project.",
    REASON_OWNER_REQUIRED: "Only the owner of the project can do this.",
    REASON_ADMIN_REQUIRED: "You don't have access to this function.",
    REASON_OWNER_NOT_MEMBER: "The owner of the project can't be a member.",
    REASON_SELF_ADD: "You can't add yourself to the project.",
    REASON_ALREADY_MEMBER: "This user is already a member of the project.",
    REASON_REMOVE_OWNER: "The owner of the project can't be removed.",
    REASON_NOT_MEMBER: "This user is not a member of the project.",
    REASON_SAME_OWNER: "This user is already the owner of the project.",
}


def resolve_role(principal: Principal, project: Optional[Project], is_member: bool = False) -> Role:
    if principal.is_admin:
        return Role.ADMIN
    if project is not None and project.owner_id == principal.user_id:
        return Role.OWNER
    if is_member:
        return Role.MEMBER
    return Role.NONE


def decide(role: Role, project_active: bool, action: Action) -> Decision:
    """Pure rule-table lookup. No I/O.

    Admin short-circuits everything. For other roles the role check runs
    before the active check, so an outsider is told "no access" rather than
    learning the project's status.
    """
    if role is Role.ADMIN:
        return ALLOW
    allowed_roles, deny_reason, check_active = _RULES[action]
    if role not in allowed_roles:
        return Decision(False, deny_reason)
    if check_active and not project_active:
        return Decision(False, REASON_INACTIVE)
    return ALLOW


# ---------------------------------------------------------------------------
# Guards layered on top of the rule table
# ---------------------------------------------------------------------------


def check_add_member(project: Project, actor_id: int, target_id: int, already_member: bool) -> Decision:
    if target_id == project.owner_id:
        return Decision(False, REASON_OWNER_NOT_MEMBER)
    if target_id == actor_id:
        return Decision(False, REASON_SELF_ADD)
    if already_member:
        return Decision(False, REASON_ALREADY_MEMBER)
    return ALLOW


def check_remove_member(project: Project, target_id: int, is_member: bool) -> Decision:
    # Removing the owner is refused for every role, admins included.
    if target_id == project.owner_id:
        return Decision(False, REASON_REMOVE_OWNER)
    if not is_member:
        return Decision(False, REASON_NOT_MEMBER)
    return ALLOW


def check_transfer(principal: Principal, project: Project, new_owner_id: int) -> Decision:
    if not principal.is_admin:
        return Decision(False, REASON_ADMIN_REQUIRED)
    if new_owner_id == project.owner_id:
        return Decision(False, REASON_SAME_OWNER)
    return ALLOW


def deny(decision: Decision, principal: Principal, project: Optional[Project], action: Action) -> None:
    """Raise AccessDenied for a DENY decision; no-op for ALLOW."""
    if decision.allowed:
        return
    project_id = project.id if project is not None else None
    logger.info(
        "Denied %s for user_id=%d on project_id=%s: %s",
        action.value,
        principal.user_id,
        project_id,
        decision.reason,
    )
    raise AccessDenied(
        _CLIENT_MESSAGES.get(decision.reason, "You don't have access to this function."),
        f"Authorization denied: {decision.reason}.",
    )


def authorize(store: ProjectStore, principal: Principal, project: Optional[Project], action: Action) -> Role:
    """Resolve the caller's role against fresh store state and enforce the rule table.

    project may be None only for project-independent actions (SEARCH_PROJECTS).
    Returns the resolved role so handlers can shape the response (e.g. isOwner).
    Raises AccessDenied on DENY.
    """
    is_member = False
    if project is not None and not principal.is_admin and project.owner_id != principal.user_id:
        is_member = store.is_member(project.id, principal.user_id)
    role = resolve_role(principal, project, is_member)
    project_active = project.is_active if project is not None else True
    deny(decide(role, project_active, action), principal, project, action)
    return role
