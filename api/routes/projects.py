"""
api/routes/projects.py -- Project REST endpoints.

Routes:
  GET  /api/projects                              -- caller's owned + member projects
  POST /api/projects/create                       -- create a project; 201
  GET  /api/projects/recent                       -- most recently viewed project name
  GET  /api/projects/search/{search}/{only_name}  -- admin search, max 10 by name
  GET  /api/projects/isowner/{project_id}         -- {isOwner}
  GET  /api/projects/detailed/{name}              -- project with populated owner
  GET  /api/projects/owner/{name}                 -- owner only
  GET  /api/projects/isActive/{name}              -- active flag
  PUT  /api/projects/update/owner/{name}          -- admin ownership transfer; 201
  PUT  /api/projects/update/isActive/{name}       -- admin (de)activation; 201
  PUT  /api/projects/update/{name}                -- edit name/descriptions/finished; 201
  GET  /api/projects/{name}                       -- project data; bumps recentlyViewed

Every handler follows Validate -> Authenticate -> Authorize -> Execute ->
Respond. Access decisions are always projects.policy.authorize(); the
isOwner flags in responses are display data, not checks.

Route order matters: the literal prefixes (/recent, /search, /detailed ...)
are registered before the catch-all GET /projects/{name}.
"""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError

from api.models import (
    ActiveStatusResponse,
    ActiveStatusUpdate,
    Envelope,
    IsOwnerResponse,
    OwnerResponse,
    OwnerUpdate,
    ProjectDetail,
    ProjectDetailResponse,
    ProjectListResponse,
    ProjectResponse,
    ProjectSummary,
    ProjectView,
    ProjectWrite,
    RecentProjectResponse,
    UserRef,
    format_date,
)
from api.routes.common import get_project_store, get_user_store, load_project
from auth.dependencies import get_principal
from auth.models import Principal, User
from core.errors import Conflict, NotFound
from projects.models import Project
from projects.policy import Action, authorize, check_transfer, deny
from projects.store import ProjectStore

logger = logging.getLogger("projecthub.api")

# Auth policy: every route requires a valid access token (get_principal).
# Per-project rights are decided by projects.policy.authorize().
router = APIRouter()


def _duplicate_name() -> Conflict:
    return Conflict(
        "This project name is already in use.",
        "There was a duplicate for name when writing a project.",
    )


def _to_summary(project: Project, user_id: int, member_counts: dict, task_counts: dict) -> ProjectSummary:
    return ProjectSummary(
        id=project.id,
        name=project.name,
        is_owner=project.owner_id == user_id,
        short_description=project.short_description,
        is_active=project.is_active,
        finished=format_date(project.finished),
        member_count=member_counts.get(project.id, 0) + 1,  # +1 for the owner
        task_count=task_counts.get(project.id, 0),
        recently_viewed=project.recently_viewed,
    )


def _summaries(store: ProjectStore, projects: list[Project], user_id: int) -> list[ProjectSummary]:
    ids = [p.id for p in projects]
    member_counts = store.member_counts(ids)
    task_counts = store.assigned_task_counts(ids, user_id)
    return [_to_summary(p, user_id, member_counts, task_counts) for p in projects]


def _accessible_projects(store: ProjectStore, user_id: int) -> list[Project]:
    return store.list_owned_projects(user_id) + store.list_member_projects(user_id)


def _user_ref(user: User | None) -> UserRef | None:
    if user is None:
        return None
    return UserRef(id=user.id, username=user.username, email=user.email)


def _finished(value: date | None) -> str:
    return value.isoformat() if value is not None else ""


# ---------------------------------------------------------------------------
# Collection endpoints
# ---------------------------------------------------------------------------


@router.get("/projects", response_model=ProjectListResponse)
def list_projects(request: Request, principal: Principal = Depends(get_principal)) -> ProjectListResponse:
    """Owned projects first, then projects where the caller is a member."""
    store = get_project_store(request)
    projects = _accessible_projects(store, principal.user_id)
    return ProjectListResponse(projects=_summaries(store, projects, principal.user_id))


@router.post("/projects/create", response_model=Envelope, status_code=201)
def create_project(
    request: Request,
    body: ProjectWrite,
    principal: Principal = Depends(get_principal),
) -> Envelope:
    """Create a project owned by the caller. 409 if the slugified name is taken."""
    store = get_project_store(request)
    if store.name_taken(body.name):
        raise _duplicate_name()
    project = Project(
        owner_id=principal.user_id,
        name=body.name,
        short_description=body.short_description,
        description=body.description,
        finished=_finished(body.finished),
    )
    try:
        project_id = store.create_project(project)
    except IntegrityError as exc:
        raise _duplicate_name() from exc
    logger.info("Project %d created by user_id=%d", project_id, principal.user_id)
    return Envelope(client_msg="Successfully created project!")


@router.get("/projects/recent", response_model=RecentProjectResponse)
def recent_project(request: Request, principal: Principal = Depends(get_principal)) -> RecentProjectResponse:
    store = get_project_store(request)
    projects = _accessible_projects(store, principal.user_id)
    if not projects:
        raise NotFound(
            "You don't have a recently viewed project!",
            "User doesn't have a recently viewed project.",
        )
    latest = max(projects, key=lambda p: p.recently_viewed)
    return RecentProjectResponse(project_name=latest.name)


@router.get("/projects/search/{search}/{only_name}", response_model=ProjectListResponse)
def search_projects(
    request: Request,
    search: str,
    only_name: bool,
    principal: Principal = Depends(get_principal),
) -> ProjectListResponse:
    """Admin-only substring search over name (and shortDescription unless only_name)."""
    store = get_project_store(request)
    authorize(store, principal, None, Action.SEARCH_PROJECTS)
    projects = store.search_projects(search, only_name)
    return ProjectListResponse(projects=_summaries(store, projects, principal.user_id))


@router.get("/projects/isowner/{project_id}", response_model=IsOwnerResponse)
def is_owner(
    request: Request,
    project_id: int,
    principal: Principal = Depends(get_principal),
) -> IsOwnerResponse:
    project = get_project_store(request).get_project(project_id)
    if project is None:
        raise NotFound("There is no project with the given id.", f"No project with id {project_id}.")
    return IsOwnerResponse(is_owner=project.owner_id == principal.user_id)


# ---------------------------------------------------------------------------
# Single-project reads
# ---------------------------------------------------------------------------


@router.get("/projects/detailed/{name}", response_model=ProjectDetailResponse)
def project_detailed(
    request: Request,
    name: str,
    principal: Principal = Depends(get_principal),
) -> ProjectDetailResponse:
    store = get_project_store(request)
    project = load_project(store, name)
    authorize(store, principal, project, Action.VIEW_PROJECT_DETAILS)
    owner = get_user_store(request).get_by_id(project.owner_id)
    return ProjectDetailResponse(
        project=ProjectDetail(
            id=project.id,
            name=project.name,
            owner=_user_ref(owner),
            short_description=project.short_description,
            description=project.description,
            is_active=project.is_active,
            finished=format_date(project.finished),
            created_at=format_date(project.created_at),
        )
    )


@router.get("/projects/owner/{name}", response_model=OwnerResponse)
def project_owner(request: Request, name: str, principal: Principal = Depends(get_principal)) -> OwnerResponse:
    store = get_project_store(request)
    project = load_project(store, name)
    authorize(store, principal, project, Action.VIEW_OWNER)
    return OwnerResponse(owner=_user_ref(get_user_store(request).get_by_id(project.owner_id)))


@router.get("/projects/isActive/{name}", response_model=ActiveStatusResponse)
def project_is_active(
    request: Request,
    name: str,
    principal: Principal = Depends(get_principal),
) -> ActiveStatusResponse:
    """Readable on inactive projects, so the client can tell the user why it is locked."""
    store = get_project_store(request)
    project = load_project(store, name)
    authorize(store, principal, project, Action.VIEW_ACTIVE_STATUS)
    return ActiveStatusResponse(is_active=project.is_active)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


@router.put("/projects/update/owner/{name}", response_model=Envelope, status_code=201)
def update_owner(
    request: Request,
    name: str,
    body: OwnerUpdate,
    principal: Principal = Depends(get_principal),
) -> Envelope:
    """Admin-only. The previous owner stays on the project as a member."""
    store = get_project_store(request)
    project = load_project(store, name)
    authorize(store, principal, project, Action.UPDATE_OWNER)
    deny(check_transfer(principal, project, body.new_owner), principal, project, Action.UPDATE_OWNER)

    new_owner = get_user_store(request).get_by_id(body.new_owner)
    if new_owner is None:
        raise NotFound("There is no user with the given id.", f"No user with id {body.new_owner}.")
    store.transfer_ownership(project.id, new_owner.id)
    return Envelope(client_msg="Successfully updated projects owner!")


@router.put("/projects/update/isActive/{name}", response_model=Envelope, status_code=201)
def update_is_active(
    request: Request,
    name: str,
    body: ActiveStatusUpdate,
    principal: Principal = Depends(get_principal),
) -> Envelope:
    store = get_project_store(request)
    project = load_project(store, name)
    authorize(store, principal, project, Action.UPDATE_ACTIVE_STATUS)
    store.set_active(project.id, body.new_status)
    logger.info("Project %d is_active=%s set by user_id=%d", project.id, body.new_status, principal.user_id)
    return Envelope(client_msg="Successfully updated projects isActive status!")


@router.put("/projects/update/{name}", response_model=Envelope, status_code=201)
def update_project(
    request: Request,
    name: str,
    body: ProjectWrite,
    principal: Principal = Depends(get_principal),
) -> Envelope:
    """Edit name, descriptions and finish date. 409 if the new slug belongs to another project."""
    store = get_project_store(request)
    project = load_project(store, name)
    authorize(store, principal, project, Action.UPDATE_PROJECT)
    if store.name_taken(body.name, exclude_id=project.id):
        raise _duplicate_name()

    fields = {
        "name": body.name,
        "short_description": body.short_description,
        "description": body.description,
    }
    if body.finished is not None:
        fields["finished"] = _finished(body.finished)
    try:
        store.update_project(project.id, **fields)
    except IntegrityError as exc:
        raise _duplicate_name() from exc
    return Envelope(client_msg="Successfully updated project!")


# Registered last: matches any single path segment.
@router.get("/projects/{name}", response_model=ProjectResponse)
def get_project(request: Request, name: str, principal: Principal = Depends(get_principal)) -> ProjectResponse:
    store = get_project_store(request)
    project = load_project(store, name)
    authorize(store, principal, project, Action.VIEW_PROJECT)
    store.touch_recently_viewed(project.id)
    return ProjectResponse(
        project=ProjectView(
            id=project.id,
            name=project.name,
            is_owner=project.owner_id == principal.user_id,
            short_description=project.short_description,
            description=project.description,
            finished=format_date(project.finished),
        )
    )
