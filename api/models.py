"""
API request and response models for ProjectHub REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
projects/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire format: every field is camelCase on the wire (alias_generator=to_camel)
and every response carries the envelope fields clientMsg and error next to
its payload. populate_by_name=True lets handlers build models with the
snake_case Python names.
"""

from datetime import date
from typing import Literal, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.errors import AppError

# ---------------------------------------------------------------------------
# Base models
# ---------------------------------------------------------------------------


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Envelope(CamelModel):
    """{clientMsg, error} -- the part of every response a client always reads."""

    client_msg: str = ""
    error: str = ""


TaskStatus = Literal["todo", "inprogress", "done"]
TaskPriority = Literal["low", "normal", "high"]


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(CamelModel):
    username: str = Field(min_length=1, max_length=50)
    email: str = Field(min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")
    # bcrypt truncates at 72 bytes
    password: str = Field(min_length=1, max_length=72)


class LoginRequest(CamelModel):
    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1, max_length=72)


class TokenResponse(Envelope):
    """Response for POST /auth/login and GET /auth/refresh. The refresh token travels in the cookie only."""

    user_id: int
    access_token: str


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class ProjectWrite(CamelModel):
    """Request body for POST /projects/create and PUT /projects/update/{name}.

    finished is optional; the store defaults it to three years from now.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    # names are path segments in /projects/{name}
    name: str = Field(min_length=1, max_length=100, pattern=r"^[^/]+$")
    short_description: str = Field(min_length=1, max_length=500)
    description: str = Field(default="", max_length=5000)
    finished: Optional[date] = None


class OwnerUpdate(CamelModel):
    new_owner: int


class ActiveStatusUpdate(CamelModel):
    new_status: bool


class ProjectSummary(CamelModel):
    id: int
    name: str
    is_owner: bool
    short_description: str
    is_active: bool
    finished: str
    member_count: int
    task_count: int
    recently_viewed: str


class ProjectListResponse(Envelope):
    projects: list[ProjectSummary] = Field(default_factory=list)


class RecentProjectResponse(Envelope):
    project_name: str


class ProjectView(CamelModel):
    id: int
    name: str
    is_owner: bool
    short_description: str
    description: str
    finished: str


class ProjectResponse(Envelope):
    project: ProjectView


class UserRef(CamelModel):
    id: int
    username: str
    email: str


class ProjectDetail(CamelModel):
    id: int
    name: str
    owner: Optional[UserRef] = None
    short_description: str
    description: str
    is_active: bool
    finished: str
    created_at: str


class ProjectDetailResponse(Envelope):
    project: ProjectDetail


class OwnerResponse(Envelope):
    owner: Optional[UserRef] = None


class ActiveStatusResponse(Envelope):
    is_active: bool


class IsOwnerResponse(Envelope):
    is_owner: bool


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


class MemberAdd(CamelModel):
    member_id: int


class MemberRow(CamelModel):
    id: int
    username: str
    is_owner: bool = False


class MembersResponse(Envelope):
    users: list[MemberRow] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskWrite(CamelModel):
    """Request body for POST /tasks/create/{name} and PUT /tasks/update/{name}/{task_id}."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=255)
    short_description: str = Field(min_length=1, max_length=500)
    description: str = Field(default="", max_length=5000)
    deadline: Optional[date] = None
    assigned_to: int
    status: TaskStatus = "todo"
    priority: TaskPriority = "low"


class TaskStatusUpdate(CamelModel):
    status: TaskStatus


class TaskRow(CamelModel):
    id: int
    project_id: int
    title: str
    short_description: str
    description: str
    deadline: str
    created_by: int
    assigned_to: int
    status: str
    priority: str
    is_active: bool
    created_at: str


class TasksResponse(Envelope):
    todos: list[TaskRow] = Field(default_factory=list)
    in_progs: list[TaskRow] = Field(default_factory=list)
    done: list[TaskRow] = Field(default_factory=list)


class TaskCreatedResponse(Envelope):
    task_id: int


# ---------------------------------------------------------------------------
# Users / admin
# ---------------------------------------------------------------------------


class UserRow(CamelModel):
    id: int
    username: str
    email: str
    is_active: bool
    is_admin: bool
    created_at: str


class UsersResponse(Envelope):
    users: list[UserRow] = Field(default_factory=list)


class UserSearchRow(CamelModel):
    id: int
    username: str


class UserSearchResponse(Envelope):
    users: list[UserSearchRow] = Field(default_factory=list)


class UserPatch(CamelModel):
    """Request body for PATCH /users/{user_id}. At least one field must be set."""

    is_active: Optional[bool] = None
    is_admin: Optional[bool] = None


class UserResponse(Envelope):
    user: UserRow


class AdminCheckResponse(Envelope):
    is_admin: bool


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(Envelope):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def format_date(value: str) -> str:
    """Render an ISO 8601 timestamp (or date) as YYYY-MM-DD."""
    return value[:10] if value else ""


def error_response(exc: AppError, status_code: Optional[int] = None) -> JSONResponse:
    """Render an AppError as the envelope. Used by the exception handlers and by
    handlers that must attach headers (e.g. a cleared cookie) to an error."""
    return JSONResponse(
        status_code=status_code or exc.status_code,
        content=Envelope(client_msg=exc.client_msg, error=exc.error).model_dump(by_alias=True),
    )
