"""
api/routes/tasks.py -- Task endpoints, scoped to one project.

Routes:
  GET   /api/tasks/{name}                            -- caller's tasks, grouped by status
  POST  /api/tasks/create/{name}                     -- create a task; 201
  PUT   /api/tasks/update/{name}/{task_id}           -- replace the editable task fields
  PATCH /api/tasks/update/status/{name}/{task_id}    -- move a task between columns

Tasks are never deleted; isActive=false hides a task from non-admins.
The assignee must be the owner or a member of the project.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import (
    Envelope,
    TaskCreatedResponse,
    TaskRow,
    TasksResponse,
    TaskStatusUpdate,
    TaskWrite,
    format_date,
)
from api.routes.common import get_project_store, load_project
from auth.dependencies import get_principal
from auth.models import Principal
from core.errors import InvalidInput, NotFound
from projects.models import Project, Task
from projects.policy import Action, authorize
from projects.store import ProjectStore

router = APIRouter()


def _to_row(task: Task) -> TaskRow:
    return TaskRow(
        id=task.id,
        project_id=task.project_id,
        title=task.title,
        short_description=task.short_description,
        description=task.description,
        deadline=format_date(task.deadline),
        created_by=task.created_by,
        assigned_to=task.assigned_to,
        status=task.status,
        priority=task.priority,
        is_active=task.is_active,
        created_at=format_date(task.created_at),
    )


def _check_assignee(store: ProjectStore, project: Project, user_id: int) -> None:
    if user_id != project.owner_id and not store.is_member(project.id, user_id):
        raise InvalidInput(
            "The task can only be assigned to a member of the project.",
            f"User {user_id} is not the owner or a member of project {project.id}.",
        )


def _load_task(store: ProjectStore, project: Project, task_id: int) -> Task:
    """Return the task, or NotFound when it is missing or belongs to another project."""
    task = store.get_task(task_id)
    if task is None or task.project_id != project.id:
        raise NotFound("There is no task with the given id.", f"No task {task_id} in project {project.id}.")
    return task


@router.get("/tasks/{name}", response_model=TasksResponse)
def list_tasks(request: Request, name: str, principal: Principal = Depends(get_principal)) -> TasksResponse:
    """Tasks assigned to the caller. Admins also see inactive tasks."""
    store = get_project_store(request)
    project = load_project(store, name)
    authorize(store, principal, project, Action.LIST_TASKS)

    tasks = store.list_tasks_for_assignee(project.id, principal.user_id, include_inactive=principal.is_admin)
    rows = [_to_row(t) for t in tasks]
    return TasksResponse(
        todos=[r for r in rows if r.status == "todo"],
        in_progs=[r for r in rows if r.status == "inprogress"],
        done=[r for r in rows if r.status == "done"],
    )


@router.post("/tasks/create/{name}", response_model=TaskCreatedResponse, status_code=201)
def create_task(
    request: Request,
    name: str,
    body: TaskWrite,
    principal: Principal = Depends(get_principal),
) -> TaskCreatedResponse:
    store = get_project_store(request)
    project = load_project(store, name)
    authorize(store, principal, project, Action.CREATE_TASK)
    _check_assignee(store, project, body.assigned_to)

    task_id = store.create_task(
        Task(
            project_id=project.id,
            title=body.title,
            short_description=body.short_description,
            description=body.description,
            deadline=body.deadline.isoformat() if body.deadline is not None else "",
            created_by=principal.user_id,
            assigned_to=body.assigned_to,
            status=body.status,
            priority=body.priority,
        )
    )
    return TaskCreatedResponse(task_id=task_id, client_msg="Successfully created task!")


@router.put("/tasks/update/{name}/{task_id}", response_model=Envelope)
def update_task(
    request: Request,
    name: str,
    task_id: int,
    body: TaskWrite,
    principal: Principal = Depends(get_principal),
) -> Envelope:
    store = get_project_store(request)
    project = load_project(store, name)
    authorize(store, principal, project, Action.UPDATE_TASK)
    _load_task(store, project, task_id)
    _check_assignee(store, project, body.assigned_to)

    fields = {
        "title": body.title,
        "short_description": body.short_description,
        "description": body.description,
        "assigned_to": body.assigned_to,
        "status": body.status,
        "priority": body.priority,
    }
    if body.deadline is not None:
        fields["deadline"] = body.deadline.isoformat()
    store.update_task(task_id, **fields)
    return Envelope(client_msg="Successfully updated task!")


@router.patch("/tasks/update/status/{name}/{task_id}", response_model=Envelope)
def update_task_status(
    request: Request,
    name: str,
    task_id: int,
    body: TaskStatusUpdate,
    principal: Principal = Depends(get_principal),
) -> Envelope:
    store = get_project_store(request)
    project = load_project(store, name)
    authorize(store, principal, project, Action.UPDATE_TASK_STATUS)
    _load_task(store, project, task_id)
    store.update_task(task_id, status=body.status)
    return Envelope(client_msg="Successfully updated task status!")
