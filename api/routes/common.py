"""
api/routes/common.py -- Lookups shared by the project, member, and task routers.

Stores live on app.state (wired in the lifespan), so handlers reach them
through the request rather than through module globals. That keeps tests free
to swap in their own stores.
"""

from fastapi import Request

from auth.store import UserStore
from core.errors import NotFound
from projects.models import Project
from projects.store import ProjectStore


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def get_project_store(request: Request) -> ProjectStore:
    return request.app.state.project_store


def load_project(store: ProjectStore, name: str) -> Project:
    """Return the project called name, or raise NotFound (404)."""
    project = store.get_project_by_name(name)
    if project is None:
        raise NotFound("There is no project with the given name.", f"No project named {name!r}.")
    return project
