"""
projects/models.py -- Domain dataclasses for projects, memberships, and tasks.

These are pure data containers with zero logic. Persistence lives in
projects/store.py, access decisions in projects/policy.py.

id is None before the record is written to the database. Timestamps are
ISO 8601 strings in UTC, set by the store on insert when not provided.
"""

from dataclasses import dataclass
from typing import Optional

TASK_STATUSES = ("todo", "inprogress", "done")
TASK_PRIORITIES = ("low", "normal", "high")


@dataclass
class Project:
    """A project with exactly one owner.

    name is unique and slug-like: whitespace runs are collapsed to "-" by
    slugify_name() before the record is written or looked up.
    recently_viewed is bumped every time a member/owner/admin opens the project.
    """

    owner_id: int
    name: str
    short_description: str
    description: str = ""
    finished: str = ""  # ISO 8601, default now + 3 years
    recently_viewed: str = ""
    is_active: bool = True
    created_at: str = ""
    id: Optional[int] = None


@dataclass
class ProjectMember:
    """Join record granting a non-owner user access to a project.

    The owner never has a ProjectMember record; ownership transfer moves the
    old owner into this table and the new owner out of it.
    """

    project_id: int
    user_id: int
    created_at: str = ""
    id: Optional[int] = None


@dataclass
class Task:
    """A unit of work inside a project. Never hard-deleted (is_active=False instead)."""

    project_id: int
    title: str
    short_description: str
    created_by: int
    assigned_to: int
    description: str = ""
    deadline: str = ""  # ISO 8601, default now + 14 days
    status: str = "todo"  # "todo" | "inprogress" | "done"
    priority: str = "low"  # "low" | "normal" | "high"
    is_active: bool = True
    created_at: str = ""
    id: Optional[int] = None
