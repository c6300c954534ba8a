"""
projects/store.py -- SQLAlchemy-backed persistence for projects, memberships, and tasks.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in projects/models.py
remain the authoritative domain representation. Swapping SQLite for PostgreSQL
is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. ProjectStore is the repository (one clean
interface per entity). The _row_to_* functions are the mappers. Route handlers
never touch SQL directly, and the authorization policy only reads through
get_project() / is_member().

Integrity:
  projects.name and (project_id, user_id) on project_members are UNIQUE.
  The route layer checks first to pick a precise client message; the
  constraint is what holds under concurrent writers.

  transfer_ownership() runs its three writes in one transaction
  (engine.begin()): either the old owner becomes a member, the new owner's
  membership is dropped, and owner_id changes -- or nothing changes.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = ProjectStore()                                # DATABASE_URL from settings
    store = ProjectStore("sqlite:///:memory:")            # tests
    project_id = store.create_project(project)
    store.add_member(project_id, user_id)
    store.transfer_ownership(project_id, new_owner_id)
    store.close()
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
    or_,
    select,
)
from sqlalchemy.engine import Engine

from core.config import get_settings
from core.database import make_engine
from projects.models import Project, ProjectMember, Task

logger = logging.getLogger("projecthub.projects")

_PROJECT_LIFETIME_DAYS = 3 * 365
_TASK_LIFETIME_DAYS = 14

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_projects = Table(
    "projects",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_id", Integer, nullable=False, index=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("short_description", String(500), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("finished", String(32), nullable=False),
    Column("recently_viewed", String(32), nullable=False),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
)

_members = Table(
    "project_members",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("project_id", Integer, nullable=False, index=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    UniqueConstraint("project_id", "user_id", name="uq_project_member"),
)

_tasks = Table(
    "tasks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("project_id", Integer, nullable=False, index=True),
    Column("title", String(255), nullable=False),
    Column("short_description", String(500), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("deadline", String(32), nullable=False),
    Column("created_by", Integer, nullable=False),
    Column("assigned_to", Integer, nullable=False),
    Column("status", String(20), nullable=False, server_default="todo"),
    Column("priority", String(20), nullable=False, server_default="low"),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
)

_PROJECT_MUTABLE = {"name", "short_description", "description", "finished", "is_active"}
_TASK_MUTABLE = {
    "title",
    "short_description",
    "description",
    "deadline",
    "assigned_to",
    "status",
    "priority",
    "is_active",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _days_from_now(days: int) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat(timespec="microseconds")


def slugify_name(name: str) -> str:
    """Collapse every whitespace run in a project name to a single hyphen.

    "My  big project" -> "My-big-project". Applied on create, rename, and
    duplicate checks so two names that differ only in spacing collide.
    """
    return re.sub(r"\s+", "-", name.strip())


def _check_fields(fields: dict, allowed: set, entity: str) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown {entity} fields: {unknown!r}")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ProjectStore:
    def __init__(self, db_url: Optional[str] = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(self, project: Project) -> int:
        """Insert a new project and return its ID.

        The name is slugified here as well, so callers cannot bypass the rule.
        Raises sqlalchemy.exc.IntegrityError if the slug already exists.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _projects.insert().values(
                    owner_id=project.owner_id,
                    name=slugify_name(project.name),
                    short_description=project.short_description,
                    description=project.description,
                    finished=project.finished or _days_from_now(_PROJECT_LIFETIME_DAYS),
                    recently_viewed=project.recently_viewed or now,
                    is_active=project.is_active,
                    created_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_project(self, project_id: int) -> Optional[Project]:
        """Fetch a single project by ID. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_projects.select().where(_projects.c.id == project_id)).fetchone()
        return _row_to_project(row) if row is not None else None

    def get_project_by_name(self, name: str) -> Optional[Project]:
        """Look up a project by exact (slugified) name. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_projects.select().where(_projects.c.name == name)).fetchone()
        return _row_to_project(row) if row is not None else None

    def name_taken(self, name: str, exclude_id: Optional[int] = None) -> bool:
        """Return True if another project already uses the slug of name."""
        stmt = select(_projects.c.id).where(_projects.c.name == slugify_name(name))
        if exclude_id is not None:
            stmt = stmt.where(_projects.c.id != exclude_id)
        with self.engine.connect() as conn:
            return conn.execute(stmt).first() is not None

    def list_owned_projects(self, user_id: int) -> list[Project]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _projects.select().where(_projects.c.owner_id == user_id).order_by(_projects.c.name)
            ).fetchall()
        return [_row_to_project(r) for r in rows]

    def list_member_projects(self, user_id: int) -> list[Project]:
        """Return projects where user_id has a membership record (owned projects excluded)."""
        stmt = (
            select(_projects)
            .select_from(_projects.join(_members, _members.c.project_id == _projects.c.id))
            .where(_members.c.user_id == user_id)
            .order_by(_projects.c.name)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_project(r) for r in rows]

    def update_project(self, project_id: int, **fields) -> bool:
        """Update mutable fields on a project.

        Accepts any subset of: name, short_description, description, finished,
        is_active. A new name is slugified before writing.

        Returns True if a row was updated, False if project_id was not found.
        Raises sqlalchemy.exc.IntegrityError if the new name is taken.
        """
        _check_fields(fields, _PROJECT_MUTABLE, "project")
        if "name" in fields:
            fields["name"] = slugify_name(fields["name"])
        if not fields:
            return False
        with self.engine.connect() as conn:
            result = conn.execute(_projects.update().where(_projects.c.id == project_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def touch_recently_viewed(self, project_id: int) -> str:
        """Stamp recently_viewed with the current time and return the stamp."""
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(_projects.update().where(_projects.c.id == project_id).values(recently_viewed=now))
            conn.commit()
        return now

    def set_active(self, project_id: int, is_active: bool) -> bool:
        return self.update_project(project_id, is_active=is_active)

    def search_projects(self, search: str, only_name: bool, limit: int = 10) -> list[Project]:
        """Case-insensitive substring search over name (and short_description).

        LIKE wildcards in the search term are escaped, so user input is always
        matched literally. Results are ordered by name and capped at limit.
        """
        condition = _projects.c.name.icontains(search, autoescape=True)
        if not only_name:
            condition = or_(condition, _projects.c.short_description.icontains(search, autoescape=True))
        stmt = _projects.select().where(condition).order_by(_projects.c.name).limit(limit)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_project(r) for r in rows]

    def transfer_ownership(self, project_id: int, new_owner_id: int) -> bool:
        """Atomically hand a project to new_owner_id.

        Inside one transaction:
          1. insert the previous owner as a member (skipped if already one),
          2. delete new_owner_id's membership record, if any,
          3. set owner_id = new_owner_id.

        Each step is idempotent, so a retried call after a failure converges to
        the same final state. Returns False if project_id does not exist.
        """
        with self.engine.begin() as conn:
            row = conn.execute(select(_projects.c.owner_id).where(_projects.c.id == project_id)).fetchone()
            if row is None:
                return False
            old_owner_id = row.owner_id
            already_member = conn.execute(
                select(_members.c.id).where(
                    (_members.c.project_id == project_id) & (_members.c.user_id == old_owner_id)
                )
            ).first()
            if already_member is None and old_owner_id != new_owner_id:
                conn.execute(
                    _members.insert().values(project_id=project_id, user_id=old_owner_id, created_at=_now_iso())
                )
            conn.execute(
                _members.delete().where((_members.c.project_id == project_id) & (_members.c.user_id == new_owner_id))
            )
            conn.execute(_projects.update().where(_projects.c.id == project_id).values(owner_id=new_owner_id))
        logger.info("Project %d ownership: user %d -> user %d", project_id, old_owner_id, new_owner_id)
        return True

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    def add_member(self, project_id: int, user_id: int) -> int:
        """Create a membership record and return its ID.

        Raises sqlalchemy.exc.IntegrityError if the pair already exists --
        caller should report "already a member".
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _members.insert().values(project_id=project_id, user_id=user_id, created_at=_now_iso())
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def remove_member(self, project_id: int, user_id: int) -> bool:
        """Delete a membership record. Returns True if one was deleted."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _members.delete().where((_members.c.project_id == project_id) & (_members.c.user_id == user_id))
            )
            conn.commit()
        return result.rowcount > 0

    def is_member(self, project_id: int, user_id: int) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_members.c.id).where((_members.c.project_id == project_id) & (_members.c.user_id == user_id))
            ).first()
        return row is not None

    def list_members(self, project_id: int) -> list[ProjectMember]:
        """Return membership records for a project, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _members.select().where(_members.c.project_id == project_id).order_by(_members.c.id)
            ).fetchall()
        return [_row_to_member(r) for r in rows]

    def list_member_ids(self, project_id: int) -> list[int]:
        return [m.user_id for m in self.list_members(project_id)]

    def count_members(self, project_id: int) -> int:
        """Membership records only; the owner is not counted."""
        return self.member_counts([project_id]).get(project_id, 0)

    def member_counts(self, project_ids: list[int]) -> dict[int, int]:
        """Return {project_id: membership record count} in one grouped query.

        Projects without members are absent -- use .get(project_id, 0).
        """
        if not project_ids:
            return {}
        stmt = (
            select(_members.c.project_id, func.count().label("n"))
            .where(_members.c.project_id.in_(project_ids))
            .group_by(_members.c.project_id)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return {row.project_id: row.n for row in rows}

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(self, task: Task) -> int:
        """Insert a task and return its ID. deadline defaults to now + 14 days."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _tasks.insert().values(
                    project_id=task.project_id,
                    title=task.title,
                    short_description=task.short_description,
                    description=task.description,
                    deadline=task.deadline or _days_from_now(_TASK_LIFETIME_DAYS),
                    created_by=task.created_by,
                    assigned_to=task.assigned_to,
                    status=task.status,
                    priority=task.priority,
                    is_active=task.is_active,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_task(self, task_id: int) -> Optional[Task]:
        with self.engine.connect() as conn:
            row = conn.execute(_tasks.select().where(_tasks.c.id == task_id)).fetchone()
        return _row_to_task(row) if row is not None else None

    def update_task(self, task_id: int, **fields) -> bool:
        """Update mutable task fields. created_by and project_id never change."""
        _check_fields(fields, _TASK_MUTABLE, "task")
        if not fields:
            return False
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.update().where(_tasks.c.id == task_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def list_tasks_for_assignee(self, project_id: int, user_id: int, include_inactive: bool = False) -> list[Task]:
        """Return tasks in project_id assigned to user_id, earliest deadline first."""
        stmt = _tasks.select().where((_tasks.c.project_id == project_id) & (_tasks.c.assigned_to == user_id))
        if not include_inactive:
            stmt = stmt.where(_tasks.c.is_active.is_(True))
        with self.engine.connect() as conn:
            rows = conn.execute(stmt.order_by(_tasks.c.deadline, _tasks.c.id)).fetchall()
        return [_row_to_task(r) for r in rows]

    def assigned_task_counts(self, project_ids: list[int], user_id: int) -> dict[int, int]:
        """Return {project_id: tasks assigned to user_id} in one grouped query."""
        if not project_ids:
            return {}
        stmt = (
            select(_tasks.c.project_id, func.count().label("n"))
            .where(_tasks.c.project_id.in_(project_ids) & (_tasks.c.assigned_to == user_id))
            .group_by(_tasks.c.project_id)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return {row.project_id: row.n for row in rows}

    def count_tasks_for_assignee(self, project_id: int, user_id: int) -> int:
        return self.assigned_task_counts([project_id], user_id).get(project_id, 0)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_project(row) -> Project:
    return Project(
        id=row.id,
        owner_id=row.owner_id,
        name=row.name,
        short_description=row.short_description,
        description=row.description or "",
        finished=row.finished,
        recently_viewed=row.recently_viewed,
        is_active=bool(row.is_active),
        created_at=row.created_at,
    )


def _row_to_member(row) -> ProjectMember:
    return ProjectMember(
        id=row.id,
        project_id=row.project_id,
        user_id=row.user_id,
        created_at=row.created_at,
    )


def _row_to_task(row) -> Task:
    return Task(
        id=row.id,
        project_id=row.project_id,
        title=row.title,
        short_description=row.short_description,
        description=row.description or "",
        deadline=row.deadline,
        created_by=row.created_by,
        assigned_to=row.assigned_to,
        status=row.status,
        priority=row.priority,
        is_active=bool(row.is_active),
        created_at=row.created_at,
    )
