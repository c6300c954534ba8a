"""
tests/test_task_routes.py -- Integration tests for /api/tasks/*.

Covers:
  - create -> 201 with taskId; assignee must be the owner or a member
  - listing: only the caller's tasks, grouped todos / inProgs / done
  - inactive tasks hidden from non-admins
  - update and status patch; a task of another project -> 404
"""

from __future__ import annotations

from projects.models import Task


def _body(assignee: int, **extra) -> dict:
    return {"title": "Write docs", "shortDescription": "docs", "assignedTo": assignee, **extra}


def _setup(api, make_user, make_project):
    client, users, projects = api
    owner = make_user(users, "alice")
    member = make_user(users, "bob")
    project = make_project(projects, owner, "Apollo")
    projects.add_member(project.id, member)
    return client, projects, project, owner, member


class TestCreate:
    def test_create_task(self, api, make_user, make_project, auth_header) -> None:
        client, projects, project, owner, member = _setup(api, make_user, make_project)
        resp = client.post(
            "/api/tasks/create/Apollo",
            json=_body(member, deadline="2030-01-15", priority="high"),
            headers=auth_header(owner),
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["clientMsg"] == "Successfully created task!"
        task = projects.get_task(data["taskId"])
        assert task.project_id == project.id
        assert task.created_by == owner
        assert task.assigned_to == member
        assert task.deadline == "2030-01-15"
        assert (task.status, task.priority) == ("todo", "high")

    def test_assignee_must_belong_to_project(self, api, make_user, make_project, auth_header) -> None:
        client, _, _, owner, _ = _setup(api, make_user, make_project)
        outsider = make_user(api[1], "eve")
        resp = client.post("/api/tasks/create/Apollo", json=_body(outsider), headers=auth_header(owner))
        assert resp.status_code == 400
        assert resp.json()["clientMsg"] == "The task can only be assigned to a member of the project."

    def test_bad_status_is_400(self, api, make_user, make_project, auth_header) -> None:
        client, _, _, owner, _ = _setup(api, make_user, make_project)
        resp = client.post("/api/tasks/create/Apollo", json=_body(owner, status="blocked"), headers=auth_header(owner))
        assert resp.status_code == 400


class TestList:
    def test_grouped_by_status(self, api, make_user, make_project, auth_header) -> None:
        client, projects, project, owner, member = _setup(api, make_user, make_project)
        for title, status in (("a", "todo"), ("b", "inprogress"), ("c", "done"), ("d", "todo")):
            projects.create_task(
                Task(project_id=project.id, title=title, short_description="s", created_by=owner,
                     assigned_to=member, status=status)
            )
        projects.create_task(Task(project_id=project.id, title="mine", short_description="s",
                                  created_by=owner, assigned_to=owner))

        resp = client.get("/api/tasks/Apollo", headers=auth_header(member))
        assert resp.status_code == 200
        data = resp.json()
        assert sorted(t["title"] for t in data["todos"]) == ["a", "d"]
        assert [t["title"] for t in data["inProgs"]] == ["b"]
        assert [t["title"] for t in data["done"]] == ["c"]
        assert len(data["todos"][0]["deadline"]) == 10

    def test_inactive_tasks_only_for_admins(self, api, make_user, make_project, auth_header) -> None:
        client, projects, project, owner, _ = _setup(api, make_user, make_project)
        admin = make_user(api[1], "root", is_admin=True)
        projects.create_task(Task(project_id=project.id, title="hidden", short_description="s",
                                  created_by=owner, assigned_to=owner, is_active=False))
        projects.create_task(Task(project_id=project.id, title="admin's", short_description="s",
                                  created_by=owner, assigned_to=admin, is_active=False))

        assert client.get("/api/tasks/Apollo", headers=auth_header(owner)).json()["todos"] == []
        todos = client.get("/api/tasks/Apollo", headers=auth_header(admin)).json()["todos"]
        assert [t["title"] for t in todos] == ["admin's"]
        assert todos[0]["isActive"] is False

    def test_outsider_denied(self, api, make_user, make_project, auth_header) -> None:
        client, _, _, _, _ = _setup(api, make_user, make_project)
        eve = make_user(api[1], "eve")
        assert client.get("/api/tasks/Apollo", headers=auth_header(eve)).status_code == 401


class TestUpdate:
    def test_update_task(self, api, make_user, make_project, auth_header) -> None:
        client, projects, project, owner, member = _setup(api, make_user, make_project)
        task_id = projects.create_task(Task(project_id=project.id, title="old", short_description="s",
                                            created_by=owner, assigned_to=owner))
        resp = client.put(
            f"/api/tasks/update/Apollo/{task_id}",
            json=_body(member, title="new", status="inprogress"),
            headers=auth_header(member),
        )
        assert resp.status_code == 200
        assert resp.json()["clientMsg"] == "Successfully updated task!"
        task = projects.get_task(task_id)
        assert (task.title, task.assigned_to, task.status) == ("new", member, "inprogress")
        assert task.created_by == owner

    def test_status_patch(self, api, make_user, make_project, auth_header) -> None:
        client, projects, project, owner, member = _setup(api, make_user, make_project)
        task_id = projects.create_task(Task(project_id=project.id, title="t", short_description="s",
                                            created_by=owner, assigned_to=member))
        resp = client.patch(
            f"/api/tasks/update/status/Apollo/{task_id}", json={"status": "done"}, headers=auth_header(member)
        )
        assert resp.status_code == 200
        assert projects.get_task(task_id).status == "done"

    def test_task_of_other_project_is_404(self, api, make_user, make_project, auth_header) -> None:
        client, projects, _, owner, _ = _setup(api, make_user, make_project)
        other = make_project(projects, owner, "Gemini")
        task_id = projects.create_task(Task(project_id=other.id, title="t", short_description="s",
                                            created_by=owner, assigned_to=owner))
        resp = client.patch(
            f"/api/tasks/update/status/Apollo/{task_id}", json={"status": "done"}, headers=auth_header(owner)
        )
        assert resp.status_code == 404
        assert projects.get_task(task_id).status == "todo"
        assert client.put("/api/tasks/update/Apollo/999", json=_body(owner), headers=auth_header(owner)).status_code == 404
