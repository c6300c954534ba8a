"""
tests/test_member_routes.py -- Integration tests for /api/members/*.

Covers:
  - outsider B is denied view, add-member and task creation
  - once added, B can view and create tasks but still cannot add members
  - the owner can never be removed, not even by an admin
  - self-add, owner-add and duplicate add are denied; unknown user -> 404
  - listing returns members plus the owner flagged isOwner
"""

from __future__ import annotations


def _add(client, headers, member_id: int, name: str = "Apollo"):
    return client.post(f"/api/members/add/{name}", json={"memberId": member_id}, headers=headers)


def _task_body(assignee: int) -> dict:
    return {"title": "Write docs", "shortDescription": "docs", "assignedTo": assignee}


class TestMembershipScenario:
    def test_outsider_then_member(self, api, make_user, make_project, auth_header) -> None:
        client, users, projects = api
        a = make_user(users, "alice")
        b = make_user(users, "bob")
        c = make_user(users, "carol")
        project = make_project(projects, a, "Apollo")
        b_headers = auth_header(b)

        assert client.get("/api/projects/Apollo", headers=b_headers).status_code == 401
        assert _add(client, b_headers, c).status_code == 401
        resp = client.post("/api/tasks/create/Apollo", json=_task_body(b), headers=b_headers)
        assert resp.status_code == 401

        resp = _add(client, auth_header(a), b)
        assert resp.status_code == 200
        assert resp.json()["clientMsg"] == "Successfully added member to project!"
        assert projects.is_member(project.id, b) is True

        assert client.get("/api/projects/Apollo", headers=b_headers).status_code == 200
        assert client.post("/api/tasks/create/Apollo", json=_task_body(b), headers=b_headers).status_code == 201
        resp = _add(client, b_headers, c)
        assert resp.status_code == 401
        assert resp.json()["clientMsg"] == "Only the owner of the project can do this."
        assert projects.is_member(project.id, c) is False


class TestListMembers:
    def test_members_and_owner(self, api, make_user, make_project, auth_header) -> None:
        client, users, projects = api
        a = make_user(users, "alice")
        b = make_user(users, "bob")
        project = make_project(projects, a, "Apollo")
        projects.add_member(project.id, b)

        resp = client.get("/api/members/Apollo", headers=auth_header(b))
        assert resp.status_code == 200
        assert resp.json()["users"] == [
            {"id": b, "username": "bob", "isOwner": False},
            {"id": a, "username": "alice", "isOwner": True},
        ]

    def test_outsider_cannot_list(self, api, make_user, make_project, auth_header) -> None:
        client, users, projects = api
        a = make_user(users, "alice")
        eve = make_user(users, "eve")
        make_project(projects, a, "Apollo")
        assert client.get("/api/members/Apollo", headers=auth_header(eve)).status_code == 401


class TestAddGuards:
    def test_cannot_add_self(self, api, make_user, make_project, auth_header) -> None:
        client, users, projects = api
        admin = make_user(users, "root", is_admin=True)
        a = make_user(users, "alice")
        project = make_project(projects, a, "Apollo")
        resp = _add(client, auth_header(admin), admin)
        assert resp.status_code == 401
        assert resp.json()["clientMsg"] == "You can't add yourself to the project."
        assert projects.is_member(project.id, admin) is False

    def test_cannot_add_owner(self, api, make_user, make_project, auth_header) -> None:
        client, users, projects = api
        admin = make_user(users, "root", is_admin=True)
        a = make_user(users, "alice")
        make_project(projects, a, "Apollo")
        for actor in (a, admin):
            resp = _add(client, auth_header(actor), a)
            assert resp.status_code == 401
            assert resp.json()["clientMsg"] == "The owner of the project can't be a member."

    def test_duplicate_add(self, api, make_user, make_project, auth_header) -> None:
        client, users, projects = api
        a = make_user(users, "alice")
        b = make_user(users, "bob")
        project = make_project(projects, a, "Apollo")
        assert _add(client, auth_header(a), b).status_code == 200
        resp = _add(client, auth_header(a), b)
        assert resp.status_code == 401
        assert resp.json()["clientMsg"] == "This user is already a member of the project."
        assert projects.count_members(project.id) == 1

    def test_unknown_user_is_404(self, api, make_user, make_project, auth_header) -> None:
        client, users, projects = api
        a = make_user(users, "alice")
        make_project(projects, a, "Apollo")
        assert _add(client, auth_header(a), 999).status_code == 404

    def test_inactive_project_blocks_owner(self, api, make_user, make_project, auth_header) -> None:
        client, users, projects = api
        a = make_user(users, "alice")
        b = make_user(users, "bob")
        make_project(projects, a, "Apollo", is_active=False)
        resp = _add(client, auth_header(a), b)
        assert resp.status_code == 401
        assert resp.json()["clientMsg"] == "This project is inactive."


class TestRemove:
    def test_owner_removes_member(self, api, make_user, make_project, auth_header) -> None:
        client, users, projects = api
        a = make_user(users, "alice")
        b = make_user(users, "bob")
        project = make_project(projects, a, "Apollo")
        projects.add_member(project.id, b)

        resp = client.delete(f"/api/members/remove/Apollo/{b}", headers=auth_header(a))
        assert resp.status_code == 200
        assert projects.is_member(project.id, b) is False
        assert client.get("/api/projects/Apollo", headers=auth_header(b)).status_code == 401

    def test_owner_never_removable(self, api, make_user, make_project, auth_header) -> None:
        client, users, projects = api
        a = make_user(users, "alice")
        admin = make_user(users, "root", is_admin=True)
        project = make_project(projects, a, "Apollo")
        for actor in (a, admin):
            resp = client.delete(f"/api/members/remove/Apollo/{a}", headers=auth_header(actor))
            assert resp.status_code == 401
            assert resp.json()["clientMsg"] == "The owner of the project can't be removed."
        assert projects.get_project(project.id).owner_id == a

    def test_remove_non_member(self, api, make_user, make_project, auth_header) -> None:
        client, users, projects = api
        a = make_user(users, "alice")
        b = make_user(users, "bob")
        make_project(projects, a, "Apollo")
        resp = client.delete(f"/api/members/remove/Apollo/{b}", headers=auth_header(a))
        assert resp.status_code == 401
        assert resp.json()["clientMsg"] == "This user is not a member of the project."

    def test_member_cannot_remove(self, api, make_user, make_project, auth_header) -> None:
        client, users, projects = api
        a = make_user(users, "alice")
        b = make_user(users, "bob")
        c = make_user(users, "carol")
        project = make_project(projects, a, "Apollo")
        projects.add_member(project.id, b)
        projects.add_member(project.id, c)
        assert client.delete(f"/api/members/remove/Apollo/{c}", headers=auth_header(b)).status_code == 401
        assert projects.is_member(project.id, c) is True
