import pytest
from httpx import AsyncClient

from uniconnect.schemas import TaskIn


@pytest.fixture
def team_project(context, owner, member, project_factory):
    """Public project where `member` is a contributor"""
    project = project_factory(owner)
    context.projects.request_join(project.id, member.id)
    context.projects.set_member_role(project.id, owner.id, member.id, "contributor")
    return project


def task_completions(context, user_id):
    return [e for e in context.ledger.history(user_id, limit=100) if e.action == "task_completed"]


class TestTaskLifecycle:

    async def test_create_task(self, client: AsyncClient, auth_headers, owner, member, team_project):
        response = await client.post(
            f"/api/projects/{team_project.id}/tasks",
            json={"title": "Design schema", "assignedTo": member.id},
            headers=auth_headers(owner),
        )

        assert response.status_code == 201
        task = response.json()["task"]
        assert task["status"] == "todo"
        assert task["assignedTo"] == member.id
        assert task["createdBy"] == owner.id

    async def test_viewer_cannot_create(self, client: AsyncClient, context, auth_headers, owner, outsider,
                                        team_project):
        context.projects.request_join(team_project.id, outsider.id)

        response = await client.post(
            f"/api/projects/{team_project.id}/tasks", json={"title": "Sneaky"}, headers=auth_headers(outsider)
        )

        assert response.status_code == 403
        assert response.json()["details"]["hint"] == "requires_edit"

    async def test_assignee_must_be_member(self, client: AsyncClient, auth_headers, owner, outsider,
                                           team_project):
        response = await client.post(
            f"/api/projects/{team_project.id}/tasks",
            json={"title": "Design schema", "assignedTo": outsider.id},
            headers=auth_headers(owner),
        )

        assert response.status_code == 400

    async def test_malformed_assignee(self, client: AsyncClient, auth_headers, owner, team_project):
        response = await client.post(
            f"/api/projects/{team_project.id}/tasks",
            json={"title": "Design schema", "assignedTo": "nobody"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 400

    async def test_completion_credited_once(self, client: AsyncClient, context, auth_headers, owner, member,
                                            team_project):
        task = context.projects.add_task(
            team_project.id, owner.id, TaskIn(title="Write tests", assignedTo=member.id)
        )
        url = f"/api/projects/{team_project.id}/tasks/{task.id}"

        first = await client.put(url, json={"status": "completed"}, headers=auth_headers(owner))
        second = await client.put(url, json={"status": "completed"}, headers=auth_headers(owner))

        assert first.status_code == 200
        assert second.status_code == 200
        credits = task_completions(context, member.id)
        assert len(credits) == 1
        assert credits[0].points == 5
        assert credits[0].project == team_project.id
        assert credits[0].metadata == {"taskId": task.id}
        assert context.users.get(member.id).trustScore == 35

    async def test_completion_without_assignee_not_credited(self, client: AsyncClient, context, auth_headers,
                                                            owner, team_project):
        task = context.projects.add_task(team_project.id, owner.id, TaskIn(title="Unowned chore"))

        await client.put(
            f"/api/projects/{team_project.id}/tasks/{task.id}",
            json={"status": "completed"},
            headers=auth_headers(owner),
        )

        assert task_completions(context, owner.id) == []

    async def test_reopen_and_complete_again_credits_again(self, client: AsyncClient, context, auth_headers,
                                                           owner, member, team_project):
        task = context.projects.add_task(
            team_project.id, owner.id, TaskIn(title="Flaky job", assignedTo=member.id)
        )
        url = f"/api/projects/{team_project.id}/tasks/{task.id}"

        for status in ("completed", "in-progress", "completed"):
            await client.put(url, json={"status": status}, headers=auth_headers(owner))

        assert len(task_completions(context, member.id)) == 2

    async def test_partial_update_keeps_other_fields(self, client: AsyncClient, context, auth_headers, owner,
                                                     member, team_project):
        task = context.projects.add_task(
            team_project.id, owner.id, TaskIn(title="Draft README", assignedTo=member.id)
        )

        response = await client.put(
            f"/api/projects/{team_project.id}/tasks/{task.id}",
            json={"description": "Cover setup and testing"},
            headers=auth_headers(member),
        )

        updated = response.json()["task"]
        assert updated["title"] == "Draft README"
        assert updated["assignedTo"] == member.id
        assert updated["description"] == "Cover setup and testing"

    async def test_unassign(self, client: AsyncClient, context, auth_headers, owner, member, team_project):
        task = context.projects.add_task(
            team_project.id, owner.id, TaskIn(title="Draft README", assignedTo=member.id)
        )

        response = await client.put(
            f"/api/projects/{team_project.id}/tasks/{task.id}",
            json={"assignedTo": None},
            headers=auth_headers(owner),
        )

        assert response.json()["task"]["assignedTo"] is None

    async def test_unknown_task(self, client: AsyncClient, auth_headers, owner, team_project):
        response = await client.put(
            f"/api/projects/{team_project.id}/tasks/507f1f77bcf86cd799439011",
            json={"status": "completed"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 404


class TestTaskDeletion:

    async def test_creator_deletes_own_task(self, client: AsyncClient, context, auth_headers, member,
                                            team_project):
        task = context.projects.add_task(team_project.id, member.id, TaskIn(title="Mine"))

        response = await client.delete(
            f"/api/projects/{team_project.id}/tasks/{task.id}", headers=auth_headers(member)
        )

        assert response.status_code == 200
        assert context.store.get(team_project.id).tasks == []

    async def test_contributor_cannot_delete_others_task(self, client: AsyncClient, context, auth_headers, owner,
                                                         member, team_project):
        task = context.projects.add_task(team_project.id, owner.id, TaskIn(title="Owner's"))

        response = await client.delete(
            f"/api/projects/{team_project.id}/tasks/{task.id}", headers=auth_headers(member)
        )

        assert response.status_code == 403

    async def test_owner_deletes_any_task(self, client: AsyncClient, context, auth_headers, owner, member,
                                          team_project):
        task = context.projects.add_task(team_project.id, member.id, TaskIn(title="Contributor's"))

        response = await client.delete(
            f"/api/projects/{team_project.id}/tasks/{task.id}", headers=auth_headers(owner)
        )

        assert response.status_code == 200
