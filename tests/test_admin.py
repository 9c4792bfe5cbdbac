import pytest
from httpx import AsyncClient

from uniconnect.database import oid

REASON = "Repeatedly ignores assigned tasks and deadlines."


@pytest.fixture
def team_project(context, owner, member, project_factory):
    project = project_factory(owner)
    context.projects.request_join(project.id, member.id)
    return project


class TestAdminAccess:

    @pytest.mark.parametrize("path", ["/api/admin/users", "/api/admin/projects", "/api/admin/reports",
                                      "/api/admin/trust-logs"])
    async def test_regular_user_forbidden(self, client: AsyncClient, auth_headers, owner, path):
        response = await client.get(path, headers=auth_headers(owner))

        assert response.status_code == 403
        assert response.json()["details"]["hint"] == "requires_admin"

    async def test_anonymous_rejected(self, client: AsyncClient):
        response = await client.get("/api/admin/users")

        assert response.status_code == 401


class TestUserModeration:

    async def test_list_users_with_filters(self, client: AsyncClient, auth_headers, admin, owner, member):
        response = await client.get("/api/admin/users", params={"role": "admin"}, headers=auth_headers(admin))

        assert response.status_code == 200
        users = response.json()["users"]
        assert [u["id"] for u in users] == [admin.id]
        assert users[0]["email"] == admin.email

    async def test_bad_role_filter(self, client: AsyncClient, auth_headers, admin):
        response = await client.get("/api/admin/users", params={"role": "root"}, headers=auth_headers(admin))

        assert response.status_code == 400

    async def test_adjust_trust_score(self, client: AsyncClient, context, auth_headers, admin, member):
        response = await client.put(
            f"/api/admin/users/{member.id}/trust-score",
            json={"points": 15, "reason": "Outstanding teamwork"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        assert response.json()["trustScore"] == 45
        entry = response.json()["entry"]
        assert entry["action"] == "admin_adjustment"
        assert entry["metadata"]["adjustedBy"] == admin.id

    async def test_adjust_clamps_at_zero(self, client: AsyncClient, context, auth_headers, admin, member):
        response = await client.put(
            f"/api/admin/users/{member.id}/trust-score",
            json={"points": -100, "reason": "Spam account"},
            headers=auth_headers(admin),
        )

        assert response.json()["trustScore"] == 0
        assert response.json()["entry"]["points"] == -100
        assert context.users.get(member.id).trustScore == 0

    async def test_adjust_out_of_range(self, client: AsyncClient, auth_headers, admin, member):
        response = await client.put(
            f"/api/admin/users/{member.id}/trust-score",
            json={"points": 500, "reason": "Too generous"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 400

    async def test_deactivate_user(self, client: AsyncClient, context, auth_headers, admin, member):
        response = await client.put(
            f"/api/admin/users/{member.id}/status", json={"isActive": False}, headers=auth_headers(admin)
        )

        assert response.status_code == 200
        assert context.users.get(member.id).isActive is False

    async def test_cannot_deactivate_self(self, client: AsyncClient, context, auth_headers, admin):
        response = await client.put(
            f"/api/admin/users/{admin.id}/status", json={"isActive": False}, headers=auth_headers(admin)
        )

        assert response.status_code == 400
        assert context.users.get(admin.id).isActive is True

    async def test_promote_user(self, client: AsyncClient, context, auth_headers, admin, member):
        response = await client.put(
            f"/api/admin/users/{member.id}/role", json={"role": "admin"}, headers=auth_headers(admin)
        )
        promoted = await client.get("/api/admin/users", headers=auth_headers(member))

        assert response.status_code == 200
        assert context.users.get(member.id).role == "admin"
        assert promoted.status_code == 200

    async def test_unknown_user(self, client: AsyncClient, auth_headers, admin):
        response = await client.put(
            "/api/admin/users/507f1f77bcf86cd799439011/role", json={"role": "admin"}, headers=auth_headers(admin)
        )

        assert response.status_code == 404

    async def test_trust_logs_filtered_by_user(self, client: AsyncClient, context, auth_headers, admin, member):
        context.ledger.adjust(member.id, 5, "Helpful reviews", admin_id=admin.id)

        response = await client.get(
            "/api/admin/trust-logs",
            params={"userId": member.id, "action": "admin_adjustment"},
            headers=auth_headers(admin),
        )

        logs = response.json()["logs"]
        assert len(logs) == 1
        assert logs[0]["user"] == member.id
        assert response.json()["pagination"]["total"] == 1


class TestProjectModeration:

    async def test_list_includes_drafts(self, client: AsyncClient, auth_headers, admin, owner, project_factory):
        draft = project_factory(owner, privacy="draft")

        response = await client.get("/api/admin/projects", headers=auth_headers(admin))

        assert draft.id in [p["id"] for p in response.json()["projects"]]

    async def test_admin_deletes_project(self, client: AsyncClient, context, auth_headers, admin, owner,
                                         team_project):
        response = await client.delete(f"/api/admin/projects/{team_project.id}", headers=auth_headers(admin))
        listing = await client.get("/api/admin/projects", headers=auth_headers(admin))

        assert response.status_code == 200
        assert team_project.id not in [p["id"] for p in listing.json()["projects"]]
        assert context.store.get(team_project.id, include_deleted=True).is_deleted


class TestReports:

    async def test_owner_reports_member(self, client: AsyncClient, context, auth_headers, owner, member,
                                        team_project):
        response = await client.post(
            f"/api/projects/{team_project.id}/report",
            json={"userId": member.id, "reason": REASON},
            headers=auth_headers(owner),
        )

        assert response.status_code == 201
        report = response.json()["report"]
        assert report["status"] == "open"
        assert report["reportedUser"] == member.id
        notifications = context.notifications.list_for(owner.id)
        assert notifications[0].type == "report_submitted"
        assert member.name in notifications[0].message

    async def test_member_cannot_report(self, client: AsyncClient, auth_headers, owner, member, team_project):
        response = await client.post(
            f"/api/projects/{team_project.id}/report",
            json={"userId": owner.id, "reason": REASON},
            headers=auth_headers(member),
        )

        assert response.status_code == 403
        assert response.json()["details"]["hint"] == "requires_owner"

    async def test_cannot_report_non_member(self, client: AsyncClient, auth_headers, owner, outsider,
                                            team_project):
        response = await client.post(
            f"/api/projects/{team_project.id}/report",
            json={"userId": outsider.id, "reason": REASON},
            headers=auth_headers(owner),
        )

        assert response.status_code == 400

    async def test_short_reason_rejected(self, client: AsyncClient, auth_headers, owner, member, team_project):
        response = await client.post(
            f"/api/projects/{team_project.id}/report",
            json={"userId": member.id, "reason": "rude"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 400

    async def test_resolve_report(self, client: AsyncClient, context, auth_headers, admin, owner, member,
                                  team_project):
        report = context.reports.file_report(team_project.id, owner.id, member.id, REASON)

        response = await client.put(
            f"/api/admin/reports/{report.id}/resolve",
            json={"adminNote": "Spoke with the student"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        resolved = response.json()["report"]
        assert resolved["status"] == "resolved"
        assert resolved["resolvedBy"] == admin.id
        assert resolved["adminNote"] == "Spoke with the student"
        assert resolved["resolvedAt"] is not None

        types = [n.type for n in context.notifications.list_for(owner.id)]
        assert types == ["report_resolved", "report_submitted"]

    async def test_resolve_twice_conflicts(self, client: AsyncClient, context, auth_headers, admin, owner, member,
                                           team_project):
        report = context.reports.file_report(team_project.id, owner.id, member.id, REASON)
        await client.put(f"/api/admin/reports/{report.id}/resolve", headers=auth_headers(admin))

        response = await client.put(f"/api/admin/reports/{report.id}/resolve", headers=auth_headers(admin))

        assert response.status_code == 409

    async def test_resolve_after_project_deleted(self, client: AsyncClient, context, auth_headers, admin, owner,
                                                 member, team_project):
        report = context.reports.file_report(team_project.id, owner.id, member.id, REASON)
        context.projects.delete(team_project.id, owner)

        response = await client.put(f"/api/admin/reports/{report.id}/resolve", headers=auth_headers(admin))

        assert response.status_code == 200

    async def test_open_reports_listed_first(self, client: AsyncClient, context, auth_headers, admin, owner,
                                             member, user_factory, team_project):
        other = user_factory()
        context.projects.request_join(team_project.id, other.id)
        first = context.reports.file_report(team_project.id, owner.id, member.id, REASON)
        second = context.reports.file_report(team_project.id, owner.id, other.id, REASON)
        context.reports.resolve(first.id, admin)

        response = await client.get("/api/admin/reports", headers=auth_headers(admin))

        assert [r["id"] for r in response.json()["reports"]] == [second.id, first.id]

    async def test_missing_project_leaves_report_open(self, client: AsyncClient, context, auth_headers, admin,
                                                      owner, member, team_project):
        report = context.reports.file_report(team_project.id, owner.id, member.id, REASON)
        context.database.projects.delete_one({"_id": oid(team_project.id)})

        response = await client.put(f"/api/admin/reports/{report.id}/resolve", headers=auth_headers(admin))

        assert response.status_code == 404
        assert context.reports.get(report.id).status == "open"
        assert [n.type for n in context.notifications.list_for(owner.id)] == ["report_submitted"]
