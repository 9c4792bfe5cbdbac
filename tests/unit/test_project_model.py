"""
Unit Tests for the project aggregate: membership, join requests, tasks
"""
import pytest

from uniconnect.exceptions import ConflictError, NotFoundError, ValidationError
from uniconnect.schemas import Project, Task, new_id

OWNER = new_id()
ALICE = new_id()
BOB = new_id()


def make_project(privacy: str = 'private') -> Project:
    return Project.create(OWNER, title="Aggregate project", description="Exercises the model", privacy=privacy)


def assert_owner_is_member(project: Project):
    owner = project.get_member(project.owner)
    assert owner is not None
    assert owner.role == 'owner'


class TestMembership:

    def test_owner_is_first_member(self):
        project = make_project()

        assert len(project.members) == 1
        assert_owner_is_member(project)
        assert project.members[0].hasSignedNDA is True

    def test_owner_cannot_be_removed(self):
        project = make_project()

        with pytest.raises(ValidationError):
            project.remove_member(OWNER)
        assert_owner_is_member(project)

    def test_owner_role_cannot_change(self):
        project = make_project()

        with pytest.raises(ValidationError):
            project.set_member_role(OWNER, 'viewer')
        assert_owner_is_member(project)

    def test_nobody_can_be_made_owner(self):
        project = make_project()
        project.add_member(ALICE)

        with pytest.raises(ValidationError):
            project.set_member_role(ALICE, 'owner')

    def test_role_change_and_removal(self):
        project = make_project()
        project.add_member(ALICE)

        project.set_member_role(ALICE, 'contributor')
        assert project.get_member(ALICE).role == 'contributor'

        project.remove_member(ALICE)
        assert project.get_member(ALICE) is None
        assert_owner_is_member(project)

    def test_add_member_keeps_existing_membership(self):
        project = make_project()
        project.add_member(ALICE, 'contributor')

        project.add_member(ALICE, 'viewer')

        assert project.get_member(ALICE).role == 'contributor'
        assert len(project.members) == 2

    def test_removing_unknown_member(self):
        with pytest.raises(NotFoundError):
            make_project().remove_member(ALICE)


class TestJoinRequests:

    def test_public_project_joined_instantly(self):
        project = make_project('public')

        request = project.request_to_join(ALICE)

        assert request is None
        assert project.get_member(ALICE).role == 'viewer'
        assert project.joinRequests == []

    def test_private_project_gets_pending_request(self):
        project = make_project('private')

        request = project.request_to_join(ALICE, "I can help with the frontend")

        assert request.status == 'pending'
        assert project.get_member(ALICE) is None

    def test_second_pending_request_is_conflict(self):
        project = make_project()
        project.request_to_join(ALICE)

        with pytest.raises(ConflictError):
            project.request_to_join(ALICE)
        assert sum(1 for r in project.joinRequests if r.user == ALICE and r.is_pending) == 1

    def test_owner_cannot_request(self):
        with pytest.raises(ValidationError):
            make_project().request_to_join(OWNER)

    def test_member_cannot_request(self):
        project = make_project()
        project.add_member(ALICE)

        with pytest.raises(ValidationError):
            project.request_to_join(ALICE)

    def test_approve_grants_viewer(self):
        project = make_project()
        request = project.request_to_join(ALICE)

        project.respond_to_request(request.id, 'approved', OWNER)

        assert request.status == 'approved'
        assert request.respondedBy == OWNER
        assert request.respondedAt is not None
        assert project.get_member(ALICE).role == 'viewer'

    def test_reject_leaves_non_member(self):
        project = make_project()
        request = project.request_to_join(ALICE)

        project.respond_to_request(request.id, 'rejected', OWNER)

        assert project.get_member(ALICE) is None

    def test_rejected_user_may_request_again(self):
        project = make_project()
        first = project.request_to_join(ALICE)
        project.respond_to_request(first.id, 'rejected', OWNER)

        second = project.request_to_join(ALICE)

        assert second.is_pending
        assert second.id != first.id

    def test_answered_request_cannot_be_answered_again(self):
        project = make_project()
        request = project.request_to_join(ALICE)
        project.respond_to_request(request.id, 'rejected', OWNER)

        with pytest.raises(ConflictError):
            project.respond_to_request(request.id, 'approved', OWNER)
        assert project.get_member(ALICE) is None

    def test_unknown_request(self):
        with pytest.raises(NotFoundError):
            make_project().respond_to_request(new_id(), 'approved', OWNER)


class TestNda:

    def test_sign_requires_private_project(self):
        project = make_project('public')
        project.add_member(ALICE)

        with pytest.raises(ValidationError):
            project.sign_nda(ALICE)

    def test_sign_requires_membership(self):
        with pytest.raises(ValidationError):
            make_project('private').sign_nda(BOB)


class TestTasks:

    def test_completion_reported_once(self):
        task = Task(title="Write docs", createdBy=OWNER, assignedTo=ALICE)

        assert task.apply_changes({"status": "completed"}) is True
        assert task.apply_changes({"status": "completed"}) is False

    def test_other_changes_do_not_report_completion(self):
        task = Task(title="Write docs", createdBy=OWNER)

        assert task.apply_changes({"status": "in-progress", "title": "Write more docs"}) is False
        assert task.title == "Write more docs"

    def test_remove_task(self):
        project = make_project()
        task = project.add_task(OWNER, title="Set up CI")

        project.remove_task(task.id)

        with pytest.raises(NotFoundError):
            project.get_task(task.id)

    def test_soft_delete_marks_cancelled(self):
        project = make_project()

        project.soft_delete()

        assert project.is_deleted
        assert project.status == 'cancelled'
        assert project.to_public()["isDeleted"] is True
