"""
Unit Tests for the trust ledger and peer votes
"""
import pytest

from uniconnect.exceptions import ForbiddenError, NotFoundError, ValidationError
from uniconnect.schemas import new_id
from uniconnect.trust import clamp_score, vote_score


class TestScoreFormulas:

    @pytest.mark.parametrize("score,expected", [(-20, 0), (0, 0), (55, 55), (100, 100), (140, 100)])
    def test_clamp(self, score, expected):
        assert clamp_score(score) == expected

    @pytest.mark.parametrize("up,down,expected", [
        (0, 0, 30),
        (3, 1, 40),
        (0, 7, 0),
        (20, 0, 100),
    ])
    def test_vote_score(self, up, down, expected):
        assert vote_score(up, down) == expected


class TestTrustLedger:

    def test_new_account_starts_at_default(self, context, user_factory):
        user = user_factory()

        history = context.ledger.history(user.id)

        assert user.trustScore == 30
        assert [e.action for e in history] == ['account_created']
        assert history[0].points == 0

    def test_activity_points_applied(self, context, user_factory):
        user = user_factory()

        context.ledger.log_activity(user.id, 'task_completed', "Completed task: Docs")

        assert context.users.get(user.id).trustScore == 35

    @pytest.mark.parametrize("adjustments,expected", [
        ([100, 100], 100),
        ([-100], 0),
        ([50, -100, 20], 20),
    ])
    def test_score_stays_in_bounds(self, context, user_factory, admin, adjustments, expected):
        user = user_factory()

        for points in adjustments:
            entry, score = context.ledger.adjust(user.id, points, "Moderation review", admin.id)
            assert 0 <= score <= 100

        assert context.users.get(user.id).trustScore == expected

    def test_adjustment_records_admin(self, context, user_factory, admin):
        user = user_factory()

        entry, score = context.ledger.adjust(user.id, -10, "Spam in chat", admin.id)

        assert score == 20
        assert entry.action == 'admin_adjustment'
        assert entry.metadata == {"adjustedBy": admin.id, "reason": "Spam in chat"}

    def test_adjusting_unknown_user(self, context, admin):
        with pytest.raises(NotFoundError):
            context.ledger.adjust(new_id(), 5, "Does not exist", admin.id)

    def test_history_newest_first(self, context, user_factory):
        user = user_factory()
        context.ledger.log_activity(user.id, 'project_joined', "Joined project: One")
        context.ledger.log_activity(user.id, 'task_completed', "Completed task: Two")

        actions = [e.action for e in context.ledger.history(user.id)]

        assert actions == ['task_completed', 'project_joined', 'account_created']

    def test_stats(self, context, user_factory, admin):
        user = user_factory()
        context.ledger.log_activity(user.id, 'task_completed', "Completed task: Two")
        context.ledger.adjust(user.id, -8, "Missed deadlines", admin.id)

        stats = context.ledger.stats(user.id, days=30)

        assert stats["totalEntries"] == 3
        assert stats["pointsGained"] == 5
        assert stats["pointsLost"] == 8
        assert stats["netChange"] == -3
        assert stats["byAction"]["task_completed"] == 1
        assert stats["currentScore"] == 27


class TestTrustVotes:

    @pytest.fixture
    def team(self, context, user_factory, project_factory):
        owner, alice, bob = user_factory(), user_factory(), user_factory()
        project = project_factory(owner, 'public')
        context.projects.request_join(project.id, alice.id)
        context.projects.request_join(project.id, bob.id)
        return project, owner, alice, bob

    def test_upvote_counts(self, context, team):
        project, owner, alice, bob = team

        context.votes.cast_vote(owner.id, alice.id, project.id, 1)
        context.votes.cast_vote(bob.id, alice.id, project.id, 1)

        score = context.votes.score_for(alice.id)
        assert score["upvotes"] == 2
        assert score["downvotes"] == 0
        assert score["trustScore"] == 40

    def test_revote_replaces(self, context, team):
        project, owner, alice, bob = team

        context.votes.cast_vote(owner.id, alice.id, project.id, 1)
        context.votes.cast_vote(owner.id, alice.id, project.id, -1)

        score = context.votes.score_for(alice.id)
        assert (score["upvotes"], score["downvotes"]) == (0, 1)
        assert score["trustScore"] == 25
        assert len(score["recentVotes"]) == 1

    def test_vote_score_not_written_to_profile(self, context, team):
        project, owner, alice, bob = team

        context.votes.cast_vote(owner.id, alice.id, project.id, 1)

        assert context.users.get(alice.id).trustScore == 30

    def test_self_vote_rejected(self, context, team):
        project, owner, alice, bob = team

        with pytest.raises(ValidationError):
            context.votes.cast_vote(alice.id, alice.id, project.id, 1)

    def test_voter_must_be_member(self, context, team, outsider):
        project, owner, alice, bob = team

        with pytest.raises(ForbiddenError) as exc_info:
            context.votes.cast_vote(outsider.id, alice.id, project.id, 1)
        assert exc_info.value.hint == 'requires_join'

    def test_target_must_be_member(self, context, team, outsider):
        project, owner, alice, bob = team

        with pytest.raises(ValidationError):
            context.votes.cast_vote(alice.id, outsider.id, project.id, 1)

    def test_deleted_project_rejects_votes(self, context, team):
        project, owner, alice, bob = team
        context.projects.delete(project.id, owner)

        with pytest.raises(NotFoundError):
            context.votes.cast_vote(owner.id, alice.id, project.id, 1)
