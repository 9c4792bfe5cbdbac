"""
Trust score bookkeeping.

Two computations live here and are deliberately kept apart:

* `TrustLedger` appends point deltas to the `trustlogs` collection and
  re-clamps the score stored on the user document. That stored score is the
  one shown on profiles.
* `TrustVotes` tallies peer up/down votes per target on read:
  ``clamp(30 + 5 * (up - down), 0, 100)``. It is never written back.
"""
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError

from uniconnect import policy
from uniconnect.database import TRUST_LOGS, Database, oid, utcnow
from uniconnect.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from uniconnect.logging_config import logger
from uniconnect.schemas import DEFAULT_TRUST_SCORE, TrustAction, TrustLogEntry, TrustVote

if TYPE_CHECKING:
    from uniconnect.projects import ProjectStore

MIN_SCORE = 0
MAX_SCORE = 100
VOTE_BASE = 30
VOTE_WEIGHT = 5

# Default credit per activity; adjustments always pass explicit points
ACTION_POINTS: Dict[str, int] = {
    'account_created': 0,
    'profile_completed': 5,
    'project_joined': 2,
    'task_completed': 5,
}

LOG_SORT_FIELDS = ('createdAt', 'points', 'action')


def clamp_score(score: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, score))


def vote_score(upvotes: int, downvotes: int) -> int:
    return clamp_score(VOTE_BASE + VOTE_WEIGHT * (upvotes - downvotes))


class TrustLedger:
    """Append-only trust history backing the stored user score"""

    def __init__(self, database: Database):
        self.database = database

    def log_activity(
        self,
        user_id: str,
        action: TrustAction,
        description: str,
        points: Optional[int] = None,
        project_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TrustLogEntry:
        if points is None:
            points = ACTION_POINTS.get(action, 0)

        entry = TrustLogEntry(
            user=user_id,
            action=action,
            points=points,
            description=description,
            project=project_id,
            metadata=metadata or {},
        )
        entry.id = self.database.create_document(TRUST_LOGS, entry.to_document())

        new_score = self._apply_points(user_id, points) if points else None
        logger.log_trust_event(user_id, action, points, new_score=new_score)
        return entry

    def _apply_points(self, user_id: str, points: int) -> Optional[int]:
        # Read-modify-write: concurrent adjustments on one user are last-write-wins
        doc = self.database.users.find_one({"_id": oid(user_id)}, {"trustScore": 1})
        if doc is None:
            logger.warning(f"Trust points for unknown user {user_id} were logged but not applied")
            return None
        new_score = clamp_score(doc.get("trustScore", DEFAULT_TRUST_SCORE) + points)
        now = utcnow()
        self.database.users.update_one(
            {"_id": doc["_id"]},
            {"$set": {"trustScore": new_score, "lastActive": now, "updatedAt": now}},
        )
        return new_score

    def adjust(self, user_id: str, points: int, reason: str, admin_id: str) -> Tuple[TrustLogEntry, int]:
        """Admin adjustment; returns the entry and the resulting stored score"""
        if self.database.users.count_documents({"_id": oid(user_id)}) == 0:
            raise NotFoundError("User", user_id)
        entry = self.log_activity(
            user_id,
            'admin_adjustment',
            f"Admin adjustment: {reason}",
            points=points,
            metadata={"adjustedBy": admin_id, "reason": reason},
        )
        doc = self.database.users.find_one({"_id": oid(user_id)}, {"trustScore": 1})
        return entry, doc["trustScore"]

    def history(self, user_id: str, limit: int = 20) -> List[TrustLogEntry]:
        docs = self.database.get_documents(
            TRUST_LOGS,
            {"user": user_id},
            sort=[("createdAt", DESCENDING), ("_id", DESCENDING)],
            limit=limit,
        )
        return [TrustLogEntry.from_document(d) for d in docs]

    def stats(self, user_id: str, days: int = 30) -> Dict[str, Any]:
        """Points gained and lost over the last `days` days"""
        # ObjectIds embed their creation time
        since = ObjectId.from_datetime(utcnow() - timedelta(days=days))
        entries = list(self.database.trust_logs.find({"user": user_id, "_id": {"$gte": since}}))

        by_action: Dict[str, int] = {}
        gained = lost = 0
        for entry in entries:
            points = entry.get("points", 0)
            if points > 0:
                gained += points
            else:
                lost += -points
            by_action[entry["action"]] = by_action.get(entry["action"], 0) + 1

        user = self.database.users.find_one({"_id": oid(user_id)}, {"trustScore": 1})
        return {
            "days": days,
            "totalEntries": len(entries),
            "pointsGained": gained,
            "pointsLost": lost,
            "netChange": gained - lost,
            "byAction": by_action,
            "currentScore": user.get("trustScore") if user else None,
        }

    def list_logs(
        self,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
        sort: str = "createdAt",
        order: str = "desc",
    ) -> Tuple[List[TrustLogEntry], int]:
        query: Dict[str, Any] = {}
        if user_id:
            query["user"] = user_id
        if action:
            query["action"] = action
        if sort not in LOG_SORT_FIELDS:
            raise ValidationError(f"Cannot sort by '{sort}'", field="sort")
        direction = DESCENDING if order == "desc" else ASCENDING
        docs = self.database.get_documents(
            TRUST_LOGS,
            query,
            sort=[(sort, direction), ("_id", direction)],
            skip=(page - 1) * limit,
            limit=limit,
        )
        total = self.database.count_documents(TRUST_LOGS, query)
        return [TrustLogEntry.from_document(d) for d in docs], total


class TrustVotes:
    """Peer votes between fellow project members"""

    def __init__(self, database: Database, projects: "ProjectStore"):
        self.database = database
        self.projects = projects

    def cast_vote(self, voter_id: str, target_id: str, project_id: str, vote: int) -> TrustVote:
        if vote not in (1, -1):
            raise ValidationError("Vote must be 1 (upvote) or -1 (downvote)", field="vote")
        if target_id == voter_id:
            raise ValidationError("You cannot vote for yourself", field="targetId")

        project = self.projects.get(project_id)
        if not policy.is_member(project, voter_id):
            raise ForbiddenError("Only project members can vote on fellow members", hint="requires_join")
        if not policy.is_member(project, target_id):
            raise ValidationError("Target user is not a member of this project", field="targetId")

        now = utcnow()
        key = {"voter": voter_id, "target": target_id, "project": project_id}
        try:
            self.database.trust_votes.update_one(
                key,
                {"$set": {"vote": vote, "updatedAt": now}, "$setOnInsert": {"createdAt": now}},
                upsert=True,
            )
        except DuplicateKeyError:
            # Two first votes raced on the unique (voter, target, project) index
            raise ConflictError("Vote was recorded concurrently, please retry")

        logger.info(f"Trust vote {vote:+d} from {voter_id} to {target_id} in project {project_id}")
        return TrustVote.from_document(self.database.trust_votes.find_one(key))

    def score_for(self, target_id: str) -> Dict[str, Any]:
        votes = [
            TrustVote.from_document(doc)
            for doc in self.database.trust_votes.find({"target": target_id}).sort("_id", ASCENDING)
        ]
        upvotes = sum(1 for v in votes if v.vote == 1)
        downvotes = sum(1 for v in votes if v.vote == -1)
        return {
            "trustScore": vote_score(upvotes, downvotes),
            "upvotes": upvotes,
            "downvotes": downvotes,
            "recentVotes": [v.model_dump(mode="json") for v in reversed(votes[-10:])],
        }
