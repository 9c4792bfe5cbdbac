"""
Projects: storage, listing, membership workflow and task tracking.

`ProjectStore` loads and saves whole project documents (members, join
requests and tasks are embedded). `ProjectService` applies the access rules
from `uniconnect.policy` and the aggregate methods on `Project`, then saves.
Saves are optimistic: each one bumps `version` and fails with a conflict when
the stored version moved on since the load. View counting bypasses the
aggregate with an atomic increment.
"""
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING

from uniconnect import policy
from uniconnect.database import PROJECTS, Database, oid, utcnow
from uniconnect.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from uniconnect.identity import UserService, contains, split_csv
from uniconnect.logging_config import logger, set_project_id
from uniconnect.schemas import (
    JoinRequest,
    MemberRole,
    Project,
    ProjectIn,
    ProjectUpdateIn,
    RequestStatus,
    Task,
    TaskIn,
    TaskUpdateIn,
    User,
)
from uniconnect.trust import TrustLedger

PROJECT_SORT_FIELDS = ('createdAt', 'updatedAt', 'title', 'viewCount', 'lastActivity')
HIDDEN_DESCRIPTION = "Description hidden. Join to view details."


def active(query: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Restrict a project query to non-deleted projects"""
    return {**(query or {}), "lifecycle": "active"}


class ProjectStore:
    def __init__(self, database: Database):
        self.database = database

    def get(self, project_id: str, include_deleted: bool = False) -> Project:
        doc = self.database.projects.find_one({"_id": oid(project_id, field="projectId")})
        if doc is None:
            raise NotFoundError("Project", project_id)
        project = Project.from_document(doc)
        if project.is_deleted and not include_deleted:
            raise NotFoundError("Project", project_id)
        return project

    def insert(self, project: Project) -> Project:
        project.id = self.database.create_document(PROJECTS, project.to_document())
        return self.get(project.id)

    def save(self, project: Project) -> None:
        """Replace the stored aggregate, provided nobody saved it since it was loaded"""
        document = project.to_document()
        document["version"] = project.version + 1
        result = self.database.projects.replace_one(
            {"_id": oid(project.id), "version": project.version}, document
        )
        if result.matched_count == 0:
            logger.warning(f"Stale save of project {project.id} at version {project.version} rejected")
            raise ConflictError("Project was modified by another request, please retry")
        project.version += 1

    def record_view(self, project: Project) -> None:
        now = utcnow()
        self.database.projects.update_one(
            {"_id": oid(project.id)}, {"$inc": {"viewCount": 1}, "$set": {"lastActivity": now}}
        )
        project.viewCount += 1
        project.lastActivity = now

    def find(
        self,
        query: Dict[str, Any],
        sort: Optional[List[Tuple[str, int]]] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Project]:
        docs = self.database.get_documents(PROJECTS, active(query), sort=sort, skip=skip, limit=limit)
        return [Project.from_document(d) for d in docs]

    def count(self, query: Dict[str, Any]) -> int:
        return self.database.count_documents(PROJECTS, active(query))


def _require_owner(project: Project, user_id: str) -> None:
    if not policy.is_owner(project, user_id):
        raise ForbiddenError("Access denied. Project owner privileges required.", hint="requires_owner")


def _require_edit(project: Project, user_id: str) -> None:
    if not policy.can_edit(project, user_id):
        raise ForbiddenError("Access denied. Edit privileges required.", hint="requires_edit")


def _require_view(project: Project, user_id: str) -> None:
    if not policy.can_view(project, user_id):
        raise ForbiddenError("Access denied. You do not have permission to view this project.",
                             hint="requires_join")


class ProjectService:
    def __init__(self, store: ProjectStore, users: UserService, ledger: TrustLedger):
        self.store = store
        self.users = users
        self.ledger = ledger

    def load(self, project_id: str) -> Project:
        project = self.store.get(project_id)
        set_project_id(project.id)
        return project

    # --------- Projects ---------

    def create(self, owner_id: str, data: ProjectIn) -> Project:
        project = Project.create(owner_id, **data.model_dump())
        project = self.store.insert(project)
        logger.info(f"Project {project.id} created by {owner_id} ({project.privacy})")
        return project

    def list_projects(
        self,
        user_id: str,
        search: Optional[str] = None,
        privacy: Optional[str] = None,
        status: Optional[str] = None,
        tech_stack: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        sort: str = "createdAt",
        order: str = "desc",
    ) -> Tuple[List[dict], int]:
        """Projects visible in the listing; drafts only show up for their owner"""
        clauses: List[Dict[str, Any]] = []
        if not privacy or privacy == "all":
            clauses.append({"$or": [
                {"privacy": {"$in": ["public", "private"]}},
                {"privacy": "draft", "owner": user_id},
            ]})
        elif privacy == "draft":
            clauses.append({"privacy": "draft", "owner": user_id})
        else:
            clauses.append({"privacy": privacy})

        if search:
            clauses.append({"$or": [{"title": contains(search)}, {"description": contains(search)}]})
        if status and status != "all":
            clauses.append({"status": status})
        if tech_stack:
            clauses.append({"techStack": {"$in": split_csv(tech_stack)}})

        if sort not in PROJECT_SORT_FIELDS:
            raise ValidationError(f"Cannot sort by '{sort}'", field="sort")
        direction = DESCENDING if order == "desc" else ASCENDING

        query = {"$and": clauses}
        projects = self.store.find(
            query, sort=[(sort, direction), ("_id", direction)], skip=(page - 1) * limit, limit=limit
        )
        total = self.store.count(query)

        listed = []
        for project in projects:
            data = project.to_public()
            if project.privacy == 'private' and not policy.is_member(project, user_id):
                data["description"] = HIDDEN_DESCRIPTION
            listed.append(data)
        return listed, total

    def admin_list(
        self,
        search: Optional[str] = None,
        privacy: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        sort: str = "createdAt",
        order: str = "desc",
    ) -> Tuple[List[Project], int]:
        """Every non-deleted project, drafts included"""
        query: Dict[str, Any] = {}
        if search:
            query["$or"] = [{"title": contains(search)}, {"description": contains(search)}]
        if privacy:
            query["privacy"] = privacy
        if status:
            query["status"] = status
        if sort not in PROJECT_SORT_FIELDS:
            raise ValidationError(f"Cannot sort by '{sort}'", field="sort")
        direction = DESCENDING if order == "desc" else ASCENDING
        projects = self.store.find(
            query, sort=[(sort, direction), ("_id", direction)], skip=(page - 1) * limit, limit=limit
        )
        return projects, self.store.count(query)

    def my_projects(self, user_id: str) -> List[Project]:
        query = {"$or": [{"owner": user_id}, {"members.user": user_id}]}
        return self.store.find(query, sort=[("createdAt", DESCENDING), ("_id", DESCENDING)])

    def dashboard(self, user: User) -> Dict[str, Any]:
        projects = self.my_projects(user.id)
        return {
            "stats": {
                "totalProjects": len(projects),
                "activeProjects": sum(1 for p in projects if p.status == 'active'),
                "totalCollaborators": sum(len(p.members) for p in projects),
                "trustScore": user.trustScore,
            },
            "recentProjects": [p.to_public() for p in projects[:5]],
            "recentActivity": [
                entry.model_dump(mode="json") for entry in self.ledger.history(user.id, limit=5)
            ],
        }

    def basic_info(self, project_id: str, user_id: str) -> Dict[str, Any]:
        project = self.load(project_id)
        _require_view(project, user_id)

        try:
            owner = self.users.get(project.owner)
            owner_info = {"id": owner.id, "name": owner.name,
                          "university": owner.university, "trustScore": owner.trustScore}
        except NotFoundError:
            owner_info = {"id": project.owner}

        return {
            "id": project.id,
            "title": project.title,
            "description": project.description,
            "privacy": project.privacy,
            "status": project.status,
            "techStack": project.techStack,
            "tags": project.tags,
            "createdAt": project.createdAt.isoformat() if project.createdAt else None,
            "owner": owner_info,
            "memberCount": len(project.members),
            "isOwner": policy.is_owner(project, user_id),
            "isMember": policy.is_member(project, user_id),
            "hasPendingRequest": project.pending_request_for(user_id) is not None,
        }

    def details(self, project_id: str, user_id: str) -> Project:
        """Full project view for members; counts as a view"""
        project = self.load(project_id)
        if not policy.can_view_details(project, user_id):
            raise ForbiddenError("Access denied. You must be a member to view project details.",
                                 hint="requires_join")
        if not policy.has_signed_nda(project, user_id):
            raise ForbiddenError("You must sign the NDA to access this private project.",
                                 hint="requires_nda")
        self.store.record_view(project)
        return project

    def update(self, project_id: str, user_id: str, data: ProjectUpdateIn) -> Project:
        project = self.load(project_id)
        _require_edit(project, user_id)
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        for field, value in changes.items():
            setattr(project, field, value)
        project.touch()
        self.store.save(project)
        logger.info(f"Project {project.id} updated by {user_id}: {sorted(changes)}")
        return project

    def delete(self, project_id: str, user: User) -> None:
        project = self.load(project_id)
        if not policy.is_owner(project, user.id) and not user.is_admin:
            raise ForbiddenError("Only the project owner can delete this project", hint="requires_owner")
        project.soft_delete()
        self.store.save(project)
        logger.info(f"Project {project.id} deleted by {user.id}")

    # --------- Membership ---------

    def request_join(self, project_id: str, user_id: str, message: str = "") -> Tuple[Project, Optional[JoinRequest]]:
        """Returns the request, or None when the user joined a public project directly"""
        project = self.load(project_id)
        if project.privacy == 'draft' and not policy.is_owner(project, user_id):
            raise NotFoundError("Project", project_id)
        request = project.request_to_join(user_id, message)
        self.store.save(project)
        if request is None:
            logger.info(f"User {user_id} joined public project {project.id}")
        else:
            logger.info(f"Join request {request.id} from {user_id} on project {project.id}")
        return project, request

    def respond_to_request(self, project_id: str, request_id: str, owner_id: str,
                           decision: RequestStatus) -> JoinRequest:
        project = self.load(project_id)
        _require_owner(project, owner_id)
        request = project.respond_to_request(request_id, decision, owner_id)
        self.store.save(project)

        if request.status == 'approved':
            self.ledger.log_activity(
                request.user,
                'project_joined',
                f"Joined project: {project.title}",
                project_id=project.id,
            )
        logger.info(f"Join request {request_id} on project {project.id} {request.status}")
        return request

    def set_member_role(self, project_id: str, owner_id: str, member_id: str, role: MemberRole) -> Project:
        project = self.load(project_id)
        _require_owner(project, owner_id)
        project.set_member_role(member_id, role)
        self.store.save(project)
        return project

    def remove_member(self, project_id: str, owner_id: str, member_id: str) -> Project:
        project = self.load(project_id)
        _require_owner(project, owner_id)
        project.remove_member(member_id)
        self.store.save(project)
        logger.info(f"User {member_id} removed from project {project.id}")
        return project

    def leave(self, project_id: str, user_id: str) -> None:
        project = self.load(project_id)
        project.remove_member(user_id)
        self.store.save(project)
        logger.info(f"User {user_id} left project {project.id}")

    def sign_nda(self, project_id: str, user_id: str) -> Project:
        project = self.load(project_id)
        _require_view(project, user_id)
        project.sign_nda(user_id)
        self.store.save(project)
        return project

    # --------- Tasks ---------

    def _check_assignee(self, project: Project, assignee: Optional[str]) -> None:
        if assignee is not None and not policy.is_member(project, assignee):
            raise ValidationError("Assignee must be a member of this project", field="assignedTo")

    def add_task(self, project_id: str, user_id: str, data: TaskIn) -> Task:
        project = self.load(project_id)
        _require_edit(project, user_id)
        self._check_assignee(project, data.assignedTo)
        task = project.add_task(user_id, **data.model_dump())
        self.store.save(project)
        return task

    def update_task(self, project_id: str, task_id: str, user_id: str, data: TaskUpdateIn) -> Task:
        project = self.load(project_id)
        _require_edit(project, user_id)
        task = project.get_task(task_id)

        changes = data.model_dump(exclude_unset=True)
        # Only the nullable fields may be cleared
        for field in ('title', 'description', 'status'):
            if changes.get(field, "") is None:
                changes.pop(field)
        if "assignedTo" in changes:
            self._check_assignee(project, changes["assignedTo"])

        completed_now = task.apply_changes(changes)
        project.touch()
        self.store.save(project)

        if completed_now and task.assignedTo:
            self.ledger.log_activity(
                task.assignedTo,
                'task_completed',
                f"Completed task: {task.title}",
                project_id=project.id,
                metadata={"taskId": task.id},
            )
        return task

    def delete_task(self, project_id: str, task_id: str, user_id: str) -> None:
        project = self.load(project_id)
        _require_edit(project, user_id)
        task = project.get_task(task_id)
        if not policy.is_owner(project, user_id) and task.createdBy != user_id:
            raise ForbiddenError("Only the project owner or the task creator can delete this task",
                                 hint="requires_owner")
        project.remove_task(task_id)
        self.store.save(project)
