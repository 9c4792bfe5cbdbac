"""
Database Schemas for the UniConnect project-collaboration platform

Each top-level Pydantic model corresponds to a MongoDB collection
(User -> "users", Project -> "projects", ...). Members, join requests and
tasks are embedded inside the project document and carry their own rules.

Request bodies accepted by the API live at the bottom of this module.
"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional

from bson import ObjectId
from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    field_validator,
)

from uniconnect.database import serialize, utcnow
from uniconnect.exceptions import ConflictError, NotFoundError, ValidationError

UserRole = Literal['user', 'admin']
Privacy = Literal['public', 'private', 'draft']
ProjectStatus = Literal['active', 'completed', 'on-hold', 'cancelled']
Lifecycle = Literal['active', 'deleted']
MemberRole = Literal['owner', 'contributor', 'viewer']
RequestStatus = Literal['pending', 'approved', 'rejected']
TaskStatus = Literal['todo', 'in-progress', 'completed']
MessageType = Literal['text', 'system']
ReportStatus = Literal['open', 'resolved']
TrustAction = Literal[
    'account_created',
    'profile_completed',
    'project_joined',
    'task_completed',
    'admin_adjustment',
    'manual_adjustment',
]

DEFAULT_TRUST_SCORE = 30
GITHUB_PATTERN = r'^https?://(www\.)?github\.com/[a-zA-Z0-9-]+$'
LINKEDIN_PATTERN = r'^https?://(www\.)?linkedin\.com/in/[a-zA-Z0-9-]+$'


def new_id() -> str:
    return str(ObjectId())


class Document(BaseModel):
    """Base for collection models: `id` is the hex string of `_id`"""

    model_config = ConfigDict(extra='ignore')

    id: Optional[str] = Field(None, description="Document id as string")

    @classmethod
    def from_document(cls, doc: dict):
        if "_id" in doc:
            doc = serialize(doc)
        return cls.model_validate(doc)

    def to_document(self) -> dict:
        return self.model_dump(exclude={'id'})


# ------------------ Users ------------------

class User(Document):
    name: str
    email: str
    passwordHash: str
    university: str
    bio: str = ""
    skills: List[str] = []
    github: Optional[str] = None
    linkedin: Optional[str] = None
    trustScore: int = Field(DEFAULT_TRUST_SCORE, ge=0, le=100)
    isEmailVerified: bool = False
    role: UserRole = 'user'
    isActive: bool = True
    lastActive: datetime = Field(default_factory=utcnow)
    profilePicture: str = ""
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == 'admin'

    @property
    def profile_is_empty(self) -> bool:
        return not self.bio and not self.skills and not self.github and not self.linkedin

    def public_profile(self) -> dict:
        """Profile visible to other users (no email, no credentials)"""
        return self.model_dump(
            mode='json',
            include={
                'id', 'name', 'university', 'bio', 'skills', 'github', 'linkedin',
                'trustScore', 'isEmailVerified', 'profilePicture', 'createdAt',
            },
        )

    def private_profile(self) -> dict:
        return self.model_dump(mode='json', exclude={'passwordHash'})


# ------------------ Projects ------------------

class Member(BaseModel):
    user: str
    role: MemberRole = 'viewer'
    joinedAt: datetime = Field(default_factory=utcnow)
    hasSignedNDA: bool = False


class JoinRequest(BaseModel):
    id: str = Field(default_factory=new_id)
    user: str
    message: str = ""
    status: RequestStatus = 'pending'
    requestedAt: datetime = Field(default_factory=utcnow)
    respondedAt: Optional[datetime] = None
    respondedBy: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == 'pending'

    def respond(self, decision: RequestStatus, responder: str) -> None:
        if not self.is_pending:
            raise ConflictError(f"Join request has already been {self.status}")
        if decision not in ('approved', 'rejected'):
            raise ValidationError("Status must be approved or rejected", field="status")
        self.status = decision
        self.respondedAt = utcnow()
        self.respondedBy = responder


class Task(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str
    description: str = ""
    assignedTo: Optional[str] = None
    dueDate: Optional[datetime] = None
    status: TaskStatus = 'todo'
    createdBy: str
    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)

    @property
    def is_completed(self) -> bool:
        return self.status == 'completed'

    def apply_changes(self, changes: Dict[str, Any]) -> bool:
        """
        Apply a partial update.

        Returns True only on the edge into `completed`; a task that was
        already completed never reports completion again.
        """
        was_completed = self.is_completed
        for field, value in changes.items():
            setattr(self, field, value)
        self.updatedAt = utcnow()
        return self.is_completed and not was_completed


class Project(Document):
    title: str
    description: str
    techStack: List[str] = []
    tags: List[str] = []
    privacy: Privacy = 'public'
    owner: str
    members: List[Member] = []
    joinRequests: List[JoinRequest] = []
    tasks: List[Task] = []
    status: ProjectStatus = 'active'
    lifecycle: Lifecycle = 'active'
    viewCount: int = 0
    # Bumped on every whole-document save
    version: int = 0
    lastActivity: datetime = Field(default_factory=utcnow)
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def create(cls, owner: str, **fields) -> "Project":
        """New project whose owner is its first member"""
        project = cls(owner=owner, **fields)
        project.members = [Member(user=owner, role='owner', hasSignedNDA=True)]
        return project

    def touch(self) -> None:
        now = utcnow()
        self.lastActivity = now
        self.updatedAt = now

    # --------- Lifecycle ---------

    @property
    def is_deleted(self) -> bool:
        return self.lifecycle == 'deleted'

    def soft_delete(self) -> None:
        self.lifecycle = 'deleted'
        self.status = 'cancelled'
        self.touch()

    # --------- Membership ---------

    def get_member(self, user_id: str) -> Optional[Member]:
        for member in self.members:
            if member.user == user_id:
                return member
        return None

    def add_member(self, user_id: str, role: MemberRole = 'viewer') -> Member:
        """Add a member; an existing membership is kept as it is"""
        existing = self.get_member(user_id)
        if existing is not None:
            return existing
        member = Member(user=user_id, role=role)
        self.members.append(member)
        self.touch()
        return member

    def set_member_role(self, user_id: str, role: MemberRole) -> Member:
        if role == 'owner':
            raise ValidationError("Ownership cannot be transferred", field="role")
        if user_id == self.owner:
            raise ValidationError("The project owner's role cannot be changed", field="userId")
        member = self.get_member(user_id)
        if member is None:
            raise NotFoundError("Member", user_id)
        member.role = role
        self.touch()
        return member

    def remove_member(self, user_id: str) -> None:
        if user_id == self.owner:
            raise ValidationError("The project owner cannot leave or be removed", field="userId")
        if self.get_member(user_id) is None:
            raise NotFoundError("Member", user_id)
        self.members = [m for m in self.members if m.user != user_id]
        self.touch()

    def sign_nda(self, user_id: str) -> Member:
        if self.privacy != 'private':
            raise ValidationError("NDA is only required for private projects")
        member = self.get_member(user_id)
        if member is None:
            raise ValidationError("You must be a member to sign the NDA")
        member.hasSignedNDA = True
        self.touch()
        return member

    # --------- Join requests ---------

    def pending_request_for(self, user_id: str) -> Optional[JoinRequest]:
        for request in self.joinRequests:
            if request.user == user_id and request.is_pending:
                return request
        return None

    def request_to_join(self, user_id: str, message: str = "") -> Optional[JoinRequest]:
        """
        Start the join workflow for `user_id`.

        Public projects are joined instantly as viewer and None is returned;
        otherwise a pending request is recorded and returned.
        """
        if user_id == self.owner:
            raise ValidationError("Project owner cannot request to join their own project")
        if self.get_member(user_id) is not None:
            raise ValidationError("You are already a member of this project")

        if self.privacy == 'public':
            self.add_member(user_id, 'viewer')
            return None

        if self.pending_request_for(user_id) is not None:
            raise ConflictError("You already have a pending join request for this project")

        request = JoinRequest(user=user_id, message=message)
        self.joinRequests.append(request)
        self.touch()
        return request

    def get_join_request(self, request_id: str) -> JoinRequest:
        for request in self.joinRequests:
            if request.id == request_id:
                return request
        raise NotFoundError("Join request", request_id)

    def respond_to_request(self, request_id: str, decision: RequestStatus, responder: str) -> JoinRequest:
        request = self.get_join_request(request_id)
        request.respond(decision, responder)
        if decision == 'approved':
            self.add_member(request.user, 'viewer')
        self.touch()
        return request

    # --------- Tasks ---------

    def add_task(self, created_by: str, **fields) -> Task:
        task = Task(createdBy=created_by, **fields)
        self.tasks.append(task)
        self.touch()
        return task

    def get_task(self, task_id: str) -> Task:
        for task in self.tasks:
            if task.id == task_id:
                return task
        raise NotFoundError("Task", task_id)

    def remove_task(self, task_id: str) -> None:
        task = self.get_task(task_id)
        self.tasks = [t for t in self.tasks if t.id != task.id]
        self.touch()

    def to_public(self) -> dict:
        data = self.model_dump(mode='json', exclude={'lifecycle'})
        data['isDeleted'] = self.is_deleted
        return data


# ------------------ Trust ------------------

class TrustLogEntry(Document):
    user: str
    action: TrustAction
    points: int
    description: str
    project: Optional[str] = None
    metadata: Dict[str, Any] = {}
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class TrustVote(Document):
    voter: str
    target: str
    project: str
    vote: Literal[1, -1]
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


# ------------------ Messaging & moderation ------------------

class Message(Document):
    project: str
    sender: str
    content: str = Field(..., max_length=1000)
    messageType: MessageType = 'text'
    isEdited: bool = False
    editedAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class Report(Document):
    reportedUser: str
    reportedBy: str
    project: str
    reason: str
    status: ReportStatus = 'open'
    adminNote: Optional[str] = None
    resolvedBy: Optional[str] = None
    resolvedAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class Notification(Document):
    user: str
    type: str
    message: str
    report: Optional[str] = None
    read: bool = False
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


# ------------------ Request bodies ------------------

Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=50)]
University = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
ProjectTitle = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=100)]
ProjectDescription = Annotated[str, StringConstraints(min_length=10, max_length=2000)]
TaskTitle = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
MessageContent = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=1000)]


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _check_object_id(v: Optional[str]) -> Optional[str]:
    if v is not None and not ObjectId.is_valid(v):
        raise ValueError("Invalid user ID")
    return v


class ProfileLinks(BaseModel):
    github: Optional[str] = Field(None, pattern=GITHUB_PATTERN)
    linkedin: Optional[str] = Field(None, pattern=LINKEDIN_PATTERN)

    @field_validator('github', 'linkedin', mode='before')
    @classmethod
    def _empty_link(cls, v):
        return _blank_to_none(v)


class RegisterIn(ProfileLinks):
    name: Name
    email: EmailStr
    password: str = Field(..., min_length=6)
    university: University
    bio: str = Field("", max_length=500)
    skills: List[str] = []


class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdateIn(ProfileLinks):
    name: Optional[Name] = None
    bio: Optional[str] = Field(None, max_length=500)
    university: Optional[University] = None
    skills: Optional[List[str]] = None


class ProjectIn(BaseModel):
    title: ProjectTitle
    description: ProjectDescription
    techStack: List[str] = []
    privacy: Privacy = 'public'
    tags: List[str] = []


class ProjectUpdateIn(BaseModel):
    title: Optional[ProjectTitle] = None
    description: Optional[ProjectDescription] = None
    techStack: Optional[List[str]] = None
    privacy: Optional[Privacy] = None
    status: Optional[ProjectStatus] = None
    tags: Optional[List[str]] = None


class JoinRequestIn(BaseModel):
    message: str = Field("", max_length=500)


class JoinResponseIn(BaseModel):
    status: Literal['approved', 'rejected']


class MemberRoleIn(BaseModel):
    role: Literal['contributor', 'viewer']


class TaskIn(BaseModel):
    title: TaskTitle
    description: str = Field("", max_length=1000)
    assignedTo: Optional[str] = None
    dueDate: Optional[datetime] = None
    status: TaskStatus = 'todo'

    @field_validator('assignedTo', mode='before')
    @classmethod
    def _assignee(cls, v):
        return _check_object_id(_blank_to_none(v))


class TaskUpdateIn(BaseModel):
    title: Optional[TaskTitle] = None
    description: Optional[str] = Field(None, max_length=1000)
    assignedTo: Optional[str] = None
    dueDate: Optional[datetime] = None
    status: Optional[TaskStatus] = None

    @field_validator('assignedTo', mode='before')
    @classmethod
    def _assignee(cls, v):
        return _check_object_id(_blank_to_none(v))


class ReportIn(BaseModel):
    userId: str
    reason: str = Field(..., min_length=10, max_length=1000)

    @field_validator('userId')
    @classmethod
    def _user_id(cls, v):
        return _check_object_id(v)


class VoteIn(BaseModel):
    targetId: str
    projectId: str
    vote: Literal[1, -1]


class MessageIn(BaseModel):
    content: MessageContent


class TrustAdjustIn(BaseModel):
    points: int = Field(..., ge=-100, le=100)
    reason: Annotated[str, StringConstraints(strip_whitespace=True, min_length=5, max_length=200)]


class UserStatusIn(BaseModel):
    isActive: bool


class UserRoleIn(BaseModel):
    role: UserRole


class ResolveReportIn(BaseModel):
    adminNote: str = Field("", max_length=2000)
