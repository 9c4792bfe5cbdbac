"""User records, credential checks and profile edits"""
import re
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError

from uniconnect.config import settings
from uniconnect.database import USERS, Database, oid, utcnow
from uniconnect.exceptions import AuthenticationError, ConflictError, NotFoundError, ValidationError
from uniconnect.logging_config import logger
from uniconnect.schemas import ProfileUpdateIn, RegisterIn, User, UserRole
from uniconnect.security import get_password_hash, verify_password
from uniconnect.trust import TrustLedger

USER_SORT_FIELDS = ('createdAt', 'name', 'trustScore', 'university', 'lastActive')
PROFILE_DETAIL_FIELDS = ('bio', 'skills', 'github', 'linkedin')


def contains(text: str) -> Dict[str, Any]:
    """Case-insensitive substring match"""
    return {"$regex": re.escape(text), "$options": "i"}


def split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(',') if item.strip()]


class UserService:
    def __init__(self, database: Database, ledger: TrustLedger):
        self.database = database
        self.ledger = ledger

    def get(self, user_id: str) -> User:
        doc = self.database.users.find_one({"_id": oid(user_id)})
        if doc is None:
            raise NotFoundError("User", user_id)
        return User.from_document(doc)

    def find_by_email(self, email: str) -> Optional[User]:
        doc = self.database.users.find_one({"email": email.lower()})
        return User.from_document(doc) if doc else None

    def register(self, data: RegisterIn) -> User:
        email = data.email.lower()
        domain = email.split('@')[1] if '@' in email else ''
        if not any(domain.endswith(suffix) for suffix in settings.ALLOWED_EMAIL_DOMAINS):
            raise ValidationError(
                "Please use your student/university email address to register.", field="email"
            )

        if self.find_by_email(email) is not None:
            raise ConflictError("User already exists with this email")

        user = User(
            name=data.name,
            email=email,
            passwordHash=get_password_hash(data.password),
            university=data.university,
            bio=data.bio,
            skills=data.skills,
            github=data.github,
            linkedin=data.linkedin,
        )
        try:
            user.id = self.database.create_document(USERS, user.to_document())
        except DuplicateKeyError:
            raise ConflictError("User already exists with this email")

        self.ledger.log_activity(user.id, 'account_created', "Account created successfully")
        return self.get(user.id)

    def authenticate(self, email: str, password: str) -> User:
        user = self.find_by_email(email)
        if user is None or not verify_password(password, user.passwordHash):
            logger.log_auth_event("login", success=False, user_email=email, reason="Invalid credentials")
            raise AuthenticationError("Invalid credentials")
        if not user.isActive:
            logger.log_auth_event("login", success=False, user_email=email, reason="Account deactivated")
            raise AuthenticationError("Account is deactivated")
        self.touch_last_active(user.id)
        logger.log_auth_event("login", success=True, user_email=email)
        return user

    def resolve_active(self, user_id: str) -> User:
        """Re-check a token subject against the store"""
        try:
            doc = self.database.users.find_one({"_id": oid(user_id)})
        except ValidationError:
            doc = None
        if doc is None:
            raise AuthenticationError("User not found")
        user = User.from_document(doc)
        if not user.isActive:
            raise AuthenticationError("Account is deactivated")
        return user

    def touch_last_active(self, user_id: str) -> None:
        now = utcnow()
        self.database.users.update_one({"_id": oid(user_id)}, {"$set": {"lastActive": now}})

    def update_profile(self, user_id: str, data: ProfileUpdateIn) -> User:
        current = self.get(user_id)
        was_empty = current.profile_is_empty

        changes = data.model_dump(exclude_unset=True)
        # Explicit nulls are ignored; only the links can be cleared with null
        for field in ('name', 'university', 'skills', 'bio'):
            if changes.get(field) is None:
                changes.pop(field, None)
        if changes:
            changes["updatedAt"] = utcnow()
            self.database.users.update_one({"_id": oid(user_id)}, {"$set": changes})

        if was_empty and any(changes.get(field) for field in PROFILE_DETAIL_FIELDS):
            self.ledger.log_activity(
                user_id, 'profile_completed', "Profile completed with additional information"
            )
        return self.get(user_id)

    def list_users(
        self,
        search: Optional[str] = None,
        role: Optional[str] = None,
        university: Optional[str] = None,
        skills: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        sort: str = "createdAt",
        order: str = "desc",
    ) -> Tuple[List[User], int]:
        query: Dict[str, Any] = {}
        if search:
            query["$or"] = [
                {"name": contains(search)},
                {"email": contains(search)},
                {"university": contains(search)},
            ]
        if role:
            query["role"] = role
        if university:
            query["university"] = contains(university)
        if skills:
            query["skills"] = {"$in": [re.compile(re.escape(s), re.IGNORECASE) for s in split_csv(skills)]}
        if status == "active":
            query["isActive"] = True
        elif status == "inactive":
            query["isActive"] = False

        if sort not in USER_SORT_FIELDS:
            raise ValidationError(f"Cannot sort by '{sort}'", field="sort")
        direction = DESCENDING if order == "desc" else ASCENDING

        docs = self.database.get_documents(
            USERS, query, sort=[(sort, direction), ("_id", direction)],
            skip=(page - 1) * limit, limit=limit,
        )
        total = self.database.count_documents(USERS, query)
        return [User.from_document(d) for d in docs], total

    def search(self, skills: Optional[str] = None, university: Optional[str] = None, limit: int = 10) -> List[User]:
        """Active users matching any of the skills, best trust score first"""
        query: Dict[str, Any] = {"isActive": True}
        if skills:
            query["skills"] = {"$in": split_csv(skills)}
        if university:
            query["university"] = contains(university)
        docs = self.database.get_documents(
            USERS, query, sort=[("trustScore", DESCENDING), ("_id", ASCENDING)], limit=limit
        )
        return [User.from_document(d) for d in docs]

    def set_active(self, user_id: str, is_active: bool) -> User:
        self.get(user_id)
        self.database.users.update_one(
            {"_id": oid(user_id)}, {"$set": {"isActive": is_active, "updatedAt": utcnow()}}
        )
        logger.info(f"User {user_id} {'activated' if is_active else 'deactivated'}")
        return self.get(user_id)

    def set_role(self, user_id: str, role: UserRole) -> User:
        self.get(user_id)
        self.database.users.update_one(
            {"_id": oid(user_id)}, {"$set": {"role": role, "updatedAt": utcnow()}}
        )
        logger.info(f"User {user_id} role changed to {role}")
        return self.get(user_id)
