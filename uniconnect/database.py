"""
MongoDB access for UniConnect.

A `Database` wraps one pymongo database handle. It is built once by the
application factory (or by the tests, over mongomock) and handed to the
services; nothing here is a module-level connection.

Collections:
- users, projects, trustlogs, trustvotes, messages, reports, notifications
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database as MongoDatabase
from pymongo.collection import Collection

from uniconnect.exceptions import InvalidIdError
from uniconnect.logging_config import logger

USERS = "users"
PROJECTS = "projects"
TRUST_LOGS = "trustlogs"
TRUST_VOTES = "trustvotes"
MESSAGES = "messages"
REPORTS = "reports"
NOTIFICATIONS = "notifications"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def oid(id_str: str, field: Optional[str] = None) -> ObjectId:
    try:
        return ObjectId(id_str)
    except Exception:
        raise InvalidIdError(str(id_str), field=field)


def serialize(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return doc
    doc = dict(doc)
    doc["id"] = str(doc.get("_id"))
    doc.pop("_id", None)
    return doc


class Database:
    """Thin wrapper over a pymongo database with the app's collections"""

    def __init__(self, db: MongoDatabase, client: Optional[MongoClient] = None):
        self.db = db
        self.client = client

    @classmethod
    def connect(cls, url: str, name: str) -> "Database":
        client = MongoClient(url)
        logger.info(f"Connecting to MongoDB database '{name}'")
        return cls(client[name], client=client)

    def close(self) -> None:
        if self.client is not None:
            self.client.close()

    @property
    def name(self) -> str:
        return self.db.name

    @property
    def users(self) -> Collection:
        return self.db[USERS]

    @property
    def projects(self) -> Collection:
        return self.db[PROJECTS]

    @property
    def trust_logs(self) -> Collection:
        return self.db[TRUST_LOGS]

    @property
    def trust_votes(self) -> Collection:
        return self.db[TRUST_VOTES]

    @property
    def messages(self) -> Collection:
        return self.db[MESSAGES]

    @property
    def reports(self) -> Collection:
        return self.db[REPORTS]

    @property
    def notifications(self) -> Collection:
        return self.db[NOTIFICATIONS]

    # --------- Generic helpers ---------

    def create_document(self, collection_name: str, data: Dict[str, Any]) -> str:
        """Insert a document stamped with createdAt/updatedAt; returns its id"""
        now = utcnow()
        data = dict(data)
        data.pop("id", None)
        for field in ("createdAt", "updatedAt"):
            if data.get(field) is None:
                data[field] = now
        inserted_id = self.db[collection_name].insert_one(data).inserted_id
        return str(inserted_id)

    def get_documents(
        self,
        collection_name: str,
        filter_dict: Optional[Dict[str, Any]] = None,
        sort: Optional[Sequence[Tuple[str, int]]] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[dict]:
        cursor = self.db[collection_name].find(filter_dict or {})
        if sort:
            cursor = cursor.sort(list(sort))
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return [serialize(doc) for doc in cursor]

    def count_documents(self, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None) -> int:
        return self.db[collection_name].count_documents(filter_dict or {})

    def ensure_indexes(self) -> None:
        """Create indexes; the unique ones enforce one account per email and one vote per pair"""
        self.users.create_index([("email", ASCENDING)], unique=True)
        self.users.create_index([("university", ASCENDING)])
        self.users.create_index([("skills", ASCENDING)])
        self.users.create_index([("trustScore", DESCENDING)])

        self.projects.create_index([("owner", ASCENDING)])
        self.projects.create_index([("members.user", ASCENDING)])
        self.projects.create_index([("privacy", ASCENDING), ("lifecycle", ASCENDING)])
        self.projects.create_index([("createdAt", DESCENDING)])

        self.trust_logs.create_index([("user", ASCENDING), ("createdAt", DESCENDING)])
        self.trust_votes.create_index(
            [("voter", ASCENDING), ("target", ASCENDING), ("project", ASCENDING)],
            unique=True,
        )
        self.trust_votes.create_index([("target", ASCENDING)])

        self.messages.create_index([("project", ASCENDING), ("createdAt", DESCENDING)])
        self.notifications.create_index([("user", ASCENDING), ("createdAt", DESCENDING)])
        logger.info(f"Indexes ensured on database '{self.name}'")
