"""
Project chat log.

Messages are persisted first and then pushed to the project room. A failed
push is logged and never undoes the write; a failed write sends nothing.
"""
from typing import Any, Dict, List, Optional, Tuple

from pymongo import DESCENDING
from starlette.concurrency import run_in_threadpool

from uniconnect import policy
from uniconnect.database import MESSAGES, Database, oid, utcnow
from uniconnect.exceptions import ForbiddenError, NotFoundError
from uniconnect.logging_config import logger
from uniconnect.projects import ProjectStore
from uniconnect.realtime import EventType, RoomManager
from uniconnect.schemas import Message, MessageType, Project


class MessageService:
    def __init__(self, database: Database, projects: ProjectStore, rooms: RoomManager):
        self.database = database
        self.projects = projects
        self.rooms = rooms

    def _viewable(self, project_id: str, user_id: str) -> Project:
        project = self.projects.get(project_id)
        if not policy.can_view(project, user_id):
            raise ForbiddenError("Access denied. You do not have permission to view this project.",
                                 hint="requires_join")
        return project

    def get(self, message_id: str) -> Message:
        doc = self.database.messages.find_one({"_id": oid(message_id, field="messageId")})
        if doc is None:
            raise NotFoundError("Message", message_id)
        return Message.from_document(doc)

    def list_messages(self, project_id: str, user_id: str, page: int = 1, limit: int = 50) -> Tuple[List[Message], bool]:
        """One page in chronological order, plus whether older messages may exist"""
        self._viewable(project_id, user_id)
        docs = self.database.get_documents(
            MESSAGES,
            {"project": project_id},
            sort=[("createdAt", DESCENDING), ("_id", DESCENDING)],
            skip=(page - 1) * limit,
            limit=limit,
        )
        messages = [Message.from_document(d) for d in reversed(docs)]
        return messages, len(docs) == limit

    def post(self, project_id: str, sender_id: str, content: str, message_type: MessageType = 'text') -> Message:
        self._viewable(project_id, sender_id)
        message = Message(project=project_id, sender=sender_id, content=content, messageType=message_type)
        message.id = self.database.create_document(MESSAGES, message.to_document())
        return self.get(message.id)

    def edit(self, message_id: str, user_id: str, content: str) -> Message:
        message = self.get(message_id)
        if message.sender != user_id:
            raise ForbiddenError("You can only edit your own messages")
        now = utcnow()
        self.database.messages.update_one(
            {"_id": oid(message_id)},
            {"$set": {"content": content, "isEdited": True, "editedAt": now, "updatedAt": now}},
        )
        return self.get(message_id)

    def delete(self, message_id: str, user_id: str) -> Message:
        message = self.get(message_id)
        is_owner = False
        if message.sender != user_id:
            try:
                project = self.projects.get(message.project, include_deleted=True)
                is_owner = policy.is_owner(project, user_id)
            except NotFoundError:
                is_owner = False
            if not is_owner:
                raise ForbiddenError("You can only delete your own messages or be the project owner",
                                     hint="requires_owner")
        self.database.messages.delete_one({"_id": oid(message_id)})
        return message

    # --------- Persist, then notify ---------

    async def send(self, project_id: str, sender_id: str, content: str) -> Message:
        message = await run_in_threadpool(self.post, project_id, sender_id, content)
        await self.notify(project_id, EventType.NEW_MESSAGE, message.model_dump(mode="json"))
        return message

    async def update(self, message_id: str, user_id: str, content: str) -> Message:
        message = await run_in_threadpool(self.edit, message_id, user_id, content)
        await self.notify(message.project, EventType.MESSAGE_UPDATED, message.model_dump(mode="json"))
        return message

    async def remove(self, message_id: str, user_id: str) -> Message:
        message = await run_in_threadpool(self.delete, message_id, user_id)
        await self.notify(message.project, EventType.MESSAGE_DELETED,
                          {"id": message.id, "project": message.project})
        return message

    async def notify(self, project_id: str, event_type: EventType, data: Dict[str, Any]) -> Optional[int]:
        try:
            return await self.rooms.broadcast(project_id, event_type, data)
        except Exception as e:
            logger.log_error_with_context(e, context=f"broadcast {event_type.value} to project {project_id}")
            return None
