"""
Project Room Manager

Tracks WebSocket connections and the project rooms they joined:
- Room membership per connection (a user may hold several sockets)
- Broadcast of chat events to everyone in a project room
- Error events back to a single connection

A connection joins a room only after the project's view policy allowed it.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket

from uniconnect.database import utcnow
from uniconnect.logging_config import logger


class EventType(str, Enum):
    """WebSocket event types"""
    # Client events
    JOIN_PROJECT = "join-project"
    LEAVE_PROJECT = "leave-project"
    SEND_MESSAGE = "send-message"
    TYPING = "typing"

    # Server events
    JOINED_PROJECT = "joined-project"
    NEW_MESSAGE = "new-message"
    MESSAGE_UPDATED = "message-updated"
    MESSAGE_DELETED = "message-deleted"
    USER_TYPING = "user-typing"
    ERROR = "error-message"


@dataclass
class Connection:
    """One authenticated socket"""
    websocket: WebSocket
    user_id: str
    user_name: str
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    rooms: Set[str] = field(default_factory=set)
    connected_at: datetime = field(default_factory=utcnow)
    last_activity: datetime = field(default_factory=utcnow)


class RoomManager:
    """
    Registry of live connections grouped into project rooms.

    All map mutations happen under one asyncio lock; sends happen outside it
    on a snapshot of the room.
    """

    def __init__(self):
        # connection_id -> Connection
        self._connections: Dict[str, Connection] = {}
        # project_id -> connection ids
        self._rooms: Dict[str, Set[str]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: str, user_name: str) -> Connection:
        await websocket.accept()
        connection = Connection(websocket=websocket, user_id=user_id, user_name=user_name)
        async with self._lock:
            self._connections[connection.connection_id] = connection
        logger.info(f"WebSocket connected: user {user_id} ({connection.connection_id})")
        return connection

    async def disconnect(self, connection: Connection) -> None:
        async with self._lock:
            self._connections.pop(connection.connection_id, None)
            for project_id in connection.rooms:
                members = self._rooms.get(project_id)
                if members is None:
                    continue
                members.discard(connection.connection_id)
                if not members:
                    del self._rooms[project_id]
            connection.rooms.clear()
        logger.info(f"WebSocket disconnected: user {connection.user_id} ({connection.connection_id})")

    async def join(self, connection: Connection, project_id: str) -> None:
        async with self._lock:
            self._rooms.setdefault(project_id, set()).add(connection.connection_id)
            connection.rooms.add(project_id)
        logger.debug(f"User {connection.user_id} joined room {project_id}")

    async def leave(self, connection: Connection, project_id: str) -> None:
        async with self._lock:
            members = self._rooms.get(project_id)
            if members is not None:
                members.discard(connection.connection_id)
                if not members:
                    del self._rooms[project_id]
            connection.rooms.discard(project_id)
        logger.debug(f"User {connection.user_id} left room {project_id}")

    def room_size(self, project_id: str) -> int:
        return len(self._rooms.get(project_id, ()))

    def online_users(self, project_id: str) -> List[Dict[str, Any]]:
        seen: Dict[str, Dict[str, Any]] = {}
        for connection_id in self._rooms.get(project_id, ()):
            connection = self._connections.get(connection_id)
            if connection is not None and connection.user_id not in seen:
                seen[connection.user_id] = {"userId": connection.user_id, "userName": connection.user_name}
        return list(seen.values())

    async def send(self, connection: Connection, event_type: EventType, data: Dict[str, Any]) -> bool:
        """Send one event; returns False when the socket is gone"""
        message = {
            "type": event_type.value,
            "data": data,
            "timestamp": utcnow().isoformat(),
        }
        try:
            await connection.websocket.send_json(message)
        except Exception as e:
            logger.error(f"Error sending to user {connection.user_id}: {e}")
            return False
        connection.last_activity = utcnow()
        return True

    async def send_error(self, connection: Connection, message: str) -> None:
        await self.send(connection, EventType.ERROR, {"message": message})

    async def broadcast(
        self,
        project_id: str,
        event_type: EventType,
        data: Dict[str, Any],
        exclude: Optional[Connection] = None,
    ) -> int:
        """
        Send an event to every connection in a project room.

        Dead connections are dropped. Returns the number of deliveries.
        """
        async with self._lock:
            targets = [
                self._connections[cid]
                for cid in self._rooms.get(project_id, ())
                if cid in self._connections
            ]

        delivered = 0
        dead: List[Connection] = []
        for connection in targets:
            if exclude is not None and connection.connection_id == exclude.connection_id:
                continue
            if await self.send(connection, event_type, data):
                delivered += 1
            else:
                dead.append(connection)

        for connection in dead:
            await self.disconnect(connection)
        return delivered
