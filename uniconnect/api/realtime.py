"""
Project Chat WebSocket Endpoint

Connection URL: WS /ws?token=<jwt>

Message format (send):
{
    "type": "event_type",
    "data": { ... }
}

Supported client events:
- join-project: { projectId }
- leave-project: { projectId }
- send-message: { projectId, content }
- typing: { projectId, isTyping }

Server events:
- joined-project: room joined, with the users currently online in it
- new-message / message-updated / message-deleted: chat log changes
- user-typing: another member's typing indicator
- error-message: the last client event failed; the socket stays open
"""

import json
from typing import Any, Dict

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError
from starlette.concurrency import run_in_threadpool

from uniconnect import policy
from uniconnect.context import AppContext
from uniconnect.exceptions import AuthenticationError, UniConnectError
from uniconnect.logging_config import logger
from uniconnect.realtime import Connection, EventType
from uniconnect.schemas import MessageIn, User
from uniconnect.security import decode_token

router = APIRouter()


async def authenticate_socket(context: AppContext, token: str) -> User:
    payload = decode_token(token)
    return await run_in_threadpool(context.users.resolve_active, payload["sub"])


async def join_project(context: AppContext, connection: Connection, data: Dict[str, Any]) -> None:
    project_id = str(data.get("projectId", ""))
    project = await run_in_threadpool(context.store.get, project_id)
    if not policy.can_view(project, connection.user_id):
        await context.rooms.send_error(connection, "You do not have access to this project")
        return
    await context.rooms.join(connection, project.id)
    await context.rooms.send(connection, EventType.JOINED_PROJECT, {
        "projectId": project.id,
        "onlineUsers": context.rooms.online_users(project.id),
    })


async def send_message(context: AppContext, connection: Connection, data: Dict[str, Any]) -> None:
    project_id = str(data.get("projectId", ""))
    try:
        content = MessageIn(content=data.get("content", "")).content
    except PydanticValidationError:
        await context.rooms.send_error(connection, "Message content must be 1-1000 characters")
        return
    await context.messages.send(project_id, connection.user_id, content)


async def typing(context: AppContext, connection: Connection, data: Dict[str, Any]) -> None:
    project_id = str(data.get("projectId", ""))
    if project_id not in connection.rooms:
        return
    await context.rooms.broadcast(
        project_id,
        EventType.USER_TYPING,
        {
            "projectId": project_id,
            "userId": connection.user_id,
            "userName": connection.user_name,
            "isTyping": bool(data.get("isTyping", False)),
        },
        exclude=connection,
    )


async def handle_event(context: AppContext, connection: Connection, frame: Any) -> None:
    if not isinstance(frame, dict) or not isinstance(frame.get("data", {}), dict):
        await context.rooms.send_error(connection, "Malformed event")
        return

    event_type = frame.get("type", "")
    data = frame.get("data") or {}

    if event_type == EventType.JOIN_PROJECT.value:
        await join_project(context, connection, data)
    elif event_type == EventType.LEAVE_PROJECT.value:
        await context.rooms.leave(connection, str(data.get("projectId", "")))
    elif event_type == EventType.SEND_MESSAGE.value:
        await send_message(context, connection, data)
    elif event_type == EventType.TYPING.value:
        await typing(context, connection, data)
    else:
        await context.rooms.send_error(connection, f"Unknown event: {event_type}")


@router.websocket("/ws")
async def project_socket(websocket: WebSocket, token: str = Query(...)):
    context: AppContext = websocket.app.state.context

    try:
        user = await authenticate_socket(context, token)
    except AuthenticationError as e:
        logger.log_auth_event("websocket", success=False, reason=e.message)
        await websocket.close(code=4001, reason="Invalid or expired token")
        return

    connection = await context.rooms.connect(websocket, user.id, user.name)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                await context.rooms.send_error(connection, "Malformed event")
                continue

            try:
                await handle_event(context, connection, frame)
            except UniConnectError as e:
                await context.rooms.send_error(connection, e.message)
            except Exception as e:
                logger.log_error_with_context(e, context=f"websocket event from user {user.id}")
                await context.rooms.send_error(connection, "Server error handling event")
    except WebSocketDisconnect:
        pass
    finally:
        await context.rooms.disconnect(connection)
