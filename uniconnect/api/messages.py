from fastapi import APIRouter, Depends, Query, status
from starlette.concurrency import run_in_threadpool

from uniconnect.context import AppContext
from uniconnect.dependencies import get_context, get_current_user
from uniconnect.schemas import MessageIn, User

router = APIRouter()


@router.get("/{project_id}")
async def list_messages(
    project_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    """A page of the project chat, oldest first within the page"""
    messages, has_more = await run_in_threadpool(
        context.messages.list_messages, project_id, user.id, page, limit
    )
    return {
        "messages": [m.model_dump(mode="json") for m in messages],
        "hasMore": has_more,
    }


@router.post("/{project_id}", status_code=status.HTTP_201_CREATED)
async def send_message(
    project_id: str,
    data: MessageIn,
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    message = await context.messages.send(project_id, user.id, data.content)
    return {"success": True, "message": message.model_dump(mode="json")}


@router.put("/{message_id}")
async def edit_message(
    message_id: str,
    data: MessageIn,
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    message = await context.messages.update(message_id, user.id, data.content)
    return {"success": True, "message": message.model_dump(mode="json")}


@router.delete("/{message_id}")
async def delete_message(
    message_id: str,
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    await context.messages.remove(message_id, user.id)
    return {"success": True, "detail": "Message deleted successfully"}
