from typing import Optional

from fastapi import APIRouter, Depends, Query

from uniconnect.api.pagination import pagination
from uniconnect.context import AppContext
from uniconnect.dependencies import get_context, get_current_user
from uniconnect.schemas import ProfileUpdateIn, User, VoteIn

router = APIRouter()


@router.get("")
def list_users(
    search: Optional[str] = None,
    university: Optional[str] = None,
    skills: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    users, total = context.users.list_users(
        search=search, university=university, skills=skills, status="active", page=page, limit=limit,
    )
    return {
        "users": [u.public_profile() for u in users],
        "pagination": pagination(page, limit, total),
    }


@router.get("/profile")
def get_profile(user: User = Depends(get_current_user)):
    return {"success": True, "user": user.private_profile()}


@router.put("/profile")
def update_profile(
    data: ProfileUpdateIn,
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    updated = context.users.update_profile(user.id, data)
    return {"success": True, "message": "Profile updated successfully", "user": updated.private_profile()}


@router.get("/search")
def search_users(
    skills: Optional[str] = None,
    university: Optional[str] = None,
    limit: int = Query(10, ge=1, le=50),
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    """Active users with any of the given skills, highest trust score first"""
    users = context.users.search(skills=skills, university=university, limit=limit)
    return {"users": [u.public_profile() for u in users]}


@router.get("/trust-history")
def trust_history(
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    entries = context.ledger.history(user.id, limit=limit)
    return {"success": True, "history": [e.model_dump(mode="json") for e in entries]}


@router.get("/trust-stats")
def trust_stats(
    days: int = Query(30, ge=1, le=365),
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    return {"success": True, "stats": context.ledger.stats(user.id, days=days)}


@router.get("/notifications")
def list_notifications(user: User = Depends(get_current_user), context: AppContext = Depends(get_context)):
    notifications = context.notifications.list_for(user.id)
    return {"notifications": [n.model_dump(mode="json") for n in notifications]}


@router.put("/notifications/{notification_id}/read")
def mark_notification_read(
    notification_id: str,
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    notification = context.notifications.mark_read(user.id, notification_id)
    return {"success": True, "notification": notification.model_dump(mode="json")}


@router.post("/trust/vote")
def cast_vote(data: VoteIn, user: User = Depends(get_current_user), context: AppContext = Depends(get_context)):
    """Up- or down-vote a fellow member; a repeat vote replaces the earlier one"""
    vote = context.votes.cast_vote(user.id, data.targetId, data.projectId, data.vote)
    return {"success": True, "message": "Vote recorded", "vote": vote.model_dump(mode="json")}


@router.get("/trust/{user_id}")
def vote_trust_score(user_id: str, user: User = Depends(get_current_user), context: AppContext = Depends(get_context)):
    context.users.get(user_id)
    return context.votes.score_for(user_id)


@router.get("/{user_id}")
def get_user(user_id: str, user: User = Depends(get_current_user), context: AppContext = Depends(get_context)):
    return {"user": context.users.get(user_id).public_profile()}
