"""Admin-only endpoints: user and project moderation, trust adjustments, reports"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from uniconnect.api.pagination import pagination
from uniconnect.context import AppContext
from uniconnect.dependencies import get_context, require_admin
from uniconnect.exceptions import ValidationError
from uniconnect.schemas import ResolveReportIn, TrustAdjustIn, User, UserRoleIn, UserStatusIn

router = APIRouter()


@router.get("/users")
def list_users(
    search: Optional[str] = None,
    role: Optional[str] = Query(None, pattern="^(user|admin)$"),
    university: Optional[str] = None,
    skills: Optional[str] = None,
    status: Optional[str] = Query(None, pattern="^(active|inactive)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort: str = "createdAt",
    order: str = Query("desc", pattern="^(asc|desc)$"),
    admin: User = Depends(require_admin),
    context: AppContext = Depends(get_context),
):
    users, total = context.users.list_users(
        search=search, role=role, university=university, skills=skills, status=status,
        page=page, limit=limit, sort=sort, order=order,
    )
    return {
        "success": True,
        "users": [u.private_profile() for u in users],
        "pagination": pagination(page, limit, total),
    }


@router.get("/projects")
def list_projects(
    search: Optional[str] = None,
    privacy: Optional[str] = None,
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort: str = "createdAt",
    order: str = Query("desc", pattern="^(asc|desc)$"),
    admin: User = Depends(require_admin),
    context: AppContext = Depends(get_context),
):
    projects, total = context.projects.admin_list(
        search=search, privacy=privacy, status=status, page=page, limit=limit, sort=sort, order=order,
    )
    return {
        "success": True,
        "projects": [p.to_public() for p in projects],
        "pagination": pagination(page, limit, total),
    }


@router.put("/users/{user_id}/trust-score")
def adjust_trust_score(
    user_id: str,
    data: TrustAdjustIn,
    admin: User = Depends(require_admin),
    context: AppContext = Depends(get_context),
):
    entry, new_score = context.ledger.adjust(user_id, data.points, data.reason, admin.id)
    return {
        "success": True,
        "message": "Trust score adjusted successfully",
        "trustScore": new_score,
        "entry": entry.model_dump(mode="json"),
    }


@router.put("/users/{user_id}/status")
def set_user_status(
    user_id: str,
    data: UserStatusIn,
    admin: User = Depends(require_admin),
    context: AppContext = Depends(get_context),
):
    if user_id == admin.id and not data.isActive:
        raise ValidationError("You cannot deactivate your own account", field="isActive")
    context.users.set_active(user_id, data.isActive)
    return {
        "success": True,
        "message": f"User account {'activated' if data.isActive else 'deactivated'} successfully",
    }


@router.put("/users/{user_id}/role")
def set_user_role(
    user_id: str,
    data: UserRoleIn,
    admin: User = Depends(require_admin),
    context: AppContext = Depends(get_context),
):
    context.users.set_role(user_id, data.role)
    return {"success": True, "message": f"User role changed to {data.role} successfully"}


@router.delete("/projects/{project_id}")
def delete_project(
    project_id: str,
    admin: User = Depends(require_admin),
    context: AppContext = Depends(get_context),
):
    context.projects.delete(project_id, admin)
    return {"success": True, "message": "Project deleted successfully"}


@router.get("/trust-logs")
def list_trust_logs(
    userId: Optional[str] = None,
    action: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    sort: str = "createdAt",
    order: str = Query("desc", pattern="^(asc|desc)$"),
    admin: User = Depends(require_admin),
    context: AppContext = Depends(get_context),
):
    logs, total = context.ledger.list_logs(
        user_id=userId, action=action, page=page, limit=limit, sort=sort, order=order,
    )
    return {
        "success": True,
        "logs": [entry.model_dump(mode="json") for entry in logs],
        "pagination": pagination(page, limit, total),
    }


@router.get("/reports")
def list_reports(admin: User = Depends(require_admin), context: AppContext = Depends(get_context)):
    return {"reports": [r.model_dump(mode="json") for r in context.reports.list_reports()]}


@router.put("/reports/{report_id}/resolve")
def resolve_report(
    report_id: str,
    data: Optional[ResolveReportIn] = None,
    admin: User = Depends(require_admin),
    context: AppContext = Depends(get_context),
):
    report = context.reports.resolve(report_id, admin, data.adminNote if data else "")
    return {"success": True, "message": "Report resolved", "report": report.model_dump(mode="json")}
