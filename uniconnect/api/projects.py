from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from uniconnect.api.pagination import pagination
from uniconnect.context import AppContext
from uniconnect.dependencies import get_context, get_current_user
from uniconnect.schemas import (
    JoinRequestIn,
    JoinResponseIn,
    MemberRoleIn,
    ProjectIn,
    ProjectUpdateIn,
    ReportIn,
    TaskIn,
    TaskUpdateIn,
    User,
)

router = APIRouter()


# --------- Collection ---------

@router.get("")
def list_projects(
    search: Optional[str] = None,
    privacy: Optional[str] = None,
    status: Optional[str] = None,
    techStack: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort: str = "createdAt",
    order: str = Query("desc", pattern="^(asc|desc)$"),
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    projects, total = context.projects.list_projects(
        user.id, search=search, privacy=privacy, status=status, tech_stack=techStack,
        page=page, limit=limit, sort=sort, order=order,
    )
    return {"projects": projects, "pagination": pagination(page, limit, total)}


@router.get("/my-projects")
def my_projects(user: User = Depends(get_current_user), context: AppContext = Depends(get_context)):
    return {"projects": [p.to_public() for p in context.projects.my_projects(user.id)]}


@router.get("/dashboard")
def dashboard(user: User = Depends(get_current_user), context: AppContext = Depends(get_context)):
    return context.projects.dashboard(user)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_project(data: ProjectIn, user: User = Depends(get_current_user), context: AppContext = Depends(get_context)):
    project = context.projects.create(user.id, data)
    return {"success": True, "message": "Project created successfully", "project": project.to_public()}


# --------- Single project ---------

@router.get("/{project_id}/basic")
def get_basic_info(project_id: str, user: User = Depends(get_current_user), context: AppContext = Depends(get_context)):
    return {"success": True, "project": context.projects.basic_info(project_id, user.id)}


@router.get("/{project_id}")
def get_project(project_id: str, user: User = Depends(get_current_user), context: AppContext = Depends(get_context)):
    project = context.projects.details(project_id, user.id)
    return {"success": True, "project": project.to_public()}


@router.put("/{project_id}")
def update_project(
    project_id: str,
    data: ProjectUpdateIn,
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    project = context.projects.update(project_id, user.id, data)
    return {"success": True, "message": "Project updated successfully", "project": project.to_public()}


@router.delete("/{project_id}")
def delete_project(project_id: str, user: User = Depends(get_current_user), context: AppContext = Depends(get_context)):
    context.projects.delete(project_id, user)
    return {"success": True, "message": "Project deleted successfully"}


# --------- Membership ---------

@router.post("/{project_id}/join-request")
def request_to_join(
    project_id: str,
    response: Response,
    data: Optional[JoinRequestIn] = None,
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    """Join a public project directly, or leave a request for the owner"""
    _, request = context.projects.request_join(project_id, user.id, data.message if data else "")
    if request is None:
        return {"success": True, "joined": True, "message": "Successfully joined the public project"}
    response.status_code = status.HTTP_201_CREATED
    return {
        "success": True,
        "joined": False,
        "message": "Join request sent successfully",
        "request": request.model_dump(mode="json"),
    }


@router.put("/{project_id}/join-request/{request_id}")
def respond_to_join_request(
    project_id: str,
    request_id: str,
    data: JoinResponseIn,
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    request = context.projects.respond_to_request(project_id, request_id, user.id, data.status)
    return {
        "success": True,
        "message": f"Join request {request.status} successfully",
        "request": request.model_dump(mode="json"),
    }


@router.put("/{project_id}/members/{member_id}")
def change_member_role(
    project_id: str,
    member_id: str,
    data: MemberRoleIn,
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    project = context.projects.set_member_role(project_id, user.id, member_id, data.role)
    return {"success": True, "message": "Member role updated", "members": project.to_public()["members"]}


@router.delete("/{project_id}/members/{member_id}")
def remove_member(
    project_id: str,
    member_id: str,
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    project = context.projects.remove_member(project_id, user.id, member_id)
    return {"success": True, "message": "Member removed", "members": project.to_public()["members"]}


@router.post("/{project_id}/leave")
def leave_project(project_id: str, user: User = Depends(get_current_user), context: AppContext = Depends(get_context)):
    context.projects.leave(project_id, user.id)
    return {"success": True, "message": "You have left the project"}


@router.post("/{project_id}/sign-nda")
def sign_nda(project_id: str, user: User = Depends(get_current_user), context: AppContext = Depends(get_context)):
    context.projects.sign_nda(project_id, user.id)
    return {"success": True, "message": "NDA signed successfully"}


@router.post("/{project_id}/report", status_code=status.HTTP_201_CREATED)
def report_member(
    project_id: str,
    data: ReportIn,
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    report = context.reports.file_report(project_id, user.id, data.userId, data.reason)
    return {"success": True, "message": "Report submitted", "report": report.model_dump(mode="json")}


# --------- Tasks ---------

@router.post("/{project_id}/tasks", status_code=status.HTTP_201_CREATED)
def create_task(
    project_id: str,
    data: TaskIn,
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    task = context.projects.add_task(project_id, user.id, data)
    return {"success": True, "message": "Task created successfully", "task": task.model_dump(mode="json")}


@router.put("/{project_id}/tasks/{task_id}")
def update_task(
    project_id: str,
    task_id: str,
    data: TaskUpdateIn,
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    task = context.projects.update_task(project_id, task_id, user.id, data)
    return {"success": True, "message": "Task updated successfully", "task": task.model_dump(mode="json")}


@router.delete("/{project_id}/tasks/{task_id}")
def delete_task(
    project_id: str,
    task_id: str,
    user: User = Depends(get_current_user),
    context: AppContext = Depends(get_context),
):
    context.projects.delete_task(project_id, task_id, user.id)
    return {"success": True, "message": "Task deleted successfully"}
