"""
Access-control predicates over a project and a user id.

Everything here is pure: no database access, no mutation. Routes and
services combine these checks and raise the matching `ForbiddenError`.
"""
from typing import Optional

from uniconnect.schemas import MemberRole, Project

EDIT_ROLES = ('owner', 'contributor')


def is_owner(project: Project, user_id: str) -> bool:
    return project.owner == user_id


def get_role(project: Project, user_id: str) -> Optional[MemberRole]:
    # The owner always resolves to owner, whatever the member entry says
    if is_owner(project, user_id):
        return 'owner'
    member = project.get_member(user_id)
    return member.role if member else None


def is_member(project: Project, user_id: str) -> bool:
    return get_role(project, user_id) is not None


def can_view(project: Project, user_id: str) -> bool:
    if project.privacy == 'public':
        return True
    if project.privacy == 'draft':
        return is_owner(project, user_id)
    return is_member(project, user_id)


def can_view_details(project: Project, user_id: str) -> bool:
    """Full project view (tasks, requests, members) is for members only"""
    return is_member(project, user_id)


def can_edit(project: Project, user_id: str) -> bool:
    return get_role(project, user_id) in EDIT_ROLES


def has_signed_nda(project: Project, user_id: str) -> bool:
    """NDA gating only applies to private projects"""
    if project.privacy != 'private' or is_owner(project, user_id):
        return True
    member = project.get_member(user_id)
    return bool(member and member.hasSignedNDA)
