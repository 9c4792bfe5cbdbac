from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from uniconnect.context import AppContext
from uniconnect.exceptions import AuthenticationError, ForbiddenError
from uniconnect.logging_config import set_user_id
from uniconnect.schemas import User
from uniconnect.security import decode_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    context: AppContext = Depends(get_context),
) -> User:
    """Resolve the bearer token to an active user; the store is checked every time"""
    if credentials is None:
        raise AuthenticationError("Not authorized, no token")
    payload = decode_token(credentials.credentials)
    user = context.users.resolve_active(payload["sub"])
    set_user_id(user.id)
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise ForbiddenError("Access denied. Admin privileges required.", hint="requires_admin")
    return user
