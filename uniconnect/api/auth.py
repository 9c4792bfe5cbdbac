from fastapi import APIRouter, Depends, Request, status

from uniconnect.context import AppContext
from uniconnect.dependencies import get_context, get_current_user
from uniconnect.logging_config import logger
from uniconnect.rate_limiter import auth_rate_limit
from uniconnect.schemas import LoginIn, RegisterIn, User
from uniconnect.security import create_access_token

router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
@auth_rate_limit()
def register(request: Request, data: RegisterIn, context: AppContext = Depends(get_context)):
    """Register with a student email address"""
    user = context.users.register(data)
    logger.log_auth_event("register", success=True, user_email=user.email)
    return {
        "success": True,
        "message": "User registered successfully",
        "token": create_access_token(user.id, user.role),
        "user": user.private_profile(),
    }


@router.post("/login")
@auth_rate_limit()
def login(request: Request, data: LoginIn, context: AppContext = Depends(get_context)):
    user = context.users.authenticate(data.email, data.password)
    return {
        "success": True,
        "message": "Login successful",
        "token": create_access_token(user.id, user.role),
        "user": user.private_profile(),
    }


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {"success": True, "user": user.private_profile()}


@router.post("/refresh")
def refresh(user: User = Depends(get_current_user)):
    return {"success": True, "token": create_access_token(user.id, user.role)}


@router.post("/logout")
def logout(user: User = Depends(get_current_user), context: AppContext = Depends(get_context)):
    context.users.touch_last_active(user.id)
    logger.log_auth_event("logout", success=True, user_email=user.email)
    return {"success": True, "message": "Logged out successfully"}
