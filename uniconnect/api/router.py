from fastapi import APIRouter

from uniconnect.api import admin, auth, messages, projects, realtime, users

api_router = APIRouter(prefix="/api")
api_router.include_router(auth.router, prefix="/auth", tags=["Auth"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(projects.router, prefix="/projects", tags=["Projects"])
api_router.include_router(messages.router, prefix="/messages", tags=["Messages"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])

# The socket lives at the root, next to /health
socket_router = realtime.router
