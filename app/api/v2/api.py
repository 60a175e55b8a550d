# Fichier: backend/app/api/v2/api.py
from fastapi import APIRouter

from .endpoints import (
    assignment_router,
    course_router,
    notification_router,
    notification_ws,
    progress_router,
)

api_router = APIRouter()

api_router.include_router(progress_router.router, prefix="/progress", tags=["Progress"])
api_router.include_router(course_router.router, prefix="/courses", tags=["Courses"])
api_router.include_router(assignment_router.router, prefix="/assignments", tags=["Assignments"])
api_router.include_router(notification_router.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(notification_ws.router, tags=["Notifications"])
