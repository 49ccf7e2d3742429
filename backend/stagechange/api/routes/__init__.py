"""API Routes module"""
from fastapi import APIRouter

from .transition_workflows import configure_router, notification_router
from .projects import router as projects_router

# Main API router
api_router = APIRouter()

api_router.include_router(
    configure_router, prefix="/transition-workflows", tags=["Transition Workflows"]
)
api_router.include_router(
    notification_router, prefix="/transition-workflows", tags=["Transition Notifications"]
)
api_router.include_router(projects_router, prefix="/projects", tags=["Projects"])

__all__ = ["api_router"]
