"""Project API Routes - Cached project list"""
from fastapi import APIRouter, Depends

from ..deps import get_correlation_id_dep, get_registry_dep
from ...services.session_registry import WorkflowRegistry

router = APIRouter()


@router.get("")
async def list_projects(
    refresh: bool = False,
    registry: WorkflowRegistry = Depends(get_registry_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Project list as the host caches it

    Reflects optimistic stage updates while a commit is in flight. Pass
    refresh=true to force a refetch.
    """
    return await registry.projects(refresh=refresh)
