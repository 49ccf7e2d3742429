"""API Dependencies - Common dependencies for routes"""
from typing import Optional
from fastapi import Header, Request

from ..engine.transition_workflow import TransitionWorkflow
from ..services.session_registry import WorkflowRegistry
from ..utils.logger import set_correlation_id
from ..utils.idgen import generate_correlation_id


async def get_correlation_id_dep(
    x_correlation_id: Optional[str] = Header(None, alias="X-Correlation-Id")
) -> str:
    """
    Get or generate correlation ID for request tracing

    The same id is forwarded to the backend on every outbound call.
    """
    correlation_id = x_correlation_id or generate_correlation_id()
    set_correlation_id(correlation_id)
    return correlation_id


def get_registry_dep(request: Request) -> WorkflowRegistry:
    """Registry created in the application lifespan"""
    return request.app.state.registry


def get_workflow_dep(session_id: str, request: Request) -> TransitionWorkflow:
    """
    Resolve the workflow for a session path parameter

    Raises:
        SessionNotFoundError: Unknown or already released session
    """
    return get_registry_dep(request).get(session_id)
