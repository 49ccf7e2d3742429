"""Shared helpers for workflow routes"""
from ....engine.transition_workflow import TransitionWorkflow
from ....services.session_registry import WorkflowRegistry
from .schemas import SessionResponse


def session_payload(registry: WorkflowRegistry, workflow: TransitionWorkflow) -> dict:
    """Workflow view plus drained feedback; closed sessions are released"""
    feedback = registry.feedback_for(workflow.session_id).drain()
    payload = {
        "session": workflow.to_view(),
        "feedback": [m.model_dump(mode="json") for m in feedback],
    }
    registry.release(workflow.session_id)
    return payload


def session_response(registry: WorkflowRegistry, workflow: TransitionWorkflow) -> SessionResponse:
    return SessionResponse(**session_payload(registry, workflow))
