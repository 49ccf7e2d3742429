"""
Notification Routes

Edit, personalize and resolve the notification a committed stage change
produced. Send, suppress and skip each close the session.
"""

from fastapi import APIRouter, Depends, File, UploadFile

from ...deps import get_correlation_id_dep, get_registry_dep, get_workflow_dep
from ....domain.enums import NotificationChannel, WorkflowState
from ....domain.errors import InvalidStateError
from ....engine.notification_orchestrator import NotificationOrchestrator
from ....engine.transition_workflow import TransitionWorkflow
from ....services.session_registry import WorkflowRegistry
from .common import session_payload, session_response
from .schemas import (
    DraftUpdateRequest, ChannelToggleRequest, RefineRequest, SessionResponse,
    NotificationResponse
)

router = APIRouter()


def _notification(workflow: TransitionWorkflow) -> NotificationOrchestrator:
    if workflow.state != WorkflowState.NOTIFICATION_PENDING or workflow.notification is None:
        raise InvalidStateError(
            "No notification is waiting for a decision",
            details={"state": workflow.state.value}
        )
    return workflow.notification


@router.patch("/{session_id}/notification/draft", response_model=SessionResponse)
async def update_draft(
    request: DraftUpdateRequest,
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep)
):
    _notification(workflow).update_draft(**request.model_dump(exclude_none=True))
    return session_response(registry, workflow)


@router.put("/{session_id}/notification/channels/{channel}", response_model=SessionResponse)
async def set_channel(
    channel: NotificationChannel,
    request: ChannelToggleRequest,
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep)
):
    _notification(workflow).set_channel_enabled(channel, request.enabled)
    return session_response(registry, workflow)


@router.post(
    "/{session_id}/notification/channels/{channel}/recipients/{recipient_id}/toggle",
    response_model=SessionResponse
)
async def toggle_recipient(
    channel: NotificationChannel,
    recipient_id: str,
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep)
):
    _notification(workflow).toggle_recipient(channel, recipient_id)
    return session_response(registry, workflow)


@router.post("/{session_id}/notification/channels/{channel}/toggle-all", response_model=SessionResponse)
async def toggle_all_recipients(
    channel: NotificationChannel,
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep)
):
    """Select everyone eligible, or clear the selection when all are selected"""
    _notification(workflow).toggle_all(channel)
    return session_response(registry, workflow)


# =============================================================================
# Drafting assistance
# =============================================================================

@router.post("/{session_id}/notification/refine", response_model=SessionResponse)
async def refine_draft(
    request: RefineRequest,
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    notification = _notification(workflow)
    await notification.refine(request.prompt)
    workflow.feedback.success("Email refined", "The AI has updated your email content.")
    return session_response(registry, workflow)


@router.post("/{session_id}/notification/voice-draft", response_model=SessionResponse)
async def voice_draft(
    audio: UploadFile = File(...),
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Draft the notification from a voice recording"""
    notification = _notification(workflow)
    await notification.apply_voice_draft(
        await audio.read(),
        filename=audio.filename or "recording.webm",
        content_type=audio.content_type or "audio/webm",
    )
    return session_response(registry, workflow)


# =============================================================================
# Resolution
# =============================================================================

@router.post("/{session_id}/notification/send", response_model=NotificationResponse)
async def send_notification(
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Send on every enabled channel that has recipients

    Returns 400 when no channel is enabled with recipients. A backend failure
    returns 502 and the notification stays open.
    """
    result = await workflow.send_notification()
    return NotificationResponse(
        success=result.success,
        sent=result.was_sent,
        suppress=result.suppress,
        message=result.message,
        **session_payload(registry, workflow)
    )


@router.post("/{session_id}/notification/suppress", response_model=NotificationResponse)
async def suppress_notification(
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Record that the notification was reviewed and deliberately not sent"""
    result = await workflow.suppress_notification()
    return NotificationResponse(
        success=result.success,
        sent=False,
        suppress=True,
        message=result.message,
        **session_payload(registry, workflow)
    )


@router.post("/{session_id}/notification/skip", response_model=SessionResponse)
async def skip_notification(
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep)
):
    workflow.skip_notification()
    return session_response(registry, workflow)
