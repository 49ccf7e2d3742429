"""
Workflow Configuration Routes

Open a session, make choices, attach files, queue queries, submit and close.
"""

from typing import List

from fastapi import APIRouter, Depends, File, UploadFile, status

from ...deps import get_correlation_id_dep, get_registry_dep, get_workflow_dep
from ....domain.models import LocalFile
from ....engine.transition_workflow import TransitionWorkflow
from ....services.session_registry import WorkflowRegistry
from ....utils.text import sender_display_name
from ....utils.logger import get_logger
from .common import session_payload, session_response
from .schemas import (
    OpenWorkflowRequest, SelectStageRequest, SelectReasonRequest, NotesRequest,
    FieldValueRequest, PendingQueryRequest, BulkQueryRequest, SessionResponse,
    SubmitResponse
)

logger = get_logger(__name__)
router = APIRouter()


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def open_workflow(
    request: OpenWorkflowRequest,
    registry: WorkflowRegistry = Depends(get_registry_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Open a stage change for a project

    Loads the project's stage change configuration and returns the target
    stages the operator can choose from.
    """
    workflow = await registry.open(
        request.project_id,
        current_status=request.current_status,
        sender_name=sender_display_name(
            request.sender_first_name, request.sender_last_name, request.sender_email
        ),
    )
    return session_response(registry, workflow)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_workflow(
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep)
):
    return session_response(registry, workflow)


@router.put("/{session_id}/stage", response_model=SessionResponse)
async def select_stage(
    request: SelectStageRequest,
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep)
):
    """Choose the target stage; the reason and custom responses are cleared"""
    workflow.select_stage(request.stage_id)
    return session_response(registry, workflow)


@router.put("/{session_id}/reason", response_model=SessionResponse)
async def select_reason(
    request: SelectReasonRequest,
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep)
):
    workflow.select_reason(request.reason_id)
    return session_response(registry, workflow)


@router.put("/{session_id}/notes", response_model=SessionResponse)
async def set_notes(
    request: NotesRequest,
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep)
):
    workflow.set_notes(request.notes_html)
    return session_response(registry, workflow)


@router.put("/{session_id}/custom-fields/{field_id}", response_model=SessionResponse)
async def set_custom_field(
    field_id: str,
    request: FieldValueRequest,
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep)
):
    workflow.set_custom_field_response(field_id, request.value)
    return session_response(registry, workflow)


@router.put("/{session_id}/approval-fields/{field_id}", response_model=SessionResponse)
async def set_approval_field(
    field_id: str,
    request: FieldValueRequest,
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep)
):
    workflow.set_approval_response(field_id, request.value)
    return session_response(registry, workflow)


# =============================================================================
# Attachments
# =============================================================================

@router.post("/{session_id}/attachments", response_model=SessionResponse)
async def upload_attachments(
    files: List[UploadFile] = File(...),
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Upload files for the transition

    Files are uploaded in order. The first failure stops the batch; files
    uploaded before it stay attached.
    """
    local_files = [
        LocalFile(name=f.filename or "file", content=await f.read(), content_type=f.content_type)
        for f in files
    ]
    await workflow.add_files(local_files)
    return session_response(registry, workflow)


@router.delete("/{session_id}/attachments/{index}", response_model=SessionResponse)
async def remove_attachment(
    index: int,
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep)
):
    workflow.remove_file(index)
    return session_response(registry, workflow)


# =============================================================================
# Pending Queries
# =============================================================================

@router.post("/{session_id}/queries", response_model=SessionResponse)
async def add_query(
    request: PendingQueryRequest,
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep)
):
    workflow.queries.add(**request.model_dump(exclude_unset=True))
    return session_response(registry, workflow)


@router.post("/{session_id}/queries/bulk", response_model=SessionResponse)
async def bulk_import_queries(
    request: BulkQueryRequest,
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep)
):
    workflow.queries.bulk_import(request.rows)
    return session_response(registry, workflow)


@router.patch("/{session_id}/queries/{query_id}", response_model=SessionResponse)
async def update_query(
    query_id: str,
    request: PendingQueryRequest,
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep)
):
    workflow.queries.update(query_id, **request.model_dump(exclude_unset=True))
    return session_response(registry, workflow)


@router.delete("/{session_id}/queries/{query_id}", response_model=SessionResponse)
async def remove_query(
    query_id: str,
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep)
):
    workflow.queries.remove(query_id)
    return session_response(registry, workflow)


# =============================================================================
# Submit & Close
# =============================================================================

@router.post("/{session_id}/submit", response_model=SubmitResponse)
async def submit_workflow(
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Submit the stage change

    Validation failures return 400 with every message in details.errors.
    A failed commit returns 502 and leaves the session open for another try.
    """
    outcome = await workflow.submit()
    return SubmitResponse(
        outcome={
            "state": outcome.state.value,
            "project": outcome.updated_project,
            "audience": outcome.audience.value if outcome.audience else None,
            "queriesCreated": len(outcome.queries.created_ids),
            "queriesFailed": outcome.queries.failed_ids,
        },
        **session_payload(registry, workflow)
    )


@router.post("/{session_id}/close", response_model=SessionResponse)
async def close_workflow(
    workflow: TransitionWorkflow = Depends(get_workflow_dep),
    registry: WorkflowRegistry = Depends(get_registry_dep)
):
    workflow.close()
    return session_response(registry, workflow)
