"""
Transition Workflow Schemas

Request and response models for the host-facing workflow endpoints. Bodies
use camelCase like the rest of the case-management UI.
"""

from datetime import date
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Session Schemas
# =============================================================================

class OpenWorkflowRequest(CamelModel):
    """Request to open a stage change for a project"""
    project_id: str = Field(..., min_length=1)
    current_status: Optional[str] = Field(
        None, description="Project's current stage name; taken from the config bundle when omitted"
    )
    sender_first_name: Optional[str] = None
    sender_last_name: Optional[str] = None
    sender_email: Optional[str] = None


class SelectStageRequest(CamelModel):
    stage_id: str


class SelectReasonRequest(CamelModel):
    reason_id: str


class NotesRequest(CamelModel):
    notes_html: str = Field("", max_length=50000)


class FieldValueRequest(CamelModel):
    """Raw response value; its shape depends on the field type"""
    value: Any = None


class PendingQueryRequest(CamelModel):
    """Pending query values; unset keys are left unchanged on update"""
    query_date: Optional[date] = Field(None, alias="date")
    description: str = ""
    money_in: str = ""
    money_out: str = ""
    our_query: str = ""


class BulkQueryRequest(CamelModel):
    rows: List[Dict[str, Any]] = Field(default_factory=list)


# =============================================================================
# Notification Schemas
# =============================================================================

class DraftUpdateRequest(CamelModel):
    """Edits to the notification draft; omitted fields are unchanged"""
    email_subject: Optional[str] = None
    email_body: Optional[str] = None
    push_title: Optional[str] = None
    push_body: Optional[str] = None
    sms_body: Optional[str] = None


class ChannelToggleRequest(CamelModel):
    enabled: bool


class RefineRequest(CamelModel):
    prompt: str = Field(..., min_length=1, max_length=2000)


# =============================================================================
# Responses
# =============================================================================

class SessionResponse(CamelModel):
    """Workflow view plus any feedback raised by the action"""
    session: Dict[str, Any]
    feedback: List[Dict[str, Any]] = Field(default_factory=list)


class SubmitResponse(SessionResponse):
    outcome: Dict[str, Any]


class NotificationResponse(SessionResponse):
    success: bool = True
    sent: bool = False
    suppress: bool = False
    message: Optional[str] = None
