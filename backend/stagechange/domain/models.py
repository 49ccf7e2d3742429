"""Domain Models - Pydantic schemas for all entities

Wire formats use camelCase (the case-management backend's JSON convention);
attributes are snake_case and can be populated by either name.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .enums import (
    WorkflowState, FailedStep, CustomFieldType, ApprovalFieldType, ComparisonType,
    DateComparisonType, NotificationAudience, FeedbackVariant, QueryStatus
)
from ..utils.time import to_calendar_date, utc_now


class WireModel(BaseModel):
    """Base for models exchanged with the backend"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> Dict[str, Any]:
        """Dump using camelCase keys, dropping unset optionals"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============================================================================
# Stage Change Configuration
# ============================================================================

class StageDefinition(WireModel):
    """Kanban stage a project can occupy"""

    id: str = Field(..., description="Stage ID")
    name: str = Field(..., description="Stage name (also the project's status value)")
    order: int = Field(default=0, description="Display order")
    valid_reason_ids: List[str] = Field(
        default_factory=list,
        description="Change reasons usable when transitioning into this stage"
    )
    stage_approval_id: Optional[str] = Field(None, description="Default approval ruleset")


class CustomFieldDefinition(WireModel):
    """Reason-specific custom field"""

    id: str
    field_name: str = Field(..., description="Display label")
    field_type: CustomFieldType
    is_required: bool = False
    description: Optional[str] = None
    options: Optional[List[str]] = Field(None, description="Options for multi_select")
    order: int = 0


class ChangeReason(WireModel):
    """Operator-selected justification for a stage transition"""

    id: str
    reason: str = Field(..., description="Reason code")
    description: Optional[str] = None
    stage_approval_id: Optional[str] = Field(None, description="Overrides the stage's approval ruleset")
    custom_fields: List[CustomFieldDefinition] = Field(default_factory=list)


class ApprovalRuleset(WireModel):
    """Stage approval checklist header"""

    id: str
    name: str = ""
    description: Optional[str] = None


class ApprovalFieldRule(WireModel):
    """Single condition of a stage approval checklist"""

    id: str
    stage_approval_id: str
    field_name: str
    field_type: ApprovalFieldType
    description: Optional[str] = None
    is_required: bool = False
    order: int = 0
    expected_value_boolean: Optional[bool] = None
    comparison_type: Optional[ComparisonType] = None
    expected_value_number: Optional[float] = None
    date_comparison_type: Optional[DateComparisonType] = None
    expected_date: Optional[date] = None
    expected_date_end: Optional[date] = None
    options: Optional[List[str]] = None

    @field_validator("expected_date", "expected_date_end", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> Optional[date]:
        return to_calendar_date(value)


class StageChangeConfig(WireModel):
    """Everything needed to drive a stage change for one project"""

    project_type_id: Optional[str] = None
    current_status: Optional[str] = None
    stages: List[StageDefinition] = Field(default_factory=list)
    reasons: List[ChangeReason] = Field(default_factory=list)
    stage_approvals: List[ApprovalRuleset] = Field(default_factory=list)
    stage_approval_fields: List[ApprovalFieldRule] = Field(default_factory=list)


# ============================================================================
# Attachments
# ============================================================================

class LocalFile(BaseModel):
    """File selected by the operator, not yet uploaded"""

    name: str
    content: bytes = Field(..., repr=False)
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


class UploadTarget(WireModel):
    """One-time upload location issued by the backend"""

    url: str
    object_path: str


class UploadedAttachment(WireModel):
    """Reference to a file in durable storage"""

    file_name: str
    file_size: int
    file_type: str
    object_path: str


# ============================================================================
# Responses & Transition Request
# ============================================================================

class CustomFieldResponse(WireModel):
    """Formatted custom field response sent with the transition"""

    custom_field_id: str
    field_type: CustomFieldType
    value_boolean: Optional[bool] = None
    value_number: Optional[float] = None
    value_short_text: Optional[str] = None
    value_long_text: Optional[str] = None
    value_multi_select: Optional[List[str]] = None


class ApprovalFieldResponse(WireModel):
    """Formatted approval checklist response"""

    project_id: str
    field_id: str
    value_boolean: Optional[bool] = None
    value_number: Optional[float] = None
    value_short_text: Optional[str] = None
    value_long_text: Optional[str] = None
    value_single_select: Optional[str] = None
    value_multi_select: Optional[List[str]] = None
    value_date: Optional[date] = None


class TransitionRequest(WireModel):
    """Stage transition request (PATCH /status body)"""

    new_status: str = Field(..., description="Target stage name")
    change_reason: str = Field(..., description="Reason code")
    stage_id: str
    reason_id: str
    notes_html: Optional[str] = None
    attachments: Optional[List[UploadedAttachment]] = None
    field_responses: List[CustomFieldResponse] = Field(default_factory=list)
    # Submitted separately, before the transition
    approval_responses: List[ApprovalFieldResponse] = Field(default_factory=list, exclude=True)


class PendingQuery(WireModel):
    """Ad-hoc follow-up query held locally until the transition commits"""

    id: str
    query_date: Optional[date] = Field(None, alias="date")
    description: str = ""
    money_in: str = ""
    money_out: str = ""
    our_query: str = ""

    @field_validator("query_date", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> Optional[date]:
        return to_calendar_date(value)

    @property
    def has_content(self) -> bool:
        return bool(self.description or self.our_query)

    def to_payload(self, project_id: str) -> Dict[str, Any]:
        """Body for create-ad-hoc-query"""
        return {
            "projectId": project_id,
            "date": self.query_date.isoformat() if self.query_date else None,
            "description": self.description or None,
            "moneyIn": self.money_in or None,
            "moneyOut": self.money_out or None,
            "ourQuery": self.our_query or "",
            "status": QueryStatus.OPEN.value,
        }


# ============================================================================
# Notifications
# ============================================================================

class Recipient(WireModel):
    """Potential notification recipient with per-channel eligibility"""

    recipient_id: str = Field(
        ...,
        validation_alias=AliasChoices("recipientId", "recipient_id", "userId", "personId", "id")
    )
    name: str = Field("", validation_alias=AliasChoices("name", "fullName"))
    email: Optional[str] = None
    mobile: Optional[str] = None
    has_push_subscription: bool = False
    receive_notifications: bool = Field(True, description="False when the contact opted out")
    role: Optional[str] = None

    @property
    def has_email(self) -> bool:
        return bool(self.email and self.email.strip())

    @property
    def has_mobile(self) -> bool:
        return bool(self.mobile)

    @property
    def opted_out(self) -> bool:
        return not self.receive_notifications


class NotificationMetadata(WireModel):
    """Context shown alongside a notification draft"""

    project_name: Optional[str] = None
    client_name: Optional[str] = None
    old_stage_name: Optional[str] = None
    new_stage_name: Optional[str] = None
    due_date: Optional[str] = None
    change_reason: Optional[str] = None


class NotificationPreview(WireModel):
    """Backend-drafted notification produced by a successful commit"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    email_subject: str = ""
    email_body: str = ""
    push_title: Optional[str] = None
    push_body: Optional[str] = None
    recipients: List[Recipient] = Field(default_factory=list)
    dedupe_key: str
    metadata: NotificationMetadata = Field(default_factory=NotificationMetadata)


class CommitResult(BaseModel):
    """Normalized commit-transition response"""

    updated_project: Dict[str, Any] = Field(default_factory=dict)
    notification_preview: Optional[NotificationPreview] = None
    audience: Optional[NotificationAudience] = None


class NotificationSendData(WireModel):
    """Send-or-suppress request body"""

    project_id: str
    dedupe_key: str
    email_subject: str
    email_body: str
    push_title: Optional[str] = None
    push_body: Optional[str] = None
    suppress: bool = False
    send_email: bool = False
    send_push: bool = False
    send_sms: bool = False
    sms_body: Optional[str] = None
    email_recipient_ids: List[str] = Field(default_factory=list)
    push_recipient_ids: List[str] = Field(default_factory=list)
    sms_recipient_ids: List[str] = Field(default_factory=list)


class NotificationSendResult(WireModel):
    """Backend answer to a send-or-suppress call"""

    success: bool = True
    sent: bool = False
    suppress: bool = False
    message: Optional[str] = None

    @property
    def was_sent(self) -> bool:
        return self.sent and not self.suppress


class DraftContext(WireModel):
    """Personalization hints passed to the drafting collaborators"""

    recipient_names: Optional[str] = None
    sender_name: Optional[str] = None
    client_company: Optional[str] = None


class DraftText(WireModel):
    """Revised subject/body from AI refinement"""

    subject: str = ""
    body: str = ""


class VoiceDraft(DraftText):
    """Subject/body (and push text) drafted from recorded audio"""

    push_title: Optional[str] = None
    push_body: Optional[str] = None
    transcription: Optional[str] = None


# ============================================================================
# Workflow Results
# ============================================================================

class ValidationReport(BaseModel):
    """Outcome of a local validation pass"""

    is_valid: bool = True
    errors: List[str] = Field(default_factory=list)


class WorkflowFailure(BaseModel):
    """Last FAILED excursion of a workflow"""

    step: FailedStep
    message: str
    error_code: str


class QueryBatchResult(BaseModel):
    """Per-item outcome of persisting pending queries"""

    created_ids: List[str] = Field(default_factory=list)
    failed_ids: List[str] = Field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.created_ids) + len(self.failed_ids)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed_ids)


class TransitionOutcome(BaseModel):
    """Result of a successful submit"""

    state: WorkflowState
    updated_project: Dict[str, Any] = Field(default_factory=dict)
    queries: QueryBatchResult = Field(default_factory=QueryBatchResult)
    audience: Optional[NotificationAudience] = None

    @property
    def side_effect_failures(self) -> int:
        return len(self.queries.failed_ids)

    @property
    def notification_pending(self) -> bool:
        return self.state == WorkflowState.NOTIFICATION_PENDING


class FeedbackMessage(BaseModel):
    """Operator-facing toast"""

    variant: FeedbackVariant
    title: str
    description: str
    created_at: datetime = Field(default_factory=utc_now)
