"""
Transition Workflow - The stage change state machine

One TransitionWorkflow lives from the moment the operator opens the stage
change UI for a project until it is closed.

=============================================================================
STATES
=============================================================================

    IDLE -> CONFIGURING -> (APPROVAL_PENDING) -> COMMITTING -> SIDE_EFFECTS
         -> (NOTIFICATION_PENDING) -> CLOSED

FAILED is a transient excursion from APPROVAL_PENDING or COMMITTING back to
CONFIGURING; the operator can fix the input and submit again.

=============================================================================
SUBMIT
=============================================================================

1. Stage and reason must both be chosen
2. Required custom fields must be answered
3. Active approval checklist must pass, then its responses are recorded
4. Commit with an optimistic project list update, restored on failure
5. Pending queries are persisted; failures never undo the commit
6. A notification preview in the commit response opens the notification
   step, otherwise the workflow closes

=============================================================================
"""
from typing import Any, Dict, List, Optional, Tuple

from ..domain.models import (
    StageDefinition, ChangeReason, CustomFieldDefinition, ApprovalFieldRule,
    TransitionRequest, LocalFile, UploadedAttachment, TransitionOutcome,
    QueryBatchResult, WorkflowFailure, NotificationSendResult, CommitResult
)
from ..domain.enums import WorkflowState, FailedStep, NotificationOutcome
from ..domain.errors import (
    DomainError, ApiError, ValidationError, CustomFieldValidationError,
    ApprovalValidationError, ApprovalSubmissionError, TransitionCommitError,
    InvalidStateError, NotFoundError, NotificationError, UploadError
)
from ..repositories.project_cache import (
    ProjectCache, PROJECTS_KEY, QUERY_COUNTS_KEY, project_queries_key
)
from ..repositories.config_repo import StageConfigRepository
from ..services.feedback import FeedbackSink, LoggingFeedbackSink
from ..services.file_upload import FileUploadPipeline
from ..services.query_batch import QueryBatch
from .config_resolver import ConfigResolver
from .custom_field_validator import CustomFieldValidator
from .approval_gate import ApprovalGate
from .notification_orchestrator import NotificationOrchestrator
from ..utils.idgen import generate_session_id
from ..utils.time import utc_now
from ..utils.logger import get_context_logger


# Every legal state change; anything else is an InvalidStateError
ALLOWED_TRANSITIONS: Dict[WorkflowState, Tuple[WorkflowState, ...]] = {
    WorkflowState.IDLE: (WorkflowState.CONFIGURING, WorkflowState.CLOSED),
    WorkflowState.CONFIGURING: (
        WorkflowState.APPROVAL_PENDING, WorkflowState.COMMITTING, WorkflowState.CLOSED
    ),
    WorkflowState.APPROVAL_PENDING: (WorkflowState.COMMITTING, WorkflowState.FAILED),
    WorkflowState.COMMITTING: (WorkflowState.SIDE_EFFECTS, WorkflowState.FAILED),
    WorkflowState.SIDE_EFFECTS: (WorkflowState.NOTIFICATION_PENDING, WorkflowState.CLOSED),
    WorkflowState.NOTIFICATION_PENDING: (WorkflowState.CLOSED,),
    WorkflowState.FAILED: (WorkflowState.CONFIGURING,),
    WorkflowState.CLOSED: (),
}

# States in which a network step owns the workflow
BUSY_STATES = (
    WorkflowState.APPROVAL_PENDING, WorkflowState.COMMITTING, WorkflowState.SIDE_EFFECTS
)


class TransitionWorkflow:
    """
    Sequences validation, approval, commit, side effects and notification

    Responsibilities:
    - Hold the operator's choices (stage, reason, responses, notes, files, queries)
    - Enforce the state table for every action
    - Own the optimistic cache update and its rollback
    - Hand off to a NotificationOrchestrator when the backend drafts one
    """

    def __init__(
        self,
        project_id: str,
        api_client,
        config_repo: StageConfigRepository,
        project_cache: ProjectCache,
        feedback: Optional[FeedbackSink] = None,
        current_status: Optional[str] = None,
        sender_name: Optional[str] = None,
        session_id: Optional[str] = None
    ):
        self.session_id = session_id or generate_session_id()
        self.project_id = project_id
        self.current_status = current_status
        self.sender_name = sender_name
        self.api_client = api_client
        self.config_repo = config_repo
        self.project_cache = project_cache
        self.feedback = feedback or LoggingFeedbackSink()

        self.custom_field_validator = CustomFieldValidator()
        self.approval_gate = ApprovalGate()
        self.resolver: Optional[ConfigResolver] = None

        self.state = WorkflowState.IDLE
        self.history: List[Dict[str, Any]] = []
        self.last_failure: Optional[WorkflowFailure] = None
        self.validation_errors: List[str] = []
        self.outcome: Optional[TransitionOutcome] = None
        self.notification: Optional[NotificationOrchestrator] = None
        self.notification_outcome: Optional[NotificationOutcome] = None

        self.logger = get_context_logger(
            __name__, project_id=project_id, session_id=self.session_id
        )
        self._reset_choices()

    def _reset_choices(self) -> None:
        self.stage: Optional[StageDefinition] = None
        self.reason: Optional[ChangeReason] = None
        self.notes_html: str = ""
        self.custom_responses: Dict[str, Any] = {}
        self.approval_responses: Dict[str, Any] = {}
        self.uploads = FileUploadPipeline(self.api_client, self.project_id)
        self.queries = QueryBatch()

    # =========================================================================
    # State handling
    # =========================================================================

    def _transition(self, target: WorkflowState) -> None:
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidStateError(
                f"Cannot move from {self.state.value} to {target.value}",
                details={"state": self.state.value, "target": target.value}
            )
        self.history.append({"from": self.state, "to": target, "at": utc_now()})
        self.logger.debug(
            f"Workflow {self.state.value} -> {target.value}",
            extra={"state": target.value}
        )
        self.state = target

    def _require_state(self, action: str, *states: WorkflowState) -> None:
        if self.state not in states:
            raise InvalidStateError(
                f"Cannot {action} while workflow is {self.state.value}",
                details={"state": self.state.value, "action": action}
            )

    def _require_resolver(self) -> ConfigResolver:
        if self.resolver is None:
            raise InvalidStateError("Workflow has not been opened")
        return self.resolver

    def _fail(self, step: FailedStep, error: DomainError) -> None:
        """Record a FAILED excursion and return to CONFIGURING"""
        self.last_failure = WorkflowFailure(
            step=step, message=error.message, error_code=error.error_code
        )
        self._transition(WorkflowState.FAILED)
        self._transition(WorkflowState.CONFIGURING)
        self.logger.error(
            f"{step.value} failed: {error.message}",
            extra={"error_code": error.error_code}
        )
        self.feedback.error_from(error)

    # =========================================================================
    # Opening & Choices
    # =========================================================================

    async def open(self) -> "TransitionWorkflow":
        """Load the configuration bundle and start configuring"""
        self._require_state("open", WorkflowState.IDLE)

        config = await self.config_repo.get_config(self.project_id)
        if self.current_status is None:
            self.current_status = config.current_status or ""

        self.resolver = ConfigResolver(config, self.current_status)
        self._transition(WorkflowState.CONFIGURING)
        self.logger.info(f"Opened stage change from '{self.current_status}'")
        return self

    def available_target_stages(self) -> List[StageDefinition]:
        return self._require_resolver().available_target_stages()

    def available_reasons(self) -> List[ChangeReason]:
        return self._require_resolver().reasons_for(self.stage)

    def custom_fields(self) -> List[CustomFieldDefinition]:
        return self._require_resolver().custom_fields_for(self.reason)

    def approval_fields(self) -> List[ApprovalFieldRule]:
        return self._require_resolver().approval_fields_between(self.stage, self.reason)

    @property
    def is_approval_active(self) -> bool:
        if self.resolver is None:
            return False
        return self.resolver.is_approval_active(self.stage, self.reason)

    def select_stage(self, stage_id: str) -> StageDefinition:
        """Choose the target stage; clears reason and custom responses"""
        self._require_state("select a stage", WorkflowState.CONFIGURING)
        resolver = self._require_resolver()

        stage = resolver.stage_by_id(stage_id)
        if stage is None:
            raise ValidationError(f"Unknown stage: {stage_id}")
        if resolver.is_current_stage(stage):
            raise ValidationError("The project is already in this stage")

        self.stage = stage
        self.reason = None
        self.custom_responses = {}
        reachable = self._approval_field_ids_for(stage)
        self.approval_responses = {
            field_id: value for field_id, value in self.approval_responses.items()
            if field_id in reachable
        }
        self.validation_errors = []
        return stage

    def _approval_field_ids_for(self, stage: StageDefinition) -> set:
        """Approval fields any reason of the stage could put in front of the operator"""
        resolver = self._require_resolver()
        field_ids = {f.id for f in resolver.approval_fields_between(stage, None)}
        for reason in resolver.reasons_for(stage):
            field_ids.update(f.id for f in resolver.approval_fields_between(stage, reason))
        return field_ids

    def select_reason(self, reason_id: str) -> ChangeReason:
        """Choose the change reason; clears custom responses"""
        self._require_state("select a reason", WorkflowState.CONFIGURING)
        resolver = self._require_resolver()

        if self.stage is None:
            raise ValidationError("Please select a stage first")

        reason = resolver.reason_by_id(reason_id)
        if not resolver.is_valid_reason(self.stage, reason):
            raise ValidationError(
                f"Reason {reason_id} is not valid for stage {self.stage.name}"
            )

        self.reason = reason
        self.custom_responses = {}
        self.validation_errors = []
        return reason

    def set_custom_field_response(self, field_id: str, value: Any) -> None:
        self._require_state("answer a custom field", WorkflowState.CONFIGURING)
        if field_id not in {f.id for f in self.custom_fields()}:
            raise ValidationError(f"Unknown custom field: {field_id}")
        self.custom_responses[field_id] = value

    def set_approval_response(self, field_id: str, value: Any) -> None:
        self._require_state("answer an approval field", WorkflowState.CONFIGURING)
        if field_id not in {f.id for f in self.approval_fields()}:
            raise ValidationError(f"Unknown approval field: {field_id}")
        self.approval_responses[field_id] = value

    def set_notes(self, notes_html: str) -> None:
        self._require_state("edit notes", WorkflowState.CONFIGURING)
        self.notes_html = notes_html or ""

    # =========================================================================
    # Attachments
    # =========================================================================

    async def add_files(self, files: List[LocalFile]) -> List[UploadedAttachment]:
        self._require_state("attach files", WorkflowState.CONFIGURING)
        try:
            return await self.uploads.upload(files)
        except UploadError as e:
            self.feedback.error("Upload Failed", e.message)
            raise

    def remove_file(self, index: int) -> None:
        self._require_state("remove a file", WorkflowState.CONFIGURING)
        try:
            self.uploads.remove(index)
        except IndexError as e:
            raise NotFoundError(str(e), details={"index": index}) from e

    # =========================================================================
    # Submit
    # =========================================================================

    async def submit(self) -> TransitionOutcome:
        """
        Run validation, approval, commit and side effects in order

        Raises:
            InvalidStateError: Not CONFIGURING (including a submit in flight)
            ValidationError: Local validation failed; nothing was sent
            ApprovalSubmissionError: Approval responses rejected; no commit
            TransitionCommitError: Commit failed; cache rolled back
        """
        self._require_state("submit", WorkflowState.CONFIGURING)
        resolver = self._require_resolver()
        self.validation_errors = []

        # Step 1: stage and reason
        missing = []
        if self.stage is None:
            missing.append("Please select a stage")
        if self.reason is None:
            missing.append("Please select a change reason")
        if missing:
            self.validation_errors = missing
            raise ValidationError("Stage and change reason are required", errors=missing)

        stage, reason = self.stage, self.reason

        # Step 2: custom fields
        fields = resolver.custom_fields_for(reason)
        report = self.custom_field_validator.validate(fields, self.custom_responses)
        if not report.is_valid:
            self.validation_errors = report.errors
            raise CustomFieldValidationError(
                "Please complete the required fields", errors=report.errors
            )

        # Step 3: approval gate
        approval_fields = resolver.approval_fields_between(stage, reason)
        if self.approval_gate.is_active(approval_fields):
            await self._submit_approval(approval_fields)

        # Step 4: commit
        request = TransitionRequest(
            new_status=stage.name,
            change_reason=reason.reason,
            stage_id=stage.id,
            reason_id=reason.id,
            notes_html=self.notes_html or None,
            attachments=list(self.uploads.attachments) or None,
            field_responses=self.custom_field_validator.format_responses(
                fields, self.custom_responses
            ),
        )
        commit = await self._commit(request)

        # Step 5: side effects
        self._transition(WorkflowState.SIDE_EFFECTS)
        queries = await self._run_side_effects()

        # Step 6: notification hand-off
        outcome = TransitionOutcome(
            state=WorkflowState.CLOSED,
            updated_project=commit.updated_project,
            queries=queries,
            audience=commit.audience,
        )

        if commit.notification_preview is not None and commit.audience is not None:
            self.notification = NotificationOrchestrator(
                self.api_client,
                self.project_id,
                commit.notification_preview,
                commit.audience,
                self.feedback,
                sender_name=self.sender_name,
            )
            self._transition(WorkflowState.NOTIFICATION_PENDING)
            outcome.state = WorkflowState.NOTIFICATION_PENDING
            self.logger.info(
                "Notification pending",
                extra={
                    "audience": commit.audience.value,
                    "dedupe_key": commit.notification_preview.dedupe_key
                }
            )
        else:
            self._transition(WorkflowState.CLOSED)
            self._discard()

        self.outcome = outcome
        return outcome

    async def _submit_approval(self, approval_fields: List[ApprovalFieldRule]) -> None:
        schema = self.approval_gate.build_schema(approval_fields)
        report = schema.validate_responses(self.approval_responses)
        if not report.is_valid:
            self.validation_errors = report.errors
            raise ApprovalValidationError(
                "Stage approval requirements not met", errors=report.errors
            )

        self._transition(WorkflowState.APPROVAL_PENDING)
        try:
            await self.api_client.submit_approval_responses(
                self.project_id, schema.to_responses(self.project_id, self.approval_responses)
            )
        except ApiError as e:
            error = ApprovalSubmissionError(
                f"Failed to save approval responses: {e.message}", details=e.details
            )
            self._fail(FailedStep.APPROVAL_SUBMISSION, error)
            raise error from e

    async def _commit(self, request: TransitionRequest) -> CommitResult:
        self._transition(WorkflowState.COMMITTING)

        snapshot = self.project_cache.snapshot(PROJECTS_KEY)
        self.project_cache.set_project_status(self.project_id, request.new_status)

        try:
            commit = await self.api_client.commit_transition(self.project_id, request)
        except ApiError as e:
            self.project_cache.restore(snapshot)
            error = TransitionCommitError(e.message, details=e.details)
            self._fail(FailedStep.COMMIT, error)
            raise error from e
        except Exception as e:
            self.project_cache.restore(snapshot)
            self.logger.exception("Unexpected error while committing transition")
            error = TransitionCommitError(
                "Stage change could not be confirmed", details={"reason": str(e)}
            )
            self._fail(FailedStep.COMMIT, error)
            raise error from e

        self.project_cache.invalidate(PROJECTS_KEY)
        self.project_cache.invalidate(project_queries_key(self.project_id))
        self.project_cache.invalidate(QUERY_COUNTS_KEY)

        self.logger.info(
            f"Stage changed to '{request.new_status}'",
            extra={"stage_id": request.stage_id, "reason_id": request.reason_id}
        )
        self.feedback.success("Success", "Stage updated successfully")
        return commit

    async def _run_side_effects(self) -> QueryBatchResult:
        try:
            result = await self.queries.persist(self.api_client, self.project_id)
        finally:
            self.uploads.reset()
            self.queries.clear()

        if result.attempted:
            self.project_cache.invalidate(project_queries_key(self.project_id))
            self.project_cache.invalidate(QUERY_COUNTS_KEY)

        if result.has_failures:
            self.feedback.warning(
                "Stage Updated",
                f"Stage was updated but {len(result.failed_ids)} of {result.attempted} "
                f"queries failed to create"
            )
        elif result.created_ids:
            self.feedback.success(
                "Queries Created",
                f"Stage updated and {len(result.created_ids)} queries created"
            )
        return result

    # =========================================================================
    # Notification
    # =========================================================================

    def _require_notification(self, action: str) -> NotificationOrchestrator:
        self._require_state(action, WorkflowState.NOTIFICATION_PENDING)
        return self.notification

    async def send_notification(self) -> NotificationSendResult:
        notification = self._require_notification("send a notification")
        try:
            result = await notification.send()
        except NotificationError as e:
            self.feedback.error_from(e)
            raise
        self.notification_outcome = notification.outcome
        self.close()
        return result

    async def suppress_notification(self) -> NotificationSendResult:
        notification = self._require_notification("suppress a notification")
        try:
            result = await notification.suppress()
        except NotificationError as e:
            self.feedback.error_from(e)
            raise
        self.notification_outcome = notification.outcome
        self.close()
        return result

    def skip_notification(self) -> None:
        notification = self._require_notification("skip a notification")
        notification.skip()
        self.notification_outcome = notification.outcome
        self.close()

    # =========================================================================
    # Close
    # =========================================================================

    def close(self) -> None:
        """
        Discard all workflow-local state

        A committed transition is unaffected. Closing mid-submit is refused.
        """
        if self.state == WorkflowState.CLOSED:
            return
        if self.state in BUSY_STATES:
            raise InvalidStateError(
                f"Cannot close while workflow is {self.state.value}",
                details={"state": self.state.value}
            )
        self._transition(WorkflowState.CLOSED)
        self._discard()
        self.logger.info("Workflow closed")

    def _discard(self) -> None:
        self._reset_choices()
        self.notification = None
        self.validation_errors = []

    @property
    def is_closed(self) -> bool:
        return self.state == WorkflowState.CLOSED

    # =========================================================================
    # View
    # =========================================================================

    def to_view(self) -> Dict[str, Any]:
        """Serializable snapshot for the host UI"""
        view: Dict[str, Any] = {
            "sessionId": self.session_id,
            "projectId": self.project_id,
            "currentStatus": self.current_status,
            "state": self.state.value,
            "stageId": self.stage.id if self.stage else None,
            "reasonId": self.reason.id if self.reason else None,
            "notesHtml": self.notes_html,
            "customResponses": self.custom_responses,
            "approvalResponses": self.approval_responses,
            "approvalActive": self.is_approval_active,
            "attachments": [a.to_wire() for a in self.uploads.attachments],
            "pendingQueries": [q.to_wire() for q in self.queries.items],
            "validationErrors": self.validation_errors,
            "lastFailure": self.last_failure.model_dump(mode="json") if self.last_failure else None,
            "notification": self.notification.to_view() if self.notification else None,
            "notificationOutcome": (
                self.notification_outcome.value if self.notification_outcome else None
            ),
        }

        if self.resolver is not None and self.state == WorkflowState.CONFIGURING:
            view["availableStages"] = [s.to_wire() for s in self.available_target_stages()]
            view["availableReasons"] = [r.to_wire() for r in self.available_reasons()]
            view["customFields"] = [f.to_wire() for f in self.custom_fields()]
            view["approvalFields"] = [f.to_wire() for f in self.approval_fields()]

        return view
