"""
Notification Orchestrator - Post-commit notification compose and send

Owns one backend-drafted NotificationPreview until it is resolved by exactly
one of Send, Suppress or Skip.

Channels:
    email - every audience; recipients need an email address
    push  - staff only; recipients need a push subscription
    sms   - off until enabled; recipients need a mobile number

Staff previews start with every eligible recipient selected on each channel.
Client previews start with nobody selected so contacting a client is always
a deliberate choice.
"""
from typing import Any, Dict, List, Optional, Set, Tuple

from ..domain.models import (
    NotificationPreview, NotificationSendData, NotificationSendResult,
    Recipient, DraftContext
)
from ..domain.enums import NotificationAudience, NotificationChannel, NotificationOutcome
from ..domain.errors import (
    ApiError, DraftingError, InvalidStateError, NotificationError, ValidationError
)
from ..services.feedback import FeedbackSink
from ..utils.text import extract_first_name, join_first_names
from ..utils.logger import get_logger

logger = get_logger(__name__)

RECIPIENT_NAMES_PLACEHOLDER = "{recipient_first_names}"
SMS_MAX_LENGTH = 160
NAMED_FIELDS = ("email_subject", "email_body")


def _nearest_occurrence(text: str, needle: str, offset: Optional[int]) -> Optional[int]:
    """Start of the occurrence of needle closest to offset (first one without an offset)"""
    starts = []
    start = text.find(needle)
    while start >= 0:
        starts.append(start)
        start = text.find(needle, start + 1)
    if not starts:
        return None
    if offset is None:
        return starts[0]
    return min(starts, key=lambda s: abs(s - offset))


class NotificationOrchestrator:
    """
    Compose, preview and send-or-suppress a stage change notification
    """

    def __init__(
        self,
        api_client,
        project_id: str,
        preview: NotificationPreview,
        audience: NotificationAudience,
        feedback: FeedbackSink,
        sender_name: Optional[str] = None
    ):
        self.api_client = api_client
        self.project_id = project_id
        self.preview = preview
        self.audience = audience
        self.feedback = feedback
        self.sender_name = sender_name

        self.outcome: Optional[NotificationOutcome] = None
        self.last_result: Optional[NotificationSendResult] = None

        # Draft
        self.email_subject = preview.email_subject
        self.email_body = preview.email_body
        self.push_title = preview.push_title or ""
        self.push_body = preview.push_body or ""
        self.sms_body = ""

        # Channels
        self._enabled: Dict[NotificationChannel, bool] = {
            NotificationChannel.EMAIL: True,
            NotificationChannel.PUSH: self.is_staff,
            NotificationChannel.SMS: False,
        }

        # Eligibility is fixed for the life of the preview
        self._eligible: Dict[NotificationChannel, List[Recipient]] = {
            NotificationChannel.EMAIL: [r for r in preview.recipients if r.has_email],
            NotificationChannel.PUSH: (
                [r for r in preview.recipients if r.has_push_subscription] if self.is_staff else []
            ),
            NotificationChannel.SMS: [r for r in preview.recipients if r.has_mobile],
        }

        self._selected: Dict[NotificationChannel, Set[str]] = {
            channel: (
                {r.recipient_id for r in eligible} if self.is_staff else set()
            )
            for channel, eligible in self._eligible.items()
        }

        self._last_resolved_names = ""
        self._name_offsets: Dict[str, Optional[int]] = {field: None for field in NAMED_FIELDS}
        self._resolve_recipient_names()

    # =========================================================================
    # State
    # =========================================================================

    @property
    def is_staff(self) -> bool:
        return self.audience == NotificationAudience.STAFF

    @property
    def dedupe_key(self) -> str:
        return self.preview.dedupe_key

    @property
    def is_resolved(self) -> bool:
        return self.outcome is not None

    def _ensure_open(self) -> None:
        if self.is_resolved:
            raise InvalidStateError(
                f"Notification already resolved ({self.outcome.value})",
                details={"dedupe_key": self.dedupe_key}
            )

    # =========================================================================
    # Channels & Recipients
    # =========================================================================

    def is_channel_enabled(self, channel: NotificationChannel) -> bool:
        return self._enabled[channel]

    def set_channel_enabled(self, channel: NotificationChannel, enabled: bool) -> None:
        self._ensure_open()
        if channel == NotificationChannel.PUSH and not self.is_staff and enabled:
            raise ValidationError("Push notifications are only available for staff")
        self._enabled[channel] = enabled

    def eligible_recipients(self, channel: NotificationChannel) -> List[Recipient]:
        return list(self._eligible[channel])

    def selected_recipient_ids(self, channel: NotificationChannel) -> List[str]:
        """Selected ids in preview order"""
        selected = self._selected[channel]
        return [r.recipient_id for r in self._eligible[channel] if r.recipient_id in selected]

    def toggle_recipient(self, channel: NotificationChannel, recipient_id: str) -> bool:
        """Flip one recipient on a channel; returns the new selection state"""
        self._ensure_open()
        if recipient_id not in {r.recipient_id for r in self._eligible[channel]}:
            raise ValidationError(
                f"Recipient {recipient_id} cannot receive {channel.value} notifications"
            )

        selected = self._selected[channel]
        if recipient_id in selected:
            selected.discard(recipient_id)
            now_selected = False
        else:
            selected.add(recipient_id)
            now_selected = True

        if channel == NotificationChannel.EMAIL:
            self._resolve_recipient_names()
        return now_selected

    def toggle_all(self, channel: NotificationChannel) -> None:
        """Select everyone eligible, or nobody when everyone already is"""
        self._ensure_open()
        eligible = self._eligible[channel]
        if len(self._selected[channel]) == len(eligible):
            self._selected[channel] = set()
        else:
            self._selected[channel] = {r.recipient_id for r in eligible}

        if channel == NotificationChannel.EMAIL:
            self._resolve_recipient_names()

    # =========================================================================
    # Draft & Personalization
    # =========================================================================

    def update_draft(
        self,
        email_subject: Optional[str] = None,
        email_body: Optional[str] = None,
        push_title: Optional[str] = None,
        push_body: Optional[str] = None,
        sms_body: Optional[str] = None
    ) -> None:
        self._ensure_open()
        if email_subject is not None:
            self._rebase_name_offset("email_subject", self.email_subject, email_subject)
            self.email_subject = email_subject
        if email_body is not None:
            self._rebase_name_offset("email_body", self.email_body, email_body)
            self.email_body = email_body
        if push_title is not None:
            self.push_title = push_title
        if push_body is not None:
            self.push_body = push_body
        if sms_body is not None:
            self.sms_body = sms_body[:SMS_MAX_LENGTH]

    @property
    def recipient_first_names(self) -> str:
        """First names of selected email recipients, else of every email-eligible one"""
        selected = self._selected[NotificationChannel.EMAIL]
        if selected:
            recipients = [r for r in self.preview.recipients if r.recipient_id in selected]
        else:
            recipients = self._eligible[NotificationChannel.EMAIL]
        return join_first_names(extract_first_name(r.name) for r in recipients)

    def _resolve_recipient_names(self) -> None:
        new_names = self.recipient_first_names
        old_names = self._last_resolved_names
        if new_names == old_names:
            return

        for field in NAMED_FIELDS:
            if RECIPIENT_NAMES_PLACEHOLDER not in getattr(self.preview, field):
                continue
            text, offset = self._swap_names(
                getattr(self, field), old_names, new_names, self._name_offsets[field]
            )
            setattr(self, field, text)
            self._name_offsets[field] = offset

        self._last_resolved_names = new_names

    @staticmethod
    def _swap_names(
        text: str, old_names: str, new_names: str, offset: Optional[int]
    ) -> Tuple[str, Optional[int]]:
        """
        Swap the previously resolved names (or the placeholder) for new ones

        The occurrence nearest the last insertion point is replaced, so the
        same names typed elsewhere by the operator stay as written.
        """
        replacement = new_names or RECIPIENT_NAMES_PLACEHOLDER
        if old_names:
            start = _nearest_occurrence(text, old_names, offset)
            if start is not None:
                return text[:start] + replacement + text[start + len(old_names):], start
        start = text.find(RECIPIENT_NAMES_PLACEHOLDER)
        if start >= 0:
            return text.replace(RECIPIENT_NAMES_PLACEHOLDER, replacement), start
        return text, offset

    def _rebase_name_offset(self, field: str, old_text: str, new_text: str) -> None:
        """Follow the resolved names through an operator edit of the field"""
        offset = self._name_offsets[field]
        if offset is None:
            return
        end = offset + len(self._last_resolved_names or RECIPIENT_NAMES_PLACEHOLDER)
        if new_text[:end] == old_text[:end]:
            return
        tail = old_text[offset:]
        if new_text.endswith(tail):
            self._name_offsets[field] = len(new_text) - len(tail)

    # =========================================================================
    # Send / Suppress / Skip
    # =========================================================================

    @property
    def has_enabled_channel(self) -> bool:
        return any(
            self._enabled[channel] and self._selected[channel]
            for channel in NotificationChannel
        )

    def build_send_data(self, suppress: bool = False) -> NotificationSendData:
        def active(channel: NotificationChannel) -> bool:
            return self._enabled[channel] and bool(self._selected[channel])

        return NotificationSendData(
            project_id=self.project_id,
            dedupe_key=self.dedupe_key,
            email_subject=self.email_subject,
            email_body=self.email_body,
            push_title=(self.push_title or None) if self.is_staff else None,
            push_body=(self.push_body or None) if self.is_staff else None,
            suppress=suppress,
            send_email=active(NotificationChannel.EMAIL),
            send_push=active(NotificationChannel.PUSH),
            send_sms=active(NotificationChannel.SMS),
            sms_body=self.sms_body or None,
            email_recipient_ids=self.selected_recipient_ids(NotificationChannel.EMAIL),
            push_recipient_ids=self.selected_recipient_ids(NotificationChannel.PUSH),
            sms_recipient_ids=self.selected_recipient_ids(NotificationChannel.SMS),
        )

    async def send(self) -> NotificationSendResult:
        """
        Send on every enabled channel that has recipients

        Raises:
            ValidationError: No channel is both enabled and populated
            NotificationError: Backend call failed; the step stays open
        """
        self._ensure_open()
        if not self.has_enabled_channel:
            raise ValidationError(
                "Select at least one recipient on an enabled channel, or suppress the notification"
            )
        result = await self._dispatch(suppress=False)
        self.outcome = NotificationOutcome.SENT

        if result.was_sent:
            who = "Staff has" if self.is_staff else "Client contacts have"
            self.feedback.success("Notification sent", f"{who} been notified of the stage change")
        return result

    async def suppress(self) -> NotificationSendResult:
        """Record that the notification was reviewed and deliberately not sent"""
        self._ensure_open()
        result = await self._dispatch(suppress=True)
        self.outcome = NotificationOutcome.SUPPRESSED
        return result

    def skip(self) -> None:
        """Discard the preview without telling the backend"""
        self._ensure_open()
        self.outcome = NotificationOutcome.SKIPPED
        logger.info(
            "Notification skipped",
            extra={"project_id": self.project_id, "dedupe_key": self.dedupe_key}
        )

    async def _dispatch(self, suppress: bool) -> NotificationSendResult:
        data = self.build_send_data(suppress=suppress)
        try:
            result = await self.api_client.send_notification(self.project_id, self.audience, data)
        except ApiError as e:
            logger.error(
                f"Notification {'suppress' if suppress else 'send'} failed: {e.message}",
                extra={
                    "project_id": self.project_id,
                    "dedupe_key": self.dedupe_key,
                    "audience": self.audience.value
                }
            )
            raise NotificationError(
                e.message,
                details={"dedupe_key": self.dedupe_key, "suppress": suppress}
            ) from e

        self.last_result = result
        logger.info(
            f"Notification {'suppressed' if suppress else 'sent'}",
            extra={
                "project_id": self.project_id,
                "dedupe_key": self.dedupe_key,
                "audience": self.audience.value
            }
        )
        return result

    # =========================================================================
    # Drafting assistance
    # =========================================================================

    def draft_context(self) -> DraftContext:
        return DraftContext(
            recipient_names=self.recipient_first_names or None,
            sender_name=self.sender_name or None,
            client_company=self.preview.metadata.client_name or None,
        )

    async def refine(self, prompt: str) -> None:
        """Ask the drafting service to revise subject/body per the prompt"""
        self._ensure_open()
        if not prompt or not prompt.strip():
            raise ValidationError("Describe how the email should be changed")

        try:
            draft = await self.api_client.refine_draft_text(
                self.project_id, prompt, self.email_subject, self.email_body, self.draft_context()
            )
        except ApiError as e:
            raise DraftingError(f"Unable to refine email: {e.message}") from e

        if draft.subject:
            self.email_subject = draft.subject
        if draft.body:
            self.email_body = draft.body

    async def apply_voice_draft(
        self,
        audio: bytes,
        filename: str = "recording.webm",
        content_type: str = "audio/webm"
    ) -> Optional[str]:
        """Draft from recorded audio; returns the transcription when provided"""
        self._ensure_open()
        try:
            draft = await self.api_client.transcribe_and_draft(
                self.project_id,
                audio,
                existing_subject=self.email_subject,
                existing_body=self.email_body,
                context=self.draft_context(),
                filename=filename,
                content_type=content_type,
            )
        except ApiError as e:
            raise DraftingError(f"Unable to draft from recording: {e.message}") from e

        if draft.subject:
            self.email_subject = draft.subject
        if draft.body:
            self.email_body = draft.body
        if self.is_staff:
            if draft.push_title:
                self.push_title = draft.push_title
            if draft.push_body:
                self.push_body = draft.push_body
        return draft.transcription

    # =========================================================================
    # View
    # =========================================================================

    def to_view(self) -> Dict[str, Any]:
        """Serializable snapshot for the host UI"""
        channels = {}
        for channel in NotificationChannel:
            if channel == NotificationChannel.PUSH and not self.is_staff:
                continue
            channels[channel.value] = {
                "enabled": self._enabled[channel],
                "eligibleRecipientIds": [r.recipient_id for r in self._eligible[channel]],
                "selectedRecipientIds": self.selected_recipient_ids(channel),
            }

        return {
            "audience": self.audience.value,
            "dedupeKey": self.dedupe_key,
            "emailSubject": self.email_subject,
            "emailBody": self.email_body,
            "pushTitle": self.push_title if self.is_staff else None,
            "pushBody": self.push_body if self.is_staff else None,
            "smsBody": self.sms_body,
            "recipients": [r.to_wire() for r in self.preview.recipients],
            "channels": channels,
            "recipientFirstNames": self.recipient_first_names,
            "hasEnabledChannel": self.has_enabled_channel,
            "metadata": self.preview.metadata.to_wire(),
            "outcome": self.outcome.value if self.outcome else None,
        }
