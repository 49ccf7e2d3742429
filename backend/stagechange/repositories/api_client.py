"""Stage Change API Client - Backend request/response contracts over HTTP"""
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..domain.models import (
    StageChangeConfig, TransitionRequest, ApprovalFieldResponse, CommitResult,
    NotificationPreview, NotificationSendData, NotificationSendResult,
    UploadTarget, DraftContext, DraftText, VoiceDraft
)
from ..domain.enums import NotificationAudience
from ..domain.errors import ApiError
from ..config.settings import settings
from ..utils.logger import get_logger, get_correlation_id

logger = get_logger(__name__)


class StageChangeApiClient:
    """
    Async client for the case-management backend

    Every method maps one consumed contract. Non-2xx responses and transport
    failures raise ApiError carrying the backend's message when it has one.
    """

    NOTIFICATION_PATHS = {
        NotificationAudience.STAFF: "send-stage-change-notification",
        NotificationAudience.CLIENT: "send-client-value-notification",
    }

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.api_token = api_token if api_token is not None else settings.api_token
        self.timeout = timeout or settings.api_timeout_seconds
        self._transport = transport

    # =========================================================================
    # Plumbing
    # =========================================================================

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or self.timeout,
            transport=self._transport
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        correlation_id = get_correlation_id()
        if correlation_id:
            headers["X-Correlation-Id"] = correlation_id
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        **kwargs: Any
    ) -> Any:
        try:
            async with self._client() as client:
                response = await client.request(
                    method, path, json=json, headers=self._headers(), **kwargs
                )
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiError(f"Could not reach the server: {e}") from e

        if response.status_code >= 400:
            message = self._error_message(response)
            logger.warning(
                f"{method} {path} returned {response.status_code}: {message}",
                extra={"status_code": response.status_code}
            )
            raise ApiError(message, status_code=response.status_code)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            logger.warning(
                f"{method} {path} returned {response.status_code} with a non-JSON body",
                extra={"status_code": response.status_code}
            )
            raise ApiError(
                "The server returned an unexpected response",
                status_code=response.status_code
            ) from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"Request failed with status {response.status_code}"
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return error["message"]
            if body.get("message"):
                return body["message"]
            if isinstance(error, str):
                return error
        return f"Request failed with status {response.status_code}"

    # =========================================================================
    # Projects & Configuration
    # =========================================================================

    async def list_projects(self) -> List[Dict[str, Any]]:
        """Project list backing the local cache"""
        data = await self._request("GET", "/api/projects")
        return data if isinstance(data, list) else []

    async def get_stage_change_config(self, project_id: str) -> StageChangeConfig:
        """Fetch stages, reasons, approvals and approval fields in one call"""
        data = await self._request("GET", f"/api/projects/{project_id}/stage-change-config")
        return StageChangeConfig.model_validate(data)

    # =========================================================================
    # Transition
    # =========================================================================

    async def submit_approval_responses(
        self,
        project_id: str,
        responses: List[ApprovalFieldResponse]
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"/api/projects/{project_id}/stage-approval-responses",
            json={"responses": [r.to_wire() for r in responses]}
        )

    async def commit_transition(self, project_id: str, request: TransitionRequest) -> CommitResult:
        """
        PATCH the project status

        The backend answers with the updated project and, when it wants the
        operator to decide on a notification, a preview tagged with its audience.
        """
        data = await self._request(
            "PATCH", f"/api/projects/{project_id}/status", json=request.to_wire()
        )
        return self.parse_commit_response(data)

    @staticmethod
    def parse_commit_response(data: Dict[str, Any]) -> CommitResult:
        project = data.get("project") or {
            k: v for k, v in data.items()
            if k not in ("notificationPreview", "clientNotificationPreview", "notificationType")
        }

        audience: Optional[NotificationAudience] = None
        raw_preview: Optional[Dict[str, Any]] = None
        notification_type = data.get("notificationType")

        if notification_type == NotificationAudience.CLIENT.value:
            audience = NotificationAudience.CLIENT
            raw_preview = data.get("clientNotificationPreview")
        elif notification_type == NotificationAudience.STAFF.value:
            audience = NotificationAudience.STAFF
            raw_preview = data.get("notificationPreview")

        if audience is None or not raw_preview:
            return CommitResult(updated_project=project)

        try:
            preview = NotificationPreview.model_validate(raw_preview)
        except PydanticValidationError as e:
            # Commit already succeeded; only the notification step is dropped
            logger.warning(
                f"Ignoring unreadable {audience.value} notification preview: {e.error_count()} error(s)",
                extra={"audience": audience.value, "project_id": project.get("id")}
            )
            return CommitResult(updated_project=project)

        return CommitResult(
            updated_project=project,
            notification_preview=preview,
            audience=audience
        )

    async def create_query(self, project_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", f"/api/projects/{project_id}/queries", json=payload)

    # =========================================================================
    # Attachments
    # =========================================================================

    async def request_upload_target(
        self,
        project_id: str,
        file_name: str,
        file_type: str,
        file_size: int
    ) -> UploadTarget:
        data = await self._request(
            "POST",
            f"/api/projects/{project_id}/stage-change-attachments/upload-url",
            json={"fileName": file_name, "fileType": file_type, "fileSize": file_size}
        )
        return UploadTarget.model_validate(data)

    async def upload_bytes(self, upload_url: str, content: bytes, content_type: str) -> None:
        """PUT raw bytes to a one-time upload URL"""
        try:
            async with self._client(timeout=settings.upload_timeout_seconds) as client:
                response = await client.put(
                    upload_url, content=content, headers={"Content-Type": content_type}
                )
        except httpx.HTTPError as e:
            raise ApiError(f"Upload transfer failed: {e}") from e

        if response.status_code >= 400:
            raise ApiError(
                f"Upload transfer failed with status {response.status_code}",
                status_code=response.status_code
            )

    # =========================================================================
    # Notifications
    # =========================================================================

    async def send_notification(
        self,
        project_id: str,
        audience: NotificationAudience,
        data: NotificationSendData
    ) -> NotificationSendResult:
        """Send or suppress; the dedupe key travels inside data"""
        payload = data.to_wire()
        if audience == NotificationAudience.CLIENT:
            for key in ("pushTitle", "pushBody", "sendPush", "pushRecipientIds"):
                payload.pop(key, None)

        result = await self._request(
            "POST",
            f"/api/projects/{project_id}/{self.NOTIFICATION_PATHS[audience]}",
            json=payload
        )
        parsed = NotificationSendResult.model_validate(result or {})
        if data.suppress:
            parsed.suppress = True
        return parsed

    # =========================================================================
    # Drafting
    # =========================================================================

    async def refine_draft_text(
        self,
        project_id: str,
        prompt: str,
        current_subject: str,
        current_body: str,
        context: Optional[DraftContext] = None
    ) -> DraftText:
        payload: Dict[str, Any] = {
            "projectId": project_id,
            "prompt": prompt,
            "currentSubject": current_subject,
            "currentBody": current_body,
        }
        if context is not None:
            payload.update(context.to_wire())
        data = await self._request("POST", "/api/ai/refine-email", json=payload)
        return DraftText.model_validate(data)

    async def transcribe_and_draft(
        self,
        project_id: str,
        audio: bytes,
        existing_subject: str = "",
        existing_body: str = "",
        context: Optional[DraftContext] = None,
        filename: str = "recording.webm",
        content_type: str = "audio/webm"
    ) -> VoiceDraft:
        form: Dict[str, str] = {
            "projectId": project_id,
            "existingSubject": existing_subject,
            "existingBody": existing_body,
        }
        if context is not None:
            form.update({k: str(v) for k, v in context.to_wire().items()})
        data = await self._request(
            "POST",
            "/api/ai/audio/stage-notification",
            data=form,
            files={"audio": (filename, audio, content_type)}
        )
        return VoiceDraft.model_validate(data)
