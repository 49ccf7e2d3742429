"""
Pytest Configuration and Fixtures

Shared fixtures: a sample stage change configuration, an in-process fake of
the case-management backend, and workflow builders.
"""

import os

os.environ.setdefault("LOG_TO_FILE", "false")

import copy
from typing import Any, Dict, List, Optional

import pytest

from stagechange.domain.models import (
    StageChangeConfig, UploadTarget, NotificationSendResult, DraftText, VoiceDraft
)
from stagechange.domain.errors import ApiError
from stagechange.engine.transition_workflow import TransitionWorkflow
from stagechange.repositories.api_client import StageChangeApiClient
from stagechange.repositories.config_repo import StageConfigRepository
from stagechange.repositories.project_cache import ProjectCache, PROJECTS_KEY
from stagechange.services.feedback import CollectingFeedbackSink


PROJECT_ID = "proj-1"


CONFIG_BUNDLE: Dict[str, Any] = {
    "projectTypeId": "type-accounts",
    "currentStatus": "new",
    "stages": [
        {"id": "stg-completed", "name": "completed", "order": 4,
         "validReasonIds": ["rsn-signed-off", "rsn-client-requested"]},
        {"id": "stg-new", "name": "new", "order": 1, "validReasonIds": ["rsn-reopened"]},
        {"id": "stg-review", "name": "review", "order": 2,
         "validReasonIds": ["rsn-client-requested", "rsn-internal-review", "rsn-ghost"]},
        {"id": "stg-approved", "name": "approved", "order": 3,
         "validReasonIds": ["rsn-signed-off", "rsn-escalated"],
         "stageApprovalId": "apr-final"},
    ],
    "reasons": [
        {"id": "rsn-client-requested", "reason": "client_requested"},
        {"id": "rsn-reopened", "reason": "reopened"},
        {"id": "rsn-signed-off", "reason": "signed_off"},
        {"id": "rsn-escalated", "reason": "escalated", "stageApprovalId": "apr-escalation"},
        {
            "id": "rsn-internal-review",
            "reason": "internal_review",
            "customFields": [
                {"id": "cf-urgent", "fieldName": "Urgent", "fieldType": "boolean",
                 "isRequired": True, "order": 3},
                {"id": "cf-hours", "fieldName": "Hours spent", "fieldType": "number",
                 "isRequired": True, "order": 1},
                {"id": "cf-areas", "fieldName": "Areas", "fieldType": "multi_select",
                 "isRequired": True, "options": ["VAT", "Payroll"], "order": 2},
                {"id": "cf-notes", "fieldName": "Reviewer notes", "fieldType": "long_text",
                 "isRequired": False, "order": 4},
            ],
        },
    ],
    "stageApprovals": [
        {"id": "apr-final", "name": "Final sign-off"},
        {"id": "apr-escalation", "name": "Escalation"},
    ],
    "stageApprovalFields": [
        {"id": "af-confirmed", "stageApprovalId": "apr-final", "fieldName": "Confirmed",
         "fieldType": "boolean", "isRequired": True, "expectedValueBoolean": True, "order": 1},
        {"id": "af-manager", "stageApprovalId": "apr-escalation", "fieldName": "Manager",
         "fieldType": "short_text", "isRequired": True, "order": 1},
    ],
}


PROJECTS: List[Dict[str, Any]] = [
    {"id": PROJECT_ID, "description": "Year end accounts", "currentStatus": "new"},
    {"id": "proj-2", "description": "VAT return", "currentStatus": "review"},
]


def staff_preview(**overrides: Any) -> Dict[str, Any]:
    preview = {
        "emailSubject": "Stage changed for Year end accounts",
        "emailBody": "Hi {recipient_first_names}, the project moved to Review.",
        "pushTitle": "Stage changed",
        "pushBody": "Year end accounts moved to Review",
        "dedupeKey": "proj-1:review:abc123",
        "recipients": [
            {"userId": "u-1", "name": "Jane Doe", "email": "jane@firm.co.uk",
             "hasPushSubscription": True, "mobile": "07700900001"},
            {"userId": "u-2", "name": "Okafor, Tom", "email": "tom@firm.co.uk",
             "hasPushSubscription": False},
            {"userId": "u-3", "name": "Priya Shah", "hasPushSubscription": True},
        ],
        "metadata": {"projectName": "Year end accounts", "clientName": "Acme Ltd",
                     "oldStageName": "New", "newStageName": "Review"},
    }
    preview.update(overrides)
    return preview


def client_preview(**overrides: Any) -> Dict[str, Any]:
    preview = {
        "emailSubject": "Update for {recipient_first_names}",
        "emailBody": "Dear {recipient_first_names}, we have started reviewing your accounts.",
        "dedupeKey": "proj-1:client:def456",
        "recipients": [
            {"personId": "p-1", "fullName": "SMITH, Anna Marie", "email": "anna@acme.co.uk",
             "mobile": "07700900002"},
            {"personId": "p-2", "fullName": "Ben Carter", "email": "ben@acme.co.uk",
             "receiveNotifications": False},
            {"personId": "p-3", "fullName": "Cara Jones", "mobile": "07700900003"},
        ],
        "metadata": {"projectName": "Year end accounts", "clientName": "Acme Ltd"},
    }
    preview.update(overrides)
    return preview


class FakeStageChangeApi:
    """
    In-process stand-in for StageChangeApiClient

    Records every call in order. Methods named in fail_methods raise ApiError;
    individual uploads and queries can be failed by file name / description.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = copy.deepcopy(config or CONFIG_BUNDLE)
        self.projects = copy.deepcopy(PROJECTS)
        self.commit_response: Dict[str, Any] = {}
        self.calls: List[tuple] = []
        self.fail_methods: set = set()
        self.fail_uploads: set = set()
        self.fail_query_descriptions: set = set()
        self.sent: List[Any] = []

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name,) + args)
        if name in self.fail_methods:
            raise ApiError(f"{name} failed", status_code=500)

    def call_names(self) -> List[str]:
        return [c[0] for c in self.calls]

    async def list_projects(self):
        self._record("list_projects")
        return copy.deepcopy(self.projects)

    async def get_stage_change_config(self, project_id):
        self._record("get_stage_change_config", project_id)
        return StageChangeConfig.model_validate(self.config)

    async def submit_approval_responses(self, project_id, responses):
        self._record("submit_approval_responses", project_id, responses)
        return {"success": True}

    async def commit_transition(self, project_id, request):
        self._record("commit_transition", project_id, request)
        response = {"project": {"id": project_id, "currentStatus": request.new_status}}
        response.update(self.commit_response)
        return StageChangeApiClient.parse_commit_response(response)

    async def create_query(self, project_id, payload):
        self._record("create_query", project_id, payload)
        if payload.get("description") in self.fail_query_descriptions:
            raise ApiError("Query could not be created", status_code=500)
        return {"id": f"remote-{len(self.calls)}"}

    async def request_upload_target(self, project_id, file_name, file_type, file_size):
        self._record("request_upload_target", project_id, file_name, file_type, file_size)
        if file_name in self.fail_uploads:
            raise ApiError("Upload URL could not be issued", status_code=500)
        return UploadTarget(
            url=f"https://storage.test/upload/{file_name}",
            object_path=f"/objects/{project_id}/{file_name}"
        )

    async def upload_bytes(self, upload_url, content, content_type):
        self._record("upload_bytes", upload_url, content_type)

    async def send_notification(self, project_id, audience, data):
        self._record("send_notification", project_id, audience, data)
        self.sent.append(data)
        return NotificationSendResult(
            success=True, sent=not data.suppress, suppress=data.suppress,
            message="Notification suppressed" if data.suppress else "Notification sent"
        )

    async def refine_draft_text(self, project_id, prompt, current_subject, current_body, context=None):
        self._record("refine_draft_text", project_id, prompt, context)
        return DraftText(subject=f"{current_subject} (refined)", body="")

    async def transcribe_and_draft(self, project_id, audio, existing_subject="", existing_body="",
                                   context=None, filename="recording.webm", content_type="audio/webm"):
        self._record("transcribe_and_draft", project_id, filename)
        return VoiceDraft(
            subject="Voice subject", body="Voice body",
            push_title="Voice push", push_body="", transcription="hello there"
        )


@pytest.fixture
def fake_api() -> FakeStageChangeApi:
    return FakeStageChangeApi()


@pytest.fixture
def project_cache() -> ProjectCache:
    cache = ProjectCache()
    cache.set_data(PROJECTS_KEY, copy.deepcopy(PROJECTS))
    return cache


@pytest.fixture
def feedback() -> CollectingFeedbackSink:
    return CollectingFeedbackSink()


@pytest.fixture
def config() -> StageChangeConfig:
    return StageChangeConfig.model_validate(CONFIG_BUNDLE)


@pytest.fixture
def make_workflow(fake_api, project_cache, feedback):
    """Build an unopened workflow wired to the fake backend"""

    def _make(**kwargs: Any) -> TransitionWorkflow:
        return TransitionWorkflow(
            kwargs.pop("project_id", PROJECT_ID),
            fake_api,
            StageConfigRepository(fake_api, stale_seconds=300),
            project_cache,
            feedback=feedback,
            **kwargs
        )

    return _make
