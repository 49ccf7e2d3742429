"""End-to-end tests for the workflow HTTP routes against a fake backend"""

import pytest
from fastapi.testclient import TestClient

from stagechange.main import create_app
from stagechange.services.session_registry import WorkflowRegistry
from tests.conftest import PROJECT_ID, PROJECTS, staff_preview

BASE = "/api/transition-workflows"


@pytest.fixture
def registry(fake_api, project_cache):
    return WorkflowRegistry(fake_api, project_cache=project_cache)


@pytest.fixture
def client(registry):
    with TestClient(create_app(registry=registry)) as test_client:
        yield test_client


def open_session(client, **body):
    response = client.post(BASE, json={"projectId": PROJECT_ID, **body})
    assert response.status_code == 201, response.text
    return response.json()["session"]


def feedback_titles(response):
    return [m["title"] for m in response.json()["feedback"]]


class TestOpen:
    def test_open_returns_available_stages(self, client):
        session = open_session(client)

        assert session["state"] == "CONFIGURING"
        assert session["currentStatus"] == "new"
        assert [s["name"] for s in session["availableStages"]] == ["review", "approved", "completed"]

    def test_second_open_for_same_project_conflicts(self, client):
        first = open_session(client)

        response = client.post(BASE, json={"projectId": PROJECT_ID})

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "CONFLICT"
        assert error["details"]["session_id"] == first["sessionId"]

    def test_unknown_session(self, client):
        response = client.get(f"{BASE}/missing")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "SESSION_NOT_FOUND"

    def test_correlation_id_is_echoed(self, client):
        response = client.get(f"{BASE}/missing", headers={"X-Correlation-Id": "corr-123"})
        assert response.headers["X-Correlation-Id"] == "corr-123"


class TestValidation:
    def test_malformed_body_uses_error_envelope(self, client):
        session = open_session(client)

        response = client.put(f"{BASE}/{session['sessionId']}/stage", json={})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_submit_without_choices_lists_every_error(self, client, fake_api):
        session = open_session(client)

        response = client.post(f"{BASE}/{session['sessionId']}/submit")

        assert response.status_code == 400
        assert response.json()["error"]["details"]["errors"] == [
            "Please select a stage", "Please select a change reason"
        ]
        assert "commit_transition" not in fake_api.call_names()

    def test_current_stage_rejected(self, client):
        session = open_session(client)
        response = client.put(f"{BASE}/{session['sessionId']}/stage", json={"stageId": "stg-new"})
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "The project is already in this stage"

    def test_missing_attachment_index(self, client):
        session = open_session(client)
        response = client.delete(f"{BASE}/{session['sessionId']}/attachments/3")
        assert response.status_code == 404


class TestFullCycle:
    def test_configure_submit_and_send(self, client, fake_api):
        fake_api.commit_response = {"notificationType": "staff", "notificationPreview": staff_preview()}
        session = open_session(client, senderEmail="sam.lee@firm.co.uk")
        url = f"{BASE}/{session['sessionId']}"

        assert client.put(f"{url}/stage", json={"stageId": "stg-review"}).status_code == 200
        response = client.put(f"{url}/reason", json={"reasonId": "rsn-client-requested"})
        assert response.json()["session"]["reasonId"] == "rsn-client-requested"

        response = client.post(
            f"{url}/attachments",
            files=[("files", ("letter.pdf", b"%PDF-1.4", "application/pdf"))]
        )
        assert response.json()["session"]["attachments"][0]["fileName"] == "letter.pdf"

        response = client.post(f"{url}/queries", json={"date": "2026-10-01", "description": "Missing invoice"})
        query = response.json()["session"]["pendingQueries"][0]
        client.patch(f"{url}/queries/{query['id']}", json={"moneyIn": "120.00"})

        response = client.post(f"{url}/submit")

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["outcome"]["state"] == "NOTIFICATION_PENDING"
        assert body["outcome"]["queriesCreated"] == 1
        assert feedback_titles(response) == ["Success", "Queries Created"]
        notification = body["session"]["notification"]
        assert notification["emailBody"] == "Hi Jane and Tom, the project moved to Review."

        created = next(c for c in fake_api.calls if c[0] == "create_query")[2]
        assert created["moneyIn"] == "120.00"
        assert created["date"] == "2026-10-01"

        response = client.post(f"{url}/notification/refine", json={"prompt": "Warmer"})
        assert fake_api.calls[-1][3].sender_name == "Sam"
        assert feedback_titles(response) == ["Email refined"]

        response = client.post(f"{url}/notification/send")

        assert response.status_code == 200
        assert response.json()["sent"] is True
        assert response.json()["session"]["state"] == "CLOSED"
        assert client.get(url).status_code == 404

    def test_commit_failure_keeps_session_open(self, client, fake_api, project_cache):
        session = open_session(client)
        url = f"{BASE}/{session['sessionId']}"
        client.put(f"{url}/stage", json={"stageId": "stg-review"})
        client.put(f"{url}/reason", json={"reasonId": "rsn-client-requested"})
        fake_api.fail_methods = {"commit_transition"}

        response = client.post(f"{url}/submit")

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "TRANSITION_COMMIT_ERROR"
        session = client.get(url).json()["session"]
        assert session["state"] == "CONFIGURING"
        assert session["lastFailure"]["step"] == "COMMIT"
        assert client.get("/api/projects").json() == PROJECTS

    def test_send_without_recipients_is_rejected(self, client, fake_api):
        fake_api.commit_response = {
            "notificationType": "client",
            "clientNotificationPreview": staff_preview(dedupeKey="proj-1:client:1"),
        }
        session = open_session(client)
        url = f"{BASE}/{session['sessionId']}"
        client.put(f"{url}/stage", json={"stageId": "stg-review"})
        client.put(f"{url}/reason", json={"reasonId": "rsn-client-requested"})
        client.post(f"{url}/submit")

        response = client.post(f"{url}/notification/send")
        assert response.status_code == 400

        response = client.post(f"{url}/notification/suppress")
        assert response.json()["suppress"] is True
        assert fake_api.sent[-1].dedupe_key == "proj-1:client:1"

    def test_close_releases_session(self, client):
        session = open_session(client)
        url = f"{BASE}/{session['sessionId']}"

        response = client.post(f"{url}/close")

        assert response.json()["session"]["state"] == "CLOSED"
        assert client.get(url).status_code == 404
        open_session(client)


class TestProjects:
    def test_cached_list_is_served_without_fetch(self, client, fake_api):
        response = client.get("/api/projects")
        assert response.json() == PROJECTS
        assert "list_projects" not in fake_api.call_names()

    def test_refresh_refetches(self, client, fake_api):
        client.get("/api/projects", params={"refresh": "true"})
        assert fake_api.call_names() == ["list_projects"]
