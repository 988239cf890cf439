"""
Tests for the HTTP API layer.

Services are replaced through ``app.dependency_overrides`` so these tests
cover routing, request validation, error mapping and rate limiting only.
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from scopeflow.auth import Identity, get_identity_provider
from scopeflow.database.models import ChangeOrderDB, ProjectDB, ProjectFormDB, ProposalDB, TimelineDB
from scopeflow.errors import (
    AccessDeniedError,
    CompletionOverloadedError,
    CompletionRateLimitedError,
    CompletionServiceError,
    CompletionTimeoutError,
    CompletionUnavailableError,
    ConflictError,
    FormClosedError,
    NotFoundError,
    ValidationError,
)
from scopeflow.main import app
from scopeflow.services.approval import ShareResult, get_approval_service
from scopeflow.services.change_orders import get_change_order_service
from scopeflow.services.intake_forms import FormLink, get_intake_form_service
from scopeflow.services.projects import get_project_service
from scopeflow.services.proposals import ProposalComparison, get_proposal_service
from scopeflow.services.rate_limiter import InMemoryRateLimiter, get_rate_limiter
from scopeflow.services.scope_chat import ChatTurn, get_scope_chat_service
from scopeflow.services.timelines import get_timeline_service

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
OWNER = Identity(user_id="user-owner", memberships={"org-1": "owner"})


def provide(value):
    def dependency():
        return value
    return dependency


@pytest.fixture
def services():
    """Mocked services wired into the app."""
    mocks = {
        get_timeline_service: AsyncMock(),
        get_scope_chat_service: AsyncMock(),
        get_proposal_service: AsyncMock(),
        get_change_order_service: AsyncMock(),
        get_approval_service: AsyncMock(),
        get_project_service: AsyncMock(),
        get_intake_form_service: AsyncMock(),
    }
    limiter = InMemoryRateLimiter()
    provider = AsyncMock()
    provider.get_identity = AsyncMock(
        side_effect=lambda token: OWNER if token == "owner-token" else None
    )

    for dependency, mock in mocks.items():
        app.dependency_overrides[dependency] = provide(mock)
    app.dependency_overrides[get_rate_limiter] = provide(limiter)
    app.dependency_overrides[get_identity_provider] = provide(provider)

    yield type("Services", (), {
        "timelines": mocks[get_timeline_service],
        "chat": mocks[get_scope_chat_service],
        "proposals": mocks[get_proposal_service],
        "change_orders": mocks[get_change_order_service],
        "approval": mocks[get_approval_service],
        "projects": mocks[get_project_service],
        "forms": mocks[get_intake_form_service],
        "limiter": limiter,
    })

    app.dependency_overrides.clear()


@pytest.fixture
def client(services):
    return TestClient(app, raise_server_exceptions=False)


def make_proposal(**overrides):
    values = dict(
        id="proposal-1",
        session_id="session-1",
        base_timeline_id="timeline-1",
        summary="Add blog section",
        delta_cost=Decimal("5000"),
        delta_weeks=Decimal("2"),
        proposal_data={"changes": ["Blog"], "reasoning": "Templates"},
        status="draft",
        created_at=NOW,
    )
    values.update(overrides)
    return ProposalDB(**values)


def make_change_order(**overrides):
    values = dict(
        id="co-1",
        project_id="project-1",
        proposal_id="proposal-1",
        client_email="clara@example.com",
        client_notes=None,
        status="pending_approval",
        created_at=NOW,
    )
    values.update(overrides)
    return ChangeOrderDB(**values)


AUTH = {"Authorization": "Bearer owner-token"}


# ============================================================
# SHARED TIMELINE
# ============================================================

class TestSharedTimeline:

    def test_get_timeline(self, client, services):
        services.timelines.get_public_timeline.return_value = {
            "timeline": {"id": "timeline-1", "total_weeks": 12.0},
            "project": {"name": "Marketing Site"},
        }

        response = client.get("/api/timelines/tok")

        assert response.status_code == 200
        assert response.json()["project"]["name"] == "Marketing Site"
        services.timelines.get_public_timeline.assert_awaited_once_with("tok")

    def test_unknown_token_is_404(self, client, services):
        services.timelines.get_public_timeline.side_effect = NotFoundError("Timeline not found or not shared")

        response = client.get("/api/timelines/nope")

        assert response.status_code == 404
        assert response.json() == {"error": "Timeline not found or not shared"}

    def test_unapproved_is_403(self, client, services):
        services.timelines.get_public_timeline.side_effect = AccessDeniedError("Timeline is not yet approved")

        response = client.get("/api/timelines/tok")

        assert response.status_code == 403
        assert response.json() == {"error": "Timeline is not yet approved"}


# ============================================================
# CHAT
# ============================================================

class TestChat:

    def test_chat_turn(self, client, services):
        services.chat.converse.return_value = ChatTurn(
            assistant_text="Happy to help.", proposal=None, session_id="session-1"
        )

        response = client.post("/api/timelines/tok/chat", json={"message": "Hello"})

        assert response.status_code == 200
        assert response.json() == {"message": "Happy to help.", "proposal": None, "sessionId": "session-1"}
        services.chat.converse.assert_awaited_once_with("tok", "Hello", client_email=None)

    def test_chat_turn_with_proposal(self, client, services):
        services.chat.converse.return_value = ChatTurn(
            assistant_text="Here is a proposal.", proposal=make_proposal(), session_id="session-1"
        )

        response = client.post(
            "/api/timelines/tok/chat",
            json={"message": "Add a blog", "clientEmail": "clara@example.com"},
        )

        proposal = response.json()["proposal"]
        assert proposal["id"] == "proposal-1"
        assert proposal["deltaCost"] == 5000.0
        assert proposal["deltaWeeks"] == 2.0
        assert proposal["status"] == "draft"
        services.chat.converse.assert_awaited_once_with("tok", "Add a blog", client_email="clara@example.com")

    @pytest.mark.parametrize("body", [
        {"message": ""},
        {"message": "   "},
        {"message": "x" * 5001},
        {},
        {"message": "Hi", "clientEmail": "not-an-email"},
    ])
    def test_invalid_body_is_400(self, client, services, body):
        response = client.post("/api/timelines/tok/chat", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request data"
        assert "details" in response.json()
        services.chat.converse.assert_not_awaited()

    def test_eleventh_request_is_rate_limited(self, client, services):
        services.chat.converse.return_value = ChatTurn(
            assistant_text="ok", proposal=None, session_id="session-1"
        )

        statuses = [
            client.post("/api/timelines/tok/chat", json={"message": f"m{i}"}).status_code
            for i in range(10)
        ]
        limited = client.post("/api/timelines/tok/chat", json={"message": "one more"})

        assert statuses == [200] * 10
        assert limited.status_code == 429
        assert limited.json()["error"] == "Rate limit exceeded. Please try again later."
        assert int(limited.headers["Retry-After"]) >= 1
        assert services.chat.converse.await_count == 10

    def test_rate_limit_is_per_client_ip(self, client, services):
        services.chat.converse.return_value = ChatTurn(
            assistant_text="ok", proposal=None, session_id="session-1"
        )

        for i in range(10):
            client.post("/api/timelines/tok/chat", json={"message": f"m{i}"},
                        headers={"X-Forwarded-For": "203.0.113.1"})
        other = client.post("/api/timelines/tok/chat", json={"message": "hi"},
                            headers={"X-Forwarded-For": "203.0.113.2"})

        assert other.status_code == 200

    def test_provider_rate_limit(self, client, services):
        services.chat.converse.side_effect = CompletionRateLimitedError(retry_after=30)

        response = client.post("/api/timelines/tok/chat", json={"message": "Hello"})

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "30"
        assert "too many requests" in response.json()["error"]

    def test_provider_overloaded(self, client, services):
        services.chat.converse.side_effect = CompletionOverloadedError()

        response = client.post("/api/timelines/tok/chat", json={"message": "Hello"})

        assert response.status_code == 503
        assert "overloaded" in response.json()["error"]

    def test_provider_timeout(self, client, services):
        services.chat.converse.side_effect = CompletionTimeoutError()

        response = client.post("/api/timelines/tok/chat", json={"message": "Hello"})

        assert response.status_code == 503
        assert "took too long" in response.json()["error"]

    def test_provider_not_configured(self, client, services):
        services.chat.converse.side_effect = CompletionUnavailableError()

        response = client.post("/api/timelines/tok/chat", json={"message": "Hello"})

        assert response.status_code == 503
        assert response.json() == {"error": "AI service is not configured. Please contact support."}

    def test_provider_error_details_are_hidden(self, client, services):
        services.chat.converse.side_effect = CompletionServiceError("upstream said: invalid api key sk-123")

        response = client.post("/api/timelines/tok/chat", json={"message": "Hello"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to process chat message"}

    def test_unexpected_error_is_500(self, client, services):
        services.chat.converse.side_effect = RuntimeError("boom")

        response = client.post("/api/timelines/tok/chat", json={"message": "Hello"})

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}

    def test_history(self, client, services):
        services.chat.get_history.return_value = {
            "sessionId": None, "session": None, "messages": [], "proposals": [],
        }

        response = client.get("/api/timelines/tok/chat")

        assert response.status_code == 200
        assert response.json()["messages"] == []


# ============================================================
# PROPOSALS AND CHANGE ORDERS
# ============================================================

class TestProposalsAndChangeOrders:

    def test_comparison(self, client, services):
        base = TimelineDB(id="timeline-1", total_weeks=Decimal("12"), total_cost=Decimal("72000"))
        services.proposals.compare.return_value = ProposalComparison.build(make_proposal(), base)

        response = client.get("/api/timelines/tok/proposals/proposal-1/comparison")

        body = response.json()
        assert response.status_code == 200
        assert body["proposed"]["totalWeeks"] == 14.0
        assert body["proposed"]["totalCost"] == 77000.0
        assert body["delta"]["costDisplay"] == "+$5,000"

    def test_request_change_order(self, client, services):
        services.change_orders.request_change_order.return_value = make_change_order()

        response = client.post("/api/change-orders", json={
            "proposalId": "proposal-1",
            "clientEmail": "clara@example.com",
            "clientNotes": "Start in March",
            "shareToken": "tok",
        })

        assert response.status_code == 200
        assert response.json()["id"] == "co-1"
        assert response.json()["status"] == "pending_approval"
        services.change_orders.request_change_order.assert_awaited_once_with(
            proposal_id="proposal-1",
            client_email="clara@example.com",
            share_token="tok",
            client_notes="Start in March",
        )

    def test_change_order_requires_share_token(self, client, services):
        response = client.post("/api/change-orders", json={
            "proposalId": "proposal-1",
            "clientEmail": "clara@example.com",
        })

        assert response.status_code == 400
        services.change_orders.request_change_order.assert_not_awaited()

    def test_duplicate_change_order_is_400(self, client, services):
        services.change_orders.request_change_order.side_effect = ConflictError(
            "A change order for this proposal already exists"
        )

        response = client.post("/api/change-orders", json={
            "proposalId": "proposal-1", "clientEmail": "clara@example.com", "shareToken": "tok",
        })

        assert response.status_code == 400
        assert response.json() == {"error": "A change order for this proposal already exists"}

    def test_wrong_token_is_403(self, client, services):
        services.change_orders.request_change_order.side_effect = AccessDeniedError("Invalid access token")

        response = client.post("/api/change-orders", json={
            "proposalId": "proposal-1", "clientEmail": "clara@example.com", "shareToken": "wrong",
        })

        assert response.status_code == 403
        assert response.json() == {"error": "Invalid access token"}


# ============================================================
# ORGANIZATION ROUTES
# ============================================================

class TestOrganizationRoutes:

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer unknown"}, {"Authorization": "Basic abc"}])
    def test_requires_authentication(self, client, services, headers):
        response = client.post("/api/projects/project-1/approve-timeline", headers=headers)

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        services.approval.approve_timeline.assert_not_awaited()

    def test_approve_timeline(self, client, services):
        response = client.post("/api/projects/project-1/approve-timeline", headers=AUTH)

        assert response.status_code == 200
        services.approval.approve_timeline.assert_awaited_once_with("project-1", OWNER)

    def test_share_timeline(self, client, services):
        services.approval.share_timeline.return_value = ShareResult(
            share_token="abc", share_url="http://localhost:3000/timeline/abc", is_new_share=True
        )

        response = client.post("/api/projects/project-1/share-timeline", headers=AUTH)

        body = response.json()
        assert body["shareToken"] == "abc"
        assert body["shareUrl"] == "http://localhost:3000/timeline/abc"
        assert "Email notification sent" in body["message"]

    def test_share_before_approval(self, client, services):
        services.approval.share_timeline.side_effect = ConflictError("Timeline must be approved before sharing")

        response = client.post("/api/projects/project-1/share-timeline", headers=AUTH)

        assert response.status_code == 400
        assert response.json() == {"error": "Timeline must be approved before sharing"}

    def test_list_change_orders(self, client, services):
        services.approval.list_change_orders.return_value = [make_change_order()]

        response = client.get("/api/projects/project-1/change-orders?status=pending_approval", headers=AUTH)

        assert response.status_code == 200
        assert [co["id"] for co in response.json()["changeOrders"]] == ["co-1"]
        services.approval.list_change_orders.assert_awaited_once_with(
            "project-1", OWNER, status="pending_approval"
        )

    def test_approve_change_order_with_note(self, client, services):
        services.approval.resolve_change_order.return_value = make_change_order(
            status="approved", approved_by="user-owner", resolution_note="Go"
        )

        response = client.post("/api/change-orders/co-1/approve", json={"note": "Go"}, headers=AUTH)

        assert response.status_code == 200
        assert response.json()["status"] == "approved"
        services.approval.resolve_change_order.assert_awaited_once_with("co-1", OWNER, approve=True, note="Go")

    def test_reject_change_order_without_body(self, client, services):
        services.approval.resolve_change_order.return_value = make_change_order(status="rejected")

        response = client.post("/api/change-orders/co-1/reject", headers=AUTH)

        assert response.status_code == 200
        services.approval.resolve_change_order.assert_awaited_once_with("co-1", OWNER, approve=False, note=None)

    def test_member_cannot_resolve(self, client, services):
        services.approval.resolve_change_order.side_effect = AccessDeniedError(
            "Only organization owners can do this"
        )

        response = client.post("/api/change-orders/co-1/approve", headers=AUTH)

        assert response.status_code == 403


def make_project(**overrides):
    values = dict(
        id="project-1",
        organization_id="org-1",
        name="Booking App",
        client_name="Dana",
        client_email="dana@example.com",
        project_type="mobile",
        project_brief="Appointments",
        budget=Decimal("40000"),
        estimated_weeks=None,
        status="draft",
        form_responses=None,
        created_by="user-owner",
        created_at=NOW,
        updated_at=NOW,
    )
    values.update(overrides)
    return ProjectDB(**values)


# ============================================================
# PROJECTS
# ============================================================

class TestProjectRoutes:

    def test_create_project(self, client, services):
        services.projects.create_project.return_value = make_project()

        response = client.post("/api/projects", headers=AUTH, json={
            "organizationId": "org-1",
            "name": "Booking App",
            "clientName": "Dana",
            "clientEmail": "dana@example.com",
            "projectType": "mobile",
            "projectBrief": "Appointments",
            "budget": 40000,
        })

        assert response.status_code == 201
        assert response.json()["project"]["budget"] == 40000.0
        assert response.json()["project"]["status"] == "draft"
        args, kwargs = services.projects.create_project.await_args
        assert args == (OWNER, "org-1")
        assert kwargs["client_name"] == "Dana"
        assert kwargs["project_type"] == "mobile"
        assert kwargs["budget"] == Decimal("40000")

    @pytest.mark.parametrize("body", [
        {"name": "No org", "clientName": "Dana"},
        {"organizationId": "org-1", "clientName": "Dana"},
        {"organizationId": "org-1", "name": "Bad type", "clientName": "Dana", "projectType": "game"},
        {"organizationId": "org-1", "name": "Bad email", "clientName": "Dana", "clientEmail": "dana"},
        {"organizationId": "org-1", "name": "Negative", "clientName": "Dana", "budget": -1},
    ])
    def test_invalid_project_is_400(self, client, services, body):
        response = client.post("/api/projects", headers=AUTH, json=body)

        assert response.status_code == 400
        services.projects.create_project.assert_not_awaited()

    def test_create_in_foreign_organization(self, client, services):
        services.projects.create_project.side_effect = AccessDeniedError("Access denied")

        response = client.post("/api/projects", headers=AUTH, json={
            "organizationId": "org-2", "name": "Portal", "clientName": "Pat",
        })

        assert response.status_code == 403

    def test_list_requires_organization(self, client, services):
        response = client.get("/api/projects", headers=AUTH)

        assert response.status_code == 400
        services.projects.list_projects.assert_not_awaited()

    def test_list_projects(self, client, services):
        services.projects.list_projects.return_value = [make_project()]

        response = client.get("/api/projects?organizationId=org-1&status=draft", headers=AUTH)

        assert [p["id"] for p in response.json()["projects"]] == ["project-1"]
        services.projects.list_projects.assert_awaited_once_with(OWNER, "org-1", status="draft")

    def test_get_project(self, client, services):
        services.projects.get_project.return_value = make_project()

        response = client.get("/api/projects/project-1", headers=AUTH)

        assert response.json()["project"]["clientEmail"] == "dana@example.com"
        services.projects.get_project.assert_awaited_once_with("project-1", OWNER)

    def test_update_sends_only_given_fields(self, client, services):
        services.projects.update_project.return_value = make_project(name="Renamed")

        response = client.patch("/api/projects/project-1", headers=AUTH, json={
            "name": "Renamed",
            "projectBrief": None,
            "clientName": None,
            "organizationId": "org-2",
            "status": "completed",
        })

        assert response.status_code == 200
        assert response.json()["project"]["name"] == "Renamed"
        services.projects.update_project.assert_awaited_once_with(
            "project-1", OWNER, {"name": "Renamed", "project_brief": None}
        )

    def test_delete_project(self, client, services):
        response = client.delete("/api/projects/project-1", headers=AUTH)

        assert response.json() == {"success": True}
        services.projects.delete_project.assert_awaited_once_with("project-1", OWNER)

    def test_projects_require_authentication(self, client, services):
        response = client.get("/api/projects/project-1")

        assert response.status_code == 401
        services.projects.get_project.assert_not_awaited()


# ============================================================
# INTAKE FORMS
# ============================================================

FORM_DATA = {
    "sections": [{
        "title": "Features",
        "description": "",
        "questions": [{"id": "accounts", "type": "text", "label": "Accounts?", "required": True}],
    }],
}


class TestIntakeFormRoutes:

    def test_generate_form_hides_share_token(self, client, services):
        services.forms.generate_form.return_value = ProjectFormDB(
            id="form-1", project_id="project-1", form_data=FORM_DATA, share_token="secret-token"
        )

        response = client.post("/api/projects/project-1/generate-form", headers=AUTH)

        body = response.json()
        assert response.status_code == 200
        assert body["formId"] == "form-1"
        assert body["formData"] == FORM_DATA
        assert "secret-token" not in response.text
        services.forms.generate_form.assert_awaited_once_with("project-1", OWNER)

    def test_generate_form_when_provider_is_busy(self, client, services):
        services.forms.generate_form.side_effect = CompletionOverloadedError()

        response = client.post("/api/projects/project-1/generate-form", headers=AUTH)

        assert response.status_code == 503

    def test_send_form(self, client, services):
        services.forms.send_form.return_value = FormLink(
            share_token="tok", share_url="http://localhost:3000/f/tok", emailed=True
        )

        response = client.post("/api/projects/project-1/send-form", headers=AUTH)

        assert response.json()["shareUrl"] == "http://localhost:3000/f/tok"
        assert response.json()["message"] == "Form link emailed to client."

    def test_send_form_before_generation(self, client, services):
        services.forms.send_form.side_effect = NotFoundError("No form has been generated for this project yet")

        response = client.post("/api/projects/project-1/send-form", headers=AUTH)

        assert response.status_code == 404

    def test_public_form(self, client, services):
        services.forms.get_public_form.return_value = {"formId": "form-1", "formData": FORM_DATA}

        response = client.get("/api/forms/tok")

        assert response.status_code == 200
        services.forms.get_public_form.assert_awaited_once_with("tok")

    def test_submitted_form_is_gone(self, client, services):
        services.forms.get_public_form.side_effect = FormClosedError()

        response = client.get("/api/forms/tok")

        assert response.status_code == 410
        assert response.json() == {"error": "This form has already been submitted"}

    def test_submit_form(self, client, services):
        response = client.post("/api/forms/tok", json={
            "responses": {"accounts": "Yes"},
            "clientEmail": "dana@example.com",
        })

        assert response.status_code == 200
        services.forms.submit_form.assert_awaited_once_with(
            "tok", {"accounts": "Yes"}, client_email="dana@example.com"
        )

    def test_invalid_answers_list_details(self, client, services):
        services.forms.submit_form.side_effect = ValidationError(
            "Invalid form responses", details=["accounts: This field is required"]
        )

        response = client.post("/api/forms/tok", json={"responses": {}})

        assert response.status_code == 400
        assert response.json() == {
            "error": "Invalid form responses",
            "details": ["accounts: This field is required"],
        }

    def test_submit_requires_responses(self, client, services):
        response = client.post("/api/forms/tok", json={"clientEmail": "dana@example.com"})

        assert response.status_code == 400
        services.forms.submit_form.assert_not_awaited()


class TestHealth:

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "ScopeFlow"

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert set(response.json()["services"]) == {"llm", "email", "redis", "database"}
