"""Tests for the CAPA and suggestion API endpoints."""

from io import BytesIO
from typing import Optional
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID, uuid4

import openpyxl
import pytest
from fastapi import Header
from fastapi.testclient import TestClient

from capa_tracker.api.capas import get_lifecycle_manager
from capa_tracker.api.suggestions import get_suggestion_service
from capa_tracker.core.permissions import get_current_user
from capa_tracker.core.suggestions import DISABLED_MESSAGE, SuggestionService, SuggestionSettings
from capa_tracker.main import app
from tests.conftest import ADMIN_ID, OPERATOR_ID, SUPERVISOR_ID

ADMIN = {"X-User-Id": str(ADMIN_ID)}
SUPERVISOR = {"X-User-Id": str(SUPERVISOR_ID)}
OPERATOR = {"X-User-Id": str(OPERATOR_ID)}

NEW_CAPA = {
    "source": "Internal Audit",
    "description": "Missing guard on press",
    "plan": "Install guard",
    "type": "corrective",
    "commitment_date": "2024-06-01",
    "responsible_user_id": str(SUPERVISOR_ID),
}


@pytest.fixture
def suggestion_service():
    return SuggestionService(SuggestionSettings(api_key=None))


@pytest.fixture
def client(manager, users, suggestion_service):
    """TestClient wired to the fake store and directory."""
    by_id = {u.id: u for u in users}

    async def _current_user(x_user_id: Optional[str] = Header(None, alias="X-User-Id")):
        return by_id.get(UUID(x_user_id)) if x_user_id else None

    app.dependency_overrides[get_lifecycle_manager] = lambda: manager
    app.dependency_overrides[get_current_user] = _current_user
    app.dependency_overrides[get_suggestion_service] = lambda: suggestion_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create(client, headers=SUPERVISOR, **overrides):
    return client.post("/v1/capas", json={**NEW_CAPA, **overrides}, headers=headers)


# =============================================================================
# Permissions
# =============================================================================


class TestPermissions:
    def test_anonymous_rejected(self, client):
        assert client.get("/v1/capas").status_code == 401

    def test_unknown_user_rejected(self, client):
        assert client.get("/v1/capas", headers={"X-User-Id": str(uuid4())}).status_code == 401

    def test_operator_can_read_but_not_create(self, client):
        assert client.get("/v1/capas", headers=OPERATOR).status_code == 200

        response = _create(client, headers=OPERATOR)

        assert response.status_code == 403
        assert "manage_capa" in response.json()["detail"]

    def test_admin_holds_every_permission(self, client):
        assert _create(client, headers=ADMIN).status_code == 201


# =============================================================================
# CRUD
# =============================================================================


class TestCapaEndpoints:
    def test_create_and_get(self, client):
        response = _create(client)

        assert response.status_code == 201
        data = response.json()
        assert data["folio"] == "CAPA-0001"
        assert data["status"] == "open"
        assert data["close_date"] is None

        fetched = client.get(f"/v1/capas/{data['id']}", headers=OPERATOR)
        assert fetched.status_code == 200
        assert fetched.json() == data

    def test_create_blank_field_is_422(self, client):
        response = _create(client, plan="")

        assert response.status_code == 422
        assert "plan" in response.json()["detail"]

    def test_create_without_type_is_422(self, client):
        body = {k: v for k, v in NEW_CAPA.items() if k != "type"}

        response = client.post("/v1/capas", json=body, headers=SUPERVISOR)

        assert response.status_code == 422
        assert "type" in response.json()["detail"]
        assert client.get("/v1/capas", headers=SUPERVISOR).json()["total"] == 0

    def test_update_with_null_is_422(self, client):
        capa = _create(client).json()

        response = client.patch(f"/v1/capas/{capa['id']}", json={"plan": None}, headers=SUPERVISOR)

        assert response.status_code == 422
        assert client.get(f"/v1/capas/{capa['id']}", headers=SUPERVISOR).json()["plan"] == "Install guard"

    def test_create_unknown_responsible_is_422(self, client):
        assert _create(client, responsible_user_id=str(uuid4())).status_code == 422

    def test_get_unknown_is_404(self, client):
        assert client.get(f"/v1/capas/{uuid4()}", headers=SUPERVISOR).status_code == 404

    def test_list_counts_by_status(self, client):
        _create(client)
        second = _create(client).json()
        client.post(
            f"/v1/capas/{second['id']}/status", json={"status": "cancelled"}, headers=SUPERVISOR
        )

        data = client.get("/v1/capas", headers=SUPERVISOR).json()
        assert data["total"] == 2
        assert data["by_status"] == {"open": 1, "in_progress": 0, "closed": 0, "cancelled": 1}

        filtered = client.get("/v1/capas?status=open", headers=SUPERVISOR).json()
        assert filtered["total"] == 1

    def test_update_content(self, client):
        capa = _create(client).json()

        response = client.patch(
            f"/v1/capas/{capa['id']}", json={"plan": "Install guard and train"}, headers=SUPERVISOR
        )

        assert response.status_code == 200
        assert response.json()["plan"] == "Install guard and train"
        assert response.json()["folio"] == capa["folio"]

    def test_update_unknown_is_404(self, client):
        response = client.patch(f"/v1/capas/{uuid4()}", json={"plan": "x"}, headers=SUPERVISOR)
        assert response.status_code == 404

    def test_delete(self, client):
        capa = _create(client).json()

        assert client.delete(f"/v1/capas/{capa['id']}", headers=SUPERVISOR).status_code == 204
        assert client.get("/v1/capas", headers=SUPERVISOR).json()["total"] == 0
        assert client.delete(f"/v1/capas/{capa['id']}", headers=SUPERVISOR).status_code == 404


# =============================================================================
# Status transitions
# =============================================================================


class TestStatusEndpoint:
    def test_close_requires_notes(self, client):
        capa = _create(client).json()

        response = client.post(
            f"/v1/capas/{capa['id']}/status", json={"status": "closed"}, headers=SUPERVISOR
        )

        assert response.status_code == 422
        assert client.get(f"/v1/capas/{capa['id']}", headers=SUPERVISOR).json()["status"] == "open"

    def test_close_with_notes(self, client):
        capa = _create(client).json()
        client.post(f"/v1/capas/{capa['id']}/status", json={"status": "in_progress"}, headers=SUPERVISOR)

        response = client.post(
            f"/v1/capas/{capa['id']}/status",
            json={"status": "closed", "verification_notes": "Guard verified by safety officer"},
            headers=SUPERVISOR,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "closed"
        assert data["close_date"] == "2024-05-20"
        assert data["verification_notes"] == "Guard verified by safety officer"

    def test_reopen_closed_rejected(self, client):
        capa = _create(client).json()
        client.post(
            f"/v1/capas/{capa['id']}/status",
            json={"status": "closed", "verification_notes": "Verified"},
            headers=SUPERVISOR,
        )

        response = client.post(
            f"/v1/capas/{capa['id']}/status", json={"status": "open"}, headers=SUPERVISOR
        )

        assert response.status_code == 422
        assert "Cannot transition" in response.json()["detail"]

    def test_unknown_status_value(self, client):
        capa = _create(client).json()

        response = client.post(
            f"/v1/capas/{capa['id']}/status", json={"status": "archived"}, headers=SUPERVISOR
        )

        assert response.status_code == 422


# =============================================================================
# Search, notices, export
# =============================================================================


class TestReadViews:
    def test_search(self, client):
        _create(client)
        _create(client, description="Blocked emergency exit")

        results = client.get("/v1/capas/search?q=exit", headers=OPERATOR).json()

        assert [r["folio"] for r in results] == ["CAPA-0002"]

    def test_due_soon_for_caller(self, client):
        _create(client, commitment_date="2024-05-22")
        _create(client, commitment_date="2024-09-01")

        notices = client.get("/v1/capas/due-soon", headers=SUPERVISOR).json()

        assert len(notices) == 1
        assert notices[0]["days_remaining"] == 2
        assert client.get("/v1/capas/due-soon", headers=OPERATOR).json() == []

    def test_export(self, client):
        _create(client)

        response = client.get("/v1/capas/export", headers=OPERATOR)

        assert response.status_code == 200
        assert "capa_report.xlsx" in response.headers["content-disposition"]
        ws = openpyxl.load_workbook(BytesIO(response.content)).active
        assert ws.cell(row=2, column=1).value == "CAPA-0001"
        assert ws.cell(row=2, column=10).value == "Sam Supervisor"


# =============================================================================
# Suggestions
# =============================================================================


class TestSuggestionEndpoints:
    def test_plan_disabled_without_credential(self, client):
        response = client.post("/v1/suggestions/plan", json={"problem_text": ""}, headers=SUPERVISOR)

        assert response.status_code == 200
        assert response.json() == {"ok": False, "text": DISABLED_MESSAGE, "failure": "disabled"}

    def test_plan_requires_manage_capa(self, client):
        response = client.post("/v1/suggestions/plan", json={"problem_text": "x"}, headers=OPERATOR)
        assert response.status_code == 403

    def test_incident_summary_requires_manage_incidents(self, client):
        response = client.post(
            "/v1/suggestions/incident-summary", json={"description": "x"}, headers=SUPERVISOR
        )
        assert response.status_code == 403

    def test_plan_generated(self, client):
        mock_client = MagicMock()
        mock_client.messages.create = AsyncMock(
            return_value=MagicMock(content=[MagicMock(text="Install a fixed guard")])
        )
        service = SuggestionService(SuggestionSettings(api_key="test-key"), client=mock_client)
        app.dependency_overrides[get_suggestion_service] = lambda: service

        response = client.post(
            "/v1/suggestions/plan",
            json={"problem_text": "Missing guard on press"},
            headers=ADMIN,
        )

        assert response.json() == {"ok": True, "text": "Install a fixed guard", "failure": None}


def test_users_directory(client, users):
    with patch("capa_tracker.api.users.users_db.list_users", new=AsyncMock(return_value=users)):
        response = client.get("/v1/users", headers=OPERATOR)

    assert response.status_code == 200
    assert [u["full_name"] for u in response.json()] == [
        "Ana Admin",
        "Sam Supervisor",
        "Omar Operator",
    ]
    assert "permissions" not in response.json()[0]
