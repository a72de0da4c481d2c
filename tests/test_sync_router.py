"""
Tests for the Channex sync API

Tests cover:
- Explicit sync per resource (create, update)
- Sync error kinds mapped to HTTP status codes
- Status endpoint
- Change notification endpoint (never creates)
- Rates / availability pushes
"""

import pytest
from unittest.mock import MagicMock

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fastapi.testclient import TestClient

from channex_sync.main import app
from channex_sync.routers import sync as sync_router
from channex_sync.services.errors import RemoteRequestError, RemoteValidationError
from channex_sync.services.id_mapping import EntityKind, IdentifierMappingStore, InMemoryKeyValueStore


@pytest.fixture
def channex():
    mock = MagicMock()
    for resource in ("group", "property", "room_type", "rate_plan", "tax", "tax_set"):
        getattr(mock, f"get_{resource}").return_value = None
        getattr(mock, f"find_{resource}_by_title").return_value = None
    return mock


@pytest.fixture
def backend():
    return MagicMock()


@pytest.fixture
def mappings():
    return IdentifierMappingStore(InMemoryKeyValueStore())


@pytest.fixture
def client(channex, backend, mappings):
    app.dependency_overrides[sync_router.get_channex] = lambda: channex
    app.dependency_overrides[sync_router.get_backend] = lambda: backend
    app.dependency_overrides[sync_router.get_mapping_store] = lambda: mappings
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestEntitySync:

    def test_group_created(self, client, channex, mappings):
        channex.create_group.return_value = {"id": "ch-g-router-1"}

        response = client.post("/api/channex/groups/router-g1/sync", json={"title": "Riyadh Portfolio"})

        assert response.status_code == 200
        assert response.json() == {
            "action": "create",
            "state": "synced",
            "remote_id": "ch-g-router-1",
            "skipped": False,
            "error": None,
        }
        assert mappings.get(EntityKind.GROUP, "router-g1") == "ch-g-router-1"

    def test_group_updated(self, client, channex, mappings):
        mappings.set(EntityKind.GROUP, "router-g2", "ch-g2")
        channex.get_group.return_value = {"id": "ch-g2"}

        response = client.post("/api/channex/groups/router-g2/sync", json={"title": "Jeddah Portfolio"})

        assert response.status_code == 200
        assert response.json()["action"] == "update"
        channex.update_group.assert_called_once_with("ch-g2", {"title": "Jeddah Portfolio"})

    def test_precondition_is_409(self, client):
        response = client.post(
            "/api/channex/room-types/router-rt1/sync",
            json={"record": {"title": "Deluxe", "property_id": "not-synced"}},
        )

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["kind"] == "precondition"
        assert "Property must be synced" in detail["message"]

    def test_validation_is_422_with_fields(self, client, channex):
        channex.create_group.side_effect = RemoteValidationError(
            "Invalid request data", status_code=422, fields={"title": ["has already been taken"]}
        )

        response = client.post("/api/channex/groups/router-g3/sync", json={"title": "Dup"})

        assert response.status_code == 422
        assert response.json()["detail"]["fields"] == {"title": ["has already been taken"]}

    def test_remote_failure_is_502(self, client, channex):
        channex.create_group.side_effect = RemoteRequestError("All retries failed: timeout")

        response = client.post("/api/channex/groups/router-g4/sync", json={"title": "Riyadh"})

        assert response.status_code == 502
        assert response.json()["detail"]["kind"] == "remote"

    def test_not_found_on_update_reported_in_body(self, client, channex, mappings):
        from channex_sync.services.errors import RemoteNotFoundError

        mappings.set(EntityKind.GROUP, "router-g5", "ch-g5")
        channex.get_group.return_value = {"id": "ch-g5"}
        channex.update_group.side_effect = RemoteNotFoundError("Resource not found", status_code=404)

        response = client.post("/api/channex/groups/router-g5/sync", json={"title": "Riyadh"})

        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "not_synced"
        assert body["error"]["kind"] == "not_found"

    def test_unknown_resource(self, client):
        response = client.post("/api/channex/bookings/1/sync", json={})

        assert response.status_code == 422


class TestStatus:

    def test_synced(self, client, channex, mappings):
        mappings.set(EntityKind.GROUP, "router-g6", "ch-g6")
        channex.get_group.return_value = {"id": "ch-g6"}

        response = client.get("/api/channex/groups/router-g6/status", params={"title": "Riyadh"})

        assert response.status_code == 200
        assert response.json() == {"state": "synced", "remote_id": "ch-g6", "exists_in_channex": True}

    def test_not_synced(self, client):
        response = client.get("/api/channex/groups/router-g7/status", params={"title": "Nowhere"})

        assert response.json()["exists_in_channex"] is False
        assert response.json()["state"] == "not_synced"


class TestChanges:

    def test_unmapped_entity_never_created(self, client, channex):
        client.post("/api/channex/groups/router-g8/changes", json={"title": "A"})
        response = client.post("/api/channex/groups/router-g8/changes", json={"title": "B"})

        assert response.status_code == 200
        assert response.json()["skipped"] is True
        channex.create_group.assert_not_called()

    def test_mapped_entity_updated_on_change(self, client, channex, mappings):
        mappings.set(EntityKind.GROUP, "router-g9", "ch-g9")
        channex.get_group.return_value = {"id": "ch-g9"}

        first = client.post("/api/channex/groups/router-g9/changes", json={"title": "A"})
        second = client.post("/api/channex/groups/router-g9/changes", json={"title": "B"})

        assert first.json()["skipped"] is True
        assert second.json()["action"] == "update"
        channex.update_group.assert_called_once_with("ch-g9", {"title": "B"})


class TestAriPush:

    def test_rates(self, client, channex, backend, mappings):
        mappings.set(EntityKind.PROPERTY, "p1", "ch-p1")
        mappings.set(EntityKind.RATE_PLAN, "router-rp1", "ch-rp1")
        backend.get_grouped_rates.return_value = [
            {"property_id": "p1", "date_from": "2026-03-01", "date_to": "2026-03-03", "rate": 300},
        ]
        backend.get_period_rules.return_value = []

        response = client.post(
            "/api/channex/rate-plans/router-rp1/rates/sync",
            json={"start_date": "2026-03-01", "end_date": "2026-03-31"},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "pushed": 1, "skipped": False}
        assert channex.push_restrictions.call_args[0][0][0]["rate"] == 30000

    def test_availability_without_data_is_409(self, client, backend):
        backend.get_grouped_availability.return_value = []

        response = client.post("/api/channex/room-types/router-rt2/availability/sync")

        assert response.status_code == 409
        assert "No availability found" in response.json()["detail"]["message"]
