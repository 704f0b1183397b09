"""End-to-end tests of the HTTP API against a temporary SQLite database."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from event_registration_api.app.core.config import Settings
from event_registration_api.app.core.security import create_access_token
from event_registration_api.app.main import create_app


SECRET = "integration-secret"
ADMIN_TOKEN = "static-admin-token"


def _auth(user_id: str, role: str = "attendee") -> dict:
    token = create_access_token({"sub": user_id, "role": role}, secret_key=SECRET)
    return {"Authorization": f"Bearer {token}"}


ADMIN = {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def client(tmp_path):
    config = Settings(
        database_url=str(tmp_path / "api.db"),
        secret_key=SECRET,
        admin_static_token=ADMIN_TOKEN,
        admin_static_user_id="ops",
        storage_backend="sqlite",
        transient_retry_backoff_seconds=0,
    )
    with TestClient(create_app(config)) as test_client:
        yield test_client


def _create_event(client, **fields) -> str:
    body = {"title": "Workshop", **fields}
    response = client.post("/api/v1/events", json=body, headers=ADMIN)
    assert response.status_code == 201, response.text
    return response.json()["id"]


def _register(client, user_id, event_id):
    return client.post("/api/v1/registrations", json={"event_id": event_id}, headers=_auth(user_id))


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_capacity_scenario_over_http(client):
    event_id = _create_event(client, capacity=2)

    assert _register(client, "A", event_id).status_code == 201
    assert _register(client, "B", event_id).status_code == 201

    full = _register(client, "C", event_id)
    assert full.status_code == 409
    assert full.json()["detail"]["code"] == "event_full"

    cancelled = client.delete(f"/api/v1/registrations/{event_id}", headers=_auth("A"))
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert cancelled.json()["cancelled_at"] is not None

    assert _register(client, "C", event_id).status_code == 201

    rows = client.get("/api/v1/registrations", params={"event_id": event_id}, headers=ADMIN).json()
    assert {(row["user_id"], row["status"]) for row in rows} == {
        ("A", "cancelled"),
        ("B", "active"),
        ("C", "active"),
    }
    event = client.get(f"/api/v1/events/{event_id}").json()
    assert event["active_registrations"] == 2


def test_register_response_shape(client):
    event_id = _create_event(client)

    response = _register(client, "alice", event_id)

    assert response.status_code == 201
    body = response.json()
    assert body["user_id"] == "alice"
    assert body["event_id"] == event_id
    assert body["status"] == "active"
    assert body["cancelled_at"] is None


def test_double_register_is_rejected(client):
    event_id = _create_event(client, capacity=10)
    _register(client, "alice", event_id)

    second = _register(client, "alice", event_id)

    assert second.status_code == 409
    assert second.json()["detail"]["code"] == "already_registered"
    rows = client.get("/api/v1/registrations/user/alice", headers=_auth("alice")).json()
    assert [row["status"] for row in rows] == ["active"]


def test_unknown_event(client):
    response = _register(client, "alice", "does-not-exist")

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "event_not_found"


def test_closed_registration(client):
    past = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    event_id = _create_event(client, registration_deadline=past)

    response = _register(client, "alice", event_id)

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "registration_closed"


def test_missing_credentials(client):
    response = client.post("/api/v1/registrations", json={"event_id": "x"})

    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "auth_required"
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_invalid_token(client):
    response = client.get("/api/v1/registrations/user/alice", headers={"Authorization": "Bearer junk"})

    assert response.status_code == 401


def test_blank_event_id_is_a_validation_error(client):
    response = client.post("/api/v1/registrations", json={"event_id": "  "}, headers=_auth("alice"))

    assert response.status_code == 422


def test_admin_listing_is_forbidden_for_attendees(client):
    response = client.get("/api/v1/registrations", headers=_auth("alice"))

    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "forbidden"


def test_admin_listing_with_admin_role_token(client):
    event_id = _create_event(client)
    _register(client, "alice", event_id)

    response = client.get("/api/v1/registrations", headers=_auth("boss", role="admin"))

    assert response.status_code == 200
    assert [row["user_id"] for row in response.json()] == ["alice"]


def test_user_listing_ownership(client):
    event_id = _create_event(client)
    _register(client, "bob", event_id)

    own_empty = client.get("/api/v1/registrations/user/alice", headers=_auth("alice"))
    assert own_empty.status_code == 200
    assert own_empty.json() == []

    other = client.get("/api/v1/registrations/user/bob", headers=_auth("alice"))
    assert other.status_code == 403

    as_admin = client.get("/api/v1/registrations/user/bob", headers=ADMIN)
    assert [row["user_id"] for row in as_admin.json()] == ["bob"]


def test_cancel_without_registration(client):
    event_id = _create_event(client)

    response = client.delete(f"/api/v1/registrations/{event_id}", headers=_auth("alice"))

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "not_registered"


def test_cancel_then_reregister(client):
    event_id = _create_event(client, capacity=1)
    _register(client, "alice", event_id)
    client.delete(f"/api/v1/registrations/{event_id}", headers=_auth("alice"))

    again = _register(client, "alice", event_id)

    assert again.status_code == 201
    rows = client.get("/api/v1/registrations/user/alice", headers=_auth("alice")).json()
    assert sorted(row["status"] for row in rows) == ["active", "cancelled"]
    active = client.get(
        "/api/v1/registrations/user/alice", params={"status": "active"}, headers=_auth("alice")
    ).json()
    assert len(active) == 1


def test_event_management_requires_admin(client):
    response = client.post("/api/v1/events", json={"title": "Nope"}, headers=_auth("alice"))

    assert response.status_code == 403


def test_capacity_conflict_on_update(client):
    event_id = _create_event(client, capacity=3)
    _register(client, "a", event_id)
    _register(client, "b", event_id)

    response = client.patch(f"/api/v1/events/{event_id}", json={"capacity": 1}, headers=ADMIN)

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "capacity_conflict"
    ok = client.patch(f"/api/v1/events/{event_id}", json={"capacity": 2}, headers=ADMIN)
    assert ok.json()["capacity"] == 2
    assert _register(client, "c", event_id).json()["detail"]["code"] == "event_full"


def test_audit_trail(client):
    event_id = _create_event(client)
    _register(client, "alice", event_id)
    client.delete(f"/api/v1/registrations/{event_id}", headers=_auth("alice"))

    assert client.get("/api/v1/audit/logs", headers=_auth("alice")).status_code == 403

    entries = client.get(
        "/api/v1/audit/logs", params={"object_type": "registration"}, headers=ADMIN
    ).json()
    assert [entry["action"] for entry in entries] == ["cancel", "register"]
    assert {entry["user_id"] for entry in entries} == {"alice"}


def test_in_memory_backend(tmp_path):
    config = Settings(
        database_url=str(tmp_path / "memory-backend.db"),
        secret_key=SECRET,
        admin_static_token=ADMIN_TOKEN,
        storage_backend="memory",
    )
    with TestClient(create_app(config)) as client:
        event_id = _create_event(client, capacity=1)
        assert _register(client, "alice", event_id).status_code == 201
        assert _register(client, "bob", event_id).json()["detail"]["code"] == "event_full"
