"""
Admin login and event / invite-code management.
"""
import re

import pytest
from fastapi.testclient import TestClient

from typearena.auth.deps import COOKIE_NAME
from typearena.main import app


@pytest.fixture
def admin(store, monkeypatch):
    """TestClient logged in as the bootstrapped admin (cookie auth)."""
    monkeypatch.delenv("DEFAULT_ADMIN_PASSWORD", raising=False)
    monkeypatch.delenv("RESET_ADMIN_PASSWORD", raising=False)
    client = TestClient(app)
    r = client.post("/api/auth/login", json={"username": "admin", "password": "admin123"})
    assert r.status_code == 200
    assert r.json()["role"] == "admin"
    assert COOKIE_NAME in r.cookies
    return client


def _create_event(client, **overrides):
    body = {"name": "Final", "typingText": "one two\r\nthree ", "timerDuration": 90}
    body.update(overrides)
    return client.post("/api/events", json=body)


class TestAdminAuth:
    def test_wrong_password(self, store):
        client = TestClient(app)
        r = client.post("/api/auth/login", json={"username": "admin", "password": "nope"})
        assert r.status_code == 401
        assert r.json()["detail"] == "invalid_credentials"

    def test_me_and_logout(self, admin):
        assert admin.get("/api/auth/me").json() == {"username": "admin", "role": "admin"}
        assert admin.post("/api/auth/logout").json() == {"status": "logged_out"}
        admin.cookies.clear()
        assert admin.get("/api/auth/me").status_code == 401

    def test_admin_routes_reject_anonymous(self, store):
        client = TestClient(app)
        assert client.get("/api/events").status_code == 401
        assert _create_event(client).status_code == 401


class TestEvents:
    def test_create_list_get(self, admin):
        r = _create_event(admin)
        assert r.status_code == 201
        event = r.json()
        assert event["status"] == "upcoming"
        assert event["typingText"] == "one two\nthree "
        assert event["timerDuration"] == 90

        assert [e["id"] for e in admin.get("/api/events").json()] == [event["id"]]
        assert admin.get(f"/api/events/{event['id']}").json()["name"] == "Final"

    def test_default_timer_and_validation(self, admin):
        r = admin.post("/api/events", json={"name": "Quick", "typingText": "x "})
        assert r.json()["timerDuration"] == 60
        assert _create_event(admin, timerDuration=-1).status_code == 422
        assert _create_event(admin, typingText="").status_code == 422

    def test_status_update(self, admin):
        event_id = _create_event(admin).json()["id"]
        r = admin.put(f"/api/events/{event_id}/status", json={"status": "active"})
        assert r.status_code == 200
        assert r.json()["status"] == "active"
        assert admin.put(f"/api/events/{event_id}/status", json={"status": "paused"}).status_code == 422
        assert admin.put("/api/events/999/status", json={"status": "active"}).status_code == 404

    def test_delete_cascades(self, admin):
        event_id = _create_event(admin).json()["id"]
        admin.put(f"/api/events/{event_id}/status", json={"status": "active"})
        code = admin.post(
            f"/api/events/{event_id}/invite-codes",
            json={"participants": [{"name": "Ana", "class": "9A"}]},
        ).json()[0]["code"]
        token = admin.post("/api/student/login", json={"code": code}).json()["token"]
        admin.post(
            "/api/results",
            json={"wpm": 10, "accuracy": 50, "totalWords": 3, "correctWords": 1, "timeTakenSeconds": 90},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert admin.delete(f"/api/events/{event_id}").json() == {"status": "deleted"}
        assert admin.get(f"/api/events/{event_id}").status_code == 404
        assert admin.post("/api/student/login", json={"code": code}).status_code == 404
        assert admin.get(f"/api/events/{event_id}/results").status_code == 404
        assert admin.delete(f"/api/events/{event_id}").status_code == 404


class TestInviteCodes:
    def test_generate_list_delete(self, admin):
        event_id = _create_event(admin).json()["id"]
        r = admin.post(
            f"/api/events/{event_id}/invite-codes",
            json={"participants": [{"name": "Ana", "class": "9A"}, {"name": "Bo", "class": "9B"}]},
        )
        assert r.status_code == 201
        codes = r.json()
        assert len(codes) == 2
        assert all(re.fullmatch(r"[0-9A-F]{8}", c["code"]) for c in codes)
        assert len({c["code"] for c in codes}) == 2
        assert codes[0]["isUsed"] is False
        assert (codes[1]["name"], codes[1]["class"]) == ("Bo", "9B")

        listed = admin.get(f"/api/events/{event_id}/invite-codes").json()
        assert [c["id"] for c in listed] == [c["id"] for c in codes]

        assert admin.delete(f"/api/invite-codes/{codes[0]['id']}").status_code == 200
        assert len(admin.get(f"/api/events/{event_id}/invite-codes").json()) == 1
        assert admin.delete(f"/api/invite-codes/{codes[0]['id']}").status_code == 404

    def test_unknown_event(self, admin):
        r = admin.post(
            "/api/events/999/invite-codes", json={"participants": [{"name": "A", "class": "1"}]}
        )
        assert r.status_code == 404
        assert r.json()["detail"] == "event_not_found"

    def test_empty_participant_list(self, admin):
        event_id = _create_event(admin).json()["id"]
        assert admin.post(f"/api/events/{event_id}/invite-codes", json={"participants": []}).status_code == 422
