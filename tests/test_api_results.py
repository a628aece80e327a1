"""
Result submission: persistence, single-use policy, validation and publish.
"""
import asyncio
import csv
import io

import pytest
from fastapi.testclient import TestClient

from typearena.auth.service import create_access_token, create_session_credential
from typearena.broadcast import channel
from typearena.main import app


@pytest.fixture
def client(seeded):
    return TestClient(app)


@pytest.fixture
def published(monkeypatch):
    calls = []

    async def _record(event_id, summary):
        calls.append((event_id, summary))
        return 0

    monkeypatch.setattr(channel, "publish", _record)
    return calls


def _token(client, code):
    return client.post("/api/student/login", json={"code": code}).json()["token"]


def _submit(client, token, **overrides):
    body = {"wpm": 40, "accuracy": 95, "totalWords": 20, "correctWords": 18, "timeTakenSeconds": 60}
    body.update(overrides)
    return client.post("/api/results", json=body, headers={"Authorization": f"Bearer {token}"})


def _admin_headers():
    return {"Authorization": f"Bearer {create_access_token(username='admin', role='admin')}"}


def test_submit_persists_marks_code_used_and_publishes(client, seeded, published):
    invite = seeded["codes"][0]
    event_id = seeded["event"]["id"]
    r = _submit(client, _token(client, invite["code"]))
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "resultId": 1}

    rows = client.get(f"/api/events/{event_id}/results").json()
    assert len(rows) == 1
    assert rows[0]["name"] == "Ana"
    assert rows[0]["class"] == "9A"
    assert rows[0]["timeTaken"] == 60
    assert rows[0]["completedAt"]

    stored = asyncio.run(seeded["store"].get_invite_code(invite["id"]))
    assert stored["is_used"] is True

    assert len(published) == 1
    published_event, summary = published[0]
    assert published_event == event_id
    assert (summary.name, summary.class_name, summary.wpm, summary.correctWords) == ("Ana", "9A", 40, 18)


def test_second_submission_for_code_is_rejected(client, seeded, published):
    token = _token(client, seeded["codes"][0]["code"])
    assert _submit(client, token).status_code == 200
    r = _submit(client, token, wpm=99)
    assert r.status_code == 409
    assert r.json()["detail"] == "result_already_submitted"
    assert len(published) == 1


def test_reuse_mode_accepts_repeat_submissions(client, seeded, published, monkeypatch):
    monkeypatch.setenv("ALLOW_CODE_REUSE", "true")
    token = _token(client, seeded["codes"][0]["code"])
    assert _submit(client, token).status_code == 200
    assert _submit(client, token, wpm=50).status_code == 200
    assert len(client.get(f"/api/events/{seeded['event']['id']}/results").json()) == 2


def test_expired_credential_persists_and_publishes_nothing(client, seeded, published):
    invite = seeded["codes"][0]
    expired = create_session_credential(
        invite_code_id=invite["id"],
        name="Ana",
        class_name="9A",
        event_id=seeded["event"]["id"],
        expires_minutes=-5,
    )
    r = _submit(client, expired)
    assert r.status_code == 401
    assert r.json()["detail"] == "token_expired"
    assert r.headers.get("www-authenticate") == "Bearer"
    assert client.get(f"/api/events/{seeded['event']['id']}/results").json() == []
    assert published == []


def test_missing_credential(client, seeded, published):
    r = client.post(
        "/api/results",
        json={"wpm": 1, "accuracy": 1, "totalWords": 1, "correctWords": 1, "timeTakenSeconds": 1},
    )
    assert r.status_code == 401
    assert published == []


@pytest.mark.parametrize(
    "overrides",
    [
        {"correctWords": 21},
        {"accuracy": 101},
        {"wpm": -1},
        {"timeTakenSeconds": -3},
    ],
)
def test_invalid_payload_is_422(client, seeded, published, overrides):
    r = _submit(client, _token(client, seeded["codes"][0]["code"]), **overrides)
    assert r.status_code == 422
    assert published == []


def test_publish_failure_does_not_fail_submission(client, seeded, monkeypatch):
    async def _boom(event_id, summary):
        raise RuntimeError("broadcast down")

    monkeypatch.setattr(channel, "publish", _boom)
    r = _submit(client, _token(client, seeded["codes"][0]["code"]))
    assert r.status_code == 200
    assert len(client.get(f"/api/events/{seeded['event']['id']}/results").json()) == 1


def test_snapshot_is_ranked_by_wpm_then_accuracy(client, seeded, published, monkeypatch):
    event_id = seeded["event"]["id"]
    first, second, third = seeded["codes"]
    _submit(client, _token(client, first["code"]), wpm=30, accuracy=99)
    _submit(client, _token(client, second["code"]), wpm=45, accuracy=80)
    third_token = client.post(
        "/api/student/login", json={"code": third["code"], "name": "Cy", "class": "9C"}
    ).json()["token"]
    _submit(client, third_token, wpm=30, accuracy=100)

    rows = client.get(f"/api/events/{event_id}/results").json()
    assert [row["name"] for row in rows] == ["Bo", "Cy", "Ana"]


def test_unknown_event_results(client, seeded):
    r = client.get("/api/events/404/results")
    assert r.status_code == 404
    assert r.json()["detail"] == "event_not_found"


class TestAdminReports:
    def test_stats_requires_admin(self, client, seeded):
        event_id = seeded["event"]["id"]
        assert client.get(f"/api/events/{event_id}/results/stats").status_code == 401
        participant = _token(client, seeded["codes"][0]["code"])
        r = client.get(
            f"/api/events/{event_id}/results/stats",
            headers={"Authorization": f"Bearer {participant}"},
        )
        assert r.status_code == 403

    def test_stats(self, client, seeded, published):
        event_id = seeded["event"]["id"]
        _submit(client, _token(client, seeded["codes"][0]["code"]), wpm=40, accuracy=90)
        _submit(client, _token(client, seeded["codes"][1]["code"]), wpm=51, accuracy=85)
        r = client.get(f"/api/events/{event_id}/results/stats", headers=_admin_headers())
        assert r.status_code == 200
        assert r.json() == {
            "participants": 2,
            "averageWpm": 46,
            "averageAccuracy": 88,
            "highestWpm": 51,
            "lowestWpm": 40,
        }

    def test_csv_export(self, client, seeded, published):
        event_id = seeded["event"]["id"]
        _submit(client, _token(client, seeded["codes"][0]["code"]), wpm=40)
        _submit(client, _token(client, seeded["codes"][1]["code"]), wpm=60)
        r = client.get(f"/api/events/{event_id}/results.csv", headers=_admin_headers())
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/csv")
        rows = list(csv.DictReader(io.StringIO(r.text)))
        assert [(row["rank"], row["name"]) for row in rows] == [("1", "Bo"), ("2", "Ana")]
