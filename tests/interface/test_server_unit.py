from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from gelos.consts import VERSION
from gelos.domain.study.errors import RepositoryError
from gelos.server import app, get_repository, sessions


@pytest.fixture
def client(memory_repo):
    app.dependency_overrides[get_repository] = lambda: memory_repo
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
    sessions.clear()


def _start(client, deck="spanish", seed=7):
    response = client.post(f"/decks/{deck}/sessions", json={"seed": seed})
    assert response.status_code == 200
    return response.json()


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == VERSION


def test_get_version(client):
    response = client.get("/version")
    assert response.status_code == 200
    assert response.json() == {"version": VERSION}


# --- Schedule ---


def test_schedule_endpoint(client):
    response = client.post(
        "/schedule",
        json={"rating": 3, "ease_factor": 2.7, "interval": 6, "repetitions": 2, "today": "2026-10-17"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["interval"] == 16
    assert data["next_review_at"] == "2026-11-02"
    assert data["label"] == "2 weeks"


def test_schedule_clamps_rating(client):
    response = client.post("/schedule", json={"rating": 12, "today": "2026-10-17"})

    assert response.status_code == 200
    data = response.json()
    assert data["repetitions"] == 1
    assert data["ease_factor"] == pytest.approx(2.6)


# --- Deck stats ---


def test_deck_stats(client):
    response = client.get("/decks/spanish/stats")

    assert response.status_code == 200
    assert response.json() == {
        "total_cards": 3,
        "due_cards": 3,
        "new_cards": 3,
        "reviewed_today": 0,
        "accuracy": 0,
    }


def test_deck_stats_backend_down(client, memory_repo):
    memory_repo.fetch_deck_stats = AsyncMock(side_effect=RepositoryError("offline"))

    response = client.get("/decks/spanish/stats")

    assert response.status_code == 503
    assert "offline" in response.json()["detail"]


# --- Sessions ---


def test_full_session_flow(client, memory_repo):
    started = _start(client)
    session_id = started["session_id"]

    assert started["state"] == "presenting"
    assert started["total"] == 3
    assert started["card"]["back"] is None
    assert started["deck_stats"]["total_cards"] == 3

    for i, rating in enumerate([3, 0, 2], start=1):
        revealed = client.post(f"/sessions/{session_id}/reveal").json()
        assert revealed["state"] == "revealed"
        assert revealed["position"] == i
        card_id = revealed["card"]["card_id"]
        assert revealed["card"]["back"]
        assert revealed["card"]["preview"] == {
            "0": "Tomorrow",
            "1": "Tomorrow",
            "2": "Tomorrow",
            "3": "Tomorrow",
        }

        rated = client.post(f"/sessions/{session_id}/ratings", json={"rating": rating})
        assert rated.status_code == 200
        body = rated.json()
        assert body["saved"] is True
        assert body["label"] == "Tomorrow"
        assert memory_repo.get_record(card_id).last_rating == rating

    final = body["session"]
    assert final["state"] == "complete"
    assert final["reviewed"] == 3
    assert final["correct"] == 2
    assert final["card"] is None

    # Finished and fully saved, so the server no longer holds it
    assert session_id not in sessions
    assert client.get(f"/sessions/{session_id}").status_code == 404


def test_rate_before_reveal_conflicts(client):
    session_id = _start(client)["session_id"]

    response = client.post(f"/sessions/{session_id}/ratings", json={"rating": 2})

    assert response.status_code == 409
    assert "presenting" in response.json()["detail"]


def test_double_reveal_conflicts(client):
    session_id = _start(client)["session_id"]
    client.post(f"/sessions/{session_id}/reveal")

    response = client.post(f"/sessions/{session_id}/reveal")

    assert response.status_code == 409


def test_unknown_session_is_404(client):
    assert client.get("/sessions/nope").status_code == 404
    assert client.post("/sessions/nope/reveal").status_code == 404


def test_empty_deck_session(client):
    started = _start(client, deck="empty")

    assert started["state"] == "empty"
    assert started["total"] == 0
    assert started["card"] is None
    assert started["session_id"] not in sessions


def test_session_load_failure_is_503(client, memory_repo):
    memory_repo.fetch_due_cards = AsyncMock(side_effect=RepositoryError("offline"))

    response = client.post("/decks/spanish/sessions", json={})

    assert response.status_code == 503
    assert sessions == {}


def test_failed_save_is_reported_and_retried(client, memory_repo):
    original = memory_repo.persist_review
    memory_repo.persist_review = AsyncMock(side_effect=RepositoryError("write refused"))
    session_id = _start(client)["session_id"]

    client.post(f"/sessions/{session_id}/reveal")
    body = client.post(f"/sessions/{session_id}/ratings", json={"rating": 3}).json()

    assert body["saved"] is False
    assert body["save_error"] == "write refused"
    assert body["session"]["unsaved_reviews"] == 1
    assert body["session"]["state"] == "presenting"

    memory_repo.persist_review = original
    retried = client.post(f"/sessions/{session_id}/retry").json()
    assert retried["unsaved_reviews"] == 0


def test_end_session(client):
    session_id = _start(client)["session_id"]

    response = client.delete(f"/sessions/{session_id}")

    assert response.status_code == 200
    assert response.json()["reviewed"] == 0
    assert session_id not in sessions


def test_finished_session_with_unsaved_review_is_kept_until_retried(client, memory_repo):
    memory_repo.add_card("short", "uno", front="uno", back="one")
    original = memory_repo.persist_review
    memory_repo.persist_review = AsyncMock(side_effect=RepositoryError("write refused"))
    session_id = _start(client, deck="short")["session_id"]

    client.post(f"/sessions/{session_id}/reveal")
    body = client.post(f"/sessions/{session_id}/ratings", json={"rating": 2}).json()

    assert body["session"]["state"] == "complete"
    assert session_id in sessions

    memory_repo.persist_review = original
    retried = client.post(f"/sessions/{session_id}/retry").json()

    assert retried["unsaved_reviews"] == 0
    assert session_id not in sessions
    assert memory_repo.get_record("uno").last_rating == 2


def test_oldest_session_dropped_when_full(client, monkeypatch):
    monkeypatch.setattr("gelos.server.MAX_ACTIVE_SESSIONS", 2)

    first = _start(client)["session_id"]
    second = _start(client)["session_id"]
    third = _start(client)["session_id"]

    assert list(sessions) == [second, third]
    assert client.get(f"/sessions/{first}").status_code == 404
