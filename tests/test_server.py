from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

import server
from errors import SessionBusyError
from fakes import FakeRecognizer, ScriptedLookup, frags, match
from lookup_cache import CachedLookup
from session import ScanSession


@pytest.fixture
def lookup() -> ScriptedLookup:
    return ScriptedLookup({
        "name:Pikachu lang:en": [match("a"), match("b")],
        "name:Charizard lang:en": [match("c", name="Charizard", number="4")],
    })


@pytest.fixture
def client(monkeypatch, lookup):
    session = ScanSession(FakeRecognizer(frags("CHARIZARD", "120 HP", "4/102")), lookup,
                          auto_confirm_single_match=False)
    session.start()
    monkeypatch.setattr(server, "session", session)
    monkeypatch.setattr(server, "lookup", lookup)
    monkeypatch.setattr(server, "cam", None)
    return TestClient(server.app)


def test_routes_wait_for_resources(monkeypatch) -> None:
    monkeypatch.setattr(server, "session", None)
    client = TestClient(server.app)

    assert client.get("/api/state").status_code == 503
    assert client.post("/api/search", json={"query": "pikachu"}).status_code == 503


def test_state(client) -> None:
    data = client.get("/api/state").json()

    assert data["state"] == "scanning"
    assert data["matches"] == []


def test_manual_search(client) -> None:
    response = client.post("/api/search", json={"query": "pikachu"})

    assert response.status_code == 200
    state = response.json()["state"]
    assert state["state"] == "showing_results"
    assert [m["id"] for m in state["matches"]] == ["a", "b"]


def test_manual_search_needs_query(client) -> None:
    assert client.post("/api/search", json={"query": "  "}).status_code == 400
    assert client.post("/api/search", content=b"not json").status_code == 400


def test_manual_search_busy(client, monkeypatch) -> None:
    def busy(text):
        raise SessionBusyError("A scan is already in progress")

    monkeypatch.setattr(server.session, "manual_search", busy)

    response = client.post("/api/search", json={"query": "pikachu"})

    assert response.status_code == 409
    assert "in progress" in response.json()["error"]


def test_select(client) -> None:
    client.post("/api/search", json={"query": "pikachu"})

    assert client.post("/api/select", json={"id": "b"}).json()["match"]["id"] == "b"
    assert client.post("/api/select", json={"id": "zzz"}).status_code == 404


def test_clear_and_pause(client) -> None:
    client.post("/api/search", json={"query": "pikachu"})

    cleared = client.post("/api/scan/clear").json()
    assert cleared["ok"] is True
    assert cleared["state"]["state"] == "scanning"

    paused = client.post("/api/scan/pause").json()
    assert paused["state"]["state"] == "idle"
    resumed = client.post("/api/scan/resume").json()
    assert resumed["state"]["state"] == "scanning"


def test_upload_runs_a_frame(client) -> None:
    response = client.post("/scan/upload", files={"image": ("card.jpg", b"\xff\xd8fake", "image/jpeg")})

    assert response.status_code == 200
    state = response.json()["state"]
    assert state["state"] == "showing_results"
    assert state["hint"]["name"] == "Charizard"

    again = client.post("/scan/upload", files={"image": ("card.jpg", b"\xff\xd8fake", "image/jpeg")})
    assert again.status_code == 409


def test_upload_rejects_non_images(client) -> None:
    response = client.post("/scan/upload", files={"image": ("notes.txt", b"hello", "text/plain")})

    assert response.status_code == 400


def test_cache_route_without_cache(client) -> None:
    assert client.post("/api/cache", json={"action": "stats"}).status_code == 404


def test_cache_route(client, monkeypatch, lookup) -> None:
    monkeypatch.setattr(server, "lookup", CachedLookup(lookup, ttl_seconds=60))

    assert client.post("/api/cache", json={"action": "clear"}).json()["result"] == {"cleared": 0}
    assert client.post("/api/cache", json={"action": "bogus"}).status_code == 400


def test_status(client) -> None:
    data = client.get("/api/status").json()

    assert data["scanner_ready"] is True
    assert data["state"] == "scanning"
    assert data["camera"]["running"] is False


def test_video_feed_without_camera(client) -> None:
    assert client.get("/video_feed").status_code == 503
