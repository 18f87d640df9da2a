"""HTTP surface: bookmark create/delete, archive read, transition history, health.

Uses TestClient without the lifespan; app.state gets the test config and a recording queue.
"""

import uuid

import pytest
from fastapi.testclient import TestClient

from apps.linkvault.main import app
from apps.linkvault.services.repo import find_archive_for_bookmark
from apps.linkvault.services.state_machine import transition_to

client = TestClient(app)


class RecordingQueue:
    def __init__(self) -> None:
        self.enqueued: list = []

    def enqueue(self, bookmark_id) -> None:
        self.enqueued.append(bookmark_id)


@pytest.fixture
def queue(archive_config):
    q = RecordingQueue()
    app.state.archive_config = archive_config
    app.state.job_queue = q
    yield q
    del app.state.job_queue
    del app.state.archive_config


def _create(url: str = "https://example.com/article", **extra) -> dict:
    r = client.post("/bookmarks", json={"url": url, **extra})
    assert r.status_code == 201, r.text
    return r.json()


def test_health_reports_archive_counts(queue) -> None:
    _create()
    r = client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["ok"] is True
    assert data["archival_enabled"] is True
    assert data["archives"] == {"pending": 1}


def test_post_bookmark_enqueues_archive(queue) -> None:
    data = _create("https://Example.com/article#x", note="later")
    assert data["url"] == "https://example.com/article"
    assert data["submitted_url"] == "https://Example.com/article#x"
    assert data["note"] == "later"
    assert queue.enqueued == [uuid.UUID(data["id"])]


def test_post_duplicate_is_409(queue) -> None:
    first = _create()
    r = client.post("/bookmarks", json={"url": "https://example.com/article"})
    assert r.status_code == 409
    assert r.json()["detail"]["bookmark_id"] == first["id"]


def test_post_rejects_unknown_fields(queue) -> None:
    r = client.post("/bookmarks", json={"url": "https://example.com/", "folder": "x"})
    assert r.status_code == 422


def test_pending_archive_readable(queue) -> None:
    bookmark = _create()
    r = client.get(f"/bookmarks/{bookmark['id']}/archive")
    assert r.status_code == 200
    data = r.json()
    assert data["state"] == "pending"
    assert data["bookmark_id"] == bookmark["id"]
    assert data["title"] is None
    assert data["error_message"] is None


def test_archive_shows_terminal_state_and_history(queue) -> None:
    bookmark = _create("http://localhost/admin")
    archive = find_archive_for_bookmark(uuid.UUID(bookmark["id"]))
    transition_to(
        archive.id,
        "blocked",
        {"validation_reason": "loopback"},
        updates={"error_message": "URL resolves to a non-public address 127.0.0.1 (SSRF protection)"},
    )

    data = client.get(f"/bookmarks/{bookmark['id']}/archive").json()
    assert data["state"] == "blocked"
    assert "SSRF" in data["error_message"]

    r = client.get(f"/bookmarks/{bookmark['id']}/archive/transitions")
    assert r.status_code == 200
    rows = r.json()
    assert [(t["to_state"], t["sort_key"], t["most_recent"]) for t in rows] == [
        ("pending", 1, False),
        ("blocked", 2, True),
    ]
    assert rows[1]["metadata"] == {"validation_reason": "loopback"}


def test_unknown_bookmark_is_404(queue) -> None:
    missing = uuid.uuid4()
    assert client.get(f"/bookmarks/{missing}").status_code == 404
    assert client.get(f"/bookmarks/{missing}/archive").status_code == 404
    assert client.get(f"/bookmarks/{missing}/archive/transitions").status_code == 404
    assert client.delete(f"/bookmarks/{missing}").status_code == 404


def test_delete_bookmark_removes_archive(queue) -> None:
    bookmark = _create()
    r = client.delete(f"/bookmarks/{bookmark['id']}")
    assert r.status_code == 204
    assert client.get(f"/bookmarks/{bookmark['id']}").status_code == 404
    assert client.get(f"/bookmarks/{bookmark['id']}/archive").status_code == 404
    assert client.get("/health").json()["archives"] == {}
