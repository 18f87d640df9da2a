"""Bookmark lifecycle: creation hook schedules archival, errors never block creation, delete cascades."""

import logging
import uuid
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from apps.linkvault.db import get_db
from apps.linkvault.jobs.archive_content import ArchiveContentJob, JobOutcome
from apps.linkvault.jobs.queue import InlineJobQueue
from apps.linkvault.models import Archive, ArchiveTransition, Bookmark
from apps.linkvault.services.archiver import Archiver
from apps.linkvault.services.bookmarks import DuplicateBookmark, create_bookmark, delete_bookmark, on_bookmark_created
from apps.linkvault.services.fetch import HttpFetcher
from apps.linkvault.services.repo import RecordNotFound, find_archive_for_bookmark, get_bookmark
from apps.linkvault.services.state_machine import history, transition_to
from apps.linkvault.services.url_validator import UrlValidator
from tests._helpers import FakeSession, html_response, public_resolver, seed_archive


class RecordingQueue:
    def __init__(self, error: Exception | None = None) -> None:
        self.enqueued: list = []
        self.error = error

    def enqueue(self, bookmark_id) -> None:
        if self.error is not None:
            raise self.error
        self.enqueued.append(bookmark_id)


def _count(model) -> int:
    with get_db() as session:
        return session.execute(select(func.count()).select_from(model)).scalar_one()


def test_create_bookmark_creates_pending_archive_and_enqueues(archive_config) -> None:
    queue = RecordingQueue()
    bookmark = create_bookmark("  HTTPS://Example.com:443/article#intro ", "read later", config=archive_config, queue=queue)

    assert bookmark.url == "https://example.com/article"
    assert bookmark.submitted_url == "HTTPS://Example.com:443/article#intro"
    assert bookmark.note == "read later"
    archive = find_archive_for_bookmark(bookmark.id)
    assert archive is not None
    assert archive.current_state == "pending"
    assert queue.enqueued == [bookmark.id]


def test_disabled_archival_creates_nothing(archive_config) -> None:
    queue = RecordingQueue()
    bookmark = create_bookmark(
        "https://example.com/a", config=archive_config.with_overrides(enabled=False), queue=queue
    )
    assert get_bookmark(bookmark.id).url == "https://example.com/a"
    assert find_archive_for_bookmark(bookmark.id) is None
    assert queue.enqueued == []


def test_enqueue_failure_is_logged_not_raised(archive_config, caplog) -> None:
    queue = RecordingQueue(error=RuntimeError("queue down"))
    with caplog.at_level(logging.ERROR, logger="apps.linkvault.services.bookmarks"):
        bookmark = create_bookmark("https://example.com/b", config=archive_config, queue=queue)

    assert get_bookmark(bookmark.id) is not None
    assert "failed to create or enqueue" in caplog.text
    assert "queue down" in caplog.text


def test_archive_creation_failure_is_logged_not_raised(archive_config, caplog) -> None:
    queue = RecordingQueue()
    with patch("apps.linkvault.services.bookmarks.create_archive", side_effect=RuntimeError("db hiccup")):
        with caplog.at_level(logging.ERROR, logger="apps.linkvault.services.bookmarks"):
            bookmark = create_bookmark("https://example.com/c", config=archive_config, queue=queue)

    assert get_bookmark(bookmark.id).id == bookmark.id
    assert queue.enqueued == []
    assert "db hiccup" in caplog.text


def test_hook_for_unknown_bookmark_does_not_raise(archive_config, caplog) -> None:
    queue = RecordingQueue()
    with caplog.at_level(logging.ERROR, logger="apps.linkvault.services.bookmarks"):
        on_bookmark_created(uuid.uuid4(), config=archive_config, queue=queue)
    assert queue.enqueued == []
    assert "failed to create or enqueue" in caplog.text


def test_duplicate_canonical_url_rejected(archive_config) -> None:
    queue = RecordingQueue()
    first = create_bookmark("https://example.com/dup", config=archive_config, queue=queue)
    with pytest.raises(DuplicateBookmark) as exc:
        create_bookmark("https://EXAMPLE.com/dup#again", config=archive_config, queue=queue)
    assert exc.value.existing_id == first.id
    assert queue.enqueued == [first.id]


@pytest.mark.parametrize("url", ["", "   ", "https://example.com/" + "p" * 2100])
def test_empty_or_oversized_url_rejected(archive_config, url: str) -> None:
    with pytest.raises(ValueError):
        create_bookmark(url, config=archive_config, queue=RecordingQueue())
    assert _count(Bookmark) == 0


def test_delete_bookmark_cascades_to_archive_and_transitions() -> None:
    bookmark, archive = seed_archive("https://example.com/gone")
    transition_to(archive.id, "processing")
    transition_to(archive.id, "failed", {"error_message": "x"})
    other_bookmark, other_archive = seed_archive("https://example.com/keep")

    delete_bookmark(bookmark.id)

    with pytest.raises(RecordNotFound):
        get_bookmark(bookmark.id)
    assert find_archive_for_bookmark(bookmark.id) is None
    assert history(archive.id) == []
    assert _count(Archive) == 1
    assert _count(ArchiveTransition) == 1
    assert find_archive_for_bookmark(other_bookmark.id).id == other_archive.id


def test_delete_missing_bookmark_raises() -> None:
    with pytest.raises(RecordNotFound):
        delete_bookmark(uuid.uuid4())


def test_create_with_inline_queue_archives_immediately(archive_config) -> None:
    validator = UrlValidator(resolver=public_resolver())
    session = FakeSession({"https://example.com/article": html_response("<title>Hello</title><p>hi</p>")})
    archiver = Archiver(archive_config, validator=validator, fetcher=HttpFetcher(archive_config, validator, session))
    queue = InlineJobQueue(ArchiveContentJob(archive_config, archiver_factory=lambda: archiver, sleep=lambda s: None))

    bookmark = create_bookmark("https://example.com/article", config=archive_config, queue=queue)

    assert queue.outcomes == [(bookmark.id, JobOutcome.COMPLETED)]
    archive = find_archive_for_bookmark(bookmark.id)
    assert archive.current_state == "success"
    assert archive.title == "Hello"
