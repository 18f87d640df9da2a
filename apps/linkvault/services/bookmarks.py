"""Bookmark lifecycle: create (and kick off archival), delete (cascading)."""

import logging
import uuid
from typing import Any, Protocol

from apps.linkvault.config import ArchiveConfig
from apps.linkvault.models.bookmark import URL_MAX_LENGTH, Bookmark
from apps.linkvault.services.repo import create_archive, delete_bookmark, get_bookmark_by_url, insert_bookmark
from apps.linkvault.services.url_utils import canonicalize_url

logger = logging.getLogger(__name__)

__all__ = ["DuplicateBookmark", "JobQueue", "create_bookmark", "delete_bookmark", "on_bookmark_created"]


class DuplicateBookmark(ValueError):
    """Raised when the canonical URL is already bookmarked."""

    def __init__(self, url: str, existing_id: uuid.UUID) -> None:
        self.url = url
        self.existing_id = existing_id
        super().__init__(f"already bookmarked: {url}")


class JobQueue(Protocol):
    def enqueue(self, bookmark_id: uuid.UUID) -> Any: ...


def create_bookmark(
    url: str,
    note: str | None = None,
    *,
    config: ArchiveConfig,
    queue: JobQueue,
) -> Bookmark:
    """
    Store a bookmark (url canonicalized, submitted_url kept as given), then run the
    creation hook. Raises ValueError for empty/oversized input, DuplicateBookmark.
    The hook never raises; archival problems do not block bookmark creation.
    """
    submitted = (url or "").strip()
    if not submitted:
        raise ValueError("url is required")
    canonical = canonicalize_url(submitted)
    if len(canonical) > URL_MAX_LENGTH:
        raise ValueError(f"url longer than {URL_MAX_LENGTH} characters")

    existing = get_bookmark_by_url(canonical)
    if existing is not None:
        raise DuplicateBookmark(canonical, existing.id)

    bookmark = insert_bookmark(canonical, submitted, note)
    logger.info("bookmark=%s created url=%s", bookmark.id, canonical)
    on_bookmark_created(bookmark.id, config=config, queue=queue)
    return bookmark


def on_bookmark_created(bookmark_id: uuid.UUID, *, config: ArchiveConfig, queue: JobQueue) -> None:
    """When archival is enabled: create the pending archive and enqueue its job. Errors are logged only."""
    if not config.enabled:
        logger.info("bookmark=%s archival disabled; no archive created", bookmark_id)
        return
    try:
        archive = create_archive(bookmark_id)
        logger.info("bookmark=%s archive=%s pending, enqueueing", bookmark_id, archive.id)
        queue.enqueue(bookmark_id)
    except Exception:
        logger.exception("bookmark=%s failed to create or enqueue content archive", bookmark_id)
