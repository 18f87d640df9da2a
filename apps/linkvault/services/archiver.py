"""Archiver: validate -> fetch -> extract -> persist, driving the archive state machine.

Failure classification:
- FetchTimeoutError (transient) propagates untouched; the archive stays in processing
  and the job runner retries the whole call.
- a transition lost to a concurrent attempt returns Err(concurrent_attempt) and writes nothing.
- everything else (validation, HTTP status, size, extraction, bugs) is recorded as a
  terminal transition and never raised.
"""

import logging
import uuid
from datetime import datetime
from typing import Any

from apps.linkvault.config import ArchiveConfig
from apps.linkvault.models.archive import Archive
from apps.linkvault.models.base import utcnow
from apps.linkvault.services.extract import ContentExtractor
from apps.linkvault.services.fetch import FETCH_BLOCKED, FetchedContent, FetchTimeoutError, HttpFetcher
from apps.linkvault.services.result import Err, Ok, Result
from apps.linkvault.services.state_machine import (
    ArchiveState,
    InvalidTransition,
    TransitionConflict,
    allowed_transitions,
    current_state,
    is_terminal,
    transition_to,
)
from apps.linkvault.services.url_validator import UrlValidator, ValidationReason, reason_to_state

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")
CONCURRENT_ATTEMPT = "concurrent_attempt"


def is_html(content_type: str | None, body: str = "") -> bool:
    """HTML by Content-Type; with no Content-Type at all, sniff for markup."""
    if content_type and content_type.strip():
        ct = content_type.lower()
        return any(t in ct for t in HTML_CONTENT_TYPES)
    return body.lstrip()[:1] == "<"


def fail_archive(
    archive_id: uuid.UUID,
    error_reason: str,
    error_message: str,
    *,
    to_state: ArchiveState = ArchiveState.FAILED,
    fetched_at: datetime | None = None,
    **extra: Any,
) -> bool:
    """
    Drive archive_id to a failure state and store error_message on the row.
    From pending, a state only reachable via processing goes through processing first.
    Returns False (nothing written) when the archive is already terminal.
    """
    state = current_state(archive_id)
    if is_terminal(state):
        logger.info("archive=%s already terminal (%s), not recording %s", archive_id, state.value, error_reason)
        return False
    if state == ArchiveState.PENDING and to_state not in allowed_transitions(state):
        transition_to(archive_id, ArchiveState.PROCESSING, {"error_reason": error_reason})
    metadata = {"error_reason": error_reason, "error_message": error_message}
    metadata.update({k: v for k, v in extra.items() if v is not None})
    updates: dict[str, Any] = {"error_message": error_message}
    if fetched_at is not None:
        updates["fetched_at"] = fetched_at
    transition_to(archive_id, to_state, metadata, updates=updates)
    return True


class Archiver:
    """Runs one archival attempt for an archive. Collaborators are injectable for tests."""

    def __init__(
        self,
        config: ArchiveConfig,
        validator: UrlValidator | None = None,
        fetcher: HttpFetcher | None = None,
        extractor: ContentExtractor | None = None,
    ) -> None:
        self.config = config
        self.validator = validator or UrlValidator()
        self.fetcher = fetcher or HttpFetcher(config, validator=self.validator)
        self.extractor = extractor or ContentExtractor()

    def close(self) -> None:
        self.fetcher.close()

    def call(self, archive: Archive, *, attempt: int = 1) -> Result:
        """
        Archive the bookmark URL of archive. Returns Ok(archive_id) on success, Err otherwise;
        the outcome is persisted as a transition unless another attempt moved the archive first
        (Err concurrent_attempt). Raises only FetchTimeoutError.
        attempt: 1-based job attempt number, recorded as retry_count.
        """
        archive_id = archive.id
        try:
            state = current_state(archive_id)
            if is_terminal(state):
                logger.info("archive=%s already %s, skipping", archive_id, state.value)
                return Err(kind="already_terminal", message=f"archive already {state.value}")

            if not self.config.enabled:
                message = "Content archival disabled"
                fail_archive(archive_id, "disabled", message)
                return Err(kind="disabled", message=message)

            url = archive.bookmark.url
            check = self.validator.validate(url)
            if isinstance(check, Err):
                return self._validation_failed(archive_id, state, check)

            if state == ArchiveState.PENDING:
                transition_to(archive_id, ArchiveState.PROCESSING, {"retry_count": attempt - 1})
            else:
                logger.info("archive=%s resuming in processing attempt=%d", archive_id, attempt)

            return self._fetch_and_store(archive_id, url, attempt)
        except FetchTimeoutError:
            logger.warning("archive=%s fetch timed out attempt=%d; leaving in processing", archive_id, attempt)
            raise
        except (TransitionConflict, InvalidTransition) as e:
            logger.info("archive=%s another attempt owns this archive, standing down: %s", archive_id, e)
            return Err(kind=CONCURRENT_ATTEMPT, message=str(e))
        except Exception as e:
            return self._unexpected(archive_id, e)

    def _validation_failed(self, archive_id: uuid.UUID, state: ArchiveState, check: Err) -> Err:
        reason = ValidationReason(check.kind)
        to_state = reason_to_state(reason)
        if to_state not in allowed_transitions(state):
            # processing -> invalid_url is not a legal move; record as failed
            to_state = ArchiveState.FAILED
        metadata = {
            "error_reason": reason.value,
            "validation_reason": reason.value,
            "error_message": check.message,
        }
        transition_to(archive_id, to_state, metadata, updates={"error_message": check.message})
        logger.info("archive=%s rejected by validator reason=%s -> %s", archive_id, reason.value, to_state.value)
        return check

    def _fetch_and_store(self, archive_id: uuid.UUID, url: str, attempt: int) -> Result:
        fetched = self.fetcher.fetch(url)
        if isinstance(fetched, Err):
            return self._fetch_failed(archive_id, fetched, attempt)

        content: FetchedContent = fetched.data
        if is_html(content.content_type, content.body):
            parsed = self.extractor.extract(content.body, content.final_url)
            if isinstance(parsed, Err):
                fail_archive(
                    archive_id,
                    parsed.kind,
                    parsed.message,
                    http_status=content.status,
                    fetched_at=utcnow(),
                )
                return parsed
            article = parsed.data
            updates = {
                "title": article.title,
                "description": article.description,
                "content_text": article.content_text,
                "content_html": article.content_html,
                "raw_html": content.body,
                "image_url": article.image_url,
                "meta": {**article.metadata, "http_status": content.status},
                "error_message": None,
                "fetched_at": utcnow(),
            }
        else:
            updates = {
                "meta": {
                    "content_type": content.content_type,
                    "final_url": content.final_url,
                    "http_status": content.status,
                },
                "error_message": None,
                "fetched_at": utcnow(),
            }

        transition_to(
            archive_id,
            ArchiveState.SUCCESS,
            {
                "fetch_duration_ms": content.duration_ms,
                "http_status": content.status,
                "retry_count": attempt - 1,
            },
            updates=updates,
        )
        logger.info("archive=%s completed content_type=%s", archive_id, content.content_type or "-")
        return Ok(archive_id)

    def _fetch_failed(self, archive_id: uuid.UUID, error: Err, attempt: int) -> Err:
        to_state = ArchiveState.BLOCKED if error.kind == FETCH_BLOCKED else ArchiveState.FAILED
        metadata = {
            "error_reason": error.kind,
            "error_message": error.message,
            "http_status": error.details.get("http_status"),
            "retry_count": attempt - 1,
        }
        for key in ("validation_reason", "redirect_url"):
            if error.details.get(key):
                metadata[key] = error.details[key]
        transition_to(
            archive_id,
            to_state,
            metadata,
            updates={"error_message": error.message, "fetched_at": utcnow()},
        )
        logger.info("archive=%s fetch failed kind=%s -> %s", archive_id, error.kind, to_state.value)
        return error

    def _unexpected(self, archive_id: uuid.UUID, error: Exception) -> Err:
        message = f"Unexpected error: {type(error).__name__} - {error}"
        logger.exception("archive=%s error: %s", archive_id, message)
        try:
            fail_archive(archive_id, "unexpected_error", message)
        except Exception:
            logger.exception("archive=%s could not record unexpected failure", archive_id)
        return Err(kind="unexpected_error", message=message)
