"""Background job: archive one bookmark's content, retrying transient fetch timeouts.

Only FetchTimeoutError is retried. RecordNotFound and unparseable ids are discarded
without retry. Exhausted retries leave the archive in failed, never in processing.
"""

import logging
import random
import time
import uuid
from enum import Enum
from typing import Any, Callable

from apps.linkvault.config import ArchiveConfig
from apps.linkvault.services.archiver import Archiver, fail_archive
from apps.linkvault.services.fetch import FetchTimeoutError
from apps.linkvault.services.repo import RecordNotFound, find_archive_for_bookmark, get_archive_for_bookmark
from apps.linkvault.services.result import Result
from apps.linkvault.services.state_machine import InvalidTransition, TransitionConflict

logger = logging.getLogger(__name__)


class JobOutcome(str, Enum):
    COMPLETED = "completed"
    EXHAUSTED = "exhausted"
    DISCARDED = "discarded"


class JobDeserializationError(ValueError):
    """Raised when the job argument is not a bookmark id."""

    pass


def parse_bookmark_id(value: Any) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError) as e:
        raise JobDeserializationError(f"not a bookmark id: {value!r}") from e


class ArchiveContentJob:
    """
    Stateless job; one instance can run many bookmarks. sleep and rng are injectable
    so tests can assert the backoff schedule without waiting.
    """

    def __init__(
        self,
        config: ArchiveConfig,
        archiver_factory: Callable[[], Archiver] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.config = config
        self.archiver_factory = archiver_factory or (lambda: Archiver(config))
        self.sleep = sleep
        self.rng = rng

    def backoff_delay(self, attempt: int) -> float:
        """Delay after failed attempt N (1-based): base * 2**(N-1) plus jitter in [0, base)."""
        base = self.config.retry_backoff_base
        return base * (2 ** (attempt - 1)) + self.rng() * base

    def perform(self, bookmark_id: uuid.UUID, *, attempt: int = 1) -> Result:
        """One attempt: load the archive fresh and run the Archiver. Raises FetchTimeoutError, RecordNotFound."""
        archive = get_archive_for_bookmark(bookmark_id)
        archiver = self.archiver_factory()
        try:
            return archiver.call(archive, attempt=attempt)
        finally:
            archiver.close()

    def run(self, bookmark_id: Any) -> JobOutcome:
        try:
            bid = parse_bookmark_id(bookmark_id)
        except JobDeserializationError as e:
            logger.warning("ArchiveContentJob discarded: %s", e)
            return JobOutcome.DISCARDED

        max_attempts = max(1, self.config.max_retries)
        attempt = 1
        while True:
            try:
                result = self.perform(bid, attempt=attempt)
            except RecordNotFound as e:
                logger.warning("ArchiveContentJob discarded bookmark=%s: %s", bid, e)
                self._discard(bid, str(e))
                return JobOutcome.DISCARDED
            except FetchTimeoutError as e:
                if attempt >= max_attempts:
                    logger.error("ArchiveContentJob bookmark=%s retries exhausted after %d attempts: %s", bid, attempt, e)
                    self._exhausted(bid, attempt, e)
                    return JobOutcome.EXHAUSTED
                delay = self.backoff_delay(attempt)
                logger.info(
                    "ArchiveContentJob bookmark=%s attempt=%d timed out, retrying in %.2fs", bid, attempt, delay
                )
                self.sleep(delay)
                attempt += 1
                continue

            logger.info("ArchiveContentJob bookmark=%s done attempt=%d ok=%s", bid, attempt, result.ok)
            return JobOutcome.COMPLETED

    def _exhausted(self, bookmark_id: uuid.UUID, attempts: int, error: FetchTimeoutError) -> None:
        archive = find_archive_for_bookmark(bookmark_id)
        if archive is None:
            return
        self._record(
            archive.id,
            "retries_exhausted",
            f"Fetch timed out on all {attempts} attempts: {error}",
            retry_count=attempts,
        )

    def _discard(self, bookmark_id: uuid.UUID, reason: str) -> None:
        archive = find_archive_for_bookmark(bookmark_id)
        if archive is None:
            return
        self._record(archive.id, "discarded", f"Job discarded: {reason}")

    @staticmethod
    def _record(archive_id: uuid.UUID, error_reason: str, message: str, **extra: Any) -> None:
        try:
            fail_archive(archive_id, error_reason, message, **extra)
        except (InvalidTransition, TransitionConflict) as e:
            # another writer finished the archive first
            logger.warning("archive=%s could not record %s: %s", archive_id, error_reason, e)
