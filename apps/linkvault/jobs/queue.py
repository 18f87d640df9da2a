"""Job queues for ArchiveContentJob. Both expose enqueue(bookmark_id)."""

import logging
import threading
from concurrent import futures
from typing import Any

from apps.linkvault.jobs.archive_content import ArchiveContentJob, JobOutcome

logger = logging.getLogger(__name__)


class InlineJobQueue:
    """Runs the job on enqueue, in the caller's thread. Used by tests and the cron sweep."""

    def __init__(self, job: ArchiveContentJob) -> None:
        self.job = job
        self.outcomes: list[tuple[Any, JobOutcome]] = []

    def enqueue(self, bookmark_id: Any) -> JobOutcome:
        outcome = self.job.run(bookmark_id)
        self.outcomes.append((bookmark_id, outcome))
        return outcome

    def shutdown(self, wait: bool = True) -> None:
        pass


class ThreadPoolJobQueue:
    """
    Background thread pool. Different bookmarks run concurrently; a bookmark that already
    has a job in flight gets the existing future back instead of a second job.
    """

    def __init__(self, job: ArchiveContentJob, max_workers: int = 4) -> None:
        self.job = job
        self._executor = futures.ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="linkvault-archive")
        self._in_flight: dict[str, futures.Future] = {}
        self._lock = threading.Lock()

    def enqueue(self, bookmark_id: Any) -> futures.Future:
        key = str(bookmark_id)
        with self._lock:
            existing = self._in_flight.get(key)
            if existing is not None and not existing.done():
                logger.info("bookmark=%s already has an archive job in flight", key)
                return existing
            future = self._executor.submit(self._run, bookmark_id)
            self._in_flight[key] = future
        future.add_done_callback(lambda f, k=key: self._forget(k, f))
        return future

    def _run(self, bookmark_id: Any) -> JobOutcome:
        try:
            return self.job.run(bookmark_id)
        except Exception:
            logger.exception("ArchiveContentJob crashed bookmark=%s", bookmark_id)
            raise

    def _forget(self, key: str, future: futures.Future) -> None:
        with self._lock:
            if self._in_flight.get(key) is future:
                del self._in_flight[key]

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
