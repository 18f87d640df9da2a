#!/usr/bin/env python3
"""Archive sweep: re-enqueue lost archival jobs and report archives stuck in processing.

Run: python -m cron.archive_pending

- pending for longer than PENDING_GRACE_MINUTES: the enqueue after bookmark creation was
  lost (process died, queue dropped it). Run the job inline for each, up to SWEEP_BATCH_SIZE.
- processing for longer than STALE_PROCESSING_MINUTES: logged only. Nothing is transitioned;
  a live job may still own the archive.
"""

import sys
from datetime import datetime, timedelta, timezone

sys.path.insert(0, str(__import__("pathlib").Path(__file__).resolve().parent.parent))

from cron.config import config
from cron.logging import get_logger

logger = get_logger("archive_pending")


def sweep_pending(queue, now: datetime | None = None) -> int:
    """Enqueue jobs for archives still pending past the grace period. Returns count enqueued."""
    from apps.linkvault.services.repo import list_archives_in_state

    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(minutes=config.PENDING_GRACE_MINUTES)
    archives = list_archives_in_state("pending", updated_before=cutoff, limit=config.SWEEP_BATCH_SIZE)
    for archive in archives:
        logger.info("archive=%s bookmark=%s pending since before %s, enqueueing", archive.id, archive.bookmark_id, cutoff)
        queue.enqueue(archive.bookmark_id)
    return len(archives)


def report_stale_processing(now: datetime | None = None) -> int:
    """Log archives in processing past STALE_PROCESSING_MINUTES. Returns count found."""
    from apps.linkvault.services.repo import list_archives_in_state

    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(minutes=config.STALE_PROCESSING_MINUTES)
    stale = list_archives_in_state("processing", updated_before=cutoff, limit=config.SWEEP_BATCH_SIZE)
    for archive in stale:
        logger.warning("archive=%s bookmark=%s stuck in processing since before %s", archive.id, archive.bookmark_id, cutoff)
    return len(stale)


def main() -> int:
    from apps.linkvault.config import ArchiveConfig
    from apps.linkvault.jobs.archive_content import ArchiveContentJob
    from apps.linkvault.jobs.queue import InlineJobQueue

    archive_config = ArchiveConfig.from_env()
    if not archive_config.enabled:
        logger.warning("archival disabled (LINKVAULT_ENABLED), nothing to sweep")
        return 0

    logger.info("archive_pending start batch=%s", config.SWEEP_BATCH_SIZE)
    try:
        queue = InlineJobQueue(ArchiveContentJob(archive_config.validate()))
        enqueued = sweep_pending(queue)
        stale = report_stale_processing()
    except Exception as e:
        logger.exception("archive_pending error: %s", e)
        return 1

    logger.info("archive_pending done enqueued=%s stale_processing=%s", enqueued, stale)
    return 0


if __name__ == "__main__":
    sys.exit(main())
