"""Job queues: inline runs on enqueue; thread pool keeps one in-flight job per bookmark."""

import threading
import uuid

import pytest

from apps.linkvault.jobs.archive_content import JobOutcome
from apps.linkvault.jobs.queue import InlineJobQueue, ThreadPoolJobQueue


class StubJob:
    def __init__(self, gate: threading.Event | None = None, error: Exception | None = None) -> None:
        self.gate = gate
        self.error = error
        self.ran: list = []

    def run(self, bookmark_id) -> JobOutcome:
        if self.gate is not None:
            assert self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        self.ran.append(bookmark_id)
        return JobOutcome.COMPLETED


def test_inline_queue_runs_immediately() -> None:
    job = StubJob()
    queue = InlineJobQueue(job)
    bid = uuid.uuid4()
    assert queue.enqueue(bid) == JobOutcome.COMPLETED
    assert job.ran == [bid]
    assert queue.outcomes == [(bid, JobOutcome.COMPLETED)]


def test_thread_pool_dedupes_in_flight_bookmark() -> None:
    gate = threading.Event()
    job = StubJob(gate=gate)
    queue = ThreadPoolJobQueue(job, max_workers=2)
    a, b = uuid.uuid4(), uuid.uuid4()
    try:
        first = queue.enqueue(a)
        again = queue.enqueue(a)
        other = queue.enqueue(b)
        assert again is first
        assert other is not first
        gate.set()
        assert first.result(timeout=5) == JobOutcome.COMPLETED
        assert other.result(timeout=5) == JobOutcome.COMPLETED
        assert sorted(map(str, job.ran)) == sorted([str(a), str(b)])

        later = queue.enqueue(a)
        assert later is not first
        assert later.result(timeout=5) == JobOutcome.COMPLETED
    finally:
        gate.set()
        queue.shutdown(wait=True)


def test_thread_pool_surfaces_crash_on_future() -> None:
    queue = ThreadPoolJobQueue(StubJob(error=RuntimeError("bug")), max_workers=1)
    try:
        future = queue.enqueue(uuid.uuid4())
        with pytest.raises(RuntimeError, match="bug"):
            future.result(timeout=5)
    finally:
        queue.shutdown(wait=True)
