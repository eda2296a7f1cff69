"""
Tests for the deduplicating merge job queue
"""
import threading

import pytest

from job_queue import JobStatus, MergeJobQueue


@pytest.fixture
def queue():
    job_queue = MergeJobQueue(concurrency=1, name="test")
    yield job_queue
    job_queue.shutdown(wait=True)


class TestMergeJobQueue:
    """Tests for MergeJobQueue"""

    def test_runs_job(self, queue):
        ran = []
        assert queue.add(1, lambda: ran.append(1)) is True
        queue.wait(timeout=5)
        assert ran == [1]
        assert queue.pending() == set()

    def test_duplicate_key_is_ignored_while_running(self, queue):
        started = threading.Event()
        release = threading.Event()
        calls = []

        def blocking():
            calls.append("first")
            started.set()
            release.wait(5)

        assert queue.add(7, blocking) is True
        assert started.wait(5)
        assert queue.status(7) == JobStatus.RUNNING
        assert queue.add(7, lambda: calls.append("second")) is False

        release.set()
        queue.wait(timeout=5)
        assert calls == ["first"]

    def test_duplicate_key_is_ignored_while_pending(self, queue):
        release = threading.Event()
        assert queue.add(1, lambda: release.wait(5)) is True
        assert queue.add(2, lambda: None) is True
        assert queue.status(2) == JobStatus.PENDING
        assert queue.add(2, lambda: None) is False
        assert queue.pending() == {1, 2}
        release.set()
        queue.wait(timeout=5)

    def test_key_released_after_completion(self, queue):
        calls = []
        queue.add(3, lambda: calls.append(1))
        queue.wait(timeout=5)
        assert queue.add(3, lambda: calls.append(2)) is True
        queue.wait(timeout=5)
        assert calls == [1, 2]

    def test_key_released_after_failure(self, queue):
        def failing():
            raise RuntimeError("boom")

        queue.add(4, failing)
        queue.wait(timeout=5)
        assert queue.status(4) is None
        assert queue.add(4, lambda: None) is True
        queue.wait(timeout=5)

    def test_shutdown_refuses_new_jobs(self):
        job_queue = MergeJobQueue(concurrency=2)
        ran = []
        job_queue.add(1, lambda: ran.append(1))
        job_queue.shutdown(wait=True)
        assert ran == [1]
        assert job_queue.is_accepting() is False
        assert job_queue.add(2, lambda: ran.append(2)) is False
        assert ran == [1]
