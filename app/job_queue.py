"""
In-process deduplicating job queue for metadata merges.
A key is either pending/running or absent; adding a present key is a no-op.
"""
from concurrent.futures import ThreadPoolExecutor, wait as wait_futures
from dataclasses import dataclass, field
import threading
import logging
from typing import Callable, Dict, Hashable, Optional, Set

from metrics import pending_merge_jobs
from utils import now_utc

logger = logging.getLogger("main")


class JobStatus:
    PENDING = "pending"
    RUNNING = "running"


@dataclass
class QueuedJob:
    key: Hashable
    fn: Callable
    status: str = JobStatus.PENDING
    queued_at: object = field(default_factory=now_utc)


class MergeJobQueue:
    """Bounded worker pool with add-if-absent semantics keyed by job identity"""

    def __init__(self, concurrency: int = 1, name: str = "merge"):
        self.concurrency = max(1, int(concurrency or 1))
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix=f"{name}-job")
        self._jobs: Dict[Hashable, QueuedJob] = {}
        self._lock = threading.Lock()
        self._accepting = True
        self._futures = set()

    def add(self, key: Hashable, fn: Callable) -> bool:
        """Queue `fn` under `key`. Returns False when the key is already queued/running or the queue is closed."""
        with self._lock:
            if not self._accepting:
                logger.warning(f"{self.name} queue is shut down, dropping job {key}")
                return False
            if key in self._jobs:
                logger.debug(f"{self.name} job {key} already queued, skipping")
                return False
            job = QueuedJob(key=key, fn=fn)
            self._jobs[key] = job
            pending_merge_jobs.set(len(self._jobs))
            future = self._executor.submit(self._run, job)
            self._futures.add(future)
            future.add_done_callback(self._futures.discard)
        logger.debug(f"{self.name} job {key} queued")
        return True

    def _run(self, job: QueuedJob):
        job.status = JobStatus.RUNNING
        try:
            return job.fn()
        except Exception as e:
            logger.error(f"{self.name} job {job.key} failed: {e}", exc_info=True)
        finally:
            with self._lock:
                self._jobs.pop(job.key, None)
                pending_merge_jobs.set(len(self._jobs))

    def pending(self) -> Set[Hashable]:
        with self._lock:
            return set(self._jobs)

    def status(self, key: Hashable) -> Optional[str]:
        with self._lock:
            job = self._jobs.get(key)
            return job.status if job else None

    def is_accepting(self) -> bool:
        return self._accepting

    def wait(self, timeout: Optional[float] = None):
        """Block until every job queued so far has finished (test/drain helper)"""
        with self._lock:
            futures = list(self._futures)
        wait_futures(futures, timeout=timeout)

    def shutdown(self, wait: bool = True):
        """Stop accepting jobs; queued jobs still run"""
        with self._lock:
            self._accepting = False
        logger.info(f"Shutting down {self.name} queue ({len(self.pending())} jobs pending)")
        self._executor.shutdown(wait=wait)
