"""
Background Jobs - library indexing schedule
"""
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from datetime import timedelta
import logging
import threading

from utils import now_utc

logger = logging.getLogger('main')

SCAN_JOB_ID = 'index_library'


class IndexingScheduler:
    """Runs full library scans: at startup, on an interval and on demand. Scans never overlap."""

    def __init__(self, indexer, interval_in_minutes=60, watcher=None, merge_queue=None):
        self.indexer = indexer
        self.interval_in_minutes = interval_in_minutes
        self.watcher = watcher
        self.merge_queue = merge_queue
        self.scheduler = BackgroundScheduler()
        self.indexer.reindex_trigger = self.trigger

        self._state_lock = threading.Lock()
        self._running = False
        self._rerun_requested = False
        self._stopped = False
        self.last_summary = None

    def start(self, run_at_startup=True):
        """Register jobs and start the scheduler thread"""
        if self.interval_in_minutes and self.interval_in_minutes > 0:
            self.scheduler.add_job(
                func=self.trigger,
                trigger=IntervalTrigger(minutes=self.interval_in_minutes),
                id=SCAN_JOB_ID,
                name='Index Library',
                max_instances=1,
                coalesce=True,
            )
            logger.info(f"Library indexing scheduled every {self.interval_in_minutes} minutes")
        else:
            logger.info("Periodic library indexing disabled")

        if run_at_startup:
            self.scheduler.add_job(
                func=self.trigger,
                trigger='date',
                run_date=now_utc() + timedelta(seconds=1),
                id='index_library_startup',
                name='Index Library (startup)',
            )
        self.scheduler.start()

        if self.watcher:
            self.watcher.run()
        logger.info("Indexing scheduler started")

    def trigger(self, *_):
        """
        Request a full scan. While a scan is running, at most one follow-up scan is
        queued; further requests are absorbed by it. Returns True if this call ran a scan.
        """
        with self._state_lock:
            if self._stopped:
                return False
            if self._running:
                if not self._rerun_requested:
                    logger.debug("Scan in progress, queueing one follow-up scan")
                self._rerun_requested = True
                return False
            self._running = True

        try:
            while True:
                try:
                    self.last_summary = self.indexer.index_all_files()
                except Exception as e:
                    logger.error(f"Library scan failed: {e}", exc_info=True)
                with self._state_lock:
                    if not self._rerun_requested or self._stopped:
                        break
                    self._rerun_requested = False
        finally:
            with self._state_lock:
                self._running = False
        return True

    def trigger_async(self, *_):
        """Non-blocking trigger for watcher callbacks and request handlers"""
        thread = threading.Thread(target=self.trigger, name="index-trigger", daemon=True)
        thread.start()
        return thread

    @property
    def is_running(self):
        return self._running

    def shutdown(self):
        """Stop timers and watcher, let the current file finish, then drain merge jobs"""
        with self._state_lock:
            self._stopped = True
            self._rerun_requested = False
        if self.watcher:
            self.watcher.stop()
        self.indexer.stop_accepting()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
        if self.merge_queue:
            self.merge_queue.shutdown(wait=True)
        logger.info("Indexing scheduler shutdown")
