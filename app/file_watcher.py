from utils import debounce, now_utc
import time
import os
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver
from watchdog.events import FileSystemEventHandler
from types import SimpleNamespace
import logging
import threading

# Retrieve main logger
logger = logging.getLogger("main")


class Watcher:
    """Watches game directories and reports changed supported files to `callback(events)`"""

    def __init__(self, callback, supported_formats, use_polling=False, stability_duration=3):
        self.directories = set()
        self.callback = callback
        self.use_polling = use_polling
        self.event_handler = Handler(
            self.callback, supported_formats, stability_duration=stability_duration, watcher=self
        )
        self.observer = self._create_observer()
        self.scheduler_map = {}

        self.last_event_time = None
        self.error_count = 0
        self.last_error = None
        self.is_running = False

    def _create_observer(self):
        if self.use_polling:
            # Network shares and Docker volumes often do not deliver inotify events
            logger.info("Watching game directories by polling")
            return PollingObserver(timeout=0.5)
        return Observer()

    def run(self):
        try:
            self.observer.start()
            self.is_running = True
            logger.info("Watchdog observer started successfully.")
        except Exception as e:
            self.is_running = False
            self.error_count += 1
            self.last_error = str(e)
            logger.error(f"Failed to start watchdog observer: {e}")
            raise

    def stop(self):
        logger.debug("Stopping watchdog observer...")
        self.event_handler.cancel()
        if not self.is_running:
            return
        try:
            self.observer.stop()
            self.observer.join(timeout=10)
            self.is_running = False
            logger.info("Watchdog observer stopped successfully.")
        except RuntimeError as e:
            logger.error(f"Error stopping observer: {e}")

    def get_status(self):
        return {
            "running": self.is_running,
            "polling": self.use_polling,
            "observer_alive": self.observer.is_alive() if self.is_running else False,
            "directories": list(self.directories),
            "last_event_time": self.last_event_time.isoformat() if self.last_event_time else None,
            "error_count": self.error_count,
            "last_error": self.last_error,
        }

    def add_directory(self, directory, recursive=True):
        if directory in self.directories:
            return False
        if not os.path.exists(directory):
            logger.warning(f"Directory {directory} does not exist, not added to watchdog.")
            return False
        logger.info(f"Adding directory {directory} to watchdog.")
        try:
            task = self.observer.schedule(self.event_handler, directory, recursive=recursive)
        except OSError as e:
            logger.error(f"Failed to add directory {directory} to watchdog: {e}")
            self.error_count += 1
            self.last_error = str(e)
            return False
        self.scheduler_map[directory] = task
        self.directories.add(directory)
        self.event_handler.add_directory(directory)
        return True

    def remove_directory(self, directory):
        if directory not in self.directories:
            logger.info(f"{directory} not in watchdog, nothing to do.")
            return False
        if directory in self.scheduler_map:
            self.observer.unschedule(self.scheduler_map.pop(directory))
        self.directories.remove(directory)
        self.event_handler.remove_directory(directory)
        logger.info(f"Removed {directory} from watchdog monitoring.")
        return True


class Handler(FileSystemEventHandler):
    def __init__(self, callback, supported_formats, stability_duration=3, watcher=None):
        self._raw_callback = callback  # Invoked with a list of library events
        self.supported_formats = tuple(fmt.lower() for fmt in supported_formats)
        self.directories = []
        self.stability_duration = stability_duration
        self.tracked_files = {}  # Files still being written
        self._lock = threading.Lock()
        self.debounced_check_final = self._debounce(self._check_file_stability, stability_duration)
        self.watcher = watcher

    def add_directory(self, directory):
        if directory not in self.directories:
            self.directories.append(directory)

    def remove_directory(self, directory):
        if directory in self.directories:
            self.directories.remove(directory)

    def cancel(self):
        timer = getattr(self.debounced_check_final, "_timer", None)
        if timer:
            timer.cancel()

    def _debounce(self, func, wait):
        @debounce(wait)
        def debounced():
            func()

        return debounced

    def is_supported(self, path):
        if not path:
            return False
        if os.path.basename(path).startswith("._"):
            # macOS resource forks
            return False
        return path.lower().endswith(self.supported_formats)

    def _track_file(self, event):
        file_path = event.dest_path if event.type == "moved" else event.src_path
        try:
            current_size = os.path.getsize(file_path)
        except OSError:
            return
        with self._lock:
            tracked = self.tracked_files.get(file_path)
            if tracked is None:
                event.size = current_size
                event.timestamp = time.time()
                self.tracked_files[file_path] = event
            elif current_size != tracked.size:
                # Only a size change restarts the stability window
                tracked.size = current_size
                tracked.timestamp = time.time()

    def _check_file_stability(self):
        """Report tracked files whose size stopped changing"""
        now = time.time()
        stable_files = []
        with self._lock:
            for file_path, file_data in list(self.tracked_files.items()):
                if not os.path.exists(file_path):
                    del self.tracked_files[file_path]
                    continue
                current_size = os.path.getsize(file_path)
                if current_size == file_data.size and (now - file_data.timestamp) >= self.stability_duration:
                    stable_files.append(file_data)
                    del self.tracked_files[file_path]
                elif current_size != file_data.size:
                    file_data.size = current_size
                    file_data.timestamp = now
            pending = bool(self.tracked_files)

        if stable_files:
            self._raw_callback(stable_files)
        if pending:
            self.debounced_check_final()

    def collect_event(self, source_event, directory):
        if source_event.is_directory:
            return

        src_path = os.fsdecode(source_event.src_path)
        dest_path = os.fsdecode(source_event.dest_path) if getattr(source_event, "dest_path", None) else None
        if not (self.is_supported(src_path) or self.is_supported(dest_path)):
            logger.debug(f"File {src_path} doesn't match supported formats, skipping")
            return

        if self.watcher:
            self.watcher.last_event_time = now_utc()

        library_event = SimpleNamespace(
            type=source_event.event_type,
            directory=directory,
            src_path=src_path,
            dest_path=dest_path,
        )

        # Moved to an unsupported name is as good as gone
        if library_event.type == "moved" and not self.is_supported(dest_path):
            library_event.type = "deleted"

        if library_event.type == "deleted":
            logger.info(f"Watchdog: File deleted - {library_event.src_path}")
            self._raw_callback([library_event])
        elif library_event.type in ("created", "modified", "moved", "closed"):
            logger.debug(f"Watchdog: Tracking file for stability ({library_event.type}) - {library_event.src_path}")
            self._track_file(library_event)
            self.debounced_check_final()

    def on_any_event(self, event):
        src_path = os.fsdecode(event.src_path)
        dest_path = os.fsdecode(event.dest_path) if getattr(event, "dest_path", None) else None
        for directory in self.directories:
            if src_path.startswith(directory) or (dest_path and dest_path.startswith(directory)):
                self.collect_event(event, directory)
                break
