import os
import threading
import zipfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List

from constants import (
    GAME_TYPE_LINUX_PORTABLE, GAME_TYPE_UNDETECTABLE, GAME_TYPE_WINDOWS_PORTABLE, GAME_TYPE_WINDOWS_SETUP,
    SETUP_EXTENSIONS, SUPPORTED_FILE_FORMATS,
)
from db import db, logger
from exceptions import GameClassificationException
from existence import GameCandidate
from filename_parser import generate_sort_title, is_valid_file_path, parse_filename
from metrics import ACTIVE_SCANS, scan_duration_seconds, scan_errors_total
from repositories.games_repository import GamesRepository
from services.games_service import GamesService

SETUP_EXECUTABLE_HINTS = ("setup", "install")
LINUX_EXECUTABLE_EXTENSIONS = (".sh", ".x86_64")


def get_game_files(root, recursive=True, supported_formats=SUPPORTED_FILE_FORMATS):
    """Absolute paths of supported game files under root, sorted"""
    if not os.path.isdir(root):
        logger.warning(f"Games path '{root}' is not a directory or doesn't exist.")
        return []

    extensions = tuple(fmt.lower() for fmt in supported_formats)
    found = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in filenames:
            if filename.startswith("._"):
                # macOS resource forks
                continue
            if filename.lower().endswith(extensions):
                found.append(os.path.abspath(os.path.join(dirpath, filename)))
        if not recursive:
            break
    return sorted(found)


def detect_game_type(file_path, type_override=None):
    if type_override:
        return type_override

    extension = os.path.splitext(file_path)[1].lower()
    if extension in SETUP_EXTENSIONS:
        return GAME_TYPE_WINDOWS_SETUP

    if extension == ".zip":
        try:
            with zipfile.ZipFile(file_path) as archive:
                names = [os.path.basename(name).lower() for name in archive.namelist()]
        except (zipfile.BadZipFile, OSError) as e:
            logger.warning(f"Could not inspect archive {file_path}: {e}")
            return GAME_TYPE_UNDETECTABLE

        executables = [name for name in names if name.endswith(".exe")]
        if any(hint in name for name in executables for hint in SETUP_EXECUTABLE_HINTS):
            return GAME_TYPE_WINDOWS_SETUP
        if executables:
            return GAME_TYPE_WINDOWS_PORTABLE
        if any(name.endswith(LINUX_EXECUTABLE_EXTENSIONS) for name in names):
            return GAME_TYPE_LINUX_PORTABLE

    return GAME_TYPE_UNDETECTABLE


def build_candidate(file_path, supported_formats=SUPPORTED_FILE_FORMATS):
    """Parse, stat and type-detect one file"""
    if not is_valid_file_path(file_path, supported_formats):
        raise GameClassificationException(f"Invalid game file path: {file_path}", file_path=file_path)

    parsed = parse_filename(os.path.basename(file_path))
    return GameCandidate(
        file_path=file_path,
        title=parsed.title,
        sort_title=generate_sort_title(parsed.title),
        size=os.path.getsize(file_path),
        version=parsed.version,
        release_date=parsed.release_date,
        type=detect_game_type(file_path, parsed.type_override),
        early_access=parsed.early_access,
    )


@dataclass
class ScanSummary:
    files: int = 0
    states: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    removed: int = 0
    interrupted: bool = False


class LibraryIndexer:
    """Full-library scan: reconcile every file on disk, then soft-delete games whose file is gone"""

    def __init__(self, app, settings, reconciler):
        self.app = app
        self.settings = settings
        self.reconciler = reconciler
        self.reindex_trigger = None  # Set by the IndexingScheduler
        self._accepting = True
        self._scan_lock = threading.Lock()

    @property
    def games_settings(self):
        return self.settings["games"]

    def stop_accepting(self):
        """Files already reconciling finish; nothing new is picked up"""
        self._accepting = False

    def _index_file(self, file_path):
        if not self._accepting:
            return None
        with self.app.app_context():
            try:
                candidate = build_candidate(file_path, self.games_settings["supported_file_formats"])
                return self.reconciler.reconcile(candidate).state
            except Exception as e:
                db.session.rollback()
                scan_errors_total.inc()
                logger.error(f"Failed to index {file_path}: {e}")
                raise

    def _remove_missing(self, found_paths):
        removed = 0
        with self.app.app_context():
            for file_path, game_id in GamesRepository.get_active_paths().items():
                if file_path in found_paths:
                    continue
                if not self._accepting:
                    break
                try:
                    self.reconciler.remove(GamesService.get_by_id_or_fail(game_id))
                    removed += 1
                except Exception as e:
                    db.session.rollback()
                    scan_errors_total.inc()
                    logger.error(f"Failed to remove game {game_id} ({file_path}): {e}")
        return removed

    def index_all_files(self) -> ScanSummary:
        games = self.games_settings
        root = games["path"]
        summary = ScanSummary()

        with self._scan_lock, ACTIVE_SCANS.track_inprogress(), scan_duration_seconds.time():
            if not os.path.isdir(root):
                # An unmounted share must not soft-delete the whole catalog
                logger.warning(f"Skipping scan, games path '{root}' is not available.")
                return summary

            logger.info(f"Scanning games path {root} (recursive={games['search_recursive']})...")
            files = get_game_files(root, games["search_recursive"], games["supported_file_formats"])
            summary.files = len(files)

            concurrency = max(1, int(games.get("index_concurrency") or 1))
            with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="indexer") as executor:
                futures = {file_path: executor.submit(self._index_file, file_path) for file_path in files}
                for file_path, future in futures.items():
                    try:
                        state = future.result()
                    except Exception as e:
                        summary.errors.append(f"{file_path}: {e}")
                        continue
                    if state is None:
                        summary.interrupted = True
                        continue
                    summary.states[state] = summary.states.get(state, 0) + 1

            if self._accepting:
                summary.removed = self._remove_missing(set(files))
            else:
                summary.interrupted = True

        logger.info(
            f"Scan of {root} finished: {summary.files} files, {summary.states}, "
            f"{summary.removed} removed, {len(summary.errors)} errors"
        )
        return summary

    def delete_game_file(self, game_id):
        """Delete a game's file from disk and schedule a reindex (caller provides the app context)"""
        game = GamesService.get_by_id_or_fail(game_id)
        if self.settings.get("testing", {}).get("mock_files"):
            logger.info(f"Not deleting {game.file_path} from disk, mock files enabled")
        else:
            try:
                os.remove(game.file_path)
                logger.info(f"Deleted game file {game.file_path}")
            except FileNotFoundError:
                logger.warning(f"Game file {game.file_path} was already gone")
        if self.reindex_trigger:
            self.reindex_trigger()
        return game
