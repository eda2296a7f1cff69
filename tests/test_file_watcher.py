"""
Tests for the filesystem watcher event handler
"""
import os
from unittest.mock import MagicMock

import pytest
from watchdog.events import DirCreatedEvent, FileCreatedEvent, FileDeletedEvent, FileMovedEvent

from file_watcher import Handler, Watcher


@pytest.fixture
def callback():
    return MagicMock()


@pytest.fixture
def handler(callback, games_dir):
    handler = Handler(callback, [".zip", ".iso"], stability_duration=0)
    handler.add_directory(str(games_dir))
    yield handler
    handler.cancel()


class TestHandler:
    """Tests for Handler"""

    def test_is_supported(self, handler):
        assert handler.is_supported("/files/Game.ZIP")
        assert not handler.is_supported("/files/readme.txt")
        assert not handler.is_supported("/files/._Game.zip")
        assert not handler.is_supported(None)

    def test_delete_is_reported_immediately(self, handler, callback, games_dir):
        handler.on_any_event(FileDeletedEvent(str(games_dir / "Game.zip")))
        events = callback.call_args.args[0]
        assert [(e.type, e.src_path) for e in events] == [("deleted", str(games_dir / "Game.zip"))]

    def test_move_to_unsupported_name_is_a_delete(self, handler, callback, games_dir):
        handler.on_any_event(FileMovedEvent(str(games_dir / "Game.zip"), str(games_dir / "Game.zip.bak")))
        assert callback.call_args.args[0][0].type == "deleted"

    def test_unsupported_and_directory_events_are_ignored(self, handler, callback, games_dir):
        handler.on_any_event(FileDeletedEvent(str(games_dir / "notes.txt")))
        handler.on_any_event(DirCreatedEvent(str(games_dir / "sub")))
        callback.assert_not_called()

    def test_events_outside_watched_directories_are_ignored(self, handler, callback, tmp_path):
        handler.on_any_event(FileDeletedEvent(str(tmp_path / "elsewhere" / "Game.zip")))
        callback.assert_not_called()

    def test_bytes_paths_are_decoded(self, handler, callback, games_dir):
        path = str(games_dir / "Game.zip")
        handler.collect_event(FileDeletedEvent(os.fsencode(path)), str(games_dir))
        events = callback.call_args.args[0]
        assert [(e.type, e.src_path) for e in events] == [("deleted", path)]

    def test_event_time_is_recorded(self, callback, games_dir):
        watcher = Watcher(callback, [".zip"])
        watcher.event_handler.collect_event(FileDeletedEvent(str(games_dir / "Game.zip")), str(games_dir))
        assert watcher.get_status()["last_event_time"] is not None

    def test_created_file_is_tracked_until_stable(self, handler, callback, games_dir):
        path = games_dir / "Game.zip"
        path.write_bytes(b"x" * 10)
        handler.debounced_check_final = MagicMock()
        handler.collect_event(FileCreatedEvent(str(path)), str(games_dir))
        assert str(path) in handler.tracked_files

        handler._check_file_stability()
        events = callback.call_args.args[0]
        assert [e.src_path for e in events] == [str(path)]
        assert handler.tracked_files == {}

    def test_vanished_file_is_dropped(self, handler, callback, games_dir):
        path = games_dir / "Game.zip"
        path.write_bytes(b"x")
        handler.debounced_check_final = MagicMock()
        handler.collect_event(FileCreatedEvent(str(path)), str(games_dir))
        path.unlink()

        handler._check_file_stability()
        callback.assert_not_called()
        assert handler.tracked_files == {}


class TestWatcher:
    """Tests for Watcher directory management"""

    def test_add_and_remove_directory(self, callback, games_dir, tmp_path):
        watcher = Watcher(callback, [".zip"])
        assert watcher.add_directory(str(games_dir)) is True
        assert watcher.add_directory(str(games_dir)) is False
        assert watcher.add_directory(str(tmp_path / "missing")) is False
        assert watcher.get_status()["directories"] == [str(games_dir)]

        assert watcher.remove_directory(str(games_dir)) is True
        assert watcher.remove_directory(str(games_dir)) is False
        assert watcher.event_handler.directories == []

    def test_polling_observer(self, callback):
        from watchdog.observers.polling import PollingObserver
        watcher = Watcher(callback, [".zip"], use_polling=True)
        assert isinstance(watcher.observer, PollingObserver)
        assert watcher.get_status()["running"] is False
