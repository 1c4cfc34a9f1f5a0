"""Tests for the watchdog adapter."""

import logging
import os
import threading

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from hotloop.errors import WatchSetupError
from hotloop.events import ChangeKind
from hotloop.monitor import Monitor, _HotloopHandler, translate


class TestTranslate:
    """watchdog event -> ChangeEvent mapping."""

    @pytest.mark.parametrize(
        "event_cls, kind",
        [
            (FileModifiedEvent, ChangeKind.WRITE),
            (FileCreatedEvent, ChangeKind.CREATE),
            (FileDeletedEvent, ChangeKind.REMOVE),
        ],
    )
    def test_simple_events(self, event_cls, kind):
        (change,) = translate(event_cls("/src/main.go"))
        assert change.path == "/src/main.go"
        assert change.kind is kind

    def test_move_reports_both_ends(self):
        changes = translate(FileMovedEvent("/src/old.go", "/src/new.go"))
        assert [(c.path, c.kind) for c in changes] == [
            ("/src/old.go", ChangeKind.RENAME),
            ("/src/new.go", ChangeKind.CREATE),
        ]

    def test_unknown_event_is_attrib(self):
        (change,) = translate(FileClosedEvent("/src/main.go"))
        assert change.kind is ChangeKind.ATTRIB

    def test_directory_events_dropped(self):
        assert translate(DirModifiedEvent("/src")) == []


class TestHandler:
    """Callback errors never kill the observer."""

    def test_callback_exception_logged(self, caplog):
        def boom(change):
            raise ValueError("bad")

        handler = _HotloopHandler(boom)
        with caplog.at_level(logging.ERROR, logger="hotloop.monitor"):
            handler.on_any_event(FileModifiedEvent("/src/main.go"))

        assert "Watcher error" in caplog.text
        assert "/src/main.go" in caplog.text


class TestMonitor:
    """Observer lifecycle."""

    def test_missing_root_raises(self, tmp_path):
        monitor = Monitor(tmp_path / "missing", lambda change: None)
        with pytest.raises(WatchSetupError):
            monitor.start()
        assert not monitor.is_alive()

    def test_file_root_raises(self, tmp_path):
        path = tmp_path / "file.go"
        path.write_text("package main\n")
        with pytest.raises(WatchSetupError):
            Monitor(path, lambda change: None).start()

    def test_stop_before_start_is_noop(self, tmp_path):
        Monitor(tmp_path, lambda change: None).stop()

    def test_reports_real_changes(self, tmp_path):
        seen = []
        got_it = threading.Event()
        target = os.path.realpath(str(tmp_path / "pkg" / "main.go"))

        def callback(change):
            seen.append(change)
            if os.path.realpath(change.path) == target:
                got_it.set()

        (tmp_path / "pkg").mkdir()
        monitor = Monitor(tmp_path, callback, recursive=True)
        monitor.start()
        try:
            assert monitor.is_alive()
            (tmp_path / "pkg" / "main.go").write_text("package main\n")
            assert got_it.wait(5)
        finally:
            monitor.stop()

        assert not monitor.is_alive()
