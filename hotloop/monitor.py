"""
monitor.py - File-system event monitor for hotloop.

Uses the ``watchdog`` library to watch the project tree and converts raw
events into ``ChangeEvent`` objects that are fed to the orchestrator via a
callback.

Public API
----------
Monitor(root, callback, recursive)
    ``start()`` begins watching, ``stop()`` halts the observer thread and
    ``is_alive()`` reports whether the observer is still running.
"""

from __future__ import annotations

import logging
import os
from typing import Callable

from watchdog.events import (
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from hotloop.errors import WatchRuntimeError, WatchSetupError
from hotloop.events import ChangeEvent, ChangeKind

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Mapping watchdog event types -> ChangeKind
# ---------------------------------------------------------------------------
_EVENT_MAP = {
    FileCreatedEvent: ChangeKind.CREATE,
    FileModifiedEvent: ChangeKind.WRITE,
    FileDeletedEvent: ChangeKind.REMOVE,
    FileMovedEvent: ChangeKind.RENAME,
}


def translate(event: FileSystemEvent) -> list[ChangeEvent]:
    """Convert one watchdog event into zero or more ``ChangeEvent`` objects.

    A move yields a ``RENAME`` for the old path and a ``CREATE`` for the new
    one, so that both ends are checked by the filter.  Directory events are
    dropped; the files inside them produce their own events.
    """
    if event.is_directory:
        return []

    kind = _EVENT_MAP.get(type(event), ChangeKind.ATTRIB)
    changes = [ChangeEvent(path=os.fsdecode(event.src_path), kind=kind)]

    dest_path = getattr(event, "dest_path", "")
    if kind is ChangeKind.RENAME and dest_path:
        changes.append(ChangeEvent(path=os.fsdecode(dest_path), kind=ChangeKind.CREATE))
    return changes


class _HotloopHandler(FileSystemEventHandler):
    """Translates watchdog events into ChangeEvent callbacks."""

    def __init__(self, callback: Callable[[ChangeEvent], None]) -> None:
        super().__init__()
        self._callback = callback

    def on_any_event(self, event: FileSystemEvent) -> None:
        for change in translate(event):
            try:
                self._callback(change)
            except Exception as exc:
                err = WatchRuntimeError(f"handling {change.path}: {exc}")
                logger.exception("Watcher error: %s", err)


class Monitor:
    """Owns one watchdog observer for the project root.

    Parameters:
        root:      Directory to watch.
        callback:  Receives every translated ``ChangeEvent``.
        recursive: Watch subdirectories too (default ``True``).
    """

    def __init__(
        self,
        root: str | os.PathLike,
        callback: Callable[[ChangeEvent], None],
        recursive: bool = True,
    ) -> None:
        self.root = os.fspath(root)
        self.recursive = recursive
        self._handler = _HotloopHandler(callback)
        self._observer: Observer | None = None

    def start(self) -> None:
        """Start the observer thread.  Does **not** block.

        Raises:
            WatchSetupError: if the root can't be watched.
        """
        if not os.path.isdir(self.root):
            raise WatchSetupError(f"not a directory: {self.root}")

        observer = Observer()
        try:
            observer.schedule(self._handler, self.root, recursive=self.recursive)
            observer.daemon = True
            observer.start()
        except OSError as exc:
            raise WatchSetupError(f"cannot watch {self.root}: {exc}") from exc

        self._observer = observer
        logger.info("Watching: %s (recursive=%s)", self.root, self.recursive)

    def stop(self) -> None:
        """Stop the observer; safe to call when not started."""
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        if observer.is_alive():
            observer.join(timeout=5)
        logger.info("Monitor stopped.")

    def is_alive(self) -> bool:
        return self._observer is not None and self._observer.is_alive()
