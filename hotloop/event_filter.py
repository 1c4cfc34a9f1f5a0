"""
event_filter.py - Decides which file-system changes are restart-worthy.

The filter is a pure function of the event and its static configuration,
so it is safe to call from the watchdog observer thread without locking.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path, PurePath

from hotloop.config import Config
from hotloop.events import ChangeEvent, ChangeKind

logger = logging.getLogger(__name__)

RESTART_KINDS = frozenset(
    {ChangeKind.WRITE, ChangeKind.CREATE, ChangeKind.REMOVE, ChangeKind.RENAME}
)

# Where hotloop itself is installed; only relevant when it sits in the
# watched tree (i.e. somebody is hacking on hotloop with hotloop).
_OWN_SOURCE_DIR = Path(__file__).resolve().parent


@dataclass(frozen=True)
class EventFilter:
    """Classifies :class:`ChangeEvent` objects.

    Parameters:
        root:          Watch root; ignored-directory checks are made on the
                       part of the path below it.
        extensions:    Source suffixes that matter (e.g. ``.go``).
        manifests:     Dependency-manifest basenames that matter.
        ignored_dirs:  Directory names excluded at any depth.
        artifacts:     Paths written by hotloop itself.
        own_source:    hotloop's package directory when self-monitoring,
                       else ``None``.
    """

    root: str
    extensions: frozenset[str]
    manifests: frozenset[str]
    ignored_dirs: frozenset[str]
    artifacts: frozenset[str]
    own_source: str | None = None

    @classmethod
    def from_config(cls, config: Config) -> "EventFilter":
        root = str(config.root)
        own_source = None
        if _is_within(str(_OWN_SOURCE_DIR), root):
            logger.info("Self-monitoring detected; ignoring %s", _OWN_SOURCE_DIR)
            own_source = str(_OWN_SOURCE_DIR)
        return cls(
            root=root,
            extensions=frozenset(config.extensions),
            manifests=frozenset(config.manifests),
            ignored_dirs=frozenset(config.ignored_dirs),
            artifacts=frozenset(
                {_normalize(config.artifact_path), _normalize(config.staging_path)}
            ),
            own_source=own_source,
        )

    def should_restart(self, event: ChangeEvent) -> bool:
        """Return ``True`` if *event* should trigger a rebuild."""
        path = _normalize(event.path)
        name = os.path.basename(path)

        if not (name.endswith(tuple(self.extensions)) or name in self.manifests):
            return False

        if path in self.artifacts:
            return False
        if self.own_source is not None and _is_within(path, self.own_source):
            return False

        if self._in_ignored_dir(path):
            return False

        return event.kind in RESTART_KINDS

    def _in_ignored_dir(self, path: str) -> bool:
        if _is_within(path, self.root):
            relative = os.path.relpath(path, _normalize(self.root))
        else:
            relative = path
        # The last part is the file itself, not a directory.
        dirs = PurePath(relative).parts[:-1]
        return any(part in self.ignored_dirs for part in dirs)


def _normalize(path: str | os.PathLike) -> str:
    return os.path.normcase(os.path.realpath(os.fspath(path)))


def _is_within(path: str, directory: str) -> bool:
    path = _normalize(path)
    directory = _normalize(directory)
    return path == directory or path.startswith(directory.rstrip(os.sep) + os.sep)
