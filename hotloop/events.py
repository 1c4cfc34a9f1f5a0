"""
events.py - Shared event schema for hotloop.

Defines the canonical ChangeEvent dataclass that the monitoring layer emits
and the event filter consumes.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


class ChangeKind(Enum):
    """Operation kind attached to a file-system change."""

    WRITE = "write"
    CREATE = "create"
    REMOVE = "remove"
    RENAME = "rename"
    # Permission/metadata changes and anything watchdog reports that we
    # don't map to a content change.
    ATTRIB = "attrib"


@dataclass(frozen=True)
class ChangeEvent:
    """A single file-system change captured by the monitor.

    Attributes:
        path:      Absolute path of the affected file.
        kind:      What happened to it.
        timestamp: Unix epoch time when the event was observed.
    """

    path: str
    kind: ChangeKind
    timestamp: float = field(default_factory=time.time)
