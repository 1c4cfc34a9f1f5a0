"""
state.py - Lock-protected supervisor state shared by the restart engine.

One ``SupervisorState`` is created by the orchestrator and handed to the
debounce scheduler and the process supervisor.  Every read-modify-write of
``current_process`` / ``pending_restart`` happens while holding ``lock``.
"""

from __future__ import annotations

import subprocess
import threading
from dataclasses import dataclass, field
from enum import Enum


class ProcessPhase(Enum):
    """Lifecycle phase of a managed child process."""

    SPAWNING = "spawning"
    RUNNING = "running"
    EXITING = "exiting"
    TERMINATING = "terminating"


@dataclass(eq=False)
class ManagedProcess:
    """The child process currently considered "the running build".

    Instances compare by identity, which is what the exit waiter relies on
    to tell its own process apart from a newer one.
    """

    handle: subprocess.Popen
    pid: int
    binary_path: str
    phase: ProcessPhase = ProcessPhase.SPAWNING


@dataclass(eq=False)
class PendingRestart:
    """A scheduled but not yet fired rebuild."""

    fire_at: float
    active: bool = True


@dataclass(eq=False)
class SupervisorState:
    """Mutable state guarded by a single re-entrant lock.

    The lock is re-entrant so that ``restart()`` can hold it across its
    build, stop and spawn phases while each phase also locks on its own.
    """

    lock: threading.RLock = field(default_factory=threading.RLock)
    current_process: ManagedProcess | None = None
    pending_restart: PendingRestart | None = None
    closed: bool = False
