"""
process_control.py - Build, spawn and terminate child processes.

This is the process-execution collaborator of the supervisor.  It knows
how to run a command to completion, how to start the target isolated in
its own process group, and how to bring that whole group down again.

Termination is platform specific and hidden behind a :class:`Terminator`
chosen once by :func:`select_terminator`:

* POSIX:   the child leads a new session; we ``killpg`` it with SIGTERM
           and escalate to SIGKILL after a grace period.
* Windows: the child gets a new process group; we kill every descendant
           found by ``psutil`` and then the child itself.

When the child exits on its own, :meth:`Terminator.reap_group` sweeps
whatever it left running in its group.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from pathlib import Path
from typing import Any

import psutil

from hotloop.config import DEFAULT_KILL_TIMEOUT
from hotloop.errors import BuildError, SpawnError, TerminationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Termination strategies
# ---------------------------------------------------------------------------

class Terminator:
    """Spawn isolation plus whole-tree termination for one platform."""

    name = "base"

    def popen_kwargs(self) -> dict[str, Any]:
        """Extra ``subprocess.Popen`` arguments that isolate the child."""
        raise NotImplementedError

    def terminate_tree(self, handle: subprocess.Popen, timeout: float) -> None:
        """Terminate *handle* and all its descendants, then reap it.

        Raises:
            TerminationError: if the tree could not be brought down.
        """
        raise NotImplementedError

    def reap_group(self, pid: int, timeout: float) -> None:
        """Kill whatever is left of the group once its leader *pid* exited.

        Raises:
            TerminationError: if the leftovers could not be signalled.
        """
        raise NotImplementedError


class SignalGroupTerminator(Terminator):
    """POSIX process-group termination via ``os.killpg``."""

    name = "signal-group"

    def popen_kwargs(self) -> dict[str, Any]:
        return {"start_new_session": True}

    def terminate_tree(self, handle: subprocess.Popen, timeout: float) -> None:
        # The child is a session leader, so its pgid is its pid.  Signal the
        # group even if the leader already exited: descendants may linger.
        if not self._signal_group(handle.pid, signal.SIGTERM):
            handle.wait()
            return
        try:
            handle.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(
                "pid %d ignored SIGTERM for %.1fs; sending SIGKILL", handle.pid, timeout
            )
        # Sweep up stragglers in the group whether or not the leader obeyed.
        self._signal_group(handle.pid, signal.SIGKILL)
        try:
            handle.wait(timeout=timeout)
        except subprocess.TimeoutExpired as exc:
            raise TerminationError(f"pid {handle.pid} survived SIGKILL") from exc

    def reap_group(self, pid: int, timeout: float) -> None:
        if not self._signal_group(pid, signal.SIGTERM):
            return
        logger.info("Stopping leftover processes of group %d...", pid)
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if not self._signal_group(pid, 0):
                return
            time.sleep(0.05)
        self._signal_group(pid, signal.SIGKILL)

    @staticmethod
    def _signal_group(pgid: int, sig: int) -> bool:
        """Send *sig* to a group; ``False`` when the group no longer exists."""
        try:
            os.killpg(pgid, sig)
        except ProcessLookupError:
            return False
        except OSError as exc:
            raise TerminationError(f"cannot signal process group {pgid}: {exc}") from exc
        return True


class TreeKillTerminator(Terminator):
    """Forceful tree kill via ``psutil`` (Windows)."""

    name = "tree-kill"

    def popen_kwargs(self) -> dict[str, Any]:
        return {"creationflags": getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)}

    def terminate_tree(self, handle: subprocess.Popen, timeout: float) -> None:
        try:
            root = psutil.Process(handle.pid)
            procs = root.children(recursive=True) + [root]
        except psutil.NoSuchProcess:
            handle.wait()
            return

        for proc in procs:
            try:
                proc.kill()
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied as exc:
                raise TerminationError(f"cannot kill pid {proc.pid}: {exc}") from exc

        _, alive = psutil.wait_procs(procs, timeout=timeout)
        if alive:
            pids = ", ".join(str(p.pid) for p in alive)
            raise TerminationError(f"processes still alive after kill: {pids}")
        handle.wait()

    def reap_group(self, pid: int, timeout: float) -> None:
        # Windows keeps no process-group membership psutil could query once
        # the root is gone, so orphans of a naturally exited root are left.
        logger.debug("No group sweep available for exited pid %d", pid)


def select_terminator() -> Terminator:
    """Pick the termination strategy for the running platform."""
    if os.name == "nt":
        return TreeKillTerminator()
    return SignalGroupTerminator()


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

class ProcessRunner:
    """Runs build commands and manages the lifetime of spawned targets.

    Parameters:
        terminator:   Platform strategy; defaults to :func:`select_terminator`.
        kill_timeout: Seconds to wait for each termination step.
    """

    def __init__(
        self,
        terminator: Terminator | None = None,
        kill_timeout: float = DEFAULT_KILL_TIMEOUT,
    ) -> None:
        self.terminator = terminator or select_terminator()
        self.kill_timeout = kill_timeout
        logger.debug("Using %s termination", self.terminator.name)

    def build(self, command: list[str], cwd: Path) -> None:
        """Run *command* to completion with inherited stdio.

        Raises:
            BuildError: on a non-zero exit or if the command can't start.
        """
        if not command:
            logger.debug("No build step configured.")
            return
        logger.debug("Build command: %s", command)
        try:
            result = subprocess.run(command, cwd=cwd, check=False)
        except OSError as exc:
            raise BuildError(f"cannot run {command[0]!r}: {exc}") from exc
        if result.returncode != 0:
            raise BuildError(f"build exited with status {result.returncode}")

    def spawn(self, command: list[str], cwd: Path) -> subprocess.Popen:
        """Start *command* isolated in its own process group.

        Raises:
            SpawnError: if the process can't be started.
        """
        logger.debug("Run command: %s", command)
        try:
            return subprocess.Popen(command, cwd=cwd, **self.terminator.popen_kwargs())
        except OSError as exc:
            raise SpawnError(f"cannot start {command[0]!r}: {exc}") from exc

    def terminate(self, handle: subprocess.Popen) -> None:
        """Terminate *handle* together with its descendants."""
        self.terminator.terminate_tree(handle, self.kill_timeout)

    def reap(self, handle: subprocess.Popen) -> None:
        """Sweep descendants left behind by a *handle* that exited itself."""
        self.terminator.reap_group(handle.pid, self.kill_timeout)

    def wait(self, handle: subprocess.Popen) -> int:
        """Block until *handle* exits and return its exit code."""
        return handle.wait()
