"""
supervisor.py - Lifecycle owner of the managed child process.

The supervisor is the only component that touches
``SupervisorState.current_process``.  Every transition happens with the
shared lock held, so at most one :class:`ManagedProcess` is ever recorded
as current and two restarts can never interleave their phases.

Per process the lifecycle is::

    None -> SPAWNING -> RUNNING -> EXITING (on its own)     -> None
                                -> TERMINATING (requested) -> None
"""

from __future__ import annotations

import logging
import os
import threading

from hotloop.config import Config
from hotloop.errors import BuildError, SpawnError, TerminationError
from hotloop.process_control import ProcessRunner
from hotloop.state import ManagedProcess, ProcessPhase, SupervisorState

logger = logging.getLogger(__name__)


class ProcessSupervisor:
    """Builds, runs, stops and restarts the target.

    Parameters:
        state:  Shared, lock-protected state.
        runner: Process-execution collaborator.
        config: Project configuration (commands, paths).
    """

    def __init__(
        self,
        state: SupervisorState,
        runner: ProcessRunner,
        config: Config,
    ) -> None:
        self._state = state
        self._runner = runner
        self._config = config

    @property
    def current(self) -> ManagedProcess | None:
        with self._state.lock:
            return self._state.current_process

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build_and_run(self) -> bool:
        """Build the target and, if that worked, (re)start it.

        A failed build leaves whatever is running untouched.  Returns
        ``True`` when a new process was started.
        """
        with self._state.lock:
            if self._state.closed:
                logger.debug("Shutting down; not building.")
                return False
            if not self._build():
                return False
            # Terminating always completes before the next spawn.
            self.stop()
            return self._spawn()

    def restart(self) -> bool:
        """Debounce trigger: rebuild and replace the running process."""
        with self._state.lock:
            if self._state.closed:
                logger.debug("Restart dropped; shutdown in progress.")
                return False
            logger.info("Restarting application...")
            return self.build_and_run()

    def stop(self) -> None:
        """Terminate the current process tree, if any.  Idempotent."""
        with self._state.lock:
            managed = self._state.current_process
            if managed is None:
                return

            managed.phase = ProcessPhase.TERMINATING
            logger.info("Stopping process (pid %d)...", managed.pid)
            try:
                self._runner.terminate(managed.handle)
            except TerminationError as exc:
                logger.error("Failed to stop process (pid %d): %s", managed.pid, exc)
            else:
                logger.info("Process (pid %d) stopped.", managed.pid)
            finally:
                # Never let a process that refuses to die block the next build.
                self._state.current_process = None

    # ------------------------------------------------------------------
    # Internals (lock held)
    # ------------------------------------------------------------------

    def _build(self) -> bool:
        config = self._config
        logger.info("Building in %s...", config.root)
        command = config.expand(config.build_command, config.staging_path)
        if config.build_output_used:
            try:
                config.staging_path.unlink()
            except FileNotFoundError:
                pass
        try:
            self._runner.build(command, config.root)
            # Exit status 0 with no output is still a failed build.
            if config.build_output_used and not config.staging_path.exists():
                raise BuildError(f"build produced no output at {config.staging_path}")
        except BuildError as exc:
            logger.error("Build failed: %s", exc)
            if self._state.current_process is not None:
                logger.info(
                    "Keeping previous process (pid %d) running.",
                    self._state.current_process.pid,
                )
            return False
        logger.info("Build succeeded.")
        return True

    def _spawn(self) -> bool:
        config = self._config
        artifact = config.artifact_path
        if config.build_output_used:
            try:
                os.replace(config.staging_path, artifact)
            except OSError as exc:
                logger.error("Cannot install build output %s: %s", artifact, exc)
                return False

        command = config.expand(config.run_command, artifact)
        logger.info("Running: %s", " ".join(command))
        try:
            handle = self._runner.spawn(command, config.root)
        except SpawnError as exc:
            logger.error("Failed to start application: %s", exc)
            return False

        managed = ManagedProcess(handle=handle, pid=handle.pid, binary_path=str(artifact))
        self._state.current_process = managed
        managed.phase = ProcessPhase.RUNNING
        logger.info("Application started with pid %d.", managed.pid)

        waiter = threading.Thread(
            target=self._wait_for_exit,
            args=(managed,),
            name=f"hotloop-wait-{managed.pid}",
            daemon=True,
        )
        waiter.start()
        return True

    # ------------------------------------------------------------------
    # Exit waiter
    # ------------------------------------------------------------------

    def _wait_for_exit(self, managed: ManagedProcess) -> None:
        try:
            code = self._runner.wait(managed.handle)
        except Exception:
            logger.exception("Waiting for pid %d failed", managed.pid)
            code = None
        self._on_exit(managed, code)

    def _on_exit(self, managed: ManagedProcess, code: int | None) -> None:
        """Clear ``current_process`` only if it still refers to *managed*.

        A process that exited on its own may leave descendants behind in
        its group; those are swept once the record is cleared.  Superseded
        processes were already swept by ``stop()``.
        """
        with self._state.lock:
            if self._state.current_process is not managed:
                logger.debug("pid %d exited after being superseded.", managed.pid)
                return
            managed.phase = ProcessPhase.EXITING
            self._state.current_process = None
            logger.info(
                "Process (pid %d, binary %s) exited with code %s.",
                managed.pid,
                managed.binary_path,
                code,
            )

        # The group id is not reused while members remain, so this is safe
        # outside the lock.
        try:
            self._runner.reap(managed.handle)
        except TerminationError as exc:
            logger.error("Failed to clean up after pid %d: %s", managed.pid, exc)
