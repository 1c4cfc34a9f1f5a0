"""
orchestrator.py - Wires watcher, filter, scheduler and supervisor together.

Data flows one way::

    Monitor -> EventFilter -> DebounceScheduler -> ProcessSupervisor.restart

The orchestrator owns startup (initial build before watching) and
shutdown (stop the child, then remove the transient build artifact).
"""

from __future__ import annotations

import logging
import signal
import threading
from typing import Callable

from hotloop.config import Config
from hotloop.errors import WatchRuntimeError, WatchSetupError
from hotloop.event_filter import EventFilter
from hotloop.events import ChangeEvent
from hotloop.monitor import Monitor
from hotloop.process_control import ProcessRunner
from hotloop.scheduler import DebounceScheduler
from hotloop.state import SupervisorState
from hotloop.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)

HEALTH_CHECK_INTERVAL = 1.0  # seconds between observer liveness checks


class Orchestrator:
    """Top-level glue for one watched project.

    Parameters:
        config:          Project configuration.
        runner:          Process-execution collaborator (default: a
                         :class:`ProcessRunner` honouring ``kill_timeout``).
        monitor_factory: Builds the watcher; called as
                         ``monitor_factory(root, callback, recursive=...)``.
    """

    def __init__(
        self,
        config: Config,
        runner: ProcessRunner | None = None,
        monitor_factory: Callable[..., Monitor] = Monitor,
    ) -> None:
        self.config = config
        self.state = SupervisorState()
        self.filter = EventFilter.from_config(config)
        self.supervisor = ProcessSupervisor(
            self.state,
            runner or ProcessRunner(kill_timeout=config.kill_timeout),
            config,
        )
        self.scheduler = DebounceScheduler(
            self.state, self.supervisor.restart, interval=config.debounce
        )
        self._monitor_factory = monitor_factory
        self._monitor: Monitor | None = None
        self._shutdown_requested = threading.Event()
        self._torn_down = False

    # ------------------------------------------------------------------
    # Event path
    # ------------------------------------------------------------------

    def handle_event(self, event: ChangeEvent) -> None:
        """Monitor callback: feed restart-worthy events to the scheduler."""
        if not self.filter.should_restart(event):
            logger.debug("Ignored %s %s", event.kind.value, event.path)
            return
        logger.info("Change detected: %s", event.path)
        self.scheduler.on_restart_worthy_event()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Initial build and run, then start watching.

        Raises:
            WatchSetupError: if the root can't be watched (after teardown).
        """
        logger.info("Starting hotloop in %s", self.config.root)
        self.supervisor.build_and_run()
        try:
            self._start_monitor()
        except WatchSetupError:
            self.shutdown()
            raise

    def run(self) -> int:
        """Start, block until SIGINT/SIGTERM, shut down.  Returns exit status."""
        self._install_signal_handlers()
        self.start()
        try:
            while not self._shutdown_requested.wait(HEALTH_CHECK_INTERVAL):
                self._check_monitor()
        finally:
            self.shutdown()
        return 0

    def request_shutdown(self) -> None:
        self._shutdown_requested.set()

    def shutdown(self) -> None:
        """Stop everything and clean up.  Safe to call more than once."""
        with self.state.lock:
            if self._torn_down:
                return
            self._torn_down = True
            self.state.closed = True
        logger.info("Shutting down...")

        self.scheduler.cancel()
        if self._monitor is not None:
            self._monitor.stop()
            self._monitor = None
        self.supervisor.stop()
        self._remove_artifacts()
        logger.info("hotloop stopped.")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start_monitor(self) -> None:
        monitor = self._monitor_factory(
            self.config.root, self.handle_event, recursive=self.config.recursive
        )
        monitor.start()
        self._monitor = monitor

    def _check_monitor(self) -> None:
        """Re-establish the watch if the observer thread died."""
        if self._monitor is None or self._monitor.is_alive():
            return
        logger.error("Watcher error: %s", WatchRuntimeError("observer thread stopped"))
        self._monitor.stop()
        self._monitor = None
        try:
            self._start_monitor()
        except WatchSetupError as exc:
            logger.error("Could not re-establish watch, retrying: %s", exc)

    def _remove_artifacts(self) -> None:
        for path in (self.config.artifact_path, self.config.staging_path):
            logger.debug("Removing build artifact %s", path)
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.error("Could not remove build artifact %s: %s", path, exc)

    def _install_signal_handlers(self) -> None:
        def _handler(signum, frame):  # noqa: ANN001
            logger.info("Received %s, stopping...", signal.Signals(signum).name)
            self.request_shutdown()

        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
