"""
scheduler.py - Debounce scheduler for hotloop.

Coalesces a burst of restart-worthy events into a single deferred call of
the restart trigger.  A burst of any size produces exactly one fire,
scheduled one quiet interval after the *last* event.

A single timing thread serves each pending restart.  Further events only
move the deadline forward and wake that thread, which re-reads the deadline
before deciding to fire; no extra timers are created.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from hotloop.config import DEFAULT_DEBOUNCE
from hotloop.state import PendingRestart, SupervisorState

logger = logging.getLogger(__name__)


class DebounceScheduler:
    """Single-slot debounce timer sharing the supervisor's lock.

    Parameters:
        state:    Shared supervisor state; ``pending_restart`` lives there.
        trigger:  Called (without the lock held) when the quiet interval
                  elapses.
        interval: Quiet interval in seconds.
        clock:    Monotonic time source, replaceable in tests.
    """

    def __init__(
        self,
        state: SupervisorState,
        trigger: Callable[[], object],
        interval: float = DEFAULT_DEBOUNCE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.interval = interval
        self._state = state
        self._trigger = trigger
        self._clock = clock
        self._condition = threading.Condition(state.lock)
        self._thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def on_restart_worthy_event(self) -> None:
        """Schedule a restart, or push the pending one further out."""
        with self._condition:
            if self._state.closed:
                return

            deadline = self._clock() + self.interval
            pending = self._state.pending_restart
            if pending is not None and pending.active:
                pending.fire_at = deadline
                logger.debug("Debounce: restart rescheduled.")
                self._condition.notify_all()
                return

            logger.debug("Debounce: scheduling restart in %.0f ms.", self.interval * 1000)
            pending = PendingRestart(fire_at=deadline)
            self._state.pending_restart = pending
            self._thread = threading.Thread(
                target=self._run, args=(pending,), name="hotloop-debounce", daemon=True
            )
            self._thread.start()

    def cancel(self) -> None:
        """Drop any pending restart without firing it."""
        with self._condition:
            pending = self._state.pending_restart
            if pending is not None:
                pending.active = False
                self._state.pending_restart = None
                logger.debug("Debounce: pending restart cancelled.")
            self._condition.notify_all()

    @property
    def pending(self) -> bool:
        """True while a restart is scheduled or firing."""
        with self._condition:
            pending = self._state.pending_restart
            return pending is not None and pending.active

    def join(self, timeout: float | None = None) -> None:
        """Wait for the current timing thread (tests and shutdown)."""
        thread = self._thread
        if thread is not None:
            thread.join(timeout)

    # ------------------------------------------------------------------
    # Timing loop
    # ------------------------------------------------------------------

    def _run(self, pending: PendingRestart) -> None:
        while True:
            with self._condition:
                fired_at = self._wait_for_deadline(pending)
                if fired_at is None:
                    return

            logger.info("Debounce interval elapsed; restarting.")
            try:
                self._trigger()
            except Exception:
                logger.exception("Restart trigger raised an exception")

            with self._condition:
                if not self._is_live(pending):
                    return
                if pending.fire_at > fired_at:
                    # Events arrived while the trigger ran: fire once more.
                    continue
                pending.active = False
                self._state.pending_restart = None
                return

    def _wait_for_deadline(self, pending: PendingRestart) -> float | None:
        """Block (lock held) until *pending* is due; ``None`` if it died."""
        while self._is_live(pending):
            remaining = pending.fire_at - self._clock()
            if remaining <= 0:
                return pending.fire_at
            self._condition.wait(remaining)
        return None

    def _is_live(self, pending: PendingRestart) -> bool:
        return (
            pending.active
            and not self._state.closed
            and self._state.pending_restart is pending
        )
