"""
HotConf Debouncer.

Collapses bursts of change notifications for one file into reloads.
Requires Python 3.11+.
"""

import math
import threading
import time
from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import Any

from utils.logger import LoggerMixin
from watcher.watch_source import Notification


class Debouncer(LoggerMixin):
    """
    Two-stage bounce filter for a single file.

    Editors and the OS often emit several write/rename notifications for
    one logical save. A notification arriving inside the bounce window
    ``(min_gap, max_gap)`` after the previous one confirms a save in
    progress and triggers a reload immediately, on the calling thread.
    Any other notification is provisionally deferred: a re-check fires
    after ``2 * min_gap`` and reloads only if the window, measured from
    the most recent notification, still holds at that moment.

    The trigger always runs with ``lock`` held, so it is never entered
    twice at once as long as every other reload path takes the same lock.
    """

    def __init__(
        self,
        file_name: str,
        trigger: Callable[[], Any],
        lock: AbstractContextManager[Any] | None = None,
        min_gap_ms: float = 1.0,
        max_gap_ms: float = 100.0,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ) -> None:
        """
        Initialize the debouncer.

        Args:
            file_name: Base name of the watched file
            trigger: Reload function, called with the lock held
            lock: Lock shared with every other reload path
            min_gap_ms: Lower edge of the bounce window in milliseconds
            max_gap_ms: Upper edge of the bounce window in milliseconds
            clock: Monotonic time source in seconds
            timer_factory: Creates the deferred re-check timers
        """
        self._file_name = file_name
        self._trigger = trigger
        self._lock = lock or threading.RLock()
        self._min_gap = min_gap_ms / 1000.0
        self._max_gap = max_gap_ms / 1000.0
        self._clock = clock
        self._timer_factory = timer_factory

        self._last_reload_at: float | None = None
        self._outstanding = 0
        self._stopped = threading.Event()
        self.bind_log(file=file_name)

    @property
    def lock(self) -> AbstractContextManager[Any]:
        """Lock serializing reloads and timestamp updates."""
        return self._lock

    @property
    def last_reload_at(self) -> float | None:
        """Clock value of the most recent qualifying notification."""
        return self._last_reload_at

    @property
    def recheck_delay(self) -> float:
        """Seconds a deferred re-check waits before re-evaluating."""
        return 2 * self._min_gap

    @property
    def pending_count(self) -> int:
        """Get number of deferred re-checks that have not fired yet."""
        return self._outstanding

    @property
    def stopped(self) -> bool:
        """Check if the debouncer has been stopped."""
        return self._stopped.is_set()

    def _in_window(self, gap: float) -> bool:
        return self._min_gap < gap < self._max_gap

    def debounce(self, notification: Notification) -> None:
        """
        Process one change notification.

        Notifications for other files and deletions are ignored without
        touching the timestamp. Blocks while an immediate reload runs.

        Args:
            notification: Change reported by the watch source
        """
        if notification.name != self._file_name or notification.is_delete:
            return

        with self._lock:
            if self._stopped.is_set():
                return

            now = self._clock()
            if self._last_reload_at is None:
                elapsed = math.inf
            else:
                elapsed = now - self._last_reload_at
            self._last_reload_at = now

            if self._in_window(elapsed):
                self.log.debug(
                    "bounce_confirmed",
                    kind=notification.kind.value,
                    elapsed_ms=round(elapsed * 1000.0, 3),
                )
                self._fire()
                return

            self._outstanding += 1
            timer = self._timer_factory(self.recheck_delay, self._recheck)
            timer.daemon = True
            timer.start()

        self.log.debug(
            "bounce_deferred",
            kind=notification.kind.value,
            delay_ms=self.recheck_delay * 1000.0,
        )

    def _recheck(self) -> None:
        """Re-evaluate the bounce window after a deferred notification."""
        with self._lock:
            self._outstanding -= 1

            if self._stopped.is_set():
                self.log.debug("recheck_skipped", reason="stopped")
                return

            waited = self._clock() - self._last_reload_at
            if not self._in_window(waited):
                self.log.debug(
                    "recheck_skipped",
                    reason="outside_window",
                    waited_ms=round(waited * 1000.0, 3),
                )
                return

            self._fire()

    def _fire(self) -> None:
        """Run the trigger. Caller holds the lock."""
        try:
            self._trigger()
        except Exception as e:
            self.log.error("debounce_trigger_failed", error=str(e), error_type=type(e).__name__)

    def stop(self) -> None:
        """
        Stop triggering reloads.

        Outstanding re-checks still fire but do nothing. Does not wait
        for a reload that is already running.
        """
        self._stopped.set()
