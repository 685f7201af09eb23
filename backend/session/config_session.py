"""
HotConf Config Session.

Hot-reloads one configuration file into a caller-owned structure.
Requires Python 3.11+.
"""

import asyncio
import inspect
import os
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from loader.loader import Loader
from utils.config import Settings, get_settings
from utils.errors import WatchInitError, WatchStreamError, WatchSubscribeError
from utils.logger import LoggerMixin
from watcher.debouncer import Debouncer
from watcher.watch_source import Subscription, WatchSource

OnLoadCallback = Callable[[], Any]


class ConfigSession(LoggerMixin):
    """
    Keeps a decode target in sync with a configuration file.

    The target is never replaced: every reload merges the file into the
    existing instance, so fields missing from the file keep their values.
    After each successful reload the registered ``on_load`` callback runs
    on the reloading thread. Reloads are serialized by one re-entrant lock
    shared by the initial load, the notification thread, deferred re-checks
    and ``reload()``.

    Usage:
        config = {}
        session = ConfigSession("config.json", config)

        @session.on_load
        def applied() -> None:
            print(config)

        session.ready()
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        target: Any,
        *,
        watch_source: WatchSource | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ) -> None:
        """
        Initialize the session. Touches neither the file nor the watcher.

        Args:
            path: Configuration file to load and watch
            target: Mutable mapping, dataclass or pydantic model to merge into
            watch_source: Watch source to use instead of a watchdog one
            settings: Settings to use instead of the cached ones
            clock: Monotonic time source for the debouncer
            timer_factory: Creates the debouncer's re-check timers

        Raises:
            TypeError: If the target cannot be merged into
        """
        settings = settings or get_settings()

        self._path = Path(path)
        self._target = target
        self.bind_log(path=str(self._path))
        self._loader = Loader(self._path, target)
        self._lock = threading.RLock()
        self._debouncer = Debouncer(
            self._path.name,
            trigger=self._reload,
            lock=self._lock,
            min_gap_ms=settings.watcher.min_gap_ms,
            max_gap_ms=settings.watcher.max_gap_ms,
            clock=clock,
            timer_factory=timer_factory,
        )

        self._on_load: OnLoadCallback | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._reload_count = 0

        self._start_lock = threading.Lock()
        self._started = False
        self._stopped = False
        self._subscription: Subscription | None = None
        self._watch_thread: threading.Thread | None = None

        self._source = watch_source
        if self._source is None and settings.watcher.enabled:
            try:
                self._source = WatchSource()
            except WatchInitError as e:
                # Degraded mode: ready() and reload() still load once
                self.log.error("watch_init_failed", error=str(e))

    @property
    def path(self) -> Path:
        """Configuration file path."""
        return self._path

    @property
    def target(self) -> Any:
        """The caller's decode target."""
        return self._target

    @property
    def is_watching(self) -> bool:
        """Check if change notifications are currently being consumed."""
        return self._subscription is not None and not self._subscription.closed

    @property
    def last_reload_at(self) -> float | None:
        """Clock value of the most recent qualifying change notification."""
        return self._debouncer.last_reload_at

    @property
    def reload_count(self) -> int:
        """Number of successful reloads so far."""
        return self._reload_count

    def on_load(self, callback: OnLoadCallback) -> OnLoadCallback:
        """
        Register the callback run after every successful reload.

        Replaces any previous callback. May also be used as a decorator.
        Coroutine functions run on the loop given to ``set_event_loop``.
        The callback runs with the reload lock held; it may call
        ``reload()``, which then reloads again before returning.

        Args:
            callback: Function taking no arguments

        Returns:
            The callback, unchanged
        """
        self._on_load = callback
        return callback

    def set_event_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Set the event loop async callbacks run on."""
        self._loop = loop

    def ready(self) -> None:
        """
        Start the session. Only the first call has any effect.

        Loads the file once on a background thread, then begins watching
        its directory. Load failures are logged, never raised.
        """
        with self._start_lock:
            if self._started:
                return
            self._started = True

            threading.Thread(
                target=self._initial_load,
                name=f"hotconf-load-{self._path.name}",
                daemon=True,
            ).start()

            self._start_watching()

    def stop_watching(self) -> None:
        """
        Stop reloading on file changes.

        Safe to call repeatedly and before ``ready``. Returns without
        waiting for a reload that is already running; no reload starts
        from a change notification afterwards.
        """
        self._debouncer.stop()

        with self._start_lock:
            if self._stopped:
                return
            self._stopped = True
            subscription, self._subscription = self._subscription, None

        if subscription is not None:
            subscription.close()
        if self._source is not None:
            self._source.close()

        self.log.info("config_watch_stopped")

    def reload(self) -> bool:
        """
        Reload the file now, regardless of change notifications.

        Returns:
            True if the file was decoded and merged
        """
        with self._lock:
            return self._reload()

    def _initial_load(self) -> None:
        with self._lock:
            self._reload()

    def _reload(self) -> bool:
        """Load and notify. Caller holds the reload lock."""
        try:
            loaded = self._loader.load()
        except Exception as e:
            self.log.error("config_reload_failed", error=str(e), error_type=type(e).__name__)
            return False

        if not loaded:
            return False

        self._reload_count += 1
        self._notify()
        return True

    def _notify(self) -> None:
        callback = self._on_load
        if callback is None:
            return

        try:
            if inspect.iscoroutinefunction(callback):
                self._run_async(callback)
            else:
                callback()
        except Exception as e:
            self.log.error("on_load_callback_failed", error=str(e))

    def _run_async(self, callback: OnLoadCallback) -> None:
        if self._loop is None:
            asyncio.run(callback())
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            # reload() called from the loop itself; waiting here would deadlock
            self._loop.create_task(callback())
        else:
            asyncio.run_coroutine_threadsafe(callback(), self._loop).result()

    def _start_watching(self) -> None:
        """Subscribe to the file's directory. Caller holds the start lock."""
        if self._stopped:
            return

        if self._source is None:
            self.log.warning("config_watch_unavailable")
            return

        try:
            subscription = self._source.watch(self._path.absolute().parent)
        except WatchSubscribeError as e:
            self.log.error("watch_subscribe_failed", error=str(e))
            return

        self._subscription = subscription
        self._watch_thread = threading.Thread(
            target=self._watch_loop,
            args=(subscription,),
            name=f"hotconf-watch-{self._path.name}",
            daemon=True,
        )
        self._watch_thread.start()

        self.log.info("config_watch_started")

    def _watch_loop(self, subscription: Subscription) -> None:
        """Consume notifications until the subscription closes."""
        for item in subscription:
            if isinstance(item, WatchStreamError):
                self.log.error("watch_stream_error", error=str(item))
                continue
            try:
                self._debouncer.debounce(item)
            except Exception as e:
                self.log.error("debounce_failed", error=str(e), error_type=type(e).__name__)

    def __enter__(self) -> "ConfigSession":
        """Context manager entry."""
        self.ready()
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.stop_watching()
