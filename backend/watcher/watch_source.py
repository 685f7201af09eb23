"""
HotConf Watch Source.

Directory-level change notifications using watchdog.
Requires Python 3.11+.
"""

import os
import queue
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from utils.errors import WatchInitError, WatchStreamError, WatchSubscribeError
from utils.logger import LoggerMixin


class ChangeKind(str, Enum):
    """Kind of change a notification reports."""

    CREATE = "create"
    WRITE = "write"
    RENAME = "rename"
    DELETE = "delete"


@dataclass(frozen=True)
class Notification:
    """A single change to a file in the watched directory."""

    path: Path
    kind: ChangeKind

    @property
    def name(self) -> str:
        """Base name of the changed file."""
        return self.path.name

    @property
    def is_delete(self) -> bool:
        """Check if the file is gone after this change."""
        return self.kind is ChangeKind.DELETE


class Subscription:
    """
    An active watch on one directory.

    Notifications and stream errors share a single queue so that one
    consumer sees them in arrival order. Iterating blocks until the next
    item and ends after the items queued before ``close``.
    """

    def __init__(self, on_close: Callable[[], None] | None = None) -> None:
        """
        Initialize the subscription.

        Args:
            on_close: Called once when the subscription is closed
        """
        self._queue: queue.Queue[Notification | WatchStreamError | None] = queue.Queue()
        self._on_close = on_close
        self._closed = threading.Event()

    def publish(self, notification: Notification) -> None:
        """Deliver a change notification to the consumer."""
        if not self._closed.is_set():
            self._queue.put(notification)

    def report(self, error: WatchStreamError) -> None:
        """Deliver a stream error to the consumer."""
        if not self._closed.is_set():
            self._queue.put(error)

    def close(self) -> None:
        """Release the watch and end iteration. Safe to call repeatedly."""
        if self._closed.is_set():
            return
        self._closed.set()
        if self._on_close is not None:
            self._on_close()
        self._queue.put(None)

    @property
    def closed(self) -> bool:
        """Check if the subscription has been closed."""
        return self._closed.is_set()

    def __iter__(self) -> Iterator[Notification | WatchStreamError]:
        while True:
            item = self._queue.get()
            if item is None:
                return
            yield item


_KINDS = {
    EVENT_TYPE_CREATED: ChangeKind.CREATE,
    EVENT_TYPE_MODIFIED: ChangeKind.WRITE,
    EVENT_TYPE_MOVED: ChangeKind.RENAME,
    EVENT_TYPE_DELETED: ChangeKind.DELETE,
}


class DirectoryEventHandler(FileSystemEventHandler):
    """
    Translates watchdog events into notifications.

    File events of every name are forwarded; choosing the file of
    interest is left to the consumer. Open/close events are dropped.
    """

    def __init__(self, directory: Path, subscription: Subscription) -> None:
        super().__init__()
        self._directory = directory
        self._subscription = subscription

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Handle every watchdog event for the directory."""
        src_path = Path(os.fsdecode(event.src_path))

        if event.is_directory:
            if event.event_type in (EVENT_TYPE_DELETED, EVENT_TYPE_MOVED) and (
                src_path == self._directory
            ):
                self._subscription.report(
                    WatchStreamError(f"watched directory {src_path} was removed")
                )
            return

        kind = _KINDS.get(event.event_type)
        if kind is None:
            return

        if kind is ChangeKind.RENAME:
            # The old name no longer exists; the new one was renamed into place
            dest_path = Path(os.fsdecode(event.dest_path))
            self._subscription.publish(Notification(src_path, ChangeKind.DELETE))
            self._subscription.publish(Notification(dest_path, ChangeKind.RENAME))
            return

        self._subscription.publish(Notification(src_path, kind))


class WatchSource(LoggerMixin):
    """
    Watches directories for file changes.

    Wraps a single watchdog observer; each call to ``watch`` schedules
    one non-recursive directory watch and returns its subscription.
    """

    def __init__(self) -> None:
        """
        Initialize the watch source.

        Raises:
            WatchInitError: If the platform observer cannot be created
        """
        try:
            self._observer = Observer()
        except Exception as e:
            raise WatchInitError(f"cannot create file system observer: {e}") from e
        self._lock = threading.Lock()
        self._watches: dict[DirectoryEventHandler, ObservedWatch] = {}
        self._closed = False

    def watch(self, directory: Path) -> Subscription:
        """
        Begin watching a directory.

        Args:
            directory: Directory whose files should be reported

        Returns:
            Subscription delivering the directory's notifications

        Raises:
            WatchSubscribeError: If the directory cannot be watched
        """
        directory = Path(directory).absolute()

        with self._lock:
            if self._closed:
                raise WatchSubscribeError("watch source is closed")

            handler: DirectoryEventHandler
            subscription = Subscription(on_close=lambda: self._unschedule(handler))
            handler = DirectoryEventHandler(directory, subscription)

            try:
                self._watches[handler] = self._observer.schedule(
                    handler, str(directory), recursive=False
                )
                if not self._observer.is_alive():
                    self._observer.start()
            except (OSError, RuntimeError) as e:
                self._watches.pop(handler, None)
                raise WatchSubscribeError(f"cannot watch {directory}: {e}") from e

        self.log.debug("directory_watch_scheduled", path=str(directory))
        return subscription

    def _unschedule(self, handler: DirectoryEventHandler) -> None:
        with self._lock:
            watch = self._watches.pop(handler, None)
            if self._closed or watch is None:
                return
            try:
                self._observer.unschedule(watch)
            except KeyError:
                # Already dropped by the observer after the directory vanished
                pass

    def close(self) -> None:
        """Stop the observer and release every watch."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._observer.is_alive():
                self._observer.stop()
                self._observer.join(timeout=5.0)

        self.log.debug("watch_source_closed")
