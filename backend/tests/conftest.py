"""
HotConf Test Configuration.

Pytest fixtures and test doubles.
Requires Python 3.11+.
"""

import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from utils.config import Settings, WatcherSettings
from utils.errors import WatchSubscribeError
from watcher.watch_source import ChangeKind, Notification, Subscription


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000.0


class ManualTimer:
    """Stands in for threading.Timer; runs only when fired."""

    def __init__(self, interval: float, function: Callable[[], Any]) -> None:
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.fired = False

    def start(self) -> None:
        self.started = True

    def fire(self) -> None:
        self.fired = True
        self.function()


class ManualTimers:
    """Timer factory recording every timer it creates."""

    def __init__(self) -> None:
        self.created: list[ManualTimer] = []

    def __call__(self, interval: float, function: Callable[[], Any]) -> ManualTimer:
        timer = ManualTimer(interval, function)
        self.created.append(timer)
        return timer

    @property
    def pending(self) -> list[ManualTimer]:
        return [t for t in self.created if t.started and not t.fired]

    def fire_all(self) -> None:
        for timer in self.pending:
            timer.fire()


class FakeWatchSource:
    """In-memory watch source driven by the test."""

    def __init__(self, fail_subscribe: bool = False) -> None:
        self.fail_subscribe = fail_subscribe
        self.subscriptions: list[Subscription] = []
        self.directory: Path | None = None
        self.closed = False

    def watch(self, directory: Path) -> Subscription:
        if self.fail_subscribe:
            raise WatchSubscribeError(f"cannot watch {directory}")
        self.directory = Path(directory)
        subscription = Subscription()
        self.subscriptions.append(subscription)
        return subscription

    def close(self) -> None:
        self.closed = True

    def emit(self, name: str, kind: ChangeKind = ChangeKind.WRITE) -> None:
        """Publish a notification on the latest subscription."""
        assert self.directory is not None, "watch() was never called"
        self.subscriptions[-1].publish(Notification(self.directory / name, kind))


def _wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    """Poll a predicate until it holds or the timeout passes."""
    return _wait_until


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock."""
    return FakeClock()


@pytest.fixture
def timers() -> ManualTimers:
    """Create a manual timer factory."""
    return ManualTimers()


@pytest.fixture
def watch_source() -> FakeWatchSource:
    """Create an in-memory watch source."""
    return FakeWatchSource()


@pytest.fixture
def settings() -> Settings:
    """Settings with the default bounce window and watching enabled."""
    return Settings(watcher=WatcherSettings(min_gap_ms=1.0, max_gap_ms=100.0, enabled=True))


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """Create a JSON configuration file for testing."""
    path = tmp_path / "config_test.json"
    path.write_text('{\n  "string_key": "I\'m Cool!"\n}\n')
    return path


def rewrite(path: Path, content: str) -> None:
    """Replace a file the way editors do: write aside, then rename into place."""
    staging = path.with_name(f"_{path.name}")
    staging.write_text(content)
    staging.replace(path)


@pytest.fixture
def replace_file() -> Callable[[Path, str], None]:
    """Rewrite a file through a staging copy and a rename."""
    return rewrite
