"""
HotConf File Watcher Package.

File system monitoring and bounce filtering.
Requires Python 3.11+.
"""

from watcher.debouncer import Debouncer
from watcher.watch_source import ChangeKind, Notification, Subscription, WatchSource

__all__ = ["WatchSource", "Subscription", "Notification", "ChangeKind", "Debouncer"]
