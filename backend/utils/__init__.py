"""
HotConf Utilities Package.

Settings, logging and errors shared across all packages.
Requires Python 3.11+.
"""

from utils.config import LoggingSettings, Settings, WatcherSettings, get_settings
from utils.errors import (
    ConfigDecodeError,
    ConfigOpenError,
    HotConfError,
    WatchInitError,
    WatchStreamError,
    WatchSubscribeError,
)
from utils.logger import configure_logging, get_logger, LoggerMixin

__all__ = [
    "Settings",
    "WatcherSettings",
    "LoggingSettings",
    "get_settings",
    "configure_logging",
    "get_logger",
    "LoggerMixin",
    "HotConfError",
    "WatchInitError",
    "WatchSubscribeError",
    "WatchStreamError",
    "ConfigOpenError",
    "ConfigDecodeError",
]
