"""
HotConf Structured Logging Module.

Provides consistent, structured logging throughout the library.
Requires Python 3.11+.
"""

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.types import Processor

from utils.config import LoggingSettings, get_settings


def configure_logging(
    settings: LoggingSettings | None = None, stream: TextIO | None = None
) -> None:
    """
    Configure structured logging for an application embedding HotConf.

    The library never calls this itself; applications and the bundled
    script call it once at startup, before creating sessions, since
    sessions bind their loggers when constructed. Entries go to stderr so
    that they do not mix with whatever the application prints.

    Args:
        settings: Logging settings to use instead of the cached ones
        stream: Output stream, stderr by default
    """
    settings = settings or get_settings().logging
    stream = stream or sys.stderr
    level = getattr(logging, settings.level.upper())

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.format == "json":
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=stream.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(name)s %(levelname)s %(message)s", stream=stream, level=level)

    # inotify/fsevents emitters are chatty at DEBUG
    logging.getLogger("watchdog").setLevel(settings.watchdog_level.upper())


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically the class or script name), added
            to every entry as ``logger``

    Returns:
        Configured structlog logger
    """
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger().bind(logger=name)


class LoggerMixin:
    """
    Mixin class to add logging capability to any class.

    Usage:
        class Loader(LoggerMixin):
            def __init__(self, path):
                self.bind_log(path=str(path))

            def load(self):
                self.log.info("config_reloaded", changes=[])
    """

    @property
    def log(self) -> structlog.stdlib.BoundLogger:
        """Get logger bound to this class name."""
        if not hasattr(self, "_logger"):
            self._logger = get_logger(self.__class__.__name__)
        return self._logger

    def bind_log(self, **context: Any) -> None:
        """Attach context to every later entry logged by this instance."""
        self._logger = self.log.bind(**context)
