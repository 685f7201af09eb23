"""
HotConf Errors.

Every failure here degrades to "keep serving the last good
configuration"; none of them is fatal to the process.
Requires Python 3.11+.
"""


class HotConfError(Exception):
    """Base class for all HotConf errors."""


class WatchInitError(HotConfError):
    """The platform watch source could not be created."""


class WatchSubscribeError(HotConfError):
    """Watching the configuration directory could not begin."""


class WatchStreamError(HotConfError):
    """An error surfaced on an active subscription."""


class ConfigOpenError(HotConfError):
    """The configuration file could not be opened or read."""


class ConfigDecodeError(HotConfError):
    """The configuration document is malformed or does not fit the target."""
