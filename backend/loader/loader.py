"""
HotConf Loader.

Opens the configuration file and decode-merges it into the target.
Requires Python 3.11+.
"""

from pathlib import Path
from typing import Any

from loader.decoder import format_for, parse_document
from loader.merge import MergePlan, check_target
from utils.errors import ConfigDecodeError, ConfigOpenError
from utils.logger import LoggerMixin


class Loader(LoggerMixin):
    """
    Loads one configuration file into one decode target.

    Failures are logged and reported through the return value of
    ``load``; the target then keeps its previous contents.
    Not thread-safe: callers serialize ``load``.
    """

    def __init__(self, path: Path, target: Any) -> None:
        """
        Initialize the loader.

        Args:
            path: Configuration file
            target: Caller-owned structure to merge into

        Raises:
            TypeError: If the target cannot be merged into
        """
        check_target(target)
        self._path = Path(path)
        self._target = target
        self._format = format_for(self._path)
        self.bind_log(path=str(self._path), format=self._format)

    @property
    def path(self) -> Path:
        """Configuration file path."""
        return self._path

    @property
    def format(self) -> str:
        """Document format picked from the file suffix, ``"json"`` or ``"yaml"``."""
        return self._format

    def read(self) -> bytes:
        """
        Read the whole configuration file.

        Raises:
            ConfigOpenError: If the file cannot be opened or read
        """
        try:
            with open(self._path, "rb") as f:
                return f.read()
        except OSError as e:
            raise ConfigOpenError(f"cannot open {self._path}: {e}") from e

    def load(self) -> bool:
        """
        Decode the file into the target.

        Returns:
            True if the document was merged, False if it could not be
            opened or decoded
        """
        try:
            data = self.read()
        except ConfigOpenError as e:
            self.log.error("config_open_failed", error=str(e))
            return False

        try:
            document = parse_document(data, self._format)
            plan = MergePlan.build(self._target, document)
        except ConfigDecodeError as e:
            self.log.error("config_decode_failed", error=str(e))
            return False

        changes = plan.apply()
        self.log.info("config_reloaded", changes=changes)
        return True
