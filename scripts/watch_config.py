#!/usr/bin/env python3
"""
HotConf Watch Script.

Loads a configuration file and logs its contents on every reload.
Requires Python 3.11+.

Usage:
    python scripts/watch_config.py /path/to/config.json
"""

import argparse
import sys
import threading
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from session.config_session import ConfigSession
from utils.logger import configure_logging, get_logger


configure_logging()
logger = get_logger("watch_config")


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Watch a JSON or YAML configuration file and log every reload"
    )
    parser.add_argument(
        "path",
        type=Path,
        help="Configuration file to watch",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Load the file once and exit",
    )

    args = parser.parse_args()

    config: dict = {}
    session = ConfigSession(args.path, config)

    if args.once:
        if not session.reload():
            return 1
        logger.info("config_loaded", path=str(args.path), config=config)
        return 0

    @session.on_load
    def report() -> None:
        logger.info("config_loaded", path=str(args.path), config=dict(config))

    stop = threading.Event()
    with session:
        try:
            stop.wait()
        except KeyboardInterrupt:
            logger.info("interrupted")

    return 0


if __name__ == "__main__":
    sys.exit(main())
