"""
HotConf Session Package.

The public entry point for hot-reloaded configuration.
Requires Python 3.11+.
"""

from session.config_session import ConfigSession

__all__ = ["ConfigSession"]
