"""
HotConf Loader Package.

Document decoding and in-place merging.
Requires Python 3.11+.
"""

from loader.decoder import format_for, parse_document
from loader.loader import Loader
from loader.merge import MergePlan, check_target, merge_into

__all__ = [
    "Loader",
    "MergePlan",
    "check_target",
    "merge_into",
    "format_for",
    "parse_document",
]
