"""
HotConf Document Decoder.

Parses configuration bytes into a plain mapping.
Requires Python 3.11+.
"""

import json
from pathlib import Path
from typing import Any

import yaml

from utils.errors import ConfigDecodeError

JSON = "json"
YAML = "yaml"

_YAML_SUFFIXES = frozenset({".yaml", ".yml"})


def format_for(path: Path) -> str:
    """Pick the document format from a file suffix; JSON unless YAML."""
    if path.suffix.lower() in _YAML_SUFFIXES:
        return YAML
    return JSON


def parse_document(data: bytes, fmt: str = JSON) -> dict[str, Any]:
    """
    Parse a configuration document.

    Args:
        data: Raw file contents
        fmt: ``"json"`` or ``"yaml"``

    Returns:
        The document's top-level mapping

    Raises:
        ConfigDecodeError: If the document is malformed or is not
            object-shaped at the top level
    """
    try:
        if fmt == YAML:
            document = yaml.safe_load(data)
            if document is None:
                # Empty or comment-only YAML file
                document = {}
        else:
            document = json.loads(data)
    except (ValueError, yaml.YAMLError) as e:
        # ValueError covers JSONDecodeError and UnicodeDecodeError
        raise ConfigDecodeError(f"malformed {fmt} document: {e}") from e
    except RecursionError as e:
        raise ConfigDecodeError(f"{fmt} document is nested too deeply") from e

    if not isinstance(document, dict):
        raise ConfigDecodeError(
            f"top level of a {fmt} document must be an object, "
            f"got {type(document).__name__}"
        )
    return document
