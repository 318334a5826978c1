# -*- coding: utf-8 -*-
"""
Record and Token Loading
========================

Reads carbon tree records from JSON or YAML files and simulation tokens
from files or literal text.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from carbontrace.exceptions import InvalidRecord

logger = logging.getLogger(__name__)

_FORMATS = {
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
}


def detect_format(path: Path) -> str:
    """Format name for a record file, from its suffix."""
    fmt = _FORMATS.get(path.suffix.lower())
    if fmt is None:
        raise InvalidRecord(
            f"Unsupported record format: {path.suffix or '<none>'}",
            field="path",
            errors=[f"expected one of {', '.join(sorted(_FORMATS))}"],
        )
    return fmt


def load_record(path: Union[str, Path], format: Optional[str] = None) -> Dict[str, Any]:
    """
    Load a carbon tree record.

    Args:
        path: Path to a ``.json``, ``.yaml`` or ``.yml`` file
        format: ``"json"`` or ``"yaml"`` (detected from the suffix if None)

    Returns:
        The record as plain nested dicts

    Raises:
        InvalidRecord: If the file cannot be parsed or is not a mapping
    """
    path = Path(path)
    if format is None:
        format = detect_format(path)

    logger.info("Loading carbon tree record: %s (format: %s)", path, format)
    text = path.read_text(encoding="utf-8")
    try:
        if format == "json":
            data = json.loads(text)
        elif format == "yaml":
            data = yaml.safe_load(text)
        else:
            raise InvalidRecord(f"Unsupported record format: {format}", field="format")
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise InvalidRecord(
            f"Record file {path} could not be parsed", field="path", errors=[str(exc)],
        ) from exc

    if not isinstance(data, dict):
        raise InvalidRecord(
            f"Record file {path} must contain a mapping, got {type(data).__name__}",
            field="path",
        )
    return data


def load_token(source: Union[str, Path]) -> str:
    """Read a simulation token from a file, or return literal token text."""
    path = Path(source)
    try:
        is_file = path.is_file()
    except OSError:
        # Long tokens exceed the maximum path length.
        is_file = False
    if is_file:
        logger.debug("Reading simulation token from %s", path)
        return path.read_text(encoding="utf-8").strip()
    return str(source).strip()


__all__ = ["detect_format", "load_record", "load_token"]
