# -*- coding: utf-8 -*-
"""
Simulation Token Codec

Turns a :class:`~carbontrace.models.SimulationChanges` snapshot into a
compact, URL-component-safe token and back.

Encoding steps:
    1. Snapshot -> JSON with camelCase keys. Three value kinds are tagged
       with ``_type`` so they survive the round trip:

       - ``{"_type": "LifeCyclePhases", "originalString": "A1-A3"}``
         (re-parsed on load)
       - ``{"_type": "CarbonFootprint", "product": [...], "transport": [...]}``
       - ``{"_type": "Date", "value": "2024-05-01T00:00:00+00:00"}``
    2. JSON text -> zlib -> URL-safe base64 without padding.

The tag names are part of the token format (``TOKEN_FORMAT_VERSION``).
Changing them breaks every token already handed out.

Any failure while decoding raises :class:`~carbontrace.exceptions.CorruptedToken`.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import zlib
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import BaseModel, ValidationError

from carbontrace.config import get_config
from carbontrace.exceptions import CarbonTraceException, CorruptedToken
from carbontrace.footprint import CarbonFootprint
from carbontrace.lifecycle import LifeCyclePhases
from carbontrace.metrics import record_corrupt_token, record_token
from carbontrace.models import (
    AssetInfo,
    BasicInfo,
    ConnectionInfo,
    SimulationChanges,
    StatusEntry,
)

logger = logging.getLogger(__name__)

TOKEN_FORMAT_VERSION = 1

TYPE_KEY = "_type"
LIFE_CYCLE_PHASES_TAG = "LifeCyclePhases"
CARBON_FOOTPRINT_TAG = "CarbonFootprint"
DATE_TAG = "Date"


# ---------------------------------------------------------------------------
# Tagged values
# ---------------------------------------------------------------------------


def encode_value(value: Any) -> Any:
    """``json.dumps`` default hook for values JSON cannot represent."""
    if isinstance(value, LifeCyclePhases):
        return {TYPE_KEY: LIFE_CYCLE_PHASES_TAG, "originalString": value.original}
    if isinstance(value, CarbonFootprint):
        return {
            TYPE_KEY: CARBON_FOOTPRINT_TAG,
            "product": list(value.product),
            "transport": list(value.transport),
        }
    if isinstance(value, (datetime, date)):
        return {TYPE_KEY: DATE_TAG, "value": value.isoformat()}
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_none=True)
    if isinstance(value, StatusEntry):
        return value.to_dict()
    if isinstance(value, SimulationChanges):
        return changes_to_wire(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not serializable")


def _decode_life_cycle_phases(value: Mapping[str, Any]) -> LifeCyclePhases:
    return LifeCyclePhases.parse(value["originalString"])


def _decode_carbon_footprint(value: Mapping[str, Any]) -> CarbonFootprint:
    return CarbonFootprint(value["product"], value["transport"])


def _decode_date(value: Mapping[str, Any]) -> datetime:
    return datetime.fromisoformat(value["value"])


_DECODERS: Dict[str, Callable[[Mapping[str, Any]], Any]] = {
    LIFE_CYCLE_PHASES_TAG: _decode_life_cycle_phases,
    CARBON_FOOTPRINT_TAG: _decode_carbon_footprint,
    DATE_TAG: _decode_date,
}


def decode_value(value: Dict[str, Any]) -> Any:
    """``json.loads`` object hook reversing :func:`encode_value`."""
    tag = value.get(TYPE_KEY)
    if tag is None:
        return value
    decoder = _DECODERS.get(tag)
    if decoder is None:
        raise CorruptedToken(f"Unknown tagged value type '{tag}'", stage="tags")
    return decoder(value)


# ---------------------------------------------------------------------------
# Snapshot <-> wire structure
# ---------------------------------------------------------------------------


def changes_to_wire(changes: SimulationChanges) -> Dict[str, Any]:
    """Convert a snapshot into its camelCase wire structure."""
    wire: Dict[str, Any] = {
        "asset": changes.asset,
        "entity": changes.entity,
        "isSimulation": changes.is_simulation,
        "connection": changes.connection,
        "connectionStatus": {
            child_id: entry.to_dict()
            for child_id, entry in changes.connection_status.items()
        },
        "connections": {
            child_id: None if child is None else changes_to_wire(child)
            for child_id, child in changes.connections.items()
        },
        "bulkCount": changes.bulk_count,
    }
    if changes.original_connections is not None:
        wire["originalConnections"] = {
            child_id: changes_to_wire(child)
            for child_id, child in changes.original_connections.items()
        }
    return wire


def changes_from_wire(wire: Mapping[str, Any]) -> SimulationChanges:
    """Rebuild a snapshot from its wire structure."""
    original = wire.get("originalConnections")
    connection = wire.get("connection")
    return SimulationChanges(
        asset=AssetInfo.model_validate(wire["asset"]),
        entity=BasicInfo.model_validate(wire["entity"]),
        is_simulation=bool(wire.get("isSimulation", False)),
        connection=None if connection is None else ConnectionInfo.model_validate(connection),
        connections={
            child_id: None if child is None else changes_from_wire(child)
            for child_id, child in (wire.get("connections") or {}).items()
        },
        connection_status={
            child_id: StatusEntry.from_dict(entry)
            for child_id, entry in (wire.get("connectionStatus") or {}).items()
        },
        bulk_count=wire.get("bulkCount"),
        original_connections=None if original is None else {
            child_id: changes_from_wire(child) for child_id, child in original.items()
        },
    )


def dumps(changes: SimulationChanges) -> str:
    """Serialise a snapshot to JSON text with tagged values."""
    return json.dumps(
        changes_to_wire(changes),
        default=encode_value,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def loads(text: str) -> SimulationChanges:
    """Parse JSON text produced by :func:`dumps`.

    Raises:
        CorruptedToken: If the text is not a valid snapshot.
    """
    try:
        wire = json.loads(text, object_hook=decode_value)
    except CorruptedToken:
        record_corrupt_token("tags")
        raise
    except json.JSONDecodeError as exc:
        record_corrupt_token("json")
        raise CorruptedToken(f"Simulation changes are not valid JSON: {exc}", stage="json") from exc
    except (CarbonTraceException, KeyError, TypeError, ValueError) as exc:
        record_corrupt_token("tags")
        raise CorruptedToken(f"Tagged value could not be restored: {exc}", stage="tags") from exc

    if not isinstance(wire, Mapping):
        record_corrupt_token("structure")
        raise CorruptedToken("Simulation changes must be a JSON object", stage="structure")
    try:
        return changes_from_wire(wire)
    except (ValidationError, KeyError, TypeError, ValueError, AttributeError) as exc:
        record_corrupt_token("structure")
        raise CorruptedToken(
            f"Simulation changes have an unexpected structure: {exc}", stage="structure",
        ) from exc


# ---------------------------------------------------------------------------
# Compression
# ---------------------------------------------------------------------------


def compress(text: str, level: Optional[int] = None) -> str:
    """Compress text into a URL-component-safe token."""
    if level is None:
        level = get_config().compression_level
    raw = zlib.compress(text.encode("utf-8"), level)
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decompress(token: str) -> str:
    """Reverse :func:`compress`.

    Raises:
        CorruptedToken: If the token is too long, not base64, not zlib
            data, or not UTF-8 text.
    """
    max_length = get_config().max_token_length
    if len(token) > max_length:
        record_corrupt_token("length")
        raise CorruptedToken(
            f"Simulation token exceeds {max_length} characters",
            token_length=len(token), stage="length",
        )
    padded = token + "=" * (-len(token) % 4)
    try:
        raw = base64.b64decode(padded, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as exc:
        record_corrupt_token("base64")
        raise CorruptedToken(
            "Simulation token is not URL-safe base64",
            token_length=len(token), stage="base64",
        ) from exc
    try:
        return zlib.decompress(raw).decode("utf-8")
    except zlib.error as exc:
        record_corrupt_token("decompress")
        raise CorruptedToken(
            "Simulation token cannot be decompressed",
            token_length=len(token), stage="decompress",
        ) from exc
    except UnicodeDecodeError as exc:
        record_corrupt_token("decode")
        raise CorruptedToken(
            "Simulation token does not hold UTF-8 text",
            token_length=len(token), stage="decode",
        ) from exc


# ---------------------------------------------------------------------------
# Token API
# ---------------------------------------------------------------------------


def encode_changes(changes: Optional[SimulationChanges]) -> str:
    """Snapshot -> token. ``None`` (no changes) encodes as ``""``."""
    if changes is None:
        return ""
    token = compress(dumps(changes))
    record_token("encode", len(token))
    logger.debug("Encoded simulation changes for %s into %d characters", changes.asset.id, len(token))
    return token


def decode_changes(token: str) -> Optional[SimulationChanges]:
    """Token -> snapshot. An empty token decodes to ``None``."""
    if not token:
        return None
    changes = loads(decompress(token))
    record_token("decode", len(token))
    return changes


__all__ = [
    "TOKEN_FORMAT_VERSION",
    "TYPE_KEY",
    "LIFE_CYCLE_PHASES_TAG",
    "CARBON_FOOTPRINT_TAG",
    "DATE_TAG",
    "encode_value",
    "decode_value",
    "changes_to_wire",
    "changes_from_wire",
    "dumps",
    "loads",
    "compress",
    "decompress",
    "encode_changes",
    "decode_changes",
]
