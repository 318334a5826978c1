# -*- coding: utf-8 -*-
"""
Carbon Tree Record Models

Pydantic v2 models for the plain hierarchical record a loader hands to
:class:`carbontrace.carbon_tree.CarbonTree`, the connection status of a
child inside its parent, and the :class:`SimulationChanges` snapshot that
captures an edit set.

Record shape (camelCase keys as produced by the loader)::

    {
        "asset": {"id": "...", "idShort": "...", "footprint": {...}},
        "entity": {"idShort": "...", "displayName": "..."},
        "connection": {"idShort": "...", "bulkCount": 2},
        "connections": {"<child asset id>": {...same shape...}},
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from carbontrace.footprint import CarbonFootprint


_MODEL_CONFIG = {
    "populate_by_name": True,
    "frozen": True,
    "arbitrary_types_allowed": True,
    "extra": "ignore",
}


# =============================================================================
# Record models
# =============================================================================


class BasicInfo(BaseModel):
    """Display metadata of a structural node."""

    id_short: str = Field(..., alias="idShort")
    display_name: Optional[str] = Field(default=None, alias="displayName")
    description: Optional[str] = Field(default=None, alias="description")

    model_config = _MODEL_CONFIG


class ConnectionInfo(BasicInfo):
    """How a node attaches to its parent.

    Attributes:
        bulk_count: How many units of the child go into the parent.
            ``None`` means the source did not say (treated as 1).
    """

    id_short: str = Field(default="", alias="idShort")
    bulk_count: Optional[float] = Field(default=None, alias="bulkCount")


class AssetInfo(BaseModel):
    """Identity, display metadata and declared footprint of an asset."""

    id: str = Field(..., alias="id")
    id_short: Optional[str] = Field(default=None, alias="idShort")
    display_name: Optional[str] = Field(default=None, alias="displayName")
    description: Optional[str] = Field(default=None, alias="description")
    footprint: Optional[CarbonFootprint] = Field(default=None, alias="footprint")

    model_config = _MODEL_CONFIG

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate id is non-empty."""
        if not v or not v.strip():
            raise ValueError("asset id must be non-empty")
        return v

    @field_validator("footprint", mode="before")
    @classmethod
    def validate_footprint(cls, v: Any) -> Optional[CarbonFootprint]:
        """Build the footprint aggregate from plain data."""
        if v is None:
            return None
        return CarbonFootprint.from_existing(v)


# =============================================================================
# Connection status
# =============================================================================


class ConnectionStatus(str, Enum):
    """State of a child connection relative to the baseline."""
    ORIGINAL = "original"
    ADDED = "added"
    DELETED = "deleted"
    SWAPPED = "swapped"
    MODIFIED = "modified"


PAIR_STATUSES = (ConnectionStatus.SWAPPED, ConnectionStatus.MODIFIED)


@dataclass(frozen=True)
class StatusEntry:
    """Connection status of one child id.

    Swapped and modified entries link the replaced id (``original_id``)
    and its replacement (``other_id``); both ids carry the same entry so
    either can be used to undo the substitution.
    """

    status: ConnectionStatus
    original_id: Optional[str] = None
    other_id: Optional[str] = None

    @classmethod
    def original(cls) -> StatusEntry:
        return cls(ConnectionStatus.ORIGINAL)

    @classmethod
    def added(cls) -> StatusEntry:
        return cls(ConnectionStatus.ADDED)

    @classmethod
    def deleted(cls) -> StatusEntry:
        return cls(ConnectionStatus.DELETED)

    @classmethod
    def pair(cls, status: ConnectionStatus, original_id: str, other_id: str) -> StatusEntry:
        status = ConnectionStatus(status)
        if status not in PAIR_STATUSES:
            raise ValueError(f"Status {status.value} does not link two connections")
        return cls(status, original_id, other_id)

    @property
    def is_original(self) -> bool:
        return self.status is ConnectionStatus.ORIGINAL

    @property
    def is_pair(self) -> bool:
        return self.status in PAIR_STATUSES

    def to_dict(self) -> Dict[str, str]:
        data = {"status": self.status.value}
        if self.is_pair:
            data["originalId"] = self.original_id
            data["otherId"] = self.other_id
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StatusEntry:
        status = ConnectionStatus(data["status"])
        if status in PAIR_STATUSES:
            return cls.pair(status, data["originalId"], data["otherId"])
        return cls(status)


# =============================================================================
# Simulation snapshot
# =============================================================================


@dataclass
class SimulationChanges:
    """Snapshot of one node's edits, replayable onto a fresh baseline.

    ``connections`` holds a snapshot per current child, or ``None`` for a
    child without changes. Subtrees that do not exist in the baseline
    (added or swapped in) are stored in full and additionally carry
    ``original_connections`` so their own baseline can be rebuilt.
    """

    asset: AssetInfo
    entity: BasicInfo
    is_simulation: bool = False
    connection: Optional[ConnectionInfo] = None
    connections: Dict[str, Optional[SimulationChanges]] = field(default_factory=dict)
    connection_status: Dict[str, StatusEntry] = field(default_factory=dict)
    bulk_count: Optional[float] = None
    original_connections: Optional[Dict[str, SimulationChanges]] = None


__all__ = [
    "BasicInfo",
    "ConnectionInfo",
    "AssetInfo",
    "ConnectionStatus",
    "PAIR_STATUSES",
    "StatusEntry",
    "SimulationChanges",
]
