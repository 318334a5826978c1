"""
carbontrace: Carbon Footprint Aggregation and Simulation
========================================================

Aggregates declared product and transport CO2eq over a hierarchy of
assets, runs non-destructive what-if edits against the original baseline
and persists the edit set as a URL-safe token.
"""

from ._version import __version__

__author__ = "carbontrace Team"
__license__ = "Apache-2.0"

from carbontrace.carbon_tree import CarbonTree, ChildrenPhaseDiff, TreeEvent
from carbontrace.config import CarbonTraceConfig, get_config, reset_config, set_config
from carbontrace.diagnostics import Diagnostic, DiagnosticLevel, DiagnosticsSink, get_sink
from carbontrace.exceptions import (
    CarbonTraceException,
    CircularDependencyError,
    CorruptedToken,
    InvalidLifeCyclePhase,
    InvalidRecord,
    StructuralError,
)
from carbontrace.footprint import (
    CarbonFootprint,
    ProductCarbonFootprint,
    TransportCarbonFootprint,
)
from carbontrace.lifecycle import LifeCyclePhases, parse_life_cycle_phase
from carbontrace.links import CarbonLink, LinkType, build_links, build_nodes
from carbontrace.models import (
    AssetInfo,
    BasicInfo,
    ConnectionInfo,
    ConnectionStatus,
    SimulationChanges,
    StatusEntry,
)

__all__ = [
    "__version__",
    # Core
    "CarbonTree",
    "TreeEvent",
    "ChildrenPhaseDiff",
    "LifeCyclePhases",
    "parse_life_cycle_phase",
    "CarbonFootprint",
    "ProductCarbonFootprint",
    "TransportCarbonFootprint",
    # Records
    "AssetInfo",
    "BasicInfo",
    "ConnectionInfo",
    "ConnectionStatus",
    "StatusEntry",
    "SimulationChanges",
    # Links
    "CarbonLink",
    "LinkType",
    "build_links",
    "build_nodes",
    # Ambient
    "CarbonTraceConfig",
    "get_config",
    "set_config",
    "reset_config",
    "Diagnostic",
    "DiagnosticLevel",
    "DiagnosticsSink",
    "get_sink",
    # Errors
    "CarbonTraceException",
    "StructuralError",
    "CircularDependencyError",
    "InvalidLifeCyclePhase",
    "InvalidRecord",
    "CorruptedToken",
]
