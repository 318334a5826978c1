# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures."""

import os
from typing import Any, Dict, Iterable, Optional

import pytest

from carbontrace.config import CarbonTraceConfig, reset_config, set_config
from carbontrace.diagnostics import get_sink, reset_sink

# Keep developer environment overrides out of the test run
for _name in list(os.environ):
    if _name.startswith("CT_"):
        del os.environ[_name]


def product_entry(co2eq: float, phase: Optional[str] = "A1-A3", **extra: Any) -> Dict[str, Any]:
    entry = {
        "co2eq": co2eq,
        "lifeCyclePhase": phase,
        "calculationMethod": "ISO 14067",
        "referenceValueForCalculation": "piece",
        "quantityOfMeasureForCalculation": 1,
    }
    entry.update(extra)
    return entry


def transport_entry(co2eq: float, **extra: Any) -> Dict[str, Any]:
    entry = {
        "co2eq": co2eq,
        "calculationMethod": "EN 16258",
        "processesForGreenhouseGasEmissionInATransportService": "WTW - Well-to-Wheel",
    }
    entry.update(extra)
    return entry


def tree_record(
    asset_id: str,
    product: Optional[float] = None,
    transport: Optional[float] = None,
    children: Iterable[Dict[str, Any]] = (),
    bulk: Optional[float] = None,
    name: Optional[str] = None,
    phase: Optional[str] = "A1-A3",
) -> Dict[str, Any]:
    """Plain carbon tree record as a loader would produce it."""
    asset: Dict[str, Any] = {"id": asset_id, "idShort": asset_id.split(":")[-1]}
    if name is not None:
        asset["displayName"] = name
    if product is not None or transport is not None:
        asset["footprint"] = {
            "product": [] if product is None else [product_entry(product, phase)],
            "transport": [] if transport is None else [transport_entry(transport)],
        }
    connection: Dict[str, Any] = {"idShort": f"{asset['idShort']}Connection"}
    if bulk is not None:
        connection["bulkCount"] = bulk
    return {
        "asset": asset,
        "entity": {"idShort": f"{asset['idShort']}Entity", "displayName": name},
        "connection": connection,
        "connections": {child["asset"]["id"]: child for child in children},
    }


@pytest.fixture
def make_record():
    """Factory for plain carbon tree records."""
    return tree_record


@pytest.fixture
def make_product():
    return product_entry


@pytest.fixture
def make_transport():
    return transport_entry


@pytest.fixture
def bike_record():
    """Bike with a declared footprint that already contains its parts.

    bike (product 100, transport 5)
    ├── frame x1 (product 40, transport 2, A1-A3)
    ├── wheel x2 (product 10, transport 1, A1-A3)
    │   └── tire x1 (product 3, C1)
    └── bell x1 (product 4)
    """
    tire = tree_record("urn:tire", product=3, bulk=1, phase="C1")
    return tree_record(
        "urn:bike",
        product=100,
        transport=5,
        name="Bike",
        children=[
            tree_record("urn:frame", product=40, transport=2, bulk=1, name="Frame"),
            tree_record("urn:wheel", product=10, transport=1, bulk=2, name="Wheel", children=[tire]),
            tree_record("urn:bell", product=4, bulk=1, name="Bell"),
        ],
    )


@pytest.fixture
def carbon_frame_record():
    """Replacement for the bike frame."""
    return tree_record("urn:carbon-frame", product=25, transport=3, bulk=1, name="Carbon Frame")


@pytest.fixture(autouse=True)
def isolated_state():
    """Fresh configuration and diagnostics sink for every test."""
    reset_config()
    set_config(CarbonTraceConfig())
    reset_sink()
    yield
    get_sink().clear()
    reset_sink()
    reset_config()
