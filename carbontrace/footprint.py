# -*- coding: utf-8 -*-
"""
Carbon Footprint Data Models

Pydantic v2 models for the declared product (PCF) and transport (TCF)
carbon footprint entries of one asset, following the IDTA 2023-0-9
CarbonFootprint submodel, and the immutable :class:`CarbonFootprint`
aggregate that sums them.

Records arrive in the camelCase shape of the source submodel
(``"PCFCO2eq"`` already mapped to ``co2eq`` by the loader); every model
accepts both the camelCase aliases and the snake_case field names.

Example:
    >>> from carbontrace.footprint import CarbonFootprint
    >>> fp = CarbonFootprint(
    ...     product=[{"co2eq": 12.5, "lifeCyclePhase": "A1-A3",
    ...               "calculationMethod": "ISO 14067",
    ...               "referenceValueForCalculation": "piece"}],
    ...     transport=[],
    ... )
    >>> fp.product_co2eq, str(fp.covered_life_cycle_phases)
    (12.5, 'A1 - A3')
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from carbontrace.diagnostics import get_sink
from carbontrace.exceptions import InvalidRecord, StructuralError
from carbontrace.lifecycle import LifeCyclePhases

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Known PCF calculation methods (other values are accepted as-is).
PCF_CALCULATION_METHODS: Tuple[str, ...] = (
    "EN 15804", "GHG Protocol", "IEC TS 63058", "ISO 14040", "ISO 14044",
    "ISO 14067", "IEC 63366", "PEP Ecopassport",
)

#: Known reference units for calculation.
REFERENCE_VALUES: Tuple[str, ...] = (
    "g", "kg", "t", "ml", "l", "cbm", "qm", "piece",
)

WELL_TO_TANK = "WTT - Well-to-Tank"
TANK_TO_WHEEL = "TTW - Tank-to-Wheel"
WELL_TO_WHEEL = "WTW - Well-to-Wheel"

_TRANSPORT_PROCESSES: Dict[str, str] = {
    "WTT": WELL_TO_TANK,
    "TTW": TANK_TO_WHEEL,
    "WTW": WELL_TO_WHEEL,
}

_MODEL_CONFIG = {
    "populate_by_name": True,
    "frozen": True,
    "arbitrary_types_allowed": True,
    "extra": "ignore",
}


# =============================================================================
# Entry models
# =============================================================================


class GoodsAddress(BaseModel):
    """Address where goods are handed over or taken over."""

    street: Optional[str] = Field(default=None, alias="street")
    house_number: Optional[str] = Field(default=None, alias="houseNumber")
    zipcode: Optional[str] = Field(default=None, alias="zipcode")
    city_town: Optional[str] = Field(default=None, alias="cityTown")
    country: Optional[str] = Field(default=None, alias="country")
    latitude: Optional[float] = Field(default=None, alias="latitude")
    longitude: Optional[float] = Field(default=None, alias="longitude")

    model_config = _MODEL_CONFIG


class ProductCarbonFootprint(BaseModel):
    """One declared product carbon footprint (PCF) entry.

    Attributes:
        calculation_method: Standards the figure was calculated with.
        co2eq: Declared emissions in kg CO2e.
        reference_value_for_calculation: Unit the figure refers to.
        quantity_of_measure_for_calculation: Quantity of that unit.
        life_cycle_phase: Life cycle phases the figure covers.
        goods_address_handover: Where the goods are handed over.
        publication_date: When the figure was published.
        expiration_date: When the figure expires.
    """

    calculation_method: FrozenSet[str] = Field(
        default_factory=frozenset, alias="calculationMethod",
    )
    co2eq: float = Field(default=0.0, alias="co2eq")
    reference_value_for_calculation: str = Field(
        default="piece", alias="referenceValueForCalculation",
    )
    quantity_of_measure_for_calculation: Optional[float] = Field(
        default=None, alias="quantityOfMeasureForCalculation",
    )
    life_cycle_phase: LifeCyclePhases = Field(
        default_factory=LifeCyclePhases.empty, alias="lifeCyclePhase",
    )
    goods_address_handover: GoodsAddress = Field(
        default_factory=GoodsAddress, alias="goodsAddressHandover",
    )
    publication_date: Optional[datetime] = Field(default=None, alias="publicationDate")
    expiration_date: Optional[datetime] = Field(default=None, alias="expirationDate")

    model_config = _MODEL_CONFIG

    @field_validator("calculation_method", mode="before")
    @classmethod
    def validate_calculation_method(cls, v: Any) -> Any:
        """Accept a single method name as well as a collection."""
        if v is None:
            return frozenset()
        if isinstance(v, str):
            return frozenset([v])
        return v

    @field_validator("calculation_method")
    @classmethod
    def note_unknown_calculation_method(cls, v: FrozenSet[str]) -> FrozenSet[str]:
        """Unlisted methods are kept, only noted in the debug log."""
        unknown = sorted(v.difference(PCF_CALCULATION_METHODS))
        if unknown:
            logger.debug("Unknown PCF calculation method(s) %s", ", ".join(unknown))
        return v

    @field_validator("reference_value_for_calculation")
    @classmethod
    def note_unknown_reference_value(cls, v: str) -> str:
        if v not in REFERENCE_VALUES:
            logger.debug("Unknown reference value for calculation %r", v)
        return v

    @field_validator("co2eq", mode="before")
    @classmethod
    def validate_co2eq(cls, v: Any) -> Any:
        """Treat a missing or empty declared value as zero."""
        if v is None or v == "":
            return 0.0
        return v

    @field_validator("life_cycle_phase", mode="before")
    @classmethod
    def validate_life_cycle_phase(cls, v: Any) -> LifeCyclePhases:
        """Parse free-text phase codes."""
        return LifeCyclePhases.parse(v)


class TransportCarbonFootprint(BaseModel):
    """One declared transport carbon footprint (TCF) entry.

    Attributes:
        calculation_method: Standard the figure was calculated with.
        co2eq: Declared emissions in kg CO2e.
        reference_value_for_calculation: Unit the figure refers to.
        quantity_of_measure_for_calculation: Quantity of that unit.
        processes_for_greenhouse_gas_emission_in_a_transport_service:
            Well-to-Tank, Tank-to-Wheel or Well-to-Wheel.
        goods_transport_address_takeover: Where transport starts.
        goods_transport_address_handover: Where transport ends.
        publication_date: When the figure was published.
        expiration_date: When the figure expires.
    """

    calculation_method: str = Field(default="EN 16258", alias="calculationMethod")
    co2eq: float = Field(default=0.0, alias="co2eq")
    reference_value_for_calculation: str = Field(
        default="piece", alias="referenceValueForCalculation",
    )
    quantity_of_measure_for_calculation: Optional[float] = Field(
        default=None, alias="quantityOfMeasureForCalculation",
    )
    processes_for_greenhouse_gas_emission_in_a_transport_service: str = Field(
        default=None,
        alias="processesForGreenhouseGasEmissionInATransportService",
        validate_default=True,
    )
    goods_transport_address_takeover: GoodsAddress = Field(
        default_factory=GoodsAddress, alias="goodsTransportAddressTakeover",
    )
    goods_transport_address_handover: GoodsAddress = Field(
        default_factory=GoodsAddress, alias="goodsTransportAddressHandover",
    )
    publication_date: Optional[datetime] = Field(default=None, alias="publicationDate")
    expiration_date: Optional[datetime] = Field(default=None, alias="expirationDate")

    model_config = _MODEL_CONFIG

    @field_validator("co2eq", mode="before")
    @classmethod
    def validate_co2eq(cls, v: Any) -> Any:
        """Treat a missing or empty declared value as zero."""
        if v is None or v == "":
            return 0.0
        return v

    @field_validator(
        "processes_for_greenhouse_gas_emission_in_a_transport_service",
        mode="before",
    )
    @classmethod
    def validate_transport_process(cls, v: Any) -> str:
        """Normalise to one of the three process labels.

        A missing value is reported and treated as Well-to-Wheel.
        """
        if not v:
            get_sink().add(
                "The asset does not specify whether its calculations encompass "
                "Well-to-Tank, Tank-to-Wheel, or both",
                details=(
                    "The value of TCFProcessesForGreenhouseGasEmissionInATransportService "
                    "does not exist, therefore the analysis handles the missing value "
                    "as Well-to-Wheel"
                ),
                dedupe=True,
            )
            return WELL_TO_WHEEL
        value = str(v)
        for prefix, label in _TRANSPORT_PROCESSES.items():
            if value.startswith(prefix):
                return label
        raise ValueError(
            f"TCFProcessesForGreenhouseGasEmissionInATransportService '{value}' is unknown"
        )


ProductLike = Union[ProductCarbonFootprint, Mapping[str, Any]]
TransportLike = Union[TransportCarbonFootprint, Mapping[str, Any]]


def _validate_entries(model: type, entries: Iterable[Any], kind: str) -> Tuple[Any, ...]:
    validated = []
    for i, entry in enumerate(entries):
        if isinstance(entry, model):
            validated.append(entry)
            continue
        try:
            validated.append(model.model_validate(entry))
        except ValidationError as exc:
            raise InvalidRecord(
                f"Invalid {kind} carbon footprint entry at index {i}",
                field=kind,
                errors=[e["msg"] for e in exc.errors()],
            ) from exc
    return tuple(validated)


# =============================================================================
# CarbonFootprint aggregate
# =============================================================================


class CarbonFootprint:
    """Immutable set of declared footprint entries for one asset.

    Attributes:
        product: Product carbon footprint entries.
        transport: Transport carbon footprint entries.
        covered_life_cycle_phases: Union of the product entries' phases.
    """

    __slots__ = ("_product", "_transport", "_covered")

    def __init__(
        self,
        product: Iterable[ProductLike],
        transport: Optional[Iterable[TransportLike]],
    ):
        if transport is None:
            raise StructuralError("transport is undefined", operation="CarbonFootprint")
        self._product: Tuple[ProductCarbonFootprint, ...] = _validate_entries(
            ProductCarbonFootprint, product, "product",
        )
        self._transport: Tuple[TransportCarbonFootprint, ...] = _validate_entries(
            TransportCarbonFootprint, transport, "transport",
        )
        self._covered = LifeCyclePhases.merged(
            *(p.life_cycle_phase for p in self._product)
        )

    @classmethod
    def from_existing(cls, footprint: Any) -> CarbonFootprint:
        """Build from a mapping or object with ``product``/``transport``.

        An existing CarbonFootprint is returned unchanged.
        """
        if isinstance(footprint, CarbonFootprint):
            return footprint
        if isinstance(footprint, Mapping):
            return cls(footprint.get("product") or (), footprint.get("transport") or ())
        return cls(
            getattr(footprint, "product", None) or (),
            getattr(footprint, "transport", None) or (),
        )

    @property
    def product(self) -> Tuple[ProductCarbonFootprint, ...]:
        return self._product

    @property
    def transport(self) -> Tuple[TransportCarbonFootprint, ...]:
        return self._transport

    @property
    def covered_life_cycle_phases(self) -> LifeCyclePhases:
        return self._covered

    @property
    def product_co2eq(self) -> float:
        return sum(p.co2eq for p in self._product)

    @property
    def transport_co2eq(self) -> float:
        return sum(t.co2eq for t in self._transport)

    @property
    def total_co2eq(self) -> float:
        return self.product_co2eq + self.transport_co2eq

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        """Plain representation with camelCase keys (Python values kept)."""
        return {
            "product": [p.model_dump(by_alias=True) for p in self._product],
            "transport": [t.model_dump(by_alias=True) for t in self._transport],
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CarbonFootprint):
            return NotImplemented
        return self._product == other._product and self._transport == other._transport

    def __hash__(self) -> int:
        return hash((self._product, self._transport))

    def __repr__(self) -> str:
        return (
            f"CarbonFootprint(product_co2eq={self.product_co2eq}, "
            f"transport_co2eq={self.transport_co2eq}, "
            f"phases={self._covered.to_string()!r})"
        )


__all__ = [
    "PCF_CALCULATION_METHODS",
    "REFERENCE_VALUES",
    "WELL_TO_TANK",
    "TANK_TO_WHEEL",
    "WELL_TO_WHEEL",
    "GoodsAddress",
    "ProductCarbonFootprint",
    "TransportCarbonFootprint",
    "CarbonFootprint",
]
