# -*- coding: utf-8 -*-
"""
Tree-to-Link Flattening

Flattens the current view of a :class:`~carbontrace.carbon_tree.CarbonTree`
into nodes and weighted parent -> child links, one product and one
transport link per child that declares a footprint. Flow diagrams
consume these; rendering itself is not part of this package.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Deque, Dict, List

from carbontrace.carbon_tree import CarbonTree
from carbontrace.exceptions import CircularDependencyError
from carbontrace.lifecycle import LifeCyclePhases

logger = logging.getLogger(__name__)


class LinkType(str, Enum):
    """Which declared figure a link carries."""
    PRODUCT = "product"
    TRANSPORT = "transport"


@dataclass(frozen=True)
class CarbonLink:
    """Emissions flowing from ``target`` into ``source``.

    Attributes:
        type: Product or transport.
        source: Parent node the value is added to.
        target: Child node that generates the value.
        value: CO2eq in kg.
        product_life_cycle_phases: Phases of the target's product
            footprint (transport links copy them from their product sibling).
    """

    type: LinkType
    source: CarbonTree
    target: CarbonTree
    value: float
    product_life_cycle_phases: LifeCyclePhases

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "source": self.source.asset.id,
            "target": self.target.asset.id,
            "value": self.value,
            "productLifeCyclePhases": self.product_life_cycle_phases.to_string(),
        }


def build_nodes(tree: CarbonTree) -> Dict[str, CarbonTree]:
    """Map every asset id in the current view to its node."""
    nodes: Dict[str, CarbonTree] = {}
    todo: Deque[CarbonTree] = deque([tree])
    while todo:
        node = todo.popleft()
        nodes[node.asset.id] = node
        todo.extend(node.connections.values())
    return nodes


def build_links(tree: CarbonTree) -> List[CarbonLink]:
    """Breadth-first product and transport links for the current view.

    Raises:
        CircularDependencyError: If an asset id is reached a second time.
    """
    links: List[CarbonLink] = []
    visited: Dict[str, CarbonTree] = {}
    todo: Deque[CarbonTree] = deque([tree])
    while todo:
        node = todo.popleft()
        asset_id = node.asset.id
        if asset_id in visited:
            path = [asset_id]
            ancestor = node.parent
            while ancestor is not None:
                path.append(ancestor.asset.id)
                ancestor = ancestor.parent
            raise CircularDependencyError(
                f"Circular dependency error for node {asset_id}",
                asset_id=asset_id,
                path=list(reversed(path)),
            )
        visited[asset_id] = node
        todo.extend(node.connections.values())

        if node.parent is None or node.asset.footprint is None:
            continue
        phases = node.covered_life_cycle_phases
        links.append(CarbonLink(LinkType.PRODUCT, node.parent, node, node.product_co2eq, phases))
        links.append(CarbonLink(LinkType.TRANSPORT, node.parent, node, node.transport_co2eq, phases))

    logger.debug("Built %d links for %s", len(links), tree.asset.id)
    return links


__all__ = ["LinkType", "CarbonLink", "build_nodes", "build_links"]
