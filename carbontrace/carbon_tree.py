# -*- coding: utf-8 -*-
"""
Carbon Tree

The in-memory hierarchy of assets that aggregates declared product and
transport emissions, tracks non-destructive edits (add, delete, swap,
modify, bulk count) against an immutable baseline, and serialises the
edit set into a shareable token.

Naming convention for derived values:
    - current view: no prefix (``product_co2eq``, ``bulk_count``)
    - baseline view: ``original_`` prefix (``original_product_co2eq``)
    - difference: ``_diff`` suffix, always current minus original

Example:
    >>> tree = CarbonTree.from_record(record)
    >>> tree.connections["urn:screw"].bulk_count = 4
    >>> tree.product_co2eq_diff
    12.0
    >>> token = tree.stringify_changes()
    >>> replayed = CarbonTree.replay(record, token)
"""

from __future__ import annotations

import logging
from collections import deque
from enum import Enum
from typing import (
    Any,
    Callable,
    Deque,
    Dict,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Tuple,
    Type,
    TypeVar,
    Union,
)

from pydantic import BaseModel, ValidationError

from carbontrace import codec
from carbontrace.config import get_config
from carbontrace.diagnostics import get_sink
from carbontrace.exceptions import InvalidRecord, StructuralError
from carbontrace.formatting import epsilon_zero
from carbontrace.lifecycle import LifeCyclePhases
from carbontrace.metrics import record_edit, record_mismatch
from carbontrace.models import (
    AssetInfo,
    BasicInfo,
    ConnectionInfo,
    ConnectionStatus,
    PAIR_STATUSES,
    SimulationChanges,
    StatusEntry,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
TreeLike = Union["CarbonTree", Mapping[str, Any]]
Listener = Callable[["CarbonTree"], None]
ForEachCallback = Callable[["CarbonTree", int, int, float], Optional[bool]]

MISMATCH_MESSAGE = "Mismatch between asset CO2eq and its components CO2eq"


class TreeEvent(str, Enum):
    """Notifications emitted by a tree node."""
    CHANGE = "change"              # bulk count or this node's connections changed
    CHILD_CHANGE = "child_change"  # the same, originating from a descendant


class ChildrenPhaseDiff(NamedTuple):
    """Life cycle phases covered by the current vs. the original descendants."""
    only_this: List[str]
    only_other: List[str]
    both: List[str]
    only_original: List[str]
    only_current: List[str]


# =============================================================================
# Record helpers
# =============================================================================


def _coerce(model: Type[ModelT], value: Any, field: str) -> ModelT:
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except ValidationError as exc:
        raise InvalidRecord(
            f"Invalid '{field}' in carbon tree record",
            field=field,
            errors=[e["msg"] for e in exc.errors()],
        ) from exc


def _snapshot_record(snapshot: SimulationChanges) -> Dict[str, Any]:
    """Baseline record of a subtree that exists only in a snapshot."""
    children = snapshot.original_connections
    if children is None:
        children = snapshot.connections
    return {
        "asset": snapshot.asset,
        "entity": snapshot.entity,
        "connection": snapshot.connection,
        "connections": {
            child_id: _snapshot_record(child)
            for child_id, child in children.items()
            if child is not None
        },
    }


def _is_introduced(entry: Optional[StatusEntry], child_id: str) -> bool:
    """Whether ``child_id`` names a tree that is absent from the baseline."""
    if entry is None:
        return False
    if entry.status is ConnectionStatus.ADDED:
        return True
    return entry.is_pair and child_id == entry.other_id


def _component_count(tree: CarbonTree) -> float:
    return sum(_component_count(c) * c.bulk_count for c in tree.connections.values()) + 1


def _original_component_count(tree: CarbonTree) -> float:
    return sum(
        _original_component_count(c) * c._original_bulk_or_one
        for c in tree.original_connections.values()
    ) + 1


def _sum_or_none(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values)


# =============================================================================
# CarbonTree
# =============================================================================


class CarbonTree:
    """One asset in a composite product, with its current and original children.

    Use :meth:`from_record`, :meth:`from_existing` or :meth:`replay`
    rather than calling the constructor directly.

    Attributes:
        asset: Identity, display metadata and declared footprint.
        entity: Display metadata of this structural position.
        connection: How this node attaches to its parent.
        parent: Back-reference to the parent node (``None`` at the root).
        connections: Current children by asset id.
        original_connections: Baseline children by asset id; never reassigned.
        connection_status: Edit state of every child id.
        is_simulation: Whether the subtree was rebuilt from a persisted edit set.
    """

    def __init__(
        self,
        asset: Union[AssetInfo, Mapping[str, Any]],
        entity: Union[BasicInfo, Mapping[str, Any]],
        connections: Mapping[str, Any],
        connection: Union[ConnectionInfo, Mapping[str, Any], None] = None,
        parent: Optional[CarbonTree] = None,
        is_simulation: bool = False,
        changes: Optional[SimulationChanges] = None,
    ):
        if parent is not None and not isinstance(parent, CarbonTree):
            raise StructuralError(
                "parent is no CarbonTree. Only parsing from parent to children allowed",
                operation="from_record",
            )
        self.asset: AssetInfo = _coerce(AssetInfo, asset, "asset")
        self.entity: BasicInfo = _coerce(BasicInfo, entity, "entity")
        self.connection: Optional[ConnectionInfo] = (
            None if connection is None else _coerce(ConnectionInfo, connection, "connection")
        )
        self.parent = parent
        self.is_simulation = is_simulation
        self._bulk_count: Optional[float] = None
        self._listeners: Dict[TreeEvent, List[Listener]] = {event: [] for event in TreeEvent}

        applies = changes is not None and changes.asset.id == self.asset.id
        if changes is not None and not applies:
            logger.warning(
                "Ignoring simulation changes for %s on tree %s",
                changes.asset.id, self.asset.id,
            )
        if applies and changes.original_connections is not None:
            connections = {
                child_id: _snapshot_record(child)
                for child_id, child in changes.original_connections.items()
            }

        status_in_changes = changes.connection_status if applies else {}
        self.original_connections: Dict[str, CarbonTree] = {}
        for child_id, child_record in connections.items():
            child_changes = None
            if applies and not _is_introduced(status_in_changes.get(child_id), child_id):
                child_changes = changes.connections.get(child_id)
            self.original_connections[child_id] = self._build_child(child_record, child_changes)
        self.connections: Dict[str, CarbonTree] = dict(self.original_connections)
        self.connection_status: Dict[str, StatusEntry] = {
            child_id: StatusEntry.original() for child_id in self.original_connections
        }

        if applies:
            self._apply_changes(changes)

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_record(
        cls,
        record: Union[CarbonTree, Mapping[str, Any]],
        changes: Optional[SimulationChanges] = None,
    ) -> CarbonTree:
        """Build a tree from a plain hierarchical record.

        Args:
            record: Mapping with ``asset``, ``entity``, ``connections`` and
                optionally ``connection`` and ``parent``.
            changes: Snapshot to replay onto the freshly built baseline.

        Raises:
            StructuralError: If ``entity`` or ``connections`` is missing or
                ``parent`` is not a tree.
            InvalidRecord: If a part of the record fails validation.
        """
        if isinstance(record, CarbonTree):
            return cls.from_existing(record)
        if not isinstance(record, Mapping):
            raise StructuralError(
                f"Cannot build a carbon tree from {type(record).__name__}",
                operation="from_record",
            )
        if "asset" not in record or record.get("asset") is None:
            raise StructuralError("asset is undefined", operation="from_record")
        if record.get("entity") is None or record.get("connections") is None:
            raise StructuralError("entity or connections is undefined", operation="from_record")
        return cls(
            record["asset"],
            record["entity"],
            record["connections"],
            connection=record.get("connection"),
            parent=record.get("parent"),
            changes=changes,
        )

    @classmethod
    def from_existing(cls, tree: TreeLike) -> CarbonTree:
        """Return ``tree`` itself if it already is a tree, else build one."""
        if isinstance(tree, CarbonTree):
            logger.warning("asset %s is already of type CarbonTree", tree.asset.id)
            return tree
        return cls.from_record(tree)

    @classmethod
    def replay(
        cls,
        record: Mapping[str, Any],
        changes: Union[SimulationChanges, str, None],
    ) -> CarbonTree:
        """Build the baseline from ``record`` and replay a snapshot or token onto it."""
        if isinstance(changes, str):
            changes = cls.parse_changes(changes)
        return cls.from_record(record, changes)

    def _build_child(
        self,
        record: TreeLike,
        changes: Optional[SimulationChanges] = None,
        is_simulation: Optional[bool] = None,
    ) -> CarbonTree:
        if isinstance(record, CarbonTree):
            record = record.to_record()
        if is_simulation is None:
            is_simulation = self.is_simulation
        if not isinstance(record, Mapping) or "asset" not in record:
            raise StructuralError(
                "Connection is not a carbon tree record",
                asset_id=self.asset.id,
                operation="from_record",
            )
        if record.get("entity") is None or record.get("connections") is None:
            raise StructuralError(
                "entity or connections is undefined",
                asset_id=self.asset.id,
                operation="from_record",
            )
        return CarbonTree(
            record["asset"],
            record["entity"],
            record["connections"],
            connection=record.get("connection"),
            parent=self,
            is_simulation=is_simulation,
            changes=changes,
        )

    def _apply_changes(self, changes: SimulationChanges) -> None:
        self.asset = changes.asset
        self.entity = changes.entity
        self.is_simulation = self.is_simulation or changes.is_simulation
        self.connection = changes.connection
        self.connection_status.update(changes.connection_status)
        self._bulk_count = changes.bulk_count

        for child_id, entry in self.connection_status.items():
            if entry.status is ConnectionStatus.DELETED or (
                entry.is_pair and child_id == entry.original_id
            ):
                self.connections.pop(child_id, None)

        for child_id, snapshot in changes.connections.items():
            if snapshot is None:
                continue
            if child_id in self.connections and not _is_introduced(
                self.connection_status.get(child_id), child_id,
            ):
                continue
            self.connections[child_id] = self._build_child(
                _snapshot_record(snapshot), snapshot, is_simulation=True,
            )

    def to_record(self) -> Dict[str, Any]:
        """Plain record of the current view, bulk count folded into ``connection``."""
        connection = self.connection or ConnectionInfo()
        if self._bulk_count is not None:
            connection = connection.model_copy(update={"bulk_count": self._bulk_count})
        return {
            "asset": self.asset,
            "entity": self.entity,
            "connection": connection,
            "connections": {
                child_id: child.to_record() for child_id, child in self.connections.items()
            },
        }

    # -------------------------------------------------------------------------
    # Observers
    # -------------------------------------------------------------------------

    def subscribe(self, event: TreeEvent, callback: Listener) -> Callable[[], None]:
        """Register ``callback`` for ``event``.

        The callback receives the node the edit happened on.

        Returns:
            A function that removes the subscription again.
        """
        self._listeners[TreeEvent(event)].append(callback)
        return lambda: self.unsubscribe(event, callback)

    def unsubscribe(self, event: TreeEvent, callback: Listener) -> None:
        listeners = self._listeners[TreeEvent(event)]
        if callback in listeners:
            listeners.remove(callback)

    def _notify(self, event: TreeEvent, origin: CarbonTree) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(origin)
            except Exception as e:
                logger.error("Tree %s callback failed: %s", event.value, e, exc_info=True)

    def _emit_change(self, operation: str) -> None:
        record_edit(operation)
        logger.debug("%s on %s", operation, self.asset.id)
        self._notify(TreeEvent.CHANGE, self)
        ancestor = self.parent
        while ancestor is not None:
            ancestor._notify(TreeEvent.CHILD_CHANGE, self)
            ancestor = ancestor.parent

    # -------------------------------------------------------------------------
    # Edits
    # -------------------------------------------------------------------------

    def add_connection(self, tree: TreeLike) -> CarbonTree:
        """Attach a new child.

        Raises:
            StructuralError: If a connection with the same asset id exists.
        """
        child = self._build_child(tree)
        child_id = child.asset.id
        if child_id in self.connections:
            raise StructuralError(
                "Connection already exists", asset_id=child_id, operation="add_connection",
            )
        self.connections[child_id] = child
        self.connection_status[child_id] = StatusEntry.added()
        self._emit_change("add")
        return child

    def delete_connection(self, tree_id: str) -> None:
        """Remove a child; an added child disappears without a trace.

        Deleting an id this node has never had is a no-op.
        """
        changed: Union[CarbonTree, bool] = False
        if tree_id in self.connection_status:
            changed = self.reset_connection(tree_id, with_event=False)
        if tree_id in self.connections:
            del self.connections[tree_id]
            self.connection_status[tree_id] = StatusEntry.deleted()
            self._emit_change("delete")
        elif changed is not False:
            self._emit_change("delete")

    def reset_connection(self, tree_id: str, with_event: bool = True) -> Union[CarbonTree, bool]:
        """Undo whatever edit is recorded for ``tree_id``.

        Returns:
            ``False`` if the child is unchanged, ``True`` after restoring
            a deleted child, else the tree that was removed.

        Raises:
            StructuralError: If no child with ``tree_id`` is known to this node.
        """
        entry = self.connection_status.get(tree_id)
        if entry is None:
            raise StructuralError(
                f"Cannot reset {tree_id} because it is no connection of this tree",
                asset_id=tree_id,
                operation="reset_connection",
            )
        if entry.is_original:
            return False

        if entry.status is ConnectionStatus.ADDED:
            result: Union[CarbonTree, bool] = self.connections.pop(tree_id)
            if tree_id in self.original_connections:
                self.connection_status[tree_id] = StatusEntry.deleted()
            else:
                del self.connection_status[tree_id]
        elif entry.status is ConnectionStatus.DELETED:
            self.connections[tree_id] = self.original_connections[tree_id]
            self.connection_status[tree_id] = StatusEntry.original()
            result = True
        elif entry.is_pair:
            original_id, other_id = entry.original_id, entry.other_id
            result = self.connections.get(other_id, False)
            if other_id != original_id:
                if other_id in self.original_connections:
                    self.connections[other_id] = self.original_connections[other_id]
                    self.connection_status[other_id] = StatusEntry.original()
                else:
                    self.connections.pop(other_id, None)
                    del self.connection_status[other_id]
            self.connections[original_id] = self.original_connections[original_id]
            self.connection_status[original_id] = StatusEntry.original()
        else:
            raise StructuralError(
                f"Status {entry.status} is unknown", asset_id=tree_id, operation="reset_connection",
            )

        if with_event:
            self._emit_change("reset")
        return result

    def modify_connection(self, old: Union[CarbonTree, str], new_tree: TreeLike) -> CarbonTree:
        """Replace a child with an altered version of it."""
        return self.swap_connection(old, new_tree, ConnectionStatus.MODIFIED)

    def swap_connection(
        self,
        old: Union[CarbonTree, str],
        new_tree: TreeLike,
        status: Union[ConnectionStatus, str] = ConnectionStatus.SWAPPED,
    ) -> CarbonTree:
        """Replace the child ``old`` with ``new_tree``.

        Both ids are tagged with the same pair so either can undo it.
        Replacing a child that was itself added leaves the new one added.

        Raises:
            StructuralError: If ``old`` is in neither the current nor the
                original connections, or ``status`` is not a pair status.
        """
        status = ConnectionStatus(status)
        if status not in PAIR_STATUSES:
            raise StructuralError(
                f"Status {status.value} cannot link two connections", operation="swap_connection",
            )
        old_id = old if isinstance(old, str) else old.asset.id
        if old_id not in self.connections and old_id not in self.original_connections:
            raise StructuralError(
                f"Cannot swap {old_id} because it does not exist in the current tree",
                asset_id=old_id,
                operation="swap_connection",
            )
        new = self._build_child(new_tree)
        new_id = new.asset.id

        for tree_id in (new_id, old_id):
            if tree_id in self.connection_status:
                self.reset_connection(tree_id, with_event=False)
        self.connections.pop(old_id, None)
        self.connections[new_id] = new
        if old_id in self.original_connections:
            entry = StatusEntry.pair(status, old_id, new_id)
            self.connection_status[old_id] = entry
            self.connection_status[new_id] = entry
        else:
            self.connection_status.pop(old_id, None)
            self.connection_status[new_id] = StatusEntry.added()
        self._emit_change("modify" if status is ConnectionStatus.MODIFIED else "swap")
        return new

    def modification(self, tree_id: str) -> Union[str, bool]:
        """Status value of an edited child, or ``False`` if it is unchanged."""
        entry = self.connection_status.get(tree_id)
        if entry is None or entry.is_original:
            return False
        return entry.status.value

    # -------------------------------------------------------------------------
    # Traversal
    # -------------------------------------------------------------------------

    @property
    def connections_list(self) -> List[CarbonTree]:
        return list(self.connections.values())

    @property
    def original_connections_list(self) -> List[CarbonTree]:
        return list(self.original_connections.values())

    def for_each(self, callback: ForEachCallback) -> None:
        """Breadth-first walk over the current view.

        ``callback(node, index, depth, bulk)`` receives the cumulative bulk
        multiplier from the root. Returning ``False`` skips the children of
        that node.
        """
        index = 0
        todo: Deque[Tuple[CarbonTree, int, int, float]] = deque([(self, index, 0, 1)])
        while todo:
            node, i, depth, bulk = todo.popleft()
            if callback(node, i, depth, bulk) is False:
                continue
            for child in node.connections.values():
                index += 1
                todo.append((child, index, depth + 1, child.bulk_count * bulk))

    # -------------------------------------------------------------------------
    # Bulk count
    # -------------------------------------------------------------------------

    @property
    def bulk_count(self) -> float:
        if self._bulk_count is not None:
            return self._bulk_count
        if self.connection is not None and self.connection.bulk_count is not None:
            return self.connection.bulk_count
        logger.debug("No bulk count set for %s", self.entity.id_short)
        return 1

    @bulk_count.setter
    def bulk_count(self, value: Optional[float]) -> None:
        if value is not None and value < 0:
            raise StructuralError(
                f"Bulk count must not be negative, got {value}",
                asset_id=self.asset.id,
                operation="bulk_count",
            )
        self._bulk_count = value
        self._emit_change("bulk_count")

    @property
    def original_bulk_count(self) -> Optional[float]:
        return None if self.connection is None else self.connection.bulk_count

    @property
    def _original_bulk_or_one(self) -> float:
        original = self.original_bulk_count
        return 1 if original is None else original

    @property
    def bulk_count_diff(self) -> float:
        return epsilon_zero(self.bulk_count - self._original_bulk_or_one)

    # -------------------------------------------------------------------------
    # Product CO2eq
    # -------------------------------------------------------------------------

    def _report_mismatch(self, view: str, declared: float, children: float) -> None:
        config = get_config()
        if not config.report_mismatches:
            logger.debug(
                "Product CO2eq mismatch on %s (%s view): declared %s < components %s",
                self.asset.id, view, declared, children,
            )
            return
        names = self.display_names
        label = names[0] if names else self.asset.id
        diagnostic = get_sink().add(
            MISMATCH_MESSAGE,
            details=(
                f"The asset's ({label}) CO2eq is lower than the sum of its "
                f"components CO2eqs. ({1 if view == 'original' else 2})"
            ),
            context={"asset_id": self.asset.id, "view": view,
                     "declared": declared, "components": children},
            dedupe=config.dedupe_mismatches,
        )
        # Already reported
        if diagnostic is None:
            return
        record_mismatch(view)
        logger.warning(
            "Product CO2eq mismatch on %s (%s view): declared %s < components %s",
            self.asset.id, view, declared, children,
        )

    @property
    def original_children_product_co2eq(self) -> Optional[float]:
        return _sum_or_none([
            c._original_bulk_or_one * c.original_product_co2eq
            for c in self.original_connections.values()
        ])

    @property
    def children_product_co2eq(self) -> Optional[float]:
        return _sum_or_none([c.bulk_count * c.product_co2eq for c in self.connections.values()])

    @property
    def children_product_co2eq_diff(self) -> Optional[float]:
        current, original = self.children_product_co2eq, self.original_children_product_co2eq
        if current is None or original is None:
            return None
        return epsilon_zero(current - original)

    @property
    def original_product_co2eq(self) -> float:
        children = self.original_children_product_co2eq
        footprint = self.asset.footprint
        if footprint is None:
            return children or 0
        if children is None:
            return footprint.product_co2eq
        if children > footprint.product_co2eq:
            self._report_mismatch("original", footprint.product_co2eq, children)
            return children
        return footprint.product_co2eq

    @property
    def product_co2eq(self) -> float:
        """Declared figure with the original children's share replaced by the current one."""
        children = self.children_product_co2eq or 0
        footprint = self.asset.footprint
        if footprint is None:
            return children
        original_children = self.original_children_product_co2eq or 0
        if original_children > footprint.product_co2eq:
            self._report_mismatch("current", footprint.product_co2eq, original_children)
            return children - original_children
        return footprint.product_co2eq + children - original_children

    @property
    def product_co2eq_diff(self) -> float:
        return epsilon_zero(self.product_co2eq - self.original_product_co2eq)

    @property
    def original_asset_product_co2eq(self) -> Optional[float]:
        """Share of the declared product figure the asset itself is responsible for."""
        children = self.original_children_product_co2eq
        footprint = self.asset.footprint
        if children is None:
            return None if footprint is None else footprint.product_co2eq
        if footprint is None:
            return None
        return footprint.product_co2eq - children

    @property
    def asset_product_co2eq(self) -> Optional[float]:
        # An asset is never edited in place, only replaced or given other children.
        return self.original_asset_product_co2eq

    @property
    def asset_product_co2eq_diff(self) -> float:
        return 0

    @property
    def fixed_value(self) -> float:
        return self.total_co2eq

    # -------------------------------------------------------------------------
    # Transport CO2eq
    # -------------------------------------------------------------------------

    @property
    def original_children_transport_co2eq(self) -> Optional[float]:
        return _sum_or_none([
            c._original_bulk_or_one * c.original_transport_co2eq
            for c in self.original_connections.values()
        ])

    @property
    def children_transport_co2eq(self) -> Optional[float]:
        return _sum_or_none([c.bulk_count * c.transport_co2eq for c in self.connections.values()])

    @property
    def original_transport_co2eq(self) -> float:
        if self.asset.footprint is None:
            return self.original_children_transport_co2eq or 0
        return self.asset.footprint.transport_co2eq

    @property
    def transport_co2eq(self) -> float:
        if self.asset.footprint is None:
            return 0
        return self.asset.footprint.transport_co2eq

    @property
    def transport_co2eq_diff(self) -> float:
        return epsilon_zero(self.transport_co2eq - self.original_transport_co2eq)

    @property
    def original_asset_transport_co2eq(self) -> float:
        if self.asset.footprint is None:
            return 0
        return self.asset.footprint.transport_co2eq

    @property
    def asset_transport_co2eq(self) -> float:
        return self.original_asset_transport_co2eq

    @property
    def asset_transport_co2eq_diff(self) -> float:
        return 0

    # -------------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------------

    @property
    def total_co2eq(self) -> float:
        return self.product_co2eq + self.transport_co2eq

    @property
    def original_total_co2eq(self) -> float:
        return self.original_product_co2eq + self.original_transport_co2eq

    @property
    def total_co2eq_diff(self) -> float:
        return epsilon_zero(self.total_co2eq - self.original_total_co2eq)

    @property
    def children_total_co2eq(self) -> Optional[float]:
        product, transport = self.children_product_co2eq, self.children_transport_co2eq
        if product is None and transport is None:
            return None
        return (product or 0) + (transport or 0)

    @property
    def original_children_total_co2eq(self) -> Optional[float]:
        product = self.original_children_product_co2eq
        transport = self.original_children_transport_co2eq
        if product is None and transport is None:
            return None
        return (product or 0) + (transport or 0)

    @property
    def children_total_co2eq_diff(self) -> Optional[float]:
        current, original = self.children_total_co2eq, self.original_children_total_co2eq
        if current is None or original is None:
            return None
        return epsilon_zero(current - original)

    # -------------------------------------------------------------------------
    # Component counts
    # -------------------------------------------------------------------------

    @property
    def direct_components_count(self) -> float:
        return sum(c.bulk_count for c in self.connections.values())

    @property
    def original_direct_components_count(self) -> float:
        return sum(c._original_bulk_or_one for c in self.original_connections.values())

    @property
    def direct_components_count_diff(self) -> float:
        return epsilon_zero(self.direct_components_count - self.original_direct_components_count)

    @property
    def all_components_count(self) -> float:
        """Bulk-weighted number of nodes below this one."""
        return _component_count(self) - 1

    @property
    def original_all_components_count(self) -> float:
        return _original_component_count(self) - 1

    @property
    def all_components_count_diff(self) -> float:
        return epsilon_zero(self.all_components_count - self.original_all_components_count)

    # -------------------------------------------------------------------------
    # Life cycle phases
    # -------------------------------------------------------------------------

    @property
    def covered_life_cycle_phases(self) -> LifeCyclePhases:
        if self.asset.footprint is None:
            return LifeCyclePhases.empty()
        return self.asset.footprint.covered_life_cycle_phases

    @property
    def by_children_covered_life_cycle_phases(self) -> LifeCyclePhases:
        """Phases covered by any current descendant."""
        phases: List[LifeCyclePhases] = []
        todo = deque(self.connections.values())
        while todo:
            node = todo.popleft()
            phases.append(node.covered_life_cycle_phases)
            todo.extend(node.connections.values())
        return LifeCyclePhases.merged(*phases)

    @property
    def original_by_children_covered_life_cycle_phases(self) -> LifeCyclePhases:
        phases: List[LifeCyclePhases] = []
        todo = deque(self.original_connections.values())
        while todo:
            node = todo.popleft()
            phases.append(node.covered_life_cycle_phases)
            todo.extend(node.original_connections.values())
        return LifeCyclePhases.merged(*phases)

    @property
    def by_children_covered_life_cycle_phases_diff(self) -> ChildrenPhaseDiff:
        diff = self.by_children_covered_life_cycle_phases.diff(
            self.original_by_children_covered_life_cycle_phases
        )
        return ChildrenPhaseDiff(
            only_this=diff.only_this,
            only_other=diff.only_other,
            both=diff.both,
            only_original=diff.only_other,
            only_current=diff.only_this,
        )

    # -------------------------------------------------------------------------
    # Naming
    # -------------------------------------------------------------------------

    @property
    def name(self) -> Optional[str]:
        return self.asset.display_name or self.asset.id_short or self.entity.display_name

    @property
    def description(self) -> Optional[str]:
        return self.entity.description or self.asset.description

    @property
    def id_short(self) -> str:
        return self.entity.id_short

    @property
    def display_names(self) -> List[str]:
        return list(dict.fromkeys(n for n in (self.entity.display_name, self.asset.display_name) if n))

    @property
    def descriptions(self) -> List[str]:
        return list(dict.fromkeys(d for d in (self.entity.description, self.asset.description) if d))

    @property
    def id_shorts(self) -> Tuple[str, Optional[str]]:
        return self.entity.id_short, self.asset.id_short

    def _require_parent(self) -> CarbonTree:
        if self.parent is None:
            raise StructuralError(
                "Tree has no parent to check its connection against",
                asset_id=self.asset.id,
            )
        return self.parent

    @property
    def is_original_connection(self) -> bool:
        return self.asset.id in self._require_parent().original_connections

    @property
    def is_current_connection(self) -> bool:
        return self._require_parent().connections.get(self.asset.id) is self

    @property
    def is_swapped_out(self) -> bool:
        entry = self._require_parent().connection_status.get(self.asset.id)
        return entry is not None and entry.is_pair and entry.original_id == self.asset.id

    @property
    def is_swapped_in(self) -> bool:
        entry = self._require_parent().connection_status.get(self.asset.id)
        return entry is not None and entry.is_pair and entry.other_id == self.asset.id

    # -------------------------------------------------------------------------
    # Changes
    # -------------------------------------------------------------------------

    @property
    def has_changes(self) -> bool:
        return (
            self.bulk_count_diff != 0
            or any(not entry.is_original for entry in self.connection_status.values())
            or any(c.has_changes for c in self.connections.values())
        )

    def serialize_changes(self, force_inclusion: bool = False) -> Optional[SimulationChanges]:
        """Snapshot of the edits in this subtree, ``None`` if there are none."""
        return self._serialize(force_inclusion, full=False)

    def _serialize(self, force: bool, full: bool) -> Optional[SimulationChanges]:
        if not (full or force or self.has_changes):
            return None
        connections: Dict[str, Optional[SimulationChanges]] = {}
        for child_id, child in self.connections.items():
            entry = self.connection_status.get(child_id)
            child_force = entry is not None and entry.status not in (
                ConnectionStatus.ORIGINAL, ConnectionStatus.DELETED,
            )
            connections[child_id] = child._serialize(
                child_force, full or _is_introduced(entry, child_id),
            )
        return SimulationChanges(
            asset=self.asset,
            entity=self.entity,
            is_simulation=self.is_simulation,
            connection=self.connection,
            connections=connections,
            connection_status=dict(self.connection_status),
            bulk_count=self._bulk_count,
            original_connections=None if not full else {
                child_id: child._original_snapshot()
                for child_id, child in self.original_connections.items()
            },
        )

    def _original_snapshot(self) -> SimulationChanges:
        return SimulationChanges(
            asset=self.asset,
            entity=self.entity,
            is_simulation=self.is_simulation,
            connection=self.connection,
            connections={
                child_id: child._original_snapshot()
                for child_id, child in self.original_connections.items()
            },
        )

    def stringify_changes(self) -> str:
        """Token for :meth:`replay`; empty string if nothing changed."""
        return codec.encode_changes(self.serialize_changes())

    @staticmethod
    def parse_changes(token: str) -> Optional[SimulationChanges]:
        """Decode a token from :meth:`stringify_changes`.

        Raises:
            CorruptedToken: If the token cannot be decoded.
        """
        return codec.decode_changes(token)

    def __repr__(self) -> str:
        return (
            f"CarbonTree(id={self.asset.id!r}, name={self.name!r}, "
            f"connections={len(self.connections)})"
        )


__all__ = [
    "TreeEvent",
    "ChildrenPhaseDiff",
    "CarbonTree",
    "MISMATCH_MESSAGE",
]
