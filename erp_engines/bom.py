"""
Bill-of-Material Explosion Engine.

Pure functions with deterministic behavior. No I/O.

Resolves a manufactured item's component tree into a flat map of raw
material requirements, and rolls up the unit cost of a manufactured item.
Callers build a ``BomGraph`` once per operation from whatever storage
they use; the graph itself never touches a database.

Traversal uses an explicit stack, so arbitrarily deep BOM trees do not
hit the interpreter recursion limit.  Every traversal first proves the
reachable subgraph acyclic; a cycle raises ``CyclicBOMError`` before any
requirement is computed.

Usage:
    from erp_engines.bom import BomGraph, BomLineSpec, BomNode

    graph = BomGraph([
        BomNode(item_id=r, is_manufactured=False, unit_cost=Decimal("2")),
        BomNode(
            item_id=p,
            is_manufactured=True,
            lines=(BomLineSpec(r, Decimal("2")),),
        ),
    ])
    graph.explode(p, Decimal("3"))   # {r: Decimal("6")}
    graph.roll_up_cost(p)            # Decimal("4")
"""

from collections.abc import Hashable, Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal

from erp_engines.tracer import traced_engine
from erp_kernel.exceptions import CyclicBOMError, IncompleteBOMError

ItemKey = Hashable


# ============================================================================
# Value Objects
# ============================================================================


@dataclass(frozen=True)
class BomLineSpec:
    """One component of a BOM: quantity needed per unit of the parent."""

    component_item_id: ItemKey
    quantity_per_unit: Decimal

    def __post_init__(self) -> None:
        if self.quantity_per_unit <= 0:
            raise ValueError(
                f"quantity_per_unit must be positive, got {self.quantity_per_unit}"
            )


@dataclass(frozen=True)
class BomNode:
    """
    An item as seen by the explosion engine.

    ``lines`` is None for a manufactured item without an active BOM, and
    ignored for raw materials.
    """

    item_id: ItemKey
    is_manufactured: bool
    unit_cost: Decimal = Decimal("0")
    lines: tuple[BomLineSpec, ...] | None = None
    manual_labor_cost: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if self.manual_labor_cost < 0:
            raise ValueError("manual_labor_cost cannot be negative")


# ============================================================================
# Graph
# ============================================================================


class BomGraph:
    """In-memory directed component graph, built once per operation."""

    def __init__(self, nodes: Iterable[BomNode] | Mapping[ItemKey, BomNode]):
        if isinstance(nodes, Mapping):
            self._nodes: dict[ItemKey, BomNode] = dict(nodes)
        else:
            self._nodes = {node.item_id: node for node in nodes}

    def __contains__(self, item_id: ItemKey) -> bool:
        return item_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def item_ids(self) -> frozenset[ItemKey]:
        """Every item loaded into the graph."""
        return frozenset(self._nodes)

    def node(self, item_id: ItemKey, parent_id: ItemKey | None = None) -> BomNode:
        """
        Look up a node.

        Raises:
            IncompleteBOMError: the item is not part of the graph.
        """
        try:
            return self._nodes[item_id]
        except KeyError:
            raise IncompleteBOMError(str(item_id), parent_id) from None

    def _child_ids(self, item_id: ItemKey) -> list[ItemKey]:
        node = self._nodes.get(item_id)
        if node is None or not node.is_manufactured or node.lines is None:
            return []
        return [line.component_item_id for line in node.lines]

    def find_cycle(self, start: ItemKey) -> list[ItemKey] | None:
        """
        Depth-first search for a cycle reachable from ``start``.

        Returns:
            The cycle as a path whose first and last element are the same
            item (e.g. ``[A, B, A]``), or None if the subgraph is acyclic.
        """
        path: list[ItemKey] = [start]
        on_path: set[ItemKey] = {start}
        finished: set[ItemKey] = set()
        stack = [(start, iter(self._child_ids(start)))]

        while stack:
            current, children = stack[-1]
            for child in children:
                if child in on_path:
                    return path[path.index(child):] + [child]
                if child not in finished:
                    path.append(child)
                    on_path.add(child)
                    stack.append((child, iter(self._child_ids(child))))
                    break
            else:
                stack.pop()
                path.pop()
                on_path.discard(current)
                finished.add(current)

        return None

    def assert_acyclic(self, start: ItemKey) -> None:
        """Raise CyclicBOMError if a cycle is reachable from ``start``."""
        cycle = self.find_cycle(start)
        if cycle is not None:
            raise CyclicBOMError([str(item) for item in cycle])

    @traced_engine("bom_explosion", "1.0", fingerprint_fields=("item_id", "units_required"))
    def explode(
        self,
        item_id: ItemKey,
        units_required: Decimal,
    ) -> dict[ItemKey, Decimal]:
        """
        Flatten the component tree into ``{raw item: total quantity}``.

        Manufactured sub-assemblies multiply the running multiplier by
        their quantity_per_unit.  Raw materials reached through several
        paths have their contributions summed.  Keys appear in the order
        they are first reached, following BOM line order.

        A raw-material root explodes to itself.

        Raises:
            ValueError: units_required is not positive.
            CyclicBOMError: the reachable graph contains a cycle.
            IncompleteBOMError: a manufactured item has no active BOM.
        """
        if units_required <= 0:
            raise ValueError(f"units_required must be positive, got {units_required}")

        self.node(item_id)
        self.assert_acyclic(item_id)

        requirements: dict[ItemKey, Decimal] = {}
        stack: list[tuple[ItemKey, Decimal, ItemKey | None]] = [
            (item_id, units_required, None)
        ]
        while stack:
            current_id, multiplier, parent_id = stack.pop()
            node = self.node(current_id, parent_id)
            if not node.is_manufactured:
                requirements[current_id] = (
                    requirements.get(current_id, Decimal("0")) + multiplier
                )
                continue
            if node.lines is None:
                raise IncompleteBOMError(str(current_id), parent_id)
            for line in reversed(node.lines):
                stack.append(
                    (
                        line.component_item_id,
                        multiplier * line.quantity_per_unit,
                        current_id,
                    )
                )

        return requirements

    @traced_engine("bom_cost_rollup", "1.0")
    def roll_up_cost(self, item_id: ItemKey) -> Decimal:
        """
        Unit cost of an item.

        Raw materials cost their ``unit_cost``; a manufactured item costs
        the sum of its components' rolled-up cost times quantity_per_unit,
        plus its manual labour cost.  Unrounded.

        Raises:
            CyclicBOMError: the reachable graph contains a cycle.
            IncompleteBOMError: a manufactured item has no active BOM.
        """
        self.node(item_id)
        self.assert_acyclic(item_id)

        costs: dict[ItemKey, Decimal] = {}
        stack: list[tuple[ItemKey, bool, ItemKey | None]] = [(item_id, False, None)]
        while stack:
            current_id, expanded, parent_id = stack.pop()
            if current_id in costs:
                continue
            node = self.node(current_id, parent_id)
            if not node.is_manufactured:
                costs[current_id] = node.unit_cost
                continue
            if node.lines is None:
                raise IncompleteBOMError(str(current_id), parent_id)
            if expanded:
                costs[current_id] = sum(
                    (
                        costs[line.component_item_id] * line.quantity_per_unit
                        for line in node.lines
                    ),
                    Decimal("0"),
                ) + node.manual_labor_cost
                continue
            stack.append((current_id, True, parent_id))
            for line in node.lines:
                if line.component_item_id not in costs:
                    stack.append((line.component_item_id, False, current_id))

        return costs[item_id]
