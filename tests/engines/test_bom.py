"""
Tests for the BOM explosion engine.

Covers:
- Single-level and multi-level explosion
- Summing of raw materials reached through several paths
- Raw-material roots, invalid unit counts
- Cycle detection (direct, indirect, self-reference)
- Incomplete BOMs
- Cost roll-up including labour
"""

from decimal import Decimal

import pytest

from erp_engines.bom import BomGraph, BomLineSpec, BomNode
from erp_kernel.exceptions import CyclicBOMError, IncompleteBOMError


def raw(item_id: str, cost: str = "0") -> BomNode:
    return BomNode(item_id, is_manufactured=False, unit_cost=Decimal(cost))


def made(item_id: str, lines: list[tuple[str, str]] | None, labor: str = "0") -> BomNode:
    specs = None
    if lines is not None:
        specs = tuple(BomLineSpec(component, Decimal(qty)) for component, qty in lines)
    return BomNode(item_id, is_manufactured=True, lines=specs, manual_labor_cost=Decimal(labor))


class TestExplode:

    def test_single_level(self):
        graph = BomGraph([raw("R"), made("P", [("R", "2")])])
        assert graph.explode("P", Decimal("3")) == {"R": Decimal("6")}

    def test_multi_level_multiplies(self):
        graph = BomGraph([
            raw("SCREW"),
            raw("PLANK"),
            made("LEG", [("PLANK", "1"), ("SCREW", "4")]),
            made("TABLE", [("LEG", "4"), ("PLANK", "3")]),
        ])
        assert graph.explode("TABLE", Decimal("2")) == {
            "PLANK": Decimal("14"),
            "SCREW": Decimal("32"),
        }

    def test_shared_component_summed(self):
        graph = BomGraph([
            raw("R"),
            made("A", [("R", "1")]),
            made("B", [("R", "2")]),
            made("TOP", [("A", "1"), ("B", "1")]),
        ])
        assert graph.explode("TOP", Decimal("1")) == {"R": Decimal("3")}

    def test_order_follows_bom_lines(self):
        graph = BomGraph([
            raw("X"), raw("Y"), raw("Z"),
            made("SUB", [("Z", "1"), ("X", "1")]),
            made("TOP", [("Y", "1"), ("SUB", "1")]),
        ])
        assert list(graph.explode("TOP", Decimal("1"))) == ["Y", "Z", "X"]

    def test_raw_root_explodes_to_itself(self):
        graph = BomGraph([raw("R")])
        assert graph.explode("R", Decimal("5")) == {"R": Decimal("5")}

    def test_fractional_quantities(self):
        graph = BomGraph([raw("PAINT"), made("P", [("PAINT", "0.125")])])
        assert graph.explode("P", Decimal("3")) == {"PAINT": Decimal("0.375")}

    @pytest.mark.parametrize("units", [Decimal("0"), Decimal("-1")])
    def test_units_must_be_positive(self, units):
        graph = BomGraph([raw("R"), made("P", [("R", "2")])])
        with pytest.raises(ValueError):
            graph.explode("P", units)

    def test_missing_bom_is_incomplete(self):
        graph = BomGraph([raw("R"), made("SUB", None), made("TOP", [("SUB", "1"), ("R", "1")])])
        with pytest.raises(IncompleteBOMError) as exc_info:
            graph.explode("TOP", Decimal("1"))
        assert exc_info.value.item_id == "SUB"
        assert exc_info.value.parent_item_id == "TOP"

    def test_unknown_component_is_incomplete(self):
        graph = BomGraph([made("TOP", [("GHOST", "1")])])
        with pytest.raises(IncompleteBOMError):
            graph.explode("TOP", Decimal("1"))


class TestCycles:

    def test_acyclic_graph(self):
        graph = BomGraph([raw("R"), made("P", [("R", "2")])])
        assert graph.find_cycle("P") is None

    def test_indirect_cycle_path(self):
        graph = BomGraph([
            made("A", [("B", "1")]),
            made("B", [("C", "1")]),
            made("C", [("A", "1")]),
        ])
        assert graph.find_cycle("A") == ["A", "B", "C", "A"]

    def test_self_reference(self):
        graph = BomGraph([made("A", [("A", "1")])])
        assert graph.find_cycle("A") == ["A", "A"]

    def test_cycle_below_root(self):
        graph = BomGraph([
            raw("R"),
            made("TOP", [("R", "1"), ("X", "1")]),
            made("X", [("Y", "1")]),
            made("Y", [("X", "1")]),
        ])
        assert graph.find_cycle("TOP") == ["X", "Y", "X"]

    def test_diamond_is_not_a_cycle(self):
        graph = BomGraph([
            raw("R"),
            made("L", [("R", "1")]),
            made("M", [("R", "1")]),
            made("TOP", [("L", "1"), ("M", "1")]),
        ])
        assert graph.find_cycle("TOP") is None

    def test_explode_raises_on_cycle(self):
        graph = BomGraph([made("A", [("B", "1")]), made("B", [("A", "1")])])
        with pytest.raises(CyclicBOMError) as exc_info:
            graph.explode("A", Decimal("1"))
        assert exc_info.value.path == ["A", "B", "A"]

    def test_deep_chain_does_not_recurse(self):
        depth = 3000
        nodes = [raw("R0")]
        for level in range(1, depth):
            nodes.append(made(f"M{level}", [(f"M{level - 1}" if level > 1 else "R0", "1")]))
        graph = BomGraph(nodes)
        assert graph.find_cycle(f"M{depth - 1}") is None
        assert graph.explode(f"M{depth - 1}", Decimal("1")) == {"R0": Decimal("1")}


class TestRollUpCost:

    def test_raw_cost(self):
        assert BomGraph([raw("R", "2.50")]).roll_up_cost("R") == Decimal("2.50")

    def test_labor_and_nested(self):
        graph = BomGraph([
            raw("SCREW", "0.10"),
            raw("PLANK", "5"),
            made("LEG", [("PLANK", "1"), ("SCREW", "4")], labor="1"),
            made("TABLE", [("LEG", "4"), ("PLANK", "3")], labor="15"),
        ])
        # LEG = 5 + 0.40 + 1 = 6.40; TABLE = 4 * 6.40 + 15 + 15 = 55.60
        assert graph.roll_up_cost("LEG") == Decimal("6.40")
        assert graph.roll_up_cost("TABLE") == Decimal("55.60")

    def test_cycle_rejected(self):
        graph = BomGraph([made("A", [("B", "1")]), made("B", [("A", "1")])])
        with pytest.raises(CyclicBOMError):
            graph.roll_up_cost("A")


class TestValueObjects:

    def test_line_quantity_must_be_positive(self):
        with pytest.raises(ValueError):
            BomLineSpec("R", Decimal("0"))

    def test_negative_labor_rejected(self):
        with pytest.raises(ValueError):
            BomNode("P", is_manufactured=True, lines=(), manual_labor_cost=Decimal("-1"))
