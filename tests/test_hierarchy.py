"""Tests for the pure tree helpers (no database)."""

from types import SimpleNamespace

import pytest

from taxonomy.core.exceptions import InvalidIdentifierError
from taxonomy.services.hierarchy import (
    ID_PATTERN,
    NodePosition,
    build_tree,
    compute_position,
    find_parent_cycles,
    generate_category_id,
    is_descendant_path,
    level_of,
    path_segments,
    rebase_path,
    validate_identifier,
    would_create_cycle,
)


def node(category_id, parent_id=None, level=1, sort_order=0, path=None, name=None):
    return SimpleNamespace(
        category_id=category_id,
        name=name or category_id,
        parent_id=parent_id,
        description=None,
        sort_order=sort_order,
        level=level,
        path=path or f"/{category_id}",
        material_count=0,
        status="enabled",
    )


class TestComputePosition:

    def test_root(self):
        position = compute_position("Gemstones")
        assert position == NodePosition(level=1, path="/Gemstones")

    def test_child_of_root(self):
        parent = NodePosition(level=1, path="/Gemstones")
        assert compute_position("Agate", parent) == NodePosition(level=2, path="/Gemstones/Agate")

    def test_deep_child_level_matches_segments(self):
        parent = NodePosition(level=3, path="/A/B/C")
        position = compute_position("D", parent)
        assert position.level == 4
        assert position.level == level_of(position.path)

    def test_position_rejects_bad_values(self):
        with pytest.raises(ValueError):
            NodePosition(level=0, path="/A")
        with pytest.raises(ValueError):
            NodePosition(level=1, path="A")


class TestIdentifiers:

    @pytest.mark.parametrize("value", ["C1718000000000X7Q", "Gemstones", "red_agate", "a-1"])
    def test_valid(self, value):
        assert validate_identifier(value) == value

    @pytest.mark.parametrize("value", ["", "a/b", "with space", "x" * 65, "é"])
    def test_invalid(self, value):
        with pytest.raises(InvalidIdentifierError):
            validate_identifier(value)

    def test_generated_ids_are_valid_and_prefixed(self):
        generated = generate_category_id("C")
        assert generated.startswith("C")
        assert ID_PATTERN.match(generated)
        assert len(generated) == 1 + 13 + 3


class TestCycleGuard:

    def test_self_is_cycle(self):
        assert would_create_cycle("Gemstones", "/Gemstones", "/Gemstones")

    def test_direct_child_is_cycle(self):
        assert would_create_cycle("Gemstones", "/Gemstones", "/Gemstones/Agate")

    def test_deep_descendant_is_cycle(self):
        assert would_create_cycle("Gemstones", "/Gemstones", "/Gemstones/Agate/RedAgate")

    def test_unrelated_parent_is_not_cycle(self):
        assert not would_create_cycle("Agate", "/Gemstones/Agate", "/Crystals")

    def test_ancestor_is_not_cycle(self):
        assert not would_create_cycle("RedAgate", "/Gemstones/Agate/RedAgate", "/Gemstones")

    def test_id_prefix_is_not_confused(self):
        # C1 is not an ancestor of C10
        assert not would_create_cycle("C1", "/C1", "/C10")
        assert not would_create_cycle("C1", "/C1", "/C10/C11")


class TestPathHelpers:

    def test_segments(self):
        assert path_segments("/A/B/C") == ["A", "B", "C"]
        assert path_segments("/A") == ["A"]

    def test_is_descendant_path_is_strict(self):
        assert is_descendant_path("/A/B", "/A")
        assert not is_descendant_path("/A", "/A")
        assert not is_descendant_path("/AB", "/A")

    def test_rebase_preserves_suffix(self):
        assert rebase_path("/Gemstones/Agate/RedAgate", "/Gemstones/Agate", "/Crystals/Agate") == (
            "/Crystals/Agate/RedAgate"
        )

    def test_rebase_rejects_non_descendant(self):
        with pytest.raises(ValueError):
            rebase_path("/Crystals", "/Gemstones", "/X")


class TestBuildTree:

    def test_nests_children_under_parents(self):
        nodes = [
            node("A"),
            node("B", parent_id="A", level=2, path="/A/B"),
            node("C", parent_id="B", level=3, path="/A/B/C"),
        ]
        assembly = build_tree(nodes)

        assert [n["category_id"] for n in assembly.roots] == ["A"]
        b = assembly.roots[0]["children"][0]
        assert b["category_id"] == "B"
        assert b["children"][0]["category_id"] == "C"
        assert assembly.orphans == []

    def test_siblings_follow_sort_order(self):
        nodes = [
            node("R"),
            node("Z", parent_id="R", level=2, sort_order=1, path="/R/Z"),
            node("Y", parent_id="R", level=2, sort_order=3, path="/R/Y"),
            node("X", parent_id="R", level=2, sort_order=2, path="/R/X"),
        ]
        children = build_tree(nodes).roots[0]["children"]
        assert [c["category_id"] for c in children] == ["Z", "X", "Y"]

    def test_multiple_roots_ordered(self):
        nodes = [node("B", sort_order=2), node("A", sort_order=1)]
        assert [r["category_id"] for r in build_tree(nodes).roots] == ["A", "B"]

    def test_orphans_are_reported_with_their_subtree(self):
        nodes = [
            node("A"),
            node("Lost", parent_id="Missing", level=2, path="/Missing/Lost"),
            node("Kid", parent_id="Lost", level=3, path="/Missing/Lost/Kid"),
        ]
        assembly = build_tree(nodes)

        assert [r["category_id"] for r in assembly.roots] == ["A"]
        assert assembly.orphan_ids == ["Lost"]
        assert assembly.orphans[0]["children"][0]["category_id"] == "Kid"

    def test_self_parent_is_orphan(self):
        assembly = build_tree([node("Loop", parent_id="Loop", level=2, path="/Loop/Loop")])
        assert assembly.roots == []
        assert assembly.orphan_ids == ["Loop"]

    def test_empty_input(self):
        assembly = build_tree([])
        assert assembly.roots == []
        assert assembly.orphans == []

    def test_parent_cycle_is_reported_not_lost(self):
        nodes = [
            node("R"),
            node("A", parent_id="B", level=2, path="/B/A"),
            node("B", parent_id="A", level=2, path="/A/B", sort_order=1),
        ]
        assembly = build_tree(nodes)

        assert [r["category_id"] for r in assembly.roots] == ["R"]
        assert sorted(assembly.orphan_ids) == ["A", "B"]
        assert sorted(assembly.cycle_ids) == ["A", "B"]
        assert all(o["children"] == [] for o in assembly.orphans)

    def test_subtree_hanging_off_a_cycle_stays_attached(self):
        nodes = [
            node("A", parent_id="B", level=2, path="/B/A"),
            node("B", parent_id="A", level=2, path="/A/B", sort_order=1),
            node("C", parent_id="A", level=3, path="/B/A/C"),
        ]
        assembly = build_tree(nodes)

        assert assembly.cycle_ids == ["A", "B"]
        a = next(o for o in assembly.orphans if o["category_id"] == "A")
        assert [c["category_id"] for c in a["children"]] == ["C"]


class TestFindParentCycles:

    def test_no_cycles(self):
        assert find_parent_cycles({"A": None, "B": "A", "C": "B", "D": "Missing"}) == set()

    def test_two_node_cycle(self):
        assert find_parent_cycles({"A": "B", "B": "A", "R": None}) == {"A", "B"}

    def test_self_loop(self):
        assert find_parent_cycles({"A": "A"}) == {"A"}

    def test_tail_leading_into_cycle_is_not_on_it(self):
        parents = {"T": "A", "A": "B", "B": "C", "C": "A"}
        assert find_parent_cycles(parents) == {"A", "B", "C"}
