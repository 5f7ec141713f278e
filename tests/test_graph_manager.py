"""Tests for graph store operations and the invariants they keep."""

from __future__ import annotations

import json
import random
from pathlib import Path

import pytest

from forcegraph_backend.graph_manager import GraphManager
from forcegraph_core.errors import (
    DanglingLinkError,
    DuplicateIdError,
    EmptyIdError,
    InvalidAttributeError,
    LinkNotFoundError,
    MalformedJSONError,
    NodeNotFoundError,
    NotFoundError,
)

from .conftest import graph_text


def _ids(manager: GraphManager) -> list[str]:
    return [n.id for n in manager.state.nodes]


def _pairs(manager: GraphManager) -> set[frozenset]:
    return {l.key for l in manager.state.links}


# --- Nodes ---

def test_add_node_creates_free_node_in_spawn_cube() -> None:
    manager = GraphManager(spawn_range=50, rng=random.Random(3))
    result = manager.add_node("A", 4)

    node = result.node
    assert result.requires_resimulation
    assert node.id == "A"
    assert node.group == 4
    assert node.color == "#1A75FF"
    assert node.text_size == 6
    assert not node.is_pinned
    assert all(-50 <= c <= 50 for c in node.position())


def test_add_node_trims_id(manager: GraphManager) -> None:
    manager.add_node("  A  ")
    assert _ids(manager) == ["A"]


def test_duplicate_id_rejected_and_count_unchanged(manager: GraphManager) -> None:
    manager.add_node("A")
    with pytest.raises(DuplicateIdError):
        manager.add_node("A")
    with pytest.raises(DuplicateIdError):
        manager.add_node(" A ")
    assert _ids(manager) == ["A"]


@pytest.mark.parametrize("node_id", ["", "   ", None])
def test_blank_id_rejected(manager: GraphManager, node_id) -> None:
    with pytest.raises(EmptyIdError):
        manager.add_node(node_id)
    assert manager.state.nodes == []


def test_ids_stay_unique_over_many_adds(manager: GraphManager) -> None:
    rng = random.Random(11)
    for _ in range(200):
        try:
            manager.add_node(rng.choice("ABCDEFGHIJ"))
        except DuplicateIdError:
            pass
    ids = _ids(manager)
    assert len(ids) == len(set(ids)) == 10


def test_delete_node_cascades_to_links(triangle: GraphManager) -> None:
    result = triangle.delete_node("B")

    assert result.requires_resimulation
    assert _ids(triangle) == ["A", "C"]
    assert triangle.state.links == []
    assert triangle.links_for_node("A") == []
    assert triangle.get_link(("A", "B")) is None


def test_no_link_touches_deleted_node(manager: GraphManager) -> None:
    rng = random.Random(5)
    ids = [str(i) for i in range(12)]
    for node_id in ids:
        manager.add_node(node_id)
    for _ in range(40):
        manager.add_link(rng.choice(ids), rng.choice(ids))

    for doomed in ("3", "7", "0"):
        manager.delete_node(doomed)
        remaining = set(_ids(manager))
        for link in manager.state.links:
            assert doomed not in (link.source_id, link.target_id)
            assert {link.source_id, link.target_id} <= remaining


def test_delete_missing_node_raises_and_keeps_counts(triangle: GraphManager) -> None:
    with pytest.raises(NotFoundError):
        triangle.delete_node("Z")
    assert len(triangle.state.nodes) == 3
    assert len(triangle.state.links) == 2


def test_delete_clears_selection_of_deleted_node(triangle: GraphManager) -> None:
    triangle.select_node("B")
    triangle.delete_node("B")
    assert triangle.selection.node_id is None


def test_delete_clears_selection_of_cascaded_link(triangle: GraphManager) -> None:
    triangle.select_link(("C", "B"))
    triangle.delete_node("C")
    assert triangle.selection.link is None


# --- Links ---

def test_add_link_both_directions_keeps_one(manager: GraphManager) -> None:
    manager.add_node("a")
    manager.add_node("b")

    first = manager.add_link("a", "b")
    second = manager.add_link("b", "a")

    assert first.link is not None and first.requires_resimulation
    assert second.link is None and not second.requires_resimulation
    assert _pairs(manager) == {frozenset({"a", "b"})}


def test_add_link_resolves_to_node_objects(manager: GraphManager) -> None:
    a = manager.add_node("a").node
    b = manager.add_node("b").node
    link = manager.add_link("a", "b", value=2).link
    assert link.source is a
    assert link.target is b
    assert link.value == 2
    assert link.color == "#F0F0F0"
    assert link.thickness == 1


def test_add_link_trims_ids_like_add_node(manager: GraphManager) -> None:
    manager.add_node(" A")
    manager.add_node("B ")
    link = manager.add_link(" A", "B ").link
    assert link is not None
    assert link.key == frozenset({"A", "B"})


@pytest.mark.parametrize(
    "source,target",
    [("a", "a"), ("a", " a "), ("", "a"), ("a", "  "), ("a", "missing"), ("missing", "a")],
)
def test_add_link_no_op_cases(manager: GraphManager, source: str, target: str) -> None:
    manager.add_node("a")
    result = manager.add_link(source, target)
    assert result.link is None
    assert not result.requires_resimulation
    assert manager.state.links == []


def test_links_for_node(triangle: GraphManager) -> None:
    keys = {l.key for l in triangle.links_for_node("B")}
    assert keys == {frozenset({"A", "B"}), frozenset({"B", "C"})}


# --- Attributes ---

def test_update_node_attributes(triangle: GraphManager) -> None:
    node = triangle.get_node("A")
    before = node.position()

    result = triangle.set_node_color("A", "#FF00FF")
    triangle.set_node_text_size("A", 12)

    assert not result.requires_resimulation
    assert node.color == "#FF00FF"
    assert node.text_size == 12
    assert node.position() == before
    assert triangle.get_node("B").color == "#1A75FF"


def test_update_node_attribute_by_wire_name(triangle: GraphManager) -> None:
    triangle.update_node_attribute("A", "textSize", 9)
    assert triangle.get_node("A").text_size == 9


def test_update_missing_node_raises(triangle: GraphManager) -> None:
    with pytest.raises(NodeNotFoundError):
        triangle.set_node_color("Z", "#FFFFFF")


@pytest.mark.parametrize(
    "field,value",
    [("color", ""), ("color", 3), ("text_size", 0), ("text_size", -2), ("text_size", True), ("id", "B")],
)
def test_invalid_node_attribute_rejected(triangle: GraphManager, field: str, value) -> None:
    with pytest.raises(InvalidAttributeError):
        triangle.update_node_attribute("A", field, value)
    node = triangle.get_node("A")
    assert node.color == "#1A75FF"
    assert node.text_size == 6


def test_update_several_node_attributes_is_all_or_nothing(triangle: GraphManager) -> None:
    with pytest.raises(InvalidAttributeError):
        triangle.update_node_attributes("A", color="#00FF00", textSize=-1)
    assert triangle.get_node("A").color == "#1A75FF"

    triangle.update_node_attributes("A", color="#00FF00", text_size=10)
    assert (triangle.get_node("A").color, triangle.get_node("A").text_size) == ("#00FF00", 10)


def test_update_several_link_attributes_is_all_or_nothing(triangle: GraphManager) -> None:
    with pytest.raises(InvalidAttributeError):
        triangle.update_link_attributes(("B", "C"), color="#00FF00", thickness=0)
    link = triangle.get_link(("B", "C"))
    assert (link.color, link.thickness) == ("#FF0000", 3)


def test_update_link_matches_either_order(triangle: GraphManager) -> None:
    triangle.set_link_color(("B", "A"), "#ABCDEF")
    triangle.set_link_thickness(frozenset({"A", "B"}), 5)
    link = triangle.get_link(("A", "B"))
    assert link.color == "#ABCDEF"
    assert link.thickness == 5


def test_update_link_after_reimport(triangle: GraphManager) -> None:
    """Links re-created by an import are found by endpoint ids."""
    triangle.load_graph(triangle.save_graph())
    triangle.set_link_color(("C", "B"), "#000001")
    assert triangle.get_link(("B", "C")).color == "#000001"


def test_update_missing_link_raises(triangle: GraphManager) -> None:
    with pytest.raises(LinkNotFoundError):
        triangle.set_link_color(("A", "C"), "#FFFFFF")
    with pytest.raises(InvalidAttributeError):
        triangle.update_link_attribute(("A", "B"), "value", 3)


# --- Coordinates ---

def test_coordinate_update_moves_free_node(triangle: GraphManager) -> None:
    result = triangle.apply_coordinate_update("A", 1, 2, 3)
    node = triangle.get_node("A")
    assert node.position() == (1, 2, 3)
    assert not node.is_pinned
    assert not result.requires_resimulation


def test_coordinate_update_moves_pin_of_pinned_node(triangle: GraphManager) -> None:
    triangle.on_node_drag_end("A", 1, 1, 1)
    triangle.apply_coordinate_update("A", 4, 5, 6)
    node = triangle.get_node("A")
    assert (node.fx, node.fy, node.fz) == (4, 5, 6)
    assert node.position() == (4, 5, 6)


# --- Whole graph ---

def test_failed_load_leaves_graph_intact(triangle: GraphManager) -> None:
    before = triangle.save_graph()
    with pytest.raises(DanglingLinkError):
        triangle.load_graph('{"nodes":[{"id":"X"}],"links":[{"source":"X","target":"Y"}]}')
    with pytest.raises(MalformedJSONError):
        triangle.load_graph("{")
    assert triangle.save_graph() == before


def test_load_replaces_everything(triangle: GraphManager) -> None:
    triangle.select_node("A")
    result = triangle.load_graph('{"nodes":[{"id":"X"}],"links":[]}')
    assert result.requires_resimulation
    assert _ids(triangle) == ["X"]
    assert triangle.state.links == []
    assert triangle.get_node("A") is None
    assert triangle.selection.node_id is None


def test_new_graph_clears_store_and_selection(triangle: GraphManager) -> None:
    triangle.select_link(("A", "B"))
    result = triangle.new_graph()
    assert result.requires_resimulation
    assert triangle.state.nodes == []
    assert triangle.state.links == []
    assert triangle.selection.link is None
    assert not triangle.pinning.pinned


def test_change_callbacks_receive_results(manager: GraphManager) -> None:
    seen = []
    manager.on_change(lambda result, state: seen.append((result.requires_resimulation, len(state.nodes))))

    manager.add_node("A")
    manager.set_node_color("A", "#000000")
    manager.add_link("A", "A")

    assert seen == [(True, 1), (False, 1)]


def test_dirty_flag(manager: GraphManager, tmp_path: Path) -> None:
    assert not manager.is_dirty
    manager.add_node("A")
    assert manager.is_dirty
    manager.save_graph_file(tmp_path / "g.json")
    assert not manager.is_dirty


def test_save_and_open_file(triangle: GraphManager, tmp_path: Path) -> None:
    path = triangle.save_graph_file(tmp_path / "nested" / "graph.json")
    assert json.loads(path.read_text())["nodes"][0]["id"] == "A"

    other = GraphManager()
    other.open_graph(path)
    assert _ids(other) == ["A", "B", "C"]
    assert other.file_path == path
    assert other.get_link(("B", "C")).thickness == 3


def test_save_without_path_raises(manager: GraphManager) -> None:
    with pytest.raises(ValueError):
        manager.save_graph_file()


def test_open_missing_file_raises(manager: GraphManager, tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        manager.open_graph(tmp_path / "nope.json")


def test_imported_graph_is_valid(triangle: GraphManager) -> None:
    errors = [i for i in triangle.validate() if i.severity == "error"]
    assert errors == []


def test_get_state_shape(triangle: GraphManager) -> None:
    state = triangle.get_state()
    assert [n["id"] for n in state["graph"]["nodes"]] == ["A", "B", "C"]
    assert state["graph"]["links"][1] == {
        "source": "B", "target": "C", "color": "#FF0000", "thickness": 3,
    }
    assert state["pinned"] is False
    assert state["selection"] == {"node_id": None, "link": None}


def test_select_missing_raises(triangle: GraphManager) -> None:
    with pytest.raises(NodeNotFoundError):
        triangle.select_node("Z")
    with pytest.raises(LinkNotFoundError):
        triangle.select_link(("A", "C"))


def test_graph_text_helper_round_trips(manager: GraphManager) -> None:
    manager.load_graph(graph_text([{"id": "A"}], []))
    assert _ids(manager) == ["A"]
